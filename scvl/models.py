"""SQLAlchemy ORM models for pages, their OGP metadata and page views.

Data Model Layout
=================
::
    pages table
    ├─ id (SERIAL PRIMARY KEY)
    ├─ slug (VARCHAR(32) UNIQUE, INDEXED)
    ├─ owner_id (INTEGER, INDEXED)
    ├─ url (TEXT NOT NULL)
    ├─ created_at (TIMESTAMPTZ, DEFAULT NOW())
    └─ updated_at (TIMESTAMPTZ, DEFAULT NOW(), ON UPDATE)

    ogps table
    ├─ id (SERIAL PRIMARY KEY)
    ├─ page_id (INTEGER UNIQUE, FK pages.id)
    ├─ title / image / description (TEXT)
    ├─ created_at (TIMESTAMPTZ)
    └─ updated_at (TIMESTAMPTZ)

    page_views table
    ├─ id (SERIAL PRIMARY KEY)
    ├─ slug (VARCHAR(32), INDEXED)
    ├─ real_ip / referer / platform / os / browser_name (TEXT)
    ├─ mobile (BOOLEAN)
    └─ created_at (TIMESTAMPTZ)

Class Relationship Diagram
=========================
::
    Page 1 ─── 0..1 OGP
    Page.slug 1 ─── * PageView.slug   (no FK, write-only telemetry)

Key Behaviours
===============
- ``slug`` is unique; collisions surface as IntegrityError on insert.
- ``ogps.page_id`` is unique, so a page holds at most one OGP record.
- ``Page.ogp`` is loaded eagerly (``selectin``) so the redirect path can read
  it without lazy IO.
- Pages are never hard-deleted.
"""

import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from scvl.database import Base

__all__ = ["OGP", "Page", "PageView"]


class Page(Base):
    __tablename__ = "pages"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    slug: Mapped[str] = mapped_column(String(32), unique=True, index=True, nullable=False)
    owner_id: Mapped[int] = mapped_column(Integer, index=True, nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    ogp: Mapped["OGP | None"] = relationship(
        back_populates="page", lazy="selectin", uselist=False, cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Page(id={self.id}, slug='{self.slug}', owner_id={self.owner_id})>"


class OGP(Base):
    __tablename__ = "ogps"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    page_id: Mapped[int] = mapped_column(ForeignKey("pages.id"), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(Text, default="", nullable=False)
    image: Mapped[str] = mapped_column(Text, default="", nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    page: Mapped[Page] = relationship(back_populates="ogp")

    def __repr__(self) -> str:
        return f"<OGP(id={self.id}, page_id={self.page_id})>"


class PageView(Base):
    __tablename__ = "page_views"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    slug: Mapped[str] = mapped_column(String(32), index=True, nullable=False)
    real_ip: Mapped[str] = mapped_column(Text, default="", nullable=False)
    referer: Mapped[str] = mapped_column(Text, default="", nullable=False)
    mobile: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    platform: Mapped[str] = mapped_column(Text, default="", nullable=False)
    os: Mapped[str] = mapped_column(Text, default="", nullable=False)
    browser_name: Mapped[str] = mapped_column(Text, default="", nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<PageView(id={self.id}, slug='{self.slug}')>"
