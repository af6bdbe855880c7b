"""Durable store for pages, OGP records and page views.

``PageStore`` wraps one ``AsyncSession``. Each write method commits exactly
once, so a page and its OGP record are saved or rolled back together.
SQLAlchemy errors roll the session back and surface as ``StoreError``; a
violation of the unique slug index on insert surfaces as ``SlugConflictError``
so the caller can retry with a new slug.
"""

from collections.abc import Iterable, Sequence

from prometheus_client import Counter
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from scvl.errors import OGPNotFoundError, PageNotFoundError, SlugConflictError, StoreError
from scvl.models import OGP, Page, PageView
from scvl.schemas import OGPPayload

__all__ = ["PageStore", "is_slug_violation"]

# Postgres reports the unique index name, SQLite the table.column pair.
SLUG_CONSTRAINT_MARKERS = ("ix_pages_slug", "pages.slug")


def is_slug_violation(exc: IntegrityError) -> bool:
    message = str(exc.orig)
    return any(marker in message for marker in SLUG_CONSTRAINT_MARKERS)


DATABASE_READS_TOTAL = Counter(
    "scvl_database_reads_total",
    "Total database read operations",
)
DATABASE_WRITES_TOTAL = Counter(
    "scvl_database_writes_total",
    "Total database write operations",
)


class PageStore:
    def __init__(self, session: AsyncSession) -> None:
        self._db = session

    # ------------------------------------------------------------------ reads

    async def find_page_by_slug(self, slug: str) -> Page:
        page = await self._scalar(select(Page).where(Page.slug == slug))
        if page is None:
            raise PageNotFoundError()
        return page

    async def find_page_by_id(self, page_id: int) -> Page:
        page = await self._scalar(select(Page).where(Page.id == page_id))
        if page is None:
            raise PageNotFoundError()
        return page

    async def find_ogp_by_id(self, ogp_id: int) -> OGP:
        ogp = await self._scalar(select(OGP).where(OGP.id == ogp_id))
        if ogp is None:
            raise OGPNotFoundError(ogp_id)
        return ogp

    async def list_pages_by_owner(self, owner_id: int) -> Sequence[Page]:
        try:
            result = await self._db.execute(
                select(Page).where(Page.owner_id == owner_id).order_by(Page.id.desc())
            )
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to list pages for owner {owner_id}: {exc}") from exc
        DATABASE_READS_TOTAL.inc()
        return result.scalars().all()

    async def count_page_views(self, slug: str) -> int:
        try:
            result = await self._db.execute(
                select(func.count()).select_from(PageView).where(PageView.slug == slug)
            )
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to count page views for {slug}: {exc}") from exc
        DATABASE_READS_TOTAL.inc()
        return int(result.scalar_one())

    # ----------------------------------------------------------------- writes

    async def create_page(
        self,
        owner_id: int,
        slug: str,
        url: str,
        ogp: OGPPayload | None = None,
    ) -> Page:
        """Insert a page, and its OGP record when given, in one transaction."""
        page = Page(owner_id=owner_id, slug=slug, url=url)
        if ogp is not None:
            page.ogp = OGP(title=ogp.title, image=ogp.image, description=ogp.description)
        self._db.add(page)
        try:
            await self._db.commit()
        except IntegrityError as exc:
            await self._db.rollback()
            if is_slug_violation(exc):
                raise SlugConflictError(slug) from exc
            raise StoreError(f"Failed to create page {slug}: {exc}") from exc
        except SQLAlchemyError as exc:
            await self._db.rollback()
            raise StoreError(f"Failed to create page {slug}: {exc}") from exc
        DATABASE_WRITES_TOTAL.inc()
        await self._db.refresh(page)
        return page

    async def update_page(self, page: Page, url: str, ogp: OGPPayload | None = None) -> Page:
        """Set the URL and upsert or drop the OGP record in one transaction.

        ``ogp=None`` removes an existing OGP record.
        """
        page.url = url
        if ogp is None:
            # delete-orphan cascade removes the row on flush
            page.ogp = None
        elif page.ogp is None:
            page.ogp = OGP(title=ogp.title, image=ogp.image, description=ogp.description)
        else:
            page.ogp.title = ogp.title
            page.ogp.image = ogp.image
            page.ogp.description = ogp.description
        await self._commit(f"update page {page.slug}")
        await self._db.refresh(page)
        if page.ogp is not None:
            await self._db.refresh(page.ogp)
        return page

    async def create_ogp(self, page: Page, title: str, image: str, description: str) -> OGP:
        ogp = OGP(title=title, image=image, description=description)
        page.ogp = ogp
        await self._commit(f"create OGP for page {page.slug}")
        await self._db.refresh(ogp)
        return ogp

    async def update_ogp(self, ogp: OGP, title: str, image: str, description: str) -> OGP:
        ogp.title = title
        ogp.image = image
        ogp.description = description
        await self._commit(f"update OGP {ogp.id}")
        await self._db.refresh(ogp)
        return ogp

    async def delete_ogp(self, page: Page) -> None:
        ogp = page.ogp
        if ogp is None:
            raise OGPNotFoundError(0)
        # delete-orphan cascade removes the row on flush
        page.ogp = None
        await self._commit(f"delete OGP {ogp.id}")

    async def add_page_views(self, views: Iterable[PageView]) -> int:
        rows = list(views)
        if not rows:
            return 0
        self._db.add_all(rows)
        await self._commit(f"insert {len(rows)} page views")
        return len(rows)

    # ---------------------------------------------------------------- helpers

    async def _scalar(self, statement):
        try:
            result = await self._db.execute(statement)
        except SQLAlchemyError as exc:
            raise StoreError(f"Store read failed: {exc}") from exc
        DATABASE_READS_TOTAL.inc()
        return result.scalar_one_or_none()

    async def _commit(self, action: str) -> None:
        try:
            await self._db.commit()
        except SQLAlchemyError as exc:
            await self._db.rollback()
            raise StoreError(f"Failed to {action}: {exc}") from exc
        DATABASE_WRITES_TOTAL.inc()
