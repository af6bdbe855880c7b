"""Pydantic schemas for request/response validation and event payloads.

Schema Hierarchy
=================
::
    PageCreate / PageUpdate (Input)
    ├─ url: str (validated URL)
    └─ ogp: OGPPayload | None (omitted means "no OGP")

    OGPPayload (Input)
    ├─ title: str
    ├─ image: str
    └─ description: str

    PageResponse (Output)
    ├─ id, slug, url, short_url, owner_id
    ├─ ogp: OGPResponse | None
    └─ created_at, updated_at

    PageStats (Output)
    └─ PageResponse fields + views

    HealthResponse (Output)
    ├─ status
    ├─ database
    └─ cache

    PageViewEvent (Kafka / Redis stream payload)
    └─ slug, real_ip, referer, mobile, platform, os, browser_name, timestamp

Key Behaviours
===============
- URL validation uses the validators library; the same check guards the
  page service so non-HTTP callers get it too.
- All datetime fields are timezone-aware.
- Response models read ORM attributes directly.
"""

import datetime

import validators
from pydantic import BaseModel, Field, field_validator

from scvl.enums import HealthStatus
from scvl.errors import InvalidURLError
from scvl.models import Page

__all__ = [
    "HealthResponse",
    "OGPPayload",
    "OGPResponse",
    "PageCreate",
    "PageResponse",
    "PageStats",
    "PageUpdate",
    "PageViewEvent",
    "validate_destination_url",
]


def validate_destination_url(url: str) -> str:
    if not url:
        raise InvalidURLError("url cannot be empty")
    if not validators.url(url):
        raise InvalidURLError("Invalid URL provided")
    return url


class OGPPayload(BaseModel):
    title: str = ""
    image: str = ""
    description: str = ""


class PageCreate(BaseModel):
    url: str
    ogp: OGPPayload | None = None

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        return validate_destination_url(v)


class PageUpdate(PageCreate):
    pass


class OGPResponse(BaseModel):
    id: int
    title: str
    image: str
    description: str

    model_config = {"from_attributes": True}


class PageResponse(BaseModel):
    id: int
    slug: str
    url: str
    short_url: str
    owner_id: int
    ogp: OGPResponse | None = None
    created_at: datetime.datetime
    updated_at: datetime.datetime

    model_config = {"from_attributes": True}

    @classmethod
    def from_page(cls, page: Page, base_url: str) -> "PageResponse":
        return cls(
            id=page.id,
            slug=page.slug,
            url=page.url,
            short_url=f"{base_url}/{page.slug}",
            owner_id=page.owner_id,
            ogp=OGPResponse.model_validate(page.ogp) if page.ogp is not None else None,
            created_at=page.created_at,
            updated_at=page.updated_at,
        )


class PageStats(PageResponse):
    views: int = 0


class HealthResponse(BaseModel):
    status: HealthStatus
    database: HealthStatus
    cache: HealthStatus


class PageViewEvent(BaseModel):
    """One visit to a slug, published to Kafka keyed by slug."""

    slug: str = Field(..., description="Slug that was visited, e.g. 'abc123'")
    real_ip: str = ""
    referer: str = ""
    mobile: bool = False
    platform: str = ""
    os: str = ""
    browser_name: str = ""
    timestamp: datetime.datetime = Field(
        default_factory=lambda: datetime.datetime.now(datetime.timezone.utc),
        description="When the redirect was served.",
    )
