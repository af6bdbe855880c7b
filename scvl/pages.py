"""Page mutations and owner-scoped reads.

``PageService`` keeps the slug cache in step with the durable store. Every
mutation writes the store first and touches the cache only after the store
write succeeded, so the cache is never the only place a change lives: a crash
in between leaves a stale or missing entry that the next cache miss repairs.

Flow Diagram — update_page()
============================
::
    ┌─────────────┐
    │ find page   │──► 404
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ owner?      │──► 403 (nothing written)
    └──────┬──────┘
           ▼
    ┌──────────────────────────────────────────┐
    │ store, one transaction:                  │
    │   URL                                    │
    │   OGP given, none stored → create        │
    │   OGP given, stored      → update        │
    │   OGP withheld, stored   → delete        │
    └──────┬───────────────────────────────────┘
   FAILED? │ yes → StoreError, cache untouched
           ▼
    ┌──────────────────────────────────────────┐
    │ cache: URL, then OGP id set or deleted   │
    └──────────────────────────────────────────┘
"""

import logging
import time
from collections.abc import Sequence

from prometheus_client import Counter, Histogram

from scvl.cache import SlugCache
from scvl.config import Settings, get_settings
from scvl.enums import RequestStatus
from scvl.errors import ForbiddenError, InvalidURLError, ScvlError, SlugConflictError, StoreError
from scvl.models import Page
from scvl.schemas import OGPPayload, validate_destination_url
from scvl.slug import generate_slug
from scvl.store import PageStore

__all__ = ["PageService"]

PAGE_MUTATIONS_TOTAL = Counter(
    "scvl_page_mutations_total",
    "Page create/update requests",
    ["operation", "status"],
)
PAGE_MUTATION_DURATION = Histogram(
    "scvl_page_mutation_duration_seconds",
    "Time taken to create or update a page",
    ["operation"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
)
SLUG_COLLISIONS_TOTAL = Counter(
    "scvl_slug_collisions_total",
    "Generated slugs rejected by the unique constraint",
)


def _status_of(exc: Exception) -> RequestStatus:
    if isinstance(exc, InvalidURLError):
        return RequestStatus.VALIDATION_ERROR
    if isinstance(exc, ForbiddenError):
        return RequestStatus.FORBIDDEN
    if isinstance(exc, ScvlError) and exc.status_code == 404:
        return RequestStatus.NOT_FOUND
    return RequestStatus.ERROR


class PageService:
    """Create and update pages, keeping the slug cache consistent.

    Example:
        >>> service = PageService(PageStore(session), SlugCache(redis_client))
        >>> page = await service.create_page(1, "https://example.com")
        >>> page = await service.update_page(page.id, "https://new.example.com", owner_id=1)
    """

    def __init__(
        self,
        store: PageStore,
        cache: SlugCache,
        settings: Settings | None = None,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        self._store = store
        self._cache = cache
        self._settings = settings or get_settings()
        self._logger = logger or logging.getLogger("scvl")

    async def create_page(self, owner_id: int, url: str, ogp: OGPPayload | None = None) -> Page:
        """Shorten ``url`` for ``owner_id``, optionally with OGP metadata.

        Raises:
            InvalidURLError: ``url`` is empty or malformed.
            StoreError: the store rejected the write, or no free slug was
                found within SLUG_MAX_ATTEMPTS tries.
        """
        start_time = time.perf_counter()
        try:
            validate_destination_url(url)
            page = await self._insert_with_fresh_slug(owner_id, url, ogp)
            await self._cache.set_url(page.slug, page.url)
            if page.ogp is not None:
                await self._cache.set_ogp_id(page.slug, page.ogp.id)
        except Exception as exc:
            self._observe("create", _status_of(exc), start_time)
            self._logger.warning(f"Page creation failed for owner {owner_id}: {exc}")
            raise

        self._observe("create", RequestStatus.SUCCESS, start_time)
        self._logger.info(f"Page created: {page.slug} -> {page.url} (owner {owner_id})")
        return page

    async def update_page(
        self,
        page_id: int,
        url: str,
        owner_id: int,
        ogp: OGPPayload | None = None,
    ) -> Page:
        """Point a page at ``url`` and upsert or drop its OGP record.

        Passing ``ogp=None`` removes an existing OGP record.

        Raises:
            PageNotFoundError: no page has ``page_id``.
            ForbiddenError: ``owner_id`` does not own the page; nothing is written.
            InvalidURLError: ``url`` is empty or malformed.
            StoreError: a store write failed.
        """
        start_time = time.perf_counter()
        try:
            page = await self._store.find_page_by_id(page_id)
            self._ensure_owner(page, owner_id)
            validate_destination_url(url)

            had_ogp = page.ogp is not None
            page = await self._store.update_page(page, url, ogp)

            await self._cache.set_url(page.slug, page.url)
            if page.ogp is not None:
                # id is unchanged on in-place update; re-setting keeps both keys on the same TTL
                await self._cache.set_ogp_id(page.slug, page.ogp.id)
            elif had_ogp:
                await self._cache.delete_ogp_id(page.slug)
        except Exception as exc:
            self._observe("update", _status_of(exc), start_time)
            self._logger.warning(f"Page update failed for page {page_id} by owner {owner_id}: {exc}")
            raise

        self._observe("update", RequestStatus.SUCCESS, start_time)
        self._logger.info(f"Page updated: {page.slug} -> {page.url}")
        return page

    async def get_owned_page(self, slug: str, owner_id: int) -> Page:
        page = await self._store.find_page_by_slug(slug)
        self._ensure_owner(page, owner_id)
        return page

    async def list_pages(self, owner_id: int) -> Sequence[Page]:
        return await self._store.list_pages_by_owner(owner_id)

    async def get_page_stats(self, slug: str, owner_id: int) -> tuple[Page, int]:
        page = await self.get_owned_page(slug, owner_id)
        views = await self._store.count_page_views(slug)
        return page, views

    # ------------------------------------------------------------------------

    async def _insert_with_fresh_slug(self, owner_id: int, url: str, ogp: OGPPayload | None) -> Page:
        attempts = self._settings.SLUG_MAX_ATTEMPTS
        for attempt in range(1, attempts + 1):
            slug = generate_slug(self._settings.SLUG_LENGTH)
            try:
                return await self._store.create_page(owner_id, slug, url, ogp)
            except SlugConflictError:
                SLUG_COLLISIONS_TOTAL.inc()
                self._logger.warning(f"Slug collision on {slug} (attempt {attempt}/{attempts})")
        raise StoreError(f"Could not allocate a free slug after {attempts} attempts")

    @staticmethod
    def _ensure_owner(page: Page, owner_id: int) -> None:
        if page.owner_id != owner_id:
            raise ForbiddenError()

    @staticmethod
    def _observe(operation: str, status: RequestStatus, start_time: float) -> None:
        PAGE_MUTATIONS_TOTAL.labels(operation=operation, status=status).inc()
        PAGE_MUTATION_DURATION.labels(operation=operation).observe(time.perf_counter() - start_time)
