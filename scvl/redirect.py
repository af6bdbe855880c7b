"""Cache-aside redirect engine.

Resolves a slug to the response the visitor gets: a plain 307 redirect, or a
rich-preview page carrying OGP metadata for link unfurlers.

Flow Diagram — resolve()
========================
::
    ┌─────────────┐
    │  GET /:slug │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ cache: URL  │
    └──────┬──────┘
    HIT?   │
    ┌──────┴──────────────┐
    │ NO                  │ YES
    ▼                     ▼
┌──────────┐        ┌───────────┐
│ store:   │        │ cache:    │
│ page by  │        │ OGP id    │
│ slug     │        └─────┬─────┘
└────┬─────┘         id≠0 │
 404 │ found              ▼
     ▼              ┌───────────┐
┌──────────┐        │ store:    │
│ cache:   │        │ OGP by id │
│ set URL  │        │ (gone →   │
│ (+OGP id)│        │  no OGP)  │
└────┬─────┘        └─────┬─────┘
     └─────────┬──────────┘
               ▼
    ┌─────────────────────┐
    │ decision table      │
    │ (OGP? × crawler?)   │
    └──────────┬──────────┘
               ▼
    ┌─────────────────────┐
    │ detached page view  │
    │ (non-crawlers only) │
    └──────────┬──────────┘
               ▼
      307 redirect / preview

Key Behaviours
===============
- Only the ``slug → OGP id`` mapping lives in the cache; the OGP record itself
  is fetched from the store, and only when that id is nonzero.
- An unknown slug raises ``PageNotFoundError`` without touching the cache.
- A cached OGP id whose record is gone is answered as "no OGP".
- Page-view recording is handed off and never awaited here.
"""

import logging
import time
from dataclasses import dataclass

from prometheus_client import Counter, Histogram

from scvl.agent import ClientAgent, classify_user_agent
from scvl.analytics import PageViewRecorder
from scvl.cache import SlugCache
from scvl.enums import CacheStatus, RedirectKind
from scvl.errors import OGPNotFoundError, PageNotFoundError, StoreError
from scvl.models import OGP
from scvl.schemas import PageViewEvent
from scvl.store import PageStore

__all__ = ["DECISION_TABLE", "ClientInfo", "RedirectDecision", "RedirectEngine", "decide"]

REDIRECT_REQUESTS_TOTAL = Counter(
    "scvl_redirect_requests_total",
    "Resolved redirect requests",
    ["kind", "cache_hit"],
)
REDIRECT_NOT_FOUND_TOTAL = Counter(
    "scvl_redirect_not_found_total",
    "Redirect requests for unknown slugs",
)
REDIRECT_DURATION = Histogram(
    "scvl_redirect_duration_seconds",
    "Time taken to resolve a slug",
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25],
)

# (has OGP, is crawler) -> (response kind, record a page view)
DECISION_TABLE: dict[tuple[bool, bool], tuple[RedirectKind, bool]] = {
    (False, False): (RedirectKind.REDIRECT, True),
    (False, True): (RedirectKind.REDIRECT, False),
    (True, False): (RedirectKind.PREVIEW, True),
    (True, True): (RedirectKind.PREVIEW, False),
}


def decide(has_ogp: bool, is_bot: bool) -> tuple[RedirectKind, bool]:
    return DECISION_TABLE[(has_ogp, is_bot)]


@dataclass(frozen=True)
class ClientInfo:
    ip: str = ""
    referer: str = ""
    user_agent: str | None = None


@dataclass(frozen=True)
class RedirectDecision:
    kind: RedirectKind
    slug: str
    url: str
    ogp: OGP | None
    cache_status: CacheStatus
    recorded_view: bool


class RedirectEngine:
    def __init__(
        self,
        store: PageStore,
        cache: SlugCache,
        recorder: PageViewRecorder,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        self._store = store
        self._cache = cache
        self._recorder = recorder
        self._logger = logger or logging.getLogger("scvl")

    async def resolve(self, slug: str, client: ClientInfo) -> RedirectDecision:
        """Resolve ``slug`` for one visit.

        Raises:
            PageNotFoundError: no page has this slug.
            StoreError: the store could not be read on a cache miss.
        """
        start_time = time.perf_counter()
        ogp: OGP | None = None

        url = await self._cache.get_url(slug)
        if url:
            cache_status = CacheStatus.HIT
            ogp = await self._ogp_from_cached_id(slug)
        else:
            cache_status = CacheStatus.MISS
            try:
                page = await self._store.find_page_by_slug(slug)
            except PageNotFoundError:
                REDIRECT_NOT_FOUND_TOTAL.inc()
                raise
            url = page.url
            await self._cache.set_url(slug, url)
            if page.ogp is not None:
                ogp = page.ogp
                await self._cache.set_ogp_id(slug, ogp.id)

        agent = classify_user_agent(client.user_agent)
        kind, record_view = decide(ogp is not None, agent.is_bot)
        if record_view:
            self._record_view(slug, client, agent)

        REDIRECT_REQUESTS_TOTAL.labels(kind=kind, cache_hit=cache_status).inc()
        REDIRECT_DURATION.observe(time.perf_counter() - start_time)
        self._logger.debug(f"Resolved {slug} as {kind} (cache hit: {cache_status})")
        return RedirectDecision(
            kind=kind,
            slug=slug,
            url=url,
            ogp=ogp,
            cache_status=cache_status,
            recorded_view=record_view,
        )

    async def _ogp_from_cached_id(self, slug: str) -> OGP | None:
        ogp_id = await self._cache.get_ogp_id(slug)
        if ogp_id == 0:
            return None
        try:
            return await self._store.find_ogp_by_id(ogp_id)
        except OGPNotFoundError:
            self._logger.info(f"Cached OGP id {ogp_id} for {slug} no longer exists, serving plain redirect")
            return None
        except StoreError as exc:
            self._logger.error(f"OGP lookup failed for {slug}, serving plain redirect: {exc}")
            return None

    def _record_view(self, slug: str, client: ClientInfo, agent: ClientAgent) -> None:
        try:
            self._recorder.record(
                PageViewEvent(
                    slug=slug,
                    real_ip=client.ip,
                    referer=client.referer,
                    mobile=agent.is_mobile,
                    platform=agent.platform,
                    os=agent.os,
                    browser_name=agent.browser_name,
                )
            )
        except Exception as exc:
            self._logger.error(f"Could not schedule page view for {slug}: {exc}")
