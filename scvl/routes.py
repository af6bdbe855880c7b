"""FastAPI route definitions for the scvl link service.

API Endpoint Overview
=====================
::
    GET  /health
        └─ HealthResponse (200)

    POST /api/pages                      (X-User-ID)
        ├─ PageCreate (request body)
        └─ PageResponse (201) or 401/422/500

    GET  /api/pages                      (X-User-ID)
        └─ list[PageResponse] (200)

    GET  /api/pages/:slug                (X-User-ID)
        └─ PageResponse (200) or 403/404

    PUT  /api/pages/:slug                (X-User-ID)
        ├─ PageUpdate (request body, omit "ogp" to drop it)
        └─ PageResponse (200) or 403/404/422/500

    GET  /api/pages/:slug/stats          (X-User-ID)
        └─ PageStats (200) or 403/404

    GET  /:slug
        └─ 307 Redirect, 200 preview page, or 404

Key Behaviours
===============
- Domain errors (``ScvlError``) become ``HTTPException`` with the error's
  status code; store failures are logged at ERROR first.
- Owner endpoints trust the ``X-User-ID`` header set by the auth proxy.
- The redirect never waits for page-view analytics.
"""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import HTMLResponse, RedirectResponse, Response
from sqlalchemy import text

from scvl.cache import SlugCache
from scvl.dependencies import (
    RequestContext,
    get_current_owner,
    get_page_service,
    get_redirect_engine,
    get_request_context,
    get_slug_cache,
)
from scvl.enums import HealthStatus, RedirectKind
from scvl.errors import ScvlError, StoreError
from scvl.pages import PageService
from scvl.preview import render_preview
from scvl.redirect import RedirectEngine
from scvl.schemas import HealthResponse, PageCreate, PageResponse, PageStats, PageUpdate

__all__ = ["router"]

router = APIRouter()


def _http_error(ctx: RequestContext, operation: str, exc: ScvlError) -> HTTPException:
    extra = {"operation": operation, "error": str(exc), "duration_ms": ctx.get_duration()}
    if isinstance(exc, StoreError):
        ctx.logger.error(f"{operation} failed: {exc}", extra=extra)
    else:
        ctx.logger.warning(f"{operation} rejected: {exc}", extra=extra)
    return HTTPException(status_code=exc.status_code, detail=str(exc))


@router.get("/health", response_model=HealthResponse, tags=["health"])
async def health_check(
    ctx: RequestContext = Depends(get_request_context),
    cache: SlugCache = Depends(get_slug_cache),
) -> HealthResponse:
    db_status = HealthStatus.HEALTHY
    try:
        await ctx.database.execute(text("SELECT 1"))
    except Exception as e:
        ctx.logger.error(f"Database health check failed: {e}")
        db_status = HealthStatus.UNHEALTHY

    cache_status = HealthStatus.HEALTHY if await cache.ping() else HealthStatus.UNHEALTHY

    status = (
        HealthStatus.HEALTHY
        if db_status is HealthStatus.HEALTHY and cache_status is HealthStatus.HEALTHY
        else HealthStatus.UNHEALTHY
    )
    ctx.logger.info(f"Health check completed: {status.value}")
    return HealthResponse(status=status, database=db_status, cache=cache_status)


@router.post("/api/pages", response_model=PageResponse, status_code=201, tags=["pages"])
async def create_page(
    payload: PageCreate,
    owner_id: int = Depends(get_current_owner),
    ctx: RequestContext = Depends(get_request_context),
    service: PageService = Depends(get_page_service),
) -> PageResponse:
    ctx.add_tag("page_creation")
    try:
        page = await service.create_page(owner_id, payload.url, payload.ogp)
    except ScvlError as exc:
        raise _http_error(ctx, "create_page", exc) from exc

    ctx.logger.info(
        f"Page created: {page.slug}",
        extra={"operation": "create_page", "slug": page.slug, "page_id": page.id, "duration_ms": ctx.get_duration()},
    )
    return PageResponse.from_page(page, ctx.settings.BASE_URL)


@router.get("/api/pages", response_model=list[PageResponse], tags=["pages"])
async def list_pages(
    owner_id: int = Depends(get_current_owner),
    ctx: RequestContext = Depends(get_request_context),
    service: PageService = Depends(get_page_service),
) -> list[PageResponse]:
    try:
        pages = await service.list_pages(owner_id)
    except ScvlError as exc:
        raise _http_error(ctx, "list_pages", exc) from exc
    return [PageResponse.from_page(page, ctx.settings.BASE_URL) for page in pages]


@router.get("/api/pages/{slug}", response_model=PageResponse, tags=["pages"])
async def get_page(
    slug: str,
    owner_id: int = Depends(get_current_owner),
    ctx: RequestContext = Depends(get_request_context),
    service: PageService = Depends(get_page_service),
) -> PageResponse:
    try:
        page = await service.get_owned_page(slug, owner_id)
    except ScvlError as exc:
        raise _http_error(ctx, "get_page", exc) from exc
    return PageResponse.from_page(page, ctx.settings.BASE_URL)


@router.put("/api/pages/{slug}", response_model=PageResponse, tags=["pages"])
async def update_page(
    slug: str,
    payload: PageUpdate,
    owner_id: int = Depends(get_current_owner),
    ctx: RequestContext = Depends(get_request_context),
    service: PageService = Depends(get_page_service),
) -> PageResponse:
    ctx.add_tag("page_update")
    try:
        page = await service.get_owned_page(slug, owner_id)
        page = await service.update_page(page.id, payload.url, owner_id, payload.ogp)
    except ScvlError as exc:
        raise _http_error(ctx, "update_page", exc) from exc

    ctx.logger.info(
        f"Page updated: {slug}",
        extra={"operation": "update_page", "slug": slug, "page_id": page.id, "duration_ms": ctx.get_duration()},
    )
    return PageResponse.from_page(page, ctx.settings.BASE_URL)


@router.get("/api/pages/{slug}/stats", response_model=PageStats, tags=["pages"])
async def get_page_stats(
    slug: str,
    owner_id: int = Depends(get_current_owner),
    ctx: RequestContext = Depends(get_request_context),
    service: PageService = Depends(get_page_service),
) -> PageStats:
    try:
        page, views = await service.get_page_stats(slug, owner_id)
    except ScvlError as exc:
        raise _http_error(ctx, "get_page_stats", exc) from exc
    response = PageResponse.from_page(page, ctx.settings.BASE_URL)
    return PageStats(**response.model_dump(), views=views)


@router.get("/{slug}", tags=["redirect"])
async def redirect_to_page(
    slug: str,
    ctx: RequestContext = Depends(get_request_context),
    engine: RedirectEngine = Depends(get_redirect_engine),
) -> Response:
    ctx.add_tag("redirect")
    try:
        decision = await engine.resolve(slug, ctx.client)
    except ScvlError as exc:
        if exc.status_code == 404:
            raise HTTPException(status_code=404, detail="The URL you are looking for is not found.") from exc
        raise _http_error(ctx, "redirect", exc) from exc

    ctx.logger.info(
        f"Redirect {slug} -> {decision.url} ({decision.kind})",
        extra={
            "operation": "redirect",
            "slug": slug,
            "target_url": decision.url,
            "cache_hit": decision.cache_status,
            "duration_ms": ctx.get_duration(),
        },
    )
    if decision.kind is RedirectKind.PREVIEW and decision.ogp is not None:
        return HTMLResponse(render_preview(decision.url, decision.ogp))
    return RedirectResponse(url=decision.url, status_code=307)
