"""PageStore against an in-memory SQLite database."""

from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from scvl.errors import OGPNotFoundError, PageNotFoundError, SlugConflictError, StoreError
from scvl.models import PageView
from scvl.schemas import OGPPayload
from scvl.store import PageStore, is_slug_violation


@pytest.mark.asyncio
async def test_create_and_find_page(page_store):
    page = await page_store.create_page(7, "abc2345", "https://example.com")

    assert page.id is not None
    assert page.created_at is not None
    assert (await page_store.find_page_by_slug("abc2345")).id == page.id
    assert (await page_store.find_page_by_id(page.id)).slug == "abc2345"


@pytest.mark.asyncio
async def test_missing_page_raises_not_found(page_store):
    with pytest.raises(PageNotFoundError):
        await page_store.find_page_by_slug("missing")
    with pytest.raises(PageNotFoundError):
        await page_store.find_page_by_id(42)


@pytest.mark.asyncio
async def test_duplicate_slug_raises_conflict(page_store):
    await page_store.create_page(7, "abc2345", "https://example.com")

    with pytest.raises(SlugConflictError) as exc_info:
        await page_store.create_page(8, "abc2345", "https://other.example.com")

    assert exc_info.value.slug == "abc2345"
    assert isinstance(exc_info.value, StoreError)


@pytest.mark.asyncio
async def test_other_integrity_errors_are_not_slug_conflicts(page_store):
    with pytest.raises(StoreError) as exc_info:
        await page_store.create_page(7, "abc2345", None)

    assert not isinstance(exc_info.value, SlugConflictError)
    assert list(await page_store.list_pages_by_owner(7)) == []


@pytest.mark.parametrize(
    "message, expected",
    [
        ('duplicate key value violates unique constraint "ix_pages_slug"', True),
        ("UNIQUE constraint failed: pages.slug", True),
        ("NOT NULL constraint failed: pages.url", False),
        ('insert or update on table "ogps" violates foreign key constraint "ogps_page_id_fkey"', False),
    ],
)
def test_is_slug_violation(message, expected):
    exc = IntegrityError("INSERT INTO pages", {}, Exception(message))

    assert is_slug_violation(exc) is expected


@pytest.mark.asyncio
async def test_create_page_with_ogp_in_one_call(page_store):
    page = await page_store.create_page(7, "abc2345", "https://example.com", OGPPayload(title="Title", description="Desc"))

    assert page.ogp is not None
    assert page.ogp.page_id == page.id
    found = await page_store.find_ogp_by_id(page.ogp.id)
    assert found.title == "Title"
    assert found.description == "Desc"


@pytest.mark.asyncio
async def test_update_page_replaces_and_drops_ogp(page_store):
    page = await page_store.create_page(7, "abc2345", "https://example.com", OGPPayload(title="Old"))
    ogp_id = page.ogp.id

    page = await page_store.update_page(page, "https://new.example.com", OGPPayload(title="New"))
    assert page.ogp.id == ogp_id
    assert (await page_store.find_ogp_by_id(ogp_id)).title == "New"

    page = await page_store.update_page(page, "https://new.example.com")
    assert page.ogp is None
    with pytest.raises(OGPNotFoundError):
        await page_store.find_ogp_by_id(ogp_id)


@pytest.mark.asyncio
async def test_update_page(page_store):
    page = await page_store.create_page(7, "abc2345", "https://example.com")

    await page_store.update_page(page, "https://new.example.com")

    assert (await page_store.find_page_by_slug("abc2345")).url == "https://new.example.com"


@pytest.mark.asyncio
async def test_ogp_lifecycle(page_store):
    page = await page_store.create_page(7, "abc2345", "https://example.com")

    ogp = await page_store.create_ogp(page, "Title", "https://img.example.com/a.png", "Desc")
    assert ogp.id > 0
    assert ogp.page_id == page.id
    assert (await page_store.find_ogp_by_id(ogp.id)).title == "Title"

    await page_store.update_ogp(ogp, "New title", "", "New desc")
    found = await page_store.find_ogp_by_id(ogp.id)
    assert found.title == "New title"
    assert found.description == "New desc"

    await page_store.delete_ogp(page)
    assert page.ogp is None
    with pytest.raises(OGPNotFoundError):
        await page_store.find_ogp_by_id(ogp.id)


@pytest.mark.asyncio
async def test_delete_ogp_without_record(page_store):
    page = await page_store.create_page(7, "abc2345", "https://example.com")

    with pytest.raises(OGPNotFoundError):
        await page_store.delete_ogp(page)


@pytest.mark.asyncio
async def test_page_views_are_counted_per_slug(page_store):
    inserted = await page_store.add_page_views(
        [
            PageView(slug="abc2345", real_ip="203.0.113.7", browser_name="Chrome"),
            PageView(slug="abc2345", mobile=True),
            PageView(slug="zzz9999"),
        ]
    )

    assert inserted == 3
    assert await page_store.count_page_views("abc2345") == 2
    assert await page_store.count_page_views("nothing") == 0
    assert await page_store.add_page_views([]) == 0


@pytest.mark.asyncio
async def test_read_failure_becomes_store_error():
    session = AsyncMock(spec=AsyncSession)
    session.execute.side_effect = OperationalError("SELECT 1", {}, Exception("server closed the connection"))
    store = PageStore(session)

    with pytest.raises(StoreError):
        await store.find_page_by_slug("abc2345")
    with pytest.raises(StoreError):
        await store.count_page_views("abc2345")


@pytest.mark.asyncio
async def test_write_failure_rolls_back():
    session = AsyncMock(spec=AsyncSession)
    session.commit.side_effect = OperationalError("COMMIT", {}, Exception("server closed the connection"))
    store = PageStore(session)

    with pytest.raises(StoreError):
        await store.add_page_views([PageView(slug="abc2345")])

    session.rollback.assert_awaited_once()
