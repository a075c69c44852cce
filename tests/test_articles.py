"""
Article endpoint tests — the HTTP surface over article_service: status
codes, error payloads, validation, pagination and diagnostic headers.
"""
import pytest
from httpx import AsyncClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from cms.config import settings
from cms.services import article_service


async def _create(client: AsyncClient, title: str = "Endpoint Article", **fields) -> dict:
    payload = {"title": title, "content": "Some content", **fields}
    resp = await client.post("/api/v1/articles", json=payload)
    assert resp.status_code == 201, resp.text
    return resp.json()


# ---------------------------------------------------------------------------
# Infrastructure
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_health(async_client: AsyncClient):
    resp = await async_client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert set(data["cache"]) == {"hits", "misses", "hit_rate"}


@pytest.mark.asyncio
async def test_diagnostic_headers(async_client: AsyncClient):
    await _create(async_client)
    resp = await async_client.get("/api/v1/articles")
    assert "x-response-time-ms" in resp.headers
    # COUNT + page SELECT
    assert int(resp.headers["x-query-count"]) >= 2


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_article(async_client: AsyncClient, refs):
    article = await _create(
        async_client,
        "With refs",
        admin_id=refs.admin_id,
        category_id=refs.category_id,
        seo_keyword="cms",
    )
    assert article["title"] == "With refs"
    assert article["status"] == 1
    assert article["browse"] == 0
    assert article["seo_keyword"] == "cms"
    assert article["admin_info"]["nickname"] == "Editor"
    assert article["category_info"]["name"] == "News"


@pytest.mark.asyncio
async def test_create_duplicate_title_returns_409(async_client: AsyncClient):
    await _create(async_client, "Twice")
    resp = await async_client.post("/api/v1/articles", json={"title": "Twice", "content": "again"})
    assert resp.status_code == 409
    body = resp.json()
    assert body["error_code"] == "existing"
    assert body["msg"] == "Article already exists"
    assert body["request"] == "POST /api/v1/articles"


@pytest.mark.asyncio
async def test_create_requires_title_and_content(async_client: AsyncClient):
    resp = await async_client.post("/api/v1/articles", json={"title": "No content"})
    assert resp.status_code == 422
    resp = await async_client.post("/api/v1/articles", json={"title": "", "content": "x"})
    assert resp.status_code == 422


# ---------------------------------------------------------------------------
# Detail
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_get_article_detail(async_client: AsyncClient):
    created = await _create(async_client)
    resp = await async_client.get(f"/api/v1/articles/{created['id']}")
    assert resp.status_code == 200
    detail = resp.json()
    assert detail["id"] == created["id"]
    assert detail["comment_count"] == 0
    assert detail["admin_info"] is None


@pytest.mark.asyncio
async def test_get_missing_article_returns_401(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/articles/99999")
    assert resp.status_code == 401
    assert resp.json()["error_code"] == "auth_failed"


# ---------------------------------------------------------------------------
# Update
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_update_article(async_client: AsyncClient, refs):
    created = await _create(async_client, admin_id=refs.admin_id)
    resp = await async_client.put(f"/api/v1/articles/{created['id']}", json={
        "title": "Updated title",
        "content": "Updated content",
        "category_id": refs.other_category_id,
        "status": 2,
    })
    assert resp.status_code == 200
    updated = resp.json()
    assert updated["title"] == "Updated title"
    assert updated["status"] == 2
    assert updated["admin_info"]["id"] == refs.admin_id
    assert updated["category_info"]["name"] == "Guides"


@pytest.mark.asyncio
async def test_update_missing_article_returns_404(async_client: AsyncClient):
    resp = await async_client.put("/api/v1/articles/99999", json={"title": "Ghost", "content": "boo"})
    assert resp.status_code == 404
    assert resp.json()["error_code"] == "not_found"


# ---------------------------------------------------------------------------
# Browse counter
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_update_browse(async_client: AsyncClient):
    created = await _create(async_client)
    url = f"/api/v1/articles/{created['id']}/browse"
    assert (await async_client.patch(url, json={"browse": 5})).json()["browse"] == 5
    resp = await async_client.patch(url, json={"browse": 3})
    assert resp.status_code == 200
    assert resp.json()["browse"] == 3

    detail = (await async_client.get(f"/api/v1/articles/{created['id']}")).json()
    assert detail["browse"] == 3


@pytest.mark.asyncio
async def test_update_browse_rejects_negative(async_client: AsyncClient):
    created = await _create(async_client)
    resp = await async_client.patch(f"/api/v1/articles/{created['id']}/browse", json={"browse": -1})
    assert resp.status_code == 422


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_delete_article(async_client: AsyncClient):
    created = await _create(async_client)
    resp = await async_client.delete(f"/api/v1/articles/{created['id']}")
    assert resp.status_code == 200
    assert resp.json()["deleted_at"] is not None

    assert (await async_client.get(f"/api/v1/articles/{created['id']}")).status_code == 401
    assert (await async_client.delete(f"/api/v1/articles/{created['id']}")).status_code == 404
    listing = (await async_client.get("/api/v1/articles")).json()
    assert listing["meta"]["total"] == 0


# ---------------------------------------------------------------------------
# List
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_list_articles_pagination(async_client: AsyncClient):
    for i in range(7):
        await _create(async_client, f"Paged {i}")

    resp = await async_client.get("/api/v1/articles", params={"page": 2, "page_size": 5})
    assert resp.status_code == 200
    body = resp.json()
    assert len(body["data"]) == 2
    assert body["meta"] == {
        "current_page": 2,
        "per_page": 5,
        "count": 7,
        "total": 7,
        "total_pages": 2,
    }


@pytest.mark.asyncio
async def test_list_articles_filters(async_client: AsyncClient, refs):
    await _create(async_client, "Release notes", category_id=refs.category_id)
    await _create(async_client, "Draft release", category_id=refs.category_id, status=2)
    await _create(async_client, "Install guide", category_id=refs.other_category_id)

    resp = await async_client.get(
        "/api/v1/articles",
        params={"status": 1, "category_id": refs.category_id, "keyword": "release"},
    )
    titles = [a["title"] for a in resp.json()["data"]]
    assert titles == ["Release notes"]


@pytest.mark.asyncio
async def test_list_articles_rejects_bad_paging(async_client: AsyncClient):
    assert (await async_client.get("/api/v1/articles", params={"page": 0})).status_code == 422
    assert (await async_client.get("/api/v1/articles", params={"page_size": 0})).status_code == 422
    too_big = {"page_size": settings.MAX_PAGE_SIZE + 1}
    assert (await async_client.get("/api/v1/articles", params=too_big)).status_code == 422
    largest = {"page_size": settings.MAX_PAGE_SIZE}
    assert (await async_client.get("/api/v1/articles", params=largest)).status_code == 200


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_database_failure_returns_500(async_client: AsyncClient, monkeypatch):
    created = await _create(async_client)

    async def failing_flush(self, objects=None):
        raise OperationalError("UPDATE articles", {}, Exception("database is locked"))

    monkeypatch.setattr(AsyncSession, "flush", failing_flush)
    resp = await async_client.delete(f"/api/v1/articles/{created['id']}")
    monkeypatch.undo()

    assert resp.status_code == 500
    assert resp.json() == {
        "error_code": "database",
        "msg": "Failed to delete article",
        "request": f"DELETE /api/v1/articles/{created['id']}",
    }
    # Rolled back: the article is still live.
    assert (await async_client.get(f"/api/v1/articles/{created['id']}")).status_code == 200


@pytest.mark.asyncio
async def test_lost_title_race_returns_409(async_client: AsyncClient, monkeypatch):
    await _create(async_client, "Raced")

    async def title_free(db, title, exclude_id=None):
        return False

    monkeypatch.setattr(article_service, "_title_taken", title_free)
    resp = await async_client.post("/api/v1/articles", json={"title": "Raced", "content": "second"})
    assert resp.status_code == 409
    assert resp.json()["error_code"] == "existing"
