"""HTTP tests for the snippet and tag endpoints."""

from __future__ import annotations

from datetime import datetime
import logging
from urllib.parse import quote

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from cstash.snippets.store import SnippetStore


def _ts(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


async def _create(async_client: AsyncClient, **fields) -> str:
    payload = {"title": "", "content": "", "language": "", "tags": [], **fields}
    response = await async_client.post("/api/v1/snippets", json=payload)
    assert response.status_code == 201
    return response.json()["id"]


@pytest.mark.asyncio
async def test_health_endpoint(async_client: AsyncClient) -> None:
    """Health route should return healthy status envelope."""
    response = await async_client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"ok": True, "data": {"status": "healthy"}}


@pytest.mark.asyncio
async def test_create_then_get_roundtrip(async_client: AsyncClient) -> None:
    payload = {
        "title": "Fibonacci",
        "description": "naive recursion",
        "content": "def fib(n): ...",
        "language": "python",
        "tags": ["algo", "python"],
        "isFavorite": True,
    }

    created = await async_client.post("/api/v1/snippets", json=payload)
    assert created.status_code == 201
    body = created.json()
    assert set(body) == {"id"}
    snippet_id = body["id"]
    assert snippet_id and not set(snippet_id) & {"+", "/", "="}

    response = await async_client.get(f"/api/v1/snippets/{snippet_id}")
    assert response.status_code == 200
    data = response.json()
    assert data["id"] == snippet_id
    for key, value in payload.items():
        assert data[key] == value
    assert data["createdAt"] == data["updatedAt"]


@pytest.mark.asyncio
async def test_create_ignores_client_supplied_id(async_client: AsyncClient) -> None:
    snippet_id = await _create(async_client, id="chosen-by-client", title="x")

    assert snippet_id != "chosen-by-client"


@pytest.mark.asyncio
async def test_create_rejects_unknown_fields(async_client: AsyncClient) -> None:
    response = await async_client.post("/api/v1/snippets", json={"title": "x", "colour": "red"})

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_create_rejects_duplicate_tags(async_client: AsyncClient) -> None:
    response = await async_client.post("/api/v1/snippets", json={"title": "x", "tags": ["go", "go"]})

    assert response.status_code == 400


@pytest.mark.asyncio
@pytest.mark.parametrize("bad_tag", ["", "   ", "x" * 65])
async def test_tag_rules_are_shared_by_every_write_path(async_client: AsyncClient, bad_tag: str) -> None:
    created = await async_client.post("/api/v1/snippets", json={"title": "x", "tags": [bad_tag]})
    assert created.status_code == 400

    snippet_id = await _create(async_client, tags=["keep"])

    attached = await async_client.post(f"/api/v1/snippets/{snippet_id}/tags", json={"tag": bad_tag})
    assert attached.status_code == 400

    updated = await async_client.put(f"/api/v1/snippets/{snippet_id}", json={"tags": [bad_tag, "ok"]})
    assert updated.status_code == 200
    assert updated.json()["tags"] == ["ok"]

    tags = await async_client.get("/api/v1/tags")
    assert tags.json() == ["ok"]


@pytest.mark.asyncio
async def test_create_accepts_tag_at_length_limit(async_client: AsyncClient) -> None:
    snippet_id = await _create(async_client, tags=["x" * 64])

    response = await async_client.get(f"/api/v1/snippets/{snippet_id}")
    assert response.json()["tags"] == ["x" * 64]


@pytest.mark.asyncio
async def test_create_rejects_malformed_json(async_client: AsyncClient) -> None:
    response = await async_client.post(
        "/api/v1/snippets",
        content=b'{"title": ',
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_get_unknown_snippet_returns_404(async_client: AsyncClient) -> None:
    response = await async_client.get("/api/v1/snippets/does-not-exist")

    assert response.status_code == 404
    assert response.json()["detail"] == "snippet not found"


@pytest.mark.asyncio
async def test_update_applies_partial_fields(async_client: AsyncClient, store: SnippetStore) -> None:
    snippet_id = await _create(async_client, title="old", language="go", tags=["a", "b"])
    before = (await async_client.get(f"/api/v1/snippets/{snippet_id}")).json()

    response = await async_client.put(
        f"/api/v1/snippets/{snippet_id}",
        json={"title": "new", "tags": ["b", "c"], "language": 7, "bogus": True},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["title"] == "new"
    assert data["language"] == "go"
    assert data["tags"] == ["b", "c"]
    assert data["createdAt"] == before["createdAt"]
    assert _ts(data["updatedAt"]) > _ts(before["updatedAt"])

    tags = await async_client.get("/api/v1/tags")
    assert tags.json() == ["b", "c"]
    assert store.tags.snapshot() == {"b": 1, "c": 1}


@pytest.mark.asyncio
async def test_update_with_empty_object_bumps_updated_at(async_client: AsyncClient) -> None:
    snippet_id = await _create(async_client, title="same")
    before = (await async_client.get(f"/api/v1/snippets/{snippet_id}")).json()

    response = await async_client.put(f"/api/v1/snippets/{snippet_id}", json={})

    assert response.status_code == 200
    after = response.json()
    assert after["title"] == "same"
    assert _ts(after["updatedAt"]) > _ts(before["updatedAt"])


@pytest.mark.asyncio
async def test_update_rejects_non_object_body(async_client: AsyncClient) -> None:
    snippet_id = await _create(async_client, title="x")

    response = await async_client.put(f"/api/v1/snippets/{snippet_id}", json=["title", "y"])

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_update_unknown_snippet_returns_404(async_client: AsyncClient) -> None:
    response = await async_client.put("/api/v1/snippets/missing", json={"title": "x"})

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_delete_returns_204_then_404(async_client: AsyncClient) -> None:
    snippet_id = await _create(async_client, tags=["a"])

    response = await async_client.delete(f"/api/v1/snippets/{snippet_id}")
    assert response.status_code == 204
    assert response.content == b""

    again = await async_client.delete(f"/api/v1/snippets/{snippet_id}")
    assert again.status_code == 404

    fetch = await async_client.get(f"/api/v1/snippets/{snippet_id}")
    assert fetch.status_code == 404

    tags = await async_client.get("/api/v1/tags")
    assert tags.json() == []


@pytest.mark.asyncio
async def test_list_without_filter_returns_empty_list(async_client: AsyncClient) -> None:
    response = await async_client.get("/api/v1/snippets")

    assert response.status_code == 200
    assert response.json() == []


@pytest.mark.asyncio
async def test_list_filters_by_tag_and_query(async_client: AsyncClient) -> None:
    go_id = await _create(async_client, title="Server", tags=["go", "web"])
    fib_id = await _create(async_client, title="Fibonacci", content="def fib(n): ...", tags=["python"])
    await _create(async_client, title="Quicksort", tags=["python"])

    by_tag = await async_client.get("/api/v1/snippets", params={"tag": "go"})
    assert by_tag.status_code == 200
    assert [item["id"] for item in by_tag.json()] == [go_id]

    by_query = await async_client.get("/api/v1/snippets", params={"q": "FIB"})
    assert [item["id"] for item in by_query.json()] == [fib_id]

    union = await async_client.get("/api/v1/snippets", params={"tag": "go", "q": "fib"})
    assert {item["id"] for item in union.json()} == {go_id, fib_id}

    comma = await async_client.get("/api/v1/snippets", params={"tag": "go,rust"})
    assert [item["id"] for item in comma.json()] == [go_id]


@pytest.mark.asyncio
async def test_filtered_list_with_no_matches_returns_404(async_client: AsyncClient) -> None:
    await _create(async_client, title="Quicksort")

    response = await async_client.get("/api/v1/snippets", params={"q": "fib"})

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_search_endpoint_matches_list(async_client: AsyncClient) -> None:
    fib_id = await _create(async_client, description="memoized FIB")

    response = await async_client.get("/api/v1/snippets/search", params={"q": "fib"})

    assert response.status_code == 200
    assert [item["id"] for item in response.json()] == [fib_id]


@pytest.mark.asyncio
async def test_tag_and_favorite_subresources(async_client: AsyncClient) -> None:
    snippet_id = await _create(async_client, tags=["a"])

    added = await async_client.post(f"/api/v1/snippets/{snippet_id}/tags", json={"tag": "b"})
    assert added.status_code == 200
    assert added.json()["tags"] == ["a", "b"]

    removed = await async_client.delete(f"/api/v1/snippets/{snippet_id}/tags/a")
    assert removed.status_code == 200
    assert removed.json()["tags"] == ["b"]

    favorite = await async_client.post(f"/api/v1/snippets/{snippet_id}/favorite")
    assert favorite.status_code == 200
    assert favorite.json()["isFavorite"] is True

    tags = await async_client.get("/api/v1/tags")
    assert tags.json() == ["b"]

    missing = await async_client.post("/api/v1/snippets/missing/favorite")
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_remove_tag_containing_slash(async_client: AsyncClient) -> None:
    snippet_id = await _create(async_client)
    added = await async_client.post(f"/api/v1/snippets/{snippet_id}/tags", json={"tag": "c/c++"})
    assert added.json()["tags"] == ["c/c++"]

    removed = await async_client.delete(f"/api/v1/snippets/{snippet_id}/tags/{quote('c/c++', safe='')}")

    assert removed.status_code == 200
    assert removed.json()["tags"] == []
    assert (await async_client.get("/api/v1/tags")).json() == []


@pytest.mark.asyncio
async def test_tags_endpoint_counts_shared_tags(async_client: AsyncClient) -> None:
    first = await _create(async_client, tags=["shared", "one"])
    await _create(async_client, tags=["shared"])

    await async_client.delete(f"/api/v1/snippets/{first}")

    response = await async_client.get("/api/v1/tags")
    assert response.status_code == 200
    assert response.json() == ["shared"]


@pytest.mark.asyncio
async def test_cors_preflight_is_allowed(async_client: AsyncClient) -> None:
    response = await async_client.options(
        "/api/v1/snippets",
        headers={
            "Origin": "http://localhost:3000",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "Content-Type",
        },
    )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] in {"*", "http://localhost:3000"}


@pytest.mark.asyncio
async def test_unexpected_store_failure_returns_generic_500(monkeypatch, caplog, app: FastAPI) -> None:
    def explode(self, snippet_id: str):
        raise ValueError("secret internal detail")

    monkeypatch.setattr("cstash.snippets.store.SnippetStore.get", explode)

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    with caplog.at_level(logging.INFO, logger="cstash.main"):
        async with AsyncClient(transport=transport, base_url="http://testserver") as client:
            response = await client.get("/api/v1/snippets/anything")

    assert response.status_code == 500
    assert response.json() == {"detail": "an internal server error occurred"}
    assert "secret" not in response.text

    request_records = [record for record in caplog.records if record.getMessage() == "http.request"]
    assert len(request_records) == 1
    assert request_records[0].path == "/api/v1/snippets/anything"
    assert request_records[0].status == 500
