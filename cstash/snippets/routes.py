"""API routes for snippet CRUD, search and tag attachment."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, NoReturn

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse

from cstash.lib.ids import new_secure_id
from cstash.lib.logger import get_logger
from cstash.lib.metrics import METRICS
from cstash.lib.rate_limiter import enforce_rate_limit
from cstash.snippets.schemas import (
    Snippet,
    SnippetCreatedResponse,
    SnippetCreateRequest,
    SnippetPatch,
    TagRequest,
)
from cstash.snippets.store import SnippetNotFoundError, SnippetStore

router = APIRouter()
logger = get_logger(__name__)


def get_snippet_store(request: Request) -> SnippetStore:
    store: SnippetStore | None = getattr(request.app.state, "snippet_store", None)
    if store is None:
        raise RuntimeError("Snippet store not configured on application state")
    return store


def _not_found(exc: SnippetNotFoundError) -> NoReturn:
    METRICS.increment("snippets.not_found")
    raise HTTPException(status_code=404, detail=str(exc)) from exc


def _split_tags(raw: list[str] | None) -> list[str]:
    """Accept both ``?tag=a&tag=b`` and ``?tag=a,b``."""

    if not raw:
        return []
    return [part for value in raw for part in value.split(",") if part.strip()]


def _snippet_list_response(snippets: list[Snippet], *, filtered: bool) -> JSONResponse:
    if filtered and not snippets:
        raise HTTPException(status_code=404, detail="no snippets matched")
    return JSONResponse([snippet.json_payload() for snippet in snippets])


@router.post("/snippets", status_code=201)
async def create_snippet(
    request: Request,
    payload: SnippetCreateRequest,
    store: SnippetStore = Depends(get_snippet_store),
) -> JSONResponse:
    """Store a new snippet and return its server-assigned id."""

    enforce_rate_limit(request, "snippets.create")
    snippet = payload.to_snippet(new_secure_id(), datetime.now(tz=UTC))
    store.create(snippet)

    METRICS.increment("snippets.create")
    logger.info("snippet_created", extra={"snippet_id": snippet.id, "tags": snippet.tags})
    body = SnippetCreatedResponse(id=snippet.id).model_dump()
    return JSONResponse(body, status_code=201)


@router.get("/snippets")
async def list_snippets(
    tag: list[str] | None = Query(default=None),
    q: str | None = Query(default=None),
    store: SnippetStore = Depends(get_snippet_store),
) -> JSONResponse:
    """List snippets, optionally narrowed by tags (any match) or a text query."""

    tags = _split_tags(tag)
    query = (q or "").strip()
    snippets = store.list(tags, query)
    return _snippet_list_response(snippets, filtered=bool(tags or query))


@router.get("/snippets/search")
async def search_snippets(
    q: str | None = Query(default=None),
    tag: list[str] | None = Query(default=None),
    store: SnippetStore = Depends(get_snippet_store),
) -> JSONResponse:
    tags = _split_tags(tag)
    query = (q or "").strip()
    snippets = store.list(tags, query)
    return _snippet_list_response(snippets, filtered=bool(tags or query))


@router.get("/snippets/{snippet_id}")
async def get_snippet(snippet_id: str, store: SnippetStore = Depends(get_snippet_store)) -> JSONResponse:
    try:
        snippet = store.get(snippet_id)
    except SnippetNotFoundError as exc:
        _not_found(exc)
    return JSONResponse(snippet.json_payload())


@router.put("/snippets/{snippet_id}")
async def update_snippet(
    request: Request,
    snippet_id: str,
    payload: dict[str, Any] = Body(...),
    store: SnippetStore = Depends(get_snippet_store),
) -> JSONResponse:
    """Apply a partial update; unknown or wrongly typed fields are ignored."""

    enforce_rate_limit(request, "snippets.update")
    patch = SnippetPatch.from_payload(payload)
    try:
        snippet = store.update(snippet_id, patch)
    except SnippetNotFoundError as exc:
        _not_found(exc)

    METRICS.increment("snippets.update")
    logger.info(
        "snippet_updated",
        extra={"snippet_id": snippet_id, "fields": sorted(patch.model_fields_set)},
    )
    return JSONResponse(snippet.json_payload())


@router.delete("/snippets/{snippet_id}", status_code=204)
async def delete_snippet(
    request: Request,
    snippet_id: str,
    store: SnippetStore = Depends(get_snippet_store),
) -> Response:
    enforce_rate_limit(request, "snippets.delete")
    try:
        store.delete(snippet_id)
    except SnippetNotFoundError as exc:
        _not_found(exc)

    METRICS.increment("snippets.delete")
    logger.info("snippet_deleted", extra={"snippet_id": snippet_id})
    return Response(status_code=204)


@router.post("/snippets/{snippet_id}/tags")
async def add_snippet_tag(
    request: Request,
    snippet_id: str,
    payload: TagRequest,
    store: SnippetStore = Depends(get_snippet_store),
) -> JSONResponse:
    enforce_rate_limit(request, "snippets.update")
    try:
        snippet = store.add_tag(snippet_id, payload.tag)
    except SnippetNotFoundError as exc:
        _not_found(exc)
    return JSONResponse(snippet.json_payload())


@router.delete("/snippets/{snippet_id}/tags/{tag:path}")
async def remove_snippet_tag(
    request: Request,
    snippet_id: str,
    tag: str,
    store: SnippetStore = Depends(get_snippet_store),
) -> JSONResponse:
    enforce_rate_limit(request, "snippets.update")
    try:
        snippet = store.remove_tag(snippet_id, tag)
    except SnippetNotFoundError as exc:
        _not_found(exc)
    return JSONResponse(snippet.json_payload())


@router.post("/snippets/{snippet_id}/favorite")
async def toggle_snippet_favorite(
    request: Request,
    snippet_id: str,
    store: SnippetStore = Depends(get_snippet_store),
) -> JSONResponse:
    enforce_rate_limit(request, "snippets.update")
    try:
        snippet = store.toggle_favorite(snippet_id)
    except SnippetNotFoundError as exc:
        _not_found(exc)
    return JSONResponse(snippet.json_payload())
