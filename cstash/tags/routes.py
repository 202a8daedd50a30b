"""API routes for the tag listing."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from cstash.snippets.routes import get_snippet_store
from cstash.snippets.store import SnippetStore

router = APIRouter()


@router.get("/tags")
async def list_tags(store: SnippetStore = Depends(get_snippet_store)) -> JSONResponse:
    """Return every tag currently attached to at least one snippet."""

    return JSONResponse(sorted(store.list_tags()))
