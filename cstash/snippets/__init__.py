"""Snippet records, their store and HTTP routes."""

from cstash.snippets.routes import get_snippet_store, router
from cstash.snippets.store import SnippetNotFoundError, SnippetStore, StoreError

__all__ = ["SnippetNotFoundError", "SnippetStore", "StoreError", "get_snippet_store", "router"]
