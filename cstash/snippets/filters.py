"""Predicates used to filter snippet listings."""

from __future__ import annotations

from typing import Iterable

from cstash.snippets.schemas import Snippet


def normalize_query(query: str | None) -> str:
    if not query:
        return ""
    return query.strip().lower()


def normalize_tags(tags: Iterable[str] | None) -> list[str]:
    """Return non-blank requested tags with duplicates removed, compared exactly."""

    if not tags:
        return []
    return list(dict.fromkeys(tag for tag in tags if tag.strip()))


def has_any_tag(snippet: Snippet, tags: Iterable[str]) -> bool:
    return any(tag in snippet.tags for tag in tags)


def matches_query(snippet: Snippet, query: str) -> bool:
    """Report whether a lower-cased query occurs in any searchable text field."""

    if not query:
        return False
    return any(
        query in field.lower()
        for field in (snippet.title, snippet.content, snippet.description, snippet.language)
    )
