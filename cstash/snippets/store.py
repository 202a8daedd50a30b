"""Thread-safe in-memory snippet store with tag reference counting."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Iterable

from cstash.lib.logger import get_logger
from cstash.lib.rwlock import ReadWriteLock
from cstash.snippets.filters import has_any_tag, matches_query, normalize_query, normalize_tags
from cstash.snippets.schemas import Snippet, SnippetPatch, unique_tags
from cstash.tags.index import TagIndex

logger = get_logger(__name__)


class StoreError(RuntimeError):
    """Base class for snippet store failures."""


class SnippetNotFoundError(StoreError):
    """Raised when an operation references a snippet id that is not stored."""

    def __init__(self, snippet_id: str) -> None:
        super().__init__("snippet not found")
        self.snippet_id = snippet_id


def _now() -> datetime:
    return datetime.now(tz=UTC)


class SnippetStore:
    """Own every snippet record and keep the tag index consistent with them.

    The record lock is always taken before the tag index lock. Records handed
    back to callers are copies, so only store methods can change stored state.
    """

    def __init__(self, tag_index: TagIndex | None = None) -> None:
        self._snippets: dict[str, Snippet] = {}
        self._lock = ReadWriteLock()
        self._tags = tag_index if tag_index is not None else TagIndex()
        logger.debug("snippet.store.initialized")

    @property
    def tags(self) -> TagIndex:
        return self._tags

    def create(self, snippet: Snippet) -> Snippet:
        """Insert ``snippet`` under its id; an existing record with that id is replaced."""

        record = snippet.model_copy(deep=True)
        record.tags = unique_tags(record.tags)
        with self._lock.write():
            replaced = self._snippets.get(record.id)
            if replaced is not None:
                self._tags.decrement(*replaced.tags)
            self._tags.increment(*record.tags)
            self._snippets[record.id] = record
        logger.debug(
            "snippet.saved",
            extra={"snippet_id": record.id, "tags": record.tags, "replaced": replaced is not None},
        )
        return record.model_copy(deep=True)

    def get(self, snippet_id: str) -> Snippet:
        with self._lock.read():
            record = self._require(snippet_id)
            return record.model_copy(deep=True)

    def update(self, snippet_id: str, patch: SnippetPatch) -> Snippet:
        """Apply the fields present in ``patch`` and stamp ``updated_at``."""

        fields = patch.model_fields_set
        with self._lock.write():
            record = self._require(snippet_id)
            for name in ("title", "description", "content", "language", "is_favorite"):
                value = getattr(patch, name)
                if name in fields and value is not None:
                    setattr(record, name, value)
            if "tags" in fields and patch.tags is not None:
                new_tags = unique_tags(patch.tags)
                self._tags.reconcile(record.tags, new_tags)
                record.tags = new_tags
            record.updated_at = _now()
            result = record.model_copy(deep=True)
        logger.debug("snippet.updated", extra={"snippet_id": snippet_id, "fields": sorted(fields)})
        return result

    def delete(self, snippet_id: str) -> None:
        with self._lock.write():
            record = self._require(snippet_id)
            self._tags.decrement(*record.tags)
            del self._snippets[snippet_id]
        logger.debug("snippet.deleted", extra={"snippet_id": snippet_id})

    def list(self, tags: Iterable[str] | None = None, query: str | None = None) -> list[Snippet]:
        """Return all snippets, or those matching any tag or the text query."""

        wanted_tags = normalize_tags(tags)
        needle = normalize_query(query)
        with self._lock.read():
            if not wanted_tags and not needle:
                results = [record.model_copy(deep=True) for record in self._snippets.values()]
            else:
                results = [
                    record.model_copy(deep=True)
                    for record in self._snippets.values()
                    if has_any_tag(record, wanted_tags) or matches_query(record, needle)
                ]
        logger.debug(
            "snippets.fetched",
            extra={"count": len(results), "tags": wanted_tags, "query": needle},
        )
        return results

    def list_tags(self) -> list[str]:
        return self._tags.list()

    def add_tag(self, snippet_id: str, tag: str) -> Snippet:
        with self._lock.write():
            record = self._require(snippet_id)
            if tag not in record.tags:
                self._tags.increment(tag)
                record.tags.append(tag)
                record.updated_at = _now()
            return record.model_copy(deep=True)

    def remove_tag(self, snippet_id: str, tag: str) -> Snippet:
        with self._lock.write():
            record = self._require(snippet_id)
            if tag in record.tags:
                self._tags.decrement(tag)
                record.tags.remove(tag)
                record.updated_at = _now()
            return record.model_copy(deep=True)

    def toggle_favorite(self, snippet_id: str) -> Snippet:
        with self._lock.write():
            record = self._require(snippet_id)
            record.is_favorite = not record.is_favorite
            record.updated_at = _now()
            return record.model_copy(deep=True)

    def clear(self) -> None:
        """Drop every record and tag (testing utility)."""

        with self._lock.write():
            self._snippets.clear()
            self._tags.clear()

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._snippets)

    def _require(self, snippet_id: str) -> Snippet:
        record = self._snippets.get(snippet_id)
        if record is None:
            logger.debug("snippet.not_found", extra={"snippet_id": snippet_id})
            raise SnippetNotFoundError(snippet_id)
        return record
