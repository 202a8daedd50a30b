"""Reference-counted tag index shared by all snippets in a store."""

from __future__ import annotations

from typing import Iterable

from cstash.lib.logger import get_logger
from cstash.lib.rwlock import ReadWriteLock

logger = get_logger(__name__)


class TagIndex:
    """Track how many live snippets carry each tag.

    Every public method takes the index's own lock and the index never calls
    out to its owner, so callers may invoke it while holding their own lock.
    A tag whose count drops to zero is removed outright.
    """

    def __init__(self) -> None:
        self._counts: dict[str, int] = {}
        self._lock = ReadWriteLock()

    def increment(self, *tags: str) -> None:
        with self._lock.write():
            self._increment(tags)

    def decrement(self, *tags: str) -> None:
        with self._lock.write():
            self._decrement(tags)

    def reconcile(self, old_tags: Iterable[str], new_tags: Iterable[str]) -> None:
        """Apply the set difference between a snippet's old and new tags."""

        old_set = set(old_tags)
        new_set = set(new_tags)
        removed = old_set - new_set
        added = new_set - old_set
        if not removed and not added:
            return
        with self._lock.write():
            self._decrement(removed)
            self._increment(added)

    def list(self) -> list[str]:
        with self._lock.read():
            return [tag for tag, count in self._counts.items() if count >= 1]

    def count(self, tag: str) -> int:
        with self._lock.read():
            return self._counts.get(tag, 0)

    def snapshot(self) -> dict[str, int]:
        with self._lock.read():
            return dict(self._counts)

    def clear(self) -> None:
        with self._lock.write():
            self._counts.clear()

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._counts)

    def _increment(self, tags: Iterable[str]) -> None:
        for tag in tags:
            count = self._counts.get(tag, 0) + 1
            self._counts[tag] = count
            if count == 1:
                logger.debug("tag.saved", extra={"tag": tag})

    def _decrement(self, tags: Iterable[str]) -> None:
        for tag in tags:
            count = self._counts.get(tag, 0)
            if count <= 0:
                continue
            if count == 1:
                del self._counts[tag]
                logger.debug("tag.released", extra={"tag": tag})
            else:
                self._counts[tag] = count - 1
