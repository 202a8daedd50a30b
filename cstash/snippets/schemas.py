"""Pydantic schemas for snippet records and request payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from cstash.lib.logger import get_logger

logger = get_logger(__name__)

_STRING_FIELDS = ("title", "description", "content", "language")

MAX_TAG_LENGTH = 64


def unique_tags(tags: list[str]) -> list[str]:
    """Drop repeated tags, keeping the first occurrence of each."""

    return list(dict.fromkeys(tags))


def is_valid_tag(tag: Any) -> bool:
    """A tag is a non-blank string of at most ``MAX_TAG_LENGTH`` characters."""

    return isinstance(tag, str) and bool(tag.strip()) and len(tag) <= MAX_TAG_LENGTH


def _check_tag(tag: str) -> str:
    if not is_valid_tag(tag):
        raise ValueError(f"tags must be non-blank and at most {MAX_TAG_LENGTH} characters")
    return tag


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Snippet(_CamelModel):
    """A stored snippet with its metadata."""

    id: str
    title: str = ""
    description: str = ""
    content: str = ""
    language: str = ""
    tags: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
    is_favorite: bool = False

    def json_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class SnippetCreateRequest(_CamelModel):
    """Input payload for creating a snippet.

    ``id`` and the timestamps are accepted so clients can post a full record
    back, but the server always assigns its own values.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    id: str | None = None
    title: str = ""
    description: str = ""
    content: str = ""
    language: str = ""
    tags: list[str] = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None
    is_favorite: bool = False

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, value: list[str]) -> list[str]:
        for tag in value:
            _check_tag(tag)
        if len(set(value)) != len(value):
            raise ValueError("tags must not contain duplicates")
        return value

    def to_snippet(self, snippet_id: str, now: datetime) -> Snippet:
        return Snippet(
            id=snippet_id,
            title=self.title,
            description=self.description,
            content=self.content,
            language=self.language,
            tags=list(self.tags),
            created_at=now,
            updated_at=now,
            is_favorite=self.is_favorite,
        )


class SnippetCreatedResponse(BaseModel):
    id: str


class TagRequest(BaseModel):
    """Payload for attaching a single tag to a snippet."""

    tag: str

    @field_validator("tag")
    @classmethod
    def validate_tag(cls, value: str) -> str:
        return _check_tag(value)


class SnippetPatch(_CamelModel):
    """Partial update for a snippet.

    Only fields present in ``model_fields_set`` are applied. Build instances
    with :meth:`from_payload` to tolerate loosely typed client input.
    """

    title: str | None = None
    description: str | None = None
    content: str | None = None
    language: str | None = None
    tags: list[str] | None = None
    is_favorite: bool | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "SnippetPatch":
        """Keep recognized, correctly typed fields and silently drop the rest."""

        accepted: dict[str, Any] = {}
        ignored: list[str] = []
        dropped_tags = 0

        for name in _STRING_FIELDS:
            if name not in payload:
                continue
            value = payload[name]
            if isinstance(value, str):
                accepted[name] = value
            else:
                ignored.append(name)

        if "tags" in payload:
            raw_tags = payload["tags"]
            if isinstance(raw_tags, list):
                kept = [tag for tag in raw_tags if is_valid_tag(tag)]
                dropped_tags = len(raw_tags) - len(kept)
                accepted["tags"] = unique_tags(kept)
            else:
                ignored.append("tags")

        if "isFavorite" in payload:
            # bool is checked strictly: 0/1 and "true" are not flags
            if isinstance(payload["isFavorite"], bool):
                accepted["is_favorite"] = payload["isFavorite"]
            else:
                ignored.append("isFavorite")

        unknown = sorted(set(payload) - set(_STRING_FIELDS) - {"tags", "isFavorite"})
        if ignored or unknown or dropped_tags:
            logger.debug(
                "snippet.patch.ignored_fields",
                extra={"wrong_type": ignored, "unknown": unknown, "dropped_tags": dropped_tags},
            )

        return cls.model_validate(accepted)
