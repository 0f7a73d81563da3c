"""Data models for the memory creation request."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from omi_memory.errors import InvalidRequest

# Length assumed for a memory when only one end of its time window is known.
DEFAULT_DURATION = timedelta(minutes=5)
DEFAULT_LANGUAGE = "en"


class TextSource(StrEnum):
    """Where the memory's text came from."""

    AUDIO_TRANSCRIPT = "audio_transcript"
    EMAIL = "email"
    POST = "post"
    MESSAGE = "message"
    OTHER_TEXT = "other_text"


class Geolocation(BaseModel):
    """Where the memory was captured."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class MemoryRequest(BaseModel):
    """A unit of text content to ingest into a user's account.

    Timestamps are timezone-aware; naive values are taken to be UTC.
    ``text_source_spec`` is a free-form qualifier (e.g. ``"whatsapp"``) and
    is not checked for consistency with ``text_source``.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    text: str
    started_at: datetime | None = None
    finished_at: datetime | None = None
    language: str = Field(default=DEFAULT_LANGUAGE, pattern=r"^[A-Za-z]{2}$")
    text_source: TextSource = TextSource.AUDIO_TRANSCRIPT
    text_source_spec: str | None = None
    geolocation: Geolocation | None = None

    @field_validator("text")
    @classmethod
    def text_not_blank(cls, value: str) -> str:
        if not value.strip():
            msg = "text must not be empty"
            raise ValueError(msg)
        return value

    @field_validator("started_at", "finished_at")
    @classmethod
    def assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    @field_validator("language")
    @classmethod
    def lowercase_language(cls, value: str) -> str:
        return value.lower()

    @model_validator(mode="after")
    def window_is_ordered(self) -> MemoryRequest:
        if (
            self.started_at is not None
            and self.finished_at is not None
            and self.finished_at < self.started_at
        ):
            msg = "finished_at must not be earlier than started_at"
            raise ValueError(msg)
        return self

    # -- Construction ----------------------------------------------------------

    @classmethod
    def parse(cls, data: MemoryRequest | Mapping[str, Any]) -> MemoryRequest:
        """Validate *data* into a request, raising ``InvalidRequest`` on failure."""
        if isinstance(data, cls):
            return data
        if not isinstance(data, Mapping):
            msg = f"expected a mapping or MemoryRequest, got {type(data).__name__}"
            raise InvalidRequest(msg)
        try:
            return cls.model_validate(dict(data))
        except ValidationError as exc:
            raise InvalidRequest(describe_validation_error(exc)) from exc

    # -- Defaults & serialization ----------------------------------------------

    def with_defaults(self, now: datetime | None = None) -> MemoryRequest:
        """Return a copy with both ends of the time window filled in."""
        if self.started_at is not None and self.finished_at is not None:
            return self

        if self.started_at is None and self.finished_at is None:
            started = now or datetime.now(UTC)
            if started.tzinfo is None:
                started = started.replace(tzinfo=UTC)
            finished = started + DEFAULT_DURATION
        elif self.finished_at is None:
            started = self.started_at
            finished = started + DEFAULT_DURATION
        else:
            finished = self.finished_at
            started = finished - DEFAULT_DURATION

        return self.model_copy(update={"started_at": started, "finished_at": finished})

    def to_payload(self, now: datetime | None = None) -> dict[str, Any]:
        """Serialize to the JSON body sent on the wire, defaults resolved."""
        return self.with_defaults(now).model_dump(mode="json", exclude_none=True)


def describe_validation_error(exc: ValidationError) -> str:
    """Flatten a pydantic ValidationError into a single readable line."""
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "request"
        parts.append(f"{loc}: {err.get('msg', 'invalid value')}")
    return "; ".join(parts)
