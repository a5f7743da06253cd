"""
Data model for Cliptrail.

Pydantic models shared by the history store, the rule engine and persistence.
"""

import threading
import time
from datetime import datetime, timedelta, timezone
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator


class CaptureType(str, Enum):
    """What a captured string looks like."""

    TEXT = "text"
    LINK = "link"
    CODE = "code"


_id_lock = threading.Lock()
_last_id = 0


def generate_id() -> str:
    """Generate a unique entry ID (Unix timestamp in milliseconds).

    IDs are strictly increasing within a process, so two captures in the same
    millisecond still sort in capture order.
    """
    global _last_id
    with _id_lock:
        candidate = int(time.time() * 1000)
        if candidate <= _last_id:
            candidate = _last_id + 1
        _last_id = candidate
    return str(candidate)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CaptureEntry(BaseModel):
    """One retained clipboard capture."""

    id: str = Field(default_factory=generate_id, description="Unique entry ID")
    text: str = Field(description="Raw captured text, untrimmed")
    pinned: bool = Field(default=False, description="Exempt from capacity eviction")
    timestamp: datetime = Field(default_factory=utcnow, description="Capture instant (UTC)")
    source_app: str | None = Field(default=None, description="Foreground application")
    window_title: str | None = Field(default=None, description="Foreground window title")
    source_url: str | None = Field(default=None, description="URL the text came from")
    capture_type: CaptureType = Field(default=CaptureType.TEXT)
    tags: list[str] = Field(default_factory=list)
    content_hash: str | None = Field(default=None, description="Hash of normalized text")

    @field_validator("timestamp")
    @classmethod
    def _ensure_aware(cls, value: datetime) -> datetime:
        # Legacy records may carry naive timestamps; treat them as UTC
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @field_validator("tags")
    @classmethod
    def _unique_tags(cls, value: list[str]) -> list[str]:
        return list(dict.fromkeys(tag for tag in value if tag))

    @property
    def identity(self) -> str:
        """Dedup key: the content hash, or the raw text for untyped entries."""
        return self.content_hash if self.content_hash is not None else self.text


class Rule(BaseModel):
    """User-defined pattern rule."""

    pattern: str = Field(description="Regular expression")
    field: str = Field(default="text", description="One of: text, url, app, type")
    action: str = Field(default="tag", description="One of: tag, ignore, merge")
    tag: str | None = Field(default=None, description="Tag to add for action=tag")

    @field_validator("field")
    @classmethod
    def _check_field(cls, value: str) -> str:
        if value not in ("text", "url", "app", "type"):
            raise ValueError(f"Invalid rule field: {value}")
        return value

    @field_validator("action")
    @classmethod
    def _check_action(cls, value: str) -> str:
        if value not in ("tag", "ignore", "merge"):
            raise ValueError(f"Invalid rule action: {value}")
        return value

    @model_validator(mode="after")
    def _tag_required_for_tag_action(self) -> "Rule":
        if self.action == "tag" and not self.tag:
            raise ValueError("Rule with action 'tag' requires a tag")
        if self.action != "tag" and self.tag:
            raise ValueError(f"Rule with action '{self.action}' must not set a tag")
        return self


class HistoryConfig(BaseModel):
    """Tunable history behaviour."""

    limit: int = Field(default=100, gt=0, description="Max retained non-pinned entries")
    min_text_length: int = Field(default=3, ge=0)
    dedup_window: timedelta = Field(default=timedelta(minutes=5))
    persistence_enabled: bool = True
    monitoring_enabled: bool = True

    @field_validator("dedup_window")
    @classmethod
    def _non_negative_window(cls, value: timedelta) -> timedelta:
        if value < timedelta(0):
            raise ValueError("Dedup window cannot be negative")
        return value


class ImageData(BaseModel):
    """A bitmap read from the clipboard (RGBA pixel bytes)."""

    width: int = Field(gt=0)
    height: int = Field(gt=0)
    pixel_bytes: bytes
