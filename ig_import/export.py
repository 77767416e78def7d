from __future__ import annotations

import json
import mimetypes
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ExportError
from .geo import resolve_geo
from .post import MediaRef, SourceItem

DEFAULT_MIME_TYPE = "image/jpeg"


class ExportMediaMetadata(BaseModel):
    """Per-media metadata block; only the geo-bearing parts are kept."""

    model_config = ConfigDict(extra="ignore")

    photo_metadata: dict[str, Any] | None = None
    video_metadata: dict[str, Any] | None = None

    def as_mapping(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class ExportMediaItem(BaseModel):
    """One media entry of a post in `posts_1.json`."""

    model_config = ConfigDict(extra="ignore")

    uri: str
    creation_timestamp: int
    title: str = ""
    media_metadata: ExportMediaMetadata | None = None

    @field_validator("uri")
    @classmethod
    def _uri_must_be_set(cls, v: str) -> str:
        uri = (v or "").strip()
        if not uri:
            raise ValueError("must be non-empty")
        return uri

    @field_validator("title", mode="before")
    @classmethod
    def _title_none_is_empty(cls, v: Any) -> Any:
        return "" if v is None else v


class ExportEntry(BaseModel):
    model_config = ConfigDict(extra="ignore")

    media: list[ExportMediaItem] = Field(min_length=1)
    title: str = ""

    @field_validator("title", mode="before")
    @classmethod
    def _title_none_is_empty(cls, v: Any) -> Any:
        return "" if v is None else v


def guess_mime_type(uri: str, *, default: str = DEFAULT_MIME_TYPE) -> str:
    guessed, _ = mimetypes.guess_type(uri)
    return guessed or default


def import_root_for(json_path: str | Path) -> Path:
    """
    Directory media URIs are relative to.

    Exports keep the posts JSON in a subdirectory (e.g. `content/posts_1.json`) while
    URIs start at the export root (`media/posts/...`).
    """
    return Path(json_path).resolve().parent.parent


def source_item_from_entry(entry: ExportEntry, *, default_mime_type: str = DEFAULT_MIME_TYPE) -> SourceItem:
    media = tuple(
        MediaRef(
            uri=m.uri,
            creation_timestamp=m.creation_timestamp,
            title=m.title,
            mime_type=guess_mime_type(m.uri, default=default_mime_type),
        )
        for m in entry.media
    )
    first = entry.media[0]
    return SourceItem(
        creation_timestamp=first.creation_timestamp,
        media=media,
        title=entry.title,
        geo=resolve_geo(first.media_metadata.as_mapping() if first.media_metadata is not None else None),
    )


def parse_source_items(data: Any, *, default_mime_type: str = DEFAULT_MIME_TYPE) -> list[SourceItem]:
    if not isinstance(data, list):
        raise ExportError("Export must be a JSON array of posts")

    items: list[SourceItem] = []
    for i, raw in enumerate(data):
        try:
            entry = ExportEntry.model_validate(raw)
        except ValidationError as e:
            raise ExportError(f"Invalid export entry at index {i}: {e}") from e
        items.append(source_item_from_entry(entry, default_mime_type=default_mime_type))
    return items


def load_source_items(path: str | Path, *, default_mime_type: str = DEFAULT_MIME_TYPE) -> list[SourceItem]:
    """
    Read an Instagram posts export and return its items in file order.
    """
    p = Path(path)

    try:
        raw_text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise ExportError(f"Failed to read export file: {p}: {e}") from e

    try:
        data = json.loads(raw_text)
    except json.JSONDecodeError as e:
        raise ExportError(f"Failed to parse JSON in {p}: {e}") from e

    return parse_source_items(data, default_mime_type=default_mime_type)
