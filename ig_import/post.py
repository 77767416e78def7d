from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal, Sequence, Union


@dataclass(frozen=True)
class PhotoLocation:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class VideoLocation:
    latitude: float
    longitude: float


GeoLocation = Union[PhotoLocation, VideoLocation]


@dataclass(frozen=True)
class MediaRef:
    """One media file of an exported post, relative to the export root."""

    uri: str
    creation_timestamp: int
    title: str = ""
    mime_type: str = "image/jpeg"


@dataclass(frozen=True)
class SourceItem:
    """A single exported post, before chunking."""

    creation_timestamp: int
    media: Sequence[MediaRef]
    title: str = ""
    geo: GeoLocation | None = None


@dataclass(frozen=True)
class PostRequest:
    text: str
    created_at: datetime
    media_ids: Sequence[int] = ()
    in_reply_to_id: int | None = None
    language: str | None = None
    visibility: str = "public"
    sensitive: bool = False
    spoiler_text: str = ""


ItemStatus = Literal["skipped", "persisted"]


@dataclass(frozen=True)
class ItemOutcome:
    status: ItemStatus
    created: int
    status_ids: Sequence[int] = field(default_factory=tuple)
