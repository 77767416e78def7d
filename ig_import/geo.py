from __future__ import annotations

from typing import Any, Mapping

from .post import GeoLocation, PhotoLocation, VideoLocation


def _coerce_coord(value: Any) -> float | int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _coords(block: Any) -> tuple[float | int, float | int] | None:
    if not isinstance(block, Mapping):
        return None
    lat = _coerce_coord(block.get("latitude"))
    lon = _coerce_coord(block.get("longitude"))
    if lat is None or lon is None:
        return None
    return lat, lon


def resolve_geo(media_metadata: Mapping[str, Any] | None) -> GeoLocation | None:
    """
    Pick coordinates out of an export `media_metadata` block.

    Photo metadata takes precedence over video metadata. A block missing either
    coordinate does not count as a location.
    """
    if not isinstance(media_metadata, Mapping):
        return None

    photo = _coords(media_metadata.get("photo_metadata"))
    if photo is not None:
        return PhotoLocation(latitude=photo[0], longitude=photo[1])

    video = _coords(media_metadata.get("video_metadata"))
    if video is not None:
        return VideoLocation(latitude=video[0], longitude=video[1])

    return None


def map_link(location: GeoLocation, *, base_url: str = "https://osm.org") -> str:
    # Marker at lat/lon on the map service.
    base = (base_url or "").rstrip("/")
    return f"{base}/?mlat={location.latitude}&mlon={location.longitude}"


def annotate(text: str, location: GeoLocation | None, *, base_url: str = "https://osm.org") -> str:
    if location is None:
        return text
    return f"{text} {map_link(location, base_url=base_url)}"
