from __future__ import annotations

import re
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

_ENV_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_LANGUAGE_RE = re.compile(r"^[a-z]{2,3}$")


def _validate_env_var_name(value: str) -> str:
    name = (value or "").strip()
    if not _ENV_NAME_RE.fullmatch(name):
        raise ValueError("must be a valid environment variable name")
    return name


def _validate_language_code(value: str | None) -> str | None:
    if value is None:
        return None
    code = value.strip().lower()
    if not code:
        return None
    if not _LANGUAGE_RE.fullmatch(code):
        raise ValueError("must be an ISO 639 language code")
    return code


PositiveInt = Annotated[int, Field(ge=1)]


class StatusesConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    max_chars: PositiveInt = 500
    marker_reserve: PositiveInt = 9
    max_chunks: int = Field(99, ge=1, le=99)
    visibility: Literal["public", "unlisted", "private", "direct"] = "public"

    @model_validator(mode="after")
    def _marker_must_fit(self) -> "StatusesConfig":
        if self.marker_reserve >= self.max_chars:
            raise ValueError("marker_reserve must be < max_chars")
        widest = len(f" ({self.max_chunks}/{self.max_chunks})")
        if self.marker_reserve < widest:
            raise ValueError(f"marker_reserve must be >= {widest} for max_chunks={self.max_chunks}")
        return self


class LocationsConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    map_base_url: str = "https://osm.org"

    @field_validator("map_base_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        url = (v or "").strip().rstrip("/")
        if not url:
            raise ValueError("must be non-empty")
        return url


class MediaConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    default_mime_type: str = "image/jpeg"


class LanguageConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    detector: Literal["none", "openai"] = "none"
    fallback: str | None = None
    api_key_env: str = "OPENAI_API_KEY"
    model: str = "gpt-5-nano"
    max_output_tokens: PositiveInt = 200

    @field_validator("api_key_env")
    @classmethod
    def _api_key_env_must_be_valid(cls, v: str) -> str:
        return _validate_env_var_name(v)

    @field_validator("fallback")
    @classmethod
    def _fallback_must_be_code(cls, v: str | None) -> str | None:
        return _validate_language_code(v)


class RetentionConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    batch_size: PositiveInt = 50


class StorageConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    db_path: str = "ig_import.sqlite"


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    statuses: StatusesConfig = Field(default_factory=StatusesConfig)
    locations: LocationsConfig = Field(default_factory=LocationsConfig)
    media: MediaConfig = Field(default_factory=MediaConfig)
    language: LanguageConfig = Field(default_factory=LanguageConfig)
    retention: RetentionConfig = Field(default_factory=RetentionConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
