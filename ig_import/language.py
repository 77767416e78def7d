from __future__ import annotations

from typing import Any, Protocol

from openai import OpenAI
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .config_schema import LanguageConfig
from .errors import LanguageDetectionError
from .storage import Account


class LanguageDetector(Protocol):
    def detect(self, text: str, account: Account) -> str | None: ...


class _ResponsesAPI(Protocol):
    def create(self, **kwargs: Any) -> Any: ...


class _OpenAIClient(Protocol):
    responses: _ResponsesAPI


class LanguageGuess(BaseModel):
    model_config = ConfigDict(extra="forbid")

    language: str | None
    confidence: float = Field(ge=0.0, le=1.0)

    @field_validator("language")
    @classmethod
    def _lowercase_code(cls, v: str | None) -> str | None:
        if v is None:
            return None
        code = v.strip().lower()
        if not code:
            return None
        if len(code) != 2 or not code.isalpha():
            raise ValueError("language must be an ISO 639-1 code")
        return code


LANGUAGE_SCHEMA_NAME = "status_language"

LANGUAGE_JSON_SCHEMA: dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "required": ["language", "confidence"],
    "properties": {
        "language": {"type": ["string", "null"]},
        "confidence": {"type": "number"},
    },
}

_SYSTEM_INSTRUCTIONS = """\
You identify the main language of a social media post caption.

Return the ISO 639-1 code (two lowercase letters) of the language most of the text is written in.
Ignore hashtags, mentions, URLs and emoji when deciding.
Return null for language when the text has no natural-language content.

confidence is 0–1.
"""

_TEXT_FORMAT: dict[str, Any] = {
    "format": {
        "type": "json_schema",
        "name": LANGUAGE_SCHEMA_NAME,
        "strict": True,
        "schema": LANGUAGE_JSON_SCHEMA,
    }
}


def _extract_output_text(response: Any) -> str:
    direct = (getattr(response, "output_text", None) or "").strip()
    if direct:
        return direct

    output = getattr(response, "output", None) or []
    for item in output:
        content = getattr(item, "content", None) or []
        for part in content:
            text = getattr(part, "text", None)
            if isinstance(text, str) and text.strip():
                return text.strip()

    raise LanguageDetectionError("OpenAI response did not include output text")


class StaticLanguageDetector:
    """Always answers with the same language (or none)."""

    def __init__(self, language: str | None = None) -> None:
        self._language = (language or "").strip().lower() or None

    def detect(self, text: str, account: Account) -> str | None:
        return self._language


class OpenAILanguageDetector:
    """
    Detects the caption language with one Structured Outputs call per text.

    Answers below `min_confidence` count as undetected.
    """

    def __init__(
        self,
        api_key: str,
        *,
        language_cfg: LanguageConfig,
        client: _OpenAIClient | None = None,
        min_confidence: float = 0.5,
    ) -> None:
        key = (api_key or "").strip()
        if not key:
            raise ValueError("api_key must be a non-empty string")

        self._cfg = language_cfg
        self._client: _OpenAIClient = client or OpenAI(api_key=key)
        self._min_confidence = float(min_confidence)

    def guess(self, text: str) -> LanguageGuess:
        model = (self._cfg.model or "").strip()
        if not model:
            raise ValueError("language_cfg.model must be non-empty")

        try:
            response = self._client.responses.create(
                model=model,
                instructions=_SYSTEM_INSTRUCTIONS,
                input=[{"role": "user", "content": text}],
                text=_TEXT_FORMAT,
                max_output_tokens=self._cfg.max_output_tokens,
            )
        except Exception as e:
            raise LanguageDetectionError(f"OpenAI call failed ({model}): {e}") from e

        raw = _extract_output_text(response)
        try:
            return LanguageGuess.model_validate_json(raw)
        except Exception as e:
            raise LanguageDetectionError(f"Failed to parse structured output ({model}): {e}") from e

    def detect(self, text: str, account: Account) -> str | None:
        if not (text or "").strip():
            return None

        guess = self.guess(text)
        if guess.confidence < self._min_confidence:
            return None
        return guess.language


def build_language_detector(cfg: LanguageConfig, *, api_key: str | None = None) -> LanguageDetector:
    if cfg.detector == "openai":
        return OpenAILanguageDetector(api_key or "", language_cfg=cfg)
    return StaticLanguageDetector(cfg.fallback)
