from __future__ import annotations

from .chunker import Chunk, split_text
from .config import config_sha256, load_config, resolve_runtime_secrets
from .config_schema import AppConfig
from .errors import (
    AccountNotFoundError,
    ConfigError,
    MediaReadError,
    PersistenceError,
    TextTooLongError,
)
from .importer import ImportResult, run_import

__all__ = [
    "AccountNotFoundError",
    "AppConfig",
    "Chunk",
    "ConfigError",
    "ImportResult",
    "MediaReadError",
    "PersistenceError",
    "TextTooLongError",
    "config_sha256",
    "load_config",
    "resolve_runtime_secrets",
    "run_import",
    "split_text",
]
