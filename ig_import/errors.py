from __future__ import annotations


class ConfigError(RuntimeError):
    """Raised when configuration is missing or invalid."""


class ExportError(RuntimeError):
    """Raised when the Instagram export JSON cannot be read or parsed."""


class AccountNotFoundError(RuntimeError):
    """Raised when the target account does not exist in the store."""


class TextTooLongError(RuntimeError):
    """Raised when splitting a caption would exceed the thread length cap."""

    def __init__(self, message: str, *, text_length: int, chunk_count: int) -> None:
        super().__init__(message)
        self.text_length = text_length
        self.chunk_count = chunk_count


class MediaReadError(RuntimeError):
    """Raised when a media file referenced by the export cannot be read."""


class StorageError(RuntimeError):
    """Raised when opening or migrating the SQLite database fails."""


class PersistenceError(StorageError):
    """Raised when creating or deleting statuses or media attachments fails."""


class LanguageDetectionError(RuntimeError):
    """Raised when the language detector call or its structured parse fails."""
