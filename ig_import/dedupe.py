from __future__ import annotations

from typing import Protocol


class _StatusLookup(Protocol):
    def find_status_by_text(self, account_id: int, text: str) -> int | None: ...


class DuplicateGuard:
    """
    Detects export items that were already imported for an account.

    The check matches the exact text of the first chunk, so two different posts whose
    first chunks are identical look like one post and the later one is skipped.
    """

    def __init__(self, store: _StatusLookup) -> None:
        self._store = store

    def existing_id(self, account_id: int, first_chunk_text: str) -> int | None:
        return self._store.find_status_by_text(account_id, first_chunk_text)

    def exists(self, account_id: int, first_chunk_text: str) -> bool:
        return self.existing_id(account_id, first_chunk_text) is not None
