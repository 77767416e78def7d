from __future__ import annotations

import hashlib
import sqlite3
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Sequence

from .errors import AccountNotFoundError, PersistenceError, StorageError
from .post import PostRequest
from .storage_schema import initialize_sqlite


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def format_timestamp(value: datetime) -> str:
    """
    Fixed-width UTC ISO timestamp so that stored values sort lexically by time.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def parse_timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value)


def _as_path(value: str | Path) -> str:
    return str(value)


@dataclass(frozen=True)
class Account:
    id: int
    username: str
    default_language: str | None = None


@dataclass(frozen=True)
class StatusRecord:
    id: int
    account_id: int
    text: str
    created_at: datetime
    in_reply_to_id: int | None
    visibility: str
    sensitive: bool
    spoiler_text: str
    language: str | None


@dataclass(frozen=True)
class MediaRecord:
    id: int
    account_id: int
    status_id: int | None
    uri: str
    content_type: str
    file_size: int
    sha256: str


@dataclass(frozen=True)
class ImportRunRecord:
    run_id: str
    account_id: int
    source_path: str
    config_hash: str
    started_at: str
    ended_at: str | None
    items: int
    created: int
    skipped: int
    failed: int


def _status_from_row(row: sqlite3.Row) -> StatusRecord:
    return StatusRecord(
        id=int(row["id"]),
        account_id=int(row["account_id"]),
        text=str(row["text"]),
        created_at=parse_timestamp(str(row["created_at"])),
        in_reply_to_id=int(row["in_reply_to_id"]) if row["in_reply_to_id"] is not None else None,
        visibility=str(row["visibility"]),
        sensitive=bool(row["sensitive"]),
        spoiler_text=str(row["spoiler_text"]),
        language=str(row["language"]) if row["language"] is not None else None,
    )


class StoreTransaction:
    """
    Handle for the writes of one unit of work.

    Only usable inside `SQLiteStore.transaction()`; everything written through it is
    committed or rolled back together.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._open = True

    def close(self) -> None:
        self._open = False

    def _ensure_open(self) -> None:
        if not self._open:
            raise PersistenceError("Transaction is closed")

    def create_media_attachment(
        self,
        account_id: int,
        data: bytes,
        mime_type: str,
        *,
        uri: str,
    ) -> int:
        self._ensure_open()

        digest = hashlib.sha256(data).hexdigest()
        try:
            cur = self._conn.execute(
                """
                INSERT INTO media_attachments(
                  account_id, status_id, uri, content_type, file_size, sha256, data, created_at
                ) VALUES (?, NULL, ?, ?, ?, ?, ?, ?)
                """.strip(),
                (account_id, uri, mime_type, len(data), digest, sqlite3.Binary(data), _utc_now_iso()),
            )
        except sqlite3.DatabaseError as e:
            raise PersistenceError(f"Failed to create media attachment for {uri}: {e}") from e

        return int(cur.lastrowid)

    def create_status(self, account_id: int, request: PostRequest) -> int:
        self._ensure_open()

        try:
            cur = self._conn.execute(
                """
                INSERT INTO statuses(
                  account_id, text, created_at, in_reply_to_id, visibility,
                  sensitive, spoiler_text, language
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """.strip(),
                (
                    account_id,
                    request.text,
                    format_timestamp(request.created_at),
                    request.in_reply_to_id,
                    request.visibility,
                    1 if request.sensitive else 0,
                    request.spoiler_text,
                    request.language,
                ),
            )
            status_id = int(cur.lastrowid)

            media_ids = list(request.media_ids)
            if media_ids:
                placeholders = ",".join("?" for _ in media_ids)
                self._conn.execute(
                    f"UPDATE media_attachments SET status_id = ? WHERE account_id = ? AND id IN ({placeholders})",
                    (status_id, account_id, *media_ids),
                )
        except sqlite3.DatabaseError as e:
            raise PersistenceError(f"Failed to create status: {e}") from e

        return status_id


class SQLiteStore:
    """
    Accounts, statuses and media attachments in one SQLite file.

    Reads go straight to the connection; the writes of an import item go through an
    explicit transaction handle.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._conn.row_factory = sqlite3.Row

    @classmethod
    def open(cls, path: str | Path) -> "SQLiteStore":
        db_path = _as_path(path)
        if db_path != ":memory:":
            p = Path(db_path)
            p.parent.mkdir(parents=True, exist_ok=True)

        try:
            conn = sqlite3.connect(db_path)
        except sqlite3.DatabaseError as e:
            raise StorageError(f"Failed to open sqlite database: {db_path}: {e}") from e

        try:
            initialize_sqlite(conn)
        except Exception as e:
            conn.close()
            raise StorageError(f"Failed to initialize sqlite schema: {e}") from e

        return cls(conn)

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "SQLiteStore":
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

    @property
    def conn(self) -> sqlite3.Connection:
        return self._conn

    @contextmanager
    def transaction(self) -> Iterator[StoreTransaction]:
        """
        Scope for an all-or-nothing unit of work.

        Commits when the block exits normally and rolls back on any exception. The
        handle is closed on every exit path.
        """
        if self._conn.in_transaction:
            raise PersistenceError("A transaction is already open on this store")

        try:
            self._conn.execute("BEGIN")
        except sqlite3.DatabaseError as e:
            raise PersistenceError(f"Failed to begin transaction: {e}") from e

        tx = StoreTransaction(self._conn)
        try:
            yield tx
        except BaseException:
            self._conn.rollback()
            raise
        else:
            try:
                self._conn.commit()
            except sqlite3.DatabaseError as e:
                self._conn.rollback()
                raise PersistenceError(f"Failed to commit transaction: {e}") from e
        finally:
            tx.close()

    # Accounts

    def create_account(self, username: str, *, default_language: str | None = None) -> Account:
        name = (username or "").strip().lstrip("@")
        if not name:
            raise ValueError("username must be non-empty")

        lang = (default_language or "").strip().lower() or None

        try:
            with self._conn:
                self._conn.execute(
                    "INSERT INTO accounts(username, default_language, created_at) VALUES (?, ?, ?)",
                    (name, lang, _utc_now_iso()),
                )
        except sqlite3.IntegrityError as e:
            raise PersistenceError(f"Account already exists: {name}") from e
        except sqlite3.DatabaseError as e:
            raise PersistenceError(f"Failed to create account {name}: {e}") from e

        return self.find_account(name)

    def find_account(self, username: str) -> Account:
        name = (username or "").strip().lstrip("@")
        row = self._conn.execute(
            "SELECT id, username, default_language FROM accounts WHERE username = ?",
            (name,),
        ).fetchone()
        if row is None:
            raise AccountNotFoundError(f"Account not found: {name or '<empty>'}")

        return Account(
            id=int(row["id"]),
            username=str(row["username"]),
            default_language=str(row["default_language"]) if row["default_language"] else None,
        )

    # Statuses and media

    def find_status_by_text(self, account_id: int, text: str) -> int | None:
        row = self._conn.execute(
            "SELECT id FROM statuses WHERE account_id = ? AND text = ? ORDER BY id LIMIT 1",
            (account_id, text),
        ).fetchone()
        return int(row["id"]) if row is not None else None

    def get_status(self, status_id: int) -> StatusRecord | None:
        row = self._conn.execute("SELECT * FROM statuses WHERE id = ?", (status_id,)).fetchone()
        return _status_from_row(row) if row is not None else None

    def account_statuses(self, account_id: int) -> list[StatusRecord]:
        rows = self._conn.execute(
            "SELECT * FROM statuses WHERE account_id = ? ORDER BY created_at, id",
            (account_id,),
        ).fetchall()
        return [_status_from_row(r) for r in rows]

    def status_media(self, status_id: int) -> list[MediaRecord]:
        rows = self._conn.execute(
            """
            SELECT id, account_id, status_id, uri, content_type, file_size, sha256
            FROM media_attachments
            WHERE status_id = ?
            ORDER BY id
            """.strip(),
            (status_id,),
        ).fetchall()
        return [
            MediaRecord(
                id=int(r["id"]),
                account_id=int(r["account_id"]),
                status_id=int(r["status_id"]) if r["status_id"] is not None else None,
                uri=str(r["uri"]),
                content_type=str(r["content_type"]),
                file_size=int(r["file_size"]),
                sha256=str(r["sha256"]),
            )
            for r in rows
        ]

    def status_count(self, account_id: int | None = None) -> int:
        if account_id is None:
            row = self._conn.execute("SELECT COUNT(1) AS n FROM statuses").fetchone()
        else:
            row = self._conn.execute(
                "SELECT COUNT(1) AS n FROM statuses WHERE account_id = ?", (account_id,)
            ).fetchone()
        return int(row["n"]) if row is not None else 0

    def media_count(self, account_id: int | None = None) -> int:
        if account_id is None:
            row = self._conn.execute("SELECT COUNT(1) AS n FROM media_attachments").fetchone()
        else:
            row = self._conn.execute(
                "SELECT COUNT(1) AS n FROM media_attachments WHERE account_id = ?", (account_id,)
            ).fetchone()
        return int(row["n"]) if row is not None else 0

    # Retention

    def media_ids_before(self, account_id: int, cutoff: datetime) -> list[int]:
        """Media of the account attached to statuses created at or before cutoff."""
        rows = self._conn.execute(
            """
            SELECT m.id
            FROM media_attachments m
            JOIN statuses s ON s.id = m.status_id
            WHERE m.account_id = ? AND s.created_at <= ?
            ORDER BY m.created_at, m.id
            """.strip(),
            (account_id, format_timestamp(cutoff)),
        ).fetchall()
        return [int(r["id"]) for r in rows]

    def status_ids_before(self, account_id: int, cutoff: datetime) -> list[int]:
        rows = self._conn.execute(
            """
            SELECT id
            FROM statuses
            WHERE account_id = ? AND created_at <= ?
            ORDER BY created_at, id
            """.strip(),
            (account_id, format_timestamp(cutoff)),
        ).fetchall()
        return [int(r["id"]) for r in rows]

    def delete_media(self, media_ids: Sequence[int]) -> int:
        return self._delete_ids("media_attachments", media_ids)

    def delete_statuses(self, status_ids: Sequence[int]) -> int:
        return self._delete_ids("statuses", status_ids)

    def _delete_ids(self, table: str, ids: Sequence[int]) -> int:
        values = [int(i) for i in ids]
        if not values:
            return 0

        placeholders = ",".join("?" for _ in values)
        try:
            with self._conn:
                cur = self._conn.execute(f"DELETE FROM {table} WHERE id IN ({placeholders})", values)
        except sqlite3.DatabaseError as e:
            raise PersistenceError(f"Failed to delete from {table}: {e}") from e
        return int(cur.rowcount)

    # Import runs

    def create_import_run(
        self,
        *,
        account_id: int,
        source_path: str,
        config_hash: str,
        run_id: str | None = None,
        started_at: str | None = None,
    ) -> ImportRunRecord:
        rid = (run_id or uuid.uuid4().hex).strip()
        if not rid:
            raise ValueError("run_id must be non-empty")

        cfg_hash = (config_hash or "").strip()
        if not cfg_hash:
            raise ValueError("config_hash must be non-empty")

        start = (started_at or _utc_now_iso()).strip()

        try:
            with self._conn:
                self._conn.execute(
                    """
                    INSERT INTO import_runs(run_id, account_id, source_path, config_hash, started_at)
                    VALUES (?, ?, ?, ?, ?)
                    """.strip(),
                    (rid, account_id, source_path, cfg_hash, start),
                )
        except sqlite3.DatabaseError as e:
            raise PersistenceError(f"Failed to create import run record: {e}") from e

        record = self.get_import_run(rid)
        if record is None:
            raise PersistenceError("Failed to read import run record after insert")
        return record

    def finish_import_run(
        self,
        run_id: str,
        *,
        items: int,
        created: int,
        skipped: int,
        failed: int,
        ended_at: str | None = None,
    ) -> None:
        end = (ended_at or _utc_now_iso()).strip()

        try:
            with self._conn:
                self._conn.execute(
                    """
                    UPDATE import_runs
                    SET ended_at = ?, items = ?, created = ?, skipped = ?, failed = ?
                    WHERE run_id = ?
                    """.strip(),
                    (end, items, created, skipped, failed, run_id),
                )
        except sqlite3.DatabaseError as e:
            raise PersistenceError(f"Failed to finish import run: {e}") from e

    def get_import_run(self, run_id: str) -> ImportRunRecord | None:
        row = self._conn.execute("SELECT * FROM import_runs WHERE run_id = ?", (run_id,)).fetchone()
        if row is None:
            return None

        return ImportRunRecord(
            run_id=str(row["run_id"]),
            account_id=int(row["account_id"]),
            source_path=str(row["source_path"]),
            config_hash=str(row["config_hash"]),
            started_at=str(row["started_at"]),
            ended_at=str(row["ended_at"]) if row["ended_at"] is not None else None,
            items=int(row["items"]),
            created=int(row["created"]),
            skipped=int(row["skipped"]),
            failed=int(row["failed"]),
        )
