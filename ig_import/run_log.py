from __future__ import annotations

import json
import os
import traceback
import uuid
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Any, TextIO


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _truncate(text: str, *, limit: int) -> str:
    s = str(text or "")
    if limit <= 0:
        return ""
    if len(s) <= limit:
        return s
    return s[: max(0, limit - 1)] + "…"


class _LogSink:
    """Shared JSONL file behind a logger and everything bound from it."""

    def __init__(self, path: Path, *, overwrite: bool) -> None:
        self.path = path
        self._overwrite = overwrite
        self._fp: TextIO | None = None
        self._lock = Lock()
        self._opened = False

    def ensure_open(self) -> None:
        if self._fp is not None:
            return

        with self._lock:
            if self._fp is not None:
                return

            self.path.parent.mkdir(parents=True, exist_ok=True)
            mode = "w" if self._overwrite and not self._opened else "a"

            self._fp = self.path.open(mode, encoding="utf-8", newline="\n")
            self._opened = True

    def write(self, record: dict[str, Any]) -> None:
        self.ensure_open()

        payload = json.dumps(
            record,
            ensure_ascii=False,
            sort_keys=True,
            separators=(",", ":"),
            default=str,
        )

        with self._lock:
            if self._fp is None:
                return
            self._fp.write(payload + "\n")
            self._fp.flush()

    def close(self) -> None:
        with self._lock:
            if self._fp is not None:
                try:
                    self._fp.flush()
                finally:
                    self._fp.close()
                self._fp = None


class RunLogger:
    """
    JSONL event logger for import and maintenance commands.

    Each line is one JSON object with `ts`, `level`, `event`, `session_id`, the bound
    context (account, run id, source timestamp, ...) and an optional `data` payload.
    Loggers are passed explicitly; `bind()` derives one that shares the same file.
    """

    def __init__(
        self,
        path: str | Path,
        *,
        overwrite: bool = True,
        run_id: str | None = None,
        session_id: str | None = None,
    ) -> None:
        self._sink = _LogSink(Path(path), overwrite=bool(overwrite))
        self._session_id = (session_id or "").strip() or uuid.uuid4().hex
        self._context: dict[str, Any] = {}
        rid = (run_id or "").strip()
        if rid:
            self._context["run_id"] = rid

    @classmethod
    def open(
        cls,
        path: str | Path,
        *,
        overwrite: bool = True,
        run_id: str | None = None,
        session_id: str | None = None,
    ) -> "RunLogger":
        logger = cls(path, overwrite=overwrite, run_id=run_id, session_id=session_id)
        logger._sink.ensure_open()
        return logger

    @property
    def path(self) -> Path:
        return self._sink.path

    @property
    def context(self) -> dict[str, Any]:
        return dict(self._context)

    def close(self) -> None:
        self._sink.close()

    def __enter__(self) -> "RunLogger":
        self._sink.ensure_open()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

    def bind(self, **context: Any) -> "RunLogger":
        child = RunLogger.__new__(RunLogger)
        child._sink = self._sink
        child._session_id = self._session_id
        child._context = {**self._context, **{k: v for k, v in context.items() if v is not None}}
        return child

    def set_run_id(self, run_id: str) -> None:
        rid = (run_id or "").strip()
        if not rid:
            return
        self._context["run_id"] = rid

    def info(self, event: str, **data: Any) -> None:
        self.log("INFO", event, **data)

    def warning(self, event: str, **data: Any) -> None:
        self.log("WARN", event, **data)

    def error(self, event: str, **data: Any) -> None:
        self.log("ERROR", event, **data)

    def exception(self, event: str, *, exc: BaseException, **data: Any) -> None:
        err = {
            "type": type(exc).__name__,
            "message": _truncate(str(exc), limit=2000),
            "traceback": _truncate(
                "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
                limit=12000,
            ),
        }
        self.log("ERROR", event, error=err, **data)

    def log(self, level: str, event: str, **data: Any) -> None:
        lvl = (level or "").strip().upper() or "INFO"
        ev = (event or "").strip() or "event"

        record: dict[str, Any] = {
            **self._context,
            "ts": _utc_now_iso(),
            "level": lvl,
            "event": ev,
            "session_id": self._session_id,
        }

        if data:
            record["data"] = data

        self._sink.write(record)


class NullRunLogger(RunLogger):
    """Drops every event; for callers that do not keep a run log."""

    def __init__(self) -> None:
        super().__init__(os.devnull, overwrite=False, session_id="null")

    def bind(self, **context: Any) -> "RunLogger":
        return self

    def log(self, level: str, event: str, **data: Any) -> None:
        return None

    def close(self) -> None:
        return None
