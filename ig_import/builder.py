from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Sequence

from .chunker import Chunk, split_text
from .config_schema import AppConfig
from .dedupe import DuplicateGuard
from .errors import LanguageDetectionError, MediaReadError
from .geo import annotate
from .language import LanguageDetector
from .normalize import normalized_caption
from .post import ItemOutcome, MediaRef, PostRequest, SourceItem
from .run_log import NullRunLogger, RunLogger
from .sequencer import base_instant, sequence_timestamps
from .storage import Account, SQLiteStore


@dataclass(frozen=True)
class ItemPlan:
    """Text of one export item after normalizing, annotating and chunking."""

    source_timestamp: int
    text: str
    chunks: Sequence[Chunk]

    @property
    def first_text(self) -> str:
        return self.chunks[0].text


class PostBuilder:
    """
    Turns one export item into a thread of statuses for an account.

    Steps: normalize the caption, optionally append a map link, split into chunks,
    skip the item when its first chunk was already posted, then create the media and
    the statuses inside a single store transaction. A failure anywhere in the last
    step leaves nothing of the item behind.
    """

    def __init__(
        self,
        store: SQLiteStore,
        *,
        config: AppConfig,
        media_root: str | Path,
        detector: LanguageDetector | None = None,
        logger: RunLogger | None = None,
    ) -> None:
        self._store = store
        self._cfg = config
        self._media_root = Path(media_root)
        self._detector = detector
        self._log = logger or NullRunLogger()
        self._guard = DuplicateGuard(store)

    def plan(self, item: SourceItem, *, locations: bool = False) -> ItemPlan:
        text = normalized_caption(item)
        if locations:
            text = annotate(text, item.geo, base_url=self._cfg.locations.map_base_url)

        statuses = self._cfg.statuses
        chunks = split_text(
            text,
            statuses.max_chars,
            marker_reserve=statuses.marker_reserve,
            max_chunks=statuses.max_chunks,
        )
        return ItemPlan(source_timestamp=item.creation_timestamp, text=text, chunks=chunks)

    def requests(self, plan: ItemPlan, *, language: str | None = None) -> list[PostRequest]:
        """
        One request per chunk, in thread order.

        Media ids and reply parents are filled in while persisting, once the ids exist.
        """
        timestamps = sequence_timestamps(base_instant(plan.source_timestamp), len(plan.chunks))
        return [
            PostRequest(
                text=chunk.text,
                created_at=created_at,
                language=language,
                visibility=self._cfg.statuses.visibility,
            )
            for chunk, created_at in zip(plan.chunks, timestamps)
        ]

    def resolve_language(self, account: Account, text: str) -> str | None:
        if account.default_language:
            return account.default_language
        if self._detector is None:
            return self._cfg.language.fallback

        try:
            return self._detector.detect(text, account)
        except LanguageDetectionError as e:
            self._log.warning("language_detection_failed", error=str(e))
            return self._cfg.language.fallback

    def build(self, account: Account, item: SourceItem, *, locations: bool = False) -> ItemOutcome:
        log = self._log.bind(account=account.username, source_timestamp=item.creation_timestamp)

        plan = self.plan(item, locations=locations)
        total = len(plan.chunks)
        if total > 1:
            log.warning(
                "text_split",
                text_length=len(plan.text),
                max_chars=self._cfg.statuses.max_chars,
                chunks=total,
            )

        existing = self._guard.existing_id(account.id, plan.first_text)
        if existing is not None:
            log.info("duplicate_skipped", existing_status_id=existing, chunks=total)
            return ItemOutcome(status="skipped", created=0)

        language = self.resolve_language(account, plan.text)
        requests = self.requests(plan, language=language)

        status_ids = self._persist(account, item.media, requests)

        for i, status_id in enumerate(status_ids):
            log.info(
                "status_created",
                status_id=status_id,
                chunk=i + 1,
                chunks=total,
                reply_to=status_ids[i - 1] if i > 0 else None,
            )
        log.info("item_persisted", statuses=len(status_ids), media=len(item.media))

        return ItemOutcome(status="persisted", created=len(status_ids), status_ids=tuple(status_ids))

    def _persist(
        self,
        account: Account,
        media: Sequence[MediaRef],
        requests: Sequence[PostRequest],
    ) -> list[int]:
        status_ids: list[int] = []

        with self._store.transaction() as tx:
            media_ids = tuple(
                tx.create_media_attachment(account.id, self._read_media(ref), ref.mime_type, uri=ref.uri)
                for ref in media
            )

            parent_id: int | None = None
            for i, request in enumerate(requests):
                request = replace(
                    request,
                    media_ids=media_ids if i == 0 else (),
                    in_reply_to_id=parent_id,
                )
                parent_id = tx.create_status(account.id, request)
                status_ids.append(parent_id)

        return status_ids

    def _read_media(self, ref: MediaRef) -> bytes:
        path = self._media_root / ref.uri
        try:
            return path.read_bytes()
        except OSError as e:
            raise MediaReadError(f"Failed to read media file {path}: {e}") from e
