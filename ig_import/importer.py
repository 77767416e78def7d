from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from .builder import PostBuilder
from .config import config_sha256
from .config_schema import AppConfig
from .errors import TextTooLongError
from .export import import_root_for, load_source_items
from .language import LanguageDetector
from .post import SourceItem
from .run_log import NullRunLogger, RunLogger
from .storage import SQLiteStore


@dataclass(frozen=True)
class ImportResult:
    run_id: str
    account: str
    items: int
    created: int
    skipped: int
    failed: int


def chronological(items: Iterable[SourceItem]) -> list[SourceItem]:
    # sorted() is stable: items sharing a timestamp keep their export order.
    return sorted(items, key=lambda item: item.creation_timestamp)


def run_import(
    config: AppConfig,
    store: SQLiteStore,
    *,
    source_path: str | Path,
    account_name: str,
    locations: bool = False,
    media_root: str | Path | None = None,
    detector: LanguageDetector | None = None,
    logger: RunLogger | None = None,
) -> ImportResult:
    """
    Import every post of an Instagram export into an account, oldest first.

    Items whose caption cannot fit in the thread length cap are logged and skipped.
    Any other failure rolls back the current item and stops the import; items that
    were already committed stay.
    """
    log = logger or NullRunLogger()

    # Raises AccountNotFoundError before anything is read or written.
    account = store.find_account(account_name)

    path = Path(source_path)
    items = chronological(
        load_source_items(path, default_mime_type=config.media.default_mime_type)
    )
    root = Path(media_root) if media_root is not None else import_root_for(path)

    run = store.create_import_run(
        account_id=account.id,
        source_path=str(path),
        config_hash=config_sha256(config),
    )
    log = log.bind(run_id=run.run_id, account=account.username)
    log.info(
        "import_started",
        source_path=str(path),
        media_root=str(root),
        items=len(items),
        locations=bool(locations),
    )

    builder = PostBuilder(store, config=config, media_root=root, detector=detector, logger=log)

    created = skipped = failed = 0

    def _finish() -> None:
        store.finish_import_run(
            run.run_id,
            items=len(items),
            created=created,
            skipped=skipped,
            failed=failed,
        )

    for item in items:
        try:
            outcome = builder.build(account, item, locations=locations)
        except TextTooLongError as e:
            failed += 1
            log.error(
                "item_text_too_long",
                source_timestamp=item.creation_timestamp,
                text_length=e.text_length,
                chunks=e.chunk_count,
                error=str(e),
            )
            continue
        except Exception as e:
            failed += 1
            log.exception(
                "import_aborted",
                exc=e,
                source_timestamp=item.creation_timestamp,
                created=created,
                skipped=skipped,
                failed=failed,
            )
            try:
                _finish()
            except Exception as finish_error:
                log.exception("import_run_finish_failed", exc=finish_error)
            raise

        if outcome.status == "skipped":
            skipped += 1
        created += outcome.created
        log.info("import_progress", created=created, skipped=skipped, failed=failed)

    _finish()
    log.info("import_completed", items=len(items), created=created, skipped=skipped, failed=failed)

    return ImportResult(
        run_id=run.run_id,
        account=account.username,
        items=len(items),
        created=created,
        skipped=skipped,
        failed=failed,
    )
