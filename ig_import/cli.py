from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Sequence

from .config import load_config, resolve_runtime_secrets
from .config_schema import AppConfig
from .errors import (
    AccountNotFoundError,
    ConfigError,
    ExportError,
    MediaReadError,
    StorageError,
    TextTooLongError,
)
from .importer import run_import
from .language import build_language_detector
from .retention import delete_statuses, parse_cutoff
from .run_log import RunLogger
from .storage import SQLiteStore


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        default=None,
        help="Path to YAML config file (defaults are used when omitted).",
    )
    parser.add_argument(
        "--db",
        default=None,
        help="SQLite database path (overrides storage.db_path).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ig_import")

    subparsers = parser.add_subparsers(dest="command", required=True)

    imp = subparsers.add_parser(
        "import",
        help="Import posts from an Instagram posts_1.json export into an account.",
    )
    imp.add_argument("json_path", help="Path to the export's posts JSON file.")
    imp.add_argument("account_name", help="Account to import into.")
    imp.add_argument(
        "--locations",
        action="store_true",
        help="Append a map link for the post's geo location to the status text.",
    )
    _add_common_arguments(imp)
    imp.set_defaults(_handler=_cmd_import)

    delete = subparsers.add_parser(
        "delete-statuses",
        help="Delete all statuses of an account created at or before a date, with their media.",
    )
    delete.add_argument("account_name", help="Account whose statuses are deleted.")
    delete.add_argument("date", help="Cutoff date or datetime (ISO 8601, UTC when no offset).")
    delete.add_argument(
        "--dryrun",
        action="store_true",
        help="List what would be deleted without deleting anything.",
    )
    _add_common_arguments(delete)
    delete.set_defaults(_handler=_cmd_delete_statuses)

    account = subparsers.add_parser(
        "create-account",
        help="Create a local account to import into.",
    )
    account.add_argument("account_name", help="Username of the new account.")
    account.add_argument(
        "--language",
        default=None,
        help="Default language (ISO 639-1) for the account's statuses.",
    )
    _add_common_arguments(account)
    account.set_defaults(_handler=_cmd_create_account)

    return parser


def _eprint(message: str) -> None:
    print(message, file=sys.stderr)


def _db_path(args: argparse.Namespace, cfg: AppConfig) -> Path:
    return Path(args.db or cfg.storage.db_path)


def _log_path(db_path: Path) -> Path:
    return db_path.with_name(db_path.name + ".log")


def _cmd_import(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    secrets = resolve_runtime_secrets(cfg)
    db_path = _db_path(args, cfg)

    log_path = _log_path(db_path)
    with RunLogger.open(log_path, overwrite=False) as log:
        log.info(
            "import_command_started",
            json_path=str(args.json_path),
            account=args.account_name,
            locations=bool(args.locations),
            db_path=str(db_path),
        )

        try:
            detector = build_language_detector(cfg.language, api_key=secrets.openai_api_key)

            with SQLiteStore.open(db_path) as store:
                result = run_import(
                    cfg,
                    store,
                    source_path=args.json_path,
                    account_name=args.account_name,
                    locations=bool(args.locations),
                    detector=detector,
                    logger=log,
                )
        except Exception as e:
            log.exception("import_command_failed", exc=e)
            raise

    print(f"run_id={result.run_id}")
    print(f"account={result.account}")
    print(f"items={result.items}")
    print(f"created={result.created}")
    print(f"skipped={result.skipped}")
    print(f"failed={result.failed}")
    print(f"run_log={log.path}")
    print(f"Imported {result.created} statuses")

    return 0


def _cmd_delete_statuses(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    db_path = _db_path(args, cfg)

    try:
        cutoff = parse_cutoff(args.date)
    except ValueError as e:
        raise ConfigError(f"Invalid date {args.date!r}: {e}") from e

    log_path = _log_path(db_path)
    with RunLogger.open(log_path, overwrite=False) as log:
        try:
            with SQLiteStore.open(db_path) as store:
                result = delete_statuses(
                    store,
                    account_name=args.account_name,
                    cutoff=cutoff,
                    batch_size=cfg.retention.batch_size,
                    dry_run=bool(args.dryrun),
                    logger=log,
                )
        except Exception as e:
            log.exception("delete_statuses_command_failed", exc=e)
            raise

    print(f"account={result.account}")
    print(f"cutoff={result.cutoff.isoformat()}")
    print(f"dry_run={str(result.dry_run).lower()}")
    print(f"statuses_matched={result.statuses_matched}")
    print(f"media_matched={result.media_matched}")
    print(f"statuses_deleted={result.statuses_deleted}")
    print(f"media_deleted={result.media_deleted}")
    print(
        f"Deleted {result.statuses_deleted} statuses and {result.media_deleted} attachments "
        f"of {result.account}"
    )

    return 0


def _cmd_create_account(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    db_path = _db_path(args, cfg)

    with SQLiteStore.open(db_path) as store:
        account = store.create_account(args.account_name, default_language=args.language)

    print(f"account_id={account.id}")
    print(f"account={account.username}")
    print(f"default_language={account.default_language or ''}")

    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    try:
        handler = getattr(args, "_handler")
        return int(handler(args))
    except ConfigError as e:
        _eprint(str(e))
        return 2
    except (
        AccountNotFoundError,
        ExportError,
        MediaReadError,
        StorageError,
        TextTooLongError,
    ) as e:
        _eprint(str(e))
        return 3
    except KeyboardInterrupt:
        _eprint("Interrupted")
        return 130
    except Exception as e:
        _eprint(f"Unexpected error: {e}")
        return 1
