from __future__ import annotations

import json
import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

from ig_import.errors import AccountNotFoundError
from ig_import.post import PostRequest
from ig_import.retention import delete_statuses, parse_cutoff
from ig_import.run_log import RunLogger
from ig_import.storage import SQLiteStore

_T0 = datetime(2020, 1, 1, tzinfo=timezone.utc)


def _seed(store: SQLiteStore, account_id: int, days: list[int]) -> list[int]:
    ids: list[int] = []
    for day in days:
        with store.transaction() as tx:
            media_id = tx.create_media_attachment(account_id, b"x", "image/jpeg", uri=f"media/{day}.jpg")
            first = tx.create_status(
                account_id,
                PostRequest(text=f"day {day} (1/2)", created_at=_T0 + timedelta(days=day), media_ids=(media_id,)),
            )
            second = tx.create_status(
                account_id,
                PostRequest(
                    text=f"day {day} (2/2)",
                    created_at=_T0 + timedelta(days=day, seconds=1),
                    in_reply_to_id=first,
                ),
            )
        ids.extend([first, second])
    return ids


class TestParseCutoff(unittest.TestCase):
    def test_date_is_midnight_utc(self) -> None:
        self.assertEqual(parse_cutoff("2020-01-03"), datetime(2020, 1, 3, tzinfo=timezone.utc))

    def test_datetime_with_offset_is_kept(self) -> None:
        parsed = parse_cutoff("2020-01-03T10:00:00+02:00")
        self.assertEqual(parsed, datetime(2020, 1, 3, 8, tzinfo=timezone.utc))

    def test_invalid_date(self) -> None:
        with self.assertRaises(ValueError):
            parse_cutoff("yesterday")


class TestDeleteStatuses(unittest.TestCase):
    def test_deletes_statuses_and_media_at_or_before_cutoff(self) -> None:
        with SQLiteStore.open(":memory:") as store:
            alice = store.create_account("alice")
            bob = store.create_account("bob")
            _seed(store, alice.id, [0, 1, 5])
            _seed(store, bob.id, [0])

            result = delete_statuses(store, account_name="alice", cutoff=_T0 + timedelta(days=1, seconds=1))

            self.assertEqual((result.statuses_deleted, result.media_deleted), (4, 2))
            self.assertEqual([s.text for s in store.account_statuses(alice.id)], ["day 5 (1/2)", "day 5 (2/2)"])
            self.assertEqual(store.media_count(alice.id), 1)
            self.assertEqual(store.status_count(bob.id), 2)
            self.assertEqual(store.media_count(bob.id), 1)

    def test_cutoff_is_inclusive(self) -> None:
        with SQLiteStore.open(":memory:") as store:
            alice = store.create_account("alice")
            _seed(store, alice.id, [0])

            result = delete_statuses(store, account_name="alice", cutoff=_T0)

            self.assertEqual(result.statuses_deleted, 1)
            remaining = store.account_statuses(alice.id)
            self.assertEqual([s.text for s in remaining], ["day 0 (2/2)"])
            self.assertIsNone(remaining[0].in_reply_to_id)

    def test_dry_run_enumerates_without_deleting(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            log_path = Path(td) / "run.log"
            with SQLiteStore.open(":memory:") as store, RunLogger.open(log_path) as log:
                alice = store.create_account("alice")
                _seed(store, alice.id, [0, 1, 2])

                result = delete_statuses(
                    store,
                    account_name="alice",
                    cutoff=_T0 + timedelta(days=10),
                    batch_size=4,
                    dry_run=True,
                    logger=log,
                )

                self.assertTrue(result.dry_run)
                self.assertEqual((result.statuses_deleted, result.media_deleted), (0, 0))
                self.assertEqual((result.statuses_matched, result.media_matched), (6, 3))
                self.assertEqual(store.status_count(), 6)
                self.assertEqual(store.media_count(), 3)

            records = [json.loads(line) for line in log_path.read_text(encoding="utf-8").splitlines()]

        status_batches = [r["data"]["ids"] for r in records if r["event"] == "deleting_statuses"]
        media_batches = [r["data"]["ids"] for r in records if r["event"] == "deleting_media_attachments"]
        self.assertEqual([len(b) for b in status_batches], [4, 2])
        self.assertEqual([len(b) for b in media_batches], [3])

    def test_batches_cover_every_row(self) -> None:
        with SQLiteStore.open(":memory:") as store:
            alice = store.create_account("alice")
            _seed(store, alice.id, list(range(7)))

            result = delete_statuses(store, account_name="alice", cutoff=_T0 + timedelta(days=30), batch_size=3)

            self.assertEqual((result.statuses_deleted, result.media_deleted), (14, 7))
            self.assertEqual(store.status_count(), 0)
            self.assertEqual(store.media_count(), 0)

    def test_unknown_account(self) -> None:
        with SQLiteStore.open(":memory:") as store:
            with self.assertRaises(AccountNotFoundError):
                delete_statuses(store, account_name="nobody", cutoff=_T0)


if __name__ == "__main__":
    unittest.main()
