from __future__ import annotations

import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

from ig_import.errors import AccountNotFoundError, PersistenceError
from ig_import.post import PostRequest
from ig_import.storage import SQLiteStore, format_timestamp

_T0 = datetime(2020, 1, 1, tzinfo=timezone.utc)


class TestAccounts(unittest.TestCase):
    def test_create_and_find_account(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            with SQLiteStore.open(Path(td) / "state.sqlite") as store:
                created = store.create_account("Alice", default_language="FR")
                found = store.find_account("@alice")

        self.assertEqual(found, created)
        self.assertEqual(found.username, "Alice")
        self.assertEqual(found.default_language, "fr")

    def test_missing_account_raises(self) -> None:
        with SQLiteStore.open(":memory:") as store:
            with self.assertRaises(AccountNotFoundError):
                store.find_account("nobody")

    def test_duplicate_account_raises(self) -> None:
        with SQLiteStore.open(":memory:") as store:
            store.create_account("alice")
            with self.assertRaises(PersistenceError):
                store.create_account("ALICE")


class TestTransactions(unittest.TestCase):
    def test_commit_persists_media_and_thread(self) -> None:
        with SQLiteStore.open(":memory:") as store:
            account = store.create_account("alice")

            with store.transaction() as tx:
                media_id = tx.create_media_attachment(account.id, b"jpeg-bytes", "image/jpeg", uri="media/a.jpg")
                first = tx.create_status(
                    account.id,
                    PostRequest(text="first (1/2)", created_at=_T0, media_ids=(media_id,)),
                )
                second = tx.create_status(
                    account.id,
                    PostRequest(text="second (2/2)", created_at=_T0 + timedelta(seconds=1), in_reply_to_id=first),
                )

            statuses = store.account_statuses(account.id)
            self.assertEqual([s.id for s in statuses], [first, second])
            self.assertIsNone(statuses[0].in_reply_to_id)
            self.assertEqual(statuses[1].in_reply_to_id, first)
            self.assertEqual(statuses[0].created_at, _T0)
            self.assertEqual(statuses[0].visibility, "public")
            self.assertFalse(statuses[0].sensitive)
            self.assertEqual(statuses[0].spoiler_text, "")

            media = store.status_media(first)
            self.assertEqual([m.id for m in media], [media_id])
            self.assertEqual(media[0].file_size, len(b"jpeg-bytes"))
            self.assertEqual(store.status_media(second), [])

            self.assertEqual(store.find_status_by_text(account.id, "first (1/2)"), first)
            self.assertIsNone(store.find_status_by_text(account.id, "first"))

    def test_exception_rolls_back_everything(self) -> None:
        with SQLiteStore.open(":memory:") as store:
            account = store.create_account("alice")

            with self.assertRaises(RuntimeError):
                with store.transaction() as tx:
                    tx.create_media_attachment(account.id, b"x", "image/jpeg", uri="media/a.jpg")
                    tx.create_status(account.id, PostRequest(text="a", created_at=_T0))
                    raise RuntimeError("boom")

            self.assertEqual(store.status_count(account.id), 0)
            self.assertEqual(store.media_count(account.id), 0)

            # The store stays usable after a rollback.
            with store.transaction() as tx:
                tx.create_status(account.id, PostRequest(text="b", created_at=_T0))
            self.assertEqual(store.status_count(account.id), 1)

    def test_handle_is_closed_after_exit(self) -> None:
        with SQLiteStore.open(":memory:") as store:
            account = store.create_account("alice")

            with store.transaction() as tx:
                pass

            with self.assertRaises(PersistenceError):
                tx.create_status(account.id, PostRequest(text="late", created_at=_T0))

    def test_database_errors_become_persistence_errors(self) -> None:
        with SQLiteStore.open(":memory:") as store:
            with self.assertRaises(PersistenceError):
                with store.transaction() as tx:
                    # No such account: foreign key violation.
                    tx.create_status(999, PostRequest(text="orphan", created_at=_T0))

            self.assertEqual(store.status_count(), 0)


class TestImportRuns(unittest.TestCase):
    def test_create_and_finish_import_run(self) -> None:
        with SQLiteStore.open(":memory:") as store:
            account = store.create_account("alice")
            run = store.create_import_run(
                account_id=account.id,
                source_path="posts_1.json",
                config_hash="abc",
                run_id="run_1",
            )
            self.assertIsNone(run.ended_at)

            store.finish_import_run("run_1", items=3, created=4, skipped=1, failed=0)
            finished = store.get_import_run("run_1")

        assert finished is not None
        self.assertIsNotNone(finished.ended_at)
        self.assertEqual((finished.items, finished.created, finished.skipped, finished.failed), (3, 4, 1, 0))


class TestTimestamps(unittest.TestCase):
    def test_format_sorts_chronologically(self) -> None:
        a = format_timestamp(_T0)
        b = format_timestamp(_T0 + timedelta(microseconds=1))
        c = format_timestamp(datetime(2020, 1, 1, 1, 0, tzinfo=timezone(timedelta(hours=2))))
        self.assertLess(c, a)
        self.assertLess(a, b)
        self.assertEqual(a, "2020-01-01T00:00:00.000000+00:00")


if __name__ == "__main__":
    unittest.main()
