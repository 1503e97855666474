"""Tests for snapshot take/restore/delete/rename behavior."""

from __future__ import annotations

import shutil
import tempfile
import threading
import unittest
from datetime import datetime, timezone
from pathlib import Path

from simkeeper.errors import ErrorKind
from simkeeper.model import Application
from simkeeper.sizes import compute_size
from simkeeper.snapshots import OperationPhase, SnapshotManager, build_manifest, list_snapshots

from simulator_tree import isolated_config, write_files


def _app(container: Path, app_id: str = "BUNDLE-1", bundle_identifier: str = "com.example.notes") -> Application:
    return Application(
        id=app_id,
        name="Notes",
        bundle_identifier=bundle_identifier,
        device_id="DEV",
        documents_path=container / "Documents",
        snapshots_path=container / "Snapshots",
    )


def _quiet_manager(**kwargs) -> SnapshotManager:
    kwargs.setdefault("sleep", lambda _seconds: None)
    return SnapshotManager(**kwargs)


class TakeSnapshotTests(unittest.TestCase):
    def test_take_snapshot_copies_documents_and_validates(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            app = _app(root / "DATA")
            write_files(app.documents_path, {"a.txt": b"a" * 10, "sub/b.txt": b"b" * 20})
            moment = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

            with isolated_config(root):
                result = _quiet_manager(now=lambda: moment).take_snapshot(app)
                listed = list_snapshots(app)

            self.assertTrue(result.ok, result.message)
            assert result.snapshot is not None
            self.assertEqual(result.snapshot.id, "snapshot_2024-01-02T03:04:05Z")
            snapshot_docs = result.snapshot.path / "Documents"
            self.assertEqual((snapshot_docs / "a.txt").stat().st_size, 10)
            self.assertEqual((snapshot_docs / "sub" / "b.txt").stat().st_size, 20)
            self.assertEqual([child.name for child in result.snapshot.path.iterdir()], ["Documents"])
            self.assertEqual([snapshot.id for snapshot in listed], [result.snapshot.id])
            self.assertEqual(compute_size(listed[0].path), 30)

    def test_same_second_snapshots_get_distinct_directories(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            app = _app(root / "DATA")
            write_files(app.documents_path, {"a.txt": "a"})
            moment = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
            manager = _quiet_manager(now=lambda: moment)

            with isolated_config(root):
                first = manager.take_snapshot(app)
                second = manager.take_snapshot(app)

            assert first.snapshot is not None and second.snapshot is not None
            self.assertNotEqual(first.snapshot.id, second.snapshot.id)
            self.assertEqual(second.snapshot.id, "snapshot_2024-01-02T03:04:05Z-2")

    def test_missing_documents_is_terminal_and_creates_nothing(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            app = _app(Path(tmp) / "DATA")

            result = _quiet_manager().take_snapshot(app)

            self.assertFalse(result.ok)
            self.assertEqual(result.kind, ErrorKind.DOCUMENTS_MISSING)
            assert app.snapshots_path is not None
            self.assertFalse(app.snapshots_path.exists())

    def test_app_without_data_container_is_rejected(self) -> None:
        app = Application(id="B", name="NoData", bundle_identifier="com.x", device_id="DEV")

        result = _quiet_manager().take_snapshot(app)

        self.assertEqual(result.kind, ErrorKind.PATHS_INVALID)

    def test_validation_failure_rolls_back_new_snapshot(self) -> None:
        def lossy_copy(source: Path, destination: Path) -> None:
            shutil.copytree(source, destination)
            (destination / "a.txt").unlink()

        with tempfile.TemporaryDirectory() as tmp:
            app = _app(Path(tmp) / "DATA")
            write_files(app.documents_path, {"a.txt": "a", "b.txt": "b"})

            result = _quiet_manager(copy_tree=lossy_copy).take_snapshot(app)

            self.assertEqual(result.kind, ErrorKind.VALIDATION_FAILED)
            self.assertIn("in use", result.message)
            assert app.snapshots_path is not None
            self.assertEqual(list(app.snapshots_path.iterdir()), [])

    def test_copy_failure_reports_copy_failed_and_cleans_up(self) -> None:
        def failing_copy(source: Path, destination: Path) -> None:
            destination.mkdir()
            raise OSError("disk full")

        with tempfile.TemporaryDirectory() as tmp:
            app = _app(Path(tmp) / "DATA")
            write_files(app.documents_path, {"a.txt": "a"})

            result = _quiet_manager(copy_tree=failing_copy).take_snapshot(app)

            self.assertEqual(result.kind, ErrorKind.COPY_FAILED)
            self.assertIn("disk full", result.message)
            assert app.snapshots_path is not None
            self.assertEqual(list(app.snapshots_path.iterdir()), [])

    def test_progress_is_monotonic_and_ends_in_success(self) -> None:
        events = []
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            app = _app(root / "DATA")
            write_files(app.documents_path, {"a.txt": "a"})

            with isolated_config(root):
                _quiet_manager(on_progress=events.append).take_snapshot(app)

        fractions = [event.fraction for event in events]
        self.assertEqual(fractions, sorted(fractions))
        self.assertEqual(events[0].phase, OperationPhase.PREPARING)
        self.assertEqual(events[-1].phase, OperationPhase.SUCCESS)
        self.assertEqual(events[-1].fraction, 1.0)
        self.assertIn(OperationPhase.VALIDATING, {event.phase for event in events})


class RestoreSnapshotTests(unittest.TestCase):
    def test_take_then_restore_into_emptied_documents_round_trips(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            app = _app(root / "DATA")
            write_files(app.documents_path, {"a.txt": b"a" * 10, "sub/b.txt": b"b" * 20, "sub/c/d.bin": b"\0" * 3})
            assert app.documents_path is not None
            original = build_manifest(app.documents_path)
            manager = _quiet_manager()

            with isolated_config(root):
                taken = manager.take_snapshot(app)
                assert taken.snapshot is not None
                shutil.rmtree(app.documents_path)
                app.documents_path.mkdir()
                restored = manager.restore_snapshot(taken.snapshot, app)

            self.assertTrue(restored.ok, restored.message)
            self.assertEqual(restored.attempts, 1)
            self.assertEqual(build_manifest(app.documents_path), original)
            self.assertEqual([child.name for child in app.documents_path.parent.iterdir() if child.name.startswith(".")], [])

    def test_restore_replaces_files_added_after_snapshot(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            app = _app(root / "DATA")
            write_files(app.documents_path, {"keep.txt": "keep"})
            manager = _quiet_manager()

            with isolated_config(root):
                taken = manager.take_snapshot(app)
                assert taken.snapshot is not None and app.documents_path is not None
                write_files(app.documents_path, {"extra.txt": "new", "keep.txt": "changed!"})
                restored = manager.restore_snapshot(taken.snapshot, app)

            self.assertTrue(restored.ok)
            self.assertEqual(sorted(child.name for child in app.documents_path.iterdir()), ["keep.txt"])
            self.assertEqual((app.documents_path / "keep.txt").read_text(encoding="utf-8"), "keep")

    def test_restore_gives_up_after_exactly_two_copy_attempts(self) -> None:
        copies: list[Path] = []
        sleeps: list[float] = []

        def corrupting_copy(source: Path, destination: Path) -> None:
            copies.append(destination)
            shutil.copytree(source, destination)
            (destination / "junk.tmp").write_text("junk", encoding="utf-8")

        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            app = _app(root / "DATA")
            snapshot_docs = root / "DATA" / "Snapshots" / "snapshot_x" / "Documents"
            write_files(snapshot_docs, {"a.txt": "a"})
            write_files(app.documents_path, {"old.txt": "old"})
            with isolated_config(root):
                snapshot = list_snapshots(app)[0]
                manager = SnapshotManager(
                    copy_tree=corrupting_copy,
                    sleep=sleeps.append,
                    settle_delay=0.5,
                    retry_pause=0.25,
                )
                result = manager.restore_snapshot(snapshot, app)

        self.assertFalse(result.ok)
        self.assertEqual(result.kind, ErrorKind.RESTORE_FAILED)
        self.assertEqual(result.attempts, 2)
        self.assertEqual(len(copies), 2)
        self.assertEqual(sleeps, [0.5, 0.25, 0.5])

    def test_restore_succeeds_on_second_attempt(self) -> None:
        calls: list[int] = []

        def flaky_copy(source: Path, destination: Path) -> None:
            calls.append(1)
            shutil.copytree(source, destination)
            if len(calls) == 1:
                (destination / "a.txt").unlink()

        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            app = _app(root / "DATA")
            write_files(root / "DATA" / "Snapshots" / "snapshot_x" / "Documents", {"a.txt": "a"})
            write_files(app.documents_path, {})
            with isolated_config(root):
                snapshot = list_snapshots(app)[0]
                result = _quiet_manager(copy_tree=flaky_copy).restore_snapshot(snapshot, app)

        self.assertTrue(result.ok)
        self.assertEqual(result.attempts, 2)

    def test_restore_of_snapshot_without_documents_is_not_found(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            app = _app(root / "DATA")
            (root / "DATA" / "Snapshots" / "snapshot_empty").mkdir(parents=True)
            write_files(app.documents_path, {"a.txt": "a"})
            with isolated_config(root):
                snapshot = list_snapshots(app)[0]
                result = _quiet_manager().restore_snapshot(snapshot, app)

            self.assertEqual(result.kind, ErrorKind.NOT_FOUND)
            assert app.documents_path is not None
            self.assertTrue((app.documents_path / "a.txt").exists())

    def test_second_operation_is_rejected_while_one_is_running(self) -> None:
        started = threading.Event()
        release = threading.Event()

        def blocking_copy(source: Path, destination: Path) -> None:
            started.set()
            release.wait(timeout=5.0)
            shutil.copytree(source, destination)

        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            app = _app(root / "DATA")
            write_files(app.documents_path, {"a.txt": "a"})
            manager = _quiet_manager(copy_tree=blocking_copy)
            results = []

            with isolated_config(root):
                worker = threading.Thread(target=lambda: results.append(manager.take_snapshot(app)))
                worker.start()
                self.assertTrue(started.wait(timeout=5.0))
                self.assertTrue(manager.is_busy)
                busy = manager.take_snapshot(app)
                release.set()
                worker.join(timeout=5.0)

            self.assertEqual(busy.kind, ErrorKind.BUSY)
            self.assertTrue(results[0].ok)
            self.assertFalse(manager.is_busy)


class DeleteAndRenameTests(unittest.TestCase):
    def test_delete_removes_directory(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            app = _app(root / "DATA")
            write_files(root / "DATA" / "Snapshots" / "snapshot_a" / "Documents", {"f": "1"})
            with isolated_config(root):
                snapshot = list_snapshots(app)[0]
                result = _quiet_manager().delete_snapshot(snapshot)

            self.assertTrue(result.ok)
            self.assertFalse(snapshot.path.exists())

    def test_delete_of_externally_removed_snapshot_refreshes_once_then_reports_not_found(self) -> None:
        refreshes: list[int] = []
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            app = _app(root / "DATA")
            write_files(root / "DATA" / "Snapshots" / "snapshot_a" / "Documents", {"f": "1"})
            with isolated_config(root):
                snapshot = list_snapshots(app)[0]
                shutil.rmtree(snapshot.path)

                def refresh():
                    refreshes.append(1)
                    return list_snapshots(app)

                result = _quiet_manager().delete_snapshot(snapshot, refresh=refresh)

        self.assertFalse(result.ok)
        self.assertEqual(result.kind, ErrorKind.NOT_FOUND)
        self.assertEqual(refreshes, [1])

    def test_delete_all_skips_apps_that_fail_validation(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            valid_app = _app(root / "DATA-1", app_id="B1")
            stale_app = _app(root / "DATA-2", app_id="B2", bundle_identifier="com.example.stale")
            for name in ("snapshot_a", "snapshot_b"):
                write_files(root / "DATA-1" / "Snapshots" / name / "Documents", {"f": "1"})
            write_files(root / "DATA-2" / "Snapshots" / "snapshot_c" / "Documents", {"f": "1"})

            def ensure_valid(app: Application) -> Application | None:
                return app if app.id == "B1" else None

            with isolated_config(root):
                result = _quiet_manager().delete_all_snapshots([valid_app, stale_app], ensure_valid)

            self.assertTrue(result.ok)
            self.assertEqual(result.count, 2)
            self.assertEqual(list((root / "DATA-1" / "Snapshots").iterdir()), [])
            self.assertTrue((root / "DATA-2" / "Snapshots" / "snapshot_c").exists())

    def test_delete_all_does_not_validate_apps_without_snapshots(self) -> None:
        validated: list[str] = []
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            with_snapshots = _app(root / "DATA-1", app_id="B1")
            without_snapshots = _app(root / "DATA-2", app_id="B2", bundle_identifier="com.example.fresh")
            no_container = Application(id="B3", name="NoData", bundle_identifier="com.example.none", device_id="DEV")
            write_files(root / "DATA-1" / "Snapshots" / "snapshot_a" / "Documents", {"f": "1"})
            write_files(root / "DATA-2" / "Documents", {"f": "1"})

            def ensure_valid(app: Application) -> Application | None:
                validated.append(app.id)
                return app

            with isolated_config(root):
                result = _quiet_manager().delete_all_snapshots(
                    [with_snapshots, without_snapshots, no_container], ensure_valid
                )

        self.assertTrue(result.ok)
        self.assertEqual(result.count, 1)
        self.assertEqual(validated, ["B1"])

    def test_rename_only_touches_sidecar_metadata(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            app = _app(root / "DATA")
            write_files(root / "DATA" / "Snapshots" / "snapshot_a" / "Documents", {"f": "1"})
            manager = _quiet_manager()
            with isolated_config(root):
                snapshot = list_snapshots(app)[0]
                renamed = manager.rename_snapshot(snapshot, "  Before migration ")
                listed = list_snapshots(app)[0]
                cleared = manager.rename_snapshot(renamed, "")
                relisted = list_snapshots(app)[0]

            self.assertEqual(renamed.title, "Before migration")
            self.assertEqual(renamed.path, snapshot.path)
            self.assertTrue(snapshot.path.exists())
            self.assertEqual(listed.display_name, "Before migration")
            self.assertIsNone(cleared.display_name)
            self.assertEqual(relisted.title, "snapshot_a")


if __name__ == "__main__":
    unittest.main()
