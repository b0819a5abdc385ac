"""Tests for devloop.utils.snapshot.SnapshotManager."""

import re
import shutil
from unittest.mock import patch

from devloop.utils.snapshot import SnapshotManager, new_run_id


class TestSnapshot:
    def test_copies_requested_artifacts_only(self, store, workdir):
        store.write("plan", "p")
        store.write("review", "r")
        store.write("implementation", "i")

        run_dir = SnapshotManager(workdir / "runs").snapshot("run1", store, ("plan", "review"))

        assert sorted(p.name for p in run_dir.iterdir()) == ["PLAN.md", "REVIEW.md"]

    def test_tolerates_missing_artifacts(self, store, workdir):
        store.write("plan", "p")
        run_dir = SnapshotManager(workdir / "runs").snapshot(
            "run1", store, ("plan", "review", "decision", "verify")
        )
        assert [p.name for p in run_dir.iterdir()] == ["PLAN.md"]

    def test_copies_service_tree(self, store, workdir, service_dir):
        (service_dir / "src").mkdir(parents=True)
        (service_dir / "src" / "server.js").write_text("listen(3000)")

        run_dir = SnapshotManager(workdir / "runs").snapshot("run1", store, (), service_dir=service_dir)

        assert (run_dir / "generated" / "app" / "src" / "server.js").read_text() == "listen(3000)"

    def test_missing_service_dir_ignored(self, store, workdir, service_dir):
        run_dir = SnapshotManager(workdir / "runs").snapshot("run1", store, (), service_dir=service_dir)
        assert not (run_dir / "generated").exists()

    def test_copy_errors_are_not_raised(self, store, workdir, caplog):
        store.write("plan", "p")
        with patch("devloop.utils.snapshot.shutil.copy2", side_effect=PermissionError("denied")):
            run_dir = SnapshotManager(workdir / "runs").snapshot("run1", store, ("plan",))

        assert run_dir == workdir / "runs" / "run1"
        assert "Could not snapshot PLAN.md" in caplog.text

    def test_tree_errors_are_not_raised(self, store, workdir, service_dir, caplog):
        service_dir.mkdir(parents=True)
        with patch("devloop.utils.snapshot.shutil.copytree", side_effect=shutil.Error("partial")):
            SnapshotManager(workdir / "runs").snapshot("run1", store, (), service_dir=service_dir)

        assert "Could not snapshot generated service" in caplog.text


class TestRunId:
    def test_timestamp_format(self):
        assert re.fullmatch(r"\d{8}-\d{6}", new_run_id())
