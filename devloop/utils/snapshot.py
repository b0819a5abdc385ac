"""Run snapshot — copies the final artifacts and generated service into runs/<run_id>/."""

import logging
import shutil
from datetime import datetime
from pathlib import Path

from devloop.utils.artifacts import ArtifactStore

logger = logging.getLogger(__name__)


def new_run_id() -> str:
    """Run identifier derived from the start timestamp."""
    return datetime.now().strftime("%Y%m%d-%H%M%S")


class SnapshotManager:
    def __init__(self, runs_dir: Path | str):
        self.runs_dir = Path(runs_dir)

    def snapshot(
        self,
        run_id: str,
        store: ArtifactStore,
        artifacts: tuple[str, ...] | list[str],
        service_dir: Path | None = None,
    ) -> Path:
        """Copy whichever requested artifacts exist, plus the service tree.

        Best-effort: missing files are skipped and copy errors are logged,
        never raised, so a snapshot cannot turn a finished run into a failure.

        Returns the snapshot directory.
        """
        run_dir = self.runs_dir / run_id
        try:
            run_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.warning("Could not create snapshot directory %s: %s", run_dir, exc)
            return run_dir

        for name in artifacts:
            src = store.path(name)
            if not src.is_file():
                continue
            try:
                shutil.copy2(src, run_dir / src.name)
            except OSError as exc:
                logger.warning("Could not snapshot %s: %s", src.name, exc)

        if service_dir is not None and Path(service_dir).is_dir():
            dest = run_dir / "generated" / Path(service_dir).name
            try:
                shutil.copytree(service_dir, dest, symlinks=True, dirs_exist_ok=True)
            except (OSError, shutil.Error) as exc:
                logger.warning("Could not snapshot generated service %s: %s", service_dir, exc)

        return run_dir
