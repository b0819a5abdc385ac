"""docker compose lifecycle for the generated service.

Every command is fault tolerant: its combined output (or the reason it could
not run) goes into the VerifyDocument and the protocol carries on.
"""

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

from devloop.verify.document import VerifyDocument

logger = logging.getLogger(__name__)

COMPOSE_FILES = ("docker-compose.yml", "docker-compose.yaml", "compose.yml", "compose.yaml")


@dataclass
class CommandResult:
    returncode: int
    output: str


def run_command(args: list[str], cwd: Path) -> CommandResult:
    """Run a blocking command, merging stderr into stdout."""
    try:
        proc = subprocess.run(
            args,
            cwd=str(cwd),
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace",
        )
    except OSError as exc:
        return CommandResult(returncode=127, output=f"{args[0]}: {exc}")
    return CommandResult(returncode=proc.returncode, output=proc.stdout)


def find_compose_file(service_dir: Path) -> Path | None:
    for name in COMPOSE_FILES:
        candidate = service_dir / name
        if candidate.is_file():
            return candidate
    return None


class ComposeStack:
    """Scoped handle on the running stack: entering brings it up, leaving always tears it down."""

    def __init__(self, service_dir: Path, doc: VerifyDocument, runner=run_command):
        self.service_dir = Path(service_dir)
        self.doc = doc
        self._runner = runner

    def compose(self, *args: str) -> CommandResult:
        """Run ``docker compose <args>`` and append its output to the document."""
        result = self._runner(["docker", "compose", *args], self.service_dir)
        if result.output:
            self.doc.append(result.output)
        if result.returncode != 0:
            logger.warning("docker compose %s exited %d", " ".join(args), result.returncode)
        return result

    def up(self) -> CommandResult:
        self.doc.append("## Setup", "docker compose up -d --build")
        result = self.compose("up", "-d", "--build")
        self.doc.append("")
        return result

    def logs(self) -> CommandResult:
        return self.compose("logs", "--no-color")

    def stop(self, service: str) -> CommandResult:
        self.doc.append("## Stop DB", f"docker compose stop {service}")
        result = self.compose("stop", service)
        self.doc.append("")
        return result

    def down(self) -> CommandResult:
        self.doc.append("## Cleanup", "docker compose down -v")
        result = self.compose("down", "-v")
        self.doc.append("")
        return result

    def __enter__(self) -> "ComposeStack":
        self.up()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        try:
            self.down()
        except Exception as teardown_exc:  # noqa: BLE001
            # Teardown never changes the verdict or masks the original error.
            logger.warning("Teardown failed: %r", teardown_exc)
            self.doc.append(f"teardown error: {teardown_exc!r}", "")
        return False
