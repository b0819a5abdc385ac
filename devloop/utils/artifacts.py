"""Artifact documents on disk and the literal markers the controller matches.

Each artifact has exactly one current version; writing overwrites it. The
controller keeps the authoritative text in LoopState and persists it here at
produce time so external agents can read it from the working directory.
"""

import logging
import re
from pathlib import Path

logger = logging.getLogger(__name__)

ARTIFACT_FILES = {
    "plan": "PLAN.md",
    "review": "REVIEW.md",
    "implementation": "IMPLEMENTATION.md",
    "verify": "VERIFY.md",
    "decision": "DECISION.md",
    "feedback": "SUPERVISOR_FEEDBACK.md",
}

# Artifact each agent role owns.
ROLE_ARTIFACTS = {
    "planner": "plan",
    "reviewer": "review",
    "implementer": "implementation",
    "supervisor": "decision",
}

VERDICT_APPROVE = "VERDICT: APPROVE"
VERDICT_REQUEST_CHANGES = "VERDICT: REQUEST_CHANGES"

_COMPLETE_RE = re.compile(r"^STATUS: COMPLETE", re.MULTILINE)
_BLOCKED_RE = re.compile(r"^STATUS: BLOCKED", re.MULTILINE)


class ArtifactStore:
    """Typed accessors over the named artifact files in a working directory."""

    def __init__(self, workdir: Path | str):
        self.workdir = Path(workdir)

    def path(self, name: str) -> Path:
        return self.workdir / ARTIFACT_FILES[name]

    def read(self, name: str) -> str | None:
        path = self.path(name)
        if not path.is_file():
            return None
        return path.read_text(encoding="utf-8")

    def write(self, name: str, text: str) -> Path:
        path = self.path(name)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return path

    def exists(self, name: str) -> bool:
        return self.path(name).is_file()

    def reset(self) -> None:
        """Remove artifacts left behind by a previous run."""
        for name in ARTIFACT_FILES:
            path = self.path(name)
            if path.is_file():
                logger.debug("Removing stale %s", path.name)
                path.unlink()


def has_request_changes(review: str) -> bool:
    return VERDICT_REQUEST_CHANGES in review


def is_approved(review: str) -> bool:
    return VERDICT_APPROVE in review


def plan_field(plan: str, field: str) -> str | None:
    """Return the first word after a line-leading ``field:`` in the plan.

    Returns "" when the field line exists but has no value, None when absent.
    """
    match = re.search(rf"^{re.escape(field)}:(.*)$", plan, re.MULTILINE)
    if match is None:
        return None
    words = match.group(1).split()
    return words[0] if words else ""


def is_complete(decision: str) -> bool:
    """True if any line starts with ``STATUS: COMPLETE``."""
    return _COMPLETE_RE.search(decision) is not None


def is_blocked(decision: str) -> bool:
    return _BLOCKED_RE.search(decision) is not None
