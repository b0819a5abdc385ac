"""Shared fixtures for the devloop test suite."""

from pathlib import Path
from unittest.mock import patch

import pytest

from devloop.controller import IterationController
from devloop.state import RunConfig, initial_state
from devloop.utils.artifacts import ArtifactStore
from devloop.utils.snapshot import SnapshotManager
from devloop.verify.document import VerifyDocument

PLAN_DOCKER = "# Plan\n\nimplementation_stack: node\ndelivery: docker\n\n## Endpoints\n- GET /health\n"
PLAN_LOCAL = "# Plan\n\nimplementation_stack: python\ndelivery: local\n"
PLAN_NO_DELIVERY = "# Plan\n\nimplementation_stack: go\n"

REVIEW_APPROVE = "# Review\n\nLooks implementable.\n\nVERDICT: APPROVE\n"
REVIEW_CHANGES = "# Review\n\nVERDICT: REQUEST_CHANGES\n\n- Name the database.\n"

DECISION_COMPLETE = "# Decision\n\nSTATUS: COMPLETE\n"
DECISION_BLOCKED = "# Decision\n\nSTATUS: BLOCKED\n\nDocker is unavailable on this host.\n"
DECISION_CONTINUE = "# Decision\n\nSTATUS: CONTINUE\n\n- Return JSON from the 404 handler.\n"


class ScriptedInvoker:
    """Deterministic AgentInvoker returning scripted artifact text per role.

    Replies are consumed in order; the last one repeats. A callable reply is
    called with the message, which lets the implementer script write files.
    """

    def __init__(self, script: dict):
        self.script = {role: list(replies) for role, replies in script.items()}
        self.calls = []

    def invoke(self, role: str, message: str) -> str:
        self.calls.append((role, message))
        replies = self.script[role]
        reply = replies.pop(0) if len(replies) > 1 else replies[0]
        if callable(reply):
            return reply(message)
        return reply

    def roles(self) -> list[str]:
        return [role for role, _ in self.calls]

    def messages(self, role: str) -> list[str]:
        return [message for r, message in self.calls if r == role]


class FakeVerifier:
    """Stands in for VerificationEngine; returns a canned result."""

    def __init__(self, result: str = "pass"):
        self.result = result
        self.calls = []

    def run(self, service_dir: Path) -> VerifyDocument:
        self.calls.append(Path(service_dir))
        doc = VerifyDocument(mode="docker")
        doc.append("## /health (DB up) — expect ok", "HTTP/1.1 200 OK")
        return doc.finish(self.result)


def write_service(service_dir: Path, summary: str = "# Implementation\n\nServer on :3000\n"):
    """Implementer reply that creates the generated service like a real agent would."""

    def _reply(message: str) -> str:
        service_dir.mkdir(parents=True, exist_ok=True)
        (service_dir / "docker-compose.yml").write_text("services: {}\n")
        return summary

    return _reply


@pytest.fixture
def workdir(tmp_path) -> Path:
    return tmp_path


@pytest.fixture
def store(workdir) -> ArtifactStore:
    return ArtifactStore(workdir)


@pytest.fixture
def service_dir(workdir) -> Path:
    return workdir / "generated" / "app"


@pytest.fixture
def make_controller(store, service_dir, workdir):
    """Factory building a controller around a scripted invoker and fake verifier."""

    def _make(invoker, verifier=None):
        return IterationController(
            invoker=invoker,
            store=store,
            verifier=verifier or FakeVerifier(),
            snapshots=SnapshotManager(workdir / "runs"),
            service_dir=service_dir,
        )

    return _make


@pytest.fixture
def base_state():
    """Minimal valid LoopState for a local run."""
    return initial_state(RunConfig(task="Build a todo REST API"))


@pytest.fixture
def mock_config():
    """Patch the config singleton with test-friendly values."""
    test_config = {
        "max_iterations": 3,
        "feedback_tail_lines": 200,
        "agent_backend": "cli",
        "agent_command": ["openclaw", "agent"],
        "chat_models": {"reviewer": "claude-sonnet-4-6", "planner": "gemini-2.0-flash"},
        "llm_max_retries": 2,
        "contract_guidance_enabled": True,
        "verify": {"port": 3000, "health_path": "/health", "db_service": "db"},
    }
    with patch("devloop.config._config", test_config):
        yield test_config
