"""Loop state — single source of truth passed through the graph."""

from dataclasses import dataclass
from pathlib import Path
from typing import Literal, TypedDict

VALID_STACKS = ("node", "go", "python")
VALID_DELIVERIES = ("local", "docker")

Terminal = Literal["complete", "blocked", "rejected", "max_iterations", "dry_run"]

# Exit codes per outcome. Success paths are 0; every failure class is distinct.
EXIT_CODES = {
    "complete": 0,
    "dry_run": 0,
    "rejected": 1,
    "configuration_error": 2,
    "generation_failure": 3,
    "blocked": 4,
    "max_iterations": 5,
    "agent_failure": 6,
    "error": 1,
}


@dataclass(frozen=True)
class RunConfig:
    """User input for one run. Immutable after construction."""

    task: str
    stack: str | None = None
    delivery: Literal["local", "docker"] = "local"
    dry_run: bool = False
    max_iterations: int = 3

    @property
    def docker(self) -> bool:
        return self.delivery == "docker"


@dataclass(frozen=True)
class RunOutcome:
    status: str
    snapshot_path: Path | None
    iterations: int

    @property
    def exit_code(self) -> int:
        return EXIT_CODES.get(self.status, 1)

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0


class LoopState(TypedDict):
    task: str  # Original user input. Immutable after init.
    stack: str | None
    docker: bool  # Docker delivery was requested on the command line.
    dry_run: bool
    max_iterations: int
    iteration: int  # Current loop count. Starts at 1.
    revised: bool  # The single revision of this iteration has been spent.
    verified: bool  # Latest VerifyDocument ended in result: pass.
    terminal: Terminal | None
    plan: str
    review: str
    implementation: str
    verify: str
    decision: str
    feedback: list[dict]  # {"iteration": int, "decision": str}, oldest first.


def initial_state(config: RunConfig) -> LoopState:
    """Build the state a run starts from."""
    return {
        "task": config.task,
        "stack": config.stack,
        "docker": config.docker,
        "dry_run": config.dry_run,
        "max_iterations": config.max_iterations,
        "iteration": 1,
        "revised": False,
        "verified": False,
        "terminal": None,
        "plan": "",
        "review": "",
        "implementation": "",
        "verify": "",
        "decision": "",
        "feedback": [],
    }
