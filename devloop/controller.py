"""Iteration controller — runs the loop graph once per run and snapshots the outcome."""

import logging
from pathlib import Path

from devloop.agents.invoker import AgentInvoker
from devloop.errors import ConfigurationError, DevloopError
from devloop.graph import LoopContext, build_graph
from devloop.state import LoopState, RunConfig, RunOutcome, initial_state
from devloop.utils.artifacts import ARTIFACT_FILES, ArtifactStore
from devloop.utils.snapshot import SnapshotManager, new_run_id
from devloop.verify.engine import VerificationEngine

logger = logging.getLogger(__name__)

# Terminal states that end before implementation keep only the planning artifacts.
PLANNING_ARTIFACTS = ("plan", "review")
ALL_ARTIFACTS = tuple(ARTIFACT_FILES)

# Graph steps one iteration can take: planner, reviewer, reviser, reviewer, plan_gate,
# implementer, verifier, supervisor, increment, plus a terminal node.
STEPS_PER_ITERATION = 10

OUTCOME_MESSAGES = {
    "complete": "✅ Supervisor marked COMPLETE.",
    "blocked": "🛑 Supervisor marked BLOCKED.",
    "max_iterations": "🛑 Reached max iterations ({max_iterations}). Stopping.",
    "rejected": "❌ Plan not approved.",
    "dry_run": "✅ Dry-run complete.",
}


class IterationController:
    def __init__(
        self,
        invoker: AgentInvoker,
        store: ArtifactStore,
        verifier: VerificationEngine,
        snapshots: SnapshotManager,
        service_dir: Path,
        feedback_lines: int = 200,
        log_path: Path | None = None,
    ):
        self.store = store
        self.snapshots = snapshots
        self.service_dir = Path(service_dir)
        self.log_path = log_path
        self.graph = build_graph(
            LoopContext(
                invoker=invoker,
                store=store,
                verifier=verifier,
                service_dir=self.service_dir,
                feedback_lines=feedback_lines,
            )
        )

    def run(self, config: RunConfig, run_id: str | None = None) -> RunOutcome:
        """Drive the loop to a terminal state and snapshot what it produced.

        Fatal errors (configuration, generation, agent failures) stop the run
        immediately. A configuration error keeps only the planning artifacts;
        the other fatal errors snapshot whatever the run produced so far.
        """
        run_id = run_id or new_run_id()
        self.store.reset()

        state: LoopState = initial_state(config)
        try:
            for values in self.graph.stream(
                state,
                {"recursion_limit": config.max_iterations * STEPS_PER_ITERATION},
                stream_mode="values",
            ):
                state = values
                logger.debug("iteration=%d terminal=%s", state["iteration"], state["terminal"])
        except DevloopError as exc:
            logger.error("🧨 RUN FAILED (%s): %s", exc.outcome, exc)
            if isinstance(exc, ConfigurationError):
                snapshot_path = self.snapshots.snapshot(run_id, self.store, PLANNING_ARTIFACTS)
            else:
                snapshot_path = self.snapshots.snapshot(
                    run_id, self.store, ALL_ARTIFACTS, service_dir=self.service_dir
                )
            self._report(snapshot_path)
            return RunOutcome(status=exc.outcome, snapshot_path=snapshot_path, iterations=state["iteration"])

        terminal = state["terminal"]
        if terminal is None:
            raise RuntimeError("Loop graph ended without reaching a terminal state.")

        if terminal in ("rejected", "dry_run"):
            snapshot_path = self.snapshots.snapshot(run_id, self.store, PLANNING_ARTIFACTS)
        else:
            snapshot_path = self.snapshots.snapshot(
                run_id, self.store, ALL_ARTIFACTS, service_dir=self.service_dir
            )

        logger.info(OUTCOME_MESSAGES[terminal].format(max_iterations=config.max_iterations))
        self._report(snapshot_path)
        return RunOutcome(status=terminal, snapshot_path=snapshot_path, iterations=state["iteration"])

    def _report(self, snapshot_path: Path) -> None:
        logger.info("Snapshot: %s/", snapshot_path)
        if self.log_path is not None:
            logger.info("Log: %s", self.log_path)
