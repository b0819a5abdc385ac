"""LangGraph StateGraph definition for the Plan → Review → Implement → Verify → Decide loop."""

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path

from langgraph.graph import END, StateGraph

from devloop.agents import prompts
from devloop.agents.invoker import AgentInvoker
from devloop.errors import ConfigurationError, GenerationFailure
from devloop.state import LoopState
from devloop.utils.artifacts import (
    ArtifactStore,
    has_request_changes,
    is_approved,
    is_blocked,
    is_complete,
    plan_field,
)
from devloop.utils.buildability import check_buildability
from devloop.utils.feedback import append_feedback, feedback_tail, render_feedback
from devloop.verify.document import crashed, skipped_local
from devloop.verify.engine import VerificationEngine

logger = logging.getLogger(__name__)

# Directories the implementer may leave behind that are never part of the snapshot.
PRUNED_DIRS = ("node_modules",)

DECISION_ECHO_LINES = 220


@dataclass
class LoopContext:
    """Collaborators the graph nodes close over."""

    invoker: AgentInvoker
    store: ArtifactStore
    verifier: VerificationEngine
    service_dir: Path
    feedback_lines: int = 200


# --- Routing (pure functions of state) ---


def _route_after_review(state: LoopState) -> str:
    """Conditional edge after the Reviewer.

    1. REQUEST_CHANGES and the revision not yet spent → revise (once per iteration)
    2. no APPROVE verdict → reject
    3. otherwise → gate
    """
    review = state["review"]
    if has_request_changes(review) and not state["revised"]:
        return "revise"
    if not is_approved(review):
        return "reject"
    return "gate"


def _route_after_gate(state: LoopState) -> str:
    return "dry_run" if state["dry_run"] else "implement"


def _route_after_decision(state: LoopState) -> str:
    """Conditional edge after the Supervisor.

    Priority order: COMPLETE, BLOCKED, iteration budget, continue.
    """
    decision = state["decision"]
    if is_complete(decision):
        return "complete"
    if is_blocked(decision):
        return "blocked"
    if state["iteration"] >= state["max_iterations"]:
        return "timeout"
    return "increment"


def _increment_iteration(state: LoopState) -> dict:
    """Passthrough node that bumps the iteration counter before re-entering the Planner."""
    return {"iteration": state["iteration"] + 1, "revised": False}


def _terminal(outcome: str):
    def _node(state: LoopState) -> dict:
        return {"terminal": outcome}

    _node.__name__ = f"_set_{outcome}"
    return _node


# --- Nodes with side effects ---


def _make_nodes(ctx: LoopContext) -> dict:
    store = ctx.store

    def _produce(name: str, role: str, message: str) -> str:
        text = ctx.invoker.invoke(role, message)
        store.write(name, text)
        return text

    def _tail(state: LoopState) -> str:
        return feedback_tail(state["feedback"], ctx.feedback_lines)

    def plan_node(state: LoopState) -> dict:
        logger.info("==============================")
        logger.info("🧭 ITERATION %d / %d", state["iteration"], state["max_iterations"])
        logger.info("==============================")
        logger.info("▶️ Planner")
        message = prompts.build_planner_message(
            state["task"], state["stack"], state["docker"], feedback=_tail(state)
        )
        return {"plan": _produce("plan", "planner", message)}

    def review_node(state: LoopState) -> dict:
        if state["revised"]:
            logger.info("▶️ Reviewer (re-check)")
            message = prompts.REREVIEW_MESSAGE
        else:
            logger.info("▶️ Reviewer")
            message = prompts.REVIEW_MESSAGE
        return {"review": _produce("review", "reviewer", message)}

    def revise_node(state: LoopState) -> dict:
        logger.info("🔁 Planner (revision)")
        return {"plan": _produce("plan", "planner", prompts.REVISION_MESSAGE), "revised": True}

    def reject_node(state: LoopState) -> dict:
        logger.error("❌ Plan not approved. Snapshotting and stopping.")
        return {"terminal": "rejected"}

    def gate_node(state: LoopState) -> dict:
        issues = check_buildability(state["plan"])
        if issues:
            raise ConfigurationError("; ".join(issues))
        return {}

    def dry_run_node(state: LoopState) -> dict:
        logger.info("✅ Dry-run complete. Snapshotting plan artifacts.")
        return {"terminal": "dry_run"}

    def implement_node(state: LoopState) -> dict:
        logger.info("▶️ Implementer")
        service_dir = ctx.service_dir
        shutil.rmtree(service_dir, ignore_errors=True)
        service_dir.parent.mkdir(parents=True, exist_ok=True)

        message = prompts.build_implementer_message(
            state["stack"], state["docker"], feedback=_tail(state), generated_dir=_display_path(ctx),
        )
        text = ctx.invoker.invoke("implementer", message)

        if not service_dir.is_dir():
            raise GenerationFailure(f"{_display_path(ctx)} missing after implementer")

        for pruned in PRUNED_DIRS:
            shutil.rmtree(service_dir / pruned, ignore_errors=True)

        nested = service_dir / "IMPLEMENTATION.md"
        if nested.is_file():
            text = nested.read_text(encoding="utf-8")
        store.write("implementation", text)
        return {"implementation": text}

    def verify_node(state: LoopState) -> dict:
        logger.info("▶️ Verify (smoke test)")
        delivery = plan_field(state["plan"], "delivery")
        if delivery == "docker":
            try:
                doc = ctx.verifier.run(ctx.service_dir)
            except Exception as exc:  # noqa: BLE001
                logger.exception("Verification crashed")
                doc = crashed(exc)
        else:
            doc = skipped_local()

        rendered = doc.render()
        store.write("verify", rendered)
        verified = doc.result == "pass"
        if doc.result == "fail":
            logger.warning("⚠️ Verify failed; continuing to supervisor so it can decide.")
        return {"verify": rendered, "verified": verified}

    def decide_node(state: LoopState) -> dict:
        logger.info("▶️ Supervisor")
        decision = _produce("decision", "supervisor", prompts.SUPERVISOR_MESSAGE)

        feedback = append_feedback(state["feedback"], state["iteration"], decision)
        store.write("feedback", render_feedback(feedback))

        logger.info("---- Supervisor Decision ----")
        for line in decision.splitlines()[:DECISION_ECHO_LINES]:
            logger.info("%s", line)
        logger.info("----------------------------")
        return {"decision": decision, "feedback": feedback}

    # Node names must not collide with LoopState keys.
    return {
        "planner": plan_node,
        "reviewer": review_node,
        "reviser": revise_node,
        "rejected": reject_node,
        "plan_gate": gate_node,
        "dry_run_exit": dry_run_node,
        "implementer": implement_node,
        "verifier": verify_node,
        "supervisor": decide_node,
        "increment": _increment_iteration,
        "complete": _terminal("complete"),
        "blocked": _terminal("blocked"),
        "timeout": _terminal("max_iterations"),
    }


def _display_path(ctx: LoopContext) -> str:
    try:
        return ctx.service_dir.relative_to(ctx.store.workdir).as_posix()
    except ValueError:
        return str(ctx.service_dir)


# --- Build the graph ---


def build_graph(ctx: LoopContext):
    workflow = StateGraph(LoopState)

    for name, node in _make_nodes(ctx).items():
        workflow.add_node(name, node)

    workflow.set_entry_point("planner")

    workflow.add_edge("planner", "reviewer")
    workflow.add_conditional_edges(
        "reviewer",
        _route_after_review,
        {"revise": "reviser", "reject": "rejected", "gate": "plan_gate"},
    )
    workflow.add_edge("reviser", "reviewer")
    workflow.add_conditional_edges(
        "plan_gate",
        _route_after_gate,
        {"dry_run": "dry_run_exit", "implement": "implementer"},
    )
    workflow.add_edge("implementer", "verifier")
    workflow.add_edge("verifier", "supervisor")
    workflow.add_conditional_edges(
        "supervisor",
        _route_after_decision,
        {
            "complete": "complete",
            "blocked": "blocked",
            "timeout": "timeout",
            "increment": "increment",
        },
    )
    workflow.add_edge("increment", "planner")

    for terminal in ("rejected", "dry_run_exit", "complete", "blocked", "timeout"):
        workflow.add_edge(terminal, END)

    return workflow.compile()
