"""Entry point: validates input, sets up the run transcript, runs the loop."""

import argparse
import logging
import sys
from pathlib import Path

from devloop.agents.invoker import build_invoker
from devloop.config import get_config, get_verify_config
from devloop.controller import IterationController
from devloop.errors import ConfigurationError
from devloop.state import EXIT_CODES, VALID_STACKS, RunConfig
from devloop.utils.artifacts import ArtifactStore
from devloop.utils.snapshot import SnapshotManager, new_run_id
from devloop.utils.validator import validate_input, validate_stack
from devloop.verify.engine import VerificationEngine

logger = logging.getLogger("devloop")

EPILOG = """\
Examples:
  devloop --docker --stack node "Build a minimal Node API with /health (db check) and JSON 404."
  devloop --dry-run --stack node "Plan an API design for ..."
"""


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="devloop",
        description="Plan → Review → Implement → Verify → Decide loop around external coding agents.",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--dry-run", action="store_true", help="Stop after plan approval; no implementation")
    parser.add_argument("--stack", default=None, metavar="|".join(VALID_STACKS), help="Preferred implementation stack")
    parser.add_argument(
        "--docker",
        action="store_true",
        help="Request Dockerfile + docker-compose delivery with a database, verified by smoke test",
    )
    parser.add_argument("task", nargs="+", help="Description of the app to build")
    return parser.parse_args(argv)


def setup_logging(log_path: Path) -> list[logging.Handler]:
    """Send the run transcript to the console and, appended, to ``log_path``.

    Returns the installed handlers so the caller can detach them with
    ``teardown_logging`` when the run ends.
    """
    log_path.parent.mkdir(parents=True, exist_ok=True)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(logging.Formatter("[devloop] %(message)s"))

    transcript = logging.FileHandler(log_path, mode="a", encoding="utf-8")
    transcript.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))

    root = logging.getLogger()
    root.setLevel(logging.INFO)
    handlers = [console, transcript]
    for handler in handlers:
        root.addHandler(handler)
    return handlers


def teardown_logging(handlers: list[logging.Handler]) -> None:
    root = logging.getLogger()
    for handler in handlers:
        root.removeHandler(handler)
        handler.close()


def build_controller(config: dict, log_path: Path | None = None) -> IterationController:
    workdir = Path(config.get("workdir", ".")).resolve()
    store = ArtifactStore(workdir)
    return IterationController(
        invoker=build_invoker(config, store),
        store=store,
        verifier=VerificationEngine.from_config(get_verify_config()),
        snapshots=SnapshotManager(workdir / config.get("runs_dir", "runs")),
        service_dir=workdir / config.get("generated_dir", "generated/app"),
        feedback_lines=config.get("feedback_tail_lines", 200),
        log_path=log_path,
    )


def run(task: str, stack: str | None = None, docker: bool = False, dry_run: bool = False) -> int:
    """Run the full loop on a task description. Returns the process exit code."""
    config = get_config()
    run_id = new_run_id()
    workdir = Path(config.get("workdir", ".")).resolve()
    log_path = workdir / config.get("runs_dir", "runs") / "_logs" / f"{run_id}.log"
    handlers = setup_logging(log_path)
    logger.info("🧾 Log: %s", log_path)

    try:
        try:
            run_config = RunConfig(
                task=validate_input(task),
                stack=validate_stack(stack),
                delivery="docker" if docker else "local",
                dry_run=dry_run,
                max_iterations=int(config.get("max_iterations", 3)),
            )
            controller = build_controller(config, log_path=log_path)
        except ConfigurationError as exc:
            logger.error("❌ %s", exc)
            return EXIT_CODES[exc.outcome]

        outcome = controller.run(run_config, run_id=run_id)
        logger.info("Outcome: %s (iterations: %d, exit %d)", outcome.status, outcome.iterations, outcome.exit_code)
        return outcome.exit_code
    finally:
        teardown_logging(handlers)


def main(argv: list[str] | None = None) -> int:
    """CLI entry point — accepts the task description as positional arguments."""
    args = parse_args(argv)
    return run(" ".join(args.task), stack=args.stack, docker=args.docker, dry_run=args.dry_run)


if __name__ == "__main__":
    raise SystemExit(main())
