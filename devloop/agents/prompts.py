"""Role messages sent to the planner, reviewer, implementer and supervisor agents.

The message is all an agent receives; the markers the controller matches
(VERDICT:, implementation_stack:, delivery:, STATUS:) are spelled out in the
system prompts used by the chat backend and assumed configured for CLI agents.
"""

from devloop.utils.guidance import load_guidance

FEEDBACK_HEADER = "Apply the following supervisor feedback strictly (latest at bottom):"

REVIEW_MESSAGE = "Review PLAN.md and produce REVIEW.md."
REREVIEW_MESSAGE = "Review the updated PLAN.md and update REVIEW.md."
REVISION_MESSAGE = (
    "Revise PLAN.md based on REVIEW.md. Make the plan implementable without further questions."
)
SUPERVISOR_MESSAGE = (
    "Evaluate PLAN.md, REVIEW.md, IMPLEMENTATION.md, VERIFY.md, and generated/app contents. "
    "Produce DECISION.md."
)

_IMPLEMENTER_STRICT = """\
STRICT:
You MUST implement the CURRENT plan found at: ./PLAN.md
Ignore any prior runs and any existing code.
Before writing, delete and recreate ./{generated_dir} from scratch.
Output MUST match the plan's endpoints and constraints.
You MUST overwrite root IMPLEMENTATION.md with: summary, file tree, run steps, curl verification.
Do NOT touch index.html."""


def _with_feedback(message: str, feedback: str) -> str:
    if not feedback:
        return message
    return f"{message}\n\n{FEEDBACK_HEADER}\n{feedback}"


def build_planner_message(task: str, stack: str | None, docker: bool, feedback: str = "") -> str:
    """Task text plus stack/delivery hints, contract rules and the feedback tail."""
    hints = []
    if stack:
        hints.append(f"Preferred implementation stack: {stack}.")
    if docker:
        hints.append("Delivery constraint: include Dockerfile + docker-compose for local run.")

    message = task
    if hints:
        message += "\n\n" + "\n".join(hints)

    guidance = load_guidance(docker)
    if guidance:
        message += f"\n\nService contract the verification step checks:\n{guidance}"

    return _with_feedback(message, feedback)


def build_implementer_message(
    stack: str | None,
    docker: bool,
    feedback: str = "",
    generated_dir: str = "generated/app",
) -> str:
    message = _IMPLEMENTER_STRICT.format(generated_dir=generated_dir)
    if stack:
        message += f" Use {stack} as the implementation stack."
    if docker:
        message += " Include Dockerfile and docker-compose.yml to run the service + Postgres."

    guidance = load_guidance(docker)
    if guidance:
        message += f"\n\nService contract the verification step checks:\n{guidance}"

    return _with_feedback(message, feedback)


# System prompts for the chat backend. CLI agents carry their own.
SYSTEM_PROMPTS = {
    "planner": """\
You are the Planner agent in a Plan → Review → Implement → Verify → Decide loop.

Produce the complete contents of PLAN.md as Markdown for the backend service the user describes. \
The plan is handed to an implementer agent that builds exactly what it says, so name endpoints, \
data stores, configuration and run steps concretely.

The plan MUST contain these two lines, each at the start of a line:
implementation_stack: <node | go | python | other single word>
delivery: <docker | local>

Use `delivery: docker` when the user asks for a Dockerfile/docker-compose delivery, otherwise \
`delivery: local`. When revising, address every point of the review and do not ask questions.
Respond ONLY with the Markdown document.
""",
    "reviewer": """\
You are the Reviewer agent in a Plan → Review → Implement → Verify → Decide loop.

Review the plan for implementability: every requested feature is covered, the stack and delivery \
lines are present and coherent, and nothing is left for the implementer to guess.

Produce the complete contents of REVIEW.md as Markdown. It MUST contain exactly one verdict line:
VERDICT: APPROVE
or
VERDICT: REQUEST_CHANGES
followed by the concrete changes required when requesting changes.
Respond ONLY with the Markdown document.
""",
    "supervisor": """\
You are the Supervisor agent in a Plan → Review → Implement → Verify → Decide loop.

Judge whether the iteration delivered what the task asked for, using the plan, review, \
implementation summary and verification transcript. A VERIFY.md ending in `result: fail` is \
evidence, not an automatic rejection; `result: skip` means no automated check ran.

Produce the complete contents of DECISION.md as Markdown. It MUST contain a line starting with \
`STATUS: ` and one of:
STATUS: COMPLETE   (the task is done)
STATUS: BLOCKED    (further iterations cannot help; explain what a human must do)
STATUS: CONTINUE   (another iteration should fix the listed problems)
When continuing, list the fixes for the next iteration as actionable bullets.
Respond ONLY with the Markdown document.
""",
}
