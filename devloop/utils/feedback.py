"""Supervisor feedback log — accumulated decisions re-injected into later iterations."""


def append_feedback(entries: list[dict], iteration: int, decision: str) -> list[dict]:
    """Return a new entry list with this iteration's decision appended."""
    return entries + [{"iteration": iteration, "decision": decision}]


def render_feedback(entries: list[dict]) -> str:
    """Render the log the way it is persisted to SUPERVISOR_FEEDBACK.md."""
    blocks = []
    for entry in entries:
        blocks.append(f"\n## Iteration {entry['iteration']} decision\n{entry['decision'].rstrip()}\n")
    return "".join(blocks)


def feedback_tail(entries: list[dict], lines: int = 200) -> str:
    """Return the most recent ``lines`` lines of the rendered log."""
    rendered = render_feedback(entries)
    if not rendered.strip():
        return ""
    return "\n".join(rendered.splitlines()[-lines:])
