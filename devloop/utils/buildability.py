"""Plan gate — deterministic structural validation of the approved plan.

Returns a list of issues. If empty, the plan carries everything the
implementation and verification steps read from it.
"""

import re

REQUIRED_PLAN_FIELDS = ("implementation_stack", "delivery")


def check_buildability(plan: str) -> list[str]:
    """Check whether the plan can be handed to the implementer.

    Only the line-leading fields the controller consumes are checked; the
    rest of the plan is free-form and judged by the reviewer.

    Returns a list of issue strings. Empty list = buildable.
    """
    if not isinstance(plan, str) or not plan.strip():
        return ["Plan is empty."]

    issues = []
    for field in REQUIRED_PLAN_FIELDS:
        if not re.search(rf"^{field}:", plan, re.MULTILINE):
            issues.append(f"PLAN.md missing {field}")
    return issues
