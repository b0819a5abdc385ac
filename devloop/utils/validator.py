"""Input validation — checks the task text and stack hint before the loop starts."""

from devloop.errors import ConfigurationError
from devloop.state import VALID_STACKS


def validate_input(task: str) -> str:
    """Validate that the task description is a non-empty string.

    Returns the stripped input on success.
    Raises ConfigurationError if input is empty or whitespace-only.
    """
    if not isinstance(task, str) or not task.strip():
        raise ConfigurationError("Task description must be a non-empty string.")
    return task.strip()


def validate_stack(stack: str | None) -> str | None:
    if stack is None or stack == "":
        return None
    if stack not in VALID_STACKS:
        raise ConfigurationError(f"Invalid --stack '{stack}'. Must be one of: {', '.join(VALID_STACKS)}")
    return stack
