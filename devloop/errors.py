"""Fatal error taxonomy. Soft failures (verification) are recorded, not raised."""


class DevloopError(Exception):
    """Base class for errors that abort a run."""

    outcome = "error"


class ConfigurationError(DevloopError, ValueError):
    """Invalid input or configuration: bad stack hint, missing plan fields."""

    outcome = "configuration_error"


class GenerationFailure(DevloopError):
    """The implementer returned without producing the generated service."""

    outcome = "generation_failure"


class AgentInvocationError(DevloopError):
    """The external agent capability could not be run or exited non-zero."""

    outcome = "agent_failure"
