"""Agent invokers — the single seam between the loop and the external agents.

Every backend implements ``invoke(role, message) -> text`` where the text is
the role's artifact (PLAN.md for the planner, REVIEW.md for the reviewer, ...).
"""

import logging
import subprocess
from pathlib import Path
from typing import Protocol

from langchain_anthropic import ChatAnthropic
from langchain_google_genai import ChatGoogleGenerativeAI

from devloop.agents.prompts import SYSTEM_PROMPTS
from devloop.errors import AgentInvocationError, ConfigurationError
from devloop.utils.artifacts import ARTIFACT_FILES, ROLE_ARTIFACTS, ArtifactStore
from devloop.utils.parsing import invoke_with_retry, strip_fences

logger = logging.getLogger(__name__)

VALID_ROLES = tuple(ROLE_ARTIFACTS)

# Artifacts a chat model sees alongside its message, since it cannot read the workdir.
ROLE_CONTEXT = {
    "planner": ("plan", "review"),
    "reviewer": ("plan", "review"),
    "supervisor": ("plan", "review", "implementation", "verify"),
}


class AgentInvoker(Protocol):
    def invoke(self, role: str, message: str) -> str: ...


def _stat_key(path: Path):
    try:
        st = path.stat()
    except FileNotFoundError:
        return None
    return (st.st_mtime_ns, st.st_size)


class CliAgentInvoker:
    """Runs ``<command> --agent <role> --message <message>`` in the working directory."""

    def __init__(self, command: list[str], workdir: Path | str):
        if not command:
            raise ConfigurationError("agent_command must be a non-empty list.")
        self.command = list(command)
        self.workdir = Path(workdir)

    def invoke(self, role: str, message: str) -> str:
        if role not in ROLE_ARTIFACTS:
            raise ValueError(f"Unknown agent role '{role}'. Must be one of: {VALID_ROLES}")

        artifact = self.workdir / ARTIFACT_FILES[ROLE_ARTIFACTS[role]]
        before = _stat_key(artifact)

        args = [*self.command, "--agent", role, "--message", message]
        output = []
        try:
            with subprocess.Popen(
                args,
                cwd=str(self.workdir),
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
            ) as proc:
                for line in proc.stdout:
                    logger.info("[%s] %s", role, line.rstrip("\n"))
                    output.append(line)
                returncode = proc.wait()
        except OSError as exc:
            raise AgentInvocationError(f"Could not run agent '{self.command[0]}': {exc}") from exc

        if returncode != 0:
            raise AgentInvocationError(f"Agent '{role}' exited with status {returncode}.")

        after = _stat_key(artifact)
        if after is not None and after != before:
            return artifact.read_text(encoding="utf-8")

        logger.warning("Agent '%s' did not write %s; using its output instead.", role, artifact.name)
        return "".join(output)


def _chat_model(model_name: str):
    """Instantiate the LangChain chat model for a model name."""
    if model_name.startswith("gemini"):
        return ChatGoogleGenerativeAI(model=model_name, temperature=0)

    return ChatAnthropic(model=model_name, temperature=0)


class ChatModelInvoker:
    """Answers text-only roles with a chat model; other roles go to ``fallback``."""

    def __init__(self, models: dict, store: ArtifactStore, fallback: AgentInvoker | None = None):
        unsupported = set(models) - set(SYSTEM_PROMPTS)
        if unsupported:
            raise ConfigurationError(
                f"chat_models has roles a chat model cannot play: {sorted(unsupported)}"
            )
        self.models = dict(models)
        self.store = store
        self.fallback = fallback

    def _build_user_prompt(self, role: str, message: str) -> str:
        parts = [message]
        for name in ROLE_CONTEXT.get(role, ()):
            text = self.store.read(name)
            if text:
                parts.append(f"\n## {ARTIFACT_FILES[name]}\n```\n{text.rstrip()}\n```")
        return "\n".join(parts)

    def invoke(self, role: str, message: str) -> str:
        model_name = self.models.get(role)
        if not model_name:
            if self.fallback is None:
                raise ConfigurationError(f"No chat model configured for role '{role}'.")
            return self.fallback.invoke(role, message)

        llm = _chat_model(model_name)
        messages = [
            {"role": "system", "content": SYSTEM_PROMPTS[role]},
            {"role": "user", "content": self._build_user_prompt(role, message)},
        ]
        logger.info("[%s] %s", role, model_name)
        response = invoke_with_retry(llm, messages)
        return strip_fences(response.content)


def build_invoker(config: dict, store: ArtifactStore) -> AgentInvoker:
    """Build the invoker selected by ``agent_backend`` in config."""
    backend = config.get("agent_backend", "cli")
    command = config.get("agent_command") or ["openclaw", "agent"]
    if isinstance(command, str):
        command = command.split()
    cli = CliAgentInvoker(command, store.workdir)

    if backend == "cli":
        return cli
    if backend == "chat":
        return ChatModelInvoker(config.get("chat_models") or {}, store, fallback=cli)
    raise ConfigurationError(f"Invalid agent_backend '{backend}'. Must be one of: cli, chat")
