"""Shared parsing and LLM utilities for chat-backed agent replies."""

import logging
import re

import httpx
from tenacity import Retrying, retry_if_exception, stop_after_attempt, wait_exponential

logger = logging.getLogger(__name__)

# Only a fence wrapping the whole reply is stripped; fenced blocks inside a
# markdown artifact are content.
_WRAPPING_FENCE_RE = re.compile(r"\A\s*```(?:markdown|md)?[ \t]*\n(.*?)\n?[ \t]*```\s*\Z", re.DOTALL)


def strip_fences(text: str) -> str:
    """Strip a markdown code fence wrapping the entire LLM output, if present."""
    match = _WRAPPING_FENCE_RE.match(text)
    return match.group(1).strip() if match else text.strip()


# Provider responses worth another attempt; 529 is Anthropic's "overloaded".
TRANSIENT_STATUS_CODES = frozenset({429, 500, 502, 503, 529})


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, (httpx.TimeoutException, httpx.ConnectError)):
        return True
    return isinstance(exc, httpx.HTTPStatusError) and exc.response.status_code in TRANSIENT_STATUS_CODES


def _log_retry(retry_state) -> None:
    logger.warning(
        "Chat model call failed with %r; attempt %d, next in %.0fs",
        retry_state.outcome.exception(),
        retry_state.attempt_number,
        retry_state.next_action.sleep,
    )


def invoke_with_retry(llm, messages, max_retries: int = 3):
    """Return ``llm.invoke(messages)``, retrying transient provider errors.

    ``llm_max_retries`` in config overrides ``max_retries``. Anything else
    (auth failures, bad requests) propagates on the first attempt.
    """
    from devloop.config import get_config

    retries = get_config().get("llm_max_retries", max_retries)
    retrying = Retrying(
        stop=stop_after_attempt(retries + 1),
        wait=wait_exponential(multiplier=1, min=2, max=16),
        retry=retry_if_exception(_is_transient),
        before_sleep=_log_retry,
        reraise=True,
    )
    return retrying(llm.invoke, messages)
