"""Evidence patterns the verification verdict is derived from.

The check is plain-text evidence over the whole transcript, not structured
validation of each response: a pattern satisfied by the wrong capture still
counts. Kept loose on purpose so existing generated services verify the same
way they always have.
"""

import re

EVIDENCE_PATTERNS = {
    "http_200": re.compile(r"HTTP/.* 200"),
    "status_ok": re.compile(r'"status"\s*:\s*"ok"'),
    "status_degraded": re.compile(r'"status"\s*:\s*"degraded"'),
    "http_404": re.compile(r"HTTP/.* 404"),
}


def collect_evidence(transcript: str) -> dict[str, bool]:
    """Return which evidence patterns appear anywhere in the transcript."""
    return {name: bool(pattern.search(transcript)) for name, pattern in EVIDENCE_PATTERNS.items()}


def missing_evidence(transcript: str) -> list[str]:
    return [name for name, found in collect_evidence(transcript).items() if not found]


def derive_verdict(transcript: str) -> str:
    """``pass`` iff every evidence pattern is present, otherwise ``fail``."""
    return "fail" if missing_evidence(transcript) else "pass"
