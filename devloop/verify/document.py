"""VerifyDocument — the transcript the verification step hands to the supervisor."""

from dataclasses import dataclass, field
from typing import Literal

VALID_RESULTS = ("pass", "fail", "skip")


@dataclass
class VerifyDocument:
    mode: str
    steps: list[str] = field(default_factory=list)
    result: Literal["pass", "fail", "skip"] | None = None

    def append(self, *lines: str) -> None:
        for line in lines:
            self.steps.extend(line.rstrip("\n").split("\n") if line else [""])

    def transcript(self) -> str:
        return "\n".join(self.steps)

    def finish(self, result: str) -> "VerifyDocument":
        if result not in VALID_RESULTS:
            raise ValueError(f"Invalid result '{result}'. Must be one of: {VALID_RESULTS}")
        self.result = result
        return self

    def render(self) -> str:
        """Render the document; the final line is always ``result: <value>``."""
        if self.result is None:
            raise ValueError("VerifyDocument has no result yet.")
        body = [f"mode: {self.mode}"] + self.steps
        return "\n".join(body + [f"result: {self.result}"]) + "\n"


def skipped_local() -> VerifyDocument:
    """Document for local delivery, whose verification is not implemented."""
    doc = VerifyDocument(mode="local")
    doc.append("note: local verify not implemented")
    return doc.finish("skip")


def crashed(exc: BaseException) -> VerifyDocument:
    """Failing docker document for a verification run that raised."""
    doc = VerifyDocument(mode="docker")
    doc.append(f"error: verification crashed: {exc!r}")
    return doc.finish("fail")
