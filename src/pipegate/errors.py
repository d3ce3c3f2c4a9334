from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass
class CIError(Exception):
    """
    Structured orchestrator error with enough context for:
      - clean CLI output
      - debugging without full tracebacks

    Only orchestrator-internal faults are raised this way (a malformed pipeline
    definition, a missing workspace). Step and job failures are results.
    """
    kind: str
    message: str
    job: str | None = None
    step: str | None = None
    details: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        lines = [f"{self.kind}: {self.message}"]
        if self.job:
            lines.append(f"job={self.job}")
        if self.step:
            lines.append(f"step={self.step}")
        for k, v in self.details.items():
            lines.append(f"{k}={v}")
        return "\n".join(lines)


def definition_error(message: str, *, job: str | None = None, **details: Any) -> CIError:
    return CIError(kind="definition", message=message, job=job, details=dict(details))


# Hints for the Rust toolchain the reference pipeline drives; anything
# else gets the generic PATH hint.
TOOL_HINTS = {
    "cargo": "Install the Rust toolchain (rustup) or fix PATH.",
    "rustup": "Install rustup from https://rustup.rs or fix PATH.",
    "rustc": "Install the Rust toolchain (rustup) or fix PATH.",
    "rustfmt": "Install it with `rustup component add rustfmt`.",
}


def tool_hint(command: str) -> str:
    tool = command.rsplit("/", 1)[-1]
    return TOOL_HINTS.get(tool, f"Install {tool} or fix PATH.")
