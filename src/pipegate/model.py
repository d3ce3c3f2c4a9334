# model.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import List, Mapping, Optional, Tuple


class TriggerKind(str, Enum):
    """The external occurrence that causes a pipeline run."""
    PUSH = "push"
    PULL_REQUEST = "pull_request"

    @classmethod
    def parse(cls, text: str) -> TriggerKind:
        key = text.strip().lower().replace("-", "_")
        if key == "pr":
            key = "pull_request"
        try:
            return cls(key)
        except ValueError:
            allowed = ", ".join(k.value for k in cls)
            raise ValueError(f"Unknown trigger event {text!r}; expected one of: {allowed}") from None


ALL_TRIGGERS: Tuple[TriggerKind, ...] = (TriggerKind.PUSH, TriggerKind.PULL_REQUEST)


@dataclass(frozen=True)
class TriggerEvent:
    kind: TriggerKind
    ref: str | None = None  # pass-through only (branch or commit)

    def __str__(self) -> str:
        if self.ref:
            return f"{self.kind.value}@{self.ref}"
        return self.kind.value


@dataclass(frozen=True)
class Step:
    """A single external command inside a CI job."""
    name: str
    command: str
    args: Tuple[str, ...] = ()
    cwd: str | None = None
    timeout: float | None = None  # seconds

    @property
    def argv(self) -> List[str]:
        return [self.command, *self.args]

    def display(self) -> str:
        return " ".join(self.argv)


def _freeze_env(obj) -> None:
    # non-mappings are left for validate_pipeline to reject
    if isinstance(obj.env, Mapping):
        object.__setattr__(obj, "env", MappingProxyType(dict(obj.env)))


@dataclass(frozen=True)
class Job:
    """
    A CI job: ordered steps + environment overrides + selection metadata.

    Jobs are independent of each other; there are no `needs` edges.
    `parallel=False` keeps a job from overlapping any other job.
    `env` is a read-only mapping and does not take part in the hash.
    """
    name: str
    steps: Tuple[Step, ...]
    env: Mapping[str, str] = field(default_factory=dict, hash=False)
    on: Tuple[TriggerKind, ...] = ALL_TRIGGERS
    continue_on_failure: bool = False
    parallel: bool = True

    def __post_init__(self) -> None:
        _freeze_env(self)


@dataclass(frozen=True)
class Pipeline:
    """A loaded pipeline definition: jobs plus the process-wide default env."""
    jobs: Tuple[Job, ...]
    env: Mapping[str, str] = field(default_factory=dict, hash=False)
    name: str = "ci"

    def __post_init__(self) -> None:
        _freeze_env(self)


# ----------------------------------------------------------------------
# Results
# ----------------------------------------------------------------------

class StepStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"          # the tool ran and reported a problem
    TIMED_OUT = "timed-out"
    NOT_FOUND = "not-found"    # the tool could not be located or started
    CANCELLED = "cancelled"
    ERROR = "error"            # orchestrator fault while running the job

    @property
    def is_infrastructure(self) -> bool:
        return self in (StepStatus.NOT_FOUND, StepStatus.ERROR)


@dataclass(frozen=True)
class StepResult:
    step: Step
    status: StepStatus
    exit_code: int | None = None
    stdout: str = ""
    stderr: str = ""
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status is StepStatus.SUCCEEDED


@dataclass(frozen=True)
class JobResult:
    job: Job
    steps: Tuple[StepResult, ...]
    skipped: Tuple[str, ...] = ()  # step names never run (aborted or cancelled)

    @property
    def name(self) -> str:
        return self.job.name

    @property
    def success(self) -> bool:
        return bool(self.steps) and all(s.ok for s in self.steps)

    @property
    def failed_step(self) -> Optional[StepResult]:
        for s in self.steps:
            if not s.ok:
                return s
        return None

    @property
    def status(self) -> StepStatus:
        if self.success:
            return StepStatus.SUCCEEDED
        if any(s.status is StepStatus.CANCELLED for s in self.steps):
            return StepStatus.CANCELLED
        failed = self.failed_step
        return failed.status if failed is not None else StepStatus.ERROR

    @property
    def duration(self) -> float:
        return sum(s.duration for s in self.steps)


class PipelineStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class PipelineResult:
    event: TriggerEvent
    jobs: Tuple[JobResult, ...]
    cancelled: bool = False
    duration: float = 0.0

    @property
    def success(self) -> bool:
        return not self.cancelled and all(j.success for j in self.jobs)

    @property
    def status(self) -> PipelineStatus:
        if self.cancelled:
            return PipelineStatus.CANCELLED
        return PipelineStatus.SUCCEEDED if self.success else PipelineStatus.FAILED

    @property
    def failed_jobs(self) -> List[JobResult]:
        return [j for j in self.jobs if not j.success]

    def job(self, name: str) -> JobResult:
        for j in self.jobs:
            if j.name == name:
                return j
        raise KeyError(name)
