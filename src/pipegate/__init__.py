from .dsl import job, sh, step, pipeline, wf
from .model import Job, Pipeline, Step, TriggerEvent, TriggerKind
from .scheduler import run_pipeline, select_jobs

__all__ = [
    "job", "sh", "step", "pipeline", "wf",
    "Job", "Pipeline", "Step", "TriggerEvent", "TriggerKind",
    "run_pipeline", "select_jobs",
]
