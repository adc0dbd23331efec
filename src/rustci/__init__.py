from .dsl import job, sh, checkout, archive, upload, on_tags, wf, JobBuilder, build
from .model import Artifact, Event, Job, Step, Workflow
from .pipeline import PipelineConfig, pipeline
from .runner import run_workflow, load_workflow

__all__ = [
    "job", "sh", "checkout", "archive", "upload", "on_tags", "wf", "JobBuilder", "build",
    "Artifact", "Event", "Job", "Step", "Workflow",
    "PipelineConfig", "pipeline",
    "run_workflow", "load_workflow",
]
