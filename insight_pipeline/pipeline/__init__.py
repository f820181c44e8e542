"""Bulk extraction pipeline: scheduler, result sink, run orchestration."""
from insight_pipeline.pipeline.models import AdRecord, InputRecord, RunSummary, Task
from insight_pipeline.pipeline.run import run_extraction
from insight_pipeline.pipeline.scheduler import Scheduler
from insight_pipeline.pipeline.settings import PipelineSettings
from insight_pipeline.pipeline.sink import JsonlResultSink

__all__ = [
    "AdRecord",
    "InputRecord",
    "JsonlResultSink",
    "PipelineSettings",
    "RunSummary",
    "Scheduler",
    "Task",
    "run_extraction",
]
