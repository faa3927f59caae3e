"""Entrypoint facade and background-run supervision for rag-feeder."""

from rag_feeder.pipeline.rag_feeder import RagFeeder
from rag_feeder.pipeline.task_supervisor import TaskSupervisor

__all__ = [
    "RagFeeder",
    "TaskSupervisor",
]
