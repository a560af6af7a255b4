"""Feedback processing pipeline: journaled steps, workflow, trigger, dispatch."""

from src.pipeline.dispatcher import FeedbackDispatcher
from src.pipeline.feedback_workflow import FeedbackWorkflow
from src.pipeline.step_executor import StepExecutor
from src.pipeline.trigger import LocalWorkflowTrigger

__all__ = [
    "FeedbackDispatcher",
    "FeedbackWorkflow",
    "LocalWorkflowTrigger",
    "StepExecutor",
]
