"""
Task Pipeline Module (``labour_modules.pipeline``).

Approved line items become blueprints; blueprints deploy into a schedulable
task plus a deployed-task sidecar that carries the labour estimate and
actual outcome.
"""

from labour_modules.pipeline.models import (
    Blueprint,
    BlueprintStatus,
    ChangeOrderLineItem,
    DeployedTask,
    DeploymentResult,
    GenerationResult,
    LineItem,
    Task,
    TaskPriority,
    TaskStatus,
    WorkSource,
)
from labour_modules.pipeline.service import BudgetTracker, TaskPipelineService

__all__ = [
    "Blueprint",
    "BlueprintStatus",
    "BudgetTracker",
    "ChangeOrderLineItem",
    "DeployedTask",
    "DeploymentResult",
    "GenerationResult",
    "LineItem",
    "Task",
    "TaskPipelineService",
    "TaskPriority",
    "TaskStatus",
    "WorkSource",
]
