"""
Task Pipeline Domain Models (``labour_modules.pipeline.models``).

Responsibility
--------------
Frozen dataclass value objects for the pipeline: the priced line items it
consumes, blueprints, schedulable tasks, deployed-task sidecars, and the
results of generation and deployment.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* Currency, hours and quantities are ``Decimal``.
* Blueprint status is one-way: pending -> deployed or pending -> cancelled.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from labour_engines.estimation import LabourActual, TaskLabourEstimate
from labour_kernel.db.types import ZERO, to_decimal


class BlueprintStatus(str, Enum):
    """Blueprint lifecycle states."""

    PENDING = "pending"
    DEPLOYED = "deployed"
    CANCELLED = "cancelled"


class WorkSource(str, Enum):
    """Where a unit of work was priced."""

    ESTIMATE = "estimate"
    CHANGE_ORDER = "change_order"


class TaskStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LineItem:
    """Approved estimate line item; may reference several work standards."""

    id: str
    description: str
    quantity: Decimal
    sop_codes: tuple[str, ...] = ()
    estimated_hours_per_unit: Decimal | None = None
    is_looped: bool = False
    loop_context_label: str | None = None
    min_skill_level: int = 0

    def __post_init__(self):
        object.__setattr__(self, "quantity", to_decimal(self.quantity))
        object.__setattr__(self, "sop_codes", tuple(self.sop_codes or ()))
        if self.estimated_hours_per_unit is not None:
            object.__setattr__(
                self, "estimated_hours_per_unit", to_decimal(self.estimated_hours_per_unit)
            )


@dataclass(frozen=True)
class ChangeOrderLineItem:
    """Approved change-order line item; exactly one work standard."""

    id: str
    description: str
    sop_code: str | None
    estimated_hours: Decimal = ZERO
    min_skill_level: int = 0

    def __post_init__(self):
        object.__setattr__(self, "estimated_hours", to_decimal(self.estimated_hours))


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Blueprint:
    """A planned, not yet scheduled, unit of standardised work."""

    id: UUID
    project_id: str
    name: str
    sop_id: str
    sop_code: str
    sop_version: int
    work_source: WorkSource
    work_source_id: str
    estimated_hours_per_unit: Decimal
    total_units: Decimal
    is_looped: bool = False
    loop_context_label: str | None = None
    min_skill_level: int = 0
    status: BlueprintStatus = BlueprintStatus.PENDING
    created_at: datetime | None = None

    @property
    def budgeted_hours(self) -> Decimal:
        return self.estimated_hours_per_unit * self.total_units


@dataclass(frozen=True)
class Task:
    """Schedulable work unit created by deployment."""

    id: UUID
    project_id: str
    title: str
    description: str
    blueprint_id: UUID
    work_source: WorkSource
    work_source_id: str
    sop_id: str
    sop_code: str
    sop_version: int
    status: TaskStatus = TaskStatus.NOT_STARTED
    priority: TaskPriority = TaskPriority.MEDIUM
    estimate_line_item_id: str | None = None
    loop_iteration_id: str | None = None


@dataclass(frozen=True)
class DeployedTask:
    """Sidecar to a task: labour estimate and actual outcome."""

    id: UUID
    task_id: UUID
    blueprint_id: UUID
    sop_id: str
    sop_code: str
    sop_version: int
    loop_binding_label: str | None = None
    loop_iteration_id: str | None = None
    labour_estimate: TaskLabourEstimate | None = None
    labour_actual: LabourActual | None = None


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DeploymentResult:
    """Task and sidecar, always created together."""

    task: Task
    deployed_task: DeployedTask


@dataclass(frozen=True)
class GenerationResult:
    """Blueprints created from a set of line items and those auto-deployed."""

    blueprints: tuple[Blueprint, ...] = field(default_factory=tuple)
    deployed: tuple[DeployedTask, ...] = field(default_factory=tuple)
