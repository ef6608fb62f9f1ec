"""
Budget Domain Models (``labour_modules.budget.models``).

Frozen value objects for per-task labour budgets and the project roll-up.
``status`` is never set freely; see ``derive_budget_status``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

from labour_engines.variance import TaskBudgetStatus
from labour_kernel.db.types import ZERO


@dataclass(frozen=True)
class TaskBudget:
    """Budgeted vs actual hours for one deployed task."""

    id: UUID
    task_id: UUID
    blueprint_id: UUID
    project_id: str
    sop_code: str
    budgeted_hours: Decimal
    actual_hours: Decimal = ZERO
    budgeted_material_cost: Decimal = ZERO
    actual_material_cost: Decimal = ZERO
    crew_wage_rate: Decimal = ZERO
    charged_rate: Decimal = ZERO
    efficiency: Decimal | None = None
    status: TaskBudgetStatus = TaskBudgetStatus.ACTIVE


@dataclass(frozen=True)
class ProjectBudgetSummary:
    total_budgets: int
    total_budgeted_hours: Decimal
    total_actual_hours: Decimal
    overall_efficiency: Decimal | None
    over_budget_count: int
    completed_count: int
    budgets: tuple[TaskBudget, ...] = field(default_factory=tuple)
