"""
Task Budget Service (``labour_modules.budget.service``).

Responsibility
--------------
Creates a zero-actuals budget when a blueprint deploys, folds reported
actual hours into efficiency and status, marks budgets complete, and rolls
budgets up per project.

Architecture
------------
Layer: **Modules** -- thin coordination over ``TaskBudgetRepository``.
Status and efficiency come from the pure ``derive_budget_status`` and
``compute_efficiency`` functions at the point of persistence.

Invariants
----------
- One budget per task; ``create_from_deployment`` returns the existing
  budget when called again for the same task.
- ``complete`` is sticky: later hour updates keep it.
- ``budget.over_budget`` is emitted only on the transition into
  ``over_budget``.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID, uuid4

from labour_engines.variance import (
    TaskBudgetStatus,
    compute_efficiency,
    derive_budget_status,
)
from labour_kernel.db.types import ZERO, HUNDRED, round_money, round_percent, to_decimal
from labour_kernel.domain.events import EventType
from labour_kernel.logging_config import get_logger
from labour_modules.budget.config import BudgetConfig
from labour_modules.budget.models import ProjectBudgetSummary, TaskBudget
from labour_modules.budget.repository import TaskBudgetRepository
from labour_modules.pipeline.models import Blueprint, DeployedTask
from labour_services.event_publisher import EventPublisher

logger = get_logger("modules.budget.service")


class TaskBudgetService:
    """
    Budget lifecycle for deployed tasks.

    Contract
    --------
    Methods addressed by task id return ``None`` when no budget exists.
    """

    def __init__(
        self,
        repository: TaskBudgetRepository,
        publisher: EventPublisher,
        config: BudgetConfig | None = None,
    ):
        self._repository = repository
        self._publisher = publisher
        self._config = config or BudgetConfig()

    def create_from_deployment(
        self,
        deployed_task: DeployedTask,
        blueprint: Blueprint,
        project_id: str,
        wage_rate: Decimal = ZERO,
        charge_rate: Decimal = ZERO,
    ) -> TaskBudget:
        """Zero-actuals budget of ``hours_per_unit * total_units`` hours."""
        existing = self._repository.find_by_task(deployed_task.task_id)
        if existing is not None:
            logger.info("budget_exists", extra={"task_id": str(deployed_task.task_id)})
            return existing

        budgeted_hours = round_money(blueprint.budgeted_hours)
        budget = self._repository.create(TaskBudget(
            id=uuid4(),
            task_id=deployed_task.task_id,
            blueprint_id=blueprint.id,
            project_id=project_id,
            sop_code=blueprint.sop_code,
            budgeted_hours=budgeted_hours,
            crew_wage_rate=to_decimal(wage_rate),
            charged_rate=to_decimal(charge_rate),
        ))

        logger.info("budget_created", extra={
            "task_id": str(budget.task_id),
            "project_id": project_id,
            "budgeted_hours": str(budgeted_hours),
        })
        self._publisher.publish(EventType.BUDGET_CREATED, budget.id, {
            "project_id": project_id,
            "task_id": budget.task_id,
            "sop_code": budget.sop_code,
            "budgeted_hours": budgeted_hours,
            "wage_rate": budget.crew_wage_rate,
            "charged_rate": budget.charged_rate,
        })
        return budget

    def update_actual_hours(
        self,
        task_id: UUID | str,
        total_actual_hours: Decimal | int | float | str,
    ) -> TaskBudget | None:
        """Replace actual hours and re-derive efficiency and status."""
        budget = self._repository.find_by_task(task_id)
        if budget is None:
            return None

        raw_hours = to_decimal(total_actual_hours)
        hours = round_money(raw_hours)
        efficiency = compute_efficiency(budget.budgeted_hours, raw_hours)
        status = derive_budget_status(
            budget.status, budget.budgeted_hours, raw_hours, self._config.over_budget_tolerance
        )
        updated = self._repository.update_hours(budget.id, hours, efficiency, status)
        if updated is None:
            return None

        logger.info("budget_hours_updated", extra={
            "task_id": str(budget.task_id),
            "actual_hours": str(hours),
            "efficiency": str(efficiency) if efficiency is not None else None,
            "status": status.value,
        })
        if (
            status == TaskBudgetStatus.OVER_BUDGET
            and budget.status != TaskBudgetStatus.OVER_BUDGET
        ):
            logger.warning("budget_over_budget", extra={"task_id": str(budget.task_id)})
            self._publisher.publish(EventType.BUDGET_OVER_BUDGET, budget.id, {
                "project_id": budget.project_id,
                "task_id": budget.task_id,
                "sop_code": budget.sop_code,
                "budgeted_hours": budget.budgeted_hours,
                "actual_hours": hours,
                "efficiency": efficiency,
            })
        return updated

    def complete(self, task_id: UUID | str) -> TaskBudget | None:
        """Mark the budget complete; hour updates no longer change status."""
        budget = self._repository.find_by_task(task_id)
        if budget is None:
            return None

        updated = self._repository.update_status(budget.id, TaskBudgetStatus.COMPLETE)
        if updated is None:
            return None

        logger.info("budget_completed", extra={"task_id": str(budget.task_id)})
        self._publisher.publish(EventType.BUDGET_COMPLETED, budget.id, {
            "project_id": budget.project_id,
            "task_id": budget.task_id,
            "sop_code": budget.sop_code,
            "budgeted_hours": budget.budgeted_hours,
            "actual_hours": budget.actual_hours,
            "efficiency": budget.efficiency,
        })
        return updated

    def get_project_budget_summary(self, project_id: str) -> ProjectBudgetSummary:
        budgets = self._repository.find_by_project(project_id)
        total_budgeted = sum((b.budgeted_hours for b in budgets), ZERO)
        total_actual = sum((b.actual_hours for b in budgets), ZERO)

        return ProjectBudgetSummary(
            total_budgets=len(budgets),
            total_budgeted_hours=round_money(total_budgeted),
            total_actual_hours=round_money(total_actual),
            overall_efficiency=(
                round_percent(total_budgeted / total_actual * HUNDRED)
                if total_actual > ZERO
                else None
            ),
            over_budget_count=sum(1 for b in budgets if b.status == TaskBudgetStatus.OVER_BUDGET),
            completed_count=sum(1 for b in budgets if b.status == TaskBudgetStatus.COMPLETE),
            budgets=tuple(budgets),
        )

    def find_by_task(self, task_id: UUID | str) -> TaskBudget | None:
        return self._repository.find_by_task(task_id)

    def find_by_project(self, project_id: str) -> list[TaskBudget]:
        return self._repository.find_by_project(project_id)

    def find_over_budget(self) -> list[TaskBudget]:
        return self._repository.find_by_status(TaskBudgetStatus.OVER_BUDGET)
