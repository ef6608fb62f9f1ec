"""
BudgetReconciliationService -- Repair path for partial deployments.

Deployment writes Task, DeployedTask, blueprint status and Budget as an
ordered sequence with no enclosing transaction, and budget creation is
fire-and-forget.  A task can therefore exist with no budget.  This service
finds those tasks and backfills the missing budgets.

Architecture: labour_services -- imperative shell over the pipeline and
budget modules.

Invariants enforced:
    - Only deployed blueprints with ``estimated_hours_per_unit > 0`` are
      expected to carry a budget (the same rule deployment applies).
    - Backfill is idempotent: a budget is never created twice for a task.
"""

from __future__ import annotations

from dataclasses import dataclass

from labour_kernel.db.types import ZERO
from labour_kernel.logging_config import LogContext, get_logger
from labour_modules.budget.repository import TaskBudgetRepository
from labour_modules.budget.service import TaskBudgetService
from labour_modules.pipeline.models import Blueprint, BlueprintStatus, DeployedTask
from labour_modules.pipeline.repository import BlueprintRepository, DeployedTaskRepository

logger = get_logger("services.reconciliation")


@dataclass(frozen=True)
class MissingBudget:
    """A deployed task whose budget was never created."""

    deployed_task: DeployedTask
    blueprint: Blueprint


class BudgetReconciliationService:
    """Finds deployed tasks without a budget and creates the budget.

    Contract:
        - ``find_deployments_without_budget()`` is read-only.
        - ``backfill_missing_budgets()`` returns the number of budgets
          created; a failure on one task is logged and the rest continue.
    """

    def __init__(
        self,
        blueprints: BlueprintRepository,
        deployed_tasks: DeployedTaskRepository,
        budgets: TaskBudgetRepository,
        budget_service: TaskBudgetService,
    ) -> None:
        self._blueprints = blueprints
        self._deployed_tasks = deployed_tasks
        self._budgets = budgets
        self._budget_service = budget_service

    def find_deployments_without_budget(self, project_id: str) -> list[MissingBudget]:
        blueprints = {
            b.id: b
            for b in self._blueprints.find_by_project_and_status(
                project_id, BlueprintStatus.DEPLOYED
            )
            if b.estimated_hours_per_unit > ZERO
        }
        deployed = self._deployed_tasks.find_by_blueprint_ids(blueprints)
        budgeted = self._budgets.find_task_ids([d.task_id for d in deployed])

        missing = [
            MissingBudget(deployed_task=d, blueprint=blueprints[d.blueprint_id])
            for d in deployed
            if d.task_id not in budgeted
        ]
        logger.info("budget_reconciliation_scanned", extra={
            "project_id": project_id,
            "deployed_tasks": len(deployed),
            "missing_budgets": len(missing),
        })
        return missing

    def backfill_missing_budgets(self, project_id: str) -> int:
        created = 0
        with LogContext.bind(project_id=project_id):
            for item in self.find_deployments_without_budget(project_id):
                try:
                    self._budget_service.create_from_deployment(
                        item.deployed_task,
                        item.blueprint,
                        project_id,
                        ZERO,
                        ZERO,
                    )
                    created += 1
                except Exception:
                    logger.error("budget_backfill_failed", extra={
                        "task_id": str(item.deployed_task.task_id),
                    }, exc_info=True)
            logger.info("budget_backfill_completed", extra={"budgets_created": created})
        return created
