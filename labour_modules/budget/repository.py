"""Task budget store, addressed by task id."""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from labour_engines.variance import TaskBudgetStatus
from labour_kernel.db.repository import BaseRepository
from labour_kernel.utils.ids import parse_id
from labour_modules.budget.models import TaskBudget
from labour_modules.budget.orm import TaskBudgetModel


class TaskBudgetRepository(BaseRepository):
    def create(self, budget: TaskBudget) -> TaskBudget:
        with self._scope() as session:
            row = TaskBudgetModel.from_dto(budget)
            session.add(row)
            session.flush()
            return row.to_dto()

    def find_by_task(self, task_id: UUID | str) -> TaskBudget | None:
        key = parse_id(task_id)
        if key is None:
            return None
        with self._scope() as session:
            row = session.scalars(
                select(TaskBudgetModel).where(TaskBudgetModel.task_id == key)
            ).one_or_none()
            return row.to_dto() if row is not None else None

    def find_by_project(self, project_id: str) -> list[TaskBudget]:
        with self._scope() as session:
            rows = session.scalars(
                select(TaskBudgetModel)
                .where(TaskBudgetModel.project_id == project_id)
                .order_by(TaskBudgetModel.created_at, TaskBudgetModel.id)
            ).all()
            return [row.to_dto() for row in rows]

    def find_by_status(self, status: TaskBudgetStatus) -> list[TaskBudget]:
        with self._scope() as session:
            rows = session.scalars(
                select(TaskBudgetModel).where(TaskBudgetModel.status == status.value)
            ).all()
            return [row.to_dto() for row in rows]

    def find_task_ids(self, task_ids: list[UUID]) -> set[UUID]:
        """Subset of ``task_ids`` that already have a budget."""
        if not task_ids:
            return set()
        with self._scope() as session:
            return set(session.scalars(
                select(TaskBudgetModel.task_id).where(TaskBudgetModel.task_id.in_(task_ids))
            ).all())

    def update_hours(
        self,
        budget_id: UUID,
        actual_hours: Decimal,
        efficiency: Decimal | None,
        status: TaskBudgetStatus,
    ) -> TaskBudget | None:
        with self._scope() as session:
            row = session.get(TaskBudgetModel, budget_id)
            if row is None:
                return None
            row.actual_hours = actual_hours
            row.efficiency = efficiency
            row.status = status.value
            session.flush()
            return row.to_dto()

    def update_status(self, budget_id: UUID, status: TaskBudgetStatus) -> TaskBudget | None:
        with self._scope() as session:
            row = session.get(TaskBudgetModel, budget_id)
            if row is None:
                return None
            row.status = status.value
            session.flush()
            return row.to_dto()
