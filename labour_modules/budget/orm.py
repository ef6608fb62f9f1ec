"""
SQLAlchemy ORM persistence model for task budgets.

One row per task (``task_id`` unique).  ``status`` is written only with a
value produced by ``derive_budget_status`` or by an explicit completion.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from labour_kernel.db.base import TrackedBase


class TaskBudgetModel(TrackedBase):
    """Labour budget for a deployed task."""

    __tablename__ = "budget_task_budgets"

    __table_args__ = (
        UniqueConstraint("task_id", name="uq_task_budget_task"),
        Index("idx_task_budget_project", "project_id"),
        Index("idx_task_budget_status", "status"),
    )

    task_id: Mapped[UUID] = mapped_column(ForeignKey("pipeline_tasks.id"), nullable=False)
    blueprint_id: Mapped[UUID] = mapped_column(
        ForeignKey("pipeline_blueprints.id"), nullable=False
    )
    project_id: Mapped[str] = mapped_column(String(100), nullable=False)
    sop_code: Mapped[str] = mapped_column(String(50), nullable=False)
    budgeted_hours: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    actual_hours: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    budgeted_material_cost: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    actual_material_cost: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    crew_wage_rate: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    charged_rate: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    efficiency: Mapped[Decimal | None] = mapped_column(nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")

    def to_dto(self):
        from labour_engines.variance import TaskBudgetStatus
        from labour_modules.budget.models import TaskBudget

        return TaskBudget(
            id=self.id,
            task_id=self.task_id,
            blueprint_id=self.blueprint_id,
            project_id=self.project_id,
            sop_code=self.sop_code,
            budgeted_hours=self.budgeted_hours,
            actual_hours=self.actual_hours,
            budgeted_material_cost=self.budgeted_material_cost,
            actual_material_cost=self.actual_material_cost,
            crew_wage_rate=self.crew_wage_rate,
            charged_rate=self.charged_rate,
            efficiency=self.efficiency,
            status=TaskBudgetStatus(self.status),
        )

    @classmethod
    def from_dto(cls, dto) -> "TaskBudgetModel":
        return cls(
            id=dto.id,
            task_id=dto.task_id,
            blueprint_id=dto.blueprint_id,
            project_id=dto.project_id,
            sop_code=dto.sop_code,
            budgeted_hours=dto.budgeted_hours,
            actual_hours=dto.actual_hours,
            budgeted_material_cost=dto.budgeted_material_cost,
            actual_material_cost=dto.actual_material_cost,
            crew_wage_rate=dto.crew_wage_rate,
            charged_rate=dto.charged_rate,
            efficiency=dto.efficiency,
            status=dto.status.value,
        )

    def __repr__(self) -> str:
        return f"<TaskBudgetModel task={self.task_id} [{self.status}]>"
