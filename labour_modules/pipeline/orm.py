"""
SQLAlchemy ORM persistence models for the Task Pipeline module.

Responsibility
--------------
Persist blueprints, the schedulable tasks created from them, and the
deployed-task sidecar holding the labour estimate and actual outcome.

Invariants enforced
-------------------
* ``DeployedTaskModel.task_id`` is unique: exactly one sidecar per task.
* Estimate and actual snapshots are flattened into nullable columns.  An
  estimate exists iff ``estimate_calculated_at`` is set; an actual exists
  iff ``actual_crew_member_id`` is set.  Both are written wholesale.
* Currency and hours use Numeric(38, 9); the margin is stored exactly.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from labour_kernel.db.base import DecimalString, TrackedBase


# ---------------------------------------------------------------------------
# BlueprintModel
# ---------------------------------------------------------------------------


class BlueprintModel(TrackedBase):
    """
    A standardised work unit derived from a priced line item.

    Guarantees:
        - ``status`` follows pending -> deployed | cancelled, never back.
    """

    __tablename__ = "pipeline_blueprints"

    __table_args__ = (
        Index("idx_blueprint_project", "project_id"),
        Index("idx_blueprint_project_status", "project_id", "status"),
        Index("idx_blueprint_work_source", "work_source", "work_source_id"),
    )

    project_id: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    sop_id: Mapped[str] = mapped_column(String(100), nullable=False)
    sop_code: Mapped[str] = mapped_column(String(50), nullable=False)
    sop_version: Mapped[int] = mapped_column(nullable=False)
    work_source: Mapped[str] = mapped_column(String(20), nullable=False)
    work_source_id: Mapped[str] = mapped_column(String(100), nullable=False)
    estimated_hours_per_unit: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    total_units: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    is_looped: Mapped[bool] = mapped_column(default=False)
    loop_context_label: Mapped[str | None] = mapped_column(String(200), nullable=True)
    min_skill_level: Mapped[int] = mapped_column(default=0)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")

    def to_dto(self):
        from labour_modules.pipeline.models import Blueprint, BlueprintStatus, WorkSource

        return Blueprint(
            id=self.id,
            project_id=self.project_id,
            name=self.name,
            sop_id=self.sop_id,
            sop_code=self.sop_code,
            sop_version=self.sop_version,
            work_source=WorkSource(self.work_source),
            work_source_id=self.work_source_id,
            estimated_hours_per_unit=self.estimated_hours_per_unit,
            total_units=self.total_units,
            is_looped=self.is_looped,
            loop_context_label=self.loop_context_label,
            min_skill_level=self.min_skill_level,
            status=BlueprintStatus(self.status),
            created_at=self.created_at,
        )

    @classmethod
    def from_dto(cls, dto) -> "BlueprintModel":
        return cls(
            id=dto.id,
            project_id=dto.project_id,
            name=dto.name,
            sop_id=dto.sop_id,
            sop_code=dto.sop_code,
            sop_version=dto.sop_version,
            work_source=dto.work_source.value,
            work_source_id=dto.work_source_id,
            estimated_hours_per_unit=dto.estimated_hours_per_unit,
            total_units=dto.total_units,
            is_looped=dto.is_looped,
            loop_context_label=dto.loop_context_label,
            min_skill_level=dto.min_skill_level,
            status=dto.status.value,
            **({"created_at": dto.created_at} if dto.created_at is not None else {}),
        )

    def __repr__(self) -> str:
        return f"<BlueprintModel {self.sop_code} v{self.sop_version} [{self.status}]>"


# ---------------------------------------------------------------------------
# TaskModel
# ---------------------------------------------------------------------------


class TaskModel(TrackedBase):
    """Schedulable task created when a blueprint deploys."""

    __tablename__ = "pipeline_tasks"

    __table_args__ = (
        Index("idx_task_project", "project_id"),
        Index("idx_task_blueprint", "blueprint_id"),
    )

    project_id: Mapped[str] = mapped_column(String(100), nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(String(1000), nullable=False, default="")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="not_started")
    priority: Mapped[str] = mapped_column(String(20), nullable=False, default="medium")
    blueprint_id: Mapped[UUID] = mapped_column(
        ForeignKey("pipeline_blueprints.id"), nullable=False
    )
    work_source: Mapped[str] = mapped_column(String(20), nullable=False)
    work_source_id: Mapped[str] = mapped_column(String(100), nullable=False)
    sop_id: Mapped[str] = mapped_column(String(100), nullable=False)
    sop_code: Mapped[str] = mapped_column(String(50), nullable=False)
    sop_version: Mapped[int] = mapped_column(nullable=False)
    estimate_line_item_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    loop_iteration_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    def to_dto(self):
        from labour_modules.pipeline.models import (
            Task,
            TaskPriority,
            TaskStatus,
            WorkSource,
        )

        return Task(
            id=self.id,
            project_id=self.project_id,
            title=self.title,
            description=self.description,
            blueprint_id=self.blueprint_id,
            work_source=WorkSource(self.work_source),
            work_source_id=self.work_source_id,
            sop_id=self.sop_id,
            sop_code=self.sop_code,
            sop_version=self.sop_version,
            status=TaskStatus(self.status),
            priority=TaskPriority(self.priority),
            estimate_line_item_id=self.estimate_line_item_id,
            loop_iteration_id=self.loop_iteration_id,
        )

    @classmethod
    def from_dto(cls, dto) -> "TaskModel":
        return cls(
            id=dto.id,
            project_id=dto.project_id,
            title=dto.title,
            description=dto.description,
            status=dto.status.value,
            priority=dto.priority.value,
            blueprint_id=dto.blueprint_id,
            work_source=dto.work_source.value,
            work_source_id=dto.work_source_id,
            sop_id=dto.sop_id,
            sop_code=dto.sop_code,
            sop_version=dto.sop_version,
            estimate_line_item_id=dto.estimate_line_item_id,
            loop_iteration_id=dto.loop_iteration_id,
        )

    def __repr__(self) -> str:
        return f"<TaskModel {self.title} [{self.status}]>"


# ---------------------------------------------------------------------------
# DeployedTaskModel
# ---------------------------------------------------------------------------


class DeployedTaskModel(TrackedBase):
    """
    Labour sidecar, one per deployed task.

    Guarantees:
        - Estimate columns are all set or all null (except the optional
          rate and margin-context columns).
        - Actual columns: crew id and rate are set at assignment; hours,
          cost and variance stay null until hours are recorded.
    """

    __tablename__ = "pipeline_deployed_tasks"

    __table_args__ = (
        UniqueConstraint("task_id", name="uq_deployed_task_task"),
        Index("idx_deployed_task_blueprint", "blueprint_id"),
        Index("idx_deployed_task_crew", "actual_crew_member_id"),
    )

    task_id: Mapped[UUID] = mapped_column(ForeignKey("pipeline_tasks.id"), nullable=False)
    blueprint_id: Mapped[UUID] = mapped_column(
        ForeignKey("pipeline_blueprints.id"), nullable=False
    )
    sop_id: Mapped[str] = mapped_column(String(100), nullable=False)
    sop_code: Mapped[str] = mapped_column(String(50), nullable=False)
    sop_version: Mapped[int] = mapped_column(nullable=False)
    loop_binding_label: Mapped[str | None] = mapped_column(String(200), nullable=True)
    loop_iteration_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Labour estimate snapshot
    estimate_quantity: Mapped[Decimal | None] = mapped_column(nullable=True)
    estimate_unit: Mapped[str | None] = mapped_column(String(20), nullable=True)
    estimate_sell_budget: Mapped[Decimal | None] = mapped_column(nullable=True)
    estimate_cost_budget: Mapped[Decimal | None] = mapped_column(nullable=True)
    estimate_budgeted_hours: Mapped[Decimal | None] = mapped_column(nullable=True)
    estimate_skill_level: Mapped[int | None] = mapped_column(nullable=True)
    estimate_cost_rate: Mapped[Decimal | None] = mapped_column(nullable=True)
    estimate_margin: Mapped[Decimal | None] = mapped_column(DecimalString(), nullable=True)
    estimate_sell_rate: Mapped[Decimal | None] = mapped_column(nullable=True)
    estimate_project_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    estimate_trade_category: Mapped[str | None] = mapped_column(String(50), nullable=True)
    estimate_calculated_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # Labour actual
    actual_crew_member_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    actual_cost_rate: Mapped[Decimal | None] = mapped_column(nullable=True)
    actual_hours: Mapped[Decimal | None] = mapped_column(nullable=True)
    actual_cost: Mapped[Decimal | None] = mapped_column(nullable=True)
    actual_scheduling_variance: Mapped[Decimal | None] = mapped_column(nullable=True)
    actual_variant_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    def estimate_dto(self):
        from labour_engines.estimation import TaskLabourEstimate

        if self.estimate_calculated_at is None:
            return None
        return TaskLabourEstimate(
            quantity=self.estimate_quantity,
            unit=self.estimate_unit,
            sell_budget=self.estimate_sell_budget,
            cost_budget=self.estimate_cost_budget,
            budgeted_hours=self.estimate_budgeted_hours,
            optimal_skill_level=self.estimate_skill_level,
            optimal_cost_rate=self.estimate_cost_rate,
            margin_applied=self.estimate_margin,
            calculated_at=self.estimate_calculated_at,
            catalogue_sell_rate=self.estimate_sell_rate,
            project_type=self.estimate_project_type,
            trade_category=self.estimate_trade_category,
        )

    def actual_dto(self):
        from labour_engines.estimation import LabourActual

        if self.actual_crew_member_id is None:
            return None
        return LabourActual(
            assigned_crew_member_id=self.actual_crew_member_id,
            assigned_cost_rate=self.actual_cost_rate,
            actual_hours=self.actual_hours,
            actual_cost=self.actual_cost,
            scheduling_variance=self.actual_scheduling_variance,
            variant_reason=self.actual_variant_reason,
        )

    def write_estimate(self, estimate) -> None:
        """Replace the estimate snapshot wholesale."""
        self.estimate_quantity = estimate.quantity
        self.estimate_unit = estimate.unit
        self.estimate_sell_budget = estimate.sell_budget
        self.estimate_cost_budget = estimate.cost_budget
        self.estimate_budgeted_hours = estimate.budgeted_hours
        self.estimate_skill_level = estimate.optimal_skill_level
        self.estimate_cost_rate = estimate.optimal_cost_rate
        self.estimate_margin = estimate.margin_applied
        self.estimate_sell_rate = estimate.catalogue_sell_rate
        self.estimate_project_type = estimate.project_type
        self.estimate_trade_category = estimate.trade_category
        self.estimate_calculated_at = estimate.calculated_at

    def write_actual(self, actual) -> None:
        """Replace the labour actual wholesale."""
        self.actual_crew_member_id = actual.assigned_crew_member_id
        self.actual_cost_rate = actual.assigned_cost_rate
        self.actual_hours = actual.actual_hours
        self.actual_cost = actual.actual_cost
        self.actual_scheduling_variance = actual.scheduling_variance
        self.actual_variant_reason = actual.variant_reason

    def to_dto(self):
        from labour_modules.pipeline.models import DeployedTask

        return DeployedTask(
            id=self.id,
            task_id=self.task_id,
            blueprint_id=self.blueprint_id,
            sop_id=self.sop_id,
            sop_code=self.sop_code,
            sop_version=self.sop_version,
            loop_binding_label=self.loop_binding_label,
            loop_iteration_id=self.loop_iteration_id,
            labour_estimate=self.estimate_dto(),
            labour_actual=self.actual_dto(),
        )

    @classmethod
    def from_dto(cls, dto) -> "DeployedTaskModel":
        row = cls(
            id=dto.id,
            task_id=dto.task_id,
            blueprint_id=dto.blueprint_id,
            sop_id=dto.sop_id,
            sop_code=dto.sop_code,
            sop_version=dto.sop_version,
            loop_binding_label=dto.loop_binding_label,
            loop_iteration_id=dto.loop_iteration_id,
        )
        if dto.labour_estimate is not None:
            row.write_estimate(dto.labour_estimate)
        if dto.labour_actual is not None:
            row.write_actual(dto.labour_actual)
        return row

    def __repr__(self) -> str:
        return f"<DeployedTaskModel task={self.task_id} {self.sop_code}>"
