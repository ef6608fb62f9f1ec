"""
labour_engines.variance -- Budget status, efficiency and variance roll-ups.

Responsibility:
    Derive task-budget efficiency and status from budgeted vs actual hours,
    aggregate per-task labour estimates and actuals into a project variance
    summary, and build per-task crew variance records.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Consumed by the budget
    and labour modules.

Invariants enforced:
    - Task-budget status is derived, never set freely: ``over_budget`` when
      actual > budgeted x tolerance, else ``active``.  ``complete`` is
      sticky: once set explicitly no hour update moves it back.
    - Efficiency = budgeted / actual x 100, rounded to a whole number;
      undefined (``None``) when either side is zero.
    - Project actual-cost totals are all-or-nothing: if any estimated task
      lacks a recorded actual cost, actual totals, overall variance and
      overall efficiency are ``None``.
    - Crew variance totals accumulate from every task that has a variance,
      independent of the all-or-nothing gate.
    - Tasks without an estimate are listed, never silently dropped.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum

from labour_engines.estimation import LabourActual, TaskLabourEstimate
from labour_engines.tracer import traced_engine
from labour_kernel.db.types import HUNDRED, ZERO, round_money, round_percent
from labour_kernel.logging_config import get_logger

logger = get_logger("engines.variance")

DEFAULT_OVER_BUDGET_TOLERANCE = Decimal("1.1")


class TaskBudgetStatus(str, Enum):
    """Task budget states."""

    ACTIVE = "active"
    OVER_BUDGET = "over_budget"
    COMPLETE = "complete"


def compute_efficiency(budgeted_hours: Decimal, actual_hours: Decimal) -> Decimal | None:
    """Whole-number efficiency percentage, or ``None`` when undefined."""
    if budgeted_hours <= ZERO or actual_hours <= ZERO:
        return None
    return round_percent(budgeted_hours / actual_hours * HUNDRED)


def derive_budget_status(
    current: TaskBudgetStatus,
    budgeted_hours: Decimal,
    actual_hours: Decimal,
    tolerance: Decimal = DEFAULT_OVER_BUDGET_TOLERANCE,
) -> TaskBudgetStatus:
    """Status to persist after an hours update."""
    if current == TaskBudgetStatus.COMPLETE:
        return TaskBudgetStatus.COMPLETE
    if actual_hours > budgeted_hours * tolerance:
        return TaskBudgetStatus.OVER_BUDGET
    return TaskBudgetStatus.ACTIVE


# ---------------------------------------------------------------------------
# Project variance summary
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TaskLabourRecord:
    """Labour state of one deployed task, as input to the roll-up."""

    task_id: str
    estimate: TaskLabourEstimate | None
    actual: LabourActual | None


@dataclass(frozen=True)
class CrewVarianceTotal:
    crew_member_id: str
    crew_member_name: str
    total_variance: Decimal
    task_count: int


@dataclass(frozen=True)
class ProjectVarianceSummary:
    """Budget vs actual roll-up for a project."""

    total_sell_budget: Decimal
    total_cost_budget: Decimal
    total_actual_cost: Decimal | None
    total_variance: Decimal | None
    total_budgeted_hours: Decimal
    total_actual_hours: Decimal | None
    overall_efficiency: Decimal | None
    variance_by_crew_member: tuple[CrewVarianceTotal, ...] = field(default_factory=tuple)
    tasks_without_estimate: tuple[str, ...] = field(default_factory=tuple)


@dataclass
class _CrewAccumulator:
    variance: Decimal = ZERO
    count: int = 0


@traced_engine("variance", "1.0")
def summarize_project_variance(
    records: Iterable[TaskLabourRecord],
    crew_name: Callable[[str], str | None] = lambda crew_id: None,
) -> ProjectVarianceSummary:
    """
    Aggregate labour records into a ``ProjectVarianceSummary``.

    ``crew_name`` resolves a crew member id to a display name; the id is
    used when it returns ``None``.
    """
    total_sell = ZERO
    total_cost = ZERO
    total_budgeted_hours = ZERO
    total_actual_cost = ZERO
    total_actual_hours = ZERO
    has_incomplete = False
    by_crew: dict[str, _CrewAccumulator] = {}
    without_estimate: list[str] = []

    for record in records:
        estimate = record.estimate
        actual = record.actual
        if estimate is None:
            without_estimate.append(record.task_id)
            continue

        total_sell += estimate.sell_budget
        total_cost += estimate.cost_budget
        total_budgeted_hours += estimate.budgeted_hours

        if actual is not None and actual.actual_cost is not None:
            total_actual_cost += actual.actual_cost
            total_actual_hours += actual.actual_hours or ZERO
        else:
            has_incomplete = True

        if actual is not None and actual.scheduling_variance is not None:
            acc = by_crew.setdefault(actual.assigned_crew_member_id, _CrewAccumulator())
            acc.variance += actual.scheduling_variance
            acc.count += 1

    crew_totals = tuple(
        CrewVarianceTotal(
            crew_member_id=crew_id,
            crew_member_name=crew_name(crew_id) or crew_id,
            total_variance=round_money(acc.variance),
            task_count=acc.count,
        )
        for crew_id, acc in by_crew.items()
    )

    completed_cost = None if has_incomplete else round_money(total_actual_cost)
    completed_hours = None if has_incomplete else round_money(total_actual_hours)
    rounded_cost_budget = round_money(total_cost)
    rounded_budgeted_hours = round_money(total_budgeted_hours)

    overall_efficiency = None
    if completed_hours is not None and completed_hours > ZERO:
        overall_efficiency = round_money(rounded_budgeted_hours / completed_hours * HUNDRED)

    return ProjectVarianceSummary(
        total_sell_budget=round_money(total_sell),
        total_cost_budget=rounded_cost_budget,
        total_actual_cost=completed_cost,
        total_variance=(
            round_money(completed_cost - rounded_cost_budget)
            if completed_cost is not None
            else None
        ),
        total_budgeted_hours=rounded_budgeted_hours,
        total_actual_hours=completed_hours,
        overall_efficiency=overall_efficiency,
        variance_by_crew_member=crew_totals,
        tasks_without_estimate=tuple(without_estimate),
    )


# ---------------------------------------------------------------------------
# Crew variance history
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CrewVarianceRecord:
    """One completed task in a crew member's variance history."""

    task_id: str
    deployed_task_id: str
    project_id: str
    task_name: str
    budgeted_hours: Decimal
    actual_hours: Decimal
    hours_variance: Decimal
    scheduling_variance: Decimal
    completed_at: datetime


def build_crew_variance_record(
    *,
    task_id: str,
    deployed_task_id: str,
    project_id: str,
    task_name: str,
    estimate: TaskLabourEstimate,
    actual: LabourActual,
) -> CrewVarianceRecord:
    """Record for a task with recorded hours and an estimate."""
    if actual.actual_hours is None:
        raise ValueError("crew variance record requires recorded actual hours")
    return CrewVarianceRecord(
        task_id=task_id,
        deployed_task_id=deployed_task_id,
        project_id=project_id,
        task_name=task_name,
        budgeted_hours=estimate.budgeted_hours,
        actual_hours=actual.actual_hours,
        hours_variance=round_money(actual.actual_hours - estimate.budgeted_hours),
        scheduling_variance=(
            actual.scheduling_variance
            if actual.scheduling_variance is not None
            else ZERO
        ),
        completed_at=estimate.calculated_at,
    )


def sort_newest_first(records: Iterable[CrewVarianceRecord]) -> list[CrewVarianceRecord]:
    return sorted(records, key=lambda r: r.completed_at, reverse=True)
