"""
labour_engines.estimation -- Labour budget derivation and scheduling variance.

Responsibility:
    Turn a priced quantity into a sell budget, a cost budget and budgeted
    hours at the optimal skill rate, and derive the actual cost and
    scheduling variance once hours are worked.

    Core formula::

        sellBudget    = quantity x catalogueSellRate
        costBudget    = sellBudget / (1 + margin)
        budgetedHours = costBudget / skillLevel.costRate

    Variance sign convention: positive = over budget, negative = under.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  ``calculated_at`` is
    passed in by the caller; the engine never reads a clock.

Invariants enforced:
    - ``cost_budget x (1 + margin) ~= sell_budget`` and
      ``budgeted_hours x cost_rate ~= cost_budget`` within 2dp rounding.
    - Budgets and hours are rounded to 2dp in the snapshot only; the
      margin fraction is stored unrounded.
    - Snapshots are immutable; a recompute produces a new snapshot.

Failure modes:
    - InvalidEstimateParamsError for a negative quantity or sell rate.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from labour_engines.rate_resolution import (
    RateConfig,
    resolve_margin,
    resolve_skill_level,
)
from labour_engines.tracer import traced_engine
from labour_kernel.db.types import HUNDRED, ZERO, round_money, to_decimal
from labour_kernel.exceptions import InvalidEstimateParamsError
from labour_kernel.logging_config import get_logger

logger = get_logger("engines.estimation")


@dataclass(frozen=True)
class EstimateParams:
    """Input to ``LabourEstimator.calculate``."""

    catalogue_sell_rate: Decimal
    quantity: Decimal
    unit: str
    min_skill_level: int
    project_type: str | None = None
    trade_category: str | None = None

    def __post_init__(self):
        object.__setattr__(self, "catalogue_sell_rate", to_decimal(self.catalogue_sell_rate))
        object.__setattr__(self, "quantity", to_decimal(self.quantity))
        if self.quantity < ZERO:
            raise InvalidEstimateParamsError("quantity", self.quantity)
        if self.catalogue_sell_rate < ZERO:
            raise InvalidEstimateParamsError("catalogue_sell_rate", self.catalogue_sell_rate)


@dataclass(frozen=True)
class TaskLabourEstimate:
    """Labour estimate snapshot stored on a deployed task."""

    quantity: Decimal
    unit: str
    sell_budget: Decimal
    cost_budget: Decimal
    budgeted_hours: Decimal
    optimal_skill_level: int
    optimal_cost_rate: Decimal
    margin_applied: Decimal
    calculated_at: datetime
    catalogue_sell_rate: Decimal | None = None
    project_type: str | None = None
    trade_category: str | None = None

    def reconstructed_sell_rate(self) -> Decimal | None:
        """
        Catalogue rate used for this snapshot.

        Snapshots written before the rate was stored fall back to
        ``sell_budget / quantity``; that is undefined for a zero quantity.
        """
        if self.catalogue_sell_rate is not None:
            return self.catalogue_sell_rate
        if self.quantity == ZERO:
            return None
        return self.sell_budget / self.quantity


@dataclass(frozen=True)
class LabourActual:
    """Crew assignment and, once worked, the actual outcome."""

    assigned_crew_member_id: str
    assigned_cost_rate: Decimal
    actual_hours: Decimal | None = None
    actual_cost: Decimal | None = None
    scheduling_variance: Decimal | None = None
    variant_reason: str | None = None


class LabourEstimator:
    """
    Pure calculator for labour estimates.

    Contract:
        No I/O, no clock access, fully deterministic for identical inputs.
    """

    @traced_engine("estimation", "1.0", fingerprint_fields=("params",))
    def calculate(
        self,
        params: EstimateParams,
        config: RateConfig,
        calculated_at: datetime,
    ) -> TaskLabourEstimate:
        """Compute a fresh estimate snapshot from ``params`` and ``config``."""
        t0 = time.monotonic()
        margin = resolve_margin(
            config.margin_targets, params.project_type, params.trade_category
        )
        skill = resolve_skill_level(config, params.min_skill_level)

        sell_budget = params.quantity * params.catalogue_sell_rate
        cost_budget = sell_budget / (Decimal("1") + margin)
        budgeted_hours = cost_budget / skill.cost_rate

        estimate = TaskLabourEstimate(
            quantity=params.quantity,
            unit=params.unit,
            sell_budget=round_money(sell_budget),
            cost_budget=round_money(cost_budget),
            budgeted_hours=round_money(budgeted_hours),
            optimal_skill_level=params.min_skill_level,
            optimal_cost_rate=skill.cost_rate,
            margin_applied=margin,
            calculated_at=calculated_at,
            catalogue_sell_rate=params.catalogue_sell_rate,
            project_type=params.project_type,
            trade_category=params.trade_category,
        )
        logger.debug("labour_estimate_calculated", extra={
            "sell_budget": str(estimate.sell_budget),
            "cost_budget": str(estimate.cost_budget),
            "budgeted_hours": str(estimate.budgeted_hours),
            "margin": str(margin),
            "skill_level": skill.level,
            "duration_ms": round((time.monotonic() - t0) * 1000, 2),
        })
        return estimate


def actual_cost(actual_hours: Decimal, assigned_cost_rate: Decimal) -> Decimal:
    """Cost of the worked hours at the rate snapshotted at assignment."""
    return round_money(to_decimal(actual_hours) * assigned_cost_rate)


def scheduling_variance(
    cost: Decimal,
    estimate: TaskLabourEstimate | None,
) -> Decimal | None:
    """``actual_cost - cost_budget``; ``None`` when there is no estimate."""
    if estimate is None:
        return None
    return round_money(cost - estimate.cost_budget)


def over_budget_percent(
    variance: Decimal | None,
    estimate: TaskLabourEstimate | None,
) -> Decimal | None:
    """Variance as a percentage of cost budget; ``None`` if undefined."""
    if variance is None or estimate is None or estimate.cost_budget <= ZERO:
        return None
    return (variance / estimate.cost_budget) * HUNDRED


def overstaffing_reason(
    assigned_cost_rate: Decimal,
    estimate: TaskLabourEstimate | None,
) -> str | None:
    """Human-readable note when the assigned rate exceeds the optimal rate."""
    if estimate is None or assigned_cost_rate <= estimate.optimal_cost_rate:
        return None
    return (
        f"Assigned at ${assigned_cost_rate:.2f}/hr vs optimal "
        f"${estimate.optimal_cost_rate:.2f}/hr"
    )
