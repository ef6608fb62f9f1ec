"""
Budget Configuration Schema.

Tolerance used when deriving a task budget's status from its hours.
"""

from dataclasses import dataclass
from decimal import Decimal

from labour_engines.variance import DEFAULT_OVER_BUDGET_TOLERANCE
from labour_kernel.db.types import to_decimal
from labour_kernel.logging_config import get_logger

logger = get_logger("modules.budget.config")


@dataclass
class BudgetConfig:
    """
    Configuration schema for the budget module.

    A budget is over budget when actual hours exceed
    ``budgeted_hours * over_budget_tolerance``.
    """

    over_budget_tolerance: Decimal = DEFAULT_OVER_BUDGET_TOLERANCE

    def __post_init__(self):
        self.over_budget_tolerance = to_decimal(self.over_budget_tolerance)
        if self.over_budget_tolerance < 1:
            raise ValueError("over_budget_tolerance must be at least 1")
        logger.info(
            "budget_config_initialized",
            extra={"over_budget_tolerance": str(self.over_budget_tolerance)},
        )
