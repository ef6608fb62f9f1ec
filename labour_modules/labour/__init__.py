"""
Labour Estimation Module (``labour_modules.labour``).

Sell/cost/hours budgets for deployed tasks, crew assignment, actual hours,
and project and crew variance reporting.
"""

from labour_modules.labour.config import LabourConfig
from labour_modules.labour.service import LabourEstimationService

__all__ = ["LabourConfig", "LabourEstimationService"]
