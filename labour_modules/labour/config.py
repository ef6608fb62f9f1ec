"""
Labour Estimation Configuration Schema.

Thresholds for the labour service.  Margin targets and the skill ladder are
not here; they live in the rate configuration store.
"""

from dataclasses import dataclass
from decimal import Decimal

from labour_kernel.db.types import to_decimal
from labour_kernel.logging_config import get_logger

logger = get_logger("modules.labour.config")


@dataclass
class LabourConfig:
    """
    Configuration schema for the labour estimation module.

        config = LabourConfig(variance_warning_threshold_pct=Decimal("20"))
    """

    # Over-budget percentage above which a variance warning is emitted
    variance_warning_threshold_pct: Decimal = Decimal("15")

    def __post_init__(self):
        self.variance_warning_threshold_pct = to_decimal(self.variance_warning_threshold_pct)
        if self.variance_warning_threshold_pct < 0:
            raise ValueError("variance_warning_threshold_pct cannot be negative")
        logger.info(
            "labour_config_initialized",
            extra={"variance_warning_threshold_pct": str(self.variance_warning_threshold_pct)},
        )
