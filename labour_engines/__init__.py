"""
Module: labour_engines
Responsibility:
    Package entrypoint re-exporting the pure calculation engines: rate
    resolution, labour estimation and variance roll-ups.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import labour_kernel (types, exceptions, logging).
    MUST NOT import labour_modules or labour_services.

Invariants enforced:
    - Purity: engines never read a clock; timestamps are passed in.
    - Decimal-only arithmetic for currency, hours and rates.
    - Determinism: identical inputs always produce identical outputs.

Usage:
    from labour_engines import LabourEstimator, EstimateParams
    from labour_engines import resolve_margin, resolve_skill_level
    from labour_engines import summarize_project_variance
"""

from labour_engines.estimation import (
    EstimateParams,
    LabourActual,
    LabourEstimator,
    TaskLabourEstimate,
    actual_cost,
    over_budget_percent,
    overstaffing_reason,
    scheduling_variance,
)
from labour_engines.rate_resolution import (
    MarginTargets,
    RateConfig,
    SkillLevel,
    merge_rate_config,
    resolve_margin,
    resolve_skill_level,
    validate_rate_config,
)
from labour_engines.tracer import traced_engine
from labour_engines.variance import (
    CrewVarianceRecord,
    CrewVarianceTotal,
    ProjectVarianceSummary,
    TaskBudgetStatus,
    TaskLabourRecord,
    build_crew_variance_record,
    compute_efficiency,
    derive_budget_status,
    sort_newest_first,
    summarize_project_variance,
)

__all__ = [
    # Estimation
    "EstimateParams",
    "LabourActual",
    "LabourEstimator",
    "TaskLabourEstimate",
    "actual_cost",
    "over_budget_percent",
    "overstaffing_reason",
    "scheduling_variance",
    # Rates
    "MarginTargets",
    "RateConfig",
    "SkillLevel",
    "merge_rate_config",
    "resolve_margin",
    "resolve_skill_level",
    "validate_rate_config",
    # Variance
    "CrewVarianceRecord",
    "CrewVarianceTotal",
    "ProjectVarianceSummary",
    "TaskBudgetStatus",
    "TaskLabourRecord",
    "build_crew_variance_record",
    "compute_efficiency",
    "derive_budget_status",
    "sort_newest_first",
    "summarize_project_variance",
    # Tracing
    "traced_engine",
]
