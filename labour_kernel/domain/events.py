"""
Domain event contract.

Responsibility:
    Names every business event the core emits and defines the write-only
    ``EventSink`` protocol that receives them.  Sinks are best-effort:
    callers never rely on a return value, and a sink failure never fails
    the operation that produced the event.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Protocol, runtime_checkable


class EventType(str, Enum):
    """Business events emitted by the pipeline, labour and budget modules."""

    # Pipeline
    ESTIMATE_GENERATED = "pipeline.estimate_generated"
    CHANGE_ORDER_GENERATED = "pipeline.co_generated"
    TASK_DEPLOYED = "pipeline.task_deployed"
    BLUEPRINT_CANCELLED = "pipeline.blueprint_cancelled"

    # Labour
    ESTIMATE_APPLIED = "labour.estimate_applied"
    CREW_ASSIGNED = "labour.crew_assigned"
    HOURS_RECORDED = "labour.hours_recorded"
    VARIANCE_WARNING = "labour.variance_warning"
    ESTIMATES_RECALCULATED = "labour.estimates_recalculated"

    # Budget
    BUDGET_CREATED = "budget.created"
    BUDGET_OVER_BUDGET = "budget.over_budget"
    BUDGET_COMPLETED = "budget.completed"

    # Rates
    RATE_CONFIG_UPDATED = "rates.config_updated"


@runtime_checkable
class EventSink(Protocol):
    """Write-only recipient of domain events."""

    def record(
        self,
        event_type: str,
        subject_id: str,
        payload: dict[str, Any],
    ) -> None:
        ...
