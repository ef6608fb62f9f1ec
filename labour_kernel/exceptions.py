"""
Typed Exception Hierarchy for the Labour Kernel.

Every error has a typed class (catch by type, not message), a ``code``
class attribute (machine-readable, API-safe), and structured attributes
carrying the context needed to log or report it.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LabourKernelError (base)
    |
    +-- BlueprintError
    |   +-- InvalidBlueprintTransitionError
    |   +-- LoopBindingRequiredError
    |
    +-- RateConfigError
    |   +-- InvalidRateConfigError
    |
    +-- EstimateError
    |   +-- InvalidEstimateParamsError
    |
    +-- ConcurrencyError
        +-- OptimisticLockError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                          | When Raised
----------------|-------------------------------|-------------------------------------
Blueprint       | INVALID_BLUEPRINT_TRANSITION  | e.g. cancelling a deployed blueprint
                | LOOP_BINDING_REQUIRED         | Looped blueprint deployed unbound
----------------|-------------------------------|-------------------------------------
Rate config     | INVALID_RATE_CONFIG           | Empty ladder, bad margin or rate
----------------|-------------------------------|-------------------------------------
Estimate        | INVALID_ESTIMATE_PARAMS       | Negative quantity or sell rate
----------------|-------------------------------|-------------------------------------
Concurrency     | OPTIMISTIC_LOCK_CONFLICT      | Status compare-and-swap lost

Not-found conditions are NOT exceptions: operations on a missing blueprint,
deployed task, crew member or SOP code return ``None`` (or an empty result)
and callers check for absence.  Already-deployed blueprints are likewise a
``None`` no-op so retried deployments stay safe.
"""

from __future__ import annotations


class LabourKernelError(Exception):
    """
    Base exception for all labour kernel errors.

    All subclasses must have a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "LABOUR_KERNEL_ERROR"


# Blueprint lifecycle


class BlueprintError(LabourKernelError):
    """Base exception for blueprint lifecycle errors."""

    code: str = "BLUEPRINT_ERROR"


class InvalidBlueprintTransitionError(BlueprintError):
    """Blueprint status change is not allowed from its current status."""

    code: str = "INVALID_BLUEPRINT_TRANSITION"

    def __init__(self, blueprint_id: str, from_status: str, to_status: str):
        self.blueprint_id = blueprint_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Blueprint {blueprint_id} cannot move from "
            f"{from_status} to {to_status}"
        )


class LoopBindingRequiredError(BlueprintError):
    """A looped blueprint was deployed without a location binding."""

    code: str = "LOOP_BINDING_REQUIRED"

    def __init__(self, blueprint_id: str, loop_context_label: str | None = None):
        self.blueprint_id = blueprint_id
        self.loop_context_label = loop_context_label
        super().__init__(
            f"Blueprint {blueprint_id} is looped"
            + (f" ({loop_context_label})" if loop_context_label else "")
            + " and needs a loop binding label before deployment"
        )


# Rate configuration


class RateConfigError(LabourKernelError):
    """Base exception for rate configuration errors."""

    code: str = "RATE_CONFIG_ERROR"


class InvalidRateConfigError(RateConfigError):
    """Rate configuration violates its invariants."""

    code: str = "INVALID_RATE_CONFIG"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid rate configuration: {reason}")


# Estimation


class EstimateError(LabourKernelError):
    """Base exception for labour estimate errors."""

    code: str = "ESTIMATE_ERROR"


class InvalidEstimateParamsError(EstimateError):
    """Estimate parameters are outside the valid domain."""

    code: str = "INVALID_ESTIMATE_PARAMS"

    def __init__(self, field: str, value: object):
        self.field = field
        self.value = value
        super().__init__(f"Invalid estimate parameter {field}={value!r}")


# Concurrency


class ConcurrencyError(LabourKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )
