"""
labour_engines.rate_resolution -- Margin and skill-rate resolution.

Responsibility:
    Value objects for the rate configuration (margin targets and the skill
    ladder) plus the pure functions that resolve a margin for a
    project-type / trade-category pair, resolve a skill level with fallback,
    validate a configuration, and apply a partial-merge patch.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Consumed by the rates
    module (persistence, seeding) and the labour estimator.

Invariants enforced:
    - At least one skill level exists; every cost rate is positive.
    - The default margin is always defined and greater than -1 (so that
      ``1 + margin`` is a valid divisor).
    - Margin resolution is most-specific-wins: trade category, then project
      type, then default.  A missing override falls through; it never
      resolves to zero.
    - Skill resolution never errors: an exact level match wins, otherwise
      the lowest defined level is used.

Failure modes:
    - InvalidRateConfigError from ``validate_rate_config`` and
      ``merge_rate_config``.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from types import MappingProxyType

from labour_kernel.db.types import ZERO, to_decimal
from labour_kernel.exceptions import InvalidRateConfigError
from labour_kernel.logging_config import get_logger

logger = get_logger("engines.rate_resolution")

_MINUS_ONE = Decimal("-1")


@dataclass(frozen=True)
class SkillLevel:
    """A rung on the cost-rate ladder."""

    level: int
    cost_rate: Decimal
    label: str = ""
    description: str = ""


@dataclass(frozen=True)
class MarginTargets:
    """Default margin plus per-project-type and per-trade overrides."""

    default: Decimal
    by_project_type: Mapping[str, Decimal] = field(default_factory=dict)
    by_trade_category: Mapping[str, Decimal] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(
            self, "by_project_type", MappingProxyType(dict(self.by_project_type))
        )
        object.__setattr__(
            self, "by_trade_category", MappingProxyType(dict(self.by_trade_category))
        )


@dataclass(frozen=True)
class RateConfig:
    """Snapshot of the rate configuration singleton."""

    margin_targets: MarginTargets
    skill_levels: tuple[SkillLevel, ...]
    updated_at: datetime | None = None

    @property
    def lowest_skill_level(self) -> SkillLevel:
        return min(self.skill_levels, key=lambda s: s.level)


def resolve_margin(
    targets: MarginTargets,
    project_type: str | None = None,
    trade_category: str | None = None,
) -> Decimal:
    """Resolve the margin fraction, most specific override first."""
    if trade_category is not None and trade_category in targets.by_trade_category:
        return targets.by_trade_category[trade_category]
    if project_type is not None and project_type in targets.by_project_type:
        return targets.by_project_type[project_type]
    return targets.default


def resolve_skill_level(config: RateConfig, min_skill_level: int) -> SkillLevel:
    """Exact match on ``min_skill_level``, else the lowest defined level."""
    for skill in config.skill_levels:
        if skill.level == min_skill_level:
            return skill
    fallback = config.lowest_skill_level
    logger.debug("skill_level_fallback", extra={
        "requested_level": min_skill_level,
        "resolved_level": fallback.level,
    })
    return fallback


def validate_rate_config(config: RateConfig) -> RateConfig:
    """Check the configuration invariants; return the config unchanged."""
    if not config.skill_levels:
        raise InvalidRateConfigError("at least one skill level is required")

    seen: set[int] = set()
    for skill in config.skill_levels:
        if skill.level in seen:
            raise InvalidRateConfigError(f"duplicate skill level {skill.level}")
        seen.add(skill.level)
        if skill.cost_rate <= ZERO:
            raise InvalidRateConfigError(
                f"skill level {skill.level} cost rate must be positive"
            )

    targets = config.margin_targets
    if targets.default is None:
        raise InvalidRateConfigError("default margin must be defined")
    margins = {"default": targets.default}
    margins.update({f"project_type:{k}": v for k, v in targets.by_project_type.items()})
    margins.update({f"trade_category:{k}": v for k, v in targets.by_trade_category.items()})
    for name, margin in margins.items():
        if margin <= _MINUS_ONE:
            raise InvalidRateConfigError(f"margin {name} must be greater than -1")

    return config


def _merge_overrides(
    current: Mapping[str, Decimal],
    patch: Mapping[str, Decimal | int | float | str | None] | None,
) -> dict[str, Decimal]:
    merged = dict(current)
    if not patch:
        return merged
    for key, value in patch.items():
        if value is None:
            merged.pop(key, None)
        else:
            merged[key] = to_decimal(value)
    return merged


def merge_rate_config(
    current: RateConfig,
    *,
    default_margin: Decimal | None = None,
    by_project_type: Mapping[str, Decimal | None] | None = None,
    by_trade_category: Mapping[str, Decimal | None] | None = None,
    skill_levels: Sequence[SkillLevel] | None = None,
    updated_at: datetime | None = None,
) -> RateConfig:
    """
    Apply a partial update to ``current`` and validate the result.

    Override maps merge key-by-key (a ``None`` value removes the key);
    ``skill_levels``, when given, replaces the ladder wholesale.
    """
    targets = current.margin_targets
    merged_targets = MarginTargets(
        default=to_decimal(default_margin) if default_margin is not None else targets.default,
        by_project_type=_merge_overrides(targets.by_project_type, by_project_type),
        by_trade_category=_merge_overrides(targets.by_trade_category, by_trade_category),
    )
    ladder = (
        tuple(sorted(skill_levels, key=lambda s: s.level))
        if skill_levels is not None
        else current.skill_levels
    )
    merged = replace(
        current,
        margin_targets=merged_targets,
        skill_levels=ladder,
        updated_at=updated_at or current.updated_at,
    )
    return validate_rate_config(merged)
