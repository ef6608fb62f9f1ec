"""
Rate Configuration Service (``labour_modules.rates.service``).

Responsibility
--------------
Owns the rate configuration singleton: seeds it from the packaged YAML
defaults exactly once, serves snapshots, applies partial-merge updates and
answers margin / skill-rate resolution questions.

Architecture position
---------------------
**Modules layer** -- an explicitly injected configuration object.  Callers
construct one ``RateConfigService`` at startup and pass it to the labour
service; there is no process-global configuration.

Invariants enforced
-------------------
* Seeding is single-flight: concurrent first reads seed at most once.
* Every stored configuration satisfies the rate invariants (validated by
  ``merge_rate_config`` / ``validate_rate_config`` before persistence).
* Override maps merge key-by-key; they are never replaced wholesale.

Failure modes
-------------
* ``InvalidRateConfigError`` for an update that would break an invariant;
  nothing is persisted in that case.
"""

from __future__ import annotations

import threading
from collections.abc import Mapping, Sequence
from dataclasses import replace
from decimal import Decimal

from labour_config.loader import load_rate_config
from labour_engines.rate_resolution import (
    merge_rate_config,
    resolve_margin,
    resolve_skill_level,
)
from labour_kernel.domain.clock import Clock, SystemClock
from labour_kernel.domain.events import EventType
from labour_kernel.logging_config import get_logger
from labour_modules.rates.models import RateConfig, SkillLevel
from labour_modules.rates.repository import RateConfigRepository
from labour_services.event_publisher import EventPublisher

logger = get_logger("modules.rates.service")


class RateConfigService:
    """
    Injected access point for margin targets and the skill ladder.

    Contract
    --------
    * ``get()`` always returns a valid configuration, seeding defaults on
      first use.
    * ``update()`` returns the merged, persisted configuration.

    Non-goals
    ---------
    * No history: only the current snapshot is kept.
    """

    def __init__(
        self,
        repository: RateConfigRepository,
        publisher: EventPublisher | None = None,
        clock: Clock | None = None,
        seed: RateConfig | None = None,
    ):
        self._repository = repository
        self._publisher = publisher
        self._clock = clock or SystemClock()
        self._seed = seed
        self._seed_lock = threading.Lock()

    def initialize(self) -> RateConfig:
        """Seed the store with defaults unless a configuration exists."""
        with self._seed_lock:
            existing = self._repository.get()
            if existing is not None:
                return existing

            seed = self._seed or load_rate_config()
            stored = self._repository.save(replace(seed, updated_at=self._clock.now()))
            logger.info("rate_config_seeded", extra={
                "default_margin": str(stored.margin_targets.default),
                "skill_levels": [s.level for s in stored.skill_levels],
            })
            return stored

    def get(self) -> RateConfig:
        """Current configuration snapshot."""
        config = self._repository.get()
        if config is None:
            return self.initialize()
        return config

    def update(
        self,
        *,
        default_margin: Decimal | None = None,
        by_project_type: Mapping[str, Decimal | None] | None = None,
        by_trade_category: Mapping[str, Decimal | None] | None = None,
        skill_levels: Sequence[SkillLevel] | None = None,
    ) -> RateConfig:
        """Partial merge; see ``merge_rate_config`` for the merge rules."""
        current = self.get()
        merged = merge_rate_config(
            current,
            default_margin=default_margin,
            by_project_type=by_project_type,
            by_trade_category=by_trade_category,
            skill_levels=skill_levels,
            updated_at=self._clock.now(),
        )
        stored = self._repository.save(merged)

        logger.info("rate_config_updated", extra={
            "default_margin": str(stored.margin_targets.default),
            "project_type_overrides": sorted(stored.margin_targets.by_project_type),
            "trade_category_overrides": sorted(stored.margin_targets.by_trade_category),
            "skill_levels": [s.level for s in stored.skill_levels],
        })
        if self._publisher is not None:
            self._publisher.publish(
                EventType.RATE_CONFIG_UPDATED,
                "rate_config",
                {
                    "default_margin": str(stored.margin_targets.default),
                    "skill_levels_replaced": skill_levels is not None,
                },
            )
        return stored

    def resolve_margin(
        self,
        project_type: str | None = None,
        trade_category: str | None = None,
    ) -> Decimal:
        return resolve_margin(self.get().margin_targets, project_type, trade_category)

    def get_skill_level(self, level: int) -> SkillLevel:
        return resolve_skill_level(self.get(), level)
