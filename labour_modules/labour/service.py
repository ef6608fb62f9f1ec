"""
Labour Estimation Service (``labour_modules.labour.service``).

Responsibility
--------------
Applies labour estimates to deployed tasks, records crew assignment and
actual hours, reprices open work after rate changes, and answers project
variance and crew variance-history queries.

Architecture
------------
Layer: **Modules** -- thin glue over the pure ``LabourEstimator`` and
variance engines, the deployed-task store and the injected
``RateConfigService``.

Invariants
----------
- The stored estimate is replaced wholesale, never patched.
- ``assigned_cost_rate`` is the crew wage rate at assignment time.
- Recording hours never changes stored status; a variance warning is an
  event only.

Failure Modes
-------------
- Missing sidecar, crew member, or crew assignment: ``None``.
- ``InvalidEstimateParamsError`` for negative quantity or sell rate.
- ``recalculate_project_estimates`` logs and skips a task that fails and
  keeps going; earlier writes stand.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

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
from labour_engines.variance import (
    CrewVarianceRecord,
    ProjectVarianceSummary,
    TaskLabourRecord,
    build_crew_variance_record,
    sort_newest_first,
    summarize_project_variance,
)
from labour_kernel.db.types import round_money, to_decimal
from labour_kernel.domain.clock import Clock, SystemClock
from labour_kernel.domain.collaborators import CrewDirectory
from labour_kernel.domain.events import EventType
from labour_kernel.logging_config import LogContext, get_logger
from labour_kernel.utils.ids import parse_id
from labour_modules.labour.config import LabourConfig
from labour_modules.pipeline.models import Blueprint, BlueprintStatus, DeployedTask
from labour_modules.pipeline.repository import BlueprintRepository, DeployedTaskRepository
from labour_modules.rates.service import RateConfigService
from labour_services.event_publisher import EventPublisher

logger = get_logger("modules.labour.service")


class LabourEstimationService:
    """
    Labour budget, crew assignment and variance operations.

    Contract
    --------
    Mutating methods return the updated ``DeployedTask`` or ``None`` when
    a referenced record is missing.  Queries never mutate.
    """

    def __init__(
        self,
        rates: RateConfigService,
        deployed_tasks: DeployedTaskRepository,
        blueprints: BlueprintRepository,
        crew_directory: CrewDirectory,
        publisher: EventPublisher,
        clock: Clock | None = None,
        config: LabourConfig | None = None,
    ):
        self._rates = rates
        self._deployed_tasks = deployed_tasks
        self._blueprints = blueprints
        self._crew = crew_directory
        self._publisher = publisher
        self._clock = clock or SystemClock()
        self._config = config or LabourConfig()
        self._estimator = LabourEstimator()

    # =========================================================================
    # Estimates
    # =========================================================================

    def calculate_task_estimate(self, params: EstimateParams) -> TaskLabourEstimate:
        """Pure estimate against the current rate configuration; stores nothing."""
        return self._estimator.calculate(params, self._rates.get(), self._clock.now())

    def apply_estimate_to_task(
        self,
        deployed_task_id: UUID | str,
        params: EstimateParams,
    ) -> DeployedTask | None:
        key = parse_id(deployed_task_id)
        if key is None:
            return None

        with LogContext.bind(deployed_task_id=str(key)):
            estimate = self.calculate_task_estimate(params)
            updated = self._deployed_tasks.update_estimate(key, estimate)
            if updated is None:
                logger.info("estimate_skipped_not_found")
                return None

            logger.info("estimate_applied", extra={
                "sell_budget": str(estimate.sell_budget),
                "cost_budget": str(estimate.cost_budget),
                "budgeted_hours": str(estimate.budgeted_hours),
                "skill_level": estimate.optimal_skill_level,
            })
            self._publisher.publish(EventType.ESTIMATE_APPLIED, key, {
                "sell_budget": estimate.sell_budget,
                "cost_budget": estimate.cost_budget,
                "budgeted_hours": estimate.budgeted_hours,
                "skill_level": estimate.optimal_skill_level,
                "margin": estimate.margin_applied,
            })
        return updated

    def recalculate_project_estimates(self, project_id: str) -> int:
        """
        Reprice every estimated deployed task of ``project_id``.

        Uses each blueprint's current ``min_skill_level`` and the current
        rate configuration with the snapshot's stored sell rate and margin
        context.  Returns the number of estimates rewritten.
        """
        blueprints = {
            b.id: b
            for b in self._blueprints.find_by_project_and_status(
                project_id, BlueprintStatus.DEPLOYED
            )
        }
        if not blueprints:
            return 0

        config = self._rates.get()
        updated = 0

        with LogContext.bind(project_id=project_id):
            for deployed in self._deployed_tasks.find_by_blueprint_ids(blueprints):
                estimate = deployed.labour_estimate
                if estimate is None:
                    continue

                sell_rate = estimate.reconstructed_sell_rate()
                if sell_rate is None:
                    logger.warning("recalculate_skipped_no_sell_rate", extra={
                        "deployed_task_id": str(deployed.id),
                    })
                    continue

                blueprint = blueprints[deployed.blueprint_id]
                try:
                    fresh = self._estimator.calculate(
                        EstimateParams(
                            catalogue_sell_rate=sell_rate,
                            quantity=estimate.quantity,
                            unit=estimate.unit,
                            min_skill_level=blueprint.min_skill_level,
                            project_type=estimate.project_type,
                            trade_category=estimate.trade_category,
                        ),
                        config,
                        self._clock.now(),
                    )
                    if self._deployed_tasks.update_estimate(deployed.id, fresh) is not None:
                        updated += 1
                except Exception:
                    logger.error("recalculate_task_failed", extra={
                        "deployed_task_id": str(deployed.id),
                    }, exc_info=True)

            logger.info("project_estimates_recalculated", extra={"tasks_updated": updated})
            if updated > 0:
                self._publisher.publish(EventType.ESTIMATES_RECALCULATED, project_id, {
                    "tasks_updated": updated,
                })
        return updated

    # =========================================================================
    # Crew and actuals
    # =========================================================================

    def assign_crew(
        self,
        deployed_task_id: UUID | str,
        crew_member_id: str,
    ) -> DeployedTask | None:
        """
        Snapshot the crew member's wage rate as the assigned cost rate.

        When that rate exceeds the estimate's optimal rate, the
        overstaffing reason is written in a second update.
        """
        key = parse_id(deployed_task_id)
        if key is None:
            return None
        crew_member = self._crew.find_by_id(crew_member_id)
        if crew_member is None:
            logger.info("assign_crew_skipped_unknown_crew", extra={
                "crew_member_id": crew_member_id,
            })
            return None

        with LogContext.bind(deployed_task_id=str(key)):
            rate = to_decimal(crew_member.wage_rate)
            updated = self._deployed_tasks.update_actual(key, LabourActual(
                assigned_crew_member_id=crew_member.id,
                assigned_cost_rate=rate,
            ))
            if updated is None:
                logger.info("assign_crew_skipped_not_found")
                return None

            reason = overstaffing_reason(rate, updated.labour_estimate)
            if reason is not None:
                updated = self._deployed_tasks.update_actual(key, LabourActual(
                    assigned_crew_member_id=crew_member.id,
                    assigned_cost_rate=rate,
                    variant_reason=reason,
                )) or updated

            logger.info("crew_assigned", extra={
                "crew_member_id": crew_member.id,
                "cost_rate": str(rate),
                "variant_reason": reason,
            })
            self._publisher.publish(EventType.CREW_ASSIGNED, key, {
                "crew_member_id": crew_member.id,
                "crew_name": crew_member.name,
                "cost_rate": rate,
                "variant_reason": reason,
            })
        return updated

    def record_actual_hours(
        self,
        deployed_task_id: UUID | str,
        actual_hours: Decimal | int | float | str,
    ) -> DeployedTask | None:
        """
        Record worked hours; crew must be assigned first.

        Emits ``labour.variance_warning`` when the over-budget percentage
        exceeds the configured threshold.
        """
        key = parse_id(deployed_task_id)
        if key is None:
            return None
        deployed = self._deployed_tasks.find_by_id(key)
        if deployed is None or deployed.labour_actual is None:
            logger.info("record_hours_skipped", extra={
                "deployed_task_id": str(key),
                "reason": "not_found" if deployed is None else "crew_not_assigned",
            })
            return None

        raw_hours = to_decimal(actual_hours)
        hours = round_money(raw_hours)
        current = deployed.labour_actual
        estimate = deployed.labour_estimate
        cost = actual_cost(raw_hours, current.assigned_cost_rate)
        variance = scheduling_variance(cost, estimate)

        with LogContext.bind(deployed_task_id=str(key)):
            updated = self._deployed_tasks.update_actual(key, LabourActual(
                assigned_crew_member_id=current.assigned_crew_member_id,
                assigned_cost_rate=current.assigned_cost_rate,
                actual_hours=hours,
                actual_cost=cost,
                scheduling_variance=variance,
                variant_reason=current.variant_reason,
            ))
            if updated is None:
                return None

            logger.info("hours_recorded", extra={
                "actual_hours": str(hours),
                "actual_cost": str(cost),
                "scheduling_variance": str(variance) if variance is not None else None,
            })
            self._publisher.publish(EventType.HOURS_RECORDED, key, {
                "actual_hours": hours,
                "actual_cost": cost,
                "budgeted_hours": estimate.budgeted_hours if estimate else None,
                "scheduling_variance": variance,
            })

            over_pct = over_budget_percent(variance, estimate)
            if over_pct is not None and over_pct > self._config.variance_warning_threshold_pct:
                logger.warning("variance_warning", extra={
                    "variance_pct": str(round_money(over_pct)),
                    "scheduling_variance": str(variance),
                })
                self._publisher.publish(EventType.VARIANCE_WARNING, key, {
                    "actual_cost": cost,
                    "cost_budget": estimate.cost_budget,
                    "variance_pct": round_money(over_pct),
                    "scheduling_variance": variance,
                })
        return updated

    # =========================================================================
    # Queries
    # =========================================================================

    def get_deployed_task_labour_data(
        self,
        deployed_task_id: UUID | str,
    ) -> tuple[TaskLabourEstimate | None, LabourActual | None] | None:
        deployed = self._deployed_tasks.find_by_id(deployed_task_id)
        if deployed is None:
            return None
        return deployed.labour_estimate, deployed.labour_actual

    def get_project_variance_summary(self, project_id: str) -> ProjectVarianceSummary:
        blueprint_ids = [
            b.id
            for b in self._blueprints.find_by_project_and_status(
                project_id, BlueprintStatus.DEPLOYED
            )
        ]
        records = [
            TaskLabourRecord(
                task_id=str(d.task_id),
                estimate=d.labour_estimate,
                actual=d.labour_actual,
            )
            for d in self._deployed_tasks.find_by_blueprint_ids(blueprint_ids)
        ]
        return summarize_project_variance(records, crew_name=self._crew_name)

    def get_crew_variance_history(self, crew_member_id: str) -> list[CrewVarianceRecord]:
        blueprints: dict[UUID, Blueprint | None] = {}
        records = []
        for deployed in self._deployed_tasks.find_by_crew_member(crew_member_id):
            actual = deployed.labour_actual
            estimate = deployed.labour_estimate
            if actual is None or actual.actual_hours is None or estimate is None:
                continue
            if deployed.blueprint_id not in blueprints:
                blueprints[deployed.blueprint_id] = self._blueprints.find_by_id(
                    deployed.blueprint_id
                )
            blueprint = blueprints[deployed.blueprint_id]
            records.append(build_crew_variance_record(
                task_id=str(deployed.task_id),
                deployed_task_id=str(deployed.id),
                project_id=blueprint.project_id if blueprint else "",
                task_name=blueprint.name if blueprint else deployed.sop_code,
                estimate=estimate,
                actual=actual,
            ))
        return sort_newest_first(records)

    def _crew_name(self, crew_member_id: str) -> str | None:
        crew = self._crew.find_by_id(crew_member_id)
        return crew.name if crew is not None else None


