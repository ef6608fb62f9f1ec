"""
labour_services.factory -- Wiring for every labour service.

Responsibility:
    Creates each repository and service exactly once and wires them
    together.  No service constructs another service internally; this is
    the single point of dependency injection.

Usage:
    init_engine_from_url("postgresql://...")
    create_all_tables()

    services = build_labour_services(
        session_factory=get_session_factory(),
        sop_catalog=catalog,
        crew_directory=crew,
        event_sink=LoggingEventSink(),
        dispatcher=BackgroundDispatcher(),
    )
    services.rates.initialize()
    services.pipeline.generate_from_estimate(project_id, line_items)
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.orm import Session, sessionmaker

from labour_kernel.domain.clock import Clock, SystemClock
from labour_kernel.domain.collaborators import CrewDirectory, SopCatalog
from labour_kernel.domain.events import EventSink
from labour_kernel.logging_config import get_logger
from labour_modules.budget.config import BudgetConfig
from labour_modules.budget.repository import TaskBudgetRepository
from labour_modules.budget.service import TaskBudgetService
from labour_modules.labour.config import LabourConfig
from labour_modules.labour.service import LabourEstimationService
from labour_modules.pipeline.repository import (
    BlueprintRepository,
    DeployedTaskRepository,
    TaskRepository,
)
from labour_modules.pipeline.service import TaskPipelineService
from labour_modules.rates.models import RateConfig
from labour_modules.rates.repository import RateConfigRepository
from labour_modules.rates.service import RateConfigService
from labour_services.dispatcher import Dispatcher, InlineDispatcher
from labour_services.event_publisher import EventPublisher
from labour_services.reconciliation import BudgetReconciliationService

logger = get_logger("services.factory")


@dataclass(frozen=True)
class LabourServices:
    """Every wired service, sharing one dispatcher and one clock."""

    rates: RateConfigService
    pipeline: TaskPipelineService
    labour: LabourEstimationService
    budget: TaskBudgetService
    reconciliation: BudgetReconciliationService
    publisher: EventPublisher
    dispatcher: Dispatcher


def build_labour_services(
    session_factory: sessionmaker[Session],
    sop_catalog: SopCatalog,
    crew_directory: CrewDirectory,
    event_sink: EventSink,
    dispatcher: Dispatcher | None = None,
    clock: Clock | None = None,
    labour_config: LabourConfig | None = None,
    budget_config: BudgetConfig | None = None,
    rate_seed: RateConfig | None = None,
) -> LabourServices:
    """Build the service graph over ``session_factory``.

    Args:
        session_factory: SQLAlchemy sessionmaker shared by all repositories.
        sop_catalog: Current work-standard lookup.
        crew_directory: Crew member lookup.
        event_sink: Write-only recipient of domain events.
        dispatcher: Runs fire-and-forget work; inline when omitted.
        clock: Time source; ``SystemClock`` when omitted.
        rate_seed: Rate configuration seeded on first use instead of the
            packaged YAML defaults.
    """
    dispatcher = dispatcher or InlineDispatcher()
    clock = clock or SystemClock()
    publisher = EventPublisher(event_sink, dispatcher)

    blueprint_repo = BlueprintRepository(session_factory)
    task_repo = TaskRepository(session_factory)
    deployed_repo = DeployedTaskRepository(session_factory)
    budget_repo = TaskBudgetRepository(session_factory)

    rates = RateConfigService(
        RateConfigRepository(session_factory),
        publisher=publisher,
        clock=clock,
        seed=rate_seed,
    )
    budget = TaskBudgetService(budget_repo, publisher, config=budget_config)
    pipeline = TaskPipelineService(
        blueprint_repo,
        task_repo,
        deployed_repo,
        sop_catalog,
        publisher,
        budget_tracker=budget,
        dispatcher=dispatcher,
        clock=clock,
    )
    labour = LabourEstimationService(
        rates,
        deployed_repo,
        blueprint_repo,
        crew_directory,
        publisher,
        clock=clock,
        config=labour_config,
    )
    reconciliation = BudgetReconciliationService(
        blueprint_repo, deployed_repo, budget_repo, budget
    )

    logger.info("labour_services_built", extra={
        "dispatcher": type(dispatcher).__name__,
        "clock": type(clock).__name__,
    })
    return LabourServices(
        rates=rates,
        pipeline=pipeline,
        labour=labour,
        budget=budget,
        reconciliation=reconciliation,
        publisher=publisher,
        dispatcher=dispatcher,
    )
