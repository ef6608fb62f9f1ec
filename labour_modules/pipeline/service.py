"""
Task Pipeline Service (``labour_modules.pipeline.service``).

Responsibility
--------------
Turns approved estimate and change-order line items into blueprints,
deploys blueprints into a schedulable task plus its labour sidecar, and
cancels blueprints that will not be built.

Architecture
------------
Layer: **Modules** -- stateful orchestration over the pipeline
repositories.  Budget creation and event recording are handed to a
dispatcher and never awaited.

Deployment is an ordered step sequence, not a transaction:

1. create the Task
2. create the DeployedTask sidecar
3. compare-and-swap the blueprint status ``pending -> deployed``
4. submit budget creation (fire-and-forget)
5. publish ``pipeline.task_deployed``

If a step fails, earlier records remain.  Re-running ``deploy_blueprint``
on a deployed blueprint is a no-op, and
``BudgetReconciliationService`` backfills a budget lost at step 4.

Invariants
----------
- Blueprint status is one-way: pending -> deployed | cancelled.
- Deployments of the same blueprint id are serialised in-process by a
  keyed lock; across processes the status CAS admits one winner.
- A Task and its DeployedTask are always created as a pair.

Failure Modes
-------------
- ``LoopBindingRequiredError`` when a looped blueprint is deployed without
  a loop binding label.
- ``InvalidBlueprintTransitionError`` when cancelling a deployed blueprint.
- ``OptimisticLockError`` when another writer deployed the blueprint
  between the read and the status write.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from decimal import Decimal
from typing import Protocol
from uuid import UUID, uuid4

from labour_kernel.db.types import ZERO
from labour_kernel.domain.clock import Clock, SystemClock
from labour_kernel.domain.collaborators import SopCatalog, SopDefinition
from labour_kernel.domain.events import EventType
from labour_kernel.exceptions import (
    InvalidBlueprintTransitionError,
    LoopBindingRequiredError,
    OptimisticLockError,
)
from labour_kernel.logging_config import LogContext, get_logger
from labour_kernel.utils.ids import parse_id
from labour_kernel.utils.locks import KeyedLocks
from labour_modules.pipeline.models import (
    Blueprint,
    BlueprintStatus,
    ChangeOrderLineItem,
    DeployedTask,
    DeploymentResult,
    GenerationResult,
    LineItem,
    Task,
    WorkSource,
)
from labour_modules.pipeline.repository import (
    BlueprintRepository,
    DeployedTaskRepository,
    TaskRepository,
)
from labour_services.dispatcher import Dispatcher, InlineDispatcher
from labour_services.event_publisher import EventPublisher

logger = get_logger("modules.pipeline.service")


class BudgetTracker(Protocol):
    """Budget collaborator notified when a blueprint deploys."""

    def create_from_deployment(
        self,
        deployed_task: DeployedTask,
        blueprint: Blueprint,
        project_id: str,
        wage_rate: Decimal,
        charge_rate: Decimal,
    ) -> object:
        ...


class TaskPipelineService:
    """
    Blueprint generation, deployment and cancellation.

    Contract
    --------
    Not-found inputs return ``None`` (or an empty result); the service
    raises only for the invalid transitions listed in the module docstring.
    """

    def __init__(
        self,
        blueprints: BlueprintRepository,
        tasks: TaskRepository,
        deployed_tasks: DeployedTaskRepository,
        sop_catalog: SopCatalog,
        publisher: EventPublisher,
        budget_tracker: BudgetTracker | None = None,
        dispatcher: Dispatcher | None = None,
        clock: Clock | None = None,
    ):
        self._blueprints = blueprints
        self._tasks = tasks
        self._deployed_tasks = deployed_tasks
        self._sop_catalog = sop_catalog
        self._publisher = publisher
        self._budget_tracker = budget_tracker
        self._dispatcher = dispatcher or InlineDispatcher()
        self._clock = clock or SystemClock()
        self._deploy_locks = KeyedLocks()

    # =========================================================================
    # Generation
    # =========================================================================

    def generate_from_estimate(
        self,
        project_id: str,
        line_items: Iterable[LineItem],
    ) -> GenerationResult:
        """
        Create one blueprint per resolvable SOP code on each line item.

        Codes with no current SOP definition are skipped.  Blueprints that
        are not looped deploy immediately; looped ones stay pending until
        bound to a location.
        """
        created: list[Blueprint] = []
        deployed: list[DeployedTask] = []

        with LogContext.bind(project_id=project_id):
            for item in line_items:
                for sop_code in item.sop_codes:
                    sop = self._resolve_sop(sop_code, item.id)
                    if sop is None:
                        continue
                    blueprint = self._blueprints.create(Blueprint(
                        id=uuid4(),
                        project_id=project_id,
                        name=f"{sop.title} - {item.description}",
                        sop_id=sop.id,
                        sop_code=sop.sop_code,
                        sop_version=sop.version,
                        work_source=WorkSource.ESTIMATE,
                        work_source_id=item.id,
                        estimated_hours_per_unit=item.estimated_hours_per_unit or ZERO,
                        total_units=item.quantity,
                        is_looped=item.is_looped,
                        loop_context_label=item.loop_context_label,
                        min_skill_level=item.min_skill_level,
                        created_at=self._clock.now(),
                    ))
                    created.append(blueprint)

                    if not blueprint.is_looped:
                        result = self.deploy_blueprint(blueprint.id)
                        if result is not None:
                            deployed.append(result.deployed_task)

            logger.info("estimate_blueprints_generated", extra={
                "blueprints_created": len(created),
                "auto_deployed": len(deployed),
            })
            self._publisher.publish(EventType.ESTIMATE_GENERATED, project_id, {
                "blueprints_created": len(created),
                "auto_deployed": len(deployed),
            })

        return self._refreshed(created, deployed)

    def generate_from_change_order(
        self,
        project_id: str,
        change_order_id: str,
        line_items: Iterable[ChangeOrderLineItem],
    ) -> GenerationResult:
        """
        Create and immediately deploy one blueprint per change-order item.

        Each item carries a single SOP code; the blueprint is one unit of
        ``estimated_hours`` hours.
        """
        created: list[Blueprint] = []
        deployed: list[DeployedTask] = []

        with LogContext.bind(project_id=project_id):
            for item in line_items:
                if not item.sop_code:
                    continue
                sop = self._resolve_sop(item.sop_code, item.id)
                if sop is None:
                    continue
                blueprint = self._blueprints.create(Blueprint(
                    id=uuid4(),
                    project_id=project_id,
                    name=f"{sop.title} - {item.description}",
                    sop_id=sop.id,
                    sop_code=sop.sop_code,
                    sop_version=sop.version,
                    work_source=WorkSource.CHANGE_ORDER,
                    work_source_id=item.id,
                    estimated_hours_per_unit=item.estimated_hours,
                    total_units=Decimal("1"),
                    is_looped=False,
                    min_skill_level=item.min_skill_level,
                    created_at=self._clock.now(),
                ))
                created.append(blueprint)

                result = self.deploy_blueprint(blueprint.id)
                if result is not None:
                    deployed.append(result.deployed_task)

            logger.info("change_order_blueprints_generated", extra={
                "change_order_id": change_order_id,
                "blueprints_created": len(created),
                "deployed": len(deployed),
            })
            self._publisher.publish(EventType.CHANGE_ORDER_GENERATED, project_id, {
                "change_order_id": change_order_id,
                "blueprints_created": len(created),
                "deployed": len(deployed),
            })

        return self._refreshed(created, deployed)

    def _resolve_sop(self, sop_code: str, line_item_id: str) -> SopDefinition | None:
        sop = self._sop_catalog.get_current(sop_code)
        if sop is None:
            logger.debug("sop_not_found_skipped", extra={
                "sop_code": sop_code,
                "line_item_id": line_item_id,
            })
        return sop

    def _refreshed(
        self,
        created: Sequence[Blueprint],
        deployed: Sequence[DeployedTask],
    ) -> GenerationResult:
        # Auto-deployed blueprints changed status after creation
        deployed_ids = {d.blueprint_id for d in deployed}
        blueprints = tuple(
            b if b.id not in deployed_ids
            else self._blueprints.find_by_id(b.id) or b
            for b in created
        )
        return GenerationResult(blueprints=blueprints, deployed=tuple(deployed))

    # =========================================================================
    # Deployment
    # =========================================================================

    def deploy_blueprint(
        self,
        blueprint_id: UUID | str,
        loop_binding_label: str | None = None,
        loop_iteration_id: str | None = None,
    ) -> DeploymentResult | None:
        """
        Instantiate a pending blueprint as a Task plus DeployedTask.

        Returns ``None`` when the blueprint is missing, already deployed or
        cancelled, so retrying after a partial failure never duplicates
        the task.

        Raises:
            LoopBindingRequiredError: looped blueprint without a binding.
            OptimisticLockError: another writer deployed it first.
        """
        key = parse_id(blueprint_id)
        if key is None:
            return None

        with self._deploy_locks.hold(key), LogContext.bind(blueprint_id=str(key)):
            blueprint = self._blueprints.find_by_id(key)
            if blueprint is None:
                logger.info("deploy_skipped_not_found")
                return None
            if blueprint.status != BlueprintStatus.PENDING:
                logger.info("deploy_skipped", extra={"status": blueprint.status.value})
                return None
            if blueprint.is_looped and not loop_binding_label:
                raise LoopBindingRequiredError(str(key), blueprint.loop_context_label)

            task = self._tasks.create(Task(
                id=uuid4(),
                project_id=blueprint.project_id,
                title=blueprint.name,
                description=f"SOP: {blueprint.sop_code} v{blueprint.sop_version}",
                blueprint_id=blueprint.id,
                work_source=blueprint.work_source,
                work_source_id=blueprint.work_source_id,
                sop_id=blueprint.sop_id,
                sop_code=blueprint.sop_code,
                sop_version=blueprint.sop_version,
                estimate_line_item_id=(
                    blueprint.work_source_id
                    if blueprint.work_source == WorkSource.ESTIMATE
                    else None
                ),
                loop_iteration_id=loop_iteration_id,
            ))
            deployed_task = self._deployed_tasks.create(DeployedTask(
                id=uuid4(),
                task_id=task.id,
                blueprint_id=blueprint.id,
                sop_id=blueprint.sop_id,
                sop_code=blueprint.sop_code,
                sop_version=blueprint.sop_version,
                loop_binding_label=loop_binding_label,
                loop_iteration_id=loop_iteration_id,
            ))

            if not self._blueprints.compare_and_set_status(
                blueprint.id, BlueprintStatus.PENDING, BlueprintStatus.DEPLOYED
            ):
                # Another writer won; drop the rows this attempt created
                self._deployed_tasks.delete(deployed_task.id)
                self._tasks.delete(task.id)
                logger.warning("deploy_status_conflict", extra={
                    "task_id": str(task.id),
                    "deployed_task_id": str(deployed_task.id),
                })
                raise OptimisticLockError("Blueprint", str(blueprint.id))

            if self._budget_tracker is not None and blueprint.estimated_hours_per_unit > ZERO:
                self._dispatcher.submit(
                    "budget:create_from_deployment",
                    self._budget_tracker.create_from_deployment,
                    deployed_task,
                    blueprint,
                    blueprint.project_id,
                    ZERO,
                    ZERO,
                )

            logger.info("blueprint_deployed", extra={
                "task_id": str(task.id),
                "deployed_task_id": str(deployed_task.id),
                "sop_code": blueprint.sop_code,
                "loop_binding_label": loop_binding_label,
            })
            self._publisher.publish(EventType.TASK_DEPLOYED, task.id, {
                "blueprint_id": blueprint.id,
                "deployed_task_id": deployed_task.id,
                "project_id": blueprint.project_id,
                "sop_code": blueprint.sop_code,
                "sop_version": blueprint.sop_version,
                "loop_binding_label": loop_binding_label,
            })
            return DeploymentResult(task=task, deployed_task=deployed_task)

    def cancel_blueprint(self, blueprint_id: UUID | str) -> Blueprint | None:
        """
        Cancel a pending blueprint.

        Cancelling a cancelled blueprint returns it unchanged.

        Raises:
            InvalidBlueprintTransitionError: the blueprint is deployed.
        """
        key = parse_id(blueprint_id)
        if key is None:
            return None

        with self._deploy_locks.hold(key):
            blueprint = self._blueprints.find_by_id(key)
            if blueprint is None:
                return None
            if blueprint.status == BlueprintStatus.CANCELLED:
                return blueprint
            if blueprint.status == BlueprintStatus.DEPLOYED:
                raise InvalidBlueprintTransitionError(
                    str(key),
                    BlueprintStatus.DEPLOYED.value,
                    BlueprintStatus.CANCELLED.value,
                )

            if not self._blueprints.compare_and_set_status(
                key, BlueprintStatus.PENDING, BlueprintStatus.CANCELLED
            ):
                raise OptimisticLockError("Blueprint", str(key))
            cancelled = self._blueprints.find_by_id(key)

        logger.info("blueprint_cancelled", extra={"blueprint_id": str(key)})
        self._publisher.publish(EventType.BLUEPRINT_CANCELLED, key, {
            "project_id": blueprint.project_id,
            "sop_code": blueprint.sop_code,
        })
        return cancelled

    def set_min_skill_level(self, blueprint_id: UUID | str, level: int) -> Blueprint | None:
        """Skill level used by later estimate recalculations."""
        key = parse_id(blueprint_id)
        if key is None:
            return None
        updated = self._blueprints.update_min_skill_level(key, level)
        if updated is not None:
            logger.info("blueprint_skill_level_set", extra={
                "blueprint_id": str(key),
                "min_skill_level": level,
            })
        return updated

    # =========================================================================
    # Queries
    # =========================================================================

    def get_blueprint(self, blueprint_id: UUID | str) -> Blueprint | None:
        return self._blueprints.find_by_id(blueprint_id)

    def get_blueprints_by_project(self, project_id: str) -> list[Blueprint]:
        return self._blueprints.find_by_project(project_id)

    def get_pending_blueprints(self, project_id: str) -> list[Blueprint]:
        return self._blueprints.find_by_project_and_status(
            project_id, BlueprintStatus.PENDING
        )

    def get_deployed_task_by_task_id(self, task_id: UUID | str) -> DeployedTask | None:
        return self._deployed_tasks.find_by_task_id(task_id)

    def get_deployed_tasks_by_blueprint(self, blueprint_id: UUID | str) -> list[DeployedTask]:
        return self._deployed_tasks.find_by_blueprint_id(blueprint_id)
