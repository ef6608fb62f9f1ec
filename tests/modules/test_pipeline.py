"""
Tests for the Task Pipeline service.

Covers:
- Blueprint generation from estimates and change orders
- Auto-deployment of non-looped blueprints
- Deployment idempotency and the Task / DeployedTask pair
- Loop binding
- Cancellation and invalid transitions
- Fire-and-forget budget creation and event recording
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from labour_kernel.exceptions import (
    InvalidBlueprintTransitionError,
    LoopBindingRequiredError,
    OptimisticLockError,
)
from labour_modules.pipeline.models import BlueprintStatus, TaskStatus, WorkSource
from labour_modules.pipeline.orm import DeployedTaskModel, TaskModel
from labour_services.dispatcher import InlineDispatcher
from labour_services.factory import build_labour_services


def _count(session_factory, model) -> int:
    with session_factory() as session:
        return session.scalar(select(func.count()).select_from(model))


class TestGenerateFromEstimate:
    def test_one_blueprint_per_resolved_code(self, services, line_item):
        result = services.pipeline.generate_from_estimate("proj-1", [
            line_item("li-1", sop_codes=("FRM-01", "DRY-01")),
            line_item("li-2", sop_codes=("PNT-01",)),
        ])

        assert len(result.blueprints) == 3
        assert len(result.deployed) == 3
        codes = sorted(b.sop_code for b in result.blueprints)
        assert codes == ["DRY-01", "FRM-01", "PNT-01"]

    def test_blueprint_fields(self, services, line_item):
        result = services.pipeline.generate_from_estimate(
            "proj-1", [line_item("li-7", quantity="12", hours_per_unit="1.5", min_skill_level=2)]
        )
        blueprint = result.blueprints[0]

        assert blueprint.name == "Wall Framing - Kitchen walls"
        assert blueprint.sop_id == "sop-1"
        assert blueprint.sop_version == 2
        assert blueprint.work_source == WorkSource.ESTIMATE
        assert blueprint.work_source_id == "li-7"
        assert blueprint.total_units == Decimal("12")
        assert blueprint.estimated_hours_per_unit == Decimal("1.5")
        assert blueprint.min_skill_level == 2
        assert blueprint.status == BlueprintStatus.DEPLOYED

    def test_unknown_code_skipped_silently(self, services, line_item):
        result = services.pipeline.generate_from_estimate(
            "proj-1", [line_item(sop_codes=("NOPE-99", "FRM-01"))]
        )
        assert [b.sop_code for b in result.blueprints] == ["FRM-01"]

    def test_item_without_codes_skipped(self, services, line_item):
        result = services.pipeline.generate_from_estimate("proj-1", [line_item(sop_codes=())])
        assert result.blueprints == ()
        assert result.deployed == ()

    def test_missing_hours_default_to_zero(self, services, line_item):
        result = services.pipeline.generate_from_estimate(
            "proj-1", [line_item(hours_per_unit=None)]
        )
        assert result.blueprints[0].estimated_hours_per_unit == Decimal("0")

    def test_looped_blueprints_stay_pending(self, services, line_item):
        result = services.pipeline.generate_from_estimate("proj-1", [
            line_item("li-1", is_looped=True, loop_context_label="Per room"),
            line_item("li-2", sop_codes=("DRY-01",)),
        ])

        assert len(result.blueprints) == 2
        assert len(result.deployed) == 1
        pending = services.pipeline.get_pending_blueprints("proj-1")
        assert [b.loop_context_label for b in pending] == ["Per room"]

    def test_emits_one_aggregate_event(self, services, line_item, event_sink):
        services.pipeline.generate_from_estimate("proj-1", [
            line_item("li-1", is_looped=True),
            line_item("li-2", sop_codes=("DRY-01",)),
        ])

        events = event_sink.of_type("pipeline.estimate_generated")
        assert len(events) == 1
        _, subject, payload = events[0]
        assert subject == "proj-1"
        assert payload == {"blueprints_created": 2, "auto_deployed": 1}


class TestGenerateFromChangeOrder:
    def test_always_deploys_one_unit(self, services, change_order_item, event_sink):
        result = services.pipeline.generate_from_change_order(
            "proj-1", "co-1", [change_order_item(hours="6")]
        )

        blueprint = result.blueprints[0]
        assert blueprint.work_source == WorkSource.CHANGE_ORDER
        assert blueprint.total_units == Decimal("1")
        assert blueprint.estimated_hours_per_unit == Decimal("6")
        assert blueprint.status == BlueprintStatus.DEPLOYED
        assert len(result.deployed) == 1

        _, _, payload = event_sink.of_type("pipeline.co_generated")[0]
        assert payload["change_order_id"] == "co-1"

    def test_items_without_resolvable_code_skipped(self, services, change_order_item):
        result = services.pipeline.generate_from_change_order("proj-1", "co-1", [
            change_order_item("a", sop_code=None),
            change_order_item("b", sop_code="NOPE-1"),
            change_order_item("c"),
        ])
        assert [b.work_source_id for b in result.blueprints] == ["c"]

    def test_change_order_task_has_no_estimate_line(self, services, change_order_item):
        result = services.pipeline.generate_from_change_order(
            "proj-1", "co-1", [change_order_item()]
        )
        tasks = services.pipeline._tasks.find_by_project("proj-1")
        assert tasks[0].estimate_line_item_id is None
        assert tasks[0].id == result.deployed[0].task_id


class TestDeploy:
    def test_deploy_creates_task_and_sidecar(self, services, line_item, event_sink):
        services.pipeline.generate_from_estimate(
            "proj-1", [line_item(is_looped=True, loop_context_label="Per floor")]
        )
        blueprint = services.pipeline.get_pending_blueprints("proj-1")[0]

        result = services.pipeline.deploy_blueprint(
            blueprint.id, loop_binding_label="Floor 2", loop_iteration_id="iter-2"
        )

        assert result.task.blueprint_id == blueprint.id
        assert result.task.title == blueprint.name
        assert result.task.description == "SOP: FRM-01 v2"
        assert result.task.status == TaskStatus.NOT_STARTED
        assert result.task.estimate_line_item_id == "li-1"
        assert result.task.loop_iteration_id == "iter-2"
        assert result.deployed_task.task_id == result.task.id
        assert result.deployed_task.loop_binding_label == "Floor 2"
        assert result.deployed_task.labour_estimate is None
        assert result.deployed_task.labour_actual is None
        assert services.pipeline.get_blueprint(blueprint.id).status == BlueprintStatus.DEPLOYED

        _, subject, payload = event_sink.of_type("pipeline.task_deployed")[0]
        assert subject == str(result.task.id)
        assert payload["loop_binding_label"] == "Floor 2"

    def test_second_deploy_is_noop(self, services, session_factory, line_item):
        services.pipeline.generate_from_estimate("proj-1", [line_item(is_looped=True)])
        blueprint = services.pipeline.get_pending_blueprints("proj-1")[0]

        first = services.pipeline.deploy_blueprint(blueprint.id, loop_binding_label="A")
        second = services.pipeline.deploy_blueprint(blueprint.id, loop_binding_label="A")

        assert first is not None
        assert second is None
        assert _count(session_factory, TaskModel) == 1
        assert _count(session_factory, DeployedTaskModel) == 1

    def test_missing_or_malformed_id_returns_none(self, services):
        assert services.pipeline.deploy_blueprint(uuid4()) is None
        assert services.pipeline.deploy_blueprint("not-a-uuid") is None

    def test_looped_blueprint_requires_binding(self, services, session_factory, line_item):
        services.pipeline.generate_from_estimate("proj-1", [line_item(is_looped=True)])
        blueprint = services.pipeline.get_pending_blueprints("proj-1")[0]

        with pytest.raises(LoopBindingRequiredError) as exc_info:
            services.pipeline.deploy_blueprint(blueprint.id)

        assert exc_info.value.code == "LOOP_BINDING_REQUIRED"
        assert _count(session_factory, TaskModel) == 0
        assert services.pipeline.get_blueprint(blueprint.id).status == BlueprintStatus.PENDING

    def test_cancelled_blueprint_not_deployed(self, services, line_item):
        services.pipeline.generate_from_estimate("proj-1", [line_item(is_looped=True)])
        blueprint = services.pipeline.get_pending_blueprints("proj-1")[0]
        services.pipeline.cancel_blueprint(blueprint.id)

        assert services.pipeline.deploy_blueprint(blueprint.id, loop_binding_label="A") is None

    def test_lost_status_race_removes_created_rows(
        self, services, session_factory, line_item, monkeypatch, event_sink
    ):
        services.pipeline.generate_from_estimate("proj-1", [line_item(is_looped=True)])
        blueprint = services.pipeline.get_pending_blueprints("proj-1")[0]
        monkeypatch.setattr(
            services.pipeline._blueprints, "compare_and_set_status", lambda *a: False
        )

        with pytest.raises(OptimisticLockError):
            services.pipeline.deploy_blueprint(blueprint.id, loop_binding_label="A")

        assert _count(session_factory, TaskModel) == 0
        assert _count(session_factory, DeployedTaskModel) == 0
        assert event_sink.of_type("pipeline.task_deployed") == []

    def test_queries_by_task_and_blueprint(self, services, deployed_task):
        by_task = services.pipeline.get_deployed_task_by_task_id(deployed_task.task_id)
        by_blueprint = services.pipeline.get_deployed_tasks_by_blueprint(
            deployed_task.blueprint_id
        )
        assert by_task.id == deployed_task.id
        assert [d.id for d in by_blueprint] == [deployed_task.id]


class TestDeployBudget:
    def test_budget_created_with_zero_actuals(self, services, deployed_task, event_sink):
        budget = services.budget.find_by_task(deployed_task.task_id)

        assert budget is not None
        assert budget.budgeted_hours == Decimal("20.00")
        assert budget.actual_hours == Decimal("0")
        assert budget.crew_wage_rate == Decimal("0")
        assert budget.charged_rate == Decimal("0")
        assert budget.efficiency is None
        assert len(event_sink.of_type("budget.created")) == 1

    def test_no_budget_without_hours(self, services, line_item):
        result = services.pipeline.generate_from_estimate(
            "proj-1", [line_item(hours_per_unit=None)]
        )
        assert services.budget.find_by_task(result.deployed[0].task_id) is None

    def test_budget_failure_does_not_fail_deploy(
        self, services, line_item, captured_logs, monkeypatch
    ):
        def broken(*args, **kwargs):
            raise RuntimeError("budget store down")

        monkeypatch.setattr(services.budget, "create_from_deployment", broken)
        result = services.pipeline.generate_from_estimate("proj-1", [line_item()])

        assert len(result.deployed) == 1
        assert result.blueprints[0].status == BlueprintStatus.DEPLOYED
        failures = [r for r in captured_logs() if r["message"] == "dispatch_failed"]
        assert failures and failures[0]["label"] == "budget:create_from_deployment"


class TestEventSinkFailure:
    def test_sink_outage_never_fails_operations(
        self, session_factory, sop_catalog, crew_directory, failing_event_sink,
        line_item, captured_logs,
    ):
        services = build_labour_services(
            session_factory=session_factory,
            sop_catalog=sop_catalog,
            crew_directory=crew_directory,
            event_sink=failing_event_sink,
            dispatcher=InlineDispatcher(),
        )
        result = services.pipeline.generate_from_estimate("proj-1", [line_item()])

        assert len(result.deployed) == 1
        failures = [r for r in captured_logs() if r["message"] == "dispatch_failed"]
        assert failures
        assert all(r["exc_type"] == "ConnectionError" for r in failures)


class TestCancel:
    def test_cancel_pending(self, services, line_item, event_sink):
        services.pipeline.generate_from_estimate("proj-1", [line_item(is_looped=True)])
        blueprint = services.pipeline.get_pending_blueprints("proj-1")[0]

        cancelled = services.pipeline.cancel_blueprint(blueprint.id)

        assert cancelled.status == BlueprintStatus.CANCELLED
        assert services.pipeline.get_pending_blueprints("proj-1") == []
        assert len(event_sink.of_type("pipeline.blueprint_cancelled")) == 1

    def test_cancel_twice_is_idempotent(self, services, line_item, event_sink):
        services.pipeline.generate_from_estimate("proj-1", [line_item(is_looped=True)])
        blueprint = services.pipeline.get_pending_blueprints("proj-1")[0]

        services.pipeline.cancel_blueprint(blueprint.id)
        again = services.pipeline.cancel_blueprint(blueprint.id)

        assert again.status == BlueprintStatus.CANCELLED
        assert len(event_sink.of_type("pipeline.blueprint_cancelled")) == 1

    def test_cancel_deployed_rejected(self, services, deployed_task):
        with pytest.raises(InvalidBlueprintTransitionError) as exc_info:
            services.pipeline.cancel_blueprint(deployed_task.blueprint_id)

        assert exc_info.value.from_status == "deployed"
        assert exc_info.value.to_status == "cancelled"
        blueprint = services.pipeline.get_blueprint(deployed_task.blueprint_id)
        assert blueprint.status == BlueprintStatus.DEPLOYED

    def test_cancel_missing_returns_none(self, services):
        assert services.pipeline.cancel_blueprint(uuid4()) is None

    def test_cancelled_still_listed_for_project(self, services, line_item):
        services.pipeline.generate_from_estimate("proj-1", [
            line_item("li-1", sop_codes=("FRM-01", "DRY-01"), is_looped=True),
        ])
        first, _ = services.pipeline.get_pending_blueprints("proj-1")
        services.pipeline.cancel_blueprint(first.id)

        statuses = sorted(
            b.status.value for b in services.pipeline.get_blueprints_by_project("proj-1")
        )

        assert statuses == ["cancelled", "pending"]
        assert services.pipeline.get_blueprints_by_project("proj-other") == []


class TestSetMinSkillLevel:
    def test_updates_level(self, services, deployed_task):
        updated = services.pipeline.set_min_skill_level(deployed_task.blueprint_id, 3)
        assert updated.min_skill_level == 3

    def test_missing_blueprint(self, services):
        assert services.pipeline.set_min_skill_level(uuid4(), 3) is None
