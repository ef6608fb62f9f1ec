"""
Tests for the Task Budget service.

Budgets are created by deployment through the dispatcher; these tests
drive hours, completion and the project roll-up.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from labour_engines.variance import TaskBudgetStatus
from labour_modules.budget.config import BudgetConfig


@pytest.fixture
def budgeted_task(services, line_item):
    """Deployed task with a 10 hour budget (5 units x 2 hours)."""
    result = services.pipeline.generate_from_estimate("proj-1", [line_item(quantity="5")])
    return result.deployed[0]


class TestCreateFromDeployment:
    def test_budget_created_on_deploy(self, services, budgeted_task, event_sink):
        budget = services.budget.find_by_task(budgeted_task.task_id)

        assert budget.budgeted_hours == Decimal("10.00")
        assert budget.actual_hours == Decimal("0")
        assert budget.status == TaskBudgetStatus.ACTIVE
        assert budget.efficiency is None
        assert budget.sop_code == "FRM-01"
        assert budget.project_id == "proj-1"

        _, subject, payload = event_sink.of_type("budget.created")[0]
        assert subject == str(budget.id)
        assert payload["budgeted_hours"] == "10.00"

    def test_second_call_returns_existing(self, services, budgeted_task, event_sink):
        blueprint = services.pipeline.get_blueprint(budgeted_task.blueprint_id)
        first = services.budget.find_by_task(budgeted_task.task_id)

        again = services.budget.create_from_deployment(budgeted_task, blueprint, "proj-1")

        assert again.id == first.id
        assert len(services.budget.find_by_project("proj-1")) == 1
        assert len(event_sink.of_type("budget.created")) == 1


class TestUpdateActualHours:
    def test_efficiency(self, services, budgeted_task):
        budget = services.budget.update_actual_hours(budgeted_task.task_id, Decimal("12"))

        assert budget.actual_hours == Decimal("12.00")
        assert budget.efficiency == Decimal("83")

    def test_over_budget_beyond_tolerance(self, services, budgeted_task):
        budget = services.budget.update_actual_hours(budgeted_task.task_id, Decimal("12"))
        assert budget.status == TaskBudgetStatus.OVER_BUDGET

    def test_within_tolerance_stays_active(self, services, budgeted_task):
        budget = services.budget.update_actual_hours(budgeted_task.task_id, Decimal("10.5"))
        assert budget.status == TaskBudgetStatus.ACTIVE

    def test_exactly_at_tolerance_stays_active(self, services, budgeted_task):
        budget = services.budget.update_actual_hours(budgeted_task.task_id, "11")
        assert budget.status == TaskBudgetStatus.ACTIVE

    def test_just_above_tolerance_is_over_budget(self, services, budgeted_task):
        budget = services.budget.update_actual_hours(budgeted_task.task_id, Decimal("11.004"))

        assert budget.actual_hours == Decimal("11.00")
        assert budget.status == TaskBudgetStatus.OVER_BUDGET
        assert budget.efficiency == Decimal("91")

    def test_recovers_to_active(self, services, budgeted_task):
        services.budget.update_actual_hours(budgeted_task.task_id, Decimal("12"))
        budget = services.budget.update_actual_hours(budgeted_task.task_id, Decimal("9"))
        assert budget.status == TaskBudgetStatus.ACTIVE

    def test_over_budget_event_only_on_transition(self, services, budgeted_task, event_sink):
        services.budget.update_actual_hours(budgeted_task.task_id, Decimal("12"))
        services.budget.update_actual_hours(budgeted_task.task_id, Decimal("13"))

        events = event_sink.of_type("budget.over_budget")
        assert len(events) == 1
        assert events[0][2]["actual_hours"] == "12.00"

    def test_zero_hours_has_no_efficiency(self, services, budgeted_task):
        budget = services.budget.update_actual_hours(budgeted_task.task_id, 0)
        assert budget.efficiency is None

    def test_missing_budget(self, services):
        assert services.budget.update_actual_hours(uuid4(), Decimal("1")) is None

    def test_custom_tolerance(
        self, session_factory, sop_catalog, crew_directory, event_sink,
        deterministic_clock, line_item,
    ):
        from labour_services.factory import build_labour_services

        services = build_labour_services(
            session_factory=session_factory,
            sop_catalog=sop_catalog,
            crew_directory=crew_directory,
            event_sink=event_sink,
            clock=deterministic_clock,
            budget_config=BudgetConfig(over_budget_tolerance=Decimal("1.5")),
        )
        deployed = services.pipeline.generate_from_estimate(
            "p", [line_item(quantity="5")]
        ).deployed[0]

        assert services.budget.update_actual_hours(
            deployed.task_id, Decimal("14")
        ).status == TaskBudgetStatus.ACTIVE
        assert services.budget.update_actual_hours(
            deployed.task_id, Decimal("16")
        ).status == TaskBudgetStatus.OVER_BUDGET


class TestComplete:
    def test_complete_is_sticky(self, services, budgeted_task, event_sink):
        completed = services.budget.complete(budgeted_task.task_id)
        assert completed.status == TaskBudgetStatus.COMPLETE
        assert len(event_sink.of_type("budget.completed")) == 1

        later = services.budget.update_actual_hours(budgeted_task.task_id, Decimal("30"))

        assert later.status == TaskBudgetStatus.COMPLETE
        assert later.actual_hours == Decimal("30.00")
        assert event_sink.of_type("budget.over_budget") == []

    def test_complete_missing(self, services):
        assert services.budget.complete(uuid4()) is None


class TestProjectSummary:
    def test_rollup(self, services, line_item):
        result = services.pipeline.generate_from_estimate("proj-5", [
            line_item("a", quantity="5"),
            line_item("b", quantity="5"),
            line_item("c", quantity="5"),
        ])
        first, second, third = (d.task_id for d in result.deployed)
        services.budget.update_actual_hours(first, Decimal("12"))
        services.budget.update_actual_hours(second, Decimal("8"))
        services.budget.complete(third)

        summary = services.budget.get_project_budget_summary("proj-5")

        assert summary.total_budgets == 3
        assert summary.total_budgeted_hours == Decimal("30.00")
        assert summary.total_actual_hours == Decimal("20.00")
        assert summary.overall_efficiency == Decimal("150")
        assert summary.over_budget_count == 1
        assert summary.completed_count == 1
        assert len(summary.budgets) == 3

    def test_empty_project(self, services):
        summary = services.budget.get_project_budget_summary("nothing")

        assert summary.total_budgets == 0
        assert summary.overall_efficiency is None
        assert summary.budgets == ()

    def test_find_over_budget(self, services, line_item):
        result = services.pipeline.generate_from_estimate("proj-5", [
            line_item("a", quantity="5"),
            line_item("b", quantity="5"),
        ])
        over = result.deployed[0].task_id
        services.budget.update_actual_hours(over, Decimal("20"))
        services.budget.update_actual_hours(result.deployed[1].task_id, Decimal("5"))

        assert [b.task_id for b in services.budget.find_over_budget()] == [over]
