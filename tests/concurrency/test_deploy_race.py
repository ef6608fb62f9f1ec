"""
Concurrent deployment of the same blueprint.

Deployment of one blueprint is serialised in-process by a per-blueprint
lock; across independent service instances the pending -> deployed
compare-and-swap decides the winner.  Either way exactly one task exists.
"""

from concurrent.futures import ThreadPoolExecutor
from threading import Barrier

import pytest
from sqlalchemy import func, select

from labour_kernel.exceptions import OptimisticLockError
from labour_modules.pipeline.orm import DeployedTaskModel, TaskModel
from labour_services.dispatcher import InlineDispatcher
from labour_services.factory import build_labour_services

THREADS = 6


def _count(session_factory, model):
    with session_factory() as session:
        return session.scalar(select(func.count()).select_from(model))


@pytest.fixture
def pending_blueprint(services, line_item):
    result = services.pipeline.generate_from_estimate(
        "proj-race", [line_item(is_looped=True, loop_context_label="Floor")]
    )
    return result.blueprints[0]


def _race(deploy_callables):
    barrier = Barrier(len(deploy_callables))

    def attempt(deploy):
        barrier.wait(timeout=10)
        try:
            return deploy()
        except OptimisticLockError as exc:
            return exc

    with ThreadPoolExecutor(max_workers=len(deploy_callables)) as pool:
        return list(pool.map(attempt, deploy_callables))


class TestDeployRace:
    def test_same_service_deploys_once(self, services, session_factory, pending_blueprint):
        outcomes = _race([
            lambda i=i: services.pipeline.deploy_blueprint(
                pending_blueprint.id, loop_binding_label=f"Level {i}"
            )
            for i in range(THREADS)
        ])

        winners = [o for o in outcomes if o is not None and not isinstance(o, Exception)]
        assert len(winners) == 1
        assert outcomes.count(None) == THREADS - 1
        assert _count(session_factory, TaskModel) == 1
        assert _count(session_factory, DeployedTaskModel) == 1

    def test_independent_services_deploy_once(
        self, session_factory, sop_catalog, crew_directory, event_sink,
        deterministic_clock, pending_blueprint,
    ):
        graphs = [
            build_labour_services(
                session_factory=session_factory,
                sop_catalog=sop_catalog,
                crew_directory=crew_directory,
                event_sink=event_sink,
                dispatcher=InlineDispatcher(),
                clock=deterministic_clock,
            )
            for _ in range(THREADS)
        ]

        outcomes = _race([
            lambda g=g: g.pipeline.deploy_blueprint(
                pending_blueprint.id, loop_binding_label="Level 1"
            )
            for g in graphs
        ])

        winners = [o for o in outcomes if o is not None and not isinstance(o, Exception)]
        assert len(winners) == 1
        for outcome in outcomes:
            assert outcome is None or outcome in winners or isinstance(
                outcome, OptimisticLockError
            )
        assert _count(session_factory, TaskModel) == 1
        assert _count(session_factory, DeployedTaskModel) == 1
        assert len(event_sink.of_type("pipeline.task_deployed")) == 1

    def test_winning_deployment_is_stored(self, services, pending_blueprint):
        _race([
            lambda: services.pipeline.deploy_blueprint(
                pending_blueprint.id, loop_binding_label="Level 1"
            )
            for _ in range(THREADS)
        ])

        stored = services.pipeline.get_deployed_tasks_by_blueprint(pending_blueprint.id)
        assert len(stored) == 1
        assert stored[0].loop_binding_label == "Level 1"
        assert services.budget.find_by_task(stored[0].task_id) is not None
