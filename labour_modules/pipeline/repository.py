"""Key-addressed stores for blueprints, tasks and deployed-task sidecars."""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import select, update

from labour_engines.estimation import LabourActual, TaskLabourEstimate
from labour_kernel.db.repository import BaseRepository
from labour_kernel.utils.ids import parse_id
from labour_modules.pipeline.models import (
    Blueprint,
    BlueprintStatus,
    DeployedTask,
    Task,
)
from labour_modules.pipeline.orm import BlueprintModel, DeployedTaskModel, TaskModel


class BlueprintRepository(BaseRepository):
    def create(self, blueprint: Blueprint) -> Blueprint:
        with self._scope() as session:
            row = BlueprintModel.from_dto(blueprint)
            session.add(row)
            session.flush()
            return row.to_dto()

    def find_by_id(self, blueprint_id: UUID | str) -> Blueprint | None:
        key = parse_id(blueprint_id)
        if key is None:
            return None
        with self._scope() as session:
            row = session.get(BlueprintModel, key)
            return row.to_dto() if row is not None else None

    def find_by_project(self, project_id: str) -> list[Blueprint]:
        with self._scope() as session:
            rows = session.scalars(
                select(BlueprintModel)
                .where(BlueprintModel.project_id == project_id)
                .order_by(BlueprintModel.created_at, BlueprintModel.id)
            ).all()
            return [row.to_dto() for row in rows]

    def find_by_project_and_status(
        self, project_id: str, status: BlueprintStatus
    ) -> list[Blueprint]:
        with self._scope() as session:
            rows = session.scalars(
                select(BlueprintModel)
                .where(
                    BlueprintModel.project_id == project_id,
                    BlueprintModel.status == status.value,
                )
                .order_by(BlueprintModel.created_at, BlueprintModel.id)
            ).all()
            return [row.to_dto() for row in rows]

    def compare_and_set_status(
        self,
        blueprint_id: UUID,
        expected: BlueprintStatus,
        new: BlueprintStatus,
    ) -> bool:
        """Write ``new`` only if the stored status is still ``expected``."""
        with self._scope() as session:
            result = session.execute(
                update(BlueprintModel)
                .where(
                    BlueprintModel.id == blueprint_id,
                    BlueprintModel.status == expected.value,
                )
                .values(status=new.value)
            )
            return result.rowcount == 1

    def update_min_skill_level(self, blueprint_id: UUID, level: int) -> Blueprint | None:
        with self._scope() as session:
            row = session.get(BlueprintModel, blueprint_id)
            if row is None:
                return None
            row.min_skill_level = level
            session.flush()
            return row.to_dto()


class TaskRepository(BaseRepository):
    def create(self, task: Task) -> Task:
        with self._scope() as session:
            row = TaskModel.from_dto(task)
            session.add(row)
            session.flush()
            return row.to_dto()

    def find_by_id(self, task_id: UUID | str) -> Task | None:
        key = parse_id(task_id)
        if key is None:
            return None
        with self._scope() as session:
            row = session.get(TaskModel, key)
            return row.to_dto() if row is not None else None

    def find_by_project(self, project_id: str) -> list[Task]:
        with self._scope() as session:
            rows = session.scalars(
                select(TaskModel)
                .where(TaskModel.project_id == project_id)
                .order_by(TaskModel.created_at, TaskModel.id)
            ).all()
            return [row.to_dto() for row in rows]

    def delete(self, task_id: UUID) -> bool:
        with self._scope() as session:
            row = session.get(TaskModel, task_id)
            if row is None:
                return False
            session.delete(row)
            return True


class DeployedTaskRepository(BaseRepository):
    """
    Sidecar store.

    ``update_estimate`` and ``update_actual`` replace their snapshot
    wholesale and return ``None`` when the sidecar does not exist.
    """

    def create(self, deployed_task: DeployedTask) -> DeployedTask:
        with self._scope() as session:
            row = DeployedTaskModel.from_dto(deployed_task)
            session.add(row)
            session.flush()
            return row.to_dto()

    def find_by_id(self, deployed_task_id: UUID | str) -> DeployedTask | None:
        key = parse_id(deployed_task_id)
        if key is None:
            return None
        with self._scope() as session:
            row = session.get(DeployedTaskModel, key)
            return row.to_dto() if row is not None else None

    def find_by_task_id(self, task_id: UUID | str) -> DeployedTask | None:
        key = parse_id(task_id)
        if key is None:
            return None
        with self._scope() as session:
            row = session.scalars(
                select(DeployedTaskModel).where(DeployedTaskModel.task_id == key)
            ).one_or_none()
            return row.to_dto() if row is not None else None

    def find_by_blueprint_id(self, blueprint_id: UUID | str) -> list[DeployedTask]:
        key = parse_id(blueprint_id)
        if key is None:
            return []
        return self.find_by_blueprint_ids([key])

    def find_by_blueprint_ids(self, blueprint_ids: Iterable[UUID]) -> list[DeployedTask]:
        ids = list(blueprint_ids)
        if not ids:
            return []
        with self._scope() as session:
            rows = session.scalars(
                select(DeployedTaskModel)
                .where(DeployedTaskModel.blueprint_id.in_(ids))
                .order_by(DeployedTaskModel.created_at, DeployedTaskModel.id)
            ).all()
            return [row.to_dto() for row in rows]

    def find_by_crew_member(self, crew_member_id: str) -> list[DeployedTask]:
        with self._scope() as session:
            rows = session.scalars(
                select(DeployedTaskModel)
                .where(DeployedTaskModel.actual_crew_member_id == crew_member_id)
            ).all()
            return [row.to_dto() for row in rows]

    def delete(self, deployed_task_id: UUID) -> bool:
        with self._scope() as session:
            row = session.get(DeployedTaskModel, deployed_task_id)
            if row is None:
                return False
            session.delete(row)
            return True

    def update_estimate(
        self, deployed_task_id: UUID, estimate: TaskLabourEstimate
    ) -> DeployedTask | None:
        with self._scope() as session:
            row = session.get(DeployedTaskModel, deployed_task_id)
            if row is None:
                return None
            row.write_estimate(estimate)
            session.flush()
            return row.to_dto()

    def update_actual(
        self, deployed_task_id: UUID, actual: LabourActual
    ) -> DeployedTask | None:
        with self._scope() as session:
            row = session.get(DeployedTaskModel, deployed_task_id)
            if row is None:
                return None
            row.write_actual(actual)
            session.flush()
            return row.to_dto()
