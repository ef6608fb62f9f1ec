"""Rate configuration store: get and replace the singleton."""

from __future__ import annotations

from sqlalchemy import select

from labour_kernel.db.repository import BaseRepository
from labour_modules.rates.models import SINGLETON_KEY, RateConfig
from labour_modules.rates.orm import RateConfigModel, SkillLevelModel


class RateConfigRepository(BaseRepository):
    """Key-addressed store for the rate configuration singleton."""

    def get(self) -> RateConfig | None:
        with self._scope() as session:
            row = session.scalars(
                select(RateConfigModel).where(RateConfigModel.config_key == SINGLETON_KEY)
            ).one_or_none()
            return row.to_dto() if row is not None else None

    def save(self, config: RateConfig) -> RateConfig:
        """Insert the singleton or overwrite it in place."""
        with self._scope() as session:
            row = session.scalars(
                select(RateConfigModel).where(RateConfigModel.config_key == SINGLETON_KEY)
            ).one_or_none()
            if row is None:
                row = RateConfigModel(config_key=SINGLETON_KEY)
                session.add(row)
            row.apply_margins(config)

            # Old ladder rows must be gone before the replacements insert,
            # otherwise (config_id, level) collides.
            row.skill_levels.clear()
            session.flush()
            row.skill_levels.extend(
                SkillLevelModel.from_dto(level) for level in config.skill_levels
            )
            session.flush()
            return row.to_dto()
