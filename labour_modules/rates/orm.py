"""
SQLAlchemy ORM persistence models for the Rate Configuration module.

Responsibility
--------------
Persist the rate configuration singleton: margin targets on the header row
and one row per skill level.

Invariants enforced
-------------------
* Exactly one header row, keyed by ``config_key = "singleton"``.
* Margins are stored exactly (DecimalString); override maps
  are JSON text with Decimal values written as strings.
* One skill level row per (config, level).
"""

from __future__ import annotations

import json
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from labour_kernel.db.base import DecimalString, TrackedBase


class RateConfigModel(TrackedBase):
    """Rate configuration header (margin targets)."""

    __tablename__ = "rates_config"

    __table_args__ = (
        UniqueConstraint("config_key", name="uq_rates_config_key"),
    )

    config_key: Mapped[str] = mapped_column(String(50), nullable=False)
    default_margin: Mapped[Decimal] = mapped_column(DecimalString(), nullable=False)
    by_project_type_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    by_trade_category_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    config_updated_at: Mapped[datetime | None] = mapped_column(nullable=True)

    skill_levels: Mapped[list["SkillLevelModel"]] = relationship(
        "SkillLevelModel",
        back_populates="config",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="SkillLevelModel.level",
    )

    def to_dto(self):
        from labour_modules.rates.models import MarginTargets, RateConfig

        return RateConfig(
            margin_targets=MarginTargets(
                default=self.default_margin,
                by_project_type=_loads(self.by_project_type_json),
                by_trade_category=_loads(self.by_trade_category_json),
            ),
            skill_levels=tuple(level.to_dto() for level in self.skill_levels),
            updated_at=self.config_updated_at,
        )

    def apply_margins(self, dto) -> None:
        """Overwrite the margin targets from a ``RateConfig``."""
        targets = dto.margin_targets
        self.default_margin = targets.default
        self.by_project_type_json = _dumps(targets.by_project_type)
        self.by_trade_category_json = _dumps(targets.by_trade_category)
        self.config_updated_at = dto.updated_at

    def __repr__(self) -> str:
        return f"<RateConfigModel {self.config_key} default={self.default_margin}>"


class SkillLevelModel(TrackedBase):
    """One rung of the cost-rate ladder."""

    __tablename__ = "rates_skill_levels"

    __table_args__ = (
        UniqueConstraint("config_id", "level", name="uq_rates_skill_level"),
        Index("idx_rates_skill_level_config", "config_id"),
    )

    config_id: Mapped[UUID] = mapped_column(ForeignKey("rates_config.id"), nullable=False)
    level: Mapped[int] = mapped_column(nullable=False)
    label: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    cost_rate: Mapped[Decimal] = mapped_column(nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False, default="")

    config: Mapped["RateConfigModel"] = relationship(
        "RateConfigModel",
        back_populates="skill_levels",
    )

    def to_dto(self):
        from labour_modules.rates.models import SkillLevel

        return SkillLevel(
            level=self.level,
            cost_rate=self.cost_rate,
            label=self.label,
            description=self.description,
        )

    @classmethod
    def from_dto(cls, dto) -> "SkillLevelModel":
        return cls(
            level=dto.level,
            cost_rate=dto.cost_rate,
            label=dto.label,
            description=dto.description,
        )

    def __repr__(self) -> str:
        return f"<SkillLevelModel {self.level} {self.label} {self.cost_rate}>"


def _dumps(mapping) -> str:
    return json.dumps({k: str(v) for k, v in mapping.items()}, sort_keys=True)


def _loads(raw: str | None) -> dict[str, Decimal]:
    if not raw:
        return {}
    return {k: Decimal(v) for k, v in json.loads(raw).items()}
