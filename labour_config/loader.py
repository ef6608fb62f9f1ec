"""
Configuration Loader (``labour_config.loader``).

Responsibility
--------------
Loads the seed rate configuration from YAML and parses it into the frozen
``RateConfig`` value used by the rates module.

Invariants enforced
-------------------
* Numbers are parsed through ``Decimal(str(value))``; YAML floats never
  reach a budget calculation as binary floats.
* The parsed configuration is validated (non-empty skill ladder, defined
  default margin, positive cost rates) before it is returned.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Invariant violation  -> ``InvalidRateConfigError``.
"""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from labour_engines.rate_resolution import (
    MarginTargets,
    RateConfig,
    SkillLevel,
    validate_rate_config,
)
from labour_kernel.logging_config import get_logger

logger = get_logger("config.loader")

DEFAULTS_PATH = Path(__file__).with_name("defaults.yaml")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return data or {}


def _decimal(value: Any) -> Decimal:
    return Decimal(str(value))


def parse_rate_config(data: dict[str, Any]) -> RateConfig:
    """Parse a rate configuration mapping into a validated ``RateConfig``."""
    margins = data["margin_targets"]
    targets = MarginTargets(
        default=_decimal(margins["default"]),
        by_project_type={
            k: _decimal(v) for k, v in (margins.get("by_project_type") or {}).items()
        },
        by_trade_category={
            k: _decimal(v) for k, v in (margins.get("by_trade_category") or {}).items()
        },
    )
    levels = tuple(
        sorted(
            (
                SkillLevel(
                    level=int(raw["level"]),
                    cost_rate=_decimal(raw["cost_rate"]),
                    label=raw.get("label", ""),
                    description=raw.get("description", ""),
                )
                for raw in data["skill_levels"]
            ),
            key=lambda s: s.level,
        )
    )
    return validate_rate_config(RateConfig(margin_targets=targets, skill_levels=levels))


def load_rate_config(path: Path | str | None = None) -> RateConfig:
    """Load the seed rate configuration (the packaged defaults by default)."""
    source = Path(path) if path is not None else DEFAULTS_PATH
    config = parse_rate_config(load_yaml_file(source))
    logger.info("rate_config_loaded", extra={
        "path": str(source),
        "skill_levels": len(config.skill_levels),
        "default_margin": str(config.margin_targets.default),
    })
    return config
