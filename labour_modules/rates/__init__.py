"""
Rate Configuration Module (``labour_modules.rates``).

Margin targets (default, per project type, per trade category) and the
skill-level cost-rate ladder.  A single stored snapshot, seeded from
``labour_config/defaults.yaml`` on first access and changed only through
``RateConfigService.update``.
"""

from labour_modules.rates.models import MarginTargets, RateConfig, SkillLevel

__all__ = ["MarginTargets", "RateConfig", "SkillLevel"]
