"""
Rate Configuration Domain Models (``labour_modules.rates.models``).

The value objects live in ``labour_engines.rate_resolution`` so the pure
estimator can use them without importing this module; they are re-exported
here as the module's public nouns.
"""

from labour_engines.rate_resolution import MarginTargets, RateConfig, SkillLevel

SINGLETON_KEY = "singleton"

__all__ = ["MarginTargets", "RateConfig", "SkillLevel", "SINGLETON_KEY"]
