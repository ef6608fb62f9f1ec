"""
Labour Modules.

Stateful orchestration over the labour engines.  Each module contains:
- Domain models (frozen dataclasses)
- ORM models and key-addressed repositories
- A service that owns the module's operations
- Configuration schemas where the module has settings

Modules:
- Rates: margin targets and the skill-level cost ladder
- Pipeline: blueprints, deployment, tasks and deployed-task sidecars
- Labour: estimates, crew assignment, actual hours, variance reporting
- Budget: per-task budgeted vs actual hours
"""

from labour_modules import budget, labour, pipeline, rates

__all__ = ["budget", "labour", "pipeline", "rates"]
