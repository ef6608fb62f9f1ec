"""
Task Budget Module (``labour_modules.budget``).

Per-task budgeted vs actual hours with derived efficiency and status,
plus the project-level roll-up.
"""

from labour_modules.budget.config import BudgetConfig
from labour_modules.budget.models import ProjectBudgetSummary, TaskBudget
from labour_modules.budget.service import TaskBudgetService

__all__ = ["BudgetConfig", "ProjectBudgetSummary", "TaskBudget", "TaskBudgetService"]
