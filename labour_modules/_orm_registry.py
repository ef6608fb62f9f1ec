"""
Module ORM Registry (``labour_modules._orm_registry``).

Responsibility
--------------
Import every module-level SQLAlchemy ORM model so that ``Base.metadata``
holds their table definitions before ``create_all_tables()`` runs.

Architecture position
---------------------
**Modules layer** -- utility.  Imported lazily by
``labour_kernel.db.engine.create_all_tables``; nothing else should need it.
"""


def import_all_orm_models() -> None:
    """Register every ``labour_modules.*.orm`` model.  Idempotent."""
    # Pipeline first: budget rows reference tasks and blueprints
    # fmt: off
    import labour_modules.rates.orm  # noqa: F401
    import labour_modules.pipeline.orm  # noqa: F401
    import labour_modules.budget.orm  # noqa: F401
    # fmt: on
