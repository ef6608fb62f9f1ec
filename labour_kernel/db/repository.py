"""
Module: labour_kernel.db.repository
Responsibility: Base class for key-addressed repositories.  Each public
    repository method is one logical read-modify-write against its owning
    record, executed in its own short transaction.
Architecture position: Kernel > DB.  Module repositories subclass
    BaseRepository; services never touch sessions directly.

Invariants enforced:
    - Session ownership: the repository opens, commits and closes the
      session for every call (commit on success, rollback and re-raise on
      any exception).
    - DTO return convention: repositories return frozen dataclasses built
      via the ORM model's ``to_dto()``, never live ORM instances.
    - No cross-record transactions: a multi-record workflow is an ordered
      sequence of repository calls, each durable on its own.

Failure modes:
    - SQLAlchemy errors propagate after rollback.
"""

from abc import ABC
from contextlib import contextmanager
from typing import Generator

from sqlalchemy.orm import Session, sessionmaker

from labour_kernel.logging_config import get_logger

logger = get_logger("db.repository")


class BaseRepository(ABC):
    """
    Abstract base class for all repositories.

    Contract:
        Subclasses call ``self._scope()`` for every operation and return
        DTOs.  The session factory is shared; sessions are not.
    """

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    @contextmanager
    def _scope(self) -> Generator[Session, None, None]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            logger.warning(
                "repository_transaction_rolled_back",
                extra={"repository": type(self).__name__},
                exc_info=True,
            )
            raise
        finally:
            session.close()
