"""
Injectable time source.

Services stamp estimate snapshots (``calculated_at``) and rate configuration
updates from a ``Clock`` rather than the system time, so crew variance
history ordering can be pinned in tests.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

_EPOCH = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime:
        """Timezone-aware current time."""


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """Frozen at ``start`` until moved forward with ``advance``."""

    def __init__(self, start: datetime | None = None):
        self._current = start or _EPOCH

    def now(self) -> datetime:
        return self._current

    def advance(self, seconds: int = 1) -> None:
        self._current += timedelta(seconds=seconds)
