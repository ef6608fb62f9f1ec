"""
Pytest fixtures for the labour kernel test suite.

Provides:
- A per-test SQLite database with every module table created
- A deterministic clock, inline dispatcher and recording event sink
- In-memory SOP catalog and crew directory fakes
- Wired services via ``build_labour_services``
- Structured log capture
"""

import json
import logging
from decimal import Decimal
from io import StringIO
from typing import Any

import pytest

from labour_kernel.db.engine import (
    create_all_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from labour_kernel.domain.clock import DeterministicClock
from labour_kernel.domain.collaborators import CrewMember, SopDefinition
from labour_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from labour_modules.pipeline.models import ChangeOrderLineItem, LineItem
from labour_services.dispatcher import InlineDispatcher
from labour_services.factory import build_labour_services


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture labour_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, services):
            services.pipeline.deploy_blueprint(...)
            logs = captured_logs()
            assert any(r["message"] == "blueprint_deployed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("labour_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Collaborator fakes
# =============================================================================


class RecordingEventSink:
    """Event sink that keeps every recorded event in memory."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str, dict[str, Any]]] = []

    def record(self, event_type: str, subject_id: str, payload: dict[str, Any]) -> None:
        self.events.append((event_type, subject_id, payload))

    def of_type(self, event_type: str) -> list[tuple[str, str, dict[str, Any]]]:
        return [e for e in self.events if e[0] == event_type]


class FailingEventSink:
    """Event sink whose backend is down."""

    def record(self, event_type: str, subject_id: str, payload: dict[str, Any]) -> None:
        raise ConnectionError("event store unavailable")


class InMemorySopCatalog:
    def __init__(self, *sops: SopDefinition) -> None:
        self._sops = {sop.sop_code: sop for sop in sops}

    def add(self, sop: SopDefinition) -> None:
        self._sops[sop.sop_code] = sop

    def get_current(self, sop_code: str) -> SopDefinition | None:
        return self._sops.get(sop_code)


class InMemoryCrewDirectory:
    def __init__(self, *members: CrewMember) -> None:
        self._members = {m.id: m for m in members}

    def add(self, member: CrewMember) -> None:
        self._members[member.id] = member

    def find_by_id(self, crew_member_id: str) -> CrewMember | None:
        return self._members.get(crew_member_id)


FRAMING = SopDefinition(id="sop-1", sop_code="FRM-01", version=2, title="Wall Framing")
DRYWALL = SopDefinition(id="sop-2", sop_code="DRY-01", version=1, title="Drywall Hang")
PAINT = SopDefinition(id="sop-3", sop_code="PNT-01", version=3, title="Interior Paint")

SENIOR = CrewMember(id="crew-senior", name="Sam Senior", wage_rate=Decimal("45"))
JUNIOR = CrewMember(id="crew-junior", name="Jo Junior", wage_rate=Decimal("35"))


# =============================================================================
# Database and services
# =============================================================================


@pytest.fixture
def session_factory(tmp_path):
    """Fresh SQLite file database with every table created."""
    reset_engine()
    init_engine_from_url(f"sqlite:///{tmp_path / 'labour.db'}")
    create_all_tables()
    yield get_session_factory()
    reset_engine()


@pytest.fixture
def deterministic_clock():
    return DeterministicClock()


@pytest.fixture
def event_sink():
    return RecordingEventSink()


@pytest.fixture
def sop_catalog():
    return InMemorySopCatalog(FRAMING, DRYWALL, PAINT)


@pytest.fixture
def crew_directory():
    return InMemoryCrewDirectory(SENIOR, JUNIOR)


@pytest.fixture
def services(session_factory, sop_catalog, crew_directory, event_sink, deterministic_clock):
    """Every service wired over the test database with an inline dispatcher."""
    return build_labour_services(
        session_factory=session_factory,
        sop_catalog=sop_catalog,
        crew_directory=crew_directory,
        event_sink=event_sink,
        dispatcher=InlineDispatcher(),
        clock=deterministic_clock,
    )


@pytest.fixture
def line_item():
    """Factory for estimate line items."""

    def _make(
        item_id: str = "li-1",
        quantity: str = "10",
        sop_codes: tuple[str, ...] = ("FRM-01",),
        hours_per_unit: str | None = "2",
        **kwargs,
    ) -> LineItem:
        return LineItem(
            id=item_id,
            description=kwargs.pop("description", "Kitchen walls"),
            quantity=Decimal(quantity),
            sop_codes=sop_codes,
            estimated_hours_per_unit=(
                Decimal(hours_per_unit) if hours_per_unit is not None else None
            ),
            **kwargs,
        )

    return _make


@pytest.fixture
def deployed_task(services, line_item):
    """A single auto-deployed task from one estimate line item."""
    result = services.pipeline.generate_from_estimate("proj-1", [line_item()])
    return result.deployed[0]


@pytest.fixture
def change_order_item():
    def _make(item_id: str = "co-li-1", sop_code: str | None = "DRY-01", hours: str = "4"):
        return ChangeOrderLineItem(
            id=item_id,
            description="Extra drywall",
            sop_code=sop_code,
            estimated_hours=Decimal(hours),
        )

    return _make


@pytest.fixture
def failing_event_sink():
    return FailingEventSink()
