"""
External collaborator contracts.

Responsibility:
    The core reads work-standard (SOP) definitions and crew members from
    systems it does not own.  These protocols are the only surface it
    depends on; both lookups return ``None`` when nothing matches.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class SopDefinition:
    """Current version of a work standard."""

    id: str
    sop_code: str
    version: int
    title: str
    trade_family: str | None = None


@dataclass(frozen=True)
class CrewMember:
    """Crew member as seen by the labour engine."""

    id: str
    name: str
    wage_rate: Decimal


@runtime_checkable
class SopCatalog(Protocol):
    """Resolves a work-standard code to its current definition."""

    def get_current(self, sop_code: str) -> SopDefinition | None:
        ...


@runtime_checkable
class CrewDirectory(Protocol):
    """Looks up crew members by id."""

    def find_by_id(self, crew_member_id: str) -> CrewMember | None:
        ...
