"""
Shared data types for the SalesSynth research core.

Hierarchy of types
------------------
- **Enums**: ``ResearchSource``, ``FetchStatus``, ``FlightStatus``
- **CRM models** (consumed, not owned): ``ClientProfile``, ``UserFlightSettings``
- **Research models**: ``ResearchRecord``, ``SourceOutcome``, ``ResearchRunResult``
- **Helpers**: ``map_flight_status``
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from salessynth.utils import parse_timestamp


# =============================================================================
# ENUMS
# =============================================================================


class ResearchSource(Enum):
    """External research providers, keyed by their storage name."""

    GOOGLE = "google"
    DIFFBOT = "diffbot"
    APOLLO = "apollo"
    PDL = "pdl"
    LINKEDIN = "linkedin"
    REDDIT = "reddit"


class FetchStatus(Enum):
    """Outcome of one source's gate-fetch-write sequence."""

    FETCHED = "fetched"  # adapter returned data, data + timestamp written
    EMPTY = "empty"  # adapter returned nothing, timestamp written
    SKIPPED = "skipped"  # cooldown active, nothing called or written
    FAILED = "failed"  # persistence failed


class FlightStatus(Enum):
    """Normalized flight status vocabulary."""

    SCHEDULED = "scheduled"
    ACTIVE = "active"
    LANDED = "landed"
    CANCELLED = "cancelled"
    DELAYED = "delayed"


_PROVIDER_FLIGHT_STATUS: Dict[str, FlightStatus] = {
    "scheduled": FlightStatus.SCHEDULED,
    "active": FlightStatus.ACTIVE,
    "landed": FlightStatus.LANDED,
    "cancelled": FlightStatus.CANCELLED,
    "incident": FlightStatus.CANCELLED,
    "diverted": FlightStatus.DELAYED,
}


def map_flight_status(provider_status: Optional[str]) -> FlightStatus:
    """Map a provider flight status onto :class:`FlightStatus`.

    Unknown or missing values map to ``SCHEDULED``.
    """
    if not provider_status:
        return FlightStatus.SCHEDULED
    return _PROVIDER_FLIGHT_STATUS.get(provider_status.lower(), FlightStatus.SCHEDULED)


# =============================================================================
# CRM MODELS
# =============================================================================


@dataclass
class ClientProfile:
    """A CRM client row as read from the ``clients`` table.

    Attributes:
        id: Client UUID.
        user_id: Owning sales user.
        name: Contact name.
        company: Company name (research subject).
        email: Contact email, used to derive the company domain.
        position: Contact job title.
        notes: Free-text meeting notes.
        follow_up_date: Next planned follow-up, if any.
        deals: Deal dicts (``title``, ``value``, ``status``), newest first.
        is_active: Inactive clients are never researched.
    """

    id: str
    user_id: str
    name: str = ""
    company: str = ""
    email: Optional[str] = None
    position: Optional[str] = None
    notes: str = ""
    follow_up_date: Optional[datetime] = None
    deals: List[Dict[str, Any]] = field(default_factory=list)
    is_active: bool = True

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "ClientProfile":
        """Build a profile from a Supabase ``clients`` row."""
        return cls(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            name=row.get("name") or "",
            company=row.get("company") or "",
            email=row.get("email"),
            position=row.get("position"),
            notes=row.get("notes") or "",
            follow_up_date=parse_timestamp(row.get("follow_up_date")),
            deals=list(row.get("deals") or []),
            is_active=row.get("is_active", True),
        )

    @property
    def active_deal(self) -> Optional[Dict[str, Any]]:
        """The first listed deal, treated as the active one."""
        return self.deals[0] if self.deals else None


@dataclass
class UserFlightSettings:
    """Flight tracking flags from the ``users`` table."""

    user_id: str
    flight_tracking_enabled: bool = False
    flight_tracking_quota: int = 5


# =============================================================================
# RESEARCH MODELS
# =============================================================================


@dataclass
class ResearchRecord:
    """Aggregated research for one (client, user) pair.

    ``data`` and ``last_updated`` are keyed by source name. A source that
    was attempted but returned nothing has a ``last_updated`` entry and no
    ``data`` entry.
    """

    client_id: str
    user_id: str
    company_name: str = ""
    data: Dict[str, Any] = field(default_factory=dict)
    last_updated: Dict[str, datetime] = field(default_factory=dict)
    summary: Optional[str] = None
    summary_generated_at: Optional[datetime] = None
    deal_intelligence: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def last_updated_for(self, source: ResearchSource) -> Optional[datetime]:
        return self.last_updated.get(source.value)

    def data_for(self, source: ResearchSource) -> Any:
        return self.data.get(source.value)

    @property
    def latest_update(self) -> Optional[datetime]:
        """Most recent write of any kind (source attempt or summary)."""
        candidates = list(self.last_updated.values())
        for stamp in (self.summary_generated_at, self.updated_at):
            if stamp:
                candidates.append(stamp)
        return max(candidates) if candidates else None

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly view used by the CLI."""
        return {
            "client_id": self.client_id,
            "user_id": self.user_id,
            "company_name": self.company_name,
            "summary": self.summary,
            "deal_intelligence": self.deal_intelligence,
            "data": self.data,
            "last_updated": {k: v.isoformat() for k, v in self.last_updated.items()},
            "timestamp": self.latest_update.isoformat() if self.latest_update else None,
        }


@dataclass
class SourceOutcome:
    """Result of running one source for one subject."""

    source: ResearchSource
    status: FetchStatus
    error: Optional[str] = None


@dataclass
class ResearchRunResult:
    """Result of one research cycle for a (client, user) pair."""

    client_id: str
    user_id: str
    outcomes: List[SourceOutcome] = field(default_factory=list)
    summary: Optional[str] = None

    def status_of(self, source: ResearchSource) -> Optional[FetchStatus]:
        for outcome in self.outcomes:
            if outcome.source is source:
                return outcome.status
        return None

    @property
    def fetched_sources(self) -> List[ResearchSource]:
        return [o.source for o in self.outcomes if o.status is FetchStatus.FETCHED]
