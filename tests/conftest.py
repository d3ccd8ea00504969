"""Shared fixtures for the SalesSynth research core test suite."""

import copy
import itertools
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Set, Tuple
from unittest.mock import MagicMock

import pytest

from salessynth.config import Settings, reset_settings
from salessynth.database import SupabaseDB
from salessynth.models import ClientProfile


# ---------------------------------------------------------------------------
# Ensure we don't hit real APIs during tests
# ---------------------------------------------------------------------------
@pytest.fixture(autouse=True)
def _block_env_keys(monkeypatch):
    """Clear all API keys and tuning overrides so tests never hit real services."""
    keys = [
        "SUPABASE_URL",
        "SUPABASE_SERVICE_KEY",
        "ANTHROPIC_API_KEY",
        "SERPAPI_KEY",
        "DIFFBOT_TOKEN",
        "APOLLO_API_KEY",
        "PDL_API_KEY",
        "LINKEDIN_CLIENT_ID",
        "LINKEDIN_CLIENT_SECRET",
        "REDDIT_CLIENT_ID",
        "REDDIT_CLIENT_SECRET",
        "REDDIT_USER_AGENT",
        "AVIATIONSTACK_API_KEY",
        "RESEARCH_COOLDOWN_HOURS",
        "RESEARCH_BATCH_SIZE",
        "FLIGHT_CACHE_TTL_SECONDS",
        "FLIGHT_CACHE_MAX_ENTRIES",
        "FLIGHT_RATE_LIMIT_PER_SECOND",
        "LOG_LEVEL",
    ]
    for key in keys:
        monkeypatch.delenv(key, raising=False)
    reset_settings()
    yield
    reset_settings()


# ---------------------------------------------------------------------------
# Clocks
# ---------------------------------------------------------------------------
class FakeClock:
    """Wall clock returning a fixed UTC datetime until advanced."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeMonotonic:
    """Monotonic clock in seconds, advanced by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.t = start

    def __call__(self) -> float:
        return self.t

    def advance(self, seconds: float) -> None:
        self.t += seconds


@pytest.fixture
def sample_utc_now():
    """A fixed UTC datetime for deterministic tests."""
    return datetime(2025, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(sample_utc_now):
    return FakeClock(sample_utc_now)


@pytest.fixture
def monotonic():
    return FakeMonotonic()


# ---------------------------------------------------------------------------
# In-memory Supabase client
# ---------------------------------------------------------------------------
class FakeQuery:
    """Chainable query builder over :class:`FakeSupabase` tables."""

    _ids = itertools.count(1)

    def __init__(self, db: "FakeSupabase", table: str) -> None:
        self.db = db
        self.table = table
        self.op = "select"
        self.payload: Any = None
        self.filters: List[Tuple[str, Any]] = []
        self.on_conflict: Optional[str] = None
        self.ignore_duplicates = False
        self.count: Optional[str] = None

    def select(self, columns: str = "*", count: Optional[str] = None) -> "FakeQuery":
        self.op = "select"
        self.count = count
        return self

    def insert(self, row: Dict[str, Any]) -> "FakeQuery":
        self.op, self.payload = "insert", row
        return self

    def update(self, fields: Dict[str, Any]) -> "FakeQuery":
        self.op, self.payload = "update", fields
        return self

    def delete(self) -> "FakeQuery":
        self.op = "delete"
        return self

    def upsert(
        self,
        row: Dict[str, Any],
        on_conflict: Optional[str] = None,
        ignore_duplicates: bool = False,
    ) -> "FakeQuery":
        self.op, self.payload = "upsert", row
        self.on_conflict = on_conflict
        self.ignore_duplicates = ignore_duplicates
        return self

    def eq(self, column: str, value: Any) -> "FakeQuery":
        self.filters.append((column, value))
        return self

    def _matches(self, row: Dict[str, Any]) -> bool:
        return all(row.get(col) == val for col, val in self.filters)

    async def execute(self) -> MagicMock:
        self.db.calls.append((self.table, self.op, copy.deepcopy(self.payload)))
        error = self.db.failures.get((self.table, self.op))
        if error is not None:
            raise error
        if (self.table, self.op) in self.db.empty_results:
            return MagicMock(data=[], count=0)

        rows = self.db.tables.setdefault(self.table, [])
        data: List[Dict[str, Any]] = []

        if self.op == "select":
            data = [copy.deepcopy(r) for r in rows if self._matches(r)]
        elif self.op == "insert":
            row = {"id": str(next(self._ids)), **copy.deepcopy(self.payload)}
            rows.append(row)
            data = [copy.deepcopy(row)]
        elif self.op == "update":
            for row in rows:
                if self._matches(row):
                    row.update(copy.deepcopy(self.payload))
                    data.append(copy.deepcopy(row))
        elif self.op == "delete":
            data = [copy.deepcopy(r) for r in rows if self._matches(r)]
            rows[:] = [r for r in rows if not self._matches(r)]
        elif self.op == "upsert":
            keys = (self.on_conflict or "id").split(",")
            existing = next(
                (r for r in rows if all(r.get(k) == self.payload.get(k) for k in keys)),
                None,
            )
            if existing is None:
                rows.append(copy.deepcopy(self.payload))
                data = [copy.deepcopy(self.payload)]
            elif not self.ignore_duplicates:
                existing.update(copy.deepcopy(self.payload))
                data = [copy.deepcopy(existing)]

        return MagicMock(data=data, count=len(data) if self.count else None)


class FakeSupabase:
    """Minimal in-memory stand-in for the async Supabase client.

    ``failures`` maps ``(table, op)`` to an exception raised by ``execute``;
    ``empty_results`` lists ``(table, op)`` pairs that return no rows.
    """

    def __init__(self) -> None:
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.calls: List[Tuple[str, str, Any]] = []
        self.failures: Dict[Tuple[str, str], Exception] = {}
        self.empty_results: Set[Tuple[str, str]] = set()

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rows(self, name: str) -> List[Dict[str, Any]]:
        return self.tables.get(name, [])

    def writes(self, name: str) -> List[Tuple[str, Any]]:
        return [(op, p) for t, op, p in self.calls if t == name and op != "select"]


@pytest.fixture
def fake_supabase():
    return FakeSupabase()


@pytest.fixture
def db(fake_supabase):
    return SupabaseDB(fake_supabase)


# ---------------------------------------------------------------------------
# Domain fixtures
# ---------------------------------------------------------------------------
@pytest.fixture
def settings():
    """Default settings with no inter-batch delay."""
    return Settings(batch_delay_seconds=0)


@pytest.fixture
def sample_client():
    return ClientProfile(
        id="client-1",
        user_id="user-1",
        name="Jane Doe",
        company="Acme Corp",
        email="jane@acme.com",
        position="VP Engineering",
        notes="Asked about SSO. Needs audit logging.",
        deals=[{"title": "Platform rollout", "value": 50000, "status": "negotiation"}],
    )


@pytest.fixture
def sample_articles():
    return [
        {
            "title": "Acme raises Series C",
            "url": "https://news.example.com/acme-series-c",
            "snippet": "Acme Corp closed a $40M round.",
            "published_date": "2 days ago",
            "source": "TechNews",
        },
        {
            "title": "Acme opens Berlin office",
            "url": "https://news.example.com/acme-berlin",
            "snippet": "Expansion into Europe.",
            "published_date": "1 week ago",
            "source": "BizWire",
        },
    ]
