"""
Unified async database client for the research core.

ALL database operations go through the SupabaseDB class defined here.
No direct Supabase calls should appear anywhere else in the codebase.

Research is stored as two tables so that sources never share a row:

* ``research``: one row per (``client_id``, ``user_id``) holding identity
  fields, ``updated_at``, the generated ``summary`` and the
  ``deal_intelligence`` document.
* ``research_sources``: one row per (``client_id``, ``user_id``,
  ``source``) holding that source's ``data`` and ``last_updated``.

:meth:`SupabaseDB.get_research` joins them into a
:class:`~salessynth.models.ResearchRecord`.

Usage::

    from salessynth.database import get_db

    db = await get_db()
    record = await db.get_research(client_id, user_id)
"""

import asyncio
import logging
import os
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from supabase import AsyncClient, create_async_client

from salessynth.exceptions import DatabaseError, ValidationError
from salessynth.models import ClientProfile, ResearchRecord, ResearchSource, UserFlightSettings
from salessynth.utils import parse_timestamp, utc_now

logger = logging.getLogger(__name__)

RESEARCH_TABLE = "research"
RESEARCH_SOURCES_TABLE = "research_sources"


# =============================================================================
# VALIDATION HELPERS
# =============================================================================


def validate_not_empty(value: Any, name: str) -> None:
    """Validate that *value* is not ``None`` or an empty string.

    Args:
        value: The value to check.
        name: Human-readable field name used in error messages.

    Raises:
        ValidationError: If *value* is ``None`` or a blank string.
    """
    if value is None:
        raise ValidationError(f"{name} cannot be None")
    if isinstance(value, str) and not value.strip():
        raise ValidationError(f"{name} cannot be empty string")


# =============================================================================
# CONFIGURATION
# =============================================================================


@dataclass
class SupabaseConfig:
    """Supabase configuration loaded from environment variables.

    Attributes:
        url: The Supabase project URL (``SUPABASE_URL``).
        key: The service-role key for full server-side access
            (``SUPABASE_SERVICE_KEY``).
    """

    url: str
    key: str

    @classmethod
    def from_env(cls) -> "SupabaseConfig":
        """Create a config instance from environment variables.

        Raises:
            ValueError: If either variable is missing or empty.
        """
        url = os.environ.get("SUPABASE_URL")
        key = os.environ.get("SUPABASE_SERVICE_KEY")

        if not url or not key:
            raise ValueError(
                "SUPABASE_URL and SUPABASE_SERVICE_KEY must be set"
            )

        return cls(url=url, key=key)


# =============================================================================
# SUPABASE DATABASE CLIENT
# =============================================================================


class SupabaseDB:
    """Unified **async** database client for all research-core operations.

    **Important:** Use the :meth:`create` factory method instead of
    ``__init__`` directly -- the underlying async client requires an
    ``await`` during initialisation.
    """

    def __init__(self, client: AsyncClient) -> None:
        """Private constructor.  Use :meth:`create` factory method."""
        self.client = client

    @classmethod
    async def create(
        cls, config: Optional[SupabaseConfig] = None
    ) -> "SupabaseDB":
        """Factory method to create an async :class:`SupabaseDB` instance.

        Args:
            config: Optional configuration.  When ``None``,
                :meth:`SupabaseConfig.from_env` is used.

        Returns:
            A fully initialised :class:`SupabaseDB` instance.
        """
        config = config or SupabaseConfig.from_env()
        client = await create_async_client(config.url, config.key)
        return cls(client)

    # -----------------------------------------------------------------
    # RESEARCH
    # -----------------------------------------------------------------

    async def get_research(
        self, client_id: str, user_id: str
    ) -> Optional[ResearchRecord]:
        """Load the aggregated research record for a (client, user) pair.

        Args:
            client_id: Client UUID.
            user_id: Owning user UUID.

        Returns:
            The joined :class:`ResearchRecord`, or ``None`` when neither an
            identity row nor any source row exists.
        """
        validate_not_empty(client_id, "client_id")
        validate_not_empty(user_id, "user_id")

        head = await (
            self.client.table(RESEARCH_TABLE)
            .select("*")
            .eq("client_id", client_id)
            .eq("user_id", user_id)
            .execute()
        )
        sources = await (
            self.client.table(RESEARCH_SOURCES_TABLE)
            .select("*")
            .eq("client_id", client_id)
            .eq("user_id", user_id)
            .execute()
        )
        if not head.data and not sources.data:
            return None

        row = head.data[0] if head.data else {}
        record = ResearchRecord(
            client_id=client_id,
            user_id=user_id,
            company_name=row.get("company_name") or "",
            summary=row.get("summary"),
            summary_generated_at=parse_timestamp(row.get("summary_generated_at")),
            deal_intelligence=row.get("deal_intelligence"),
            created_at=parse_timestamp(row.get("created_at")),
            updated_at=parse_timestamp(row.get("updated_at")),
        )
        for source_row in sources.data or []:
            name = source_row["source"]
            last_updated = parse_timestamp(source_row.get("last_updated"))
            if last_updated is not None:
                record.last_updated[name] = last_updated
            if source_row.get("data") is not None:
                record.data[name] = source_row["data"]
        return record

    async def ensure_research_record(
        self, client_id: str, user_id: str, company_name: str
    ) -> None:
        """Create the identity row for a (client, user) pair if absent.

        Uses an insert that ignores conflicts, so identity fields written
        by the first attempt are never overwritten later.
        """
        validate_not_empty(client_id, "client_id")
        validate_not_empty(user_id, "user_id")

        await (
            self.client.table(RESEARCH_TABLE)
            .upsert(
                {
                    "client_id": client_id,
                    "user_id": user_id,
                    "company_name": company_name,
                    "created_at": utc_now().isoformat(),
                },
                on_conflict="client_id,user_id",
                ignore_duplicates=True,
            )
            .execute()
        )

    async def upsert_source_result(
        self,
        client_id: str,
        user_id: str,
        company_name: str,
        source: ResearchSource,
        data: Any = None,
        attempted_at: Optional[datetime] = None,
    ) -> datetime:
        """Record one source attempt for a (client, user) pair.

        Writes only the row for *source*, then bumps ``updated_at`` on the
        identity row. ``last_updated`` is always written; ``data`` is written only when it is not ``None``, so an
        empty attempt keeps the previous payload.

        Args:
            client_id: Client UUID.
            user_id: Owning user UUID.
            company_name: Research subject, stored on first creation only.
            source: Research source being recorded.
            data: Normalized provider payload, or ``None`` for no data.
            attempted_at: Attempt time. Defaults to now.

        Returns:
            The timestamp written to ``last_updated``.

        Raises:
            ValidationError: On empty identifiers.
            DatabaseError: When the upsert returns no data.
        """
        validate_not_empty(client_id, "client_id")
        validate_not_empty(user_id, "user_id")

        attempted_at = attempted_at or utc_now()
        await self.ensure_research_record(client_id, user_id, company_name)

        row: Dict[str, Any] = {
            "client_id": client_id,
            "user_id": user_id,
            "source": source.value,
            "last_updated": attempted_at.isoformat(),
        }
        if data is not None:
            row["data"] = data

        result = await (
            self.client.table(RESEARCH_SOURCES_TABLE)
            .upsert(row, on_conflict="client_id,user_id,source")
            .execute()
        )
        if not result.data:
            raise DatabaseError("Upsert succeeded but returned no data")

        await (
            self.client.table(RESEARCH_TABLE)
            .update({"updated_at": attempted_at.isoformat()})
            .eq("client_id", client_id)
            .eq("user_id", user_id)
            .execute()
        )
        return attempted_at

    async def save_summary(
        self,
        client_id: str,
        user_id: str,
        company_name: str,
        summary: str,
        generated_at: Optional[datetime] = None,
        deal_intelligence: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Store generated insights on the identity row.

        Args:
            client_id: Client UUID.
            user_id: Owning user UUID.
            company_name: Research subject, stored on first creation only.
            summary: Generated insight text.
            generated_at: Generation time. Defaults to now.
            deal_intelligence: Deal document written to the
                ``deal_intelligence`` JSONB column; left unchanged when
                ``None``.

        Raises:
            ValidationError: On empty identifiers or summary.
        """
        validate_not_empty(summary, "summary")
        await self.ensure_research_record(client_id, user_id, company_name)

        generated = (generated_at or utc_now()).isoformat()
        fields: Dict[str, Any] = {
            "summary": summary,
            "summary_generated_at": generated,
            "updated_at": generated,
        }
        if deal_intelligence is not None:
            fields["deal_intelligence"] = deal_intelligence

        await (
            self.client.table(RESEARCH_TABLE)
            .update(fields)
            .eq("client_id", client_id)
            .eq("user_id", user_id)
            .execute()
        )

    # -----------------------------------------------------------------
    # CLIENTS (read-only)
    # -----------------------------------------------------------------

    async def get_client(self, client_id: str) -> Optional[ClientProfile]:
        """Get a client by ID.

        Returns:
            :class:`ClientProfile` or ``None`` if not found.
        """
        validate_not_empty(client_id, "client_id")

        result = (
            await self.client.table("clients")
            .select("*")
            .eq("id", client_id)
            .execute()
        )
        return ClientProfile.from_row(result.data[0]) if result.data else None

    async def get_active_clients(
        self, user_id: Optional[str] = None
    ) -> List[ClientProfile]:
        """Get active clients, optionally restricted to one user.

        Returns:
            List of :class:`ClientProfile`.
        """
        query = self.client.table("clients").select("*").eq("is_active", True)
        if user_id:
            query = query.eq("user_id", user_id)
        result = await query.execute()
        return [ClientProfile.from_row(row) for row in result.data or []]

    # -----------------------------------------------------------------
    # USERS / FLIGHTS
    # -----------------------------------------------------------------

    async def get_user_flight_settings(
        self, user_id: str
    ) -> Optional[UserFlightSettings]:
        """Read the flight tracking flags for a user.

        Returns:
            :class:`UserFlightSettings` or ``None`` if the user is unknown.
        """
        validate_not_empty(user_id, "user_id")

        result = await (
            self.client.table("users")
            .select("id, flight_tracking_enabled, flight_tracking_quota")
            .eq("id", user_id)
            .execute()
        )
        if not result.data:
            return None
        row = result.data[0]
        return UserFlightSettings(
            user_id=user_id,
            flight_tracking_enabled=bool(row.get("flight_tracking_enabled", False)),
            flight_tracking_quota=int(row.get("flight_tracking_quota") or 5),
        )

    async def count_tracked_flights(self, user_id: str) -> int:
        """Number of flights tracked by a user."""
        validate_not_empty(user_id, "user_id")

        result = await (
            self.client.table("flights")
            .select("id", count="exact")
            .eq("user_id", user_id)
            .execute()
        )
        return result.count or 0

    async def add_tracked_flight(
        self, user_id: str, flight_number: str
    ) -> Dict[str, Any]:
        """Insert a tracked flight with status ``scheduled``.

        Returns:
            The inserted row.

        Raises:
            DatabaseError: When the insert returns no data.
        """
        validate_not_empty(user_id, "user_id")
        validate_not_empty(flight_number, "flight_number")

        result = await (
            self.client.table("flights")
            .insert({
                "user_id": user_id,
                "flight_number": flight_number.strip().upper(),
                "status": "scheduled",
                "last_updated": utc_now().isoformat(),
            })
            .execute()
        )
        if not result.data:
            raise DatabaseError("Insert succeeded but returned no data")
        return result.data[0]

    async def get_tracked_flights(self, user_id: str) -> List[Dict[str, Any]]:
        """All flights tracked by a user."""
        validate_not_empty(user_id, "user_id")

        result = await (
            self.client.table("flights")
            .select("*")
            .eq("user_id", user_id)
            .execute()
        )
        return result.data or []

    async def get_tracked_flight(
        self, flight_id: str, user_id: str
    ) -> Optional[Dict[str, Any]]:
        """A single tracked flight owned by *user_id*, or ``None``."""
        validate_not_empty(flight_id, "flight_id")
        validate_not_empty(user_id, "user_id")

        result = await (
            self.client.table("flights")
            .select("*")
            .eq("id", flight_id)
            .eq("user_id", user_id)
            .execute()
        )
        return result.data[0] if result.data else None

    async def update_tracked_flight(
        self, flight_id: str, fields: Dict[str, Any]
    ) -> None:
        """Update status fields on a tracked flight.

        Raises:
            ValidationError: If *fields* is empty.
        """
        validate_not_empty(flight_id, "flight_id")
        if not fields:
            raise ValidationError("fields cannot be None or empty")

        await (
            self.client.table("flights")
            .update(fields)
            .eq("id", flight_id)
            .execute()
        )

    async def delete_tracked_flight(self, flight_id: str, user_id: str) -> bool:
        """Delete a tracked flight.

        Returns:
            ``True`` if a row was deleted.
        """
        validate_not_empty(flight_id, "flight_id")
        validate_not_empty(user_id, "user_id")

        result = await (
            self.client.table("flights")
            .delete()
            .eq("id", flight_id)
            .eq("user_id", user_id)
            .execute()
        )
        return bool(result.data)


# =============================================================================
# SINGLETON ACCESSOR
# =============================================================================

_db_instance: Optional[SupabaseDB] = None
_db_lock: Optional[asyncio.Lock] = None

# Thread lock for safe initialisation of the async lock itself.
_init_lock = threading.Lock()


async def get_db() -> SupabaseDB:
    """Get the global async database instance.

    Thread-safe **and** async-safe.  The first call creates the
    :class:`SupabaseDB` singleton; subsequent calls return the same
    instance.

    Returns:
        The singleton :class:`SupabaseDB` instance.
    """
    global _db_instance, _db_lock

    if _db_lock is None:
        with _init_lock:
            if _db_lock is None:
                _db_lock = asyncio.Lock()

    if _db_instance is None:
        async with _db_lock:
            if _db_instance is None:
                _db_instance = await SupabaseDB.create()

    return _db_instance
