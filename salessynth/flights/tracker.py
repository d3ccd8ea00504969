"""
Per-user flight tracking on top of :class:`FlightStatusService`.

Tracking is a premium feature: users need ``flight_tracking_enabled`` and
may track at most ``flight_tracking_quota`` flights.
"""

import logging
from typing import Any, Dict, List, Optional

from salessynth.database import SupabaseDB
from salessynth.exceptions import (
    FlightQuotaExceededError,
    FlightTrackingDisabledError,
)
from salessynth.flights.service import FlightStatusService
from salessynth.models import UserFlightSettings
from salessynth.utils import utc_now

logger = logging.getLogger(__name__)


class FlightTracker:
    """Manage the flights a user tracks and refresh their status."""

    def __init__(self, db: SupabaseDB, service: FlightStatusService) -> None:
        self.db = db
        self.service = service

    async def _require_enabled(self, user_id: str) -> UserFlightSettings:
        settings = await self.db.get_user_flight_settings(user_id)
        if settings is None or not settings.flight_tracking_enabled:
            raise FlightTrackingDisabledError(user_id)
        return settings

    async def list_flights(self, user_id: str) -> List[Dict[str, Any]]:
        await self._require_enabled(user_id)
        return await self.db.get_tracked_flights(user_id)

    async def track_flight(self, user_id: str, flight_number: str) -> Dict[str, Any]:
        """Start tracking *flight_number* for *user_id*.

        Raises:
            FlightTrackingDisabledError: Feature not enabled for the user.
            FlightQuotaExceededError: The user is at their quota.
        """
        settings = await self._require_enabled(user_id)
        current = await self.db.count_tracked_flights(user_id)
        if current >= settings.flight_tracking_quota:
            raise FlightQuotaExceededError(user_id, settings.flight_tracking_quota, current)

        row = await self.db.add_tracked_flight(user_id, flight_number)
        logger.info("User %s now tracks flight %s", user_id, row.get("flight_number"))
        return row

    async def untrack_flight(self, user_id: str, flight_id: str) -> bool:
        await self._require_enabled(user_id)
        return await self.db.delete_tracked_flight(flight_id, user_id)

    async def refresh_flight(
        self, user_id: str, flight_id: str
    ) -> Optional[Dict[str, Any]]:
        """Look up a tracked flight and store its latest status.

        Returns:
            The normalized status payload, or ``None`` if the user does not
            track *flight_id*.

        Raises:
            RateLimitExceededError: Limiter refused the lookup.
            FlightLookupError: Provider failure.
        """
        await self._require_enabled(user_id)
        flight = await self.db.get_tracked_flight(flight_id, user_id)
        if flight is None:
            return None

        status = await self.service.get_status(flight["flight_number"])
        await self.db.update_tracked_flight(
            flight_id,
            {
                "status": status["status"],
                "departure": status["departure"],
                "arrival": status["arrival"],
                "last_updated": utc_now().isoformat(),
            },
        )
        return status
