"""
Cached, rate-limited flight status lookups.

Read path:

1. Fresh cache hit: return it. No limiter check, no network call.
2. Otherwise ask the limiter; a refusal raises ``RateLimitExceededError``.
3. Call the provider, cache the normalized payload, return it.

Provider failures propagate to the caller as typed
:class:`~salessynth.exceptions.FlightLookupError` subclasses.
"""

import copy
import logging
from typing import Any, Dict, Optional

from salessynth.config import Settings
from salessynth.exceptions import RateLimitExceededError, ValidationError
from salessynth.flights.cache import TTLCache
from salessynth.flights.rate_limiter import FixedWindowRateLimiter
from salessynth.tools.aviationstack import AviationStackClient

logger = logging.getLogger(__name__)


class FlightStatusService:
    """Flight status lookups through a TTL cache and a rate limiter.

    Args:
        client: Provider adapter.
        cache: Cache of normalized payloads keyed by flight code.
        limiter: Limiter guarding provider calls.
    """

    def __init__(
        self,
        client: AviationStackClient,
        cache: TTLCache,
        limiter: FixedWindowRateLimiter,
    ) -> None:
        self.client = client
        self.cache = cache
        self.limiter = limiter

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        client: Optional[AviationStackClient] = None,
    ) -> "FlightStatusService":
        """Build a service with its own cache and limiter from *settings*."""
        return cls(
            client=client or AviationStackClient(timeout=settings.timeouts.aviationstack),
            cache=TTLCache(
                ttl_seconds=settings.flight_cache_ttl_seconds,
                max_entries=settings.flight_cache_max_entries,
            ),
            limiter=FixedWindowRateLimiter(
                max_calls=settings.flight_rate_limit_calls,
                window_seconds=settings.flight_rate_limit_window_seconds,
            ),
        )

    async def get_status(self, flight_number: str) -> Dict[str, Any]:
        """Current status of a flight.

        Args:
            flight_number: IATA flight code (case-insensitive).

        Returns:
            Normalized flight payload (a copy; callers may mutate it).

        Raises:
            ValidationError: If *flight_number* is empty.
            RateLimitExceededError: If the limiter refuses the call or the
                provider answers 429.
            FlightLookupError: On provider failures.
        """
        key = (flight_number or "").strip().upper()
        if not key:
            raise ValidationError("flight_number cannot be empty")

        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Flight cache hit: %s", key)
            return copy.deepcopy(cached)

        if not self.limiter.try_acquire():
            retry_after = self.limiter.retry_after()
            logger.warning("Flight lookup refused by rate limiter: %s", key)
            raise RateLimitExceededError(
                f"Rate limit exceeded, retry in {retry_after:.2f}s",
                retry_after=retry_after,
            )

        payload = await self.client.get_flight(key)
        self.cache.set(key, payload)
        return copy.deepcopy(payload)
