"""
Flight status lookups for the CRM flight tracker.

- TTLCache: bounded LRU cache with lazy expiry
- FixedWindowRateLimiter: fail-fast limiter guarding provider calls
- FlightStatusService: cache, then limiter, then provider
- FlightTracker: per-user tracked flights with enable flag and quota
"""

from salessynth.flights.cache import TTLCache
from salessynth.flights.rate_limiter import FixedWindowRateLimiter
from salessynth.flights.service import FlightStatusService
from salessynth.flights.tracker import FlightTracker

__all__ = [
    "TTLCache",
    "FixedWindowRateLimiter",
    "FlightStatusService",
    "FlightTracker",
]
