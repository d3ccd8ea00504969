"""
Custom exception classes for the SalesSynth research core.

This module defines all exception classes used throughout the codebase.
Every exception carries an :class:`ErrorKind` so callers (the CLI, the
research manager, tests) can branch on the category of failure instead
of on concrete classes.

Hierarchy:
    Exception
    +-- SalesSynthError (base, carries ``kind``)
    |   +-- ProviderError
    |   |   +-- FlightLookupError
    |   |       +-- FlightAPIError
    |   |       +-- FlightProviderError
    |   |       +-- FlightNotFoundError
    |   +-- RateLimitExceededError
    |   +-- FlightTrackingError
    |       +-- FlightTrackingDisabledError
    |       +-- FlightQuotaExceededError
    +-- ValidationError (ValueError)
    +-- DatabaseError
    +-- ConfigurationError
    +-- RetryExhaustedError
"""

from enum import Enum
from typing import Optional


# =============================================================================
# ERROR KINDS
# =============================================================================


class ErrorKind(str, Enum):
    """Category of a failure.

    The two external-call paths treat ``PROVIDER`` failures differently:

    * Research source adapters (news, content extraction, company and
      person enrichment, professional network) catch provider failures,
      log them and return an empty result. A failing source never aborts
      its siblings.
    * The flight lookup adapter raises a typed :class:`FlightLookupError`
      to its caller. Flight status has no meaningful empty value, so the
      caller must decide what to show.

    ``RATE_LIMIT`` is kept apart from ``PROVIDER`` so callers can back off
    and retry instead of treating the failure as permanent.
    """

    INPUT = "input"
    PROVIDER = "provider"
    PERSISTENCE = "persistence"
    RATE_LIMIT = "rate_limit"
    CONFIGURATION = "configuration"


# =============================================================================
# BASE EXCEPTION
# =============================================================================


class SalesSynthError(Exception):
    """Base exception for SalesSynth domain errors."""

    kind: ErrorKind = ErrorKind.PROVIDER


# =============================================================================
# CORE EXCEPTIONS
# =============================================================================


class ValidationError(ValueError):
    """Raised when input validation fails."""

    kind: ErrorKind = ErrorKind.INPUT


class DatabaseError(Exception):
    """Raised when database operations fail."""

    kind: ErrorKind = ErrorKind.PERSISTENCE


class ConfigurationError(Exception):
    """Raised when system configuration is invalid."""

    kind: ErrorKind = ErrorKind.CONFIGURATION


class RetryExhaustedError(Exception):
    """Raised when all retry attempts have been exhausted.

    Attributes:
        operation: Name of the operation that was retried.
        attempts: Total number of attempts made.
        last_error: The last exception raised before giving up.
    """

    kind: ErrorKind = ErrorKind.PROVIDER

    def __init__(self, operation: str, attempts: int, last_error: Exception):
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"{operation} failed after {attempts} attempts. "
            f"Last error: {last_error}"
        )


# =============================================================================
# PROVIDER EXCEPTIONS
# =============================================================================


class ProviderError(SalesSynthError):
    """Raised when a third-party provider call fails.

    Attributes:
        provider: Short provider name (``"apollo"``, ``"aviationstack"``...).
    """

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"[{provider}] {message}")


class RateLimitExceededError(SalesSynthError):
    """Raised when a call is refused because a rate limit is exhausted.

    Raised both by the local fixed-window limiter and when a provider
    answers HTTP 429.

    Attributes:
        retry_after: Seconds until a new call may be admitted, when known.
    """

    kind = ErrorKind.RATE_LIMIT

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after: Optional[float] = None,
    ):
        self.retry_after = retry_after
        super().__init__(message)


# =============================================================================
# FLIGHT LOOKUP EXCEPTIONS
# =============================================================================


class FlightLookupError(ProviderError):
    """Base for failures surfaced by the flight status lookup.

    Attributes:
        flight_number: IATA flight code that was looked up.
    """

    def __init__(self, flight_number: str, message: str):
        self.flight_number = flight_number
        super().__init__("aviationstack", message)


class FlightAPIError(FlightLookupError):
    """Raised on a non-2xx HTTP response from the flight provider.

    Attributes:
        status_code: HTTP status returned by the provider (``None`` on a
            transport failure).
    """

    def __init__(self, flight_number: str, status_code: Optional[int], message: str = ""):
        self.status_code = status_code
        super().__init__(flight_number, message or f"API error: {status_code}")


class FlightProviderError(FlightLookupError):
    """Raised when the provider payload carries an ``error`` object."""

    pass


class FlightNotFoundError(FlightLookupError):
    """Raised when the provider returns no flight for the code."""

    def __init__(self, flight_number: str):
        super().__init__(flight_number, f"Flight not found: {flight_number}")


# =============================================================================
# FLIGHT TRACKING EXCEPTIONS
# =============================================================================


class FlightTrackingError(SalesSynthError):
    """Base for per-user flight tracking refusals."""

    kind = ErrorKind.INPUT


class FlightTrackingDisabledError(FlightTrackingError):
    """Raised when a user without the flight tracking feature tracks a flight."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"Flight tracking not enabled for user {user_id}")


class FlightQuotaExceededError(FlightTrackingError):
    """Raised when a user already tracks as many flights as their quota allows.

    Attributes:
        quota: Maximum number of tracked flights for the user.
        current: Number of flights currently tracked.
    """

    def __init__(self, user_id: str, quota: int, current: int):
        self.user_id = user_id
        self.quota = quota
        self.current = current
        super().__init__(
            f"Flight tracking quota exceeded for user {user_id}: "
            f"{current}/{quota}"
        )


__all__ = [
    # Kinds
    "ErrorKind",
    # Base
    "SalesSynthError",
    # Core
    "ValidationError",
    "DatabaseError",
    "ConfigurationError",
    "RetryExhaustedError",
    # Providers
    "ProviderError",
    "RateLimitExceededError",
    # Flight lookup
    "FlightLookupError",
    "FlightAPIError",
    "FlightProviderError",
    "FlightNotFoundError",
    # Flight tracking
    "FlightTrackingError",
    "FlightTrackingDisabledError",
    "FlightQuotaExceededError",
]
