"""
Shared utility functions used throughout the SalesSynth research core.

Provides:
    - utc_now(): Timezone-aware UTC datetime (for Supabase TIMESTAMPTZ columns)
    - ensure_utc(dt): Convert any datetime to timezone-aware UTC
    - parse_timestamp(value): Parse an ISO string from Supabase into UTC
    - dedupe_by_key(items, key): Drop repeated entries, keeping the first
    - json_object(response): Decoded JSON body that must be an object
    - extract_domain(value): Domain from a URL or an email address
    - normalize_company_name(name): Lowercased name without legal suffixes
    - @with_retry: Decorator with exponential backoff for transient failures
"""

from datetime import datetime, timezone
import asyncio
import inspect
import logging
import re
import time as time_module
from functools import wraps
from typing import Any, Callable, Dict, Hashable, Iterable, List, Optional, Tuple, Type, TypeVar, Union
from urllib.parse import urlparse

from salessynth.exceptions import RetryExhaustedError

# ---------------------------------------------------------------------------
# Type variable for generic return types in the retry decorator
# ---------------------------------------------------------------------------
T = TypeVar("T")


# ===========================================================================
# TIMEZONE UTILITIES
# All timestamps stored in Supabase must be timezone-aware (TIMESTAMPTZ)
# ===========================================================================


def utc_now() -> datetime:
    """
    Get current UTC time as timezone-aware datetime.

    ALWAYS use this instead of ``datetime.now()`` or ``datetime.utcnow()``
    for Supabase compatibility (TIMESTAMPTZ columns).

    Returns:
        Timezone-aware datetime in UTC.
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """
    Ensure a datetime is timezone-aware in UTC.

    Args:
        dt: Datetime to convert (naive or aware).

    Returns:
        Timezone-aware datetime in UTC.
    """
    if dt.tzinfo is None:
        # Assume naive datetime is UTC
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_timestamp(value: Union[str, datetime, None]) -> Optional[datetime]:
    """
    Parse a timestamp read back from Supabase.

    PostgREST returns TIMESTAMPTZ columns as ISO 8601 strings, sometimes
    with a trailing ``Z``.

    Args:
        value: ISO string, datetime, or ``None``.

    Returns:
        Timezone-aware UTC datetime, or ``None`` when *value* is empty.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(text))


# ===========================================================================
# COLLECTION HELPERS
# ===========================================================================


def dedupe_by_key(
    items: Iterable[Dict[str, Any]],
    key: str,
) -> List[Dict[str, Any]]:
    """
    Remove entries whose *key* value was already seen, keeping the first.

    Entries missing *key* (or with a ``None`` value) are kept as-is.

    Args:
        items: Sequence of dicts.
        key: Field used as the natural key (e.g. ``"title"``).

    Returns:
        New list preserving the original order.
    """
    seen: set = set()
    result: List[Dict[str, Any]] = []
    for item in items:
        value: Optional[Hashable] = item.get(key)
        if value is not None:
            if value in seen:
                continue
            seen.add(value)
        result.append(item)
    return result


def json_object(response: Any) -> Dict[str, Any]:
    """
    Decode a provider response whose body must be a JSON object.

    Args:
        response: Any object with a ``json()`` method (an ``httpx.Response``).

    Raises:
        ValueError: If the body is not JSON or decodes to a list, string
            or number.
    """
    payload = response.json()
    if not isinstance(payload, dict):
        raise ValueError(f"expected a JSON object, got {type(payload).__name__}")
    return payload


# ===========================================================================
# COMPANY / DOMAIN HELPERS
# ===========================================================================

_COMPANY_SUFFIXES: Tuple[str, ...] = (
    " inc", " inc.", " incorporated",
    " corp", " corp.", " corporation",
    " llc", " ltd", " limited",
    " gmbh", " co", " co.", " company",
)


def extract_domain(value: Optional[str]) -> Optional[str]:
    """
    Extract a domain from a URL or an email address.

    Args:
        value: ``https://www.acme.com/about``, ``jane@acme.com`` or any
            free text.

    Returns:
        Lowercased domain without ``www.``, or ``None`` when *value* is
        neither a URL nor an email address.
    """
    if not value:
        return None

    if "://" in value and "http" in value:
        host = urlparse(value.strip()).hostname
        if host:
            return re.sub(r"^www\.", "", host.lower())

    if "@" in value and " " not in value.strip():
        parts = value.strip().split("@")
        if len(parts) == 2 and "." in parts[1]:
            return parts[1].lower()

    return None


def normalize_company_name(name: Optional[str]) -> str:
    """
    Normalize a company name for matching against provider records.

    Lowercases, strips one trailing legal suffix (``Inc``, ``LLC``...),
    replaces punctuation with spaces and collapses whitespace.

    Args:
        name: Raw company name.

    Returns:
        Normalized name, or ``""`` for empty input.
    """
    if not name:
        return ""

    normalized = name.strip().lower()
    for suffix in _COMPANY_SUFFIXES:
        if normalized.endswith(suffix):
            normalized = normalized[: -len(suffix)]
            break

    normalized = re.sub(r"[^\w\s]", " ", normalized)
    return re.sub(r"\s+", " ", normalized).strip()


# ===========================================================================
# RETRY DECORATOR WITH EXPONENTIAL BACKOFF
# Retries are for transient failures (rate limits, timeouts). Eventually
# raises if all attempts fail.
# ===========================================================================


def with_retry(
    max_attempts: int = 3,
    base_delay: float = 2.0,
    retryable_exceptions: Tuple[Type[Exception], ...] = (Exception,),
    operation_name: Optional[str] = None,
) -> Callable:
    """
    Decorator for retry logic with exponential backoff.

    - Retries are for transient failures (rate limits, timeouts).
    - Eventually raises ``RetryExhaustedError`` if all attempts fail.
    - Logs each retry attempt for debugging.

    Works with both synchronous and asynchronous functions.

    Args:
        max_attempts: Maximum number of attempts (default ``3``).
        base_delay: Initial delay in seconds before the first retry
            (default ``2.0``). Subsequent delays grow exponentially:
            ``base_delay * (2 ** attempt)``.
        retryable_exceptions: Tuple of exception types that should trigger
            a retry. Any exception **not** in this tuple will propagate
            immediately without retrying.
        operation_name: Human-readable name used in log messages. If
            ``None``, the wrapped function's ``__name__`` is used.

    Raises:
        RetryExhaustedError: When all retry attempts have been exhausted.

    Usage::

        @with_retry(max_attempts=3, base_delay=2.0)
        async def call_claude(prompt: str) -> str:
            return await llm.generate(prompt)
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        op_name = operation_name or func.__name__

        @wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> T:
            last_error: Optional[Exception] = None
            for attempt in range(1, max_attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except retryable_exceptions as e:
                    last_error = e
                    if attempt < max_attempts:
                        delay = base_delay * (2 ** (attempt - 1))
                        logging.warning(
                            "[RETRY] %s attempt %d/%d failed: %s. "
                            "Retrying in %.1fs...",
                            op_name,
                            attempt,
                            max_attempts,
                            e,
                            delay,
                        )
                        await asyncio.sleep(delay)
                    else:
                        logging.error(
                            "[RETRY EXHAUSTED] %s failed after %d attempts: %s",
                            op_name,
                            max_attempts,
                            e,
                        )
            raise RetryExhaustedError(
                op_name, max_attempts, last_error  # type: ignore[arg-type]
            ) from last_error

        @wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> T:
            last_error: Optional[Exception] = None
            for attempt in range(1, max_attempts + 1):
                try:
                    return func(*args, **kwargs)
                except retryable_exceptions as e:
                    last_error = e
                    if attempt < max_attempts:
                        delay = base_delay * (2 ** (attempt - 1))
                        logging.warning(
                            "[RETRY] %s attempt %d/%d failed: %s. "
                            "Retrying in %.1fs...",
                            op_name,
                            attempt,
                            max_attempts,
                            e,
                            delay,
                        )
                        time_module.sleep(delay)
                    else:
                        logging.error(
                            "[RETRY EXHAUSTED] %s failed after %d attempts: %s",
                            op_name,
                            max_attempts,
                            e,
                        )
            raise RetryExhaustedError(
                op_name, max_attempts, last_error  # type: ignore[arg-type]
            ) from last_error

        if inspect.iscoroutinefunction(func):
            return async_wrapper  # type: ignore[return-value]
        return sync_wrapper  # type: ignore[return-value]

    return decorator
