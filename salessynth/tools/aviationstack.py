"""
Async AviationStack client for flight status lookups.

Unlike the research adapters, this client raises typed errors: flight
status has no meaningful empty value, so callers decide what to show.

Raises:
    RateLimitExceededError: Provider answered HTTP 429.
    FlightAPIError: Any other non-2xx response or a transport failure.
    FlightProviderError: Payload carries an ``error`` object.
    FlightNotFoundError: Payload holds no flight for the code.
"""

import logging
import os
from typing import Any, Dict, Optional

import httpx

from salessynth.exceptions import (
    FlightAPIError,
    FlightNotFoundError,
    FlightProviderError,
    RateLimitExceededError,
    ValidationError,
)
from salessynth.models import map_flight_status
from salessynth.utils import json_object

logger = logging.getLogger(__name__)


class AviationStackClient:
    """Async wrapper around the AviationStack ``/flights`` endpoint.

    Args:
        api_key: AviationStack access key.  Falls back to
            ``AVIATIONSTACK_API_KEY``.
        timeout: Request timeout in seconds.
        transport: Optional ``httpx`` transport.
    """

    BASE_URL: str = "http://api.aviationstack.com/v1"

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key: str = api_key or os.environ.get("AVIATIONSTACK_API_KEY", "")
        self.timeout = timeout
        self._transport = transport

    async def get_flight(self, flight_number: str) -> Dict[str, Any]:
        """Look up the current status of a flight.

        Args:
            flight_number: IATA flight code, e.g. ``"BA117"``.

        Returns:
            Normalized payload with ``flight_number``, ``status``,
            ``departure``, ``arrival`` and ``airline``.

        Raises:
            ValidationError: If *flight_number* is empty.
        """
        flight_number = (flight_number or "").strip().upper()
        if not flight_number:
            raise ValidationError("flight_number cannot be empty")

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.get(
                    f"{self.BASE_URL}/flights",
                    params={"access_key": self.api_key, "flight_iata": flight_number},
                )
        except httpx.HTTPError as exc:
            raise FlightAPIError(flight_number, None, f"Request failed: {exc}") from exc

        if response.status_code == 429:
            raise RateLimitExceededError("API rate limit exceeded")
        if response.is_error:
            raise FlightAPIError(flight_number, response.status_code)

        try:
            payload = json_object(response)
        except ValueError as exc:
            raise FlightAPIError(
                flight_number, response.status_code, "Invalid JSON from provider"
            ) from exc

        if payload.get("error"):
            error = payload["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise FlightProviderError(flight_number, message or "Provider error")

        flights = payload.get("data") or []
        if not flights:
            raise FlightNotFoundError(flight_number)

        logger.info("AviationStack lookup: flight=%s", flight_number)
        return self.normalize(flights[0], flight_number)

    @staticmethod
    def normalize(flight: Dict[str, Any], flight_number: str) -> Dict[str, Any]:
        """Map one provider flight onto the normalized payload."""

        def endpoint(side: Dict[str, Any]) -> Dict[str, Any]:
            return {
                "airport": side.get("iata"),
                "scheduled": side.get("scheduled"),
                "actual": side.get("actual"),
                "terminal": side.get("terminal"),
                "gate": side.get("gate"),
            }

        airline = flight.get("airline") or {}
        return {
            "flight_number": flight_number,
            "status": map_flight_status(flight.get("flight_status")).value,
            "departure": endpoint(flight.get("departure") or {}),
            "arrival": endpoint(flight.get("arrival") or {}),
            "airline": {"name": airline.get("name"), "iata": airline.get("iata")},
        }
