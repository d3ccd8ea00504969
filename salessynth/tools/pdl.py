"""
Async People Data Labs client for person and company enrichment.

Person lookups use the contact's email when known, otherwise name plus
company. Matches below :data:`MIN_PERSON_LIKELIHOOD` are discarded.
Provider failures are logged and become ``None``.
"""

import asyncio
import logging
import os
from typing import Any, Dict, Optional

import httpx

from salessynth.utils import json_object

logger = logging.getLogger(__name__)

MIN_PERSON_LIKELIHOOD: float = 0.7

_PERSON_FIELDS = (
    "full_name", "job_title", "job_title_role", "job_title_levels",
    "job_company_name", "job_start_date", "linkedin_url", "location_name",
    "skills", "experience", "education",
)

_COMPANY_FIELDS = (
    "name", "display_name", "size", "employee_count", "industry", "founded",
    "website", "linkedin_url", "twitter_url", "facebook_url", "summary",
    "headline", "tags", "total_funding_raised", "latest_funding_stage",
    "last_funding_date", "inferred_revenue", "type", "ticker",
)


class PDLClient:
    """Async wrapper around the People Data Labs v5 enrichment API.

    Args:
        api_key: PDL API key.  Falls back to ``PDL_API_KEY``.
        timeout: Request timeout in seconds.
        transport: Optional ``httpx`` transport.
    """

    BASE_URL: str = "https://api.peopledatalabs.com/v5"

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key: str = api_key or os.environ.get("PDL_API_KEY", "")
        self.timeout = timeout
        self._transport = transport

    async def enrich(
        self,
        company_name: str,
        person_name: Optional[str] = None,
        email: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """Enrich the contact and their company concurrently.

        Args:
            company_name: Company name.
            person_name: Contact full name.
            email: Contact email (preferred person key).

        Returns:
            ``{person_data, company_data}`` where either side may be
            ``None``, or ``None`` when both lookups produced nothing.
        """
        company_name = (company_name or "").strip()
        if not company_name and not email:
            logger.warning("PDL enrichment skipped: no company name or email")
            return None
        if not self.api_key:
            logger.warning("PDL enrichment skipped: PDL_API_KEY not set")
            return None

        async with httpx.AsyncClient(
            timeout=self.timeout,
            transport=self._transport,
            headers={"X-API-Key": self.api_key},
        ) as client:
            person_data, company_data = await asyncio.gather(
                self._enrich_person(client, person_name, company_name, email),
                self._enrich_company(client, company_name),
            )

        if person_data is None and company_data is None:
            logger.info("PDL found nothing for %s", company_name or email)
            return None
        return {"person_data": person_data, "company_data": company_data}

    async def _enrich_person(
        self,
        client: httpx.AsyncClient,
        person_name: Optional[str],
        company_name: str,
        email: Optional[str],
    ) -> Optional[Dict[str, Any]]:
        if email:
            params = {"email": email}
        elif person_name and company_name:
            params = {"name": person_name, "company": company_name}
        else:
            logger.debug("PDL person lookup skipped: insufficient data")
            return None

        try:
            response = await client.get(f"{self.BASE_URL}/person/enrich", params=params)
            if response.status_code == 404:
                return None
            response.raise_for_status()
            payload = json_object(response)
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("PDL person enrichment failed: %s", exc)
            return None

        likelihood = payload.get("likelihood") or 0
        if likelihood < MIN_PERSON_LIKELIHOOD:
            logger.info("PDL person match discarded: likelihood=%s", likelihood)
            return None

        person = payload.get("data")
        if not isinstance(person, dict):
            person = {}
        result = {key: person.get(key) for key in _PERSON_FIELDS if person.get(key) is not None}
        result["likelihood"] = likelihood
        return result

    async def _enrich_company(
        self, client: httpx.AsyncClient, company_name: str
    ) -> Optional[Dict[str, Any]]:
        if not company_name:
            return None
        try:
            response = await client.get(
                f"{self.BASE_URL}/company/enrich", params={"name": company_name}
            )
            if response.status_code == 404:
                return None
            response.raise_for_status()
            payload = json_object(response)
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("PDL company enrichment failed for %s: %s", company_name, exc)
            return None

        result = {key: payload.get(key) for key in _COMPANY_FIELDS if payload.get(key) is not None}
        return result or None
