"""
Async LinkedIn Marketing API client for company pages.

Authenticates with the client-credentials grant, resolves the company by
universal name, then reads the organization profile and its recent
activity. Provider failures are logged and become ``None``.
"""

import logging
import os
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from salessynth.utils import json_object

logger = logging.getLogger(__name__)


class LinkedInCompanyClient:
    """Async client for LinkedIn organization data.

    Args:
        client_id: OAuth client id.  Falls back to ``LINKEDIN_CLIENT_ID``.
        client_secret: OAuth client secret.  Falls back to
            ``LINKEDIN_CLIENT_SECRET``.
        timeout: Request timeout in seconds.
        transport: Optional ``httpx`` transport.
    """

    TOKEN_URL: str = "https://www.linkedin.com/oauth/v2/accessToken"
    BASE_URL: str = "https://api.linkedin.com/v2"

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.client_id: str = client_id or os.environ.get("LINKEDIN_CLIENT_ID", "")
        self.client_secret: str = client_secret or os.environ.get("LINKEDIN_CLIENT_SECRET", "")
        self.timeout = timeout
        self._transport = transport

    async def fetch_company(self, company_name: str) -> Optional[Dict[str, Any]]:
        """Fetch the LinkedIn profile and recent updates of a company.

        Args:
            company_name: Company name; reduced to a universal name
                (lowercase alphanumerics).

        Returns:
            ``{company_info, recent_updates}`` or ``None``.
        """
        universal_name = re.sub(r"[^a-z0-9]", "", (company_name or "").lower())
        if not universal_name:
            logger.warning("LinkedIn lookup skipped: empty company name")
            return None
        if not self.client_id or not self.client_secret:
            logger.warning("LinkedIn lookup skipped: client credentials not set")
            return None

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                token = await self._access_token(client)
                headers = {
                    "Authorization": f"Bearer {token}",
                    "X-Restli-Protocol-Version": "2.0.0",
                }

                response = await client.get(
                    f"{self.BASE_URL}/organizationSearch",
                    params={"q": "universalName", "universalName": universal_name},
                    headers=headers,
                )
                response.raise_for_status()
                elements = json_object(response).get("elements") or []
                if not elements:
                    logger.info("No LinkedIn company found for %s", company_name)
                    return None
                company_id = elements[0]["id"]

                response = await client.get(
                    f"{self.BASE_URL}/organizations/{company_id}", headers=headers
                )
                response.raise_for_status()
                details = json_object(response)

                posts = await self._recent_activity(client, company_id, headers)
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as exc:
            logger.error("LinkedIn lookup failed for %s: %s", company_name, exc)
            return None

        return {
            "company_info": self._company_info(details),
            "recent_updates": [self._update(post) for post in posts],
        }

    async def _access_token(self, client: httpx.AsyncClient) -> str:
        response = await client.post(
            self.TOKEN_URL,
            data={
                "grant_type": "client_credentials",
                "client_id": self.client_id,
                "client_secret": self.client_secret,
            },
        )
        response.raise_for_status()
        return json_object(response)["access_token"]

    async def _recent_activity(
        self,
        client: httpx.AsyncClient,
        company_id: Any,
        headers: Dict[str, str],
    ) -> List[Dict[str, Any]]:
        try:
            response = await client.get(
                f"{self.BASE_URL}/organizationalEntityActivities",
                params={
                    "q": "organizationalEntity",
                    "organizationalEntity": f"urn:li:organization:{company_id}",
                    "count": 10,
                },
                headers=headers,
            )
            response.raise_for_status()
            elements = json_object(response).get("elements") or []
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("LinkedIn activity lookup failed for %s: %s", company_id, exc)
            return []
        return [e for e in elements if isinstance(e, dict)]

    @staticmethod
    def _company_info(details: Dict[str, Any]) -> Dict[str, Any]:
        hq = details.get("headquarter") or {}
        return {
            "name": details.get("name"),
            "description": (details.get("description") or {}).get("text", ""),
            "industry": details.get("industry") or "",
            "website": details.get("websiteUrl") or "",
            "company_size": details.get("staffCount") or "Unknown",
            "headquarters": f"{hq['city']}, {hq.get('country', '')}" if hq.get("city") else "Unknown",
            "founded": (details.get("foundedOn") or {}).get("year", "Unknown"),
            "specialties": details.get("specialties") or [],
            "follower_count": (details.get("followingInfo") or {}).get("followerCount", 0),
        }

    @staticmethod
    def _update(post: Dict[str, Any]) -> Dict[str, Any]:
        published = (post.get("published") or {}).get("time")
        stats = post.get("totalShareStatistics") or {}
        return {
            "date": (
                datetime.fromtimestamp(published / 1000, tz=timezone.utc).isoformat()
                if published else "Unknown"
            ),
            "message": (post.get("message") or {}).get("text", "No message text"),
            "engagement": {
                "likes": stats.get("likeCount", 0),
                "comments": stats.get("commentCount", 0),
                "shares": stats.get("shareCount", 0),
            },
        }
