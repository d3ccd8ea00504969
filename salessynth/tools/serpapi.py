"""
Async SerpAPI client for company news search.

Uses ``httpx`` to query the Google News engine on SerpAPI and normalizes
``news_results`` into article dicts.

Provider failures (network, auth, malformed payload) are logged and turn
into an empty list. A failing news search never raises.
"""

import logging
import os
from typing import Any, Dict, List, Optional

import httpx

from salessynth.utils import dedupe_by_key, json_object

logger = logging.getLogger(__name__)


class SerpApiClient:
    """Async wrapper around the SerpAPI Google News engine.

    Args:
        api_key: SerpAPI key.  Falls back to the ``SERPAPI_KEY``
            environment variable.
        timeout: Request timeout in seconds.
        transport: Optional ``httpx`` transport (tests inject a
            ``MockTransport``).

    Usage::

        client = SerpApiClient()
        articles = await client.search_company_news("Acme Corp")
    """

    BASE_URL: str = "https://serpapi.com/search.json"

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key: str = api_key or os.environ.get("SERPAPI_KEY", "")
        self.timeout = timeout
        self._transport = transport

    async def search_company_news(
        self, company_name: str, limit: int = 5
    ) -> List[Dict[str, Any]]:
        """Search the latest news about a company.

        Args:
            company_name: Company to search for.
            limit: Maximum number of articles returned after
                deduplication.

        Returns:
            List of ``{title, url, snippet, published_date, source}``
            dicts, deduplicated by title. Empty on any failure.
        """
        if not company_name or not company_name.strip():
            logger.warning("SerpAPI search skipped: empty company name")
            return []
        if not self.api_key:
            logger.warning("SerpAPI search skipped: SERPAPI_KEY not set")
            return []

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.get(
                    self.BASE_URL,
                    params={
                        "engine": "google_news",
                        "q": f"{company_name.strip()} latest news",
                        "api_key": self.api_key,
                    },
                )
                response.raise_for_status()
                data = json_object(response)
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("SerpAPI search failed for %s: %s", company_name, exc)
            return []

        if data.get("error"):
            logger.error("SerpAPI returned an error for %s: %s", company_name, data["error"])
            return []

        articles = [
            self._normalize(item)
            for item in data.get("news_results") or []
            if isinstance(item, dict)
        ]
        articles = dedupe_by_key(articles, "title")[:limit]

        logger.info(
            "SerpAPI news: company=%s, results=%d", company_name, len(articles)
        )
        return articles

    @staticmethod
    def _normalize(item: Dict[str, Any]) -> Dict[str, Any]:
        source = item.get("source")
        if isinstance(source, dict):
            source_name = source.get("name") or "Unknown Source"
        else:
            source_name = source or "Unknown Source"
        return {
            "title": item.get("title"),
            "url": item.get("link") or "No URL available",
            "snippet": item.get("snippet") or "No snippet available",
            "published_date": item.get("date") or "Unknown",
            "source": source_name,
        }
