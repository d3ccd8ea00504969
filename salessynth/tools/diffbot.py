"""
Async Diffbot client for article content extraction.

Calls the Diffbot Analyze API for a single URL and keeps the fields the
insight prompt uses. Provider failures are logged and become ``None``.
"""

import logging
import os
from typing import Any, Dict, Optional

import httpx

from salessynth.utils import json_object

logger = logging.getLogger(__name__)


class DiffbotClient:
    """Async wrapper around the Diffbot v3 Analyze endpoint.

    Args:
        token: Diffbot API token.  Falls back to ``DIFFBOT_TOKEN``.
        timeout: Request timeout in seconds.
        transport: Optional ``httpx`` transport.
    """

    BASE_URL: str = "https://api.diffbot.com/v3/analyze"

    def __init__(
        self,
        token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.token: str = token or os.environ.get("DIFFBOT_TOKEN", "")
        self.timeout = timeout
        self._transport = transport

    async def analyze_url(self, url: str) -> Optional[Dict[str, Any]]:
        """Extract the main object of a web page.

        Args:
            url: Absolute article URL.

        Returns:
            ``{url, type, title, text, sentiment, tags}`` for the first
            extracted object, or ``None`` when the payload carries an
            ``error`` field, holds no objects, or the call fails.
        """
        if not url or not url.startswith(("http://", "https://")):
            logger.warning("Diffbot analyze skipped: invalid url %r", url)
            return None
        if not self.token:
            logger.warning("Diffbot analyze skipped: DIFFBOT_TOKEN not set")
            return None

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.get(
                    self.BASE_URL,
                    params={"token": self.token, "url": url},
                )
                response.raise_for_status()
                data = json_object(response)
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Diffbot analyze failed for %s: %s", url, exc)
            return None

        if data.get("error"):
            logger.warning("Diffbot reported an error for %s: %s", url, data["error"])
            return None

        objects = [o for o in data.get("objects") or [] if isinstance(o, dict)]
        if not objects:
            logger.info("Diffbot found no objects at %s", url)
            return None

        obj = objects[0]
        return {
            "url": url,
            "type": obj.get("type") or data.get("type"),
            "title": obj.get("title"),
            "text": (obj.get("text") or "")[:2000],
            "sentiment": obj.get("sentiment"),
            "tags": [
                t["label"] for t in obj.get("tags") or []
                if isinstance(t, dict) and t.get("label")
            ],
        }
