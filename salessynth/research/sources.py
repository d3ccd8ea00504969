"""
Research source dispatch.

Maps each :class:`~salessynth.models.ResearchSource` to the adapter call
that fetches it for a client. Every fetch returns a JSON-compatible
payload or ``None`` for "no data"; empty collections count as no data.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from salessynth.config import Settings
from salessynth.models import ClientProfile, ResearchSource
from salessynth.tools.apollo import ApolloClient
from salessynth.tools.diffbot import DiffbotClient
from salessynth.tools.linkedin import LinkedInCompanyClient
from salessynth.tools.pdl import PDLClient
from salessynth.tools.reddit import RedditClient
from salessynth.tools.serpapi import SerpApiClient
from salessynth.utils import extract_domain

logger = logging.getLogger(__name__)

Fetcher = Callable[[ClientProfile, List[Dict[str, Any]], Dict[str, Any]], Awaitable[Any]]


class ResearchSources:
    """Holds one adapter per research source.

    Args:
        serpapi: News search adapter.
        diffbot: Content extraction adapter.
        apollo: Company enrichment adapter.
        pdl: Person and company enrichment adapter.
        linkedin: Professional network adapter.
        reddit: Social discussion adapter.
        max_news_articles: Articles kept per news search.
        max_analyzed_articles: Article URLs sent to content extraction.
    """

    def __init__(
        self,
        serpapi: SerpApiClient,
        diffbot: DiffbotClient,
        apollo: ApolloClient,
        pdl: PDLClient,
        linkedin: LinkedInCompanyClient,
        reddit: RedditClient,
        max_news_articles: int = 5,
        max_analyzed_articles: int = 3,
    ) -> None:
        self.serpapi = serpapi
        self.diffbot = diffbot
        self.apollo = apollo
        self.pdl = pdl
        self.linkedin = linkedin
        self.reddit = reddit
        self.max_news_articles = max_news_articles
        self.max_analyzed_articles = max_analyzed_articles
        self._fetchers: Dict[ResearchSource, Fetcher] = {
            ResearchSource.GOOGLE: self._news,
            ResearchSource.DIFFBOT: self._content,
            ResearchSource.APOLLO: self._apollo,
            ResearchSource.PDL: self._pdl,
            ResearchSource.LINKEDIN: self._linkedin,
            ResearchSource.REDDIT: self._reddit,
        }

    @classmethod
    def from_settings(cls, settings: Settings) -> "ResearchSources":
        timeouts = settings.timeouts
        return cls(
            serpapi=SerpApiClient(timeout=timeouts.serpapi),
            diffbot=DiffbotClient(timeout=timeouts.diffbot),
            apollo=ApolloClient(timeout=timeouts.apollo),
            pdl=PDLClient(timeout=timeouts.pdl),
            linkedin=LinkedInCompanyClient(timeout=timeouts.linkedin),
            reddit=RedditClient(timeout=timeouts.reddit),
            max_news_articles=settings.max_news_articles,
            max_analyzed_articles=settings.max_analyzed_articles,
        )

    async def fetch(
        self,
        source: ResearchSource,
        client: ClientProfile,
        news: Optional[List[Dict[str, Any]]] = None,
        research: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Fetch *source* for *client*.

        Args:
            source: Source to fetch.
            client: Research subject.
            news: Articles already known for the subject; content
                extraction analyzes their URLs.
            research: Stored data per source; social search reads the
                known industry from it.

        Returns:
            Normalized payload, or ``None`` when there is nothing to store.
        """
        if not client.company or not client.company.strip():
            logger.warning("Skipping %s for client %s: no company name", source.value, client.id)
            return None
        payload = await self._fetchers[source](client, news or [], research or {})
        if payload in (None, [], {}):
            return None
        return payload

    # ------------------------------------------------------------------
    # Per-source fetchers
    # ------------------------------------------------------------------

    async def _news(
        self, client: ClientProfile, news: List[Dict[str, Any]], research: Dict[str, Any]
    ) -> Any:
        return await self.serpapi.search_company_news(
            client.company, limit=self.max_news_articles
        )

    async def _content(
        self, client: ClientProfile, news: List[Dict[str, Any]], research: Dict[str, Any]
    ) -> Any:
        urls = [
            a["url"] for a in news
            if a.get("url") and a["url"].startswith(("http://", "https://"))
        ][: self.max_analyzed_articles]
        if not urls:
            logger.info("No article URLs to analyze for %s", client.company)
            return None
        analyses = await asyncio.gather(*(self.diffbot.analyze_url(u) for u in urls))
        return [a for a in analyses if a]

    async def _apollo(
        self, client: ClientProfile, news: List[Dict[str, Any]], research: Dict[str, Any]
    ) -> Any:
        return await self.apollo.enrich_company(
            client.company, email_domain=extract_domain(client.email)
        )

    async def _pdl(
        self, client: ClientProfile, news: List[Dict[str, Any]], research: Dict[str, Any]
    ) -> Any:
        return await self.pdl.enrich(
            client.company, person_name=client.name or None, email=client.email
        )

    async def _linkedin(
        self, client: ClientProfile, news: List[Dict[str, Any]], research: Dict[str, Any]
    ) -> Any:
        return await self.linkedin.fetch_company(client.company)

    async def _reddit(
        self, client: ClientProfile, news: List[Dict[str, Any]], research: Dict[str, Any]
    ) -> Any:
        company = (research.get("apollo") or {}).get("company") or {}
        industry = company.get("industry")
        return await self.reddit.search_company_mentions(
            client.company, industry=industry if industry and industry != "Unknown" else None
        )
