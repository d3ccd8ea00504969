"""
Async Reddit client for company discussions.

Uses the application-only OAuth grant, runs a cascade of site-wide search
queries plus a search inside the top business subreddits, then keeps the
posts that score as relevant to the company.

Relevance scoring
-----------------
Each post gets 0-100 points from: the company name in the title (with a
bonus near the start) or body, the subreddit's rank in
``BUSINESS_SUBREDDITS``, business and industry vocabulary, post age and
engagement.  Titles that look like sports, games or entertainment are
penalized.  Posts scoring at least ``MIN_RELEVANCE_SCORE`` are kept; when
none do, the best three are returned marked ``"low"``.

Provider failures are logged and become an empty list.
"""

import asyncio
import logging
import os
import re
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import httpx

from salessynth.utils import dedupe_by_key, json_object, utc_now

logger = logging.getLogger(__name__)

# Ordered by relevance to business discussions; the index feeds the score.
BUSINESS_SUBREDDITS: List[str] = [
    "investing", "finance", "stocks", "StockMarket", "Banking", "FinancialCareers",
    "FinTech", "Economics", "Entrepreneur", "Business", "digitalbanking",
    "wallstreetbets", "SecurityAnalysis", "economy", "CorporateStrategy",
]

FINANCE_KEYWORDS: List[str] = [
    "earnings", "revenue", "profit", "financial", "stock", "investor", "banking",
    "acquisition", "merger", "investment", "market share", "quarterly", "fiscal",
    "ceo", "executive", "strategy", "partnership", "customer", "product", "launch",
]

IRRELEVANT_KEYWORDS: List[str] = [
    "player", "game", "movie", "actor", "character", "season", "episode",
    "book", "author", "team", "scored", "champion", "tournament", "gaming",
]

INDUSTRY_KEYWORDS: Dict[str, List[str]] = {
    "financial services": ["bank", "financial", "banking", "finance", "loan", "mortgage", "payment", "credit"],
    "healthcare": ["healthcare", "medical", "hospital", "pharma", "drug", "treatment", "patient"],
    "technology": ["tech", "software", "it", "digital", "app", "platform", "technology", "cloud"],
    "retail": ["retail", "store", "ecommerce", "consumer", "shop", "brand", "merchandise"],
    "manufacturing": ["manufacturing", "factory", "production", "assembly", "industrial"],
    "energy": ["energy", "oil", "gas", "utilities", "power", "renewable", "electricity"],
}

POSITIVE_TERMS: List[str] = [
    "growth", "profit", "success", "up", "gains", "increase", "rise", "growing",
    "exceeded", "beat", "positive", "promising", "opportunity", "partnership",
    "launch", "innovative", "expansion", "improved", "strong", "outperform",
]

NEGATIVE_TERMS: List[str] = [
    "decline", "loss", "down", "fail", "problem", "risk", "drop", "fell",
    "negative", "weak", "disappointing", "missed", "below", "concern",
    "investigation", "lawsuit", "cut", "trouble", "layoff", "challenge",
]

MIN_RELEVANCE_SCORE: int = 40
HIGH_RELEVANCE_SCORE: int = 70
MAX_POSTS: int = 5
FALLBACK_POSTS: int = 3
ENOUGH_PRIMARY_POSTS: int = 10
ENOUGH_POSTS: int = 20
SUBREDDITS_SEARCHED: int = 7

_POSITIVE_RE = re.compile(r"\b(?:" + "|".join(POSITIVE_TERMS) + r")\b")
_NEGATIVE_RE = re.compile(r"\b(?:" + "|".join(NEGATIVE_TERMS) + r")\b")


# =========================================================================
# Scoring
# =========================================================================


def build_search_queries(
    company_name: str,
    industry: Optional[str] = None,
    year: Optional[int] = None,
) -> Dict[str, Dict[str, str]]:
    """Build the primary and secondary search queries for a company.

    Args:
        company_name: Company to search for.
        industry: Optional industry used to pick context keywords.
        year: Current year for the "recent" query.  Defaults to now.

    Returns:
        ``{"primary": {...}, "secondary": {...}}`` with queries in the
        order they are tried.
    """
    exact = f'"{company_name}"'
    context = "(company OR business OR corporation)"
    keywords = INDUSTRY_KEYWORDS.get((industry or "").lower())
    if keywords:
        context = f"({' OR '.join(keywords[:3])})"
    if "bank" in company_name.lower() or "financ" in (industry or "").lower():
        context = "(banking OR financial OR finance)"

    year = year or utc_now().year
    return {
        "primary": {
            "exact_with_business": f"{exact} {context}",
            "exact": exact,
        },
        "secondary": {
            "inexact_business": f"{company_name} {context}",
            "news": f"{exact} (news OR update OR announce)",
            "recent": f"{exact} ({year - 1} OR {year} OR recent OR latest)",
        },
    }


def score_post_relevance(
    post: Dict[str, Any],
    company_name: str,
    industry: Optional[str] = None,
    now: Optional[datetime] = None,
) -> int:
    """Score how likely *post* is about *company_name*, from 0 to 100."""
    title = (post.get("title") or "").lower()
    body = (post.get("selftext") or "").lower()
    company = company_name.lower()
    score = 0

    position = title.find(company)
    if position != -1:
        score += 40
        if position < 10:
            score += 10
    if company in body:
        score += 20

    subreddit = post.get("subreddit") or ""
    if subreddit in BUSINESS_SUBREDDITS:
        score += max(10, 20 - BUSINESS_SUBREDDITS.index(subreddit))

    content = f"{title} {body}"
    business_terms = sum(1 for term in FINANCE_KEYWORDS if term in content)
    score += min(20, business_terms * 5)

    industry_terms = INDUSTRY_KEYWORDS.get((industry or "").lower()) or []
    if any(term in content for term in industry_terms):
        score += 5

    score -= 25 * sum(1 for term in IRRELEVANT_KEYWORDS if term in title)

    created = post.get("created_utc")
    if created is not None:
        now = now or utc_now()
        age_days = (now.timestamp() - float(created)) / 86400
        if age_days < 30:
            score += 10
        elif age_days > 180:
            score -= 10

    upvotes = post.get("ups") or 0
    if upvotes > 100:
        score += 5
    if upvotes > 1000:
        score += 5
    if (post.get("num_comments") or 0) > 50:
        score += 5

    return max(0, min(100, score))


def post_sentiment(post: Dict[str, Any]) -> str:
    """Classify a post as ``positive``, ``negative`` or ``neutral``.

    Whole-word matches of financial terms are counted; one side must lead
    by more than one match.
    """
    content = f"{post.get('title') or ''} {post.get('selftext') or ''}".lower()
    positive = len(_POSITIVE_RE.findall(content))
    negative = len(_NEGATIVE_RE.findall(content))
    if positive > negative + 1:
        return "positive"
    if negative > positive + 1:
        return "negative"
    return "neutral"


# =========================================================================
# Client
# =========================================================================


class RedditClient:
    """Async client for company mentions on Reddit.

    Args:
        client_id: OAuth app id.  Falls back to ``REDDIT_CLIENT_ID``.
        client_secret: OAuth app secret.  Falls back to
            ``REDDIT_CLIENT_SECRET``.
        user_agent: User-Agent sent on every request.  Falls back to
            ``REDDIT_USER_AGENT``.
        timeout: Request timeout in seconds.
        transport: Optional ``httpx`` transport.
        clock: Returns the current UTC time; used for post age.
    """

    TOKEN_URL: str = "https://www.reddit.com/api/v1/access_token"
    BASE_URL: str = "https://oauth.reddit.com"
    WEB_URL: str = "https://www.reddit.com"
    DEFAULT_USER_AGENT: str = "SalesSynthBot/1.0"

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        user_agent: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.client_id: str = client_id or os.environ.get("REDDIT_CLIENT_ID", "")
        self.client_secret: str = client_secret or os.environ.get("REDDIT_CLIENT_SECRET", "")
        self.user_agent: str = (
            user_agent or os.environ.get("REDDIT_USER_AGENT") or self.DEFAULT_USER_AGENT
        )
        self.timeout = timeout
        self._transport = transport
        self._clock = clock

    async def search_company_mentions(
        self,
        company_name: str,
        industry: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Find recent Reddit discussions about a company.

        Args:
            company_name: Company to search for.
            industry: Known industry, used for query context and scoring.

        Returns:
            Up to five posts (``title``, ``url``, ``subreddit``,
            ``upvotes``, ``comments``, ``created``, ``snippet``,
            ``sentiment``, ``relevance``), or ``[]``.
        """
        if not company_name or not company_name.strip():
            logger.warning("Reddit search skipped: empty company name")
            return []
        if not self.client_id or not self.client_secret:
            logger.warning("Reddit search skipped: client credentials not set")
            return []

        now = self._clock()
        queries = build_search_queries(company_name, industry, year=now.year)

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                headers={"User-Agent": self.user_agent},
            ) as client:
                token = await self._access_token(client)
                headers = {"Authorization": f"Bearer {token}"}
                posts = await self._collect(client, headers, queries)
        except (httpx.HTTPError, ValueError, KeyError) as exc:
            logger.error("Reddit search failed for %s: %s", company_name, exc)
            return []

        scored = sorted(
            ((score_post_relevance(p, company_name, industry, now), p) for p in posts),
            key=lambda item: item[0],
            reverse=True,
        )
        relevant = [item for item in scored if item[0] >= MIN_RELEVANCE_SCORE][:MAX_POSTS]
        if relevant:
            results = [
                self._normalize(post, "high" if score > HIGH_RELEVANCE_SCORE else "medium")
                for score, post in relevant
            ]
        else:
            if scored:
                logger.info("Using low-relevance Reddit posts for %s", company_name)
            results = [self._normalize(post, "low") for _, post in scored[:FALLBACK_POSTS]]

        logger.info("Reddit: %d posts for %s", len(results), company_name)
        return results

    async def _access_token(self, client: httpx.AsyncClient) -> str:
        response = await client.post(
            self.TOKEN_URL,
            data={"grant_type": "client_credentials"},
            auth=(self.client_id, self.client_secret),
        )
        response.raise_for_status()
        return json_object(response)["access_token"]

    async def _collect(
        self,
        client: httpx.AsyncClient,
        headers: Dict[str, str],
        queries: Dict[str, Dict[str, str]],
    ) -> List[Dict[str, Any]]:
        primary = queries["primary"]
        posts = await self._search(client, headers, primary["exact_with_business"], limit=20)
        if len(posts) < ENOUGH_PRIMARY_POSTS:
            posts = dedupe_by_key(
                posts + await self._search(client, headers, primary["exact"], limit=20), "id"
            )

        if len(posts) < ENOUGH_PRIMARY_POSTS:
            for query in queries["secondary"].values():
                posts += await self._search(client, headers, query, limit=10)
                if len(posts) >= ENOUGH_POSTS:
                    break
            posts = dedupe_by_key(posts, "id")

        per_subreddit = await asyncio.gather(*(
            self._search(client, headers, primary["exact"], limit=5, subreddit=sub)
            for sub in BUSINESS_SUBREDDITS[:SUBREDDITS_SEARCHED]
        ))
        for found in per_subreddit:
            posts += found
        return dedupe_by_key(posts, "id")

    async def _search(
        self,
        client: httpx.AsyncClient,
        headers: Dict[str, str],
        query: str,
        limit: int,
        subreddit: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {"q": query, "t": "year", "sort": "relevance", "limit": limit}
        path = "/search"
        if subreddit:
            path = f"/r/{subreddit}/search"
            params["restrict_sr"] = 1
        try:
            response = await client.get(f"{self.BASE_URL}{path}", params=params, headers=headers)
            response.raise_for_status()
            children = (json_object(response).get("data") or {}).get("children") or []
        except (httpx.HTTPError, ValueError, AttributeError) as exc:
            logger.warning("Reddit query %r failed: %s", query, exc)
            return []
        return [
            child["data"] for child in children
            if isinstance(child, dict) and isinstance(child.get("data"), dict)
            and child["data"].get("title")
        ]

    def _normalize(self, post: Dict[str, Any], relevance: str) -> Dict[str, Any]:
        created = post.get("created_utc")
        body = post.get("selftext") or ""
        return {
            "title": post.get("title"),
            "url": f"{self.WEB_URL}{post.get('permalink') or ''}",
            "subreddit": post.get("subreddit"),
            "upvotes": post.get("ups") or 0,
            "comments": post.get("num_comments") or 0,
            "created": (
                datetime.fromtimestamp(float(created), tz=timezone.utc).isoformat()
                if created is not None else None
            ),
            "snippet": f"{body[:200]}..." if body else "No text content",
            "sentiment": post_sentiment(post),
            "relevance": relevance,
        }
