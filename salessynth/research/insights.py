"""
Sales insight generation.

Builds a prompt from the client profile, the latest news and the active
deal, enriched with locally computed deal intelligence, and passes the
model's raw text through unchanged.

Insight generation always returns displayable text: on any provider
failure it returns :data:`INSIGHTS_FALLBACK`.
"""

import logging
from typing import Any, Dict, List, Optional

from salessynth.models import ClientProfile
from salessynth.research.intelligence import (
    calculate_deal_health,
    extract_questions_and_requirements,
    industry_guidance,
    preprocess_research_data,
    sales_stage_guidance,
)
from salessynth.tools.claude_client import ClaudeClient

logger = logging.getLogger(__name__)

INSIGHTS_FALLBACK = "Error generating insights."

SYSTEM_PROMPT = (
    "You are a sales intelligence assistant. The user is a sales hunter "
    "working to close a deal. Be specific and actionable."
)


def format_news(articles: List[Dict[str, Any]]) -> str:
    """Render news articles as prompt text."""
    if not articles:
        return "No recent news available."
    blocks = []
    for article in articles:
        blocks.append(
            f"[{article.get('published_date') or 'Unknown'}] {article.get('title')}\n"
            f"Source: {article.get('source') or 'Unknown Source'}\n"
            f"Summary: {article.get('snippet') or 'No summary available'}\n"
        )
    return "\n".join(blocks)


def build_prompt(
    client: ClientProfile,
    news: List[Dict[str, Any]],
    research: Optional[Dict[str, Any]] = None,
) -> str:
    """Assemble the insight prompt.

    Args:
        client: Client profile (name, company, position, notes, deals).
        news: Most recent news articles.
        research: Stored research ``data`` map, used for company context
            and deal intelligence.

    Returns:
        Prompt text requesting three insights.
    """
    deal = client.active_deal or {}
    processed = preprocess_research_data(research)
    digest = extract_questions_and_requirements(client.notes)
    health = calculate_deal_health(client, digest)
    industry = (processed.get("company") or {}).get("industry")

    sections = [
        f"The user is working to close a deal with {client.company}.",
        "",
        "**Customer Details**",
        f"- Name: {client.name or 'Unknown'}",
        f"- Position: {client.position or 'Unknown'}",
        f"- Notes: {client.notes or 'None'}",
        "",
        "**Latest Company News**",
        format_news(news),
        "",
        "**Active Deal**",
        f"- {deal.get('title') or 'No Active Deal'}",
        f"- Value: ${deal.get('value') or 'N/A'}",
        f"- Status: {deal.get('status') or 'N/A'}",
        "",
        "**Deal Health**",
        f"- Score: {health.score}/100 ({health.probability} probability, {health.momentum} momentum)",
    ]
    sections += [f"- Risk: {r}" for r in health.risk_factors]
    sections += [f"- Strength: {s}" for s in health.strengths]

    if digest.questions:
        sections += ["", "**Open Client Questions**"] + [f"- {q}" for q in digest.questions]
    if digest.requirements:
        sections += ["", "**Client Requirements**"] + [f"- {r}" for r in digest.requirements]

    company = processed.get("company")
    if company:
        sections += [
            "",
            "**Company Profile**",
            f"- Industry: {company.get('industry')}",
            f"- Size: {company.get('size')}",
            f"- Revenue: {company.get('revenue')}",
        ]
    people = processed.get("key_people") or []
    if people:
        sections += ["", "**Key People**"] + [
            f"- {p.get('name')} ({p.get('title')})" for p in people[:5]
        ]
    mentions = processed.get("social_mentions") or []
    if mentions:
        sections += ["", "**Community Discussion**"] + [
            f"- r/{m.get('subreddit')}: {m.get('title')} ({m.get('sentiment')})" for m in mentions
        ]

    sections += [
        "",
        industry_guidance(industry, deal.get("status")),
        sales_stage_guidance(deal.get("status")),
        "**Generate 3 insights:**",
        "1. Best approach for the next sales conversation.",
        "2. Key objections & strategies to overcome them.",
        "3. Competitive positioning & strategic opportunities.",
    ]
    return "\n".join(sections)


class InsightGenerator:
    """Turn aggregated research into free-text sales guidance.

    Args:
        llm: Claude client used for completion.
        max_tokens: Completion budget.
        temperature: Sampling temperature.
    """

    def __init__(
        self,
        llm: ClaudeClient,
        max_tokens: int = 800,
        temperature: float = 0.7,
    ) -> None:
        self.llm = llm
        self.max_tokens = max_tokens
        self.temperature = temperature

    async def generate(
        self,
        client: ClientProfile,
        news: List[Dict[str, Any]],
        research: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Generate insights, or :data:`INSIGHTS_FALLBACK` on failure."""
        prompt = build_prompt(client, news, research)
        logger.info(
            "Generating insights for %s from %d articles", client.company, len(news)
        )
        try:
            text = await self.llm.generate(
                prompt,
                system=SYSTEM_PROMPT,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except Exception as exc:
            logger.error("Insight generation failed for %s: %s", client.company, exc)
            return INSIGHTS_FALLBACK

        if not text:
            logger.warning("Insight generation returned empty text for %s", client.company)
            return INSIGHTS_FALLBACK
        return text
