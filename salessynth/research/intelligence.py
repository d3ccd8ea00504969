"""
Local deal intelligence derived from client notes and stored research.

Nothing here calls a provider. The results enrich the insight prompt:

- preprocess_research_data(): condensed company profile, news and people
- extract_questions_and_requirements(): questions and requirements in notes
- calculate_deal_health(): 0-100 score, probability band, momentum
- build_deal_intelligence(): the deal document stored with the summary
- industry_guidance() / sales_stage_guidance(): fixed playbook text
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Pattern

from salessynth.models import ClientProfile

# =============================================================================
# PLAYBOOKS
# =============================================================================

INDUSTRY_SALES_STRATEGIES: Dict[str, Dict[str, List[str]]] = {
    "financial services": {
        "topics": ["Regulatory compliance", "Risk management", "Cost reduction", "Fraud detection", "Integration", "Data security"],
        "objections": ["Compliance concerns", "Security", "Legacy integration", "ROI timeline", "Operational impact", "Adoption"],
        "technical_terms": ["API", "Integration", "Compliance", "Authentication", "Encryption", "Security", "Regulatory reporting"],
    },
    "mortgage": {
        "topics": ["Automated underwriting", "Compliance", "LOS integration", "Data validation", "Document automation", "Appraisal management"],
        "objections": ["LOS integration", "HMDA compliance", "Valuation accuracy", "Document recognition", "Implementation timeline", "Training"],
        "technical_terms": ["UAD", "UCDP", "HMDA", "GSE", "FHA", "VA", "SSR", "Collateral valuation"],
    },
    "banking": {
        "topics": ["Process automation", "Fraud prevention", "Compliance", "Customer onboarding", "Core banking integration", "Data security"],
        "objections": ["Legacy system integration", "Regulatory guarantees", "Implementation disruption", "Training", "Data security", "Customization"],
        "technical_terms": ["API integration", "Core banking", "KYC", "AML", "Payment processing", "ACH", "ISO 20022"],
    },
    "healthcare": {
        "topics": ["Patient data", "HIPAA compliance", "EHR integration", "Patient outcomes", "Clinical workflow", "Regulation"],
        "objections": ["Data security", "Regulation compliance", "System integration", "Staff training", "Implementation timeline", "Benefits evidence"],
        "technical_terms": ["HL7", "FHIR", "HIPAA", "EHR", "PHI", "Interoperability", "Clinical workflow"],
    },
    "technology": {
        "topics": ["Integration", "Scalability", "Development resources", "API", "Developer experience", "Stack compatibility"],
        "objections": ["Technical complexity", "Integration", "Build vs buy", "Scaling", "Developer resources", "Maintenance"],
        "technical_terms": ["API", "SDK", "Microservices", "Scalability", "Cloud", "DevOps", "CI/CD", "SLA"],
    },
    "retail": {
        "topics": ["Customer experience", "Inventory management", "Omnichannel", "Analytics", "Supply chain", "POS integration"],
        "objections": ["Customer experience impact", "System integration", "Training", "Peak season implementation", "ROI evidence", "Data management"],
        "technical_terms": ["POS", "Inventory management", "Order management", "CRM", "Loyalty", "Omnichannel"],
    },
    "default": {
        "topics": ["ROI", "Implementation", "Integration", "Training", "Support", "Customization"],
        "objections": ["Budget", "Timeline", "Adoption", "Integration", "ROI validation", "Support"],
        "technical_terms": ["API", "Integration", "Implementation", "Configuration", "Customization", "Training"],
    },
}

DEAL_STAGES: Dict[str, Dict[str, List[str]]] = {
    "prospecting": {
        "focus_areas": ["discovery", "pain points", "value", "qualification"],
        "next_steps": ["needs assessment", "demo", "stakeholder mapping"],
        "success_indicators": ["multiple stakeholders", "follow-up", "business challenge"],
        "risk_indicators": ["single stakeholder", "information barriers", "immediate pricing"],
    },
    "qualified": {
        "focus_areas": ["solution mapping", "technical evaluation", "stakeholder buy-in", "budget"],
        "next_steps": ["technical deep dive", "demonstration", "business case"],
        "success_indicators": ["technical questions", "multiple demos", "budget discussion"],
        "risk_indicators": ["delayed responses", "scope reduction", "competitive mentions"],
    },
    "proposal": {
        "focus_areas": ["objections", "technical validation", "decision criteria", "implementation planning"],
        "next_steps": ["proposal review", "negotiation prep", "implementation scope"],
        "success_indicators": ["proposal feedback", "implementation questions", "decision maker meetings"],
        "risk_indicators": ["extended timeline", "late stakeholders", "reduced communication"],
    },
    "negotiation": {
        "focus_areas": ["value reinforcement", "contract terms", "implementation readiness", "relationship"],
        "next_steps": ["contract review", "implementation planning", "success criteria"],
        "success_indicators": ["start date discussion", "implementation details", "resource allocation"],
        "risk_indicators": ["reopening closed items", "delayed signing", "new approvers"],
    },
}


def _patterns(*sources: str) -> List[Pattern[str]]:
    return [re.compile(s, re.IGNORECASE) for s in sources]


NOTE_PATTERNS: Dict[str, List[Pattern[str]]] = {
    "questions": _patterns(
        r"\?$", r"can (the|they|we|you|it|this)", r"how (is|can|will|does|do)",
        r"is there", r"will (the|they|we|you|it|this)", r"what (is|are|if|about|would)",
    ),
    "requirements": _patterns(
        r"need(s|ed)?", r"require(s|d)?", r"must\s+have", r"should\s+have",
        r"important", r"ensure", r"functionality",
    ),
    "concerns": _patterns(
        r"concern(s|ed)?", r"issue(s)?", r"problem(s)?", r"challenge(s)?",
        r"worried?", r"risk(s|y)?", r"afraid", r"uncertain",
    ),
    "positive": _patterns(
        r"progress", r"moving\s+forward", r"next\s+step", r"proceed",
        r"approve", r"interest", r"excited", r"positive",
    ),
    "negative": _patterns(
        r"delay", r"postpone", r"wait", r"hold", r"pause",
        r"reconsider", r"rethink", r"concern",
    ),
}

_TECHNICAL_WORDS = ("integration", "api", "data", "technical", "system")
_PRICING_WORDS = ("price", "cost", "budget", "expense", "investment")


# =============================================================================
# RESEARCH CONDENSING
# =============================================================================


def preprocess_research_data(research: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Condense stored research into the fields the prompt uses.

    Args:
        research: The record's ``data`` map (source name to payload).

    Returns:
        Dict with any of ``company``, ``key_people``, ``funding``,
        ``technologies``, ``insights``, ``recent_news``,
        ``analyzed_articles``, ``linkedin``, ``social_mentions``.
    """
    if not research:
        return {}

    processed: Dict[str, Any] = {}
    apollo = research.get("apollo") or {}
    company = apollo.get("company")
    if company:
        processed["company"] = {
            key: company.get(key)
            for key in ("name", "industry", "description", "size", "revenue", "location", "website")
        }
        processed["company"]["industry"] = company.get("industry") or "Unknown"
        for key in ("key_people", "funding", "technologies", "insights"):
            if apollo.get(key):
                processed[key] = apollo[key]

    news = research.get("google") or []
    real_news = [
        {k: item.get(k) for k in ("title", "snippet", "published_date", "source")}
        for item in news
        if item.get("snippet") and item["snippet"] != "No snippet available"
    ]
    if real_news:
        processed["recent_news"] = real_news[:3]

    analyses = research.get("diffbot") or []
    if analyses:
        processed["analyzed_articles"] = [
            {"title": a.get("title"), "sentiment": a.get("sentiment"), "tags": a.get("tags")}
            for a in analyses
        ]

    linkedin = research.get("linkedin") or {}
    if linkedin.get("company_info"):
        processed["linkedin"] = linkedin["company_info"]

    posts = research.get("reddit") or []
    if posts:
        processed["social_mentions"] = [
            {k: p.get(k) for k in ("title", "subreddit", "sentiment", "relevance")}
            for p in posts[:3]
        ]

    return processed


# =============================================================================
# NOTES ANALYSIS
# =============================================================================


@dataclass
class NotesDigest:
    """Questions and requirements found in client notes."""

    questions: List[str] = field(default_factory=list)
    requirements: List[str] = field(default_factory=list)

    @property
    def has_questions(self) -> bool:
        return bool(self.questions)


def _note_lines(notes: str) -> List[str]:
    lines: List[str] = []
    for paragraph in re.split(r"\n\n+", notes):
        paragraph_lines = [l.strip() for l in re.split(r"\r?\n", paragraph) if l.strip()]
        bullets = [l for l in paragraph_lines if l.startswith("•")]
        if bullets:
            lines.extend(l[1:].strip() for l in bullets)
        else:
            lines.extend(paragraph_lines)
    return lines


def _matches(line: str, kind: str) -> bool:
    return any(p.search(line) for p in NOTE_PATTERNS[kind])


def extract_questions_and_requirements(notes: Optional[str]) -> NotesDigest:
    """Split notes into question lines and requirement lines.

    Bulleted paragraphs (``•``) contribute only their bullet lines. A
    line that reads as a question is never also a requirement.
    """
    if not notes:
        return NotesDigest()

    lines = _note_lines(notes)
    questions = [l for l in lines if _matches(l, "questions")]
    requirements = [
        l for l in lines if _matches(l, "requirements") and not _matches(l, "questions")
    ]
    return NotesDigest(questions=questions, requirements=requirements)


# =============================================================================
# DEAL HEALTH
# =============================================================================


@dataclass
class DealHealth:
    score: int
    probability: str
    momentum: str
    risk_factors: List[str]
    strengths: List[str]


def calculate_deal_health(client: ClientProfile, digest: NotesDigest) -> DealHealth:
    """Score the active deal from its stage and the client's notes.

    The score starts at 50 and is clamped to 0-100. Probability bands:
    High >= 80, Medium >= 60, Moderate >= 40, otherwise Low.
    """
    score = 50
    momentum = "Steady"
    risks: List[str] = []
    strengths: List[str] = []

    stage = (client.active_deal or {}).get("status") or ""
    score += {"qualified": 5, "proposal": 10, "negotiation": 15}.get(stage, 0)

    question_count = len(digest.questions)
    if question_count > 10:
        score += 15
        strengths.append("High level of detailed questions indicates strong engagement")
    elif question_count > 5:
        score += 10
        strengths.append("Multiple detailed questions show good engagement")
    elif question_count > 0:
        score += 5
    else:
        score -= 10
        risks.append("No specific questions may indicate low engagement")

    lowered = [q.lower() for q in digest.questions]
    technical = [q for q in lowered if any(w in q for w in _TECHNICAL_WORDS)]
    if len(technical) > 3:
        score += 15
        strengths.append("Multiple technical questions indicate serious evaluation")
    elif technical:
        score += 10
        strengths.append("Technical questions show solution evaluation in progress")

    if any(any(w in q for w in _PRICING_WORDS) for q in lowered):
        score += 10
        strengths.append("Budget/pricing questions indicate financial evaluation")

    notes = client.notes or ""
    blockers = [p for p in NOTE_PATTERNS["concerns"] if p.search(notes)]
    if len(blockers) > 3:
        score -= 15
        risks.append("Multiple concerns/issues mentioned")
    elif blockers:
        score -= 7
        risks.append("Some concerns mentioned that need addressing")

    if len([p for p in NOTE_PATTERNS["negative"] if p.search(notes)]) > 2:
        score -= 10
        momentum = "Stalling"
        risks.append("Delays or rescheduling may indicate hesitation")

    if len([p for p in NOTE_PATTERNS["positive"] if p.search(notes)]) > 2:
        score += 10
        momentum = "Accelerating"
        strengths.append("Clear forward progress indicators")

    score = max(0, min(100, score))
    if score >= 80:
        probability = "High"
    elif score >= 60:
        probability = "Medium"
    elif score >= 40:
        probability = "Moderate"
    else:
        probability = "Low"

    return DealHealth(
        score=score,
        probability=probability,
        momentum=momentum,
        risk_factors=risks[:3],
        strengths=strengths[:3],
    )


NO_DEAL_RECOMMENDATIONS: List[str] = [
    "Create a new deal for this client",
    "Define initial opportunity parameters",
    "Schedule discovery meeting",
]

CLOSED_DEAL_RECOMMENDATIONS: List[str] = [
    "Review closed deals for upsell opportunities",
    "Schedule follow-up for customer satisfaction",
    "Explore expansion possibilities",
]


def build_deal_intelligence(
    client: ClientProfile,
    research: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Build the stored deal intelligence document for a client.

    Clients without a deal, or whose deal is closed, get a fixed document
    with ``deal_score`` 0 and follow-up recommendations.

    Args:
        client: Client profile with notes and deals.
        research: Stored research ``data`` map, used for the industry.

    Returns:
        JSON-compatible dict saved next to the summary.
    """
    deal = client.active_deal
    if not deal:
        return {
            "deal_score": 0,
            "has_active_deal": False,
            "current_stage": "none",
            "message": "You do not have any active deals",
            "recommendations": list(NO_DEAL_RECOMMENDATIONS),
        }

    stage = deal.get("status") or "prospecting"
    if stage.startswith("closed"):
        return {
            "deal_score": 0,
            "has_active_deal": False,
            "current_stage": "closed",
            "message": "Deal prediction is only for active deal clients only",
            "recommendations": list(CLOSED_DEAL_RECOMMENDATIONS),
        }

    digest = extract_questions_and_requirements(client.notes)
    health = calculate_deal_health(client, digest)
    industry = (preprocess_research_data(research).get("company") or {}).get("industry")
    playbook = DEAL_STAGES.get(stage) or {}
    return {
        "deal_score": health.score,
        "has_active_deal": True,
        "current_stage": stage,
        "deal_title": deal.get("title"),
        "deal_value": deal.get("value"),
        "probability": health.probability,
        "momentum": health.momentum,
        "factors": {"positive": health.strengths, "negative": health.risk_factors},
        "questions": digest.questions,
        "requirements": digest.requirements,
        "industry": industry or "Unknown",
        "focus_areas": list(playbook.get("focus_areas", [])),
        "recommendations": list(playbook.get("next_steps", [])),
    }


# =============================================================================
# GUIDANCE TEXT
# =============================================================================

_STAGE_KEYWORDS = {
    "prospecting": (("roi", "value", "benefit"), ("budget", "cost", "roi")),
    "qualified": (("roi", "value", "benefit"), ("budget", "cost", "roi")),
    "proposal": (("implementation", "integration", "technical"), ("technical", "implementation", "integration")),
    "negotiation": (("risk", "support", "service"), ("risk", "support", "maintenance")),
}


def _strategy_for(industry: Optional[str]) -> Dict[str, List[str]]:
    name = (industry or "default").lower()
    if name in INDUSTRY_SALES_STRATEGIES:
        return INDUSTRY_SALES_STRATEGIES[name]
    for key, strategy in INDUSTRY_SALES_STRATEGIES.items():
        if key != "default" and (key in name or name in key):
            return strategy
    return INDUSTRY_SALES_STRATEGIES["default"]


def industry_guidance(industry: Optional[str], deal_stage: Optional[str]) -> str:
    """Industry playbook text filtered by deal stage."""
    strategy = _strategy_for(industry)
    topic_words, objection_words = _STAGE_KEYWORDS.get(deal_stage or "", ((), ()))

    topics = [t for t in strategy["topics"] if any(w in t.lower() for w in topic_words)]
    objections = [o for o in strategy["objections"] if any(w in o.lower() for w in objection_words)]
    if len(topics) < 2:
        topics = list(dict.fromkeys(topics + strategy["topics"]))[:3]
    if len(objections) < 2:
        objections = list(dict.fromkeys(objections + strategy["objections"]))[:3]

    label = (industry or "default").lower()
    return (
        "**Industry-Specific Considerations**\n"
        f"- Focus on these high-impact topics for {label}:\n"
        + "".join(f"  * {t}\n" for t in topics)
        + "- Anticipate these common objections:\n"
        + "".join(f"  * {o}\n" for o in objections)
        + "- Key technical terms to incorporate:\n"
        + "".join(f"  * {t}\n" for t in strategy["technical_terms"][:5])
    )


def sales_stage_guidance(deal_stage: Optional[str]) -> str:
    """Stage playbook text, or discovery advice for unknown stages."""
    if not deal_stage or deal_stage not in DEAL_STAGES:
        return (
            "**Strategy:** Focus on understanding the client's needs and "
            "establishing value. Emphasize discovery questions."
        )
    stage = DEAL_STAGES[deal_stage]
    return (
        f"**{deal_stage.capitalize()} Stage Strategy**\n"
        f"- Focus on: {', '.join(stage['focus_areas'])}\n"
        f"- Key success indicators: {', '.join(stage['success_indicators'])}\n"
        f"- Risk factors to monitor: {', '.join(stage['risk_indicators'])}\n"
        f"- Recommended next steps: {', '.join(stage['next_steps'])}\n"
    )
