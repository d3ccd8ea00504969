"""
Async Apollo.io client for company enrichment.

Resolves a company to an Apollo organization, trying in order: the
client's email domain, a domain found in the company name, common domain
patterns built from the name, and finally the account search API. Then
looks up senior people at the company and derives growth indicators and
buying signals from the organization profile.

Provider failures are logged and become ``None``. A 401 is reported as an
authentication failure and stops the enrichment.
"""

import logging
import os
from typing import Any, Dict, List, Optional

import httpx

from salessynth.utils import (
    extract_domain,
    json_object,
    normalize_company_name,
    parse_timestamp,
    utc_now,
)

logger = logging.getLogger(__name__)

SENIORITY_LEVELS: List[str] = [
    "director_level",
    "vp_level",
    "executive_level",
    "c_suite_level",
    "owner",
]

DOMAIN_SUFFIXES: List[str] = [".com", ".org", ".net", ".io", ".co"]

_CLOUD_TECHNOLOGIES = {"aws", "amazon web services", "microsoft azure", "google cloud", "heroku"}


class ApolloClient:
    """Async wrapper around the Apollo.io REST API.

    Args:
        api_key: Apollo API key.  Falls back to ``APOLLO_API_KEY``.
        timeout: Request timeout in seconds.
        transport: Optional ``httpx`` transport.

    Usage::

        client = ApolloClient()
        enriched = await client.enrich_company("Acme Corp", email_domain="acme.com")
    """

    BASE_URL: str = "https://api.apollo.io/api/v1"

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key: str = api_key or os.environ.get("APOLLO_API_KEY", "")
        self.timeout = timeout
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        return {
            "accept": "application/json",
            "Cache-Control": "no-cache",
            "Content-Type": "application/json",
            "x-api-key": self.api_key,
        }

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def enrich_company(
        self,
        company_name: str,
        email_domain: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """Enrich a company with its profile, key people and insights.

        Args:
            company_name: Company name.
            email_domain: Domain taken from the contact's email, tried
                first when given.

        Returns:
            Normalized payload with ``company``, ``key_people``,
            ``funding``, ``technologies`` and ``insights`` keys, or
            ``None`` when nothing was found or the call failed.
        """
        company_name = (company_name or "").strip()
        if not company_name and not email_domain:
            logger.warning("Apollo enrichment skipped: empty company name and domain")
            return None
        if not self.api_key:
            logger.warning("Apollo enrichment skipped: APOLLO_API_KEY not set")
            return None

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                organization = await self._find_organization(client, company_name, email_domain)
                if organization is None:
                    logger.info("Apollo found no organization for %s", company_name)
                    return None

                domain = (
                    email_domain
                    or organization.get("primary_domain")
                    or organization.get("website_domain")
                    or extract_domain(organization.get("website_url"))
                )
                key_people = await self._find_key_people(
                    client, domain, organization.get("name") or company_name
                )
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 401:
                logger.error("Apollo authentication failed: check APOLLO_API_KEY")
            else:
                logger.error("Apollo enrichment failed for %s: %s", company_name, exc)
            return None
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Apollo enrichment failed for %s: %s", company_name, exc)
            return None

        logger.info(
            "Apollo enriched %s: people=%d", company_name, len(key_people)
        )
        return self.build_payload(organization, domain, key_people)

    # ------------------------------------------------------------------
    # Organization lookup
    # ------------------------------------------------------------------

    async def _find_organization(
        self,
        client: httpx.AsyncClient,
        company_name: str,
        email_domain: Optional[str],
    ) -> Optional[Dict[str, Any]]:
        candidates: List[str] = []
        if email_domain:
            candidates.append(email_domain.lower())
        name_domain = extract_domain(company_name)
        if name_domain:
            candidates.append(name_domain)
        elif "." in company_name and " " not in company_name:
            candidates.append(company_name.lower())
        if company_name:
            compact = normalize_company_name(company_name).replace(" ", "")
            if compact:
                candidates.extend(f"{compact}{suffix}" for suffix in DOMAIN_SUFFIXES)

        seen = set()
        for domain in candidates:
            if domain in seen:
                continue
            seen.add(domain)
            try:
                organization = await self._enrich_by_domain(client, domain)
            except httpx.HTTPStatusError as exc:
                if exc.response.status_code == 401:
                    raise
                logger.debug("Apollo domain %s failed: %s", domain, exc)
                continue
            except ValueError as exc:
                logger.debug("Apollo domain %s returned an unreadable body: %s", domain, exc)
                continue
            if organization:
                logger.debug("Apollo matched %s via domain %s", company_name, domain)
                return organization

        if not company_name:
            return None
        return await self._search_accounts(client, company_name)

    async def _enrich_by_domain(
        self, client: httpx.AsyncClient, domain: str
    ) -> Optional[Dict[str, Any]]:
        response = await client.get(
            f"{self.BASE_URL}/organizations/enrich",
            headers=self._headers(),
            params={"domain": domain},
        )
        response.raise_for_status()
        organization = json_object(response).get("organization")
        return organization if isinstance(organization, dict) else None

    async def _search_accounts(
        self, client: httpx.AsyncClient, company_name: str
    ) -> Optional[Dict[str, Any]]:
        response = await client.post(
            f"{self.BASE_URL}/accounts/search",
            headers=self._headers(),
            json={"q_organization_name": company_name, "page": 1, "per_page": 10},
        )
        response.raise_for_status()
        accounts = [a for a in json_object(response).get("accounts") or [] if isinstance(a, dict)]
        return accounts[0] if accounts else None

    async def _find_key_people(
        self,
        client: httpx.AsyncClient,
        domain: Optional[str],
        company_name: str,
    ) -> List[Dict[str, Any]]:
        query: Dict[str, Any] = {"seniority": SENIORITY_LEVELS}
        if domain:
            query["organization_domains"] = [domain]
        else:
            query["organization_name"] = company_name

        try:
            response = await client.post(
                f"{self.BASE_URL}/people/search",
                headers=self._headers(),
                json={"q": query, "page": 1, "per_page": 10},
            )
            response.raise_for_status()
            people = [p for p in json_object(response).get("people") or [] if isinstance(p, dict)]
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 401:
                raise
            logger.warning("Apollo people search failed for %s: %s", company_name, exc)
            return []
        except ValueError as exc:
            logger.warning("Apollo people search returned an unreadable body for %s: %s", company_name, exc)
            return []

        return [
            {
                "name": f"{p.get('first_name') or ''} {p.get('last_name') or ''}".strip(),
                "title": p.get("title") or "Unknown",
                "email": p.get("email"),
                "email_status": p.get("email_status"),
                "linkedin_url": p.get("linkedin_url"),
                "seniority": p.get("seniority"),
                "departments": p.get("departments") or [],
            }
            for p in people
        ]

    # ------------------------------------------------------------------
    # Normalization
    # ------------------------------------------------------------------

    @classmethod
    def build_payload(
        cls,
        organization: Dict[str, Any],
        domain: Optional[str],
        key_people: List[Dict[str, Any]],
    ) -> Dict[str, Any]:
        funding_events = organization.get("funding_events") or []
        latest = funding_events[0] if funding_events else None
        parent = organization.get("owned_by_organization")
        tech_names = organization.get("technology_names") or []
        tech_analysis = analyze_technology_stack(organization.get("current_technologies"))

        return {
            "company": {
                "name": organization.get("name"),
                "domain": domain,
                "website": organization.get("website_url"),
                "description": organization.get("short_description"),
                "industry": organization.get("industry") or "Unknown",
                "size": organization.get("estimated_num_employees") or "Unknown",
                "revenue": organization.get("annual_revenue_printed") or "Unknown",
                "location": {
                    "city": organization.get("city") or "Unknown",
                    "state": organization.get("state") or "Unknown",
                    "country": organization.get("country") or "Unknown",
                },
                "social_profiles": {
                    "linkedin": organization.get("linkedin_url"),
                    "twitter": organization.get("twitter_url"),
                    "facebook": organization.get("facebook_url"),
                },
                "parent": {
                    "name": parent.get("name"),
                    "domain": extract_domain(parent.get("website_url")),
                } if parent else None,
            },
            "key_people": key_people,
            "funding": {
                "total_raised": organization.get("total_funding_printed") or "Unknown",
                "last_funding": {
                    "date": latest.get("date"),
                    "amount": f"{latest.get('currency') or '$'}{latest.get('amount')}",
                    "type": latest.get("type"),
                } if latest else None,
            },
            "technologies": {
                "count": len(tech_names),
                "names": tech_names,
                "categories": tech_analysis["categories"],
            },
            "insights": {
                "growth_indicators": extract_growth_indicators(organization),
                "buying_signals": tech_analysis["buying_signals"],
                "keywords": organization.get("keywords") or [],
            },
        }


# =============================================================================
# DERIVED INSIGHTS
# =============================================================================


def extract_growth_indicators(organization: Dict[str, Any]) -> List[str]:
    """Human-readable growth signals from an Apollo organization."""
    indicators: List[str] = []

    employees = organization.get("estimated_num_employees")
    if employees:
        if employees >= 10000:
            tier = "Enterprise"
        elif employees >= 1000:
            tier = "Large"
        elif employees >= 200:
            tier = "Mid-market"
        elif employees >= 50:
            tier = "SMB"
        else:
            tier = "Small"
        indicators.append(f"{tier} organization ({employees:,} employees)")

    if organization.get("annual_revenue_printed"):
        indicators.append(f"Annual revenue: {organization['annual_revenue_printed']}")

    if organization.get("total_funding"):
        indicators.append(f"Total funding: {organization.get('total_funding_printed')}")
        events = organization.get("funding_events") or []
        if events and events[0].get("date"):
            try:
                funded_at = parse_timestamp(events[0]["date"])
            except ValueError:
                funded_at = None
            if funded_at is not None:
                months_ago = (utc_now() - funded_at).days // 30
                if months_ago <= 12:
                    latest = events[0]
                    indicators.append(
                        f"Recent {latest.get('type')} funding: "
                        f"{latest.get('currency') or '$'}{latest.get('amount')} "
                        f"({months_ago} months ago)"
                    )

    tech_count = len(organization.get("technology_names") or [])
    if tech_count > 20:
        indicators.append(f"Technology-driven organization ({tech_count} technologies in use)")

    return indicators


def analyze_technology_stack(
    technologies: Optional[List[Dict[str, Any]]],
) -> Dict[str, List[Any]]:
    """Group technologies by category and flag buying signals."""
    if not technologies:
        return {"categories": [], "buying_signals": []}

    categories: Dict[str, List[str]] = {}
    for tech in technologies:
        if tech.get("category"):
            categories.setdefault(tech["category"], []).append(tech.get("name"))

    names = {(tech.get("name") or "").lower() for tech in technologies}
    signals: List[str] = []
    if names & {"salesforce", "hubspot"}:
        signals.append("Using CRM platform")
    if names & {"marketo", "hubspot", "mailchimp", "pardot"}:
        signals.append("Using marketing automation")
    if names & {"google analytics", "mixpanel", "amplitude"}:
        signals.append("Using analytics tools")
    if names & _CLOUD_TECHNOLOGIES:
        signals.append("Using cloud infrastructure")

    return {
        "categories": [
            {"category": category, "technologies": techs}
            for category, techs in categories.items()
        ],
        "buying_signals": signals,
    }
