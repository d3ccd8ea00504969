"""
External provider clients for the SalesSynth research core.

Research adapters (log failures, return an empty result):

- SerpApiClient: Google News search via SerpAPI
- DiffbotClient: article content extraction via Diffbot Analyze
- ApolloClient: company enrichment and key people via Apollo.io
- PDLClient: person and company enrichment via People Data Labs
- LinkedInCompanyClient: company page and recent updates via LinkedIn
- RedditClient: relevant company discussions via Reddit search

Other clients (raise typed errors):

- AviationStackClient: flight status lookup
- ClaudeClient: Anthropic Messages API for insight generation
"""

from salessynth.tools.apollo import ApolloClient
from salessynth.tools.aviationstack import AviationStackClient
from salessynth.tools.claude_client import ClaudeClient
from salessynth.tools.diffbot import DiffbotClient
from salessynth.tools.linkedin import LinkedInCompanyClient
from salessynth.tools.pdl import PDLClient
from salessynth.tools.reddit import RedditClient
from salessynth.tools.serpapi import SerpApiClient

__all__ = [
    "ApolloClient",
    "AviationStackClient",
    "ClaudeClient",
    "DiffbotClient",
    "LinkedInCompanyClient",
    "PDLClient",
    "RedditClient",
    "SerpApiClient",
]
