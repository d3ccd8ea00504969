"""
Research aggregation for CRM clients.

- CooldownGate: per-source re-query window
- ResearchSources: source name to adapter dispatch
- ResearchManager: research cycles, due-client batches, stored reads
- InsightGenerator: LLM sales insights with a fixed fallback text
"""

from salessynth.research.cooldown import CooldownGate
from salessynth.research.insights import INSIGHTS_FALLBACK, InsightGenerator
from salessynth.research.manager import ResearchManager
from salessynth.research.sources import ResearchSources

__all__ = [
    "CooldownGate",
    "INSIGHTS_FALLBACK",
    "InsightGenerator",
    "ResearchManager",
    "ResearchSources",
]
