"""
Research cycle orchestration.

For one (client, user) pair a cycle runs every enabled source through
the cooldown gate, writes each source's outcome to its own row, then
regenerates the insight summary and the deal intelligence document when
anything new arrived.

Ordering: the news source runs first because content extraction
analyzes its article URLs. The remaining sources run concurrently and
may finish and write in any order.

Failure policy:
    - A source that raises is logged; its attempt timestamp is still
      written and siblings keep running.
    - A persistence failure is logged and reported as ``FAILED``. There is
      no rollback or retry; the next cycle after the cooldown retries.
    - A failing client never aborts the rest of a batch.

The cooldown check is not atomic with the write that follows it. Two
concurrent cycles for the same pair in different processes can both
call a provider once. Within one process a second concurrent cycle for
the same pair is refused.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from salessynth.config import Settings
from salessynth.database import SupabaseDB
from salessynth.exceptions import ValidationError
from salessynth.models import (
    ClientProfile,
    FetchStatus,
    ResearchRecord,
    ResearchRunResult,
    ResearchSource,
    SourceOutcome,
)
from salessynth.research.cooldown import CooldownGate
from salessynth.research.insights import InsightGenerator
from salessynth.research.intelligence import build_deal_intelligence
from salessynth.research.sources import ResearchSources
from salessynth.tools.claude_client import ClaudeClient
from salessynth.utils import ensure_utc, utc_now

logger = logging.getLogger(__name__)


class ResearchManager:
    """Runs research cycles and serves stored research.

    Args:
        db: Database client.
        sources: Source adapters.
        insights: Insight generator; ``None`` disables summaries.
        settings: Application settings.
        clock: Returns the current UTC time (tests inject a fake).
        sleep: Awaitable sleep used between batches.
    """

    def __init__(
        self,
        db: SupabaseDB,
        sources: ResearchSources,
        insights: Optional[InsightGenerator] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utc_now,
        sleep: Callable[[float], Any] = asyncio.sleep,
    ) -> None:
        self.db = db
        self.sources = sources
        self.insights = insights
        self.settings = settings or Settings()
        self._clock = clock
        self._sleep = sleep
        self.gate = CooldownGate(
            window=timedelta(hours=self.settings.cooldown_hours), clock=clock
        )
        self.enabled_sources: List[ResearchSource] = [
            ResearchSource(name) for name in self.settings.enabled_sources
        ]
        self._in_flight: Set[Tuple[str, str]] = set()

    @classmethod
    def from_settings(cls, db: SupabaseDB, settings: Settings) -> "ResearchManager":
        """Wire real adapters and the Claude client from settings."""
        llm = ClaudeClient.from_settings(settings)
        insights = InsightGenerator(
            llm, max_tokens=settings.llm_max_tokens, temperature=settings.llm_temperature
        )
        return cls(db, ResearchSources.from_settings(settings), insights, settings)

    # ------------------------------------------------------------------
    # Single source
    # ------------------------------------------------------------------

    async def run_source(
        self,
        source: ResearchSource,
        client: ClientProfile,
        record: Optional[ResearchRecord],
        news: Optional[List[Dict[str, Any]]] = None,
    ) -> Tuple[SourceOutcome, Any]:
        """Gate, fetch and persist one source for one client.

        Returns:
            The outcome and the fetched payload (``None`` when skipped or
            empty).
        """
        if not self.gate.should_fetch(record, source):
            last = record.last_updated_for(source) if record else None
            logger.info(
                "Skipping %s for %s: cooldown active (%s left)",
                source.value,
                client.company,
                self.gate.remaining(last),
            )
            return SourceOutcome(source, FetchStatus.SKIPPED), None

        try:
            data = await self.sources.fetch(
                source, client, news, research=record.data if record else None
            )
        except Exception as exc:
            logger.error(
                "Source %s failed for %s: %s", source.value, client.company, exc,
                exc_info=True,
            )
            data = None

        try:
            await self.db.upsert_source_result(
                client.id,
                client.user_id,
                client.company,
                source,
                data,
                attempted_at=self._clock(),
            )
        except Exception as exc:
            logger.error(
                "Could not store %s research for %s: %s", source.value, client.company, exc
            )
            return SourceOutcome(source, FetchStatus.FAILED, error=str(exc)), data

        status = FetchStatus.FETCHED if data is not None else FetchStatus.EMPTY
        logger.info("Source %s for %s: %s", source.value, client.company, status.value)
        return SourceOutcome(source, status), data

    # ------------------------------------------------------------------
    # Full cycle
    # ------------------------------------------------------------------

    async def run_for_client(
        self, client: ClientProfile, generate_summary: bool = True
    ) -> Optional[ResearchRunResult]:
        """Run one research cycle for a client.

        Args:
            client: Research subject.
            generate_summary: Regenerate insights when new data arrived or
                no summary exists yet.

        Returns:
            Per-source outcomes, or ``None`` when a cycle for the same
            (client, user) pair is already running in this process.

        Raises:
            ValidationError: If the client has no id or user id.
        """
        if not client.id or not client.user_id:
            raise ValidationError("client must have id and user_id")

        key = (client.id, client.user_id)
        if key in self._in_flight:
            logger.warning("Research already running for %s, skipping duplicate run", client.company)
            return None

        self._in_flight.add(key)
        try:
            return await self._run_cycle(client, generate_summary)
        finally:
            self._in_flight.discard(key)

    async def _run_cycle(
        self, client: ClientProfile, generate_summary: bool
    ) -> ResearchRunResult:
        logger.info("Running research for %s (client=%s)", client.company, client.id)
        record = await self.db.get_research(client.id, client.user_id)
        result = ResearchRunResult(client_id=client.id, user_id=client.user_id)

        news: List[Dict[str, Any]] = list((record.data_for(ResearchSource.GOOGLE) if record else None) or [])
        if ResearchSource.GOOGLE in self.enabled_sources:
            outcome, fresh_news = await self.run_source(ResearchSource.GOOGLE, client, record)
            result.outcomes.append(outcome)
            if fresh_news:
                news = fresh_news

        others = [s for s in self.enabled_sources if s is not ResearchSource.GOOGLE]
        outcomes = await asyncio.gather(
            *(self.run_source(s, client, record, news) for s in others),
            return_exceptions=True,
        )
        for source, outcome in zip(others, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning("Source '%s' failed for %s: %s", source.value, client.company, outcome)
                result.outcomes.append(SourceOutcome(source, FetchStatus.FAILED, error=str(outcome)))
                continue
            result.outcomes.append(outcome[0])

        needs_summary = bool(result.fetched_sources) or record is None or not record.summary
        if generate_summary and self.insights is not None and needs_summary:
            result.summary = await self._refresh_summary(client, news)

        logger.info(
            "Research finished for %s: %s",
            client.company,
            ", ".join(f"{o.source.value}={o.status.value}" for o in result.outcomes),
        )
        return result

    async def _refresh_summary(
        self, client: ClientProfile, news: List[Dict[str, Any]]
    ) -> Optional[str]:
        try:
            record = await self.db.get_research(client.id, client.user_id)
        except Exception as exc:
            logger.error("Could not reload research for %s: %s", client.company, exc)
            return None

        research = record.data if record else None
        summary = await self.insights.generate(client, news, research)
        try:
            await self.db.save_summary(
                client.id,
                client.user_id,
                client.company,
                summary,
                generated_at=self._clock(),
                deal_intelligence=build_deal_intelligence(client, research),
            )
        except Exception as exc:
            logger.error("Could not store summary for %s: %s", client.company, exc)
        return summary

    # ------------------------------------------------------------------
    # Due-client selection and batches
    # ------------------------------------------------------------------

    def is_due(self, client: ClientProfile, record: Optional[ResearchRecord]) -> bool:
        """Whether a client should be researched now.

        Due when any trigger holds and the client's latest research is
        outside the cooldown window. Triggers: a follow-up within the
        follow-up window, research older than the stale window (or none),
        a deal in ``proposal``, notes mentioning a contract or pricing.
        """
        now = self._clock()
        last = record.latest_update if record else None
        if self.gate.is_active(last):
            return False

        follow_up_due = bool(
            client.follow_up_date
            and ensure_utc(client.follow_up_date)
            <= now + timedelta(days=self.settings.follow_up_window_days)
        )
        research_stale = last is None or now - last >= timedelta(
            days=self.settings.stale_research_days
        )
        deal_in_proposal = any(d.get("status") == "proposal" for d in client.deals)
        notes = (client.notes or "").lower()
        notes_signal = "contract" in notes or "pricing" in notes

        return follow_up_due or research_stale or deal_in_proposal or notes_signal

    async def select_due_clients(
        self, clients: List[ClientProfile]
    ) -> List[ClientProfile]:
        due: List[ClientProfile] = []
        for client in clients:
            if not client.is_active:
                continue
            try:
                record = await self.db.get_research(client.id, client.user_id)
            except Exception as exc:
                logger.error("Could not read research for %s: %s", client.company, exc)
                continue
            if self.is_due(client, record):
                due.append(client)
            else:
                logger.debug("No research needed for %s", client.company)
        return due

    async def orchestrate(
        self, user_id: Optional[str] = None, only_due: bool = True
    ) -> List[ResearchRunResult]:
        """Research active clients in batches.

        Args:
            user_id: Restrict to one user's clients.
            only_due: Apply due-client selection first.

        Returns:
            Results of the cycles that ran.
        """
        clients = await self.db.get_active_clients(user_id)
        if not clients:
            logger.warning("No active clients found, research skipped")
            return []
        if only_due:
            clients = await self.select_due_clients(clients)
        logger.info("Researching %d clients", len(clients))

        results: List[ResearchRunResult] = []
        size = self.settings.batch_size
        for start in range(0, len(clients), size):
            batch = clients[start:start + size]
            outcomes = await asyncio.gather(
                *(self.run_for_client(c) for c in batch), return_exceptions=True
            )
            for client, outcome in zip(batch, outcomes):
                if isinstance(outcome, BaseException):
                    logger.error("Research failed for %s: %s", client.company, outcome)
                elif outcome is not None:
                    results.append(outcome)
            if start + size < len(clients):
                await self._sleep(self.settings.batch_delay_seconds)

        logger.info("Research orchestration completed: %d cycles", len(results))
        return results

    # ------------------------------------------------------------------
    # Read / refresh
    # ------------------------------------------------------------------

    async def get_client_research(
        self, client_id: str, user_id: str
    ) -> Optional[ResearchRecord]:
        """Stored research for a pair, without running anything."""
        return await self.db.get_research(client_id, user_id)

    async def refresh_client_research(
        self, client_id: str, user_id: str
    ) -> Optional[ResearchRunResult]:
        """Run a cycle for one client on demand.

        Sources inside their cooldown window are still skipped.

        Returns:
            The cycle result, or ``None`` if the client is unknown, belongs
            to another user, or a cycle is already running.
        """
        client = await self.db.get_client(client_id)
        if client is None or client.user_id != user_id:
            logger.warning("No client %s for user %s", client_id, user_id)
            return None
        return await self.run_for_client(client)
