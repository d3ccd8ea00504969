"""
Tests for salessynth.research.manager.

Covers:
    - first cycle fetches every source and stores a summary
    - cooldown skips sources without calling or writing
    - empty and failing adapters still record the attempt
    - writes for one source never touch another source's row
    - persistence failures are isolated per source
    - duplicate concurrent cycles are refused in-process
    - due-client selection and batched orchestration
"""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from salessynth.database import RESEARCH_SOURCES_TABLE, RESEARCH_TABLE
from salessynth.exceptions import ValidationError
from salessynth.models import ClientProfile, FetchStatus, ResearchRecord, ResearchSource
from salessynth.research import INSIGHTS_FALLBACK, InsightGenerator, ResearchManager, ResearchSources


ALL_SOURCES = list(ResearchSource)


def _adapters(articles):
    serpapi = MagicMock()
    serpapi.search_company_news = AsyncMock(return_value=articles)
    diffbot = MagicMock()
    diffbot.analyze_url = AsyncMock(
        side_effect=lambda url: {"url": url, "type": "article", "title": "T", "text": "body"}
    )
    apollo = MagicMock()
    apollo.enrich_company = AsyncMock(
        return_value={"company": {"name": "Acme Corp", "industry": "software"}}
    )
    pdl = MagicMock()
    pdl.enrich = AsyncMock(return_value={"person_data": None, "company_data": {"name": "acme"}})
    linkedin = MagicMock()
    linkedin.fetch_company = AsyncMock(
        return_value={"company_info": {"name": "Acme"}, "recent_updates": []}
    )
    reddit = MagicMock()
    reddit.search_company_mentions = AsyncMock(
        return_value=[{"title": "Acme Corp earnings", "subreddit": "stocks", "sentiment": "positive"}]
    )
    return ResearchSources(serpapi, diffbot, apollo, pdl, linkedin, reddit)


@pytest.fixture
def sources(sample_articles):
    return _adapters(sample_articles)


@pytest.fixture
def llm():
    llm = MagicMock()
    llm.generate = AsyncMock(return_value="1. Lead with the Series C.")
    return llm


@pytest.fixture
def manager(db, sources, llm, settings, clock):
    return ResearchManager(
        db, sources, InsightGenerator(llm), settings, clock=clock, sleep=AsyncMock()
    )


def _source_row(fake_supabase, source):
    rows = [r for r in fake_supabase.rows(RESEARCH_SOURCES_TABLE) if r["source"] == source]
    assert len(rows) <= 1
    return rows[0] if rows else None


def _seed_source(fake_supabase, client, source, when, data=None):
    row = {
        "client_id": client.id,
        "user_id": client.user_id,
        "source": source,
        "last_updated": when.isoformat(),
    }
    if data is not None:
        row["data"] = data
    fake_supabase.tables.setdefault(RESEARCH_SOURCES_TABLE, []).append(row)


# ===========================================================================
# First cycle
# ===========================================================================


class TestFirstCycle:
    """A client with no stored research."""

    @pytest.mark.asyncio
    async def test_fetches_all_sources(self, manager, sample_client, fake_supabase, clock):
        """Every source is fetched and gets its own row stamped with the cycle time."""
        result = await manager.run_for_client(sample_client)

        assert [result.status_of(s) for s in ALL_SOURCES] == [FetchStatus.FETCHED] * len(ALL_SOURCES)
        for source in ALL_SOURCES:
            row = _source_row(fake_supabase, source.value)
            assert row["last_updated"] == clock.now.isoformat()
            assert row["data"]

    @pytest.mark.asyncio
    async def test_creates_identity_row_once(self, manager, sample_client, fake_supabase):
        """The research identity row is created once and keeps its company name."""
        await manager.run_for_client(sample_client)

        heads = fake_supabase.rows(RESEARCH_TABLE)
        assert len(heads) == 1
        assert heads[0]["company_name"] == "Acme Corp"

    @pytest.mark.asyncio
    async def test_content_extraction_uses_news_urls(self, manager, sources, sample_client, sample_articles):
        """Content extraction analyzes the URLs of the freshly fetched articles."""
        await manager.run_for_client(sample_client)

        analyzed = [c.args[0] for c in sources.diffbot.analyze_url.await_args_list]
        assert analyzed == [a["url"] for a in sample_articles]

    @pytest.mark.asyncio
    async def test_summary_generated_and_saved(self, manager, sample_client, fake_supabase, llm, clock):
        """New data triggers insight generation stored on the identity row."""
        result = await manager.run_for_client(sample_client)

        assert result.summary == "1. Lead with the Series C."
        head = fake_supabase.rows(RESEARCH_TABLE)[0]
        assert head["summary"] == result.summary
        assert head["summary_generated_at"] == clock.now.isoformat()
        prompt = llm.generate.await_args.args[0]
        assert "Acme raises Series C" in prompt
        assert "r/stocks: Acme Corp earnings (positive)" in prompt

    @pytest.mark.asyncio
    async def test_deal_intelligence_saved_with_summary(self, manager, db, sample_client, fake_supabase):
        """The deal document is written next to the summary and read back on the record."""
        await manager.run_for_client(sample_client)

        document = fake_supabase.rows(RESEARCH_TABLE)[0]["deal_intelligence"]
        assert document["has_active_deal"] is True
        assert document["current_stage"] == "negotiation"
        assert document["deal_title"] == "Platform rollout"
        assert document["industry"] == "software"
        assert 0 <= document["deal_score"] <= 100
        record = await db.get_research(sample_client.id, sample_client.user_id)
        assert record.deal_intelligence == document

    @pytest.mark.asyncio
    async def test_summary_fallback_on_llm_failure(self, manager, sample_client, fake_supabase, llm):
        """A failing model stores the fixed fallback text."""
        llm.generate.side_effect = RuntimeError("overloaded")

        result = await manager.run_for_client(sample_client)

        assert result.summary == INSIGHTS_FALLBACK
        assert fake_supabase.rows(RESEARCH_TABLE)[0]["summary"] == INSIGHTS_FALLBACK

    @pytest.mark.asyncio
    async def test_missing_ids_rejected(self, manager):
        with pytest.raises(ValidationError):
            await manager.run_for_client(ClientProfile(id="", user_id="user-1", company="Acme"))


# ===========================================================================
# Cooldown
# ===========================================================================


class TestCooldown:
    """Sources attempted within the window are skipped."""

    @pytest.mark.asyncio
    async def test_second_cycle_within_window_skips_everything(
        self, manager, sources, sample_client, fake_supabase, clock
    ):
        """No adapter calls and no source writes happen inside the window."""
        await manager.run_for_client(sample_client)
        writes_before = len(fake_supabase.writes(RESEARCH_SOURCES_TABLE))

        clock.advance(hours=11, minutes=59)
        result = await manager.run_for_client(sample_client)

        assert [result.status_of(s) for s in ALL_SOURCES] == [FetchStatus.SKIPPED] * len(ALL_SOURCES)
        assert sources.serpapi.search_company_news.await_count == 1
        assert sources.apollo.enrich_company.await_count == 1
        assert len(fake_supabase.writes(RESEARCH_SOURCES_TABLE)) == writes_before
        assert result.summary is None

    @pytest.mark.asyncio
    async def test_fetches_again_after_window(self, manager, sources, sample_client, clock):
        await manager.run_for_client(sample_client)

        clock.advance(hours=12)
        result = await manager.run_for_client(sample_client)

        assert result.status_of(ResearchSource.APOLLO) is FetchStatus.FETCHED
        assert sources.apollo.enrich_company.await_count == 2

    @pytest.mark.asyncio
    async def test_only_stale_sources_refetched(
        self, manager, sources, sample_client, fake_supabase, clock
    ):
        """A source inside its window is skipped while an older one is fetched."""
        _seed_source(fake_supabase, sample_client, "apollo", clock.now - timedelta(hours=1), {"old": True})
        _seed_source(fake_supabase, sample_client, "pdl", clock.now - timedelta(hours=13), {"old": True})

        result = await manager.run_for_client(sample_client)

        assert result.status_of(ResearchSource.APOLLO) is FetchStatus.SKIPPED
        assert result.status_of(ResearchSource.PDL) is FetchStatus.FETCHED
        sources.apollo.enrich_company.assert_not_awaited()
        assert _source_row(fake_supabase, "apollo")["data"] == {"old": True}

    @pytest.mark.asyncio
    async def test_stored_news_feeds_content_extraction(
        self, manager, sources, sample_client, fake_supabase, clock, sample_articles
    ):
        """When news is in cooldown, stored articles are analyzed instead."""
        _seed_source(fake_supabase, sample_client, "google", clock.now - timedelta(hours=1), sample_articles[:1])

        await manager.run_for_client(sample_client)

        sources.serpapi.search_company_news.assert_not_awaited()
        sources.diffbot.analyze_url.assert_awaited_once_with(sample_articles[0]["url"])

    @pytest.mark.asyncio
    async def test_stored_industry_feeds_social_search(
        self, manager, sources, sample_client, fake_supabase, clock
    ):
        """Social search uses the industry from stored company enrichment."""
        company = {"company": {"name": "Acme Corp", "industry": "Financial Services"}}
        _seed_source(fake_supabase, sample_client, "apollo", clock.now - timedelta(hours=1), company)

        await manager.run_for_client(sample_client)

        sources.reddit.search_company_mentions.assert_awaited_once_with(
            "Acme Corp", industry="Financial Services"
        )


# ===========================================================================
# Empty and failing sources
# ===========================================================================


class TestEmptyAndFailingSources:

    @pytest.mark.asyncio
    async def test_empty_result_keeps_previous_data(
        self, manager, sources, sample_client, fake_supabase, clock
    ):
        """An empty attempt refreshes the timestamp and keeps the prior payload."""
        _seed_source(fake_supabase, sample_client, "linkedin", clock.now - timedelta(days=2), {"prior": 1})
        sources.linkedin.fetch_company.return_value = None

        result = await manager.run_for_client(sample_client)

        assert result.status_of(ResearchSource.LINKEDIN) is FetchStatus.EMPTY
        row = _source_row(fake_supabase, "linkedin")
        assert row["data"] == {"prior": 1}
        assert row["last_updated"] == clock.now.isoformat()

    @pytest.mark.asyncio
    async def test_empty_result_starts_cooldown(self, manager, sources, sample_client, clock):
        """A source that found nothing is not queried again inside the window."""
        sources.pdl.enrich.return_value = None
        await manager.run_for_client(sample_client)

        clock.advance(hours=1)
        result = await manager.run_for_client(sample_client)

        assert result.status_of(ResearchSource.PDL) is FetchStatus.SKIPPED
        assert sources.pdl.enrich.await_count == 1

    @pytest.mark.asyncio
    async def test_adapter_exception_isolated(
        self, manager, sources, sample_client, fake_supabase, clock
    ):
        """A raising adapter is recorded as attempted and siblings still run."""
        sources.apollo.enrich_company.side_effect = RuntimeError("boom")

        result = await manager.run_for_client(sample_client)

        assert result.status_of(ResearchSource.APOLLO) is FetchStatus.EMPTY
        assert result.status_of(ResearchSource.PDL) is FetchStatus.FETCHED
        row = _source_row(fake_supabase, "apollo")
        assert row["last_updated"] == clock.now.isoformat()
        assert "data" not in row

    @pytest.mark.asyncio
    async def test_persistence_failure_reported(self, manager, sample_client, fake_supabase):
        """A failing source write is reported as FAILED without raising."""
        fake_supabase.failures[(RESEARCH_SOURCES_TABLE, "upsert")] = RuntimeError("db down")

        result = await manager.run_for_client(sample_client)

        assert {o.status for o in result.outcomes} == {FetchStatus.FAILED}
        assert all("db down" in o.error for o in result.outcomes)

    @pytest.mark.asyncio
    async def test_client_without_company_records_empty_attempts(
        self, manager, sources, fake_supabase
    ):
        client = ClientProfile(id="c2", user_id="user-1", name="No Co")

        result = await manager.run_for_client(client)

        assert {o.status for o in result.outcomes} == {FetchStatus.EMPTY}
        sources.serpapi.search_company_news.assert_not_awaited()


# ===========================================================================
# Field isolation
# ===========================================================================


class TestFieldIsolation:

    @pytest.mark.asyncio
    async def test_source_write_leaves_other_rows_untouched(
        self, manager, sample_client, fake_supabase, clock
    ):
        """Refreshing one source never changes another source's row."""
        other = {
            "client_id": sample_client.id,
            "user_id": sample_client.user_id,
            "source": "linkedin",
            "last_updated": (clock.now - timedelta(hours=2)).isoformat(),
            "data": {"company_info": {"name": "Keep"}},
        }
        fake_supabase.tables[RESEARCH_SOURCES_TABLE] = [dict(other)]

        await manager.run_for_client(sample_client)

        assert _source_row(fake_supabase, "linkedin") == other
        upserted = [p["source"] for op, p in fake_supabase.writes(RESEARCH_SOURCES_TABLE)]
        assert "linkedin" not in upserted

    @pytest.mark.asyncio
    async def test_other_users_research_untouched(self, manager, sample_client, fake_supabase):
        """Research is keyed by (client, user); another user's rows are separate."""
        foreign = {
            "client_id": sample_client.id,
            "user_id": "user-2",
            "source": "apollo",
            "last_updated": "2020-01-01T00:00:00+00:00",
            "data": {"x": 1},
        }
        fake_supabase.tables[RESEARCH_SOURCES_TABLE] = [dict(foreign)]

        await manager.run_for_client(sample_client)

        assert foreign in fake_supabase.rows(RESEARCH_SOURCES_TABLE)


# ===========================================================================
# Concurrency
# ===========================================================================


class TestConcurrentCycles:

    @pytest.mark.asyncio
    async def test_duplicate_cycle_refused(self, manager, sources, sample_client, sample_articles):
        """A second cycle for the same pair returns None while the first runs."""
        release = asyncio.Event()

        async def slow_news(*args, **kwargs):
            await release.wait()
            return sample_articles

        sources.serpapi.search_company_news.side_effect = slow_news

        first = asyncio.create_task(manager.run_for_client(sample_client))
        await asyncio.sleep(0)
        second = await manager.run_for_client(sample_client)
        release.set()
        first_result = await first

        assert second is None
        assert first_result is not None
        assert sources.serpapi.search_company_news.await_count == 1

    @pytest.mark.asyncio
    async def test_guard_released_after_failure(self, manager, sample_client, fake_supabase):
        """A cycle that raises does not block later cycles."""
        fake_supabase.failures[(RESEARCH_SOURCES_TABLE, "select")] = RuntimeError("read failed")
        with pytest.raises(RuntimeError):
            await manager.run_for_client(sample_client)

        del fake_supabase.failures[(RESEARCH_SOURCES_TABLE, "select")]
        assert await manager.run_for_client(sample_client) is not None


# ===========================================================================
# Due-client selection
# ===========================================================================


class TestIsDue:

    def _record(self, client, when):
        return ResearchRecord(
            client_id=client.id, user_id=client.user_id, last_updated={"google": when}
        )

    def test_never_researched_is_due(self, manager, sample_client):
        assert manager.is_due(sample_client, None) is True

    def test_recent_research_is_not_due_even_with_triggers(self, manager, clock):
        client = ClientProfile(
            id="c", user_id="u", company="Acme", notes="pricing call",
            deals=[{"status": "proposal"}], follow_up_date=clock.now,
        )
        assert manager.is_due(client, self._record(client, clock.now - timedelta(hours=3))) is False

    def test_upcoming_follow_up_is_due(self, manager, clock):
        client = ClientProfile(
            id="c", user_id="u", company="Acme", follow_up_date=clock.now + timedelta(days=6)
        )
        assert manager.is_due(client, self._record(client, clock.now - timedelta(days=1))) is True

    def test_distant_follow_up_not_due(self, manager, clock):
        client = ClientProfile(
            id="c", user_id="u", company="Acme", follow_up_date=clock.now + timedelta(days=30)
        )
        assert manager.is_due(client, self._record(client, clock.now - timedelta(days=1))) is False

    def test_stale_research_is_due(self, manager, clock):
        client = ClientProfile(id="c", user_id="u", company="Acme")
        assert manager.is_due(client, self._record(client, clock.now - timedelta(days=14))) is True

    @pytest.mark.parametrize(
        "notes,deals",
        [
            ("Sent the contract draft", []),
            ("Wants PRICING details", []),
            ("", [{"status": "proposal"}]),
        ],
    )
    def test_deal_signals_are_due(self, manager, clock, notes, deals):
        client = ClientProfile(id="c", user_id="u", company="Acme", notes=notes, deals=deals)
        assert manager.is_due(client, self._record(client, clock.now - timedelta(days=1))) is True


# ===========================================================================
# Orchestration and refresh
# ===========================================================================


def _client_row(i, user_id="user-1", active=True):
    return {
        "id": f"client-{i}",
        "user_id": user_id,
        "name": f"Contact {i}",
        "company": f"Company {i}",
        "is_active": active,
    }


class TestOrchestrate:

    @pytest.mark.asyncio
    async def test_runs_in_batches_with_delay(self, db, sources, llm, clock, fake_supabase):
        from salessynth.config import Settings

        fake_supabase.tables["clients"] = [_client_row(i) for i in range(7)]
        sleep = AsyncMock()
        manager = ResearchManager(
            db, sources, InsightGenerator(llm),
            Settings(batch_size=3, batch_delay_seconds=5), clock=clock, sleep=sleep,
        )

        results = await manager.orchestrate()

        assert len(results) == 7
        assert sleep.await_count == 2
        sleep.assert_awaited_with(5)

    @pytest.mark.asyncio
    async def test_skips_inactive_and_recent(self, manager, fake_supabase, clock):
        fake_supabase.tables["clients"] = [
            _client_row(1),
            _client_row(2, active=False),
            _client_row(3),
        ]
        fake_supabase.tables[RESEARCH_SOURCES_TABLE] = [{
            "client_id": "client-3",
            "user_id": "user-1",
            "source": "google",
            "last_updated": (clock.now - timedelta(hours=1)).isoformat(),
        }]

        results = await manager.orchestrate()

        assert [r.client_id for r in results] == ["client-1"]

    @pytest.mark.asyncio
    async def test_restricts_to_user(self, manager, fake_supabase):
        fake_supabase.tables["clients"] = [_client_row(1), _client_row(2, user_id="user-2")]

        results = await manager.orchestrate(user_id="user-2")

        assert [r.client_id for r in results] == ["client-2"]

    @pytest.mark.asyncio
    async def test_no_clients(self, manager):
        assert await manager.orchestrate() == []


class TestRefreshAndRead:

    @pytest.mark.asyncio
    async def test_refresh_runs_cycle(self, manager, fake_supabase):
        fake_supabase.tables["clients"] = [_client_row(1)]

        result = await manager.refresh_client_research("client-1", "user-1")

        assert result.fetched_sources == ALL_SOURCES

    @pytest.mark.asyncio
    async def test_refresh_other_users_client_refused(self, manager, sources, fake_supabase):
        fake_supabase.tables["clients"] = [_client_row(1)]

        assert await manager.refresh_client_research("client-1", "user-2") is None
        sources.serpapi.search_company_news.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_refresh_respects_cooldown(self, manager, fake_supabase, clock):
        fake_supabase.tables["clients"] = [_client_row(1)]
        await manager.refresh_client_research("client-1", "user-1")

        clock.advance(minutes=5)
        result = await manager.refresh_client_research("client-1", "user-1")

        assert result.fetched_sources == []

    @pytest.mark.asyncio
    async def test_get_client_research(self, manager, sample_client, clock):
        assert await manager.get_client_research(sample_client.id, sample_client.user_id) is None

        await manager.run_for_client(sample_client)
        record = await manager.get_client_research(sample_client.id, sample_client.user_id)

        assert set(record.data) == {s.value for s in ALL_SOURCES}
        assert record.latest_update == clock.now
        assert record.to_dict()["timestamp"] == clock.now.isoformat()
