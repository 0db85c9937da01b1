"""
End-to-end tests for insight generation against an in-memory provider.

Covers:
  - Single-flight: concurrent identical requests hit the provider once
  - Cache reuse, tagging and invalidation
  - Data quality gate (nothing cached on failure)
  - Family isolation (one failing family does not sink the run)
  - Filters, job tracking and purge
"""
import asyncio
from datetime import datetime

import pytest

from growth_insights.models.insight import ChannelData, InsightKind, Priority
from growth_insights.models.job import EngineConfiguration, GenerationJob, GenerationOptions, JobStatus
from growth_insights.services.insights_engine import EngineRegistry, InsightsEngine, daily_totals, parse_timeframe
from growth_insights.utils.cache import CacheRegistry
from growth_insights.utils.exceptions import DataQualityTooLowError

from fakes import NOW, FakeClock, FakeProvider, daily_series as _series


def _run(coro):
    return asyncio.run(coro)


def _engine(provider=None, clock=None, **config):
    return InsightsEngine(
        "org_1",
        provider or FakeProvider(),
        configuration=EngineConfiguration(**config),
        clock=clock or FakeClock(),
    )


# ────────────────────────────────────────────
# GENERATION
# ────────────────────────────────────────────


class TestGeneration:

    def test_ramp_produces_ranked_trend_insights(self):
        engine = _engine()
        insights = _run(engine.generate_insights("30d"))

        kinds = {i.kind for i in insights}
        assert InsightKind.TREND in kinds
        scores = [i.impact_score for i in insights]
        assert scores == sorted(scores, reverse=True)
        for insight in insights:
            assert 1 <= insight.impact_score <= 10
            assert 0 <= insight.confidence <= 1
            assert isinstance(insight.metadata.priority, Priority)
            assert insight.metadata.priority_reasoning

    def test_trend_insight_details(self):
        insights = _run(_engine().generate_insights("30d"))
        trend = next(i for i in insights if i.kind == InsightKind.TREND and i.details.trend and not i.details.forecast)

        assert trend.details.metric == "revenue"
        assert trend.details.trend.direction == "increasing"
        assert trend.details.change_percent == pytest.approx(30.0)
        assert trend.title == "Revenue Growing"

    def test_spike_becomes_single_anomaly_from_both_methods(self):
        values = [100 + (i % 3) - 1 for i in range(30)] + [1000]
        engine = _engine(FakeProvider(series={"revenue": _series(values)}))
        insights = _run(engine.generate_insights("30d"))

        anomalies = [i for i in insights if i.kind == InsightKind.ANOMALY]
        assert len(anomalies) == 1
        assert anomalies[0].details.outlier.value == 1000
        assert anomalies[0].details.methods == ["zscore", "iqr"]
        assert anomalies[0].timeframe == "1d"

    def test_channel_performance_insight(self):
        channels = [
            ChannelData("Shopify", "shopify", revenue=10000, orders=100, sessions=5000, conversions=100, spend=2000),
            ChannelData("Facebook Ads", "facebook_ads", revenue=3000, orders=40, sessions=4000, conversions=40, spend=2500),
        ]
        insights = _run(_engine(FakeProvider(channels=channels)).generate_insights("30d"))

        performance = [i for i in insights if i.kind == InsightKind.PERFORMANCE]
        assert len(performance) == 1
        details = performance[0].details
        assert details.top_performer.name == "Shopify"
        assert details.performance_gap == pytest.approx(62.5)
        assert details.channel_revenue == 3000
        assert performance[0].affected_metrics == ["revenue", "roi", "conversions"]

    def test_single_channel_gives_no_performance_insight(self):
        channels = [ChannelData("Shopify", "shopify", revenue=10000, sessions=5000, spend=2000)]
        insights = _run(_engine(FakeProvider(channels=channels)).generate_insights("30d"))
        assert not [i for i in insights if i.kind == InsightKind.PERFORMANCE]

    def test_failing_family_is_isolated(self):
        engine = _engine(FakeProvider(fail_channels=True))
        insights = _run(engine.generate_insights("30d"))
        assert any(i.kind == InsightKind.TREND for i in insights)

    def test_sequential_mode_matches_parallel_kinds(self):
        parallel = _run(_engine().generate_insights("30d"))
        sequential = _run(_engine(parallel_processing=False).generate_insights("30d"))
        assert sorted(i.title for i in parallel) == sorted(i.title for i in sequential)

    def test_disabled_families_produce_nothing(self):
        engine = _engine(
            enable_trends=False,
            enable_forecasting=False,
            enable_anomaly_detection=False,
            enable_channel_analysis=False,
            enable_recommendations=False,
        )
        assert _run(engine.generate_insights("30d")) == []


class TestFilters:

    def test_max_insights(self):
        insights = _run(_engine().generate_insights("30d", GenerationOptions(max_insights=1)))
        assert len(insights) == 1

    def test_metric_allow_list(self):
        insights = _run(_engine().generate_insights("30d", GenerationOptions(metrics=["orders"])))
        assert insights
        assert all("orders" in i.affected_metrics for i in insights)

    def test_min_confidence(self):
        insights = _run(_engine().generate_insights("30d", GenerationOptions(min_confidence=0.99)))
        assert all(i.confidence >= 0.99 for i in insights)

    def test_forecasts_can_be_excluded(self):
        insights = _run(_engine().generate_insights("30d", GenerationOptions(include_forecasts=False)))
        assert not [i for i in insights if i.kind == InsightKind.TREND and i.details.forecast]


# ────────────────────────────────────────────
# SINGLE-FLIGHT / CACHE
# ────────────────────────────────────────────


class TestSingleFlightAndCache:

    def test_concurrent_identical_requests_fetch_once(self):
        provider = FakeProvider()
        engine = _engine(provider)

        async def scenario():
            return await asyncio.gather(
                engine.generate_insights("30d"),
                engine.generate_insights("30d"),
            )

        first, second = _run(scenario())

        assert provider.calls["fetch_business_context"] == 1
        assert provider.calls["validate_data_quality"] == 1
        assert [i.id for i in first] == [i.id for i in second]

    def test_same_fetch_count_as_a_single_request(self):
        single = FakeProvider()
        _run(_engine(single).generate_insights("30d"))

        double = FakeProvider()
        engine = _engine(double)

        async def scenario():
            await asyncio.gather(engine.generate_insights("30d"), engine.generate_insights("30d"))

        _run(scenario())
        assert double.calls == single.calls

    def test_repeat_request_served_from_cache(self):
        provider = FakeProvider()
        engine = _engine(provider)

        first = _run(engine.generate_insights("30d"))
        second = _run(engine.generate_insights("30d"))

        assert provider.calls["fetch_business_context"] == 1
        assert [i.id for i in first] == [i.id for i in second]
        assert len(engine.cache) == 1

    def test_different_options_are_cached_separately(self):
        provider = FakeProvider()
        engine = _engine(provider)
        _run(engine.generate_insights("30d"))
        _run(engine.generate_insights("30d", GenerationOptions(max_insights=1)))
        assert provider.calls["fetch_business_context"] == 2
        assert len(engine.cache) == 2

    def test_cache_disabled(self):
        provider = FakeProvider()
        engine = _engine(provider, cache_enabled=False)
        _run(engine.generate_insights("30d"))
        _run(engine.generate_insights("30d"))
        assert provider.calls["fetch_business_context"] == 2
        assert len(engine.cache) == 0
        assert engine.invalidate_cache(["data_update"]) == 0

    def test_data_update_invalidates_generated_sets(self):
        engine = _engine()
        _run(engine.generate_insights("30d"))
        assert engine.invalidate_cache(["data_update"]) == 1
        assert len(engine.cache) == 0

    def test_manual_refresh_invalidates_generated_sets(self):
        engine = _engine()
        _run(engine.generate_insights("30d"))
        assert engine.invalidate_cache(["manual_refresh"]) == 1

    def test_global_invalidation_reaches_every_organization(self):
        registry = EngineRegistry(FakeProvider(), EngineConfiguration())
        first, second = registry.get_or_create("org_1"), registry.get_or_create("org_2")
        _run(first.generate_insights("30d"))
        _run(second.generate_insights("30d"))

        assert first.invalidate_cache(["global"]) == 2
        assert len(first.cache) == 0
        assert len(second.cache) == 0

    def test_cache_failures_fall_back_to_generation(self, monkeypatch):
        provider = FakeProvider()
        engine = _engine(provider)

        def broken(*args, **kwargs):
            raise RuntimeError("cache store unavailable")

        monkeypatch.setattr(engine.cache, "get", broken)
        monkeypatch.setattr(engine.cache, "set", broken)

        first = _run(engine.generate_insights("30d"))
        second = _run(engine.generate_insights("30d"))

        assert first
        scores = [i.impact_score for i in first]
        assert scores == sorted(scores, reverse=True)
        assert [i.title for i in first] == [i.title for i in second]
        assert provider.calls["fetch_business_context"] == 2


# ────────────────────────────────────────────
# DATA QUALITY GATE
# ────────────────────────────────────────────


class TestDataQualityGate:

    def test_low_quality_fails_and_caches_nothing(self):
        engine = _engine(FakeProvider(quality=0.2))

        with pytest.raises(DataQualityTooLowError, match="Data quality too low"):
            _run(engine.generate_insights("30d"))

        assert len(engine.cache) == 0
        job = next(iter(engine.jobs.values()))
        assert job.status == JobStatus.FAILED
        assert "Data quality too low (20.0%)" in job.error

    def test_quality_at_threshold_passes(self):
        engine = _engine(FakeProvider(quality=0.3))
        _run(engine.generate_insights("30d"))

    def test_data_quality_report(self):
        report = _run(_engine(FakeProvider(quality=0.75)).get_data_quality_report("7d"))
        assert report.score == 0.75


# ────────────────────────────────────────────
# JOBS
# ────────────────────────────────────────────


class TestJobs:

    def test_background_job_completes(self):
        engine = _engine()

        async def scenario():
            job_id = engine.start_generation("30d")
            for _ in range(200):
                status = engine.get_job_status(job_id)
                if status["status"] != "running":
                    return status
                await asyncio.sleep(0.01)
            return engine.get_job_status(job_id)

        status = _run(scenario())
        assert status["status"] == "completed"
        assert status["progress"] == 100
        assert status["results"]
        assert status["completed_at"] is not None

    def test_background_failure_recorded_on_job(self):
        engine = _engine(FakeProvider(quality=0.1))

        async def scenario():
            job_id = engine.start_generation("30d")
            for _ in range(200):
                status = engine.get_job_status(job_id)
                if status["status"] != "running":
                    return status
                await asyncio.sleep(0.01)
            return engine.get_job_status(job_id)

        status = _run(scenario())
        assert status["status"] == "failed"
        assert "Data quality too low" in status["error"]

    def test_finished_jobs_purged_after_retention(self):
        clock = FakeClock()
        engine = _engine(clock=clock, job_retention_seconds=300)
        _run(engine.generate_insights("30d"))
        job_id = next(iter(engine.jobs))

        clock.advance(seconds=299)
        assert engine.get_job_status(job_id) is not None

        clock.advance(seconds=1)
        assert engine.get_job_status(job_id) is None

    def test_unknown_job(self):
        assert _engine().get_job_status("missing") is None

    def test_progress_only_moves_forward(self):
        job = GenerationJob(organization_id="org_1")
        job.start()
        job.advance(40)
        job.advance(20)
        assert job.progress == 40

        job.complete([], NOW)
        job.advance(10)
        assert job.progress == 100
        assert job.status == JobStatus.COMPLETED


# ────────────────────────────────────────────
# REGISTRY / HELPERS
# ────────────────────────────────────────────


class TestRegistry:

    def test_one_engine_per_organization(self):
        registry = EngineRegistry(FakeProvider(), EngineConfiguration())
        assert registry.get_or_create("org_1") is registry.get_or_create("org_1")
        assert registry.get_or_create("org_2") is not registry.get_or_create("org_1")
        assert registry.cache_registry.organizations() == ["org_1", "org_2"]

    def test_close_destroys_cache(self):
        caches = CacheRegistry()
        registry = EngineRegistry(FakeProvider(), EngineConfiguration(), cache_registry=caches)
        engine = registry.get_or_create("org_1")
        _run(engine.generate_insights("30d"))

        assert registry.close("org_1")
        assert caches.get("org_1") is None
        assert registry.get("org_1") is None
        assert not engine.jobs

    def test_close_cancels_shared_generation(self):
        class StalledProvider(FakeProvider):
            async def fetch_business_context(self, organization_id):
                self.calls["fetch_business_context"] += 1
                await asyncio.sleep(10)

        provider = StalledProvider()
        caches = CacheRegistry()
        engine = InsightsEngine(
            "org_1", provider, configuration=EngineConfiguration(), cache_registry=caches, clock=FakeClock()
        )

        async def scenario():
            engine.start_generation("30d")
            while provider.calls["fetch_business_context"] == 0:
                await asyncio.sleep(0)
            cache = engine.cache
            assert cache.in_flight() == 1

            engine.close()
            await asyncio.sleep(0.01)
            return cache, cache.in_flight()

        cache, in_flight_after_close = _run(scenario())
        assert in_flight_after_close == 0
        assert len(cache) == 0
        assert provider.calls["validate_data_quality"] == 0

    def test_find_job_across_organizations(self):
        registry = EngineRegistry(FakeProvider(), EngineConfiguration())
        engine = registry.get_or_create("org_2")
        _run(engine.generate_insights("30d"))
        job_id = next(iter(engine.jobs))
        assert registry.find_job(job_id)["organization_id"] == "org_2"
        assert registry.find_job("missing") is None


def test_parse_timeframe():
    assert parse_timeframe("7d", NOW).start == datetime(2024, 3, 25)
    assert parse_timeframe("1y", NOW).start == datetime(2023, 4, 2)
    assert parse_timeframe("bogus", NOW) == parse_timeframe("30d", NOW)
    assert parse_timeframe("30d", NOW).end == datetime(2024, 4, 1, 23, 59, 59)


def test_daily_totals_sum_sources():
    series = _series([10, 20], source="shopify") + _series([5, 5], source="stripe")
    totals = daily_totals(series)
    assert [s.value for s in totals] == [15, 25]
    assert all(s.source_tag == "all" for s in totals)
