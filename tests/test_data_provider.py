"""
Tests for the SQL data provider against an in-memory SQLite metric store.
"""
import asyncio
from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from growth_insights.models.base import init_db
from growth_insights.models.context import DateRange
from growth_insights.models.metrics import CustomerSummary, DataPoint, OrganizationProfile
from growth_insights.services.data_provider import (
    SqlDataProvider,
    channel_name,
    infer_business_size,
    metric_kind,
    score_data_quality,
)


NOW = datetime(2024, 4, 1, 12, 0)
WINDOW = DateRange.last(30, end=NOW)


def _run(coro):
    return asyncio.run(coro)


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def provider(session_factory):
    return SqlDataProvider(session_factory=session_factory, clock=lambda: NOW)


def _add(session_factory, rows):
    db = session_factory()
    try:
        db.add_all(rows)
        db.commit()
    finally:
        db.close()


def _daily(org, metric, platform, value, days=31, start=WINDOW.start):
    return [
        DataPoint(
            organization_id=org,
            metric_type=metric,
            platform=platform,
            value=value,
            date_recorded=start + timedelta(days=i),
        )
        for i in range(days)
    ]


@pytest.fixture
def populated(session_factory):
    rows = []
    rows += _daily("org_1", "revenue", "shopify", 1000)
    rows += _daily("org_1", "orders", "shopify", 10)
    rows += _daily("org_1", "sessions", "google_analytics", 400)
    rows += _daily("org_1", "conversions", "google_analytics", 10)
    rows += _daily("org_1", "pageviews", "google_analytics", 900, days=3)
    rows += _daily("org_2", "revenue", "stripe", 5)
    _add(session_factory, rows)
    return session_factory


class TestSeries:

    def test_fetch_series_in_order(self, provider, populated):
        samples = _run(provider.fetch_series("org_1", "revenue", WINDOW))
        assert len(samples) == 31
        assert [s.timestamp for s in samples] == sorted(s.timestamp for s in samples)
        assert samples[0].source_tag == "shopify"
        assert samples[0].metric_kind == "revenue"

    def test_range_is_respected(self, provider, populated):
        week = DateRange.last(7, end=NOW)
        samples = _run(provider.fetch_series("org_1", "revenue", week))
        assert all(week.start <= s.timestamp <= week.end for s in samples)
        assert len(samples) == 8

    def test_aliases_read_as_metric_kind(self, provider, populated):
        samples = _run(provider.fetch_series("org_1", "traffic", WINDOW))
        assert len(samples) == 3
        assert all(s.metric_kind == "traffic" for s in samples)

    def test_organizations_are_isolated(self, provider, populated):
        samples = _run(provider.fetch_series("org_2", "revenue", WINDOW))
        assert {s.source_tag for s in samples} == {"stripe"}

    def test_available_metrics(self, provider, populated):
        metrics = _run(provider.list_available_metrics("org_1"))
        assert metrics == ["conversions", "orders", "revenue", "sessions", "traffic"]


class TestBusinessContext:

    def test_inferred_from_recent_revenue(self, provider, populated):
        context = _run(provider.fetch_business_context("org_1"))
        # 30 daily rows fall inside the trailing 30 days
        assert context.monthly_revenue == pytest.approx(30000)
        assert context.business_size == "small"
        assert context.primary_channels == ["google_analytics", "shopify"]
        assert context.business_model == "b2c"

    def test_profile_overrides_channels(self, provider, populated, session_factory):
        _add(session_factory, [OrganizationProfile(
            organization_id="org_1",
            industry="retail",
            seasonal_business=True,
            connected_platforms=["Shopify", "Klaviyo"],
        )])
        context = _run(provider.fetch_business_context("org_1"))
        assert context.primary_channels == ["shopify", "klaviyo"]
        assert context.seasonal_business
        assert context.industry == "retail"

    def test_small_revenue_is_micro(self, provider, populated):
        context = _run(provider.fetch_business_context("org_2"))
        assert context.business_size == "micro"


class TestDataQuality:

    def test_complete_fresh_data_scores_full(self, provider, populated):
        report = _run(provider.validate_data_quality("org_1", WINDOW))
        assert report.score == pytest.approx(1.0)
        assert report.issues == []
        assert report.coverage["revenue"] == 1.0
        assert set(report.freshness) == {"revenue", "orders", "sessions", "conversions"}

    def test_empty_organization(self, provider, populated):
        report = _run(provider.validate_data_quality("org_missing", WINDOW))
        # no coverage, no freshness, issue penalty capped at 30%
        assert report.score == pytest.approx(0.14)
        assert {issue.type for issue in report.issues} == {"missing_data", "stale_data"}
        assert "Check integration connection status" in report.recommendations

    def test_stale_data_flagged(self, provider, session_factory):
        old = WINDOW.start
        rows = []
        for metric in ["revenue", "orders", "sessions", "conversions"]:
            rows += _daily("org_1", metric, "shopify", 10, days=10, start=old)
        _add(session_factory, rows)

        report = _run(provider.validate_data_quality("org_1", WINDOW))
        stale = [i for i in report.issues if i.type == "stale_data"]
        assert len(stale) == 4
        assert all(i.severity == "high" for i in stale)
        assert report.score < 0.8


class TestChannelsAndCustomers:

    def test_channels_aggregate_by_platform(self, provider, session_factory):
        rows = []
        rows += _daily("org_1", "revenue", "shopify", 100, days=10)
        rows += _daily("org_1", "sessions", "shopify", 50, days=10)
        rows += _daily("org_1", "spend", "shopify", 20, days=10)
        rows += _daily("org_1", "revenue", "facebook_ads", 30, days=10)
        _add(session_factory, rows)

        channels = _run(provider.fetch_channels("org_1", WINDOW))
        by_source = {c.source: c for c in channels}

        assert set(by_source) == {"facebook_ads", "shopify"}
        assert by_source["shopify"].revenue == pytest.approx(1000)
        assert by_source["shopify"].sessions == 500
        assert by_source["shopify"].roi == pytest.approx(400.0)
        assert by_source["facebook_ads"].spend is None
        assert by_source["facebook_ads"].name == "Facebook Ads"

    def test_customers(self, provider, session_factory):
        _add(session_factory, [
            CustomerSummary(
                organization_id="org_1",
                customer_id="c1",
                acquisition_date=NOW - timedelta(days=200),
                acquisition_channel="email",
                total_revenue=300.0,
                order_count=3,
                last_order_date=NOW - timedelta(days=90),
            ),
            CustomerSummary(
                organization_id="org_2",
                customer_id="c1",
                acquisition_date=NOW - timedelta(days=20),
                total_revenue=50.0,
                order_count=1,
                last_order_date=NOW - timedelta(days=20),
            ),
        ])

        customers = _run(provider.fetch_customers("org_1", WINDOW))
        assert len(customers) == 1
        assert customers[0].average_order_value == pytest.approx(100.0)
        assert customers[0].acquisition_channel == "email"
        assert customers[0].value == 300.0


def test_helpers():
    assert metric_kind("PageViews") == "traffic"
    assert metric_kind("revenue") == "revenue"
    assert infer_business_size(9999) == "micro"
    assert infer_business_size(10000) == "small"
    assert infer_business_size(100000) == "medium"
    assert channel_name("google_analytics") == "Google Analytics"
    assert channel_name("klaviyo") == "Klaviyo"
    assert score_data_quality({}, {}, []) == pytest.approx(0.2)
