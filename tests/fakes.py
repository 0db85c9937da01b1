"""
In-memory collaborators shared by the engine and API tests
"""
import asyncio
from datetime import datetime, timedelta

from growth_insights.models.context import BusinessContext, DataQualityReport
from growth_insights.models.insight import MetricSample
from growth_insights.services.data_provider import DataProvider


NOW = datetime(2024, 4, 1, 12, 0)
START = datetime(2024, 3, 1)


def daily_series(values, metric="revenue", source="shopify", start=START):
    return [
        MetricSample(timestamp=start + timedelta(days=i), value=float(v), source_tag=source, metric_kind=metric)
        for i, v in enumerate(values)
    ]


class FakeClock:
    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FakeProvider(DataProvider):
    """In-memory provider that counts every call"""

    def __init__(self, series=None, quality=0.9, channels=None, fail_channels=False):
        self.series = series if series is not None else {"revenue": daily_series(range(100, 131))}
        self.quality = quality
        self.channels = channels or []
        self.fail_channels = fail_channels
        self.calls = {
            "fetch_series": 0,
            "fetch_business_context": 0,
            "validate_data_quality": 0,
            "list_available_metrics": 0,
        }

    async def fetch_series(self, organization_id, metric, date_range):
        self.calls["fetch_series"] += 1
        await asyncio.sleep(0)
        return list(self.series.get(metric, []))

    async def fetch_business_context(self, organization_id):
        self.calls["fetch_business_context"] += 1
        await asyncio.sleep(0.01)
        return BusinessContext(business_size="small", primary_channels=["shopify"], monthly_revenue=3500)

    async def validate_data_quality(self, organization_id, date_range):
        self.calls["validate_data_quality"] += 1
        return DataQualityReport(score=self.quality)

    async def list_available_metrics(self, organization_id):
        self.calls["list_available_metrics"] += 1
        return sorted(self.series)

    async def fetch_channels(self, organization_id, date_range):
        if self.fail_channels:
            raise RuntimeError("channel store offline")
        return list(self.channels)

