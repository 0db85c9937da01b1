"""
Data Providers

The insights engine reads everything it analyzes through a DataProvider.
SqlDataProvider serves it from the metric store tables populated by the
integration sync jobs.
"""
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional
import math

import numpy as np
from sqlalchemy import func
from sqlalchemy.orm import Session

from growth_insights.models.base import SessionLocal
from growth_insights.models.context import (
    BusinessContext,
    CustomerRecord,
    DataQualityIssue,
    DataQualityReport,
    DateRange,
)
from growth_insights.models.insight import ChannelData, MetricSample
from growth_insights.models.metrics import CustomerSummary, DataPoint, OrganizationProfile
from growth_insights.utils.helpers import calendar_day, days_between
from growth_insights.utils.logger import log


QUALITY_METRICS = ["revenue", "orders", "sessions", "conversions"]

# Raw metric_type values stored by sync jobs that map onto another metric kind
METRIC_ALIASES = {"pageviews": "traffic", "users": "customers"}

CHANNEL_NAMES = {
    "shopify": "Shopify",
    "stripe": "Stripe",
    "google_analytics": "Google Analytics",
    "facebook_ads": "Facebook Ads",
}

QUALITY_RECOMMENDATIONS = {
    "missing_data": ["Check integration connection status", "Verify API credentials and permissions"],
    "stale_data": ["Enable automatic data synchronization", "Set up monitoring for data freshness"],
    "outliers": ["Review data validation rules", "Implement outlier detection and alerting"],
    "inconsistent_format": ["Standardize data formatting across sources", "Implement data transformation pipelines"],
}


def metric_kind(metric_type: str) -> str:
    metric_type = metric_type.lower()
    return METRIC_ALIASES.get(metric_type, metric_type)


def raw_metric_types(kind: str) -> List[str]:
    """Every stored metric_type that reads as this metric kind"""
    return [kind] + [raw for raw, alias in METRIC_ALIASES.items() if alias == kind]


def infer_business_size(monthly_revenue: float) -> str:
    if monthly_revenue < 10000:
        return "micro"
    if monthly_revenue < 100000:
        return "small"
    return "medium"


def channel_name(platform: str) -> str:
    platform = platform.lower()
    return CHANNEL_NAMES.get(platform, platform[:1].upper() + platform[1:])


def score_data_quality(
    coverage: Dict[str, float],
    freshness: Dict[str, datetime],
    issues: List[DataQualityIssue],
    metric_count: int = len(QUALITY_METRICS)
) -> float:
    """Coverage counts for 50%, freshness for 30%, and an issue penalty for 20%"""
    avg_coverage = float(np.mean(list(coverage.values()))) if coverage else 0.0
    freshness_score = len(freshness) / metric_count if metric_count else 0.0
    issues_penalty = min(0.3, len(issues) * 0.05)
    return max(0.0, min(1.0, avg_coverage * 0.5 + freshness_score * 0.3 + (1 - issues_penalty) * 0.2))


def quality_recommendations(issues: List[DataQualityIssue]) -> List[str]:
    recommendations = []
    for issue in issues:
        for recommendation in QUALITY_RECOMMENDATIONS.get(issue.type, []):
            if recommendation not in recommendations:
                recommendations.append(recommendation)
    return recommendations


class DataProvider(ABC):
    """
    Read-only source of metric series and business context for one or more
    organizations
    """

    @abstractmethod
    async def fetch_series(self, organization_id: str, metric: str, date_range: DateRange) -> List[MetricSample]:
        """
        Fetch one metric's samples for a date range

        Args:
            organization_id: Tenant to read
            metric: Metric kind (revenue, orders, sessions, conversions, customers, traffic)
            date_range: Inclusive range to read

        Returns:
            Samples ordered by timestamp
        """
        pass

    @abstractmethod
    async def fetch_business_context(self, organization_id: str) -> BusinessContext:
        """
        Describe the business (size, channels, revenue) for scoring
        """
        pass

    @abstractmethod
    async def validate_data_quality(self, organization_id: str, date_range: DateRange) -> DataQualityReport:
        """
        Score coverage and freshness of the organization's data

        Returns:
            DataQualityReport with a score in [0, 1]
        """
        pass

    @abstractmethod
    async def list_available_metrics(self, organization_id: str) -> List[str]:
        """
        Metric kinds the organization has any data for
        """
        pass

    async def fetch_channels(self, organization_id: str, date_range: DateRange) -> List[ChannelData]:
        """Per-channel totals; providers without channel data return none"""
        return []

    async def fetch_customers(self, organization_id: str, date_range: DateRange) -> List[CustomerRecord]:
        """Per-customer rollups; providers without customer data return none"""
        return []


class SqlDataProvider(DataProvider):
    """
    Serves metrics from the data_points, organization_profiles and
    customer_summaries tables
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        clock: Callable[[], datetime] = datetime.utcnow
    ):
        self.session_factory = session_factory
        self.clock = clock

    async def fetch_series(self, organization_id: str, metric: str, date_range: DateRange) -> List[MetricSample]:
        db = self.session_factory()
        try:
            rows = db.query(DataPoint).filter(
                DataPoint.organization_id == organization_id,
                DataPoint.metric_type.in_(raw_metric_types(metric)),
                DataPoint.date_recorded >= date_range.start,
                DataPoint.date_recorded <= date_range.end
            ).order_by(DataPoint.date_recorded).all()

            return [
                MetricSample(
                    timestamp=row.date_recorded,
                    value=float(row.value),
                    source_tag=row.platform.lower(),
                    metric_kind=metric_kind(row.metric_type),
                )
                for row in rows
            ]
        finally:
            db.close()

    async def fetch_business_context(self, organization_id: str) -> BusinessContext:
        db = self.session_factory()
        try:
            profile = db.query(OrganizationProfile).filter(
                OrganizationProfile.organization_id == organization_id
            ).first()

            monthly_revenue = self._recent_monthly_revenue(db, organization_id)

            if profile and profile.connected_platforms:
                channels = [p.lower() for p in profile.connected_platforms]
            else:
                channels = sorted({
                    platform.lower() for (platform,) in db.query(DataPoint.platform).filter(
                        DataPoint.organization_id == organization_id
                    ).distinct()
                })

            return BusinessContext(
                business_size=infer_business_size(monthly_revenue),
                primary_channels=channels,
                monthly_revenue=monthly_revenue,
                seasonal_business=bool(profile.seasonal_business) if profile else False,
                industry=profile.industry if profile else None,
                business_model=(profile.business_model if profile else None) or "b2c",
            )

        except Exception as e:
            log.error(f"Error getting business context for {organization_id}: {str(e)}")
            return BusinessContext(business_size="small", primary_channels=[], business_model="b2c")
        finally:
            db.close()

    async def validate_data_quality(self, organization_id: str, date_range: DateRange) -> DataQualityReport:
        try:
            issues: List[DataQualityIssue] = []
            coverage: Dict[str, float] = {}
            freshness: Dict[str, datetime] = {}
            now = self.clock()
            expected_days = date_range.days

            for metric in QUALITY_METRICS:
                samples = await self.fetch_series(organization_id, metric, date_range)

                actual_days = len({calendar_day(s.timestamp) for s in samples})
                coverage[metric] = min(1.0, actual_days / expected_days)
                if samples:
                    freshness[metric] = samples[-1].timestamp

                if coverage[metric] < 0.8:
                    issues.append(DataQualityIssue(
                        type="missing_data",
                        severity="high" if coverage[metric] < 0.5 else "medium",
                        description=f"{metric} data is {coverage[metric] * 100:.1f}% complete",
                        affected_metrics=[metric],
                        suggested_fix=f"Check integration status for sources providing {metric} data",
                    ))

                outlier_count = self._simple_outlier_count([s.value for s in samples])
                if samples and outlier_count > len(samples) * 0.1:
                    issues.append(DataQualityIssue(
                        type="outliers",
                        severity="medium",
                        description=f"{metric} contains {outlier_count} potential outliers",
                        affected_metrics=[metric],
                        suggested_fix="Review data collection process for anomalies",
                    ))

                days_since = days_between(freshness[metric], now) if metric in freshness else math.inf
                if days_since > 2:
                    age = "never synced" if math.isinf(days_since) else f"{days_since} days old"
                    issues.append(DataQualityIssue(
                        type="stale_data",
                        severity="high" if days_since > 7 else "medium",
                        description=f"{metric} data is {age}",
                        affected_metrics=[metric],
                        suggested_fix="Check integration sync status and re-sync if necessary",
                    ))

            score = score_data_quality(coverage, freshness, issues)
            log.info(f"Data quality for {organization_id}: {score:.2f} ({len(issues)} issues)")

            return DataQualityReport(
                score=score,
                issues=issues,
                recommendations=quality_recommendations(issues),
                coverage=coverage,
                freshness=freshness,
            )

        except Exception as e:
            log.error(f"Error validating data quality for {organization_id}: {str(e)}")
            return DataQualityReport(
                score=0.0,
                issues=[DataQualityIssue(
                    type="missing_data",
                    severity="high",
                    description="Unable to assess data quality",
                    affected_metrics=[],
                    suggested_fix="Check database connection and data availability",
                )],
                recommendations=["Verify data integration status"],
            )

    async def list_available_metrics(self, organization_id: str) -> List[str]:
        db = self.session_factory()
        try:
            rows = db.query(DataPoint.metric_type).filter(
                DataPoint.organization_id == organization_id
            ).distinct().all()
            return sorted({metric_kind(metric_type) for (metric_type,) in rows})
        finally:
            db.close()

    async def fetch_channels(self, organization_id: str, date_range: DateRange) -> List[ChannelData]:
        db = self.session_factory()
        try:
            rows = db.query(
                DataPoint.platform,
                DataPoint.metric_type,
                func.sum(DataPoint.value)
            ).filter(
                DataPoint.organization_id == organization_id,
                DataPoint.metric_type.in_(["revenue", "orders", "sessions", "conversions", "spend"]),
                DataPoint.date_recorded >= date_range.start,
                DataPoint.date_recorded <= date_range.end
            ).group_by(DataPoint.platform, DataPoint.metric_type).all()

            totals: Dict[str, Dict[str, float]] = {}
            for platform, metric_type, total in rows:
                totals.setdefault(platform.lower(), {})[metric_type] = float(total or 0)

            channels = [
                ChannelData(
                    name=channel_name(platform),
                    source=platform,
                    revenue=metrics.get("revenue", 0.0),
                    orders=int(metrics.get("orders", 0)),
                    sessions=int(metrics.get("sessions", 0)),
                    conversions=int(metrics.get("conversions", 0)),
                    spend=metrics.get("spend"),
                )
                for platform, metrics in sorted(totals.items())
            ]
            log.debug(f"Aggregated {len(channels)} channels for {organization_id}")
            return channels
        finally:
            db.close()

    async def fetch_customers(self, organization_id: str, date_range: DateRange) -> List[CustomerRecord]:
        db = self.session_factory()
        try:
            rows = db.query(CustomerSummary).filter(
                CustomerSummary.organization_id == organization_id,
                CustomerSummary.acquisition_date <= date_range.end
            ).all()

            return [
                CustomerRecord(
                    customer_id=row.customer_id,
                    acquisition_date=row.acquisition_date,
                    total_revenue=float(row.total_revenue or 0),
                    order_count=int(row.order_count or 0),
                    average_order_value=float(row.total_revenue or 0) / row.order_count if row.order_count else 0.0,
                    last_order_date=row.last_order_date,
                    acquisition_channel=row.acquisition_channel or "unknown",
                    lifetime_value=row.lifetime_value,
                )
                for row in rows
            ]
        finally:
            db.close()

    def _recent_monthly_revenue(self, db: Session, organization_id: str) -> float:
        since = self.clock() - timedelta(days=30)
        total = db.query(func.sum(DataPoint.value)).filter(
            DataPoint.organization_id == organization_id,
            DataPoint.metric_type == "revenue",
            DataPoint.date_recorded >= since
        ).scalar()
        return float(total or 0)

    @staticmethod
    def _simple_outlier_count(values: List[float]) -> int:
        """Values more than two standard deviations from the mean"""
        if len(values) < 5:
            return 0
        arr = np.array(values, dtype=float)
        std = float(np.std(arr, ddof=1)) or 1.0
        return int(np.sum(np.abs(arr - arr.mean()) > 2 * std))
