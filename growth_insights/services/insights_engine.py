"""
Insights Engine
Orchestrates data fetching, the four analysis families (trend, anomaly,
channel performance, recommendation), impact scoring and caching for one
organization
"""
import asyncio
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

import numpy as np

from growth_insights.ml.business_intelligence import BusinessIntelligence
from growth_insights.ml.complexity_signals import ComplexityAnalyzer
from growth_insights.ml.impact_scorer import ImpactScorer
from growth_insights.ml.statistical_analyzer import StatisticalAnalyzer
from growth_insights.models.context import (
    BusinessContext,
    BusinessMetrics,
    DataQualityReport,
    DateRange,
    TimeContext,
)
from growth_insights.models.insight import (
    ActionItem,
    AnomalyDetails,
    Insight,
    InsightKind,
    InsightMetadata,
    MetricSample,
    Opportunity,
    PerformanceDetails,
    RecommendationDetails,
    Severity,
    TrendDetails,
    TrendResult,
)
from growth_insights.models.job import EngineConfiguration, GenerationJob, GenerationOptions
from growth_insights.services.data_provider import DataProvider
from growth_insights.services.narrative_service import NarrativeGenerator, TemplateNarrativeGenerator
from growth_insights.utils.cache import CacheManager, CacheRegistry, fingerprint
from growth_insights.utils.exceptions import AnalysisFamilyError, DataQualityTooLowError
from growth_insights.utils.logger import log


TIMEFRAME_DAYS = {"7d": 7, "30d": 30, "90d": 90, "1y": 365}
ANOMALY_METRICS = ["revenue", "orders", "sessions", "conversions"]

OPPORTUNITY_HORIZONS = {
    "cross_sell": "short_term",
    "upsell": "short_term",
    "retention": "immediate",
    "acquisition": "medium_term",
    "peak_preparation": "short_term",
    "seasonal": "medium_term",
}


@dataclass
class AnalysisContext:
    """Everything the families share for one generation run"""
    business_context: BusinessContext
    date_range: DateRange
    available_metrics: List[str]
    quality: DataQualityReport
    revenue: List[MetricSample]
    options: GenerationOptions
    time_context: TimeContext
    daily_revenue: List[MetricSample] = field(default_factory=list)


def parse_timeframe(timeframe: str, now: datetime) -> DateRange:
    """'7d' / '30d' / '90d' / '1y' ending today; anything else means 30 days"""
    return DateRange.last(TIMEFRAME_DAYS.get(timeframe, 30), end=now)


def daily_totals(series: Sequence[MetricSample]) -> List[MetricSample]:
    """Sum samples from every source into one sample per calendar day"""
    totals: Dict[datetime, float] = defaultdict(float)
    for sample in series:
        day = sample.timestamp.replace(hour=0, minute=0, second=0, microsecond=0)
        totals[day] += sample.value

    kind = series[0].metric_kind if series else "revenue"
    return [
        MetricSample(timestamp=day, value=value, source_tag="all", metric_kind=kind)
        for day, value in sorted(totals.items())
    ]


class InsightsEngine:
    """
    Generates ranked insights for one organization
    """

    def __init__(
        self,
        organization_id: str,
        provider: DataProvider,
        configuration: Optional[EngineConfiguration] = None,
        narrator: Optional[NarrativeGenerator] = None,
        cache_registry: Optional[CacheRegistry] = None,
        complexity_analyzer: Optional[ComplexityAnalyzer] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.organization_id = organization_id
        self.provider = provider
        self.configuration = configuration or EngineConfiguration.from_settings()
        self.narrator = narrator or TemplateNarrativeGenerator()
        self.analyzer = StatisticalAnalyzer()
        self.complexity_analyzer = complexity_analyzer
        self.clock = clock

        # The cache also carries the in-flight table, so it exists even when caching is off
        self._cache_registry = cache_registry
        if cache_registry is not None:
            self.cache = cache_registry.create(
                organization_id,
                ttl=self.configuration.cache_ttl_seconds,
                max_entries=self.configuration.max_cache_entries,
            )
        else:
            self.cache = CacheManager(
                organization_id,
                default_ttl=self.configuration.cache_ttl_seconds,
                max_entries=self.configuration.max_cache_entries,
            )

        self.jobs: Dict[str, GenerationJob] = {}
        self._tasks: set = set()

    async def generate_insights(
        self,
        timeframe: str = "30d",
        options: Optional[GenerationOptions] = None,
        time_context: Optional[TimeContext] = None
    ) -> List[Insight]:
        """
        Generate, score and rank insights

        Args:
            timeframe: '7d', '30d', '90d' or '1y' (ignored when options.timeframe is set)
            options: Filters and switches for this request
            time_context: Business calendar used for urgency scoring

        Returns:
            Insights ordered by impact score, highest first

        Raises:
            DataQualityTooLowError: the organization's data is too sparse or stale
        """
        job = self._create_job(options or GenerationOptions())
        return await self._run_job(job, timeframe, time_context)

    def start_generation(
        self,
        timeframe: str = "30d",
        options: Optional[GenerationOptions] = None,
        time_context: Optional[TimeContext] = None
    ) -> str:
        """
        Start generation in the background and return the job id for polling

        Must be called from a running event loop.
        """
        job = self._create_job(options or GenerationOptions())
        task = asyncio.get_running_loop().create_task(self._run_job(job, timeframe, time_context))
        self._tasks.add(task)
        task.add_done_callback(self._background_done)
        return job.id

    def get_job_status(self, job_id: str) -> Optional[Dict]:
        self.purge_expired_jobs()
        job = self.jobs.get(job_id)
        return job.to_status_dict() if job else None

    def purge_expired_jobs(self) -> int:
        """Drop terminal jobs older than the retention window. Returns count purged."""
        now = self.clock()
        expired = [
            job_id for job_id, job in self.jobs.items()
            if job.is_expired(now, self.configuration.job_retention_seconds)
        ]
        for job_id in expired:
            del self.jobs[job_id]
        if expired:
            log.debug(f"Purged {len(expired)} finished jobs for {self.organization_id}")
        return len(expired)

    def invalidate_cache(self, triggers: List[str]) -> int:
        """Apply invalidation triggers. "global" reaches every organization in the shared registry."""
        if not self.configuration.cache_enabled:
            return 0
        try:
            if "global" in triggers and self._cache_registry is not None:
                return self._cache_registry.invalidate(self.organization_id, triggers)
            return self.cache.invalidate(self.organization_id, triggers)
        except Exception as e:
            log.warning(f"Cache invalidation failed for {self.organization_id}: {str(e)}")
            return 0

    async def get_data_quality_report(self, timeframe: str = "30d") -> DataQualityReport:
        return await self.provider.validate_data_quality(
            self.organization_id, parse_timeframe(timeframe, self.clock())
        )

    def close(self):
        """Cancel background jobs and shared generations, forget job state and release the cache"""
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
        self.jobs.clear()
        self.cache.cancel_in_flight()

        if self._cache_registry is not None:
            self._cache_registry.destroy(self.organization_id)
        else:
            self.cache.clear()
        log.info(f"Insights engine closed for {self.organization_id}")

    # Job lifecycle

    def _create_job(self, options: GenerationOptions) -> GenerationJob:
        self.purge_expired_jobs()
        job = GenerationJob(organization_id=self.organization_id, options=options, started_at=self.clock())
        self.jobs[job.id] = job
        job.start()
        return job

    async def _run_job(self, job: GenerationJob, timeframe: str, time_context: Optional[TimeContext]) -> List[Insight]:
        options = job.options
        date_range = options.timeframe or parse_timeframe(timeframe, self.clock())
        key = fingerprint(self.organization_id, {**options.fingerprint_payload(), "timeframe": date_range.key()})
        log.info(f"Insight generation {job.id} started for {self.organization_id} ({date_range.days} days)")

        try:
            if self.configuration.cache_enabled:
                cached = self._cache_get(key)
                if cached is not None:
                    job.complete(list(cached), self.clock())
                    log.info(f"Insight generation {job.id} served {len(cached)} insights from cache")
                    return list(cached)

            insights = await self.cache.deduplicate(
                key, lambda: self._generate(job, date_range, options, time_context, key)
            )
            job.complete(list(insights), self.clock())
            log.info(f"Insight generation {job.id} completed with {len(insights)} insights")
            return list(insights)

        except Exception as e:
            job.fail(str(e), self.clock())
            log.error(f"Insight generation {job.id} failed: {str(e)}")
            raise

    def _background_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        # Failures are already recorded on the job
        if not task.cancelled():
            task.exception()

    # Generation pipeline

    async def _generate(
        self,
        job: GenerationJob,
        date_range: DateRange,
        options: GenerationOptions,
        time_context: Optional[TimeContext],
        key: str
    ) -> List[Insight]:
        business_context = await self.provider.fetch_business_context(self.organization_id)
        available_metrics = await self.provider.list_available_metrics(self.organization_id)
        revenue = await self.provider.fetch_series(self.organization_id, "revenue", date_range)
        job.advance(10)

        quality = await self.provider.validate_data_quality(self.organization_id, date_range)
        if quality.score < self.configuration.min_data_quality:
            raise DataQualityTooLowError(quality.score, self.configuration.min_data_quality, quality.issues)
        job.advance(20)

        context = AnalysisContext(
            business_context=business_context,
            date_range=date_range,
            available_metrics=available_metrics,
            quality=quality,
            revenue=revenue,
            options=options,
            time_context=time_context or TimeContext(current_date=self.clock()),
            daily_revenue=daily_totals(revenue),
        )

        families = [
            ("trend", self._trend_family),
            ("anomaly", self._anomaly_family),
            ("channel_performance", self._channel_family),
            ("recommendation", self._recommendation_family),
        ]

        insights: List[Insight] = []
        if self.configuration.parallel_processing:
            results = await asyncio.gather(*(self._run_family(name, family, context) for name, family in families))
            for family_insights in results:
                insights.extend(family_insights)
            job.advance(90)
        else:
            for (name, family), progress in zip(families, [40, 60, 80, 90]):
                insights.extend(await self._run_family(name, family, context))
                job.advance(progress)

        ranked = self._score(insights, context)
        filtered = self._apply_filters(ranked, options)

        if self.configuration.cache_enabled:
            self._cache_set(key, filtered, self._cache_tags(filtered, context))

        return filtered

    async def _run_family(
        self,
        name: str,
        family: Callable[[AnalysisContext], Awaitable[List[Insight]]],
        context: AnalysisContext
    ) -> List[Insight]:
        try:
            insights = await family(context)
            log.info(f"{name} analysis produced {len(insights)} insights")
            return insights
        except Exception as e:
            log.error(str(AnalysisFamilyError(name, e)))
            return []

    async def _trend_family(self, context: AnalysisContext) -> List[Insight]:
        if not self.configuration.enable_trends:
            return []

        daily = context.daily_revenue
        if len(daily) < self.configuration.min_data_points:
            return []

        insights = []
        trend = self.analyzer.calculate_trend(daily)
        if trend and trend.r_squared >= self.configuration.confidence_threshold:
            insights.append(self._trend_insight("revenue", trend, context))

        by_source: Dict[str, List[MetricSample]] = defaultdict(list)
        for sample in context.revenue:
            by_source[sample.source_tag].append(sample)

        if len(by_source) > 1:
            for source, samples in sorted(by_source.items()):
                source_daily = daily_totals(samples)
                if len(source_daily) < self.configuration.min_data_points:
                    continue
                source_trend = self.analyzer.calculate_trend(source_daily)
                if source_trend and source_trend.r_squared >= self.configuration.confidence_threshold:
                    insights.append(self._trend_insight(f"revenue_{source}", source_trend, context))

        if self.configuration.enable_forecasting and context.options.include_forecasts:
            forecast = self.analyzer.generate_forecast(daily)
            if forecast:
                narrative = self.narrator.forecast("revenue", forecast)
                insights.append(Insight(
                    organization_id=self.organization_id,
                    kind=InsightKind.TREND,
                    title=narrative.title,
                    description=narrative.description,
                    recommendation=narrative.recommendation,
                    impact_score=min(10.0, forecast.accuracy * 10),
                    confidence=forecast.confidence,
                    affected_metrics=["revenue"],
                    timeframe=f"{len(forecast.predictions)}d",
                    sample_count=len(daily),
                    metadata=self._metadata(
                        context, "forecasting", forecast.method,
                        {"accuracy": forecast.accuracy, "horizon": len(forecast.predictions)},
                    ),
                    details=TrendDetails(
                        metric="revenue",
                        trend=trend,
                        forecast=forecast,
                        change_percent=_forecast_change(daily, forecast),
                    ),
                    created_at=self.clock(),
                ))

        return insights

    async def _anomaly_family(self, context: AnalysisContext) -> List[Insight]:
        if not self.configuration.enable_anomaly_detection:
            return []

        insights = []
        for metric in ANOMALY_METRICS:
            if metric not in context.available_metrics:
                continue

            if metric == "revenue":
                daily = context.daily_revenue
            else:
                series = await self.provider.fetch_series(self.organization_id, metric, context.date_range)
                daily = daily_totals(series)
            if len(daily) < self.configuration.min_data_points:
                continue

            flagged = self.analyzer.detect_outliers(daily, "zscore") + self.analyzer.detect_outliers(daily, "iqr")

            # Same point flagged by both methods: keep the first record, remember both methods
            unique = {}
            methods = defaultdict(list)
            for outlier in flagged:
                point = (outlier.timestamp, outlier.value)
                unique.setdefault(point, outlier)
                methods[point].append(outlier.method)

            for point, outlier in unique.items():
                if outlier.severity not in (Severity.HIGH, Severity.CRITICAL):
                    continue
                narrative = self.narrator.anomaly(metric, outlier)
                insights.append(Insight(
                    organization_id=self.organization_id,
                    kind=InsightKind.ANOMALY,
                    title=narrative.title,
                    description=narrative.description,
                    recommendation=narrative.recommendation,
                    impact_score=10 if outlier.severity == Severity.CRITICAL else 8,
                    confidence=outlier.confidence,
                    affected_metrics=[metric],
                    timeframe="1d",
                    sample_count=len(daily),
                    metadata=self._metadata(
                        context, "anomaly_detection", outlier.method,
                        {"severity": outlier.severity.value, "deviation": outlier.deviation},
                    ),
                    details=AnomalyDetails(metric=metric, outlier=outlier, methods=methods[point]),
                    created_at=self.clock(),
                ))

        return insights

    async def _channel_family(self, context: AnalysisContext) -> List[Insight]:
        if not self.configuration.enable_channel_analysis:
            return []

        channels = await self.provider.fetch_channels(self.organization_id, context.date_range)
        if len(channels) < 2:
            return []

        intelligence = BusinessIntelligence(context.business_context)
        recommendations = intelligence.analyze_channel_roi(channels)
        top = intelligence.top_performer(channels)
        others = [c for c in channels if c is not top]
        comparisons = [intelligence.compare_channels(top, other) for other in others]
        weakest = intelligence.weakest_channel(channels)
        gap = intelligence.performance_gap(top, weakest)

        narrative = self.narrator.channel_comparison(top, others[0], recommendations)
        average_impact = float(np.mean([r.expected_impact for r in recommendations])) if recommendations else 5000.0

        return [Insight(
            organization_id=self.organization_id,
            kind=InsightKind.PERFORMANCE,
            title=narrative.title,
            description=narrative.description,
            recommendation=narrative.recommendation,
            impact_score=average_impact / 1000,
            confidence=0.8,
            affected_metrics=["revenue", "roi", "conversions"],
            timeframe=f"{context.date_range.days}d",
            sample_count=len(channels),
            metadata=self._metadata(
                context, "channel_performance_analysis", "roi_optimization",
                {"channels": len(channels), "performance_gap": gap},
            ),
            details=PerformanceDetails(
                channels=channels,
                top_performer=top,
                comparisons=comparisons,
                recommendations=recommendations,
                performance_gap=gap,
                channel_revenue=weakest.revenue,
            ),
            created_at=self.clock(),
        )]

    async def _recommendation_family(self, context: AnalysisContext) -> List[Insight]:
        if not self.configuration.enable_recommendations or not context.options.include_recommendations:
            return []

        now = context.time_context.current_date
        intelligence = BusinessIntelligence(context.business_context)
        customers = await self.provider.fetch_customers(self.organization_id, context.date_range)

        opportunities = intelligence.detect_growth_opportunities(context.revenue, customers, as_of=now)
        if self.configuration.enable_seasonality_detection:
            seasonality = self.analyzer.calculate_seasonality(context.daily_revenue)
            if seasonality:
                opportunities.extend(intelligence.seasonal_opportunities(seasonality, as_of=now))

        return [self._recommendation_insight(opportunity, context) for opportunity in opportunities]

    # Insight builders

    def _trend_insight(self, metric: str, trend: TrendResult, context: AnalysisContext) -> Insight:
        change_percent = _trend_change(trend)
        narrative = self.narrator.trend(metric, trend, change_percent)
        strength_multiplier = {"strong": 1.5, "moderate": 1.0}.get(trend.strength, 0.5)

        return Insight(
            organization_id=self.organization_id,
            kind=InsightKind.TREND,
            title=narrative.title,
            description=narrative.description,
            recommendation=narrative.recommendation,
            impact_score=5 * strength_multiplier * trend.r_squared * min(1.0, trend.sample_count / 30),
            confidence=trend.r_squared,
            affected_metrics=["revenue"],
            timeframe=trend.timeframe,
            sample_count=trend.sample_count,
            metadata=self._metadata(
                context, "trend_analysis", "linear_regression",
                {"slope": trend.slope, "r_squared": trend.r_squared, "p_value": trend.p_value},
            ),
            details=TrendDetails(metric=metric, trend=trend, change_percent=change_percent),
            created_at=self.clock(),
        )

    def _recommendation_insight(self, opportunity: Opportunity, context: AnalysisContext) -> Insight:
        narrative = self.narrator.opportunity(opportunity)
        steps = opportunity.implementation_steps
        action_items = [
            ActionItem(id=f"action_{index}", title=step, priority="high" if index == 0 else "medium")
            for index, step in enumerate(steps)
        ]
        if len(steps) <= 2:
            difficulty = "easy"
        elif len(steps) <= 4:
            difficulty = "medium"
        else:
            difficulty = "hard"

        return Insight(
            organization_id=self.organization_id,
            kind=InsightKind.RECOMMENDATION,
            title=narrative.title,
            description=narrative.description,
            recommendation=narrative.recommendation,
            impact_score=max(3.0, opportunity.potential_revenue / 1000),
            confidence=opportunity.confidence,
            affected_metrics=opportunity.affected_metrics,
            timeframe=opportunity.timeframe,
            sample_count=opportunity.sample_count,
            metadata=self._metadata(
                context, f"{opportunity.opportunity_type}_analysis", "opportunity_detection",
                dict(opportunity.parameters),
            ),
            details=RecommendationDetails(
                opportunity_type=opportunity.opportunity_type,
                action_items=action_items,
                expected_impact=opportunity.potential_revenue or None,
                success_probability=opportunity.confidence,
                difficulty=difficulty,
                horizon=OPPORTUNITY_HORIZONS.get(opportunity.opportunity_type, "medium_term"),
            ),
            created_at=self.clock(),
        )

    def _metadata(self, context: AnalysisContext, source: str, algorithm: str, parameters: Dict) -> InsightMetadata:
        return InsightMetadata(
            source=source,
            algorithm=algorithm,
            parameters=parameters,
            data_quality=context.quality.score,
        )

    # Scoring, filtering, caching

    def _score(self, insights: List[Insight], context: AnalysisContext) -> List[Insight]:
        scorer = ImpactScorer(context.business_context, self.complexity_analyzer)
        metrics = self._business_metrics(context)
        scored = scorer.score_insights_batch(insights, metrics, context.time_context)

        ranked = []
        for item in scored:
            insight = item.insight
            insight.impact_score = item.overall_score
            insight.metadata.priority = item.priority
            insight.metadata.priority_reasoning = item.reasoning
            ranked.append(insight)
        return ranked

    def _business_metrics(self, context: AnalysisContext) -> BusinessMetrics:
        daily = [s.value for s in context.daily_revenue]
        monthly_revenue = context.business_context.monthly_revenue
        if not monthly_revenue and daily:
            # Estimate from the most recent 30 days of revenue
            monthly_revenue = float(np.mean(daily[-30:])) * 30

        growth_rate = 0.0
        if len(daily) >= 2:
            half = len(daily) // 2
            earlier, later = float(np.sum(daily[:half])), float(np.sum(daily[-half:]))
            if earlier > 0:
                growth_rate = (later - earlier) / earlier * 100

        return BusinessMetrics(
            monthly_revenue=monthly_revenue or 0.0,
            average_order_value=float(np.mean(daily)) if daily else 0.0,
            growth_rate=growth_rate,
        )

    def _apply_filters(self, insights: List[Insight], options: GenerationOptions) -> List[Insight]:
        filtered = insights

        if options.min_confidence is not None:
            filtered = [i for i in filtered if i.confidence >= options.min_confidence]

        if options.metrics:
            allowed = set(options.metrics)
            filtered = [i for i in filtered if allowed.intersection(i.affected_metrics)]

        filtered = sorted(filtered, key=lambda i: i.impact_score, reverse=True)

        if options.max_insights is not None:
            filtered = filtered[:options.max_insights]

        return filtered

    def _cache_tags(self, insights: List[Insight], context: AnalysisContext) -> set:
        tags = {self.organization_id, "insights", "business_context"}
        tags.update(context.available_metrics)
        kinds = {insight.kind for insight in insights}
        tags.update(kind.value for kind in kinds)
        if InsightKind.PERFORMANCE in kinds:
            tags.add("channel")
        return tags

    def _cache_get(self, key: str) -> Optional[List[Insight]]:
        try:
            return self.cache.get(key)
        except Exception as e:
            log.warning(f"Cache read failed for {self.organization_id}: {str(e)}")
            return None

    def _cache_set(self, key: str, insights: List[Insight], tags: set):
        try:
            self.cache.set(key, insights, ttl=self.configuration.cache_ttl_seconds, tags=tags)
        except Exception as e:
            log.warning(f"Cache write failed for {self.organization_id}: {str(e)}")


class EngineRegistry:
    """
    One engine per organization, all sharing a provider and a cache registry
    """

    def __init__(
        self,
        provider: DataProvider,
        configuration: Optional[EngineConfiguration] = None,
        cache_registry: Optional[CacheRegistry] = None,
        narrator_factory: Callable[[], NarrativeGenerator] = TemplateNarrativeGenerator,
    ):
        self.provider = provider
        self.configuration = configuration or EngineConfiguration.from_settings()
        self.cache_registry = cache_registry or CacheRegistry(
            default_ttl=self.configuration.cache_ttl_seconds,
            max_entries=self.configuration.max_cache_entries,
        )
        self.narrator_factory = narrator_factory
        self._engines: Dict[str, InsightsEngine] = {}

    def get_or_create(self, organization_id: str) -> InsightsEngine:
        engine = self._engines.get(organization_id)
        if engine is None:
            engine = InsightsEngine(
                organization_id,
                self.provider,
                configuration=self.configuration,
                narrator=self.narrator_factory(),
                cache_registry=self.cache_registry,
            )
            self._engines[organization_id] = engine
        return engine

    def get(self, organization_id: str) -> Optional[InsightsEngine]:
        return self._engines.get(organization_id)

    def engines(self) -> List[InsightsEngine]:
        return list(self._engines.values())

    def find_job(self, job_id: str) -> Optional[Dict]:
        for engine in self.engines():
            status = engine.get_job_status(job_id)
            if status is not None:
                return status
        return None

    def purge_expired_jobs(self) -> int:
        return sum(engine.purge_expired_jobs() for engine in self.engines())

    def close(self, organization_id: str) -> bool:
        engine = self._engines.pop(organization_id, None)
        if engine is None:
            return False
        engine.close()
        return True

    def close_all(self):
        for organization_id in list(self._engines):
            self.close(organization_id)


def _trend_change(trend: TrendResult) -> float:
    """Change across the fitted line, as a percentage of its starting value"""
    start = trend.intercept
    end = trend.intercept + trend.slope * (trend.sample_count - 1)
    if start == 0:
        return 0.0
    return (end - start) / abs(start) * 100


def _forecast_change(daily: List[MetricSample], forecast) -> float:
    """Forecast average against the most recent week's average, in %"""
    recent = [s.value for s in daily[-7:]]
    recent_mean = float(np.mean(recent)) if recent else 0.0
    predicted_mean = float(np.mean([p.predicted for p in forecast.predictions]))
    if recent_mean == 0:
        return 0.0
    return (predicted_mean - recent_mean) / recent_mean * 100
