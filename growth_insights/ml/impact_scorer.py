"""
Impact Scoring Module
Ranks insights by revenue impact, urgency, ease of implementation and
confidence, relative to the size of the business.
"""
import math
from typing import Callable, Dict, List, Optional

from growth_insights.ml.complexity_signals import ComplexityAnalyzer, KeywordComplexityAnalyzer
from growth_insights.models.context import BusinessContext, BusinessMetrics, TimeContext
from growth_insights.models.insight import (
    ImpactComponents,
    Insight,
    InsightKind,
    Priority,
    ScoredInsight,
)
from growth_insights.utils.helpers import clamp
from growth_insights.utils.logger import log


SIZE_MULTIPLIERS = {"micro": 1.3, "small": 1.0, "medium": 0.8}
SIZE_IMPLEMENTATION_ADJUSTMENTS = {"micro": -1, "small": 0, "medium": 1}
BUDGET_THRESHOLDS = {"micro": 5000, "small": 25000, "medium": 100000}

METRIC_WEIGHTS = {
    "revenue": 1.0,
    "orders": 0.8,
    "customers": 0.9,
    "sessions": 0.6,
    "conversions": 0.8,
    "traffic": 0.5,
}

TREND_MULTIPLIERS = {"strong": 0.15, "moderate": 0.10, "weak": 0.05}
SEVERITY_MULTIPLIERS = {"critical": 0.25, "high": 0.15, "medium": 0.10, "low": 0.05}

URGENCY_BASE = {
    InsightKind.ALERT: 9,
    InsightKind.ANOMALY: 8,
    InsightKind.TREND: 6,
    InsightKind.PERFORMANCE: 5,
    InsightKind.RECOMMENDATION: 4,
}
if set(URGENCY_BASE) != set(InsightKind):
    raise TypeError("URGENCY_BASE must cover every insight kind")

CYCLE_ADJUSTMENTS = {"peak": 1.3, "growth": 1.1, "decline": 1.2, "recovery": 1.0}
SEASONAL_ADJUSTMENTS = {"high_season": 1.2, "shoulder_season": 1.0, "low_season": 0.9}
MARKET_ADJUSTMENTS = {"favorable": 1.0, "neutral": 1.0, "challenging": 1.3}

# (minimum % of monthly revenue, score), highest first
IMPACT_SCALE = [(50, 10), (25, 9), (15, 8), (10, 7), (7, 6), (5, 5), (3, 4), (2, 3), (1, 2)]

WEIGHTS = {"revenue": 0.40, "urgency": 0.30, "implementation": 0.20, "confidence": 0.10}


class ImpactScorer:
    """
    Scores insights for one business
    """

    def __init__(self, business_context: BusinessContext, complexity_analyzer: Optional[ComplexityAnalyzer] = None):
        self.business_context = business_context
        self.complexity_analyzer = complexity_analyzer or KeywordComplexityAnalyzer()

        self._baselines: Dict[InsightKind, Callable[[Insight, BusinessMetrics], float]] = {
            InsightKind.TREND: self._trend_baseline,
            InsightKind.ANOMALY: self._anomaly_baseline,
            InsightKind.PERFORMANCE: self._performance_baseline,
            InsightKind.RECOMMENDATION: self._recommendation_baseline,
            InsightKind.ALERT: self._alert_baseline,
        }
        if set(self._baselines) != set(InsightKind):
            raise TypeError("every insight kind needs a revenue baseline")

    def calculate_revenue_impact(self, insight: Insight, metrics: BusinessMetrics) -> float:
        """
        Potential revenue at stake, on a 1-10 scale relative to monthly revenue
        """
        monthly_revenue = metrics.monthly_revenue
        if not monthly_revenue or monthly_revenue <= 0:
            return 1.0

        base_impact = self._baselines[insight.kind](insight, metrics)
        size_multiplier = SIZE_MULTIPLIERS.get(self.business_context.business_size, 1.0)
        metric_weight = self._metric_weight(insight.affected_metrics)
        confidence_adjustment = math.sqrt(max(0.0, insight.confidence))

        final_impact = base_impact * size_multiplier * metric_weight * confidence_adjustment
        return float(clamp(self._normalize(final_impact, monthly_revenue), 1, 10))

    def calculate_urgency_score(self, insight: Insight, time_context: TimeContext) -> int:
        """
        How soon the insight should be acted on, 1-10
        """
        urgency = URGENCY_BASE[insight.kind]

        # Alerts and anomalies go stale
        if insight.kind in (InsightKind.ALERT, InsightKind.ANOMALY):
            hours_since_created = (time_context.current_date - insight.created_at).total_seconds() / 3600
            if hours_since_created > 24:
                urgency -= 2
            if hours_since_created > 72:
                urgency -= 2

        urgency *= CYCLE_ADJUSTMENTS[time_context.business_cycle]
        urgency *= SEASONAL_ADJUSTMENTS[time_context.seasonal_context]

        if time_context.competitive_events:
            urgency *= 1.1

        if time_context.market_conditions:
            urgency *= MARKET_ADJUSTMENTS[time_context.market_conditions]

        if insight.kind == InsightKind.ALERT and time_context.current_date.weekday() >= 5:
            urgency *= 0.8

        return int(clamp(_round_half_up(urgency), 1, 10))

    def calculate_implementation_score(self, recommendation: str, context: BusinessContext) -> int:
        """
        Ease of acting on a recommendation for a business of this size, 1-10
        """
        score = 5
        signals = self.complexity_analyzer.analyze(recommendation)

        if signals.requires_integration:
            score -= 2
        if signals.requires_new_tools:
            score -= 1
        if signals.requires_training:
            score -= 1
        if signals.requires_high_budget:
            score += self._budget_adjustment(context.business_size, context.monthly_revenue)
        if signals.is_long_term:
            score -= 1
        if signals.is_immediate:
            score += 2

        score += SIZE_IMPLEMENTATION_ADJUSTMENTS.get(context.business_size, 0)

        if len(context.primary_channels) > 3:
            score -= 1

        return int(clamp(score, 1, 10))

    def calculate_overall_impact(self, components: ImpactComponents) -> float:
        weighted = (
            components.revenue_impact * WEIGHTS["revenue"]
            + components.urgency_score * WEIGHTS["urgency"]
            + components.implementation_score * WEIGHTS["implementation"]
            + components.confidence_level * 10 * WEIGHTS["confidence"]
        )

        # Diminishing returns above 7
        if weighted > 7:
            weighted = 7 + (weighted - 7) * 0.7

        return float(clamp(round(weighted, 1), 1, 10))

    def calculate_insight_priority(
        self,
        insight: Insight,
        metrics: BusinessMetrics,
        time_context: TimeContext
    ) -> ScoredInsight:
        components = ImpactComponents(
            revenue_impact=self.calculate_revenue_impact(insight, metrics),
            urgency_score=self.calculate_urgency_score(insight, time_context),
            implementation_score=self.calculate_implementation_score(insight.recommendation, self.business_context),
            confidence_level=insight.confidence,
        )
        overall = self.calculate_overall_impact(components)
        priority = self._determine_priority(overall, components)

        return ScoredInsight(
            insight=insight,
            overall_score=overall,
            components=components,
            priority=priority,
            reasoning=self._priority_reasoning(insight, components, priority),
        )

    def recalculate_with_context(
        self,
        insight: Insight,
        metrics: BusinessMetrics,
        time_context: TimeContext,
        business_context: BusinessContext
    ) -> ScoredInsight:
        """Score against another business context; this scorer is left untouched"""
        scorer = ImpactScorer(business_context, self.complexity_analyzer)
        return scorer.calculate_insight_priority(insight, metrics, time_context)

    def score_insights_batch(
        self,
        insights: List[Insight],
        metrics: BusinessMetrics,
        time_context: TimeContext
    ) -> List[ScoredInsight]:
        """
        Score every insight and order by overall score, highest first

        Ties keep their input order.
        """
        scored = [self.calculate_insight_priority(insight, metrics, time_context) for insight in insights]
        scored.sort(key=lambda s: s.overall_score, reverse=True)
        log.debug(f"Scored {len(scored)} insights")
        return scored

    # Per-kind revenue baselines

    def _trend_baseline(self, insight: Insight, metrics: BusinessMetrics) -> float:
        details = insight.details
        strength = details.trend.strength if details.trend else "moderate"
        change_percent = abs(details.change_percent) or 10
        return metrics.monthly_revenue * TREND_MULTIPLIERS.get(strength, 0.05) * min(2, change_percent / 20)

    def _anomaly_baseline(self, insight: Insight, metrics: BusinessMetrics) -> float:
        outlier = insight.details.outlier
        multiplier = SEVERITY_MULTIPLIERS.get(outlier.severity.value, 0.10)
        deviation_percent = abs(outlier.deviation_percent) or 20
        return metrics.monthly_revenue * multiplier * min(3, deviation_percent / 30)

    def _performance_baseline(self, insight: Insight, metrics: BusinessMetrics) -> float:
        details = insight.details
        gap = details.performance_gap or 20
        channel_revenue = details.channel_revenue or metrics.monthly_revenue * 0.3
        return channel_revenue * (gap / 100) * 0.5

    def _recommendation_baseline(self, insight: Insight, metrics: BusinessMetrics) -> float:
        details = insight.details
        expected_impact = details.expected_impact or metrics.monthly_revenue * 0.05
        success_probability = details.success_probability or 0.6
        return expected_impact * success_probability

    def _alert_baseline(self, insight: Insight, metrics: BusinessMetrics) -> float:
        details = insight.details
        risk_amount = details.risk_amount or metrics.monthly_revenue * 0.1
        opportunity_amount = details.opportunity_amount or 0
        return max(risk_amount, opportunity_amount)

    # Helpers

    @staticmethod
    def _metric_weight(affected_metrics: List[str]) -> float:
        if not affected_metrics:
            return 0.7
        return sum(METRIC_WEIGHTS.get(metric, 0.5) for metric in affected_metrics) / len(affected_metrics)

    @staticmethod
    def _normalize(impact: float, monthly_revenue: float) -> int:
        impact_percentage = impact / monthly_revenue * 100
        for threshold, score in IMPACT_SCALE:
            if impact_percentage >= threshold:
                return score
        return 1

    @staticmethod
    def _budget_adjustment(business_size: str, monthly_revenue: Optional[float]) -> int:
        threshold = BUDGET_THRESHOLDS.get(business_size, 25000)
        revenue = monthly_revenue or 0
        if revenue > threshold * 2:
            return 2
        elif revenue > threshold:
            return 1
        elif revenue > threshold * 0.5:
            return 0
        return -1

    @staticmethod
    def _determine_priority(overall: float, components: ImpactComponents) -> Priority:
        urgency = components.urgency_score
        revenue = components.revenue_impact

        if (urgency >= 8 and revenue >= 7) or overall >= 9:
            return Priority.CRITICAL
        if overall >= 7 or (urgency >= 7 and revenue >= 6):
            return Priority.HIGH
        if overall >= 5:
            return Priority.MEDIUM
        return Priority.LOW

    @staticmethod
    def _priority_reasoning(insight: Insight, components: ImpactComponents, priority: Priority) -> str:
        reasons = []

        if components.revenue_impact >= 8:
            reasons.append("high revenue potential")
        elif components.revenue_impact >= 6:
            reasons.append("significant revenue impact")
        elif components.revenue_impact <= 3:
            reasons.append("limited revenue impact")

        if components.urgency_score >= 8:
            reasons.append("time-sensitive")
        elif components.urgency_score >= 6:
            reasons.append("moderately urgent")
        elif components.urgency_score <= 3:
            reasons.append("low urgency")

        if components.implementation_score >= 7:
            reasons.append("easy to implement")
        elif components.implementation_score <= 4:
            reasons.append("complex implementation")

        if components.confidence_level >= 0.8:
            reasons.append("high confidence")
        elif components.confidence_level <= 0.5:
            reasons.append("uncertain outcome")

        if insight.kind == InsightKind.ALERT:
            reasons.append("requires immediate attention")
        elif insight.kind == InsightKind.ANOMALY:
            reasons.append("unusual pattern detected")
        elif insight.kind == InsightKind.TREND:
            reasons.append("trend-based opportunity")

        reason_text = ", ".join(reasons) if reasons else "balanced factors"
        return f"Rated {priority.value} priority due to {reason_text}."


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))
