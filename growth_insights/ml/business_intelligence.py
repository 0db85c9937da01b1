"""
Business Intelligence
Channel ROI analysis and growth-opportunity detection from customer,
revenue and seasonality data
"""
from typing import Dict, List, Optional, Sequence
from datetime import datetime
import numpy as np

from growth_insights.models.context import BusinessContext, CustomerRecord
from growth_insights.models.insight import (
    ChannelComparison,
    ChannelData,
    ChannelRecommendation,
    MetricComparison,
    MetricSample,
    Opportunity,
    SeasonalityResult,
)
from growth_insights.utils.helpers import safe_divide
from growth_insights.utils.logger import log


ACTION_MULTIPLIERS = {
    "increase_budget": 1.5,
    "optimize": 1.2,
    "test": 1.1,
    "decrease_budget": 0.5,
}
SIZE_MULTIPLIERS = {"micro": 1.2, "small": 1.0, "medium": 0.8}

# (minimum ROI %, score), highest first
ROI_SCALE = [(500, 10), (300, 9), (200, 8), (150, 7), (100, 6), (50, 5), (25, 4), (0, 3)]
# (minimum revenue share, score), highest first
VOLUME_SCALE = [(0.5, 10), (0.3, 8), (0.2, 6), (0.1, 4), (0.05, 2)]

DORMANT_AFTER_DAYS = 60
PEAK_WINDOW_DAYS = 90


class BusinessIntelligence:
    """
    Turns channel and customer data into ranked recommendations
    """

    MIN_SEASONAL_SAMPLES = 30

    def __init__(self, business_context: BusinessContext):
        self.business_context = business_context

    def analyze_channel_roi(self, channels: List[ChannelData]) -> List[ChannelRecommendation]:
        """
        Score active channels and recommend a budget action for each

        Args:
            channels: Channel totals for the analysis window

        Returns:
            Recommendations ordered from best to worst channel
        """
        active = [c for c in channels if c.revenue > 0 and c.sessions > 0]
        if not active:
            return []

        total_revenue = sum(c.revenue for c in active)
        scored = []
        for channel in active:
            roi_score = self._roi_score(channel)
            volume_score = self._volume_score(channel, total_revenue)
            efficiency_score = self._efficiency_score(channel)
            overall = roi_score * 0.4 + volume_score * 0.3 + efficiency_score * 0.3
            scored.append((overall, channel))

        scored.sort(key=lambda item: item[0], reverse=True)

        recommendations = []
        for rank, (overall, channel) in enumerate(scored):
            recommendation = self._channel_recommendation(channel, overall, rank, len(scored))
            if recommendation:
                recommendations.append(recommendation)

        log.info(f"Generated {len(recommendations)} channel recommendations from {len(active)} active channels")
        return recommendations

    def compare_channels(self, channel_a: ChannelData, channel_b: ChannelData) -> ChannelComparison:
        """Head-to-head comparison on revenue, ROI, conversion rate and AOV"""
        metrics = {
            "revenue": (channel_a.revenue, channel_b.revenue),
            "roi": (channel_a.roi or 0.0, channel_b.roi or 0.0),
            "conversion_rate": (channel_a.conversion_rate, channel_b.conversion_rate),
            "average_order_value": (channel_a.average_order_value, channel_b.average_order_value),
        }

        comparisons = {}
        wins = {channel_a.name: 0, channel_b.name: 0}
        for metric, (a, b) in metrics.items():
            winner = channel_a.name if a >= b else channel_b.name
            wins[winner] = wins.get(winner, 0) + 1
            comparisons[metric] = MetricComparison(
                difference=a - b,
                percent_difference=safe_divide(a - b, abs(b)) * 100,
                winner=winner,
            )

        overall_winner = channel_a.name if wins[channel_a.name] >= wins.get(channel_b.name, 0) else channel_b.name
        return ChannelComparison(
            channel_a=channel_a.name,
            channel_b=channel_b.name,
            metrics=comparisons,
            winner=overall_winner,
        )

    def top_performer(self, channels: List[ChannelData]) -> ChannelData:
        """Highest-ROI channel; the first one wins a tie"""
        best = channels[0]
        for channel in channels[1:]:
            if (channel.roi or 0) > (best.roi or 0):
                best = channel
        return best

    def weakest_channel(self, channels: List[ChannelData]) -> ChannelData:
        """Lowest revenue per session"""
        return min(channels, key=lambda c: safe_divide(c.revenue, c.sessions))

    def performance_gap(self, top: ChannelData, weakest: ChannelData) -> float:
        """Revenue-per-session shortfall of the weakest channel against the top one, in %"""
        top_rps = safe_divide(top.revenue, top.sessions)
        weak_rps = safe_divide(weakest.revenue, weakest.sessions)
        if top_rps <= 0:
            return 0.0
        return float(min(100.0, max(0.0, (top_rps - weak_rps) / top_rps * 100)))

    def detect_growth_opportunities(
        self,
        revenue_series: Sequence[MetricSample],
        customers: List[CustomerRecord],
        as_of: Optional[datetime] = None
    ) -> List[Opportunity]:
        """
        Look for cross-sell, upsell, retention and channel-expansion opportunities

        Results are ordered by potential revenue, largest first.
        """
        as_of = as_of or datetime.utcnow()
        log.info(f"Detecting growth opportunities ({len(customers)} customers, {len(revenue_series)} revenue samples)")

        opportunities = []
        for finder in (
            lambda: self._cross_sell(customers),
            lambda: self._upsell(customers),
            lambda: self._retention(customers, as_of),
            lambda: self._channel_expansion(revenue_series),
        ):
            opportunity = finder()
            if opportunity:
                opportunities.append(opportunity)

        opportunities.sort(key=lambda o: o.potential_revenue, reverse=True)
        log.info(f"Found {len(opportunities)} growth opportunities")
        return opportunities

    def seasonal_opportunities(self, seasonality: SeasonalityResult, as_of: Optional[datetime] = None) -> List[Opportunity]:
        """
        Planning opportunities for detected seasonal patterns and an upcoming peak
        """
        if not seasonality or not seasonality.is_detected:
            return []

        as_of = as_of or datetime.utcnow()
        opportunities = []

        for pattern in seasonality.patterns:
            strength_label = "strong" if pattern.strength > 0.5 else "moderate"
            opportunities.append(Opportunity(
                opportunity_type="seasonal",
                target_segment=f"{pattern.period}_cycle",
                potential_revenue=0.0,
                confidence=seasonality.confidence,
                affected_metrics=["revenue", "orders"],
                timeframe=pattern.period,
                sample_count=self.MIN_SEASONAL_SAMPLES,
                implementation_steps=[
                    f"Map the {pattern.period} highs and lows",
                    "Align inventory with expected demand",
                    "Schedule campaigns ahead of high periods",
                    "Review results after each cycle",
                ],
                parameters={
                    "pattern": pattern.period,
                    "strength": pattern.strength,
                    "strength_label": strength_label,
                    "phase": pattern.phase,
                    "amplitude": pattern.amplitude,
                },
            ))

        if seasonality.next_peak:
            days_until_peak = (seasonality.next_peak - as_of.date()).days
            if 0 <= days_until_peak <= PEAK_WINDOW_DAYS:
                opportunities.append(Opportunity(
                    opportunity_type="peak_preparation",
                    target_segment="upcoming_peak",
                    potential_revenue=0.0,
                    confidence=0.7,
                    affected_metrics=["revenue", "orders"],
                    timeframe=f"{days_until_peak}d",
                    sample_count=self.MIN_SEASONAL_SAMPLES,
                    implementation_steps=self._peak_preparation_steps(days_until_peak),
                    parameters={
                        "days_until_peak": days_until_peak,
                        "next_peak": seasonality.next_peak.isoformat(),
                    },
                ))

        return opportunities

    # Channel scoring

    @staticmethod
    def _roi_score(channel: ChannelData) -> float:
        roi = channel.roi
        if roi is None or roi <= 0:
            return 0
        for threshold, score in ROI_SCALE:
            if roi >= threshold:
                return score
        return 0

    @staticmethod
    def _volume_score(channel: ChannelData, total_revenue: float) -> float:
        share = safe_divide(channel.revenue, total_revenue)
        for threshold, score in VOLUME_SCALE:
            if share >= threshold:
                return score
        return 1

    @staticmethod
    def _efficiency_score(channel: ChannelData) -> float:
        conversion_score = min(10.0, channel.conversion_rate / 5 * 10)  # 5% conversion = 10 points
        aov_score = min(10.0, channel.average_order_value / 100 * 10)  # $100 AOV = 10 points
        return (conversion_score + aov_score) / 2

    def _channel_recommendation(
        self,
        channel: ChannelData,
        overall: float,
        rank: int,
        total: int
    ) -> Optional[ChannelRecommendation]:
        if rank == 0 and overall > 7:
            action, confidence, timeframe = "increase_budget", 0.9, "immediate"
            reason = f"{channel.name} is your top-performing channel with excellent ROI and efficiency"
        elif rank < total / 2 and overall > 5:
            action, confidence, timeframe = "optimize", 0.7, "short_term"
            reason = f"{channel.name} shows good performance with room for optimization"
        elif rank >= total * 0.8 and overall < 3:
            action, confidence, timeframe = "decrease_budget", 0.8, "immediate"
            reason = f"{channel.name} underperforms compared to other channels"
        elif 3 <= overall <= 7:
            action, confidence, timeframe = "test", 0.6, "medium_term"
            reason = f"{channel.name} has potential but needs testing to optimize performance"
        else:
            return None

        expected_impact = (
            channel.revenue * 0.1
            * ACTION_MULTIPLIERS[action]
            * SIZE_MULTIPLIERS.get(self.business_context.business_size, 1.0)
        )
        return ChannelRecommendation(
            channel=channel.name,
            action=action,
            reason=reason,
            expected_impact=expected_impact,
            confidence=confidence,
            timeframe=timeframe,
        )

    # Opportunity finders

    def _cross_sell(self, customers: List[CustomerRecord]) -> Optional[Opportunity]:
        if not customers:
            return None

        single = [c for c in customers if c.order_count == 1]
        if not single or len(single) < len(customers) * 0.3:
            return None

        avg_order_value = float(np.mean([c.average_order_value for c in customers]))
        potential_revenue = len(single) * avg_order_value * 0.2  # 20% take-up

        return Opportunity(
            opportunity_type="cross_sell",
            target_segment="single_purchase_customers",
            potential_revenue=potential_revenue,
            confidence=0.7,
            affected_metrics=["revenue", "customers"],
            timeframe="30d",
            sample_count=len(single),
            implementation_steps=[
                "Segment single-purchase customers",
                "Analyze their purchase patterns",
                "Create personalized product recommendations",
                "Design targeted email campaigns",
                "A/B test different messaging approaches",
            ],
            parameters={"single_purchase_customers": len(single)},
        )

    def _upsell(self, customers: List[CustomerRecord]) -> Optional[Opportunity]:
        if not customers:
            return None

        avg_order_value = float(np.mean([c.average_order_value for c in customers]))
        low_aov = [
            c for c in customers
            if c.order_count > 1 and c.average_order_value < avg_order_value * 0.7
        ]
        if len(low_aov) < 5:
            return None

        potential_revenue = sum(
            (avg_order_value - c.average_order_value) * c.order_count * 0.3 for c in low_aov
        )

        return Opportunity(
            opportunity_type="upsell",
            target_segment="low_aov_repeat_customers",
            potential_revenue=potential_revenue,
            confidence=0.6,
            affected_metrics=["revenue", "orders"],
            timeframe="60d",
            sample_count=len(low_aov),
            implementation_steps=[
                "Identify low-AOV repeat customers",
                "Analyze their purchase history",
                "Create bundle offers",
                "Add premium product suggestions at checkout",
                "Test different upsell strategies",
            ],
            parameters={"low_aov_customers": len(low_aov), "average_order_value": avg_order_value},
        )

    def _retention(self, customers: List[CustomerRecord], as_of: datetime) -> Optional[Opportunity]:
        dormant = [
            c for c in customers
            if c.order_count > 1 and (as_of - c.last_order_date).days > DORMANT_AFTER_DAYS
        ]
        if len(dormant) < 3:
            return None

        potential_revenue = sum(c.value * 0.3 for c in dormant)

        return Opportunity(
            opportunity_type="retention",
            target_segment="dormant_customers",
            potential_revenue=potential_revenue,
            confidence=0.5,
            affected_metrics=["revenue", "customers"],
            timeframe="30d",
            sample_count=len(dormant),
            implementation_steps=[
                "Identify dormant customers",
                "Create compelling win-back offers",
                "Design personalized email campaigns",
                "Set up automated follow-up sequences",
                "Track reactivation rates",
            ],
            parameters={"dormant_customers": len(dormant), "dormant_after_days": DORMANT_AFTER_DAYS},
        )

    def _channel_expansion(self, revenue_series: Sequence[MetricSample]) -> Optional[Opportunity]:
        revenue_by_source: Dict[str, float] = {}
        for sample in revenue_series:
            revenue_by_source[sample.source_tag] = revenue_by_source.get(sample.source_tag, 0.0) + sample.value

        if len(revenue_by_source) < 2:
            return None

        top_revenue = max(revenue_by_source.values())
        underused = {
            source: revenue for source, revenue in revenue_by_source.items()
            if 0 < revenue < top_revenue * 0.3
        }
        if not underused:
            return None

        potential_revenue = sum(revenue * 2 for revenue in underused.values())

        return Opportunity(
            opportunity_type="acquisition",
            target_segment="underused_channels",
            potential_revenue=potential_revenue,
            confidence=0.6,
            affected_metrics=["revenue"],
            timeframe="90d",
            sample_count=len(underused),
            implementation_steps=[
                "Analyze underperforming channels",
                "Identify success factors from top channels",
                "Develop channel-specific strategies",
                "Gradually increase investment",
                "Monitor performance improvements",
            ],
            parameters={"channels": sorted(underused)},
        )

    @staticmethod
    def _peak_preparation_steps(days_until_peak: int) -> List[str]:
        if days_until_peak <= 14:
            return [
                "Confirm stock levels for best sellers",
                "Launch prepared peak campaigns",
                "Monitor conversion daily",
            ]
        return [
            "Forecast peak demand by product",
            "Place inventory orders",
            "Prepare peak campaigns and creatives",
            "Plan fulfilment capacity",
        ]
