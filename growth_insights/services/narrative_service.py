"""
Narrative Service
Turns statistical results into the title, description and recommendation
text shown with each insight
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from growth_insights.models.context import BusinessContext
from growth_insights.models.insight import (
    ChannelData,
    ChannelRecommendation,
    ForecastResult,
    Opportunity,
    OutlierRecord,
    Severity,
    TrendResult,
)
from growth_insights.utils.helpers import format_currency, title_case_metric


@dataclass
class Narrative:
    title: str
    description: str
    recommendation: str


class NarrativeGenerator(ABC):
    """Wording for each insight family"""

    @abstractmethod
    def trend(self, metric: str, trend: TrendResult, change_percent: float) -> Narrative:
        pass

    @abstractmethod
    def forecast(self, metric: str, forecast: ForecastResult) -> Narrative:
        pass

    @abstractmethod
    def anomaly(self, metric: str, outlier: OutlierRecord) -> Narrative:
        pass

    @abstractmethod
    def channel_comparison(
        self,
        top: ChannelData,
        other: ChannelData,
        recommendations: List[ChannelRecommendation]
    ) -> Narrative:
        pass

    @abstractmethod
    def opportunity(self, opportunity: Opportunity) -> Narrative:
        pass


OPPORTUNITY_TITLES = {
    "cross_sell": "Cross-sell to Single-Purchase Customers",
    "upsell": "Upsell to Low-AOV Repeat Customers",
    "retention": "Re-engage Dormant Customers",
    "acquisition": "Expand Underused Channels",
    "peak_preparation": "Upcoming Peak Season Preparation",
}

OPPORTUNITY_RECOMMENDATIONS = {
    "cross_sell": "Launch targeted email campaigns with personalized product recommendations based on their first purchase.",
    "upsell": "Introduce bundle offers and premium product suggestions for customers with historically low order values.",
    "retention": "Launch a win-back email campaign with special offers for customers who haven't purchased recently.",
    "acquisition": "Increase investment in smaller channels that already show traction.",
    "seasonal": "Plan inventory and marketing campaigns around these cycles.",
    "peak_preparation": "Begin preparation now to make the most of the peak period.",
}


class TemplateNarrativeGenerator(NarrativeGenerator):
    """
    Deterministic templated wording
    """

    def __init__(self, business_context: Optional[BusinessContext] = None):
        self.business_context = business_context

    def trend(self, metric: str, trend: TrendResult, change_percent: float) -> Narrative:
        label = title_case_metric(metric)
        direction = trend.direction

        if direction == "stable":
            title = f"{label} Holding Steady"
            description = (
                f"{label} has been stable over the last {trend.sample_count} days "
                f"(R² {trend.r_squared:.2f})."
            )
            recommendation = "Use the stable period to test optimizations without risking volume."
        else:
            verb = "Growing" if direction == "increasing" else "Declining"
            title = f"{label} {verb}"
            description = (
                f"{label} shows a {trend.strength} {direction} trend, "
                f"{abs(change_percent):.1f}% over {trend.sample_count} days "
                f"(R² {trend.r_squared:.2f}, p={trend.p_value:.3f})."
            )
            if direction == "increasing":
                recommendation = f"Double down on what is driving {label.lower()} growth while the trend holds."
            else:
                recommendation = f"Review recent changes affecting {label.lower()} and act quickly to reverse the decline."

        return Narrative(title=title, description=description, recommendation=recommendation)

    def forecast(self, metric: str, forecast: ForecastResult) -> Narrative:
        label = title_case_metric(metric)
        total = sum(point.predicted for point in forecast.predictions)
        days = len(forecast.predictions)
        first, last = forecast.predictions[0].predicted, forecast.predictions[-1].predicted

        if last > first * 1.05:
            outlook = "rising"
            advice = "Prepare for increased demand: check stock levels and scale marketing."
        elif last < first * 0.95:
            outlook = "falling"
            advice = "Plan for lower volume: focus on efficiency and customer retention."
        else:
            outlook = "flat"
            advice = "A stable outlook leaves room for planned optimization work."

        description = (
            f"{label} is forecast at {self._amount(metric, total)} over the next {days} days "
            f"({outlook}, {forecast.method} model, {forecast.accuracy * 100:.0f}% expected accuracy)."
        )
        return Narrative(title=f"{days}-Day {label} Forecast", description=description, recommendation=advice)

    def anomaly(self, metric: str, outlier: OutlierRecord) -> Narrative:
        label = title_case_metric(metric)
        is_spike = outlier.value > outlier.expected_value
        kind = "Spike" if is_spike else "Drop"
        day = outlier.timestamp.strftime("%b %d")

        description = (
            f"{label} on {day} was {self._amount(metric, outlier.value)} against an expected "
            f"{self._amount(metric, outlier.expected_value)}. {outlier.context}."
        )
        if is_spike:
            recommendation = f"Find what drove the {label.lower()} spike and repeat it."
        elif outlier.severity == Severity.CRITICAL:
            recommendation = f"Investigate the {label.lower()} drop immediately: check tracking, checkout and integrations."
        else:
            recommendation = f"Check recent changes that could explain the lower {label.lower()}."

        return Narrative(
            title=f"Unusual {label} {kind}",
            description=description,
            recommendation=recommendation,
        )

    def channel_comparison(
        self,
        top: ChannelData,
        other: ChannelData,
        recommendations: List[ChannelRecommendation]
    ) -> Narrative:
        if top.roi is not None and other.roi is not None:
            description = (
                f"{top.name} returns {top.roi:.0f}% ROI compared with {other.roi:.0f}% for {other.name}."
            )
        else:
            description = (
                f"{top.name} earned {format_currency(top.revenue)} at {top.conversion_rate:.1f}% conversion; "
                f"{other.name} earned {format_currency(other.revenue)} at {other.conversion_rate:.1f}%."
            )

        if recommendations:
            first = recommendations[0]
            recommendation = f"Focus on {first.channel}: {first.reason}."
        else:
            recommendation = "No specific channel recommendations at this time."

        return Narrative(title="Channel Performance Analysis", description=description, recommendation=recommendation)

    def opportunity(self, opportunity: Opportunity) -> Narrative:
        kind = opportunity.opportunity_type
        if kind == "seasonal":
            pattern = opportunity.parameters.get("pattern", opportunity.timeframe)
            strength = opportunity.parameters.get("strength_label", "moderate")
            title = f"{pattern.capitalize()} Seasonal Pattern Detected"
            description = f"Your business shows {strength} {pattern} seasonal patterns."
        elif kind == "peak_preparation":
            days = opportunity.parameters.get("days_until_peak")
            title = OPPORTUNITY_TITLES[kind]
            description = f"Your next peak period is expected in {days} days."
        else:
            title = OPPORTUNITY_TITLES.get(kind, kind.replace("_", " ").title())
            description = (
                f"{opportunity.sample_count} {opportunity.target_segment.replace('_', ' ')} could add "
                f"about {format_currency(opportunity.potential_revenue)} in revenue."
            )

        return Narrative(
            title=title,
            description=description,
            recommendation=OPPORTUNITY_RECOMMENDATIONS.get(kind, "Review this opportunity with your team."),
        )

    @staticmethod
    def _amount(metric: str, value: float) -> str:
        if metric.startswith("revenue"):
            return format_currency(value)
        return f"{value:,.0f}"
