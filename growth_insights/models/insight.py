"""
Insight and statistical result records

Statistical results are produced by StatisticalAnalyzer; insights are built by
the engine and scored by ImpactScorer. Every insight carries a details payload
whose class must match its kind.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union
import uuid

from growth_insights.utils.helpers import clamp


class InsightKind(str, Enum):
    TREND = "trend"
    ANOMALY = "anomaly"
    PERFORMANCE = "performance"
    RECOMMENDATION = "recommendation"
    ALERT = "alert"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass(frozen=True)
class MetricSample:
    """One observation of one metric. Immutable once fetched."""
    timestamp: datetime
    value: float
    source_tag: str = "unknown"
    metric_kind: str = "revenue"


# Statistical results

@dataclass
class ConfidenceInterval:
    lower: float
    upper: float


@dataclass
class TrendResult:
    slope: float
    intercept: float
    r_squared: float
    p_value: float
    significance: str  # high | medium | low | none
    direction: str  # increasing | decreasing | stable
    strength: str  # weak | moderate | strong
    projected_value: float
    confidence_interval: ConfidenceInterval
    sample_count: int
    timeframe: str


@dataclass
class OutlierRecord:
    timestamp: datetime
    value: float
    expected_value: float
    deviation: float
    severity: Severity
    method: str  # zscore | iqr
    confidence: float
    context: str

    @property
    def deviation_percent(self) -> float:
        if self.expected_value == 0:
            return 0.0
        return (self.value - self.expected_value) / self.expected_value * 100


@dataclass
class SignificanceResult:
    is_significant: bool
    p_value: float
    confidence_level: float
    effect_size: float
    interpretation: str


@dataclass
class CorrelationResult:
    coefficient: float
    p_value: float
    significance: str
    strength: str
    direction: str
    interpretation: str


@dataclass
class SeasonalPattern:
    period: str  # daily | weekly | monthly | yearly
    strength: float
    phase: int
    amplitude: float


@dataclass
class SeasonalityResult:
    is_detected: bool
    period: int
    strength: float
    confidence: float
    patterns: List[SeasonalPattern] = field(default_factory=list)
    next_peak: Optional[date] = None
    next_trough: Optional[date] = None


@dataclass
class ForecastPoint:
    date: date
    predicted: float
    lower: float
    upper: float
    confidence: float


@dataclass
class ForecastResult:
    predictions: List[ForecastPoint]
    method: str  # linear | seasonal
    accuracy: float
    confidence: float
    assumptions: List[str]


# Channel / opportunity records

@dataclass
class ChannelData:
    name: str
    source: str
    revenue: float = 0.0
    orders: int = 0
    sessions: int = 0
    conversions: int = 0
    spend: Optional[float] = None

    @property
    def conversion_rate(self) -> float:
        """Conversions per session, as a percentage"""
        return self.conversions / self.sessions * 100 if self.sessions else 0.0

    @property
    def average_order_value(self) -> float:
        return self.revenue / self.orders if self.orders else 0.0

    @property
    def roi(self) -> Optional[float]:
        """Return on spend, as a percentage; None when spend is unknown"""
        if not self.spend:
            return None
        return (self.revenue - self.spend) / self.spend * 100


@dataclass
class MetricComparison:
    difference: float
    percent_difference: float
    winner: str


@dataclass
class ChannelComparison:
    channel_a: str
    channel_b: str
    metrics: Dict[str, MetricComparison]
    winner: str


@dataclass
class ChannelRecommendation:
    channel: str
    action: str  # increase_budget | decrease_budget | optimize | pause | test
    reason: str
    expected_impact: float
    confidence: float
    timeframe: str


@dataclass
class ActionItem:
    id: str
    title: str
    priority: str
    category: str = "marketing"
    measurement_kpis: List[str] = field(default_factory=lambda: ["revenue", "orders"])


@dataclass
class Opportunity:
    """Growth opportunity found by BusinessIntelligence"""
    opportunity_type: str  # cross_sell | upsell | retention | acquisition | seasonal | peak_preparation
    target_segment: str
    potential_revenue: float
    confidence: float
    affected_metrics: List[str]
    timeframe: str
    sample_count: int
    implementation_steps: List[str]
    parameters: Dict[str, Any] = field(default_factory=dict)


# Kind-specific insight payloads

@dataclass
class TrendDetails:
    metric: str
    trend: Optional[TrendResult] = None
    forecast: Optional[ForecastResult] = None
    change_percent: float = 0.0


@dataclass
class AnomalyDetails:
    metric: str
    outlier: OutlierRecord
    methods: List[str] = field(default_factory=list)


@dataclass
class PerformanceDetails:
    channels: List[ChannelData]
    top_performer: ChannelData
    comparisons: List[ChannelComparison]
    recommendations: List[ChannelRecommendation]
    performance_gap: float = 20.0
    channel_revenue: Optional[float] = None


@dataclass
class RecommendationDetails:
    opportunity_type: str
    action_items: List[ActionItem]
    expected_impact: Optional[float] = None
    success_probability: Optional[float] = None
    difficulty: str = "medium"  # easy | medium | hard
    horizon: str = "medium_term"  # immediate | short_term | medium_term | long_term


@dataclass
class AlertDetails:
    risk_amount: Optional[float] = None
    opportunity_amount: Optional[float] = None


InsightDetails = Union[TrendDetails, AnomalyDetails, PerformanceDetails, RecommendationDetails, AlertDetails]

DETAILS_BY_KIND = {
    InsightKind.TREND: TrendDetails,
    InsightKind.ANOMALY: AnomalyDetails,
    InsightKind.PERFORMANCE: PerformanceDetails,
    InsightKind.RECOMMENDATION: RecommendationDetails,
    InsightKind.ALERT: AlertDetails,
}
if set(DETAILS_BY_KIND) != set(InsightKind):
    raise TypeError("DETAILS_BY_KIND must cover every insight kind")


@dataclass
class InsightMetadata:
    source: str
    algorithm: str
    version: str = "1.0"
    parameters: Dict[str, Any] = field(default_factory=dict)
    data_quality: float = 0.8
    priority: Optional[Priority] = None
    priority_reasoning: Optional[str] = None


@dataclass
class Insight:
    organization_id: str
    kind: InsightKind
    title: str
    description: str
    recommendation: str
    impact_score: float
    confidence: float
    affected_metrics: List[str]
    timeframe: str
    sample_count: int
    metadata: InsightMetadata
    details: InsightDetails
    created_at: datetime = field(default_factory=datetime.utcnow)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self):
        self.kind = InsightKind(self.kind)
        expected = DETAILS_BY_KIND[self.kind]
        if not isinstance(self.details, expected):
            raise TypeError(
                f"{self.kind.value} insight needs {expected.__name__}, got {type(self.details).__name__}"
            )
        self.impact_score = clamp(float(self.impact_score), 1.0, 10.0)
        self.confidence = clamp(float(self.confidence), 0.0, 1.0)
        self.metadata.data_quality = clamp(float(self.metadata.data_quality), 0.0, 1.0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "type": self.kind.value,
            "title": self.title,
            "description": self.description,
            "recommendation": self.recommendation,
            "impact_score": self.impact_score,
            "confidence": round(self.confidence, 4),
            "affected_metrics": list(self.affected_metrics),
            "timeframe": self.timeframe,
            "data_points": self.sample_count,
            "created_at": self.created_at.isoformat(),
            "metadata": {
                "source": self.metadata.source,
                "algorithm": self.metadata.algorithm,
                "version": self.metadata.version,
                "parameters": self.metadata.parameters,
                "data_quality": self.metadata.data_quality,
                "priority": self.metadata.priority.value if self.metadata.priority else None,
                "priority_reasoning": self.metadata.priority_reasoning,
            },
        }


@dataclass
class ImpactComponents:
    revenue_impact: float
    urgency_score: float
    implementation_score: float
    confidence_level: float


@dataclass
class ScoredInsight:
    insight: Insight
    overall_score: float
    components: ImpactComponents
    priority: Priority
    reasoning: str
