"""
Business, time and data-quality context consumed by scoring and generation
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional


BUSINESS_SIZES = ("micro", "small", "medium")
BUSINESS_CYCLES = ("peak", "growth", "decline", "recovery")
SEASONAL_CONTEXTS = ("high_season", "shoulder_season", "low_season")
MARKET_CONDITIONS = ("favorable", "neutral", "challenging")


@dataclass
class DateRange:
    start: datetime
    end: datetime

    @property
    def days(self) -> int:
        return max(1, -(-int((self.end - self.start).total_seconds()) // 86400))

    def key(self) -> str:
        return f"{self.start.isoformat()}_{self.end.isoformat()}"

    @classmethod
    def last(cls, days: int, end: Optional[datetime] = None) -> "DateRange":
        """Whole days ending today (inclusive)"""
        end = end or datetime.utcnow()
        end_of_day = end.replace(hour=23, minute=59, second=59, microsecond=0)
        start = (end - timedelta(days=days)).replace(hour=0, minute=0, second=0, microsecond=0)
        return cls(start=start, end=end_of_day)


@dataclass
class BusinessContext:
    business_size: str = "small"
    primary_channels: List[str] = field(default_factory=list)
    monthly_revenue: Optional[float] = None
    seasonal_business: bool = False
    industry: Optional[str] = None
    business_model: Optional[str] = None  # b2b | b2c | marketplace | saas | subscription

    def __post_init__(self):
        if self.business_size not in BUSINESS_SIZES:
            raise ValueError(f"Unknown business size: {self.business_size}")


@dataclass
class BusinessMetrics:
    monthly_revenue: float
    monthly_orders: float = 0.0
    average_order_value: float = 0.0
    conversion_rate: float = 0.0
    growth_rate: float = 0.0


@dataclass
class TimeContext:
    current_date: datetime = field(default_factory=datetime.utcnow)
    business_cycle: str = "growth"
    seasonal_context: str = "shoulder_season"
    competitive_events: List[str] = field(default_factory=list)
    market_conditions: Optional[str] = None

    def __post_init__(self):
        if self.business_cycle not in BUSINESS_CYCLES:
            raise ValueError(f"Unknown business cycle: {self.business_cycle}")
        if self.seasonal_context not in SEASONAL_CONTEXTS:
            raise ValueError(f"Unknown seasonal context: {self.seasonal_context}")
        if self.market_conditions is not None and self.market_conditions not in MARKET_CONDITIONS:
            raise ValueError(f"Unknown market conditions: {self.market_conditions}")


@dataclass
class DataQualityIssue:
    type: str  # missing_data | inconsistent_format | outliers | stale_data
    severity: str  # low | medium | high
    description: str
    affected_metrics: List[str]
    suggested_fix: Optional[str] = None


@dataclass
class DataQualityReport:
    score: float
    issues: List[DataQualityIssue] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    coverage: Dict[str, float] = field(default_factory=dict)
    freshness: Dict[str, datetime] = field(default_factory=dict)


@dataclass
class CustomerRecord:
    customer_id: str
    acquisition_date: datetime
    total_revenue: float
    order_count: int
    average_order_value: float
    last_order_date: datetime
    acquisition_channel: str = "unknown"
    lifetime_value: Optional[float] = None

    @property
    def value(self) -> float:
        return self.lifetime_value if self.lifetime_value is not None else self.total_revenue
