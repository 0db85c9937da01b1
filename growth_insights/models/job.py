"""
Engine configuration, generation options and job records
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional
import uuid

from growth_insights.config import Settings, get_settings
from growth_insights.models.context import DateRange
from growth_insights.models.insight import Insight


@dataclass
class EngineConfiguration:
    min_data_points: int = 7
    confidence_threshold: float = 0.6
    significance_level: float = 0.05
    cache_enabled: bool = True
    cache_ttl_seconds: int = 3600
    max_cache_entries: int = 1000
    parallel_processing: bool = True
    min_data_quality: float = 0.3
    job_retention_seconds: int = 300
    enable_trends: bool = True
    enable_forecasting: bool = True
    enable_anomaly_detection: bool = True
    enable_channel_analysis: bool = True
    enable_recommendations: bool = True
    enable_seasonality_detection: bool = True

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **overrides) -> "EngineConfiguration":
        settings = settings or get_settings()
        values = dict(
            min_data_points=settings.insights_min_data_points,
            confidence_threshold=settings.insights_confidence_threshold,
            significance_level=settings.insights_significance_level,
            cache_enabled=settings.insights_cache_enabled,
            cache_ttl_seconds=settings.insights_cache_ttl_seconds,
            max_cache_entries=settings.insights_cache_max_entries,
            parallel_processing=settings.insights_parallel_processing,
            min_data_quality=settings.insights_min_data_quality,
            job_retention_seconds=settings.insights_job_retention_seconds,
            enable_trends=settings.enable_trend_analysis,
            enable_forecasting=settings.enable_forecasting,
            enable_anomaly_detection=settings.enable_anomaly_detection,
            enable_channel_analysis=settings.enable_channel_analysis,
            enable_recommendations=settings.enable_recommendations,
            enable_seasonality_detection=settings.enable_seasonality_detection,
        )
        values.update(overrides)
        return cls(**values)


@dataclass
class GenerationOptions:
    timeframe: Optional[DateRange] = None
    metrics: Optional[List[str]] = None
    include_forecasts: bool = True
    include_recommendations: bool = True
    min_confidence: Optional[float] = None
    max_insights: Optional[int] = None

    def fingerprint_payload(self) -> Dict[str, Any]:
        """Everything that changes the generated set, in a stable shape"""
        return {
            "timeframe": self.timeframe.key() if self.timeframe else None,
            "metrics": sorted(self.metrics) if self.metrics else None,
            "include_forecasts": self.include_forecasts,
            "include_recommendations": self.include_recommendations,
            "min_confidence": self.min_confidence,
            "max_insights": self.max_insights,
        }


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class GenerationJob:
    organization_id: str
    options: GenerationOptions = field(default_factory=GenerationOptions)
    status: JobStatus = JobStatus.PENDING
    progress: int = 0
    started_at: datetime = field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None
    error: Optional[str] = None
    results: Optional[List[Insight]] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def is_terminal(self) -> bool:
        return self.status in (JobStatus.COMPLETED, JobStatus.FAILED)

    def start(self):
        if self.status == JobStatus.PENDING:
            self.status = JobStatus.RUNNING

    def advance(self, progress: int):
        """Progress only moves forward while the job is live"""
        if self.is_terminal:
            return
        self.progress = max(self.progress, min(100, int(progress)))

    def complete(self, results: List[Insight], now: datetime):
        self.status = JobStatus.COMPLETED
        self.progress = 100
        self.results = results
        self.completed_at = now

    def fail(self, error: str, now: datetime):
        self.status = JobStatus.FAILED
        self.error = error
        self.completed_at = now

    def is_expired(self, now: datetime, retention_seconds: int) -> bool:
        if not self.is_terminal or self.completed_at is None:
            return False
        return now - self.completed_at >= timedelta(seconds=retention_seconds)

    def to_status_dict(self) -> Dict[str, Any]:
        status = {
            "id": self.id,
            "organization_id": self.organization_id,
            "status": self.status.value,
            "progress": self.progress,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }
        if self.error:
            status["error"] = self.error
        if self.results is not None:
            status["results"] = [insight.to_dict() for insight in self.results]
        return status
