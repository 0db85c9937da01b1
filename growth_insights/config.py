"""
Configuration management for the Growth Insights engine
"""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings"""

    # Application
    app_name: str = "Growth Insights Engine"
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"
    log_to_file: bool = True
    log_dir: str = "logs"

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Database (metric store read by the SQL data provider)
    database_url: str = "sqlite:///./growth_insights.db"

    # Insight generation
    insights_min_data_points: int = 7
    insights_confidence_threshold: float = 0.6
    insights_significance_level: float = 0.05
    insights_parallel_processing: bool = True
    insights_min_data_quality: float = 0.3  # below this a generation request fails
    insights_job_retention_seconds: int = 300
    insights_default_timeframe: str = "30d"

    # Cache
    insights_cache_enabled: bool = True
    insights_cache_ttl_seconds: int = 3600
    insights_cache_max_entries: int = 1000
    cache_sweep_interval_minutes: int = 15

    # Feature Flags
    enable_trend_analysis: bool = True
    enable_forecasting: bool = True
    enable_anomaly_detection: bool = True
    enable_channel_analysis: bool = True
    enable_recommendations: bool = True
    enable_seasonality_detection: bool = True

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
