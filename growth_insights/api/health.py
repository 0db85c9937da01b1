"""
Health check and status endpoints
"""
from fastapi import APIRouter, Request
from datetime import datetime
from growth_insights.config import get_settings
from growth_insights import __version__

settings = get_settings()

router = APIRouter()


@router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "version": __version__
    }


@router.get("/status")
async def get_status(request: Request):
    """Get system status"""
    registry = getattr(request.app.state, "engines", None)
    return {
        "app_name": settings.app_name,
        "version": __version__,
        "environment": settings.environment,
        "features": {
            "trend_analysis": settings.enable_trend_analysis,
            "forecasting": settings.enable_forecasting,
            "anomaly_detection": settings.enable_anomaly_detection,
            "channel_analysis": settings.enable_channel_analysis,
            "recommendations": settings.enable_recommendations,
            "seasonality_detection": settings.enable_seasonality_detection
        },
        "cache_enabled": settings.insights_cache_enabled,
        "organizations": registry.cache_registry.organizations() if registry else [],
        "timestamp": datetime.utcnow().isoformat()
    }
