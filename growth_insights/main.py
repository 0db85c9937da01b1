"""
Growth Insights Engine
Main FastAPI application
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from growth_insights.config import get_settings
from growth_insights.utils.logger import log
from growth_insights import __version__

from growth_insights.api import health, insights
from growth_insights.models.job import EngineConfiguration
from growth_insights.services.data_provider import SqlDataProvider
from growth_insights.services.insights_engine import EngineRegistry

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    # Startup
    log.info(f"Starting {settings.app_name} v{__version__}")
    log.info(f"Environment: {settings.environment}")

    try:
        from growth_insights.models.base import init_db
        init_db()
        log.info("Database initialized")
    except Exception as e:
        log.error(f"Database initialization error: {str(e)}")

    app.state.engines = EngineRegistry(SqlDataProvider(), EngineConfiguration.from_settings(settings))

    try:
        from growth_insights.scheduler import start_scheduler
        start_scheduler(app.state.engines)
        log.info("Scheduler started successfully")
    except Exception as e:
        log.error(f"Scheduler startup error: {str(e)}")

    yield

    # Shutdown
    from growth_insights.scheduler import stop_scheduler
    stop_scheduler()
    app.state.engines.close_all()
    log.info("Shutting down application")


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=__version__,
    description="""
    Ranked, explainable insights from business metrics

    - Trend analysis and short-range forecasts
    - Anomaly detection across revenue, orders, sessions and conversions
    - Channel performance comparison and budget recommendations
    - Growth and seasonal opportunities
    - Impact scoring and prioritization
    """,
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["health"])
app.include_router(insights.router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "growth_insights.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug
    )
