"""
Insight generation endpoints
"""
from dataclasses import asdict
from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException, Request
from typing import List, Optional
from pydantic import BaseModel, Field

from growth_insights.models.context import DateRange
from growth_insights.models.job import GenerationOptions
from growth_insights.services.insights_engine import EngineRegistry
from growth_insights.utils.exceptions import DataQualityTooLowError
from growth_insights.utils.logger import log

router = APIRouter(prefix="/insights", tags=["insights"])


class GenerateRequest(BaseModel):
    timeframe: str = "30d"
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    metrics: Optional[List[str]] = None
    include_forecasts: bool = True
    include_recommendations: bool = True
    min_confidence: Optional[float] = Field(default=None, ge=0, le=1)
    max_insights: Optional[int] = Field(default=None, ge=1)
    wait: bool = False

    def to_options(self) -> GenerationOptions:
        timeframe = None
        if self.start_date and self.end_date:
            timeframe = DateRange(start=self.start_date, end=self.end_date)
        return GenerationOptions(
            timeframe=timeframe,
            metrics=self.metrics,
            include_forecasts=self.include_forecasts,
            include_recommendations=self.include_recommendations,
            min_confidence=self.min_confidence,
            max_insights=self.max_insights,
        )


class InvalidateRequest(BaseModel):
    triggers: List[str] = ["manual_refresh"]


def get_registry(request: Request) -> EngineRegistry:
    return request.app.state.engines


@router.post("/{organization_id}/generate")
async def generate_insights(
    organization_id: str,
    request: GenerateRequest,
    registry: EngineRegistry = Depends(get_registry)
):
    """
    Generate insights for an organization

    Starts a background job and returns its id, or with wait=true returns
    the ranked insights directly.
    """
    engine = registry.get_or_create(organization_id)

    if not request.wait:
        job_id = engine.start_generation(request.timeframe, request.to_options())
        return {"job_id": job_id, "status": "running"}

    try:
        insights = await engine.generate_insights(request.timeframe, request.to_options())
    except DataQualityTooLowError as e:
        raise HTTPException(
            status_code=422,
            detail={
                "message": str(e),
                "score": e.score,
                "issues": [asdict(issue) for issue in e.issues],
            }
        )
    except Exception as e:
        log.error(f"Insight generation error: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))

    return {
        "organization_id": organization_id,
        "insights": [insight.to_dict() for insight in insights],
        "total_insights": len(insights)
    }


@router.get("/jobs/{job_id}")
async def get_job_status(job_id: str, registry: EngineRegistry = Depends(get_registry)):
    """
    Poll a generation job
    """
    status = registry.find_job(job_id)
    if status is None:
        raise HTTPException(status_code=404, detail=f"Job not found: {job_id}")
    return status


@router.post("/{organization_id}/invalidate")
async def invalidate_cache(
    organization_id: str,
    request: InvalidateRequest,
    registry: EngineRegistry = Depends(get_registry)
):
    """
    Drop cached insight sets after new data, settings or integrations land
    """
    engine = registry.get(organization_id)
    if engine is not None:
        removed = engine.invalidate_cache(request.triggers)
    else:
        removed = registry.cache_registry.invalidate(organization_id, request.triggers)

    log.info(f"Cache invalidation for {organization_id} ({', '.join(request.triggers)}): {removed} removed")
    return {"organization_id": organization_id, "removed": removed}


@router.get("/{organization_id}/data-quality")
async def get_data_quality(
    organization_id: str,
    timeframe: str = "30d",
    registry: EngineRegistry = Depends(get_registry)
):
    """
    Data quality report used to gate generation
    """
    try:
        report = await registry.get_or_create(organization_id).get_data_quality_report(timeframe)
    except Exception as e:
        log.error(f"Data quality report error: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))

    return {
        "organization_id": organization_id,
        "score": report.score,
        "issues": [asdict(issue) for issue in report.issues],
        "recommendations": report.recommendations,
        "coverage": report.coverage,
        "freshness": {metric: seen.isoformat() for metric, seen in report.freshness.items()}
    }
