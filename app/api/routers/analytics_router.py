"""
app/api/routers/analytics_router.py

Aggregated analytics and heatmap endpoints over the caller's full record set.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from app.api.dependencies import get_dashboard_session
from app.schemas.sales import AnalyticsSummaryResponse, HeatmapBucketResponse
from app.services.dashboard_session import DashboardSession

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("/summary", response_model=AnalyticsSummaryResponse)
def analytics_summary(dashboard: DashboardSession = Depends(get_dashboard_session)) -> AnalyticsSummaryResponse:
    return AnalyticsSummaryResponse.model_validate(dashboard.analytics())


@router.get("/heatmap", response_model=list[HeatmapBucketResponse])
def heatmap(dashboard: DashboardSession = Depends(get_dashboard_session)) -> list[HeatmapBucketResponse]:
    return [
        HeatmapBucketResponse(
            name=bucket.location.name,
            latitude=bucket.location.latitude,
            longitude=bucket.location.longitude,
            count=bucket.count,
            intensity=bucket.intensity,
        )
        for bucket in dashboard.heatmap()
    ]
