"""
Dashboard API - stock status counts and today's usage
"""
from fastapi import APIRouter, Depends

from stockflow.api.deps import get_aggregation_service
from stockflow.services.aggregation_service import AggregationService

router = APIRouter()


@router.get("/stats")
async def get_dashboard_stats(
    aggregation: AggregationService = Depends(get_aggregation_service),
):
    """Totals per stock status, open alerts and today's usage"""
    stats = await aggregation.dashboard_stats()
    return {"success": True, "data": stats}
