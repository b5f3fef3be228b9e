"""
Export and ledger reconciliation endpoints
"""
from fastapi import APIRouter, Depends

from stockflow.api.deps import get_aggregation_service
from stockflow.services.aggregation_service import AggregationService

router = APIRouter()


@router.get("/export")
async def export_data(
    aggregation: AggregationService = Depends(get_aggregation_service),
):
    """Materials and dashboard stats as one JSON document"""
    snapshot = await aggregation.export_snapshot()
    return {"success": True, "data": snapshot}


@router.get("/ledger/discrepancies")
async def ledger_discrepancies(
    aggregation: AggregationService = Depends(get_aggregation_service),
):
    """Materials whose quantity differs from the sum of their transactions"""
    discrepancies = await aggregation.ledger_discrepancies()
    return {"success": True, "data": discrepancies}
