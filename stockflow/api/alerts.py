"""
Stock alerts API endpoints
"""
from fastapi import APIRouter, Depends, Path
from typing import Optional
from pydantic import BaseModel

from stockflow.api.deps import MAX_ROW_ID, get_ledger_store, get_aggregation_service, http_error
from stockflow.exceptions import StockLedgerError
from stockflow.services.ledger_store import LedgerStore
from stockflow.services.aggregation_service import AggregationService

router = APIRouter()


class ResolveRequest(BaseModel):
    resolved_by: Optional[str] = None


@router.get("")
async def list_alerts(
    aggregation: AggregationService = Depends(get_aggregation_service),
):
    """Unresolved alerts, newest first"""
    alerts = await aggregation.list_alerts()
    return {"success": True, "data": alerts}


@router.post("/{alert_id}/resolve")
async def resolve_alert(
    alert_id: int = Path(..., ge=1, le=MAX_ROW_ID),
    body: Optional[ResolveRequest] = None,
    ledger: LedgerStore = Depends(get_ledger_store),
):
    """Resolve an alert"""
    try:
        await ledger.resolve_alert(alert_id, resolved_by=body.resolved_by if body else None)
    except StockLedgerError as e:
        raise http_error(e)
    return {"success": True, "message": "Alert resolved", "id": alert_id}
