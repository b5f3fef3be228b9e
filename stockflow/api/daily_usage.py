"""
Daily usage API endpoints
"""
from fastapi import APIRouter, Depends
from typing import Optional
from datetime import date
from pydantic import BaseModel, Field

from stockflow.api.deps import MAX_ROW_ID, get_ledger_store, http_error
from stockflow.exceptions import StockLedgerError
from stockflow.services.ledger_store import LedgerStore

router = APIRouter()


class DailyUsageCreate(BaseModel):
    material_id: int = Field(..., ge=1, le=MAX_ROW_ID)
    quantity_used: Optional[float] = None
    project_code: Optional[str] = None
    department: Optional[str] = None
    recorded_by: Optional[str] = None
    notes: Optional[str] = None
    usage_date: Optional[date] = None


@router.post("")
async def record_daily_usage(
    data: DailyUsageCreate,
    ledger: LedgerStore = Depends(get_ledger_store),
):
    """Record material consumed today (or on usage_date)"""
    try:
        usage_id = await ledger.record_daily_usage(**data.model_dump())
    except StockLedgerError as e:
        raise http_error(e)
    return {
        "success": True,
        "data": {"id": usage_id},
        "message": "Usage recorded successfully",
    }
