"""
Stock transaction API endpoints
"""
from fastapi import APIRouter, Depends
from typing import Optional
from pydantic import BaseModel, Field

from stockflow.api.deps import MAX_ROW_ID, get_ledger_store, http_error
from stockflow.exceptions import StockLedgerError
from stockflow.services.ledger_store import LedgerStore

router = APIRouter()


class TransactionCreate(BaseModel):
    material_id: int = Field(..., ge=1, le=MAX_ROW_ID)
    transaction_type: str
    quantity: float  # signed delta
    reference_number: Optional[str] = None
    project_code: Optional[str] = None
    department: Optional[str] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None


@router.post("")
async def record_transaction(
    data: TransactionCreate,
    ledger: LedgerStore = Depends(get_ledger_store),
):
    """Apply a signed quantity change to a material"""
    try:
        transaction_id = await ledger.record_transaction(**data.model_dump())
    except StockLedgerError as e:
        raise http_error(e)
    return {
        "success": True,
        "data": {"id": transaction_id},
        "message": "Transaction recorded successfully",
    }
