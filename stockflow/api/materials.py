"""
Materials API endpoints
"""
from fastapi import APIRouter, Depends, Path
from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel

from stockflow.api.deps import MAX_ROW_ID, get_ledger_store, get_aggregation_service, http_error
from stockflow.exceptions import StockLedgerError
from stockflow.models.stock_transaction import TransactionType
from stockflow.services.ledger_store import LedgerStore
from stockflow.services.aggregation_service import AggregationService, StockStatus, classify_stock

router = APIRouter()


class MaterialResponse(BaseModel):
    id: int
    code: str
    name: str
    description: Optional[str]
    category: Optional[str]
    supplier: Optional[str]
    unit: str
    current_quantity: float
    min_stock_level: float
    reorder_level: float
    max_stock_level: float
    current_cost: float
    status: StockStatus
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class TransactionResponse(BaseModel):
    id: int
    material_id: int
    transaction_type: TransactionType
    quantity: float
    balance_after_transaction: float
    reference_number: Optional[str]
    project_code: Optional[str]
    department: Optional[str]
    notes: Optional[str]
    created_by: str
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class MaterialDetailResponse(MaterialResponse):
    transactions: List[TransactionResponse] = []


# Required fields are checked by the ledger so every caller gets the same errors
class MaterialCreate(BaseModel):
    name: Optional[str] = None
    code: Optional[str] = None
    unit: Optional[str] = None
    min_stock_level: Optional[float] = None
    description: Optional[str] = None
    category: Optional[str] = None
    initial_quantity: Optional[float] = 0
    current_cost: Optional[float] = 0
    supplier: Optional[str] = None


def _material_fields(m) -> dict:
    return dict(
        id=m.id,
        code=m.code,
        name=m.name,
        description=m.description,
        category=m.category,
        supplier=m.supplier,
        unit=m.unit,
        current_quantity=m.current_quantity,
        min_stock_level=m.min_stock_level,
        reorder_level=m.reorder_level,
        max_stock_level=m.max_stock_level,
        current_cost=m.current_cost,
        status=classify_stock(m),
        created_at=m.created_at,
        updated_at=m.updated_at,
    )


@router.get("")
async def list_materials(
    search: Optional[str] = None,
    category: Optional[str] = None,
    supplier: Optional[str] = None,
    stock_status: Optional[StockStatus] = None,
    aggregation: AggregationService = Depends(get_aggregation_service),
):
    """List active materials, optionally searched and filtered"""
    materials = await aggregation.search_materials(
        search=search, category=category, supplier=supplier, stock_status=stock_status
    )
    data = [MaterialResponse(**_material_fields(m)) for m in materials]
    return {"success": True, "data": data}


@router.get("/{material_id}")
async def get_material(
    material_id: int = Path(..., ge=1, le=MAX_ROW_ID),
    ledger: LedgerStore = Depends(get_ledger_store),
):
    """Get a material with its most recent transactions"""
    try:
        material, transactions = await ledger.get_material(material_id)
    except StockLedgerError as e:
        raise http_error(e)
    data = MaterialDetailResponse(
        **_material_fields(material),
        transactions=[TransactionResponse.model_validate(t) for t in transactions],
    )
    return {"success": True, "data": data}


@router.post("")
async def create_material(
    data: MaterialCreate,
    ledger: LedgerStore = Depends(get_ledger_store),
):
    """Create a new material"""
    try:
        material_id = await ledger.create_material(**data.model_dump())
    except StockLedgerError as e:
        raise http_error(e)
    return {
        "success": True,
        "data": {"id": material_id},
        "message": f"Material '{data.name}' created successfully",
    }


@router.delete("/{material_id}")
async def delete_material(
    material_id: int = Path(..., ge=1, le=MAX_ROW_ID),
    ledger: LedgerStore = Depends(get_ledger_store),
):
    """Deactivate a material (soft delete, history kept)"""
    try:
        await ledger.deactivate_material(material_id)
    except StockLedgerError as e:
        raise http_error(e)
    return {"success": True, "message": "Material deactivated"}
