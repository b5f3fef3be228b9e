"""
FastAPI dependencies for the ledger services
"""
from fastapi import HTTPException, Request

from stockflow.exceptions import StockLedgerError, ValidationError, DuplicateCodeError, NotFoundError
from stockflow.services.ledger_store import LedgerStore
from stockflow.services.aggregation_service import AggregationService

# Largest id an INTEGER primary key can hold
MAX_ROW_ID = 2**63 - 1

STATUS_FOR_ERROR = {
    ValidationError: 400,
    NotFoundError: 404,
    DuplicateCodeError: 409,
}


def get_ledger_store(request: Request) -> LedgerStore:
    """Ledger store constructed at startup (overridden in tests)"""
    return request.app.state.ledger_store


def get_aggregation_service(request: Request) -> AggregationService:
    return request.app.state.aggregation_service


def http_error(exc: StockLedgerError) -> HTTPException:
    """Translate a ledger error into the matching HTTP status"""
    status_code = STATUS_FOR_ERROR.get(type(exc), 400)
    return HTTPException(status_code=status_code, detail=exc.message)
