"""
Domain errors raised by the stock ledger.

Every error carries a machine-readable ``code`` so the HTTP layer (or any
other caller) can branch on type instead of parsing messages:

    StockLedgerError
    +-- ValidationError      missing or malformed input, nothing written
    +-- DuplicateCodeError   material code already taken
    +-- NotFoundError        referenced row missing or inactive

Callers must not retry ValidationError or DuplicateCodeError without
changing the input.
"""
from typing import Optional


class StockLedgerError(Exception):
    """Base class for all ledger errors"""

    code: str = "LEDGER_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(StockLedgerError):
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class DuplicateCodeError(StockLedgerError):
    code = "DUPLICATE_CODE"

    def __init__(self, material_code: str):
        self.material_code = material_code
        super().__init__(f"Material code '{material_code}' already exists")


class NotFoundError(StockLedgerError):
    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")
