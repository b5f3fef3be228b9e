"""
Input validation utilities
"""
import math
from typing import Any, Optional

from stockflow.exceptions import ValidationError
from stockflow.models.stock_transaction import TransactionType


def require_text(value: Optional[str], field: str) -> str:
    """Validate a required string field is present and not blank"""
    if value is None or not str(value).strip():
        raise ValidationError(f"Missing required field: {field}", field=field)
    return str(value).strip()


def validate_number(value: Any, field: str) -> float:
    """Validate value is a finite real number (bools rejected)"""
    if value is None:
        raise ValidationError(f"Missing required field: {field}", field=field)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{field} must be a number", field=field)
    if not math.isfinite(value):
        raise ValidationError(f"{field} must be finite", field=field)
    return float(value)


def validate_positive(value: Any, field: str) -> float:
    """Validate value is a number greater than zero"""
    number = validate_number(value, field)
    if number <= 0:
        raise ValidationError(f"{field} must be greater than zero", field=field)
    return number


def validate_non_negative(value: Any, field: str) -> float:
    """Validate value is a number that is zero or more"""
    number = validate_number(value, field)
    if number < 0:
        raise ValidationError(f"{field} must not be negative", field=field)
    return number


def validate_transaction_type(value: Any) -> TransactionType:
    """Validate transaction type is one of the known ledger entry types"""
    try:
        return TransactionType(value)
    except ValueError:
        valid = ", ".join(t.value for t in TransactionType)
        raise ValidationError(
            f"Invalid transaction_type '{value}'. Must be one of: {valid}",
            field="transaction_type",
        )
