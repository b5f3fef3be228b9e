"""
General helper utilities
"""
import time
from datetime import date, datetime


def epoch_millis() -> int:
    return int(time.time() * 1000)


def utc_today() -> date:
    """Calendar day in UTC, the day boundary used for daily usage"""
    return datetime.utcnow().date()


def make_reference_number(*parts: str) -> str:
    """Build a reference like INIT-STL-001-1718000000000"""
    return "-".join([*parts, str(epoch_millis())])


def format_quantity(quantity: float) -> str:
    """Format a quantity without a trailing .0 for whole numbers"""
    if float(quantity).is_integer():
        return str(int(quantity))
    return f"{quantity:g}"
