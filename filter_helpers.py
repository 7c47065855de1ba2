from datetime import date, datetime
from typing import Optional

import timeutil
from errors import ValidationError
from models import LoanStatus

DEFAULT_LIMIT = 10
MAX_LIMIT = 100


def blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    if value == "":
        return None
    return value


def normalize_page(page: int) -> int:
    if page < 1:
        return 1
    return page


def normalize_limit(limit: int, *, min_value: int = 1, max_value: int = MAX_LIMIT) -> int:
    if limit < min_value:
        return min_value
    if limit > max_value:
        return max_value
    return limit


def total_pages(total: int, limit: int) -> int:
    return (total + limit - 1) // limit


def parse_optional_int(value: Optional[str], field: str) -> Optional[int]:
    value = blank_to_none(value)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        raise ValidationError(errors=[{"field": field, "message": f"{field} must be an integer"}])


def parse_optional_bool(value: Optional[str], field: str) -> Optional[bool]:
    value = blank_to_none(value)
    if value is None:
        return None
    lowered = value.lower()
    if lowered in ("true", "1", "yes"):
        return True
    if lowered in ("false", "0", "no"):
        return False
    raise ValidationError(errors=[{"field": field, "message": f"{field} must be true or false"}])


def normalize_status(status: Optional[str]) -> Optional[LoanStatus]:
    status = blank_to_none(status)
    if status is None:
        return None
    try:
        return LoanStatus(status.upper())
    except ValueError:
        raise ValidationError(errors=[{"field": "status", "message": "status must be BORROWED, RETURNED or OVERDUE"}])


def parse_date_param(value: Optional[str], field: str) -> Optional[datetime]:
    """Accepts ``YYYY-MM-DD`` or a full ISO timestamp."""
    value = blank_to_none(value)
    if value is None:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        try:
            parsed = datetime.combine(date.fromisoformat(value), datetime.min.time())
        except ValueError:
            raise ValidationError(errors=[{"field": field, "message": f"{field} must be an ISO date"}])
    if parsed.tzinfo is not None:
        parsed = timeutil.to_local_naive(parsed)
    return parsed
