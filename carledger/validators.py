"""Validation helpers shared across the ledger services and interfaces."""

from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum
from typing import Iterable, List, Optional, Type, TypeVar

from .exceptions import ValidationError
from .models import parse_date

TAG_PATTERN = re.compile(r"^[a-z0-9_-]{1,30}$")
# Amounts stay below 10**13 so ledger totals fit the default decimal context.
MAX_AMOUNT_DIGITS = 13

E = TypeVar("E", bound=Enum)


def _quantize_two_decimals(amount: Decimal) -> Decimal:
    """Round the amount to two decimal places using HALF_UP rounding."""
    return amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def parse_amount(raw: object, field: str) -> Decimal:
    """Convert raw input to a non-negative Decimal with exactly two fraction digits."""
    if isinstance(raw, bool):
        raise ValidationError(f"{field} must be a numeric value")
    try:
        amount = Decimal(str(raw).strip())
    except (InvalidOperation, TypeError) as exc:  # type: ignore[arg-type]
        raise ValidationError(f"{field} must be a numeric value") from exc

    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    if amount < 0:
        raise ValidationError(f"{field} must not be negative")
    if amount and amount.adjusted() >= MAX_AMOUNT_DIGITS:
        raise ValidationError(f"{field} is too large")

    try:
        return _quantize_two_decimals(amount)
    except InvalidOperation as exc:
        raise ValidationError(f"{field} is too large") from exc


def validate_required_str(value: object, field: str, max_length: int) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    trimmed = value.strip()
    if not trimmed:
        raise ValidationError(f"{field} cannot be empty")
    if len(trimmed) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return trimmed


def validate_optional_str(value: object, field: str, max_length: int) -> Optional[str]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return validate_required_str(value, field, max_length)


def normalize_tags(raw_tags: Optional[Iterable[object]]) -> List[str]:
    if raw_tags is None:
        return []
    if isinstance(raw_tags, str):
        raise ValidationError("tags must be a list of strings")
    normalized: List[str] = []
    seen = set()
    for raw in raw_tags:
        if not isinstance(raw, str):
            raise ValidationError("tags must be strings")
        tag = raw.strip().lower()
        if not tag:
            raise ValidationError("tags cannot be empty strings")
        if len(tag) > 30:
            raise ValidationError("tags must be at most 30 characters")
        if not TAG_PATTERN.fullmatch(tag):
            raise ValidationError("tags may only contain lowercase letters, digits, underscores, or hyphens")
        if tag in seen:
            continue
        seen.add(tag)
        normalized.append(tag)
    return normalized


def validate_date(value: object, field: str) -> date:
    # datetime is a date subclass, so check it first.
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return parse_date(value)
        except ValueError as exc:
            raise ValidationError(f"{field} must be an ISO 8601 date") from exc
    raise ValidationError(f"{field} must be a date or ISO 8601 string")


def validate_enum(value: object, field: str, enum_cls: Type[E]) -> E:
    if isinstance(value, enum_cls):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    canonical = re.sub(r"[\s-]+", "_", value.strip()).upper()
    try:
        return enum_cls(canonical)
    except ValueError as exc:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(f"{field} must be one of: {allowed}") from exc


def validate_mileage(value: object, field: str = "mileage") -> Optional[int]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a whole number")
    try:
        mileage = int(str(value).strip())
    except ValueError as exc:
        raise ValidationError(f"{field} must be a whole number") from exc
    if mileage < 0:
        raise ValidationError(f"{field} must not be negative")
    return mileage


def validate_bool(value: object, field: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "1", "yes"}:
            return True
        if lowered in {"false", "0", "no"}:
            return False
    raise ValidationError(f"{field} must be a boolean")


def parse_positive_int(raw: object, field: str, default: int) -> int:
    """Parse paging parameters, clamping anything below one up to one."""
    if raw is None or raw == "":
        return default
    try:
        number = int(str(raw).strip())
    except ValueError as exc:
        raise ValidationError(f"{field} must be an integer") from exc
    return max(number, 1)
