"""Data models for the vehicle expense ledger."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Tuple

__all__ = [
    "ExpenseCategory",
    "PaymentMethod",
    "Expense",
    "PROTECTED_FIELDS",
    "isoformat_utc",
    "parse_datetime",
    "parse_date",
]

# Assigned by the store; callers can never set or change them.
PROTECTED_FIELDS = frozenset({"id", "owner_id", "created_at", "updated_at"})


def isoformat_utc(dt: datetime) -> str:
    """Return an ISO 8601 string with trailing Z for UTC-aware datetimes."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    else:
        dt = dt.astimezone(timezone.utc)
    iso = dt.isoformat(timespec="microseconds")
    return iso.replace("+00:00", "Z")


def parse_datetime(value: str) -> datetime:
    """Parse ISO 8601 datetime strings with optional trailing Z into UTC-aware datetime."""
    value = value.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        # Naive timestamps are treated as UTC.
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_date(value: str) -> date:
    """Parse either a bare ``YYYY-MM-DD`` date or a full ISO 8601 timestamp."""
    value = value.strip()
    if len(value) == 10:
        return date.fromisoformat(value)
    return parse_datetime(value).date()


class ExpenseCategory(str, Enum):
    """Closed set of top-level spend categories."""

    FUEL = "FUEL"
    MAINTENANCE = "MAINTENANCE"
    INSURANCE = "INSURANCE"
    TAX = "TAX"
    PARKING = "PARKING"
    TOLL = "TOLL"
    CARWASH = "CARWASH"
    ACCESSORIES = "ACCESSORIES"
    RENTAL = "RENTAL"
    OTHER = "OTHER"

    @property
    def label(self) -> str:
        return _CATEGORY_LABELS[self]


class PaymentMethod(str, Enum):
    """How an expense was paid."""

    CASH = "CASH"
    CARD = "CARD"
    BANK_TRANSFER = "BANK_TRANSFER"
    MOBILE_PAY = "MOBILE_PAY"
    OTHER = "OTHER"

    @property
    def label(self) -> str:
        return _PAYMENT_LABELS[self]


_CATEGORY_LABELS = {
    ExpenseCategory.FUEL: "Fuel",
    ExpenseCategory.MAINTENANCE: "Maintenance",
    ExpenseCategory.INSURANCE: "Insurance",
    ExpenseCategory.TAX: "Tax",
    ExpenseCategory.PARKING: "Parking",
    ExpenseCategory.TOLL: "Toll",
    ExpenseCategory.CARWASH: "Car wash",
    ExpenseCategory.ACCESSORIES: "Accessories",
    ExpenseCategory.RENTAL: "Rental",
    ExpenseCategory.OTHER: "Other",
}

_PAYMENT_LABELS = {
    PaymentMethod.CASH: "Cash",
    PaymentMethod.CARD: "Card",
    PaymentMethod.BANK_TRANSFER: "Bank transfer",
    PaymentMethod.MOBILE_PAY: "Mobile pay",
    PaymentMethod.OTHER: "Other",
}


@dataclass(frozen=True)
class Expense:
    id: str
    owner_id: str
    car_id: str
    category: ExpenseCategory
    amount: Decimal
    description: str
    date: date
    payment_method: PaymentMethod
    created_at: datetime
    updated_at: datetime
    subcategory: Optional[str] = None
    location: Optional[str] = None
    mileage: Optional[int] = None
    receipt_image_url: Optional[str] = None
    tags: Tuple[str, ...] = field(default_factory=tuple)
    notes: Optional[str] = None
    is_recurring: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Serialise the expense to JSON-friendly natives."""
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "car_id": self.car_id,
            "category": self.category.value,
            "subcategory": self.subcategory,
            "amount": f"{self.amount:.2f}",
            "description": self.description,
            "date": self.date.isoformat(),
            "location": self.location,
            "mileage": self.mileage,
            "payment_method": self.payment_method.value,
            "receipt_image_url": self.receipt_image_url,
            "tags": list(self.tags),
            "notes": self.notes,
            "is_recurring": self.is_recurring,
            "created_at": isoformat_utc(self.created_at),
            "updated_at": isoformat_utc(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Expense":
        """Hydrate an Expense from JSON-native data."""
        mileage = data.get("mileage")
        return cls(
            id=data["id"],
            owner_id=data["owner_id"],
            car_id=data["car_id"],
            category=ExpenseCategory(data["category"]),
            amount=Decimal(str(data["amount"])),
            description=data["description"],
            date=parse_date(data["date"]),
            payment_method=PaymentMethod(data["payment_method"]),
            created_at=parse_datetime(data["created_at"]),
            updated_at=parse_datetime(data["updated_at"]),
            subcategory=data.get("subcategory"),
            location=data.get("location"),
            mileage=int(mileage) if mileage is not None else None,
            receipt_image_url=data.get("receipt_image_url"),
            tags=tuple(data.get("tags") or ()),
            notes=data.get("notes"),
            is_recurring=bool(data.get("is_recurring", False)),
        )
