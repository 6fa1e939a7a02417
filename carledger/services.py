"""Framework-agnostic business services for the car ledger."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from .exceptions import ValidationError
from .models import PROTECTED_FIELDS, Expense, ExpenseCategory, PaymentMethod
from .storage import Clock, ExpenseStore, utc_now
from .validators import (
    normalize_tags,
    parse_amount,
    validate_bool,
    validate_date,
    validate_enum,
    validate_mileage,
    validate_optional_str,
    validate_required_str,
)

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
RECENT_ACTIVITY_SIZE = 5

EDITABLE_FIELDS = frozenset({
    "car_id",
    "category",
    "subcategory",
    "amount",
    "description",
    "date",
    "location",
    "mileage",
    "payment_method",
    "receipt_image_url",
    "tags",
    "notes",
    "is_recurring",
})


def _newest_first(records: Iterable[Expense]) -> List[Expense]:
    # sorted() is stable even with reverse=True, so equal dates keep insertion order.
    return sorted(records, key=lambda exp: exp.date, reverse=True)


@dataclass(frozen=True)
class ExpensePage:
    expenses: List[Expense]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return -(-self.total // self.limit)

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "expenses": [expense.to_dict() for expense in self.expenses],
            "total": self.total,
            "pagination": {
                "current_page": self.page,
                "limit": self.limit,
                "total_pages": self.total_pages,
                "total_count": self.total,
                "has_next": self.has_next,
                "has_prev": self.has_prev,
            },
        }


class ExpenseQuery:
    """Owner-scoped, filtered, newest-first, paginated reads over the store."""

    def __init__(self, store: ExpenseStore) -> None:
        self._store = store

    def matching(
        self,
        owner_id: str,
        car_id: Optional[str] = None,
        category: Optional[ExpenseCategory] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[Expense]:
        """Return every matching record, newest first, without paginating."""
        records = [exp for exp in self._store.find_all() if exp.owner_id == owner_id]
        if car_id:
            records = [exp for exp in records if exp.car_id == car_id]
        if category:
            records = [exp for exp in records if exp.category == category]
        # The range only applies when both bounds are present; both are inclusive.
        if start_date is not None and end_date is not None:
            records = [exp for exp in records if start_date <= exp.date <= end_date]
        return _newest_first(records)

    def query(
        self,
        owner_id: str,
        car_id: Optional[str] = None,
        category: Optional[ExpenseCategory] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> ExpensePage:
        page = max(page, 1)
        limit = max(limit, 1)
        records = self.matching(owner_id, car_id, category, start_date, end_date)
        skip = (page - 1) * limit
        return ExpensePage(
            expenses=records[skip:skip + limit],
            total=len(records),
            page=page,
            limit=limit,
        )


class ReportPeriod(str, Enum):
    MONTH = "month"
    YEAR = "year"

    @classmethod
    def resolve(cls, value: Union["ReportPeriod", str, None]) -> "ReportPeriod":
        """Anything other than ``year`` reports on the current month."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str) and value.strip().lower() == cls.YEAR.value:
            return cls.YEAR
        return cls.MONTH


@dataclass(frozen=True)
class CategoryStat:
    category: ExpenseCategory
    amount: Decimal
    count: int
    percentage: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category.value,
            "amount": f"{self.amount:.2f}",
            "count": self.count,
            "percentage": self.percentage,
        }


@dataclass(frozen=True)
class PaymentMethodStat:
    method: PaymentMethod
    amount: Decimal
    count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "method": self.method.value,
            "amount": f"{self.amount:.2f}",
            "count": self.count,
        }


@dataclass(frozen=True)
class PeriodSummary:
    period: ReportPeriod
    window_start: date
    total_amount: Decimal
    average_amount: Decimal
    total_transactions: int
    category_stats: List[CategoryStat] = field(default_factory=list)
    payment_method_stats: List[PaymentMethodStat] = field(default_factory=list)


@dataclass(frozen=True)
class LedgerStats:
    """Period-bound totals alongside the all-time recent activity feed."""

    summary: PeriodSummary
    recent_expenses: List[Expense]

    def to_dict(self) -> Dict[str, Any]:
        summary = self.summary
        return {
            "period": summary.period.value,
            "window_start": summary.window_start.isoformat(),
            "summary": {
                "total_amount": f"{summary.total_amount:.2f}",
                "average_amount": f"{summary.average_amount:.2f}",
                "total_transactions": summary.total_transactions,
            },
            "category_stats": [stat.to_dict() for stat in summary.category_stats],
            "payment_method_stats": [stat.to_dict() for stat in summary.payment_method_stats],
            "recent_expenses": [expense.to_dict() for expense in self.recent_expenses],
        }


class ExpenseAggregator:
    """Summary statistics for a reporting period.

    ``period_summary`` and ``recent_activity`` are separate queries: the
    totals only cover the reporting window, while the activity feed shows the
    newest records regardless of period.
    """

    def __init__(self, query: ExpenseQuery, clock: Optional[Clock] = None) -> None:
        self._query = query
        self._clock = clock or utc_now

    def window_start(self, period: Union[ReportPeriod, str, None] = ReportPeriod.MONTH) -> date:
        today = self._clock().date()
        if ReportPeriod.resolve(period) is ReportPeriod.YEAR:
            return date(today.year, 1, 1)
        return date(today.year, today.month, 1)

    def period_summary(
        self,
        owner_id: str,
        car_id: Optional[str] = None,
        period: Union[ReportPeriod, str, None] = ReportPeriod.MONTH,
    ) -> PeriodSummary:
        resolved = ReportPeriod.resolve(period)
        start = self.window_start(resolved)
        windowed = [exp for exp in self._query.matching(owner_id, car_id) if exp.date >= start]

        total = sum((exp.amount for exp in windowed), start=Decimal("0.00"))
        count = len(windowed)
        average = (total / max(count, 1)).quantize(Decimal("0.01"))

        by_category: Dict[ExpenseCategory, List[Expense]] = {}
        by_method: Dict[PaymentMethod, List[Expense]] = {}
        for expense in windowed:
            by_category.setdefault(expense.category, []).append(expense)
            by_method.setdefault(expense.payment_method, []).append(expense)

        category_stats = []
        for category, records in by_category.items():
            amount = sum((exp.amount for exp in records), start=Decimal("0.00"))
            percentage = float(amount * 100 / total) if total else 0.0
            category_stats.append(CategoryStat(category, amount, len(records), percentage))

        payment_method_stats = [
            PaymentMethodStat(
                method,
                sum((exp.amount for exp in records), start=Decimal("0.00")),
                len(records),
            )
            for method, records in by_method.items()
        ]

        return PeriodSummary(
            period=resolved,
            window_start=start,
            total_amount=total,
            average_amount=average,
            total_transactions=count,
            category_stats=category_stats,
            payment_method_stats=payment_method_stats,
        )

    def recent_activity(
        self, owner_id: str, car_id: Optional[str] = None, limit: int = RECENT_ACTIVITY_SIZE
    ) -> List[Expense]:
        return self._query.matching(owner_id, car_id)[:limit]

    def summarize(
        self,
        owner_id: str,
        car_id: Optional[str] = None,
        period: Union[ReportPeriod, str, None] = ReportPeriod.MONTH,
    ) -> LedgerStats:
        return LedgerStats(
            summary=self.period_summary(owner_id, car_id, period),
            recent_expenses=self.recent_activity(owner_id, car_id),
        )


class ExpenseService:
    """Validating entry point used by the HTTP API and the CLI."""

    def __init__(self, store: ExpenseStore, clock: Optional[Clock] = None) -> None:
        self._store = store
        self._clock = clock or utc_now
        self._query = ExpenseQuery(store)
        self._aggregator = ExpenseAggregator(self._query, self._clock)

    @property
    def store(self) -> ExpenseStore:
        return self._store

    # Public API -----------------------------------------------------------
    def add(self, owner_id: str, payload: Mapping[str, object]) -> Expense:
        owner = validate_required_str(owner_id, "owner_id", 100)
        for required in ("car_id", "category", "amount", "description"):
            if payload.get(required) in (None, ""):
                raise ValidationError(f"{required} is required")
        data = self._validate_payload(payload)
        expense = self._store.create({"owner_id": owner, **data})
        logger.info("Created expense %s (%s %s)", expense.id, expense.category.value, expense.amount)
        return expense

    def get(self, expense_id: str, owner_id: Optional[str] = None) -> Optional[Expense]:
        expense = self._store.find_by_id(expense_id)
        if expense is None or (owner_id is not None and expense.owner_id != owner_id):
            return None
        return expense

    def update(
        self, expense_id: str, changes: Mapping[str, object], owner_id: Optional[str] = None
    ) -> Optional[Expense]:
        existing = self.get(expense_id, owner_id)
        if existing is None:
            return None
        editable = {k: v for k, v in changes.items() if k not in PROTECTED_FIELDS}
        unknown = sorted(set(editable) - EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown fields: {', '.join(unknown)}")
        for key in ("date", "payment_method"):
            if key in editable and editable[key] in (None, ""):
                raise ValidationError(f"{key} cannot be empty")
        # Validate the merged record so partial updates cannot break invariants.
        merged = {**existing.to_dict(), **editable}
        data = self._validate_payload(merged)
        updated = self._store.update(expense_id, {k: data[k] for k in editable})
        if updated is not None:
            logger.info("Updated expense %s (%s)", expense_id, ", ".join(sorted(editable)) or "no fields")
        return updated

    def delete(self, expense_id: str, owner_id: Optional[str] = None) -> bool:
        if self.get(expense_id, owner_id) is None:
            return False
        deleted = self._store.delete(expense_id)
        if deleted:
            logger.info("Deleted expense %s", expense_id)
        return deleted

    def list(
        self,
        owner_id: str,
        car_id: Optional[str] = None,
        category: Optional[object] = None,
        start_date: Optional[object] = None,
        end_date: Optional[object] = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> ExpensePage:
        return self._query.query(
            owner_id,
            car_id=car_id or None,
            category=validate_enum(category, "category", ExpenseCategory) if category else None,
            start_date=validate_date(start_date, "start_date") if start_date else None,
            end_date=validate_date(end_date, "end_date") if end_date else None,
            page=page,
            limit=limit,
        )

    def stats(
        self,
        owner_id: str,
        car_id: Optional[str] = None,
        period: Union[ReportPeriod, str, None] = ReportPeriod.MONTH,
    ) -> LedgerStats:
        return self._aggregator.summarize(owner_id, car_id or None, period)

    # Internal helpers -----------------------------------------------------
    def _validate_payload(self, payload: Mapping[str, object]) -> Dict[str, object]:
        raw_date = payload.get("date")
        raw_method = payload.get("payment_method")
        return {
            "car_id": validate_required_str(payload.get("car_id"), "car_id", 100),
            "category": validate_enum(payload.get("category"), "category", ExpenseCategory),
            "subcategory": validate_optional_str(payload.get("subcategory"), "subcategory", 50),
            "amount": parse_amount(payload.get("amount"), "amount"),
            "description": validate_required_str(payload.get("description"), "description", 200),
            "date": validate_date(raw_date, "date") if raw_date else self._clock().date(),
            "location": validate_optional_str(payload.get("location"), "location", 100),
            "mileage": validate_mileage(payload.get("mileage")),
            "payment_method": (
                validate_enum(raw_method, "payment_method", PaymentMethod)
                if raw_method
                else PaymentMethod.CASH
            ),
            "receipt_image_url": validate_optional_str(
                payload.get("receipt_image_url"), "receipt_image_url", 500
            ),
            "tags": tuple(normalize_tags(payload.get("tags"))),
            "notes": validate_optional_str(payload.get("notes"), "notes", 1000),
            "is_recurring": validate_bool(payload.get("is_recurring") or False, "is_recurring"),
        }
