"""Sample ledger data for demos and local development.

Nothing here runs on import; callers opt in through :func:`bootstrap_sample_data`.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional

from .models import Expense, ExpenseCategory, PaymentMethod
from .storage import ExpenseStore, utc_now

SAMPLE_OWNER_ID = "user_sample"
SAMPLE_CAR_ID = "car_sample"


def sample_expenses(
    now: Optional[datetime] = None,
    owner_id: str = SAMPLE_OWNER_ID,
    car_id: str = SAMPLE_CAR_ID,
) -> List[Expense]:
    """Three expenses dated 7, 14 and 3 days before ``now``.

    Ids are prefixed with ``owner_id`` so several owners can share one store.
    """
    now = now or utc_now()

    def days_ago(days: int) -> datetime:
        return now - timedelta(days=days)

    return [
        Expense(
            id=f"{owner_id}_expense_1",
            owner_id=owner_id,
            car_id=car_id,
            category=ExpenseCategory.FUEL,
            amount=Decimal("65000.00"),
            description="Fuel - self-service station",
            date=days_ago(7).date(),
            location="Gangnam-gu, Seoul",
            payment_method=PaymentMethod.CARD,
            created_at=days_ago(7),
            updated_at=days_ago(7),
        ),
        Expense(
            id=f"{owner_id}_expense_2",
            owner_id=owner_id,
            car_id=car_id,
            category=ExpenseCategory.MAINTENANCE,
            subcategory="engine oil",
            amount=Decimal("45000.00"),
            description="Engine oil change",
            date=days_ago(14).date(),
            location="ABC Auto Repair",
            mileage=25000,
            payment_method=PaymentMethod.CASH,
            created_at=days_ago(14),
            updated_at=days_ago(14),
        ),
        Expense(
            id=f"{owner_id}_expense_3",
            owner_id=owner_id,
            car_id=car_id,
            category=ExpenseCategory.CARWASH,
            amount=Decimal("15000.00"),
            description="Interior and exterior wash",
            date=days_ago(3).date(),
            location="XYZ Car Wash",
            payment_method=PaymentMethod.CARD,
            created_at=days_ago(3),
            updated_at=days_ago(3),
        ),
    ]


def bootstrap_sample_data(
    store: ExpenseStore,
    now: Optional[datetime] = None,
    owner_id: str = SAMPLE_OWNER_ID,
) -> int:
    """Seed ``store`` with :func:`sample_expenses`; returns the number of records added.

    Sample records already in the store, e.g. from a loaded snapshot, are skipped.
    """
    records = [
        expense
        for expense in sample_expenses(now, owner_id=owner_id)
        if store.find_by_id(expense.id) is None
    ]
    return store.seed(records)
