"""Tests for the expense model and its serialisation."""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from carledger.models import (
    Expense,
    ExpenseCategory,
    PaymentMethod,
    isoformat_utc,
    parse_date,
    parse_datetime,
)


def make_expense(**overrides) -> Expense:
    values = dict(
        id="expense_1",
        owner_id="user_1",
        car_id="car_1",
        category=ExpenseCategory.MAINTENANCE,
        amount=Decimal("45000.00"),
        description="Engine oil change",
        date=date(2024, 5, 11),
        payment_method=PaymentMethod.CASH,
        created_at=datetime(2024, 5, 11, 9, 30, tzinfo=timezone.utc),
        updated_at=datetime(2024, 5, 11, 9, 30, tzinfo=timezone.utc),
        subcategory="engine oil",
        mileage=25000,
        tags=("oil", "service"),
    )
    values.update(overrides)
    return Expense(**values)


class TestEnums:
    """Tests for the closed category and payment method sets."""

    def test_category_codes(self):
        assert [c.value for c in ExpenseCategory] == [
            "FUEL", "MAINTENANCE", "INSURANCE", "TAX", "PARKING",
            "TOLL", "CARWASH", "ACCESSORIES", "RENTAL", "OTHER",
        ]

    def test_payment_method_codes(self):
        assert [m.value for m in PaymentMethod] == [
            "CASH", "CARD", "BANK_TRANSFER", "MOBILE_PAY", "OTHER",
        ]

    def test_labels(self):
        assert ExpenseCategory.CARWASH.label == "Car wash"
        assert PaymentMethod.MOBILE_PAY.label == "Mobile pay"


class TestExpense:
    """Tests for Expense."""

    def test_is_immutable(self):
        expense = make_expense()
        with pytest.raises(AttributeError):
            expense.amount = Decimal("1")

    def test_to_dict(self):
        data = make_expense().to_dict()
        assert data["category"] == "MAINTENANCE"
        assert data["payment_method"] == "CASH"
        assert data["amount"] == "45000.00"
        assert data["date"] == "2024-05-11"
        assert data["tags"] == ["oil", "service"]
        assert data["created_at"] == "2024-05-11T09:30:00.000000Z"
        assert data["is_recurring"] is False

    def test_from_dict_restores_record(self):
        original = make_expense(location="ABC Auto Repair", notes="synthetic")
        assert Expense.from_dict(original.to_dict()) == original

    def test_from_dict_defaults_optional_fields(self):
        data = make_expense().to_dict()
        for key in ("subcategory", "mileage", "tags", "notes", "is_recurring"):
            data.pop(key)
        expense = Expense.from_dict(data)
        assert expense.subcategory is None
        assert expense.mileage is None
        assert expense.tags == ()
        assert expense.is_recurring is False


class TestParsing:
    """Tests for the date and timestamp helpers."""

    def test_parse_datetime_with_z(self):
        assert parse_datetime("2024-05-11T09:30:00Z") == datetime(
            2024, 5, 11, 9, 30, tzinfo=timezone.utc
        )

    def test_parse_naive_datetime_as_utc(self):
        assert parse_datetime("2024-05-11T09:30:00").tzinfo == timezone.utc

    def test_parse_date_accepts_timestamp(self):
        assert parse_date("2024-05-11T23:00:00Z") == date(2024, 5, 11)
        assert parse_date("2024-05-11") == date(2024, 5, 11)

    def test_isoformat_utc_naive(self):
        assert isoformat_utc(datetime(2024, 1, 1)) == "2024-01-01T00:00:00.000000Z"
