"""Core business logic package for the car ledger."""

from .models import Expense, ExpenseCategory, PaymentMethod
from .services import (
    ExpenseAggregator,
    ExpensePage,
    ExpenseQuery,
    ExpenseService,
    LedgerStats,
    PeriodSummary,
    ReportPeriod,
)
from .storage import ExpenseStore, JSONStorage, load_expenses, save_expenses
from .fixtures import bootstrap_sample_data, sample_expenses
from .exceptions import (
    AuthenticationError,
    PersistenceError,
    RecordNotFoundError,
    ValidationError,
)

__all__ = [
    "Expense",
    "ExpenseCategory",
    "PaymentMethod",
    "ExpenseAggregator",
    "ExpensePage",
    "ExpenseQuery",
    "ExpenseService",
    "LedgerStats",
    "PeriodSummary",
    "ReportPeriod",
    "ExpenseStore",
    "JSONStorage",
    "load_expenses",
    "save_expenses",
    "bootstrap_sample_data",
    "sample_expenses",
    "AuthenticationError",
    "PersistenceError",
    "RecordNotFoundError",
    "ValidationError",
]
