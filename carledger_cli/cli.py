"""Console interface for the car ledger."""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from carledger.exceptions import PersistenceError, RecordNotFoundError, ValidationError
from carledger.fixtures import sample_expenses
from carledger.models import ExpenseCategory, PaymentMethod
from carledger.services import DEFAULT_PAGE_SIZE, ExpenseService
from carledger.storage import ExpenseStore, JSONStorage, load_expenses, save_expenses

logger = logging.getLogger(__name__)

DEFAULT_USER = "local"


def _parse_date(value: str) -> str:
    try:
        date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(
            f"Invalid date '{value}'. Expected format YYYY-MM-DD."
        ) from exc
    return value


def _parse_amount(value: str) -> str:
    try:
        amount = Decimal(value)
    except InvalidOperation as exc:
        raise argparse.ArgumentTypeError("Amount must be a numeric value") from exc
    if not amount.is_finite():
        raise argparse.ArgumentTypeError("Amount must be a finite number")
    if amount < 0:
        raise argparse.ArgumentTypeError("Amount must not be negative")
    return value


def _comma_join(items: Iterable[str]) -> str:
    return ", ".join(items)


def _format_expense(expense: Dict[str, Any]) -> str:
    tags = _comma_join(expense.get("tags", [])) or "-"
    category = ExpenseCategory(expense["category"]).label
    if expense.get("subcategory"):
        category = f"{category} / {expense['subcategory']}"
    mileage = f"{expense['mileage']:,} km" if expense.get("mileage") is not None else "-"
    recurring = " (recurring)" if expense.get("is_recurring") else ""
    return (
        f"[{expense['id']}] {expense['date']} {expense['amount']}{recurring}\n"
        f"  Car: {expense['car_id']} | Category: {category} | "
        f"Payment: {PaymentMethod(expense['payment_method']).label}\n"
        f"  Description: {expense['description']}\n"
        f"  Location: {expense.get('location') or '-'} | Mileage: {mileage}\n"
        f"  Tags: {tags}\n"
    )


def _expense_fields(args: argparse.Namespace) -> Dict[str, Any]:
    return {
        "car_id": getattr(args, "car_id", None),
        "category": args.category,
        "amount": args.amount,
        "description": args.description,
        "date": args.date,
        "payment_method": args.payment_method,
        "subcategory": args.subcategory,
        "location": args.location,
        "mileage": args.mileage,
        "receipt_image_url": args.receipt,
        "tags": args.tags,
        "notes": args.notes,
        "is_recurring": args.recurring,
    }


def handle_expense(args: argparse.Namespace, service: ExpenseService) -> bool:
    """Run an ``expense`` subcommand; returns whether the ledger changed."""
    if args.command == "add":
        expense = service.add(args.user, _expense_fields(args))
        print("Expense added:\n" + _format_expense(expense.to_dict()))
        return True
    if args.command == "list":
        page = service.list(
            args.user,
            car_id=args.car,
            category=args.category,
            start_date=args.start,
            end_date=args.end,
            page=args.page,
            limit=args.limit,
        )
        if not page.expenses:
            print("No expenses found.")
            return False
        shown = sum((expense.amount for expense in page.expenses), start=Decimal("0.00"))
        print(
            f"Page {page.page}/{page.total_pages}: {len(page.expenses)} of {page.total} "
            f"expenses (page total {shown:.2f}):"
        )
        for expense in page.expenses:
            print(_format_expense(expense.to_dict()))
        return False
    if args.command == "show":
        expense = service.get(args.id, args.user)
        if expense is None:
            raise RecordNotFoundError(f"Expense {args.id} not found")
        print(_format_expense(expense.to_dict()))
        return False
    if args.command == "edit":
        changes = {k: v for k, v in _expense_fields(args).items() if v is not None}
        expense = service.update(args.id, changes, args.user)
        if expense is None:
            raise RecordNotFoundError(f"Expense {args.id} not found")
        print("Expense updated:\n" + _format_expense(expense.to_dict()))
        return True
    if args.command == "delete":
        if not service.delete(args.id, args.user):
            raise RecordNotFoundError(f"Expense {args.id} not found")
        print(f"Expense {args.id} deleted.")
        return True
    return False


def handle_stats(args: argparse.Namespace, service: ExpenseService) -> None:
    stats = service.stats(args.user, car_id=args.car, period=args.period)
    summary = stats.summary
    print(f"Period: {summary.period.value} (since {summary.window_start.isoformat()})")
    print(
        f"Total {summary.total_amount:.2f} over {summary.total_transactions} transactions "
        f"(average {summary.average_amount:.2f})"
    )
    if summary.category_stats:
        print("By category:")
        for stat in summary.category_stats:
            print(
                f"  {stat.category.label:<12} {stat.amount:>12.2f}  "
                f"x{stat.count}  {stat.percentage:5.1f}%"
            )
    if summary.payment_method_stats:
        print("By payment method:")
        for method_stat in summary.payment_method_stats:
            print(f"  {method_stat.method.label:<12} {method_stat.amount:>12.2f}  x{method_stat.count}")
    if stats.recent_expenses:
        print("Recent expenses:")
        for expense in stats.recent_expenses:
            print(f"  {expense.date.isoformat()} {expense.category.label:<12} {expense.amount:.2f}  {expense.description}")


def _add_expense_options(parser: argparse.ArgumentParser, *, editing: bool) -> None:
    if editing:
        parser.add_argument("--car", dest="car_id")
        parser.add_argument("--category")
        parser.add_argument("--amount", type=_parse_amount)
        parser.add_argument("--description")
    parser.add_argument("--date", type=_parse_date)
    parser.add_argument("--payment-method")
    parser.add_argument("--subcategory")
    parser.add_argument("--location")
    parser.add_argument("--mileage", type=int)
    parser.add_argument("--receipt")
    parser.add_argument("--tags", nargs="*", default=None if editing else [])
    parser.add_argument("--notes")
    parser.add_argument(
        "--recurring",
        action=argparse.BooleanOptionalAction,
        default=None if editing else False,
        help="Mark or unmark as a recurring expense",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Car Ledger CLI")
    parser.add_argument(
        "--data-dir",
        default="data",
        type=Path,
        help="Directory to store JSON data (default: ./data)",
    )
    parser.add_argument(
        "--user",
        default=DEFAULT_USER,
        help=f"Owner id the commands act for (default: {DEFAULT_USER})",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="entity", required=True)

    expense_parser = subparsers.add_parser("expense", help="Manage expenses")
    expense_sub = expense_parser.add_subparsers(dest="command", required=True)

    expense_add = expense_sub.add_parser("add", help="Record a new expense")
    expense_add.add_argument("car_id")
    expense_add.add_argument("category", help=_comma_join(c.value for c in ExpenseCategory))
    expense_add.add_argument("amount", type=_parse_amount)
    expense_add.add_argument("description")
    _add_expense_options(expense_add, editing=False)

    expense_list = expense_sub.add_parser("list", help="List expenses, newest first")
    expense_list.add_argument("--car")
    expense_list.add_argument("--category")
    expense_list.add_argument("--start", type=_parse_date)
    expense_list.add_argument("--end", type=_parse_date)
    expense_list.add_argument("--page", type=int, default=1)
    expense_list.add_argument("--limit", type=int, default=DEFAULT_PAGE_SIZE)

    expense_show = expense_sub.add_parser("show", help="Show a single expense")
    expense_show.add_argument("id")

    expense_edit = expense_sub.add_parser("edit", help="Edit an existing expense")
    expense_edit.add_argument("id")
    _add_expense_options(expense_edit, editing=True)

    expense_delete = expense_sub.add_parser("delete", help="Delete an expense")
    expense_delete.add_argument("id")

    stats_parser = subparsers.add_parser("stats", help="Summarise spending for a period")
    stats_parser.add_argument("--car")
    stats_parser.add_argument("--period", choices=["month", "year"], default="month")

    subparsers.add_parser("seed-sample", help="Add the sample expenses for the current user")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        storage = JSONStorage(args.data_dir)
        store = ExpenseStore()
        store.seed(load_expenses(storage))
        service = ExpenseService(store)

        changed = False
        if args.entity == "expense":
            changed = handle_expense(args, service)
        elif args.entity == "stats":
            handle_stats(args, service)
        elif args.entity == "seed-sample":
            count = store.seed(sample_expenses(owner_id=args.user))
            print(f"Added {count} sample expenses for {args.user}.")
            changed = True
        else:  # pragma: no cover - argparse should prevent this
            parser.error(f"Unknown entity: {args.entity}")
            return 2

        if changed:
            save_expenses(storage, store.find_all())
            logger.debug("Saved %d expenses to %s", len(store), storage.base_path)
    except ValidationError as exc:
        print(f"Validation error: {exc}", file=sys.stderr)
        return 1
    except RecordNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    except PersistenceError as exc:
        print(f"Storage error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
