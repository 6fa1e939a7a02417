"""In-memory expense store plus JSON snapshot utilities."""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional
from uuid import uuid4

from .exceptions import PersistenceError, ValidationError
from .models import PROTECTED_FIELDS, Expense

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ExpenseStore:
    """Process-local repository of expense records.

    The store starts empty; fixture data is only added through :meth:`seed`.
    Records are frozen dataclasses, so anything handed out is a value and
    cannot be used to mutate the store. Every operation holds an ``RLock``
    because the hosting WSGI server may serve requests from several threads.
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ) -> None:
        self._clock = clock or utc_now
        self._id_factory = id_factory or (lambda: str(uuid4()))
        self._records: List[Expense] = []
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def create(self, fields: Mapping[str, Any]) -> Expense:
        now = self._clock()
        values = {k: v for k, v in fields.items() if k not in ("id", "created_at", "updated_at")}
        with self._lock:
            expense = Expense(id=self._id_factory(), created_at=now, updated_at=now, **values)
            self._records.append(expense)
        logger.debug("Stored expense %s for owner %s", expense.id, expense.owner_id)
        return expense

    def find_by_id(self, expense_id: str) -> Optional[Expense]:
        with self._lock:
            for expense in self._records:
                if expense.id == expense_id:
                    return expense
        return None

    def update(self, expense_id: str, changes: Mapping[str, Any]) -> Optional[Expense]:
        values = {k: v for k, v in changes.items() if k not in PROTECTED_FIELDS}
        with self._lock:
            index = self._index_of(expense_id)
            if index is None:
                return None
            existing = self._records[index]
            now = self._clock()
            # Keep updated_at strictly increasing even if the clock has not moved.
            if now <= existing.updated_at:
                now = existing.updated_at + timedelta(microseconds=1)
            updated = replace(existing, updated_at=now, **values)
            self._records[index] = updated
        return updated

    def delete(self, expense_id: str) -> bool:
        with self._lock:
            index = self._index_of(expense_id)
            if index is None:
                return False
            del self._records[index]
        return True

    def find_all(self) -> List[Expense]:
        with self._lock:
            return list(self._records)

    def seed(self, records: Iterable[Expense]) -> int:
        """Insert prebuilt records, keeping their ids and timestamps."""
        incoming = list(records)
        with self._lock:
            known = {expense.id for expense in self._records}
            for expense in incoming:
                if expense.id in known:
                    raise ValidationError(f"Expense {expense.id} already exists")
                known.add(expense.id)
            self._records.extend(incoming)
        logger.info("Seeded %d expense records", len(incoming))
        return len(incoming)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    def _index_of(self, expense_id: str) -> Optional[int]:
        for index, expense in enumerate(self._records):
            if expense.id == expense_id:
                return index
        return None


class JSONStorage:
    """Directory of JSON snapshots for an :class:`ExpenseStore`.

    The store itself never touches disk. The CLI loads a snapshot before each
    command and writes it back after a change, and the API can seed from one
    at startup. Each resource is a JSON list, written via a temp file and an
    atomic rename so a crash leaves the previous snapshot intact.
    """

    def __init__(self, base_path: Path) -> None:
        self._base_path = Path(base_path)
        self._base_path.mkdir(parents=True, exist_ok=True)

    def load(self, resource: str) -> List[Dict[str, Any]]:
        path = self._base_path / resource
        if not path.exists():
            return []
        try:
            with path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except json.JSONDecodeError as exc:
            raise PersistenceError(f"Corrupted JSON data in {path}") from exc
        except OSError as exc:
            raise PersistenceError(f"Unable to read from {path}") from exc

        if not isinstance(payload, list):
            raise PersistenceError(f"Expected list payload in {path}")
        logger.debug("Loaded %d records from %s", len(payload), path)
        return payload

    def save(self, resource: str, records: Iterable[Dict[str, Any]]) -> None:
        path = self._base_path / resource
        temp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            with temp_path.open("w", encoding="utf-8") as handle:
                json.dump(list(records), handle, indent=2, ensure_ascii=False)
                handle.flush()
            temp_path.replace(path)
        except OSError as exc:
            raise PersistenceError(f"Unable to write to {path}") from exc
        logger.debug("Wrote snapshot %s", path)

    @property
    def base_path(self) -> Path:
        return self._base_path


EXPENSES_RESOURCE = "expenses.json"


def load_expenses(storage: JSONStorage, resource: str = EXPENSES_RESOURCE) -> List[Expense]:
    """Read a snapshot written by :func:`save_expenses`."""
    try:
        return [Expense.from_dict(payload) for payload in storage.load(resource)]
    except (KeyError, ValueError, TypeError) as exc:
        raise PersistenceError(f"Malformed expense record in {resource}") from exc


def save_expenses(
    storage: JSONStorage, expenses: Iterable[Expense], resource: str = EXPENSES_RESOURCE
) -> None:
    storage.save(resource, [expense.to_dict() for expense in expenses])
