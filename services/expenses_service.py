"""Service layer for handling expense-related logic."""
import logging
import math
import threading
import time
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from models.expense import EXPENSE_CATEGORIES, Expense
from services.errors import CorruptStoreError, NotFoundError, ValidationError
from utils.json_storage import JsonFileStorage
from utils.totals import calculate_total

logger = logging.getLogger(__name__)

MISSING_FIELDS_MESSAGE = "All fields are required"
INVALID_AMOUNT_MESSAGE = "Amount must be a non-negative number"
TOTAL_OVERFLOW_MESSAGE = "Amount is too large for the running total"


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def _require_text(value: Any) -> str:
    """Returns the stripped text, or raises if it is missing or blank."""
    if value is None or not isinstance(value, str) or not value.strip():
        raise ValidationError(MISSING_FIELDS_MESSAGE)
    return value.strip()


def _parse_amount(value: Any) -> float:
    """Accepts numbers and numeric strings; rejects bools, NaN/inf and negatives."""
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(MISSING_FIELDS_MESSAGE)
    if isinstance(value, bool) or not isinstance(value, (int, float, str, Decimal)):
        raise ValidationError(INVALID_AMOUNT_MESSAGE)
    if isinstance(value, str):
        text = value.strip()
    elif isinstance(value, float):
        text = repr(value)
    else:
        text = str(value)
    try:
        amount = Decimal(text)
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(INVALID_AMOUNT_MESSAGE) from e
    if not amount.is_finite() or amount < 0:
        raise ValidationError(INVALID_AMOUNT_MESSAGE)
    result = float(amount)
    if math.isinf(result):
        raise ValidationError(INVALID_AMOUNT_MESSAGE)
    return result


class ExpenseStore:
    """
    Owns the in-memory expense collection and mirrors it to a JSON file.

    Every mutation is written through to disk before the call returns. If the
    write fails the in-memory change is undone, so memory and disk never
    disagree after a call completes. A lock serializes each
    read-modify-write-persist sequence across worker threads.
    """

    def __init__(self, storage: JsonFileStorage):
        self._storage = storage
        self._expenses: List[Expense] = []
        self._last_id = 0
        self._lock = threading.Lock()

    @property
    def storage(self) -> JsonFileStorage:
        return self._storage

    def load(self) -> None:
        """Replaces the in-memory collection with the contents of the backing file."""
        records = self._storage.load()
        expenses: List[Expense] = []
        seen_ids = set()
        for index, record in enumerate(records):
            try:
                expense = Expense.model_validate(record)
            except PydanticValidationError as e:
                logger.error(f"Stored record #{index} is not a valid expense: {e}")
                raise CorruptStoreError(f"Stored record #{index} is not a valid expense.") from e
            if expense.id in seen_ids:
                logger.error(f"Stored record #{index} repeats expense id {expense.id}.")
                raise CorruptStoreError(f"Duplicate expense id {expense.id} in store.")
            seen_ids.add(expense.id)
            expenses.append(expense)

        with self._lock:
            self._expenses = expenses
            self._last_id = max(seen_ids, default=0)
        logger.info(f"Loaded {len(expenses)} expenses from {self._storage.path}.")

    # --- Read operations ---

    def _snapshot(self) -> Dict[str, Any]:
        expenses = list(self._expenses)
        return {
            "expenses": expenses,
            "totalAmount": calculate_total(expenses),
            "count": len(expenses),
        }

    def list_expenses(self) -> Dict[str, Any]:
        """Returns the collection in insertion order with its total and count."""
        with self._lock:
            return self._snapshot()

    # --- Mutations ---

    def _next_id(self) -> int:
        # Millisecond timestamps, bumped past the last id when two land in the same tick
        self._last_id = max(_now_ms(), self._last_id + 1)
        return self._last_id

    def _persist(self) -> None:
        self._storage.save([expense.model_dump() for expense in self._expenses])

    def create_expense(
        self,
        description: Any,
        category: Any,
        amount: Any,
        date: Any,
    ) -> Dict[str, Any]:
        """
        Validates and appends a new expense, then writes the collection to disk.

        Returns the updated snapshot with the created record under "expense".
        Raises ValidationError for missing/blank fields or a bad amount and
        PersistenceError if the file cannot be written.
        """
        clean_description = _require_text(description)
        clean_category = _require_text(category)
        clean_date = _require_text(date)
        clean_amount = _parse_amount(amount)

        if clean_category not in EXPENSE_CATEGORIES:
            logger.debug(f"Category '{clean_category}' is outside the standard set; storing as given.")

        with self._lock:
            # The running total must stay representable as a JSON number
            if math.isinf(calculate_total(self._expenses) + clean_amount):
                logger.warning(f"Rejected amount {clean_amount}: total would overflow.")
                raise ValidationError(TOTAL_OVERFLOW_MESSAGE)

            previous_last_id = self._last_id
            expense = Expense(
                id=self._next_id(),
                description=clean_description,
                category=clean_category,
                amount=clean_amount,
                date=clean_date,
            )
            self._expenses.append(expense)
            try:
                self._persist()
            except Exception:
                self._expenses.pop()
                self._last_id = previous_last_id
                logger.error(f"Rolled back creation of expense {expense.id} after a failed write.")
                raise
            snapshot = self._snapshot()

        logger.info(f"Created expense {expense.id} ({clean_description[:30]}, {clean_amount}).")
        snapshot["expense"] = expense
        return snapshot

    def delete_expense(self, expense_id: int) -> Dict[str, Any]:
        """
        Removes the expense with the given id and writes the collection to disk.

        Raises NotFoundError when the id is unknown and PersistenceError if the
        file cannot be written.
        """
        with self._lock:
            index: Optional[int] = next(
                (i for i, expense in enumerate(self._expenses) if expense.id == expense_id),
                None,
            )
            if index is None:
                raise NotFoundError(f"Expense {expense_id} not found")

            removed = self._expenses.pop(index)
            try:
                self._persist()
            except Exception:
                self._expenses.insert(index, removed)
                logger.error(f"Rolled back deletion of expense {expense_id} after a failed write.")
                raise
            snapshot = self._snapshot()

        logger.info(f"Deleted expense {expense_id}.")
        return snapshot
