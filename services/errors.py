"""Exceptions raised by the expense store and its persistence adapter."""


class ExpenseStoreError(Exception):
    """Base exception for expense store failures."""


class ValidationError(ExpenseStoreError):
    """Raised when an expense is missing a field or carries an invalid amount."""


class NotFoundError(ExpenseStoreError):
    """Raised when no expense matches the requested id."""


class PersistenceError(ExpenseStoreError):
    """Raised when the backing JSON file cannot be read or written."""


class CorruptStoreError(PersistenceError):
    """Raised when the backing file exists but does not hold a list of expenses."""
