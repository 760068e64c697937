"""Pydantic models for Expense data and API payloads"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, List, Optional

EXPENSE_CATEGORIES = ("Food", "Travel", "Shopping", "Bills", "Other")


class Expense(BaseModel):
    """
    Represents a single stored expense.
    """
    id: int
    description: str
    category: str
    amount: float = Field(..., ge=0)
    date: str


class ExpenseCreate(BaseModel):
    """
    Incoming body for POST /expenses.

    Every field is optional here so that missing values reach the store and
    come back as a 400 with the usual error body.
    """
    description: Optional[str] = None
    category: Optional[str] = None
    amount: Optional[Any] = None
    date: Optional[str] = None


class ExpenseListResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_amount: float = Field(..., alias="totalAmount")
    count: int
    expenses: List[Expense]


class ExpenseMutationResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    total_amount: float = Field(..., alias="totalAmount")
    expenses: List[Expense]


class HealthResponse(BaseModel):
    status: str
    message: str
