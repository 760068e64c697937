"""API Routes for expenses"""
from fastapi import APIRouter, Body, Depends, HTTPException, Request
from typing import Annotated
from models.expense import ExpenseCreate, ExpenseListResponse, ExpenseMutationResponse, HealthResponse
from services.errors import NotFoundError, PersistenceError, ValidationError
from services.expenses_service import ExpenseStore
import logging

router = APIRouter()
logger = logging.getLogger(__name__)

# --- Dependency Function ---
def get_expense_store(request: Request) -> ExpenseStore:
    """Dependency to get the expense store from the application state."""
    store = getattr(request.app.state, "expense_store", None)
    if store is None:
        logger.error("Expense store not found in application state. Check the expenses file.")
        raise HTTPException(status_code=500, detail="Expense store is not available.")
    return store

# Type hint for the dependency
ExpenseStoreDep = Annotated[ExpenseStore, Depends(get_expense_store)]

# --- API Routes ---

@router.get("/health", response_model=HealthResponse, summary="Health Check")
def health():
    return {"status": "ok", "message": "Smart Expense Tracker backend is running"}

@router.get("/expenses", response_model=ExpenseListResponse, summary="Get All Expenses", description="Retrieves all expense records in insertion order with their total.")
def get_expenses(store: ExpenseStoreDep):
    logger.info("GET /expenses endpoint called.")
    try:
        return store.list_expenses()
    except Exception as e:
        logger.exception(f"Unexpected error fetching expenses: {e}")
        raise HTTPException(status_code=500, detail="An unexpected server error occurred while fetching expenses.")

@router.post("/expenses", status_code=201, response_model=ExpenseMutationResponse, summary="Add Expense", description="Validates and stores a new expense, returning the updated collection.")
def add_expense(store: ExpenseStoreDep, payload: Annotated[ExpenseCreate, Body(...)]):
    """
    Creates an expense. All four fields are required; amount must be a
    non-negative number.
    """
    logger.info(f"POST /expenses endpoint called: {payload.description!r} ({payload.category}, {payload.amount}, {payload.date})")
    try:
        result = store.create_expense(
            description=payload.description,
            category=payload.category,
            amount=payload.amount,
            date=payload.date,
        )
    except ValidationError as ve:
        logger.warning(f"Rejected expense: {ve}")
        raise HTTPException(status_code=400, detail=str(ve))
    except PersistenceError as pe:
        logger.error(f"PersistenceError adding expense: {pe}")
        raise HTTPException(status_code=500, detail="Failed to save expense.")
    except Exception as e:
        logger.exception(f"Unexpected error adding expense: {e}")
        raise HTTPException(status_code=500, detail="An unexpected server error occurred while adding the expense.")

    logger.info(f"Expense {result['expense'].id} added. Total is now {result['totalAmount']}.")
    return {
        "message": "Expense added successfully",
        "totalAmount": result["totalAmount"],
        "expenses": result["expenses"],
    }

@router.delete("/expenses/{expense_id}", response_model=ExpenseMutationResponse, summary="Delete Expense", description="Deletes one expense by id, returning the updated collection.")
def delete_expense(expense_id: str, store: ExpenseStoreDep):
    logger.info(f"DELETE /expenses/{expense_id} endpoint called.")
    try:
        parsed_id = int(expense_id)
    except ValueError:
        # Ids are integers; anything else cannot match a stored expense
        logger.warning(f"Expense id {expense_id!r} is not an integer.")
        raise HTTPException(status_code=404, detail="Expense not found")

    try:
        result = store.delete_expense(parsed_id)
    except NotFoundError:
        logger.warning(f"Expense {expense_id} not found for deletion.")
        raise HTTPException(status_code=404, detail="Expense not found")
    except PersistenceError as pe:
        logger.error(f"PersistenceError deleting expense {expense_id}: {pe}")
        raise HTTPException(status_code=500, detail="Failed to delete expense.")
    except Exception as e:
        logger.exception(f"Unexpected error deleting expense {expense_id}: {e}")
        raise HTTPException(status_code=500, detail="An unexpected server error occurred while deleting the expense.")

    return {
        "message": "Expense deleted successfully",
        "totalAmount": result["totalAmount"],
        "expenses": result["expenses"],
    }
