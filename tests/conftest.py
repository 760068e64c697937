import pytest
from fastapi.testclient import TestClient

from main import create_app
from services.expenses_service import ExpenseStore
from utils.json_storage import JsonFileStorage


@pytest.fixture
def expenses_file(tmp_path):
    return tmp_path / "data" / "expenses.json"


@pytest.fixture
def store(expenses_file):
    store = ExpenseStore(JsonFileStorage(expenses_file))
    store.load()
    return store


@pytest.fixture
def client(expenses_file):
    with TestClient(create_app(expenses_file)) as test_client:
        yield test_client
