"""
Shared test fixtures.

The Supabase double keeps rows per table in memory, so a service call
that writes and then reads back behaves like it would against Postgres.
"""

import os
import sys
from pathlib import Path

# Add project root to Python path
project_dir = Path(__file__).parent.parent
sys.path.insert(0, str(project_dir))

# Settings require these; tests never reach a real project
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")

import copy
import importlib
import pytest
from contextlib import ExitStack
from unittest.mock import patch
from datetime import datetime
from typing import Any, Callable, Generator
from uuid import uuid4

# ===================
# MOCK SUPABASE CLIENT
# ===================

class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data: Any = None, count: int = None):
        self.data = data if data is not None else []
        self.count = count


class MockSupabaseQuery:
    """Chainable query builder evaluated against the client's tables."""

    def __init__(self, client: "MockSupabaseClient", table: str):
        self._client = client
        self._table = table
        self._op = "select"
        self._payload: Any = None
        self._filters: list[Callable[[dict], bool]] = []
        self._order: list[tuple[str, bool]] = []
        self._range: tuple[int, int] = None
        self._limit: int = None
        self._single = False
        self._count = None

    # Operations

    def select(self, *args, count: str = None, **kwargs):
        self._op = "select"
        self._count = count
        return self

    def insert(self, data):
        self._op = "insert"
        self._payload = data
        return self

    def upsert(self, data, **kwargs):
        self._op = "upsert"
        self._payload = data
        return self

    def update(self, data):
        self._op = "update"
        self._payload = data
        return self

    def delete(self):
        self._op = "delete"
        return self

    # Filters

    def eq(self, column, value):
        self._filters.append(lambda row: row.get(column) == value)
        return self

    def neq(self, column, value):
        self._filters.append(lambda row: row.get(column) != value)
        return self

    def in_(self, column, values):
        values = list(values)
        self._filters.append(lambda row: row.get(column) in values)
        return self

    def gte(self, column, value):
        self._filters.append(lambda row: row.get(column) is not None and row.get(column) >= value)
        return self

    def lte(self, column, value):
        self._filters.append(lambda row: row.get(column) is not None and row.get(column) <= value)
        return self

    def ilike(self, column, pattern):
        needle = pattern.strip("%").lower()
        self._filters.append(lambda row: needle in str(row.get(column) or "").lower())
        return self

    # Modifiers

    def order(self, column, desc: bool = False, **kwargs):
        self._order.append((column, desc))
        return self

    def range(self, start, end):
        self._range = (start, end)
        return self

    def limit(self, count):
        self._limit = count
        return self

    def single(self):
        self._single = True
        return self

    def maybe_single(self):
        self._single = True
        return self

    def execute(self) -> MockSupabaseResponse:
        self._client.calls.append((self._table, self._op))
        failure = self._client.failures.get((self._table, self._op))
        if failure:
            raise Exception(failure)

        rows = self._client.rows(self._table)
        return getattr(self, f"_execute_{self._op}")(rows)

    def _matches(self, row: dict) -> bool:
        return all(check(row) for check in self._filters)

    def _execute_select(self, rows: list[dict]) -> MockSupabaseResponse:
        found = [copy.deepcopy(row) for row in rows if self._matches(row)]
        total = len(found)

        for column, desc in reversed(self._order):
            found.sort(key=lambda row: (row.get(column) is None, row.get(column)), reverse=desc)
        if self._range:
            start, end = self._range
            found = found[start:end + 1]
        if self._limit is not None:
            found = found[:self._limit]

        if self._single:
            return MockSupabaseResponse(data=found[0] if found else None, count=total)
        return MockSupabaseResponse(data=found, count=total if self._count else None)

    def _execute_insert(self, rows: list[dict]) -> MockSupabaseResponse:
        payload = self._payload if isinstance(self._payload, list) else [self._payload]
        now = datetime.utcnow().isoformat()
        inserted = []
        for item in payload:
            row = {"id": str(uuid4()), "created_at": now, "updated_at": now, **copy.deepcopy(item)}
            rows.append(row)
            inserted.append(copy.deepcopy(row))
        return MockSupabaseResponse(data=inserted)

    def _execute_upsert(self, rows: list[dict]) -> MockSupabaseResponse:
        payload = self._payload if isinstance(self._payload, list) else [self._payload]
        result = []
        for item in payload:
            existing = next((r for r in rows if item.get("id") and r["id"] == item["id"]), None)
            if existing:
                existing.update(copy.deepcopy(item))
                result.append(copy.deepcopy(existing))
            else:
                self._payload = item
                result.extend(self._execute_insert(rows).data)
        return MockSupabaseResponse(data=result)

    def _execute_update(self, rows: list[dict]) -> MockSupabaseResponse:
        updated = []
        for row in rows:
            if self._matches(row):
                row.update(copy.deepcopy(self._payload))
                row["updated_at"] = datetime.utcnow().isoformat()
                updated.append(copy.deepcopy(row))
        return MockSupabaseResponse(data=updated)

    def _execute_delete(self, rows: list[dict]) -> MockSupabaseResponse:
        removed = [row for row in rows if self._matches(row)]
        rows[:] = [row for row in rows if not self._matches(row)]
        return MockSupabaseResponse(data=removed)


class MockSupabaseClient:
    """In-memory Supabase client."""

    def __init__(self):
        self._tables: dict[str, list[dict]] = {}
        self.failures: dict[tuple[str, str], str] = {}
        self.calls: list[tuple[str, str]] = []

    def set_table_data(self, table_name: str, data: list):
        """Seed a table (rows are copied)."""
        self._tables[table_name] = copy.deepcopy(data)

    def rows(self, table_name: str) -> list[dict]:
        """Live row list of a table."""
        return self._tables.setdefault(table_name, [])

    def fail_on(self, table_name: str, operation: str, message: str = "simulated database failure"):
        """Make every `operation` on `table_name` raise."""
        self.failures[(table_name, operation)] = message

    def writes(self) -> list[tuple[str, str]]:
        """Every non-select call made so far."""
        return [call for call in self.calls if call[1] != "select"]

    def table(self, name: str) -> MockSupabaseQuery:
        return MockSupabaseQuery(self, name)


# Modules that import get_supabase_client directly
DB_MODULES = [
    "config.database",
    "services.product_service",
    "services.raw_material_service",
    "services.recipe_service",
    "services.individual_product_service",
    "services.notification_service",
    "services.production_flow_service",
    "services.planning_service",
    "services.production_start_service",
    "services.waste_service",
    "services.order_service",
    "services.purchase_order_service",
]

# Module -> lazy singleton attribute
SINGLETONS = {
    "services.product_service": "_product_service",
    "services.raw_material_service": "_raw_material_service",
    "services.recipe_service": "_recipe_service",
    "services.individual_product_service": "_individual_product_service",
    "services.notification_service": "_notification_service",
    "services.production_flow_service": "_production_flow_service",
    "services.planning_service": "_planning_service",
    "services.production_start_service": "_production_start_service",
    "services.waste_service": "_waste_service",
    "services.completion_service": "_completion_service",
    "services.order_service": "_order_service",
    "services.purchase_order_service": "_purchase_order_service",
    "services.export_service": "_export_service",
}


# ===================
# FIXTURES
# ===================

@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create an in-memory Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("products", [ProductFactory.create()])
    """
    return MockSupabaseClient()


@pytest.fixture
def mock_db(mock_supabase) -> Generator:
    """
    Patch the database client everywhere and reset service singletons.

    Telegram pushes are patched out so no test reaches the network.
    """
    with ExitStack() as stack:
        for module in DB_MODULES:
            stack.enter_context(patch(f"{module}.get_supabase_client", return_value=mock_supabase))
        for module, attribute in SINGLETONS.items():
            stack.enter_context(patch.object(importlib.import_module(module), attribute, None))
        stack.enter_context(patch("services.notification_service.send_notification", return_value=False))
        yield mock_supabase


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def test_client_with_mock_db(mock_db):
    """
    Create FastAPI test client with the in-memory database.

    Usage:
        def test_endpoint(test_client_with_mock_db, mock_supabase):
            mock_supabase.set_table_data("products", [...])
            response = test_client_with_mock_db.get("/api/products")
    """
    from fastapi.testclient import TestClient
    from main import app

    return TestClient(app)
