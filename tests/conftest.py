"""
Shared test fixtures.

See STANDARDS_TESTING.md for patterns.
"""

import os
import sys
from pathlib import Path

# Add project root to Python path
project_dir = Path(__file__).parent.parent
sys.path.insert(0, str(project_dir))

# Settings load at import time; give them something to read
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")

import copy
import pytest
from unittest.mock import patch
from datetime import datetime
from typing import Any, Callable, Generator, Optional
from uuid import uuid4


# ===================
# MOCK SUPABASE CLIENT
# ===================
# Stateful: inserts are stored and visible to later selects, so idempotence
# (create on the first run, update on the second) can be tested end to end.

UNIQUE_CONSTRAINTS: dict[str, list[tuple[str, ...]]] = {
    "products": [("parent_sku",), ("slug",)],
    "product_variants": [("sku",)],
    "product_attributes": [("owner_id", "key")],
    "variant_attributes": [("owner_id", "key")],
    "variant_pricing": [("variant_id", "channel")],
}


class MockUniqueViolation(Exception):
    """Mimics postgrest APIError for a unique constraint violation."""

    def __init__(self, table: str, columns: tuple[str, ...]):
        self.code = "23505"
        super().__init__(
            f'duplicate key value violates unique constraint "{table}_{"_".join(columns)}_key"'
        )


class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data: Any = None, count: int = None):
        self.data = data if data is not None else []
        self.count = count if count is not None else (len(self.data) if isinstance(self.data, list) else 1)


class MockSupabaseQuery:
    """Mock Supabase query builder with chainable methods."""

    def __init__(self, client: "MockSupabaseClient", table: str):
        self._client = client
        self._table = table
        self._operation = "select"
        self._payload: Any = None
        self._filters: list[tuple[str, str, Callable[[dict], bool]]] = []
        self._limit: Optional[int] = None
        self._is_single = False

    # Operations

    def select(self, *args, **kwargs):
        self._operation = "select"
        return self

    def insert(self, data):
        self._operation = "insert"
        self._payload = data
        return self

    def update(self, data):
        self._operation = "update"
        self._payload = data
        return self

    def delete(self):
        self._operation = "delete"
        return self

    # Filters

    def eq(self, column, value):
        self._filters.append(("eq", column, lambda row: row.get(column) == value))
        return self

    def neq(self, column, value):
        self._filters.append(("neq", column, lambda row: row.get(column) != value))
        return self

    def in_(self, column, values):
        wanted = set(values)
        self._filters.append(("in", column, lambda row: row.get(column) in wanted))
        return self

    def is_(self, column, value):
        if value == "null":
            self._filters.append(("is", column, lambda row: row.get(column) is None))
        else:
            self._filters.append(("is", column, lambda row: row.get(column) == value))
        return self

    # Modifiers

    def single(self):
        self._is_single = True
        return self

    def order(self, column, **kwargs):
        return self

    def range(self, start, end):
        return self

    def limit(self, count):
        self._limit = count
        return self

    def execute(self) -> MockSupabaseResponse:
        self._client.calls.append({
            "table": self._table,
            "operation": self._operation,
            "filters": [(kind, column) for kind, column, _ in self._filters],
        })

        failure = self._client.failures.get(self._table) or self._client.failures.get("*")
        if failure is not None:
            raise failure

        rows = self._client.rows(self._table)
        matched = [row for row in rows if all(f(row) for _, _, f in self._filters)]

        if self._operation == "insert":
            items = self._payload if isinstance(self._payload, list) else [self._payload]
            inserted = [self._client.insert_row(self._table, item) for item in items]
            return MockSupabaseResponse(data=copy.deepcopy(inserted))

        if self._operation == "update":
            now = datetime.utcnow().isoformat() + "Z"
            for row in matched:
                row.update(copy.deepcopy(self._payload))
                row["updated_at"] = now
            return MockSupabaseResponse(data=copy.deepcopy(matched))

        if self._operation == "delete":
            for row in matched:
                rows.remove(row)
            return MockSupabaseResponse(data=copy.deepcopy(matched))

        total = len(matched)
        if self._limit is not None:
            matched = matched[:self._limit]

        if self._is_single:
            data = copy.deepcopy(matched[0]) if matched else None
            return MockSupabaseResponse(data=data, count=1 if data else 0)

        return MockSupabaseResponse(data=copy.deepcopy(matched), count=total)


class MockSupabaseTable:
    """Entry point for queries against one table."""

    def __init__(self, client: "MockSupabaseClient", name: str):
        self._client = client
        self._name = name

    def select(self, *args, **kwargs):
        return MockSupabaseQuery(self._client, self._name).select(*args, **kwargs)

    def insert(self, data):
        return MockSupabaseQuery(self._client, self._name).insert(data)

    def update(self, data):
        return MockSupabaseQuery(self._client, self._name).update(data)

    def delete(self):
        return MockSupabaseQuery(self._client, self._name).delete()


class MockSupabaseClient:
    """In-memory Supabase client with unique constraints."""

    def __init__(self):
        self._tables: dict[str, list[dict]] = {}
        self.failures: dict[str, Exception] = {}
        self.calls: list[dict] = []

    def set_table_data(self, table_name: str, data: list, count: int = None):
        """Seed a table (rows are copied)."""
        self._tables[table_name] = [copy.deepcopy(row) for row in data]

    def rows(self, table_name: str) -> list[dict]:
        """Live rows of a table."""
        return self._tables.setdefault(table_name, [])

    def fail(self, table_name: str, error: Exception):
        """Make every query on a table ("*" for all) raise error."""
        self.failures[table_name] = error

    def calls_for(self, table_name: str, operation: Optional[str] = None) -> list[dict]:
        return [
            c for c in self.calls
            if c["table"] == table_name and (operation is None or c["operation"] == operation)
        ]

    def insert_row(self, table_name: str, item: dict) -> dict:
        rows = self.rows(table_name)
        for columns in UNIQUE_CONSTRAINTS.get(table_name, []):
            values = tuple(item.get(c) for c in columns)
            if any(v is None for v in values):
                continue
            if any(tuple(row.get(c) for c in columns) == values for row in rows):
                raise MockUniqueViolation(table_name, columns)

        now = datetime.utcnow().isoformat() + "Z"
        row = {
            "id": str(uuid4()),
            "created_at": now,
            "updated_at": now,
            **copy.deepcopy(item),
        }
        rows.append(row)
        return row

    def table(self, name: str) -> MockSupabaseTable:
        """Get mock table."""
        return MockSupabaseTable(self, name)


# ===================
# FIXTURES
# ===================

@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create a mock Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("products", [
                {"id": "1", "parent_sku": "RB100", ...}
            ])
    """
    return MockSupabaseClient()


@pytest.fixture
def mock_db(mock_supabase) -> Generator:
    """
    Patch the database client with mock.

    Usage:
        def test_something(mock_db, mock_supabase):
            # Any service built without an explicit db gets the mock
    """
    with patch("config.database.get_supabase_client", return_value=mock_supabase):
        with patch("services.catalog_service.get_supabase_client", return_value=mock_supabase):
            with patch("services.attribute_service.get_supabase_client", return_value=mock_supabase):
                with patch("services.barcode_service.get_supabase_client", return_value=mock_supabase):
                    with patch("services.pricing_service.get_supabase_client", return_value=mock_supabase):
                        yield mock_supabase


@pytest.fixture
def import_service(mock_supabase):
    """ImportService wired to the in-memory client."""
    from services.import_service import ImportService

    return ImportService(db=mock_supabase)


@pytest.fixture
def sample_headers() -> list[str]:
    """Typical supplier header row."""
    return ["SKU", "Title", "Barcode", "Retail Price", "Brand", "Fabric Composition"]


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def test_client():
    """
    Create FastAPI test client.

    Usage:
        def test_endpoint(test_client):
            response = test_client.get("/")
            assert response.status_code == 200
    """
    from fastapi.testclient import TestClient
    from main import app

    return TestClient(app)


@pytest.fixture
def test_client_with_mock_db(mock_supabase):
    """
    Create FastAPI test client with mocked database and a fresh mapping cache.

    Usage:
        def test_endpoint(test_client_with_mock_db, mock_supabase):
            response = test_client_with_mock_db.post("/api/imports", ...)
    """
    from fastapi.testclient import TestClient
    from main import app
    from services.import_service import ImportService
    from services.mapping_cache_service import InMemoryMappingCache

    service = ImportService(db=mock_supabase)
    cache = InMemoryMappingCache(ttl_minutes=5)

    with patch("routes.imports.get_import_service", return_value=service):
        with patch("routes.imports.get_mapping_cache", return_value=cache):
            yield TestClient(app)
