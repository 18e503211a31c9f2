"""Shared fixtures: in-memory sinks, list/SQLite sources, checkpoint store."""

import asyncio
from datetime import datetime
from typing import Any, Dict, List, Optional

import pytest
from sqlalchemy import Column, DateTime, Float, Integer, MetaData, String, Table, create_engine

from mysql2mongo.core.checkpoints import CheckpointStore
from mysql2mongo.core.errors import StoreError
from mysql2mongo.ingestion.base import DocumentSink, RowSource
from mysql2mongo.ingestion.mongo_sink import to_document
from mysql2mongo.schemas.tables import TableSpec
from mysql2mongo.schemas.window import Checkpoint


async def settle(rounds: int = 50) -> None:
    """Let ready tasks run a few loop iterations."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class ListSource(RowSource):
    """Yields prepared rows, optionally failing after ``fail_after`` of them."""

    name = "list"

    def __init__(self, rows: List[Dict[str, Any]], fail_after: Optional[int] = None):
        self.rows = rows
        self.fail_after = fail_after
        self.pulled = 0
        self.closed = False
        self.statements = []

    async def stream(self, statement):
        self.statements.append(statement)
        try:
            for row in self.rows:
                if self.fail_after is not None and self.pulled >= self.fail_after:
                    raise RuntimeError("connection lost")
                self.pulled += 1
                yield dict(row)
        finally:
            self.closed = True


class SQLiteSource(RowSource):
    """Runs the generated statement against an in-memory SQLite database."""

    name = "sqlite"

    def __init__(self, engine):
        self.engine = engine

    async def stream(self, statement):
        with self.engine.connect() as conn:
            for row in conn.execute(statement).mappings():
                yield dict(row)


class MemorySink(DocumentSink):
    """Keeps documents per collection; ``fail_ids`` raise on upsert."""

    name = "memory"

    def __init__(self, fail_ids=(), delay: float = 0.0):
        self.collections: Dict[str, Dict[Any, Dict[str, Any]]] = {}
        self.fail_ids = set(fail_ids)
        self.delay = delay
        self.calls = 0

    async def upsert(self, collection, document_id, document):
        self.calls += 1
        await asyncio.sleep(self.delay)
        if document_id in self.fail_ids:
            raise ConnectionError(f"write rejected for {document_id}")
        self.collections.setdefault(collection, {})[document_id] = to_document(document_id, document)

    def docs(self, collection: str) -> Dict[Any, Dict[str, Any]]:
        return self.collections.get(collection, {})


class GatedSink(MemorySink):
    """Every upsert blocks until the test releases it."""

    def __init__(self):
        super().__init__()
        self.waiting: List[asyncio.Future] = []
        self._released = 0

    async def upsert(self, collection, document_id, document):
        future = asyncio.get_running_loop().create_future()
        self.waiting.append(future)
        await future
        await super().upsert(collection, document_id, document)

    def release(self, count: int) -> None:
        for future in self.waiting[self._released:self._released + count]:
            future.set_result(None)
        self._released += count

    def release_all(self) -> None:
        self.release(len(self.waiting) - self._released)


class MemoryCheckpointStore(CheckpointStore):
    def __init__(self, checkpoint: Optional[Checkpoint] = None, fail_save: bool = False):
        self.checkpoint = checkpoint
        self.fail_save = fail_save
        self.saves: List[Checkpoint] = []

    async def load(self):
        return self.checkpoint

    async def save(self, checkpoint):
        if self.fail_save:
            raise StoreError("save", RuntimeError("disk full"))
        self.saves.append(checkpoint)
        self.checkpoint = checkpoint


@pytest.fixture
def orders_spec():
    return TableSpec(
        name="orders",
        columns=["amount", "status"],
        primaryKeyColumn="id",
        insertDateColumn="created_at",
        updateDateColumn="updated_at",
    )


@pytest.fixture
def customers_spec():
    return TableSpec(
        name="customers",
        columns=["name"],
        primaryKeyColumn="customer_id",
        insertDateColumn="created_at",
        updateDateColumn="updated_at",
    )


@pytest.fixture
def sqlite_engine():
    """orders: only id=2 has a timestamp on 2024-01-01."""
    engine = create_engine("sqlite://")
    metadata = MetaData()
    orders = Table(
        "orders",
        metadata,
        Column("id", Integer, primary_key=True),
        Column("amount", Float),
        Column("status", String),
        Column("created_at", DateTime),
        Column("updated_at", DateTime),
    )
    customers = Table(
        "customers",
        metadata,
        Column("customer_id", Integer, primary_key=True),
        Column("name", String),
        Column("created_at", DateTime),
        Column("updated_at", DateTime),
    )
    metadata.create_all(engine)
    with engine.begin() as conn:
        conn.execute(
            orders.insert(),
            [
                {"id": 1, "amount": 10.0, "status": "new",
                 "created_at": datetime(2023, 12, 1, 9, 0), "updated_at": datetime(2023, 12, 15, 9, 0)},
                {"id": 2, "amount": 20.5, "status": "shipped",
                 "created_at": datetime(2023, 12, 20, 9, 0), "updated_at": datetime(2024, 1, 1, 10, 0)},
                {"id": 3, "amount": 30.0, "status": "new",
                 "created_at": datetime(2024, 1, 2, 8, 0), "updated_at": datetime(2024, 1, 2, 8, 0)},
            ],
        )
        conn.execute(
            customers.insert(),
            [
                {"customer_id": 7, "name": "Ada",
                 "created_at": datetime(2024, 1, 1, 0, 0), "updated_at": datetime(2024, 1, 1, 0, 0)},
                {"customer_id": 8, "name": "Grace",
                 "created_at": datetime(2024, 1, 1, 23, 59, 59), "updated_at": datetime(2024, 1, 1, 23, 59, 59)},
            ],
        )
    yield engine
    engine.dispose()


@pytest.fixture
def sqlite_source(sqlite_engine):
    return SQLiteSource(sqlite_engine)
