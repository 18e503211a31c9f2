"""Source and sink connections, scoped to one run."""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from pymongo import AsyncMongoClient
from pymongo.asynchronous.database import AsyncDatabase
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from mysql2mongo.core.checkpoints import CheckpointStore, FileCheckpointStore, MongoCheckpointStore
from mysql2mongo.core.config import Settings
from mysql2mongo.core.logging import get_logger
from mysql2mongo.ingestion.mongo_sink import MongoSink
from mysql2mongo.ingestion.mysql_source import MySQLSource

log = get_logger("core.db")


@dataclass
class Connections:
    source: MySQLSource
    sink: MongoSink
    checkpoints: CheckpointStore


def create_source_engine(settings: Settings) -> AsyncEngine:
    # One connection: tables are copied one at a time over the same cursor owner
    return create_async_engine(settings.sql_url, pool_size=1, max_overflow=0, pool_pre_ping=True)


def create_mongo_client(settings: Settings) -> AsyncMongoClient:
    return AsyncMongoClient(settings.NOSQL_URL, **settings.mongo_client_options)


def create_checkpoint_store(settings: Settings, db: AsyncDatabase) -> CheckpointStore:
    if settings.CHECKPOINT_BACKEND == "file":
        return FileCheckpointStore(settings.CHECKPOINT_DIR)
    return MongoCheckpointStore(db, settings.CHECKPOINT_COLLECTION)


@asynccontextmanager
async def open_connections(settings: Settings) -> AsyncIterator[Connections]:
    """Open both ends for a run and always release them afterwards."""
    engine = create_source_engine(settings)
    client: Optional[AsyncMongoClient] = None
    try:
        client = create_mongo_client(settings)
        db = client[settings.NOSQL_DBNAME]
        log.info(
            f"Connected source={settings.SQL_HOST}:{settings.SQL_PORT}/{settings.SQL_DBNAME} "
            f"sink={settings.NOSQL_DBNAME} checkpoints={settings.CHECKPOINT_BACKEND}"
        )
        yield Connections(
            source=MySQLSource(engine),
            sink=MongoSink(db),
            checkpoints=create_checkpoint_store(settings, db),
        )
    finally:
        await engine.dispose()
        if client is not None:
            await client.close()
        log.info("Connections closed")
