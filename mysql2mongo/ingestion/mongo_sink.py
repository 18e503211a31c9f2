"""MongoDB sink implementation."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, Dict

from bson import Decimal128
from pymongo.asynchronous.database import AsyncDatabase

from mysql2mongo.core.logging import get_logger
from .base import DocumentSink

log = get_logger("ingestion.mongo")


def to_bson_value(value: Any) -> Any:
    """Convert driver values BSON cannot encode as-is."""
    if isinstance(value, Decimal):
        return Decimal128(value)
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if isinstance(value, timedelta):
        # MySQL TIME columns arrive as timedelta
        return value.total_seconds()
    if isinstance(value, (bytearray, memoryview)):
        return bytes(value)
    return value


def to_document(document_id: Any, row: Dict[str, Any]) -> Dict[str, Any]:
    """Full row plus the ``_id`` identity, column order preserved."""
    document = {"_id": to_bson_value(document_id)}
    for key, value in row.items():
        document[key] = to_bson_value(value)
    return document


class MongoSink(DocumentSink):
    """Writes documents with ``replace_one(..., upsert=True)``."""

    name = "mongodb"

    def __init__(self, db: AsyncDatabase):
        self.db = db

    async def upsert(self, collection: str, document_id: Any, document: Dict[str, Any]) -> None:
        doc = to_document(document_id, document)
        await self.db[collection].replace_one({"_id": doc["_id"]}, doc, upsert=True)
