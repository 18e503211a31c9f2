"""Checkpoint persistence for incremental runs"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import PyMongoError

from mysql2mongo.core.errors import StoreError
from mysql2mongo.core.logging import get_logger
from mysql2mongo.schemas.window import Checkpoint

log = get_logger("core.checkpoints")

# Singleton key of the checkpoint record
CHECKPOINT_ID = 0


def _parse_date(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        # Older runs stored "YYYY-MM-DD HH:MM:SS" strings
        return datetime.fromisoformat(value)
    return None


class CheckpointStore(ABC):
    """Loads and saves the timestamp of the last successful incremental run."""

    @abstractmethod
    async def load(self) -> Optional[Checkpoint]:
        """Return the stored checkpoint, or None on first run."""

    @abstractmethod
    async def save(self, checkpoint: Checkpoint) -> None:
        """Create or replace the stored checkpoint."""


class MongoCheckpointStore(CheckpointStore):
    """Checkpoint kept as a single document (``_id = 0``) in the sink database."""

    def __init__(self, db: AsyncDatabase, collection: str = "_lastRun"):
        self.collection = db[collection]

    async def load(self) -> Optional[Checkpoint]:
        try:
            doc = await self.collection.find_one({"_id": CHECKPOINT_ID})
            date = _parse_date(doc.get("date")) if doc else None
        except (PyMongoError, ValueError) as exc:
            raise StoreError("load", exc) from exc

        if date is None:
            return None
        return Checkpoint(date=date)

    async def save(self, checkpoint: Checkpoint) -> None:
        try:
            await self.collection.replace_one(
                {"_id": CHECKPOINT_ID},
                {"_id": CHECKPOINT_ID, "date": checkpoint.date},
                upsert=True,
            )
        except PyMongoError as exc:
            raise StoreError("save", exc) from exc
        log.info(f"Checkpoint saved: {checkpoint.date:%Y-%m-%d %H:%M:%S}")


class FileCheckpointStore(CheckpointStore):
    """Checkpoint kept in a local JSON file (`CHECKPOINT_BACKEND=file`)."""

    def __init__(self, checkpoint_dir: str = "checkpoints", name: str = "last_run"):
        self.checkpoint_dir = Path(checkpoint_dir)
        self.checkpoint_file = self.checkpoint_dir / f"{name}.json"

    async def load(self) -> Optional[Checkpoint]:
        if not self.checkpoint_file.exists():
            return None

        try:
            with open(self.checkpoint_file, "r") as f:
                data = json.load(f)
            date = _parse_date(data.get("date"))
        except (OSError, ValueError) as exc:
            raise StoreError("load", exc) from exc

        return Checkpoint(date=date) if date else None

    async def save(self, checkpoint: Checkpoint) -> None:
        data = {"_id": CHECKPOINT_ID, "date": checkpoint.date.isoformat(sep=" ")}
        try:
            self.checkpoint_dir.mkdir(parents=True, exist_ok=True)
            with open(self.checkpoint_file, "w") as f:
                json.dump(data, f, indent=2)
        except OSError as exc:
            raise StoreError("save", exc) from exc
        log.info(f"Checkpoint saved: {checkpoint.date:%Y-%m-%d %H:%M:%S}")
