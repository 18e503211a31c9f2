"""Checkpoint persistence tests"""

import json
from datetime import datetime

import pytest
from pymongo.errors import ServerSelectionTimeoutError

from mysql2mongo.core.checkpoints import CHECKPOINT_ID, FileCheckpointStore, MongoCheckpointStore
from mysql2mongo.core.errors import StoreError
from mysql2mongo.schemas.window import Checkpoint


class FakeCollection:
    """Just enough of an async collection for the checkpoint store."""

    def __init__(self, fail=False):
        self.docs = {}
        self.fail = fail
        self.replace_calls = []

    async def find_one(self, query):
        if self.fail:
            raise ServerSelectionTimeoutError("no servers")
        return self.docs.get(query["_id"])

    async def replace_one(self, query, document, upsert=False):
        if self.fail:
            raise ServerSelectionTimeoutError("no servers")
        self.replace_calls.append((query, document, upsert))
        self.docs[query["_id"]] = document


class TestFileCheckpointStore:
    """Checkpoint kept in a JSON file"""

    @pytest.fixture
    def store(self, tmp_path):
        return FileCheckpointStore(str(tmp_path / "checkpoints"))

    @pytest.mark.asyncio
    async def test_load_nonexistent_checkpoint(self, store):
        assert await store.load() is None

    @pytest.mark.asyncio
    async def test_save_then_load(self, store):
        date = datetime(2024, 1, 2, 3, 4, 5)
        await store.save(Checkpoint(date=date))

        loaded = await store.load()
        assert loaded == Checkpoint(date=date)

    @pytest.mark.asyncio
    async def test_save_replaces_previous(self, store):
        await store.save(Checkpoint(date=datetime(2024, 1, 1)))
        await store.save(Checkpoint(date=datetime(2024, 1, 2)))

        assert (await store.load()).date == datetime(2024, 1, 2)
        data = json.loads(store.checkpoint_file.read_text())
        assert data == {"_id": 0, "date": "2024-01-02 00:00:00"}

    @pytest.mark.asyncio
    async def test_corrupt_file_raises_store_error(self, store):
        store.checkpoint_dir.mkdir(parents=True)
        store.checkpoint_file.write_text("{not json")

        with pytest.raises(StoreError) as excinfo:
            await store.load()
        assert excinfo.value.operation == "load"


class TestMongoCheckpointStore:
    """Checkpoint kept as the _id=0 document of the _lastRun collection"""

    @pytest.mark.asyncio
    async def test_first_run_has_no_checkpoint(self):
        store = MongoCheckpointStore({"_lastRun": FakeCollection()})
        assert await store.load() is None

    @pytest.mark.asyncio
    async def test_save_is_upsert_on_fixed_key(self):
        collection = FakeCollection()
        store = MongoCheckpointStore({"_lastRun": collection})
        date = datetime(2024, 5, 1, 12, 0, 0)

        await store.save(Checkpoint(date=date))
        await store.save(Checkpoint(date=date))

        assert collection.replace_calls == [
            ({"_id": CHECKPOINT_ID}, {"_id": CHECKPOINT_ID, "date": date}, True),
        ] * 2
        assert (await store.load()).date == date

    @pytest.mark.asyncio
    async def test_legacy_string_date_is_accepted(self):
        collection = FakeCollection()
        collection.docs[0] = {"_id": 0, "date": "2023-11-30 00:00:00"}
        store = MongoCheckpointStore({"_lastRun": collection})

        assert (await store.load()).date == datetime(2023, 11, 30)

    @pytest.mark.asyncio
    async def test_custom_collection_name(self):
        collection = FakeCollection()
        store = MongoCheckpointStore({"checkpoints": collection}, collection="checkpoints")
        await store.save(Checkpoint(date=datetime(2024, 1, 1)))
        assert 0 in collection.docs

    @pytest.mark.asyncio
    async def test_driver_errors_become_store_errors(self):
        store = MongoCheckpointStore({"_lastRun": FakeCollection(fail=True)})

        with pytest.raises(StoreError) as load_err:
            await store.load()
        with pytest.raises(StoreError) as save_err:
            await store.save(Checkpoint(date=datetime(2024, 1, 1)))

        assert load_err.value.operation == "load"
        assert save_err.value.operation == "save"
        assert isinstance(save_err.value.cause, ServerSelectionTimeoutError)
