"""MongoDB storage using the pymongo async client.

Sequence values come from a single ``find_one_and_update`` with ``$inc`` and
``upsert``, which MongoDB applies atomically per counter document.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Generator, List, Mapping, Optional

from bson import ObjectId
from pymongo import AsyncMongoClient, ReturnDocument, UpdateOne
from pymongo.errors import BulkWriteError, DuplicateKeyError, OperationFailure, PyMongoError, WriteError

from ..errors import InvalidDocument, StorageUnavailable
from .base import BulkUpdateError, BulkUpdateResult, CounterStore, Document, DocumentStore, Filter, StorageBackend, UpdateOp
from .schema import ID_FIELD, VERSION_FIELD, StorageSchema

log = logging.getLogger("commonrest.storage")

COUNTERS_COLLECTION = "counters"


@contextmanager
def _guard(what: str, *, client_errors: bool = True) -> Generator[None, None, None]:
    try:
        yield
    except DuplicateKeyError as exc:
        raise InvalidDocument(f"duplicate value for unique field: {exc.details.get('keyValue') if exc.details else exc}") from exc
    except (WriteError, OperationFailure) as exc:
        # rejected by the server for this document, not a storage outage
        if not client_errors:
            log.error("MongoDB failure during %s: %s", what, exc)
            raise StorageUnavailable(f"Storage is unavailable: {what} failed") from exc
        raise InvalidDocument(f"{what} rejected: {exc}") from exc
    except PyMongoError as exc:
        log.error("MongoDB failure during %s: %s", what, exc)
        raise StorageUnavailable(f"Storage is unavailable: {what} failed") from exc


def _to_object_id(value: Any) -> Any:
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return value


def _out(doc: Mapping[str, Any]) -> Document:
    out: Document = {}
    if ID_FIELD in doc:
        v = doc[ID_FIELD]
        out[ID_FIELD] = str(v) if isinstance(v, ObjectId) else v
    for key, value in doc.items():
        if key != ID_FIELD:
            out[key] = value
    return out


class MongoDocumentStore(DocumentStore):
    def __init__(self, *, collection: Any, name: str, schema: StorageSchema):
        self._collection = collection
        self.name = name
        self.schema = schema

    def _filter(self, filter: Optional[Filter]) -> Optional[Dict[str, Any]]:
        cast = self.schema.cast_filter(filter)
        if cast is None or ID_FIELD not in cast or ID_FIELD in self.schema.fields:
            return cast
        cond = cast[ID_FIELD]
        if isinstance(cond, dict) and "$in" in cond:
            cast[ID_FIELD] = {"$in": [_to_object_id(v) for v in cond["$in"]]}
        else:
            cast[ID_FIELD] = _to_object_id(cond)
        return cast

    def _prepare(self, doc: Mapping[str, Any]) -> Document:
        prepared = self.schema.prepare_insert(doc)
        if prepared.get(ID_FIELD) is None:
            prepared.pop(ID_FIELD, None)
        prepared.setdefault(VERSION_FIELD, 0)
        return prepared

    async def insert(self, doc: Mapping[str, Any]) -> Document:
        prepared = self._prepare(doc)
        with _guard(f"insert into {self.name}"):
            await self._collection.insert_one(prepared)
        return _out(prepared)

    async def insert_many(self, docs: List[Mapping[str, Any]]) -> List[Document]:
        prepared = [self._prepare(d) for d in docs]
        if not prepared:
            return []
        try:
            await self._collection.insert_many(prepared, ordered=True)
        except BulkWriteError as exc:
            errors = (exc.details or {}).get("writeErrors") or []
            detail = errors[0].get("errmsg") if errors else str(exc)
            raise InvalidDocument(f"insert failed: {detail}") from exc
        except PyMongoError as exc:
            log.error("MongoDB failure during insert_many into %s: %s", self.name, exc)
            raise StorageUnavailable(f"Storage is unavailable: insert into {self.name} failed") from exc
        return [_out(d) for d in prepared]

    async def find_one(self, filter: Filter) -> Optional[Document]:
        cast = self._filter(filter)
        if cast is None:
            return None
        with _guard(f"find in {self.name}"):
            doc = await self._collection.find_one(cast)
        return _out(doc) if doc is not None else None

    async def find_all(self, filter: Optional[Filter] = None) -> List[Document]:
        cast = self._filter(filter)
        if cast is None:
            return []
        with _guard(f"find in {self.name}"):
            return [_out(d) async for d in self._collection.find(cast)]

    async def update_one(self, filter: Filter, patch: Mapping[str, Any]) -> Optional[Document]:
        cast = self._filter(filter)
        if cast is None:
            return None
        prepared = self.schema.prepare_patch(patch)
        if not prepared:
            return await self.find_one(filter)
        with _guard(f"update {self.name}"):
            doc = await self._collection.find_one_and_update(
                cast, {"$set": prepared}, return_document=ReturnDocument.AFTER
            )
        return _out(doc) if doc is not None else None

    async def bulk_update(self, ops: List[UpdateOp]) -> BulkUpdateResult:
        result = BulkUpdateResult()
        requests: List[UpdateOne] = []
        positions: List[int] = []
        for index, op in enumerate(ops):
            cast = self._filter(op.filter)
            if cast is None:
                continue
            try:
                prepared = self.schema.prepare_patch(op.patch)
            except InvalidDocument as exc:
                result.errors.append(BulkUpdateError(index=index, detail=exc.message))
                continue
            if not prepared:
                continue
            requests.append(UpdateOne(cast, {"$set": prepared}))
            positions.append(index)

        if not requests:
            return result

        try:
            res = await self._collection.bulk_write(requests, ordered=False)
            result.modified_count = res.modified_count
        except BulkWriteError as exc:
            details = exc.details or {}
            result.modified_count = int(details.get("nModified", 0))
            for err in details.get("writeErrors") or []:
                result.errors.append(
                    BulkUpdateError(index=positions[err.get("index", 0)], detail=str(err.get("errmsg", "write error")))
                )
        except PyMongoError as exc:
            log.error("MongoDB failure during bulk update of %s: %s", self.name, exc)
            raise StorageUnavailable(f"Storage is unavailable: bulk update of {self.name} failed") from exc

        result.errors.sort(key=lambda e: e.index)
        return result

    async def delete_one(self, filter: Filter) -> bool:
        cast = self._filter(filter)
        if cast is None:
            return False
        with _guard(f"delete from {self.name}"):
            res = await self._collection.delete_one(cast)
        return res.deleted_count > 0

    async def delete_many(self, filter: Filter) -> int:
        cast = self._filter(filter)
        if cast is None:
            return 0
        with _guard(f"delete from {self.name}"):
            res = await self._collection.delete_many(cast)
        return res.deleted_count


class MongoCounterStore(CounterStore):
    def __init__(self, *, collection: Any):
        self._collection = collection

    async def increment_and_get(self, key: str) -> int:
        with _guard(f"increment {key}", client_errors=False):
            doc = await self._collection.find_one_and_update(
                {ID_FIELD: key},
                {"$inc": {"seq": 1}},
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
        if doc is None:
            raise StorageUnavailable(f"Storage returned no counter for {key}")
        return int(doc["seq"])


class MongoBackend(StorageBackend):
    name = "mongo"

    def __init__(self, *, url: str, db_name: str, server_selection_timeout_ms: int = 5000):
        self.url = url
        self.db_name = db_name
        self._client: AsyncMongoClient = AsyncMongoClient(url, serverSelectionTimeoutMS=server_selection_timeout_ms)
        self._db = self._client[db_name]
        self._counters = MongoCounterStore(collection=self._db[COUNTERS_COLLECTION])

    def collection(self, name: str, schema: StorageSchema) -> MongoDocumentStore:
        return MongoDocumentStore(collection=self._db[name], name=name, schema=schema)

    def counters(self) -> MongoCounterStore:
        return self._counters

    async def provision(self, stores: List[DocumentStore]) -> None:
        for store in stores:
            for field in store.schema.unique_fields:
                with _guard(f"index {store.name}.{field}", client_errors=False):
                    await self._db[store.name].create_index(field, unique=True)
        log.info("MongoDB storage ready: db=%s (%d collections)", self.db_name, len(stores))

    async def ping(self) -> bool:
        try:
            await self._client.admin.command("ping")
            return True
        except PyMongoError:
            return False

    async def close(self) -> None:
        await self._client.close()
