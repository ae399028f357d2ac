"""File-backed storage.

Layout under the data directory:

    <data_dir>/<collection>.json        {"kind": "collection", "documents": [...]}
    <data_dir>/counters.json            {"kind": "counters", "counters": {key: {"_id", "seq"}}}
    <data_dir>/*.lock                   flock targets

Every read-modify-write happens under one exclusive flock on the sidecar lock
file, so increments and updates are serialised across threads and processes
on the same host. Blocking I/O runs in the worker thread pool.
"""

from __future__ import annotations

import json
import logging
import os
import threading
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Generator, List, Mapping, Optional, Tuple, TypeVar

from starlette.concurrency import run_in_threadpool

from ..errors import InvalidDocument, StorageUnavailable
from .base import BulkUpdateError, BulkUpdateResult, CounterStore, Document, DocumentStore, Filter, StorageBackend, UpdateOp
from .schema import ID_FIELD, VERSION_FIELD, StorageSchema, matches

log = logging.getLogger("commonrest.storage")

try:
    import fcntl as _fcntl
    _HAS_FCNTL = True
except ImportError:
    _HAS_FCNTL = False
    log.warning(
        "fcntl not available (non-POSIX). File storage is locked per process only. "
        "Do not point several server processes at the same data directory on this platform."
    )

T = TypeVar("T")

_PROCESS_LOCKS: Dict[str, threading.Lock] = {}
_PROCESS_LOCKS_GUARD = threading.Lock()


def _process_lock(path: Path) -> threading.Lock:
    with _PROCESS_LOCKS_GUARD:
        return _PROCESS_LOCKS.setdefault(str(path), threading.Lock())


@contextmanager
def _locked(lock_path: Path, *, exclusive: bool = True) -> Generator[None, None, None]:
    """Hold a flock on ``lock_path`` (POSIX); a process-local lock elsewhere."""
    if not _HAS_FCNTL:
        with _process_lock(lock_path):
            yield
        return

    with open(lock_path, "a", encoding="utf-8") as fh:
        _fcntl.flock(fh, _fcntl.LOCK_EX if exclusive else _fcntl.LOCK_SH)
        try:
            yield
        finally:
            _fcntl.flock(fh, _fcntl.LOCK_UN)


def _read_json(path: Path, default: Dict[str, Any]) -> Dict[str, Any]:
    if not path.exists():
        return default
    raw = path.read_text(encoding="utf-8")
    if not raw.strip():
        return default
    obj = json.loads(raw)
    if not isinstance(obj, dict):
        raise ValueError(f"{path.name} must hold a JSON object")
    return obj


def _write_json(path: Path, obj: Dict[str, Any]) -> None:
    tmp = path.with_name(path.name + ".tmp")
    tmp.write_text(json.dumps(obj, indent=2, sort_keys=False), encoding="utf-8")
    os.replace(tmp, path)


def _guard_io(what: str, fn: Callable[[], T]) -> T:
    try:
        return fn()
    except (OSError, ValueError) as exc:
        # json.JSONDecodeError is a ValueError
        log.error("File storage failure during %s: %s", what, exc)
        raise StorageUnavailable(f"Storage is unavailable: {what} failed") from exc


class FileDocumentStore(DocumentStore):
    def __init__(self, *, data_dir: Path, name: str, schema: StorageSchema):
        self.data_dir = data_dir
        self.name = name
        self.schema = schema

    @property
    def path(self) -> Path:
        return self.data_dir / f"{self.name}.json"

    @property
    def lock_path(self) -> Path:
        return self.data_dir / f"{self.name}.json.lock"

    # ------------------------------------------------------------
    # Locked primitives (run in worker threads)
    # ------------------------------------------------------------
    def _load(self) -> List[Document]:
        obj = _read_json(self.path, {"kind": "collection", "name": self.name, "documents": []})
        docs = obj.get("documents", [])
        return [d for d in docs if isinstance(d, dict)] if isinstance(docs, list) else []

    def _save(self, docs: List[Document]) -> None:
        _write_json(self.path, {"kind": "collection", "name": self.name, "documents": docs})

    def _read(self) -> List[Document]:
        def run() -> List[Document]:
            with _locked(self.lock_path, exclusive=False):
                return self._load()

        return _guard_io(f"read {self.name}", run)

    def _mutate(self, fn: Callable[[List[Document]], Tuple[T, bool]]) -> T:
        """Apply ``fn`` to the collection under an exclusive lock.

        ``fn`` returns ``(result, changed)``; the file is rewritten only when
        something changed.
        """

        def run() -> T:
            with _locked(self.lock_path, exclusive=True):
                docs = self._load()
                result, changed = fn(docs)
                if changed:
                    self._save(docs)
                return result

        return _guard_io(f"write {self.name}", run)

    def _check_unique(self, docs: List[Document], candidate: Document, *, skip: Optional[int] = None) -> None:
        for key in [ID_FIELD, *self.schema.unique_fields]:
            value = candidate.get(key)
            if value is None:
                continue
            for i, other in enumerate(docs):
                if i != skip and other.get(key) == value:
                    raise InvalidDocument(f"duplicate value for unique field {key}: {value!r}", field=key)

    def _new_document(self, doc: Mapping[str, Any]) -> Document:
        prepared = self.schema.prepare_insert(doc)
        out: Document = {ID_FIELD: prepared.pop(ID_FIELD, None) or uuid.uuid4().hex}
        out.update(prepared)
        out.setdefault(VERSION_FIELD, 0)
        return out

    # ------------------------------------------------------------
    # DocumentStore
    # ------------------------------------------------------------
    async def insert(self, doc: Mapping[str, Any]) -> Document:
        created = await self.insert_many([doc])
        return created[0]

    async def insert_many(self, docs: List[Mapping[str, Any]]) -> List[Document]:
        new_docs = [self._new_document(d) for d in docs]

        def apply(existing: List[Document]) -> Tuple[List[Document], bool]:
            for d in new_docs:
                self._check_unique(existing, d)
                existing.append(d)
            return [dict(d) for d in new_docs], bool(new_docs)

        return await run_in_threadpool(self._mutate, apply)

    async def find_one(self, filter: Filter) -> Optional[Document]:
        cast = self.schema.cast_filter(filter)
        if cast is None:
            return None
        for d in await run_in_threadpool(self._read):
            if matches(d, cast):
                return d
        return None

    async def find_all(self, filter: Optional[Filter] = None) -> List[Document]:
        cast = self.schema.cast_filter(filter)
        if cast is None:
            return []
        return [d for d in await run_in_threadpool(self._read) if matches(d, cast)]

    def _apply_patch(self, docs: List[Document], cast: Dict[str, Any], patch: Dict[str, Any]) -> Tuple[Optional[Document], bool]:
        for i, d in enumerate(docs):
            if not matches(d, cast):
                continue
            updated = {**d, **patch}
            if updated == d:
                return dict(d), False
            self._check_unique(docs, updated, skip=i)
            docs[i] = updated
            return dict(updated), True
        return None, False

    async def update_one(self, filter: Filter, patch: Mapping[str, Any]) -> Optional[Document]:
        cast = self.schema.cast_filter(filter)
        if cast is None:
            return None
        prepared = self.schema.prepare_patch(patch)
        return await run_in_threadpool(self._mutate, lambda docs: self._apply_patch(docs, cast, prepared))

    async def bulk_update(self, ops: List[UpdateOp]) -> BulkUpdateResult:
        def apply(docs: List[Document]) -> Tuple[BulkUpdateResult, bool]:
            result = BulkUpdateResult()
            for index, op in enumerate(ops):
                cast = self.schema.cast_filter(op.filter)
                if cast is None:
                    continue
                try:
                    _, changed = self._apply_patch(docs, cast, self.schema.prepare_patch(op.patch))
                except InvalidDocument as exc:
                    result.errors.append(BulkUpdateError(index=index, detail=exc.message))
                    continue
                if changed:
                    result.modified_count += 1
            return result, result.modified_count > 0

        return await run_in_threadpool(self._mutate, apply)

    async def delete_one(self, filter: Filter) -> bool:
        cast = self.schema.cast_filter(filter)
        if cast is None:
            return False

        def apply(docs: List[Document]) -> Tuple[bool, bool]:
            for i, d in enumerate(docs):
                if matches(d, cast):
                    del docs[i]
                    return True, True
            return False, False

        return await run_in_threadpool(self._mutate, apply)

    async def delete_many(self, filter: Filter) -> int:
        cast = self.schema.cast_filter(filter)
        if cast is None:
            return 0

        def apply(docs: List[Document]) -> Tuple[int, bool]:
            keep = [d for d in docs if not matches(d, cast)]
            removed = len(docs) - len(keep)
            docs[:] = keep
            return removed, removed > 0

        return await run_in_threadpool(self._mutate, apply)


class FileCounterStore(CounterStore):
    def __init__(self, *, data_dir: Path):
        self.data_dir = data_dir

    @property
    def path(self) -> Path:
        return self.data_dir / "counters.json"

    @property
    def lock_path(self) -> Path:
        return self.data_dir / "counters.json.lock"

    def _increment(self, key: str) -> int:
        def run() -> int:
            with _locked(self.lock_path, exclusive=True):
                obj = _read_json(self.path, {"kind": "counters", "counters": {}})
                counters = obj.get("counters")
                if not isinstance(counters, dict):
                    counters = {}
                rec = counters.get(key) or {"_id": key, "seq": 0}
                rec["seq"] = int(rec.get("seq", 0)) + 1
                counters[key] = rec
                obj["kind"] = "counters"
                obj["counters"] = counters
                _write_json(self.path, obj)
                return rec["seq"]

        return _guard_io(f"increment {key}", run)

    async def increment_and_get(self, key: str) -> int:
        return await run_in_threadpool(self._increment, key)


class FileBackend(StorageBackend):
    name = "file"

    def __init__(self, *, data_dir: Path):
        self.data_dir = Path(data_dir)
        self._counters = FileCounterStore(data_dir=self.data_dir)

    def collection(self, name: str, schema: StorageSchema) -> FileDocumentStore:
        return FileDocumentStore(data_dir=self.data_dir, name=name, schema=schema)

    def counters(self) -> FileCounterStore:
        return self._counters

    async def provision(self, stores: List[DocumentStore]) -> None:
        def run() -> None:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            self._counters.lock_path.touch(exist_ok=True)

        _guard_io("provision", run)
        log.info("File storage ready at %s (%d collections)", self.data_dir, len(stores))

    async def ping(self) -> bool:
        return self.data_dir.is_dir() and os.access(self.data_dir, os.W_OK)
