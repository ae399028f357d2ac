from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from .schema import StorageSchema

Document = Dict[str, Any]
Filter = Mapping[str, Any]


@dataclass(frozen=True)
class UpdateOp:
    filter: Dict[str, Any]
    patch: Dict[str, Any]


@dataclass
class BulkUpdateError:
    index: int
    detail: str

    def to_dict(self) -> Dict[str, Any]:
        return {"index": self.index, "detail": self.detail}


@dataclass
class BulkUpdateResult:
    modified_count: int = 0
    errors: List[BulkUpdateError] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)


class DocumentStore(ABC):
    """One resource's collection.

    Filters map a field to a value or to ``{"$in": [values]}``.
    """

    name: str
    schema: StorageSchema

    @abstractmethod
    async def insert(self, doc: Mapping[str, Any]) -> Document:
        """Persist a new document and return it as stored (with ``_id``/``__v``)."""

    @abstractmethod
    async def insert_many(self, docs: List[Mapping[str, Any]]) -> List[Document]:
        """Persist several documents; all are validated before any is written."""

    @abstractmethod
    async def find_one(self, filter: Filter) -> Optional[Document]:
        ...

    @abstractmethod
    async def find_all(self, filter: Optional[Filter] = None) -> List[Document]:
        ...

    @abstractmethod
    async def update_one(self, filter: Filter, patch: Mapping[str, Any]) -> Optional[Document]:
        """Overwrite the patch's fields on the first match; ``None`` if nothing matched."""

    @abstractmethod
    async def bulk_update(self, ops: List[UpdateOp]) -> BulkUpdateResult:
        """Apply each op independently; failures are collected, not raised."""

    @abstractmethod
    async def delete_one(self, filter: Filter) -> bool:
        ...

    @abstractmethod
    async def delete_many(self, filter: Filter) -> int:
        ...


class CounterStore(ABC):
    @abstractmethod
    async def increment_and_get(self, key: str) -> int:
        """Atomically add one to ``key`` (created at 0) and return the new value."""


class StorageBackend(ABC):
    name: str

    @abstractmethod
    def collection(self, name: str, schema: StorageSchema) -> DocumentStore:
        ...

    @abstractmethod
    def counters(self) -> CounterStore:
        ...

    @abstractmethod
    async def provision(self, stores: List[DocumentStore]) -> None:
        """Prepare backing storage for the given collections and the counter store."""

    @abstractmethod
    async def ping(self) -> bool:
        ...

    async def close(self) -> None:
        return None
