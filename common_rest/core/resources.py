from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from .errors import BulkUpdateFailed, InvalidDocument, NotFound
from .observability.metrics import inc_operation
from .registry import ResourceRegistry
from .storage.base import UpdateOp
from .storage.schema import RESERVED_FIELDS
from .transform import SaveMode, build_for_save, check_required, project, project_many

log = logging.getLogger("commonrest.resources")


def _require_object(item: Any, index: Optional[int] = None) -> Mapping[str, Any]:
    if not isinstance(item, Mapping):
        where = f"item {index}" if index is not None else "body"
        raise InvalidDocument(f"{where} must be a JSON object")
    return item


class ResourceService:
    """CRUD operations for every configured resource.

    Each call resolves the resource, shapes input through its policy, talks to
    its storage handle and projects whatever goes back to the caller.
    """

    def __init__(self, registry: ResourceRegistry):
        self.registry = registry

    async def list(self, resource_name: str, query: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
        entry = self.registry.resolve(resource_name)
        known = set(entry.policy) | set(entry.storage.schema.fields) | set(RESERVED_FIELDS)
        filter = {k: v for k, v in (query or {}).items() if k in known and entry.policy.is_readable(k)}
        docs = await entry.storage.find_all(filter or None)
        inc_operation(resource_name, "list")
        return project_many(docs, entry.policy)

    async def get(self, resource_name: str, id: Any) -> Dict[str, Any]:
        entry = self.registry.resolve(resource_name)
        doc = await entry.storage.find_one({entry.policy.primary_key: id})
        if doc is None:
            raise NotFound(resource_name, id)
        inc_operation(resource_name, "get")
        return project(doc, entry.policy)

    async def create(self, resource_name: str, data: Any) -> Dict[str, Any]:
        entry = self.registry.resolve(resource_name)
        document = await build_for_save(
            _require_object(data), entry.policy, resource_name, SaveMode.CREATE, self.registry.sequence
        )
        saved = await entry.storage.insert(document)
        log.debug("Resource for %s was created: %s", resource_name, saved)
        inc_operation(resource_name, "create")
        return project(saved, entry.policy)

    async def create_many(self, resource_name: str, items: List[Any]) -> List[Dict[str, Any]]:
        entry = self.registry.resolve(resource_name)
        objects = [_require_object(item, i) for i, item in enumerate(items)]
        # Validate the whole batch before any sequence value is drawn.
        for obj in objects:
            check_required(obj, entry.policy, resource_name, SaveMode.CREATE)

        documents = []
        for obj in objects:
            documents.append(
                await build_for_save(obj, entry.policy, resource_name, SaveMode.CREATE, self.registry.sequence)
            )
        saved = await entry.storage.insert_many(documents)
        log.debug("%d resources for %s were created", len(saved), resource_name)
        inc_operation(resource_name, "create", len(saved))
        return project_many(saved, entry.policy)

    async def update(self, resource_name: str, id: Any, data: Any) -> Dict[str, Any]:
        entry = self.registry.resolve(resource_name)
        pk = entry.policy.primary_key
        existing = await entry.storage.find_one({pk: id})
        if existing is None:
            raise NotFound(resource_name, id)

        patch = await build_for_save(
            _require_object(data), entry.policy, resource_name, SaveMode.UPDATE, self.registry.sequence
        )
        # Address the stored document by its stored key, which may have been cast.
        saved = await entry.storage.update_one({pk: existing.get(pk)}, patch)
        if saved is None:
            raise NotFound(resource_name, id)
        log.debug("Resource %s/%s was saved: %s", resource_name, id, saved)
        inc_operation(resource_name, "update")
        return project(saved, entry.policy)

    async def update_many(self, resource_name: str, items: List[Any]) -> int:
        """Apply partial updates addressed by each item's primary key.

        Not atomic: items applied before a failure stay applied. Any per-item
        failure turns the whole call into BulkUpdateFailed, which still
        carries the number of modified documents.
        """
        entry = self.registry.resolve(resource_name)
        pk = entry.policy.primary_key
        if not items:
            return 0

        errors: List[Dict[str, Any]] = []
        ops: List[UpdateOp] = []
        positions: List[int] = []
        for index, item in enumerate(items):
            if not isinstance(item, Mapping):
                errors.append({"index": index, "id": None, "detail": "item must be a JSON object"})
                continue
            if item.get(pk) is None:
                errors.append({"index": index, "id": None, "detail": f"missing primary key {pk}"})
                continue
            # Primary keys are plain values; objects would reach the store as query operators.
            if isinstance(item[pk], (dict, list)):
                errors.append({"index": index, "id": None, "detail": f"invalid primary key {pk}"})
                continue
            patch = await build_for_save(item, entry.policy, resource_name, SaveMode.UPDATE, self.registry.sequence)
            ops.append(UpdateOp(filter={pk: item[pk]}, patch=patch))
            positions.append(index)

        updated = 0
        if ops:
            result = await entry.storage.bulk_update(ops)
            updated = result.modified_count
            for err in result.errors:
                index = positions[err.index]
                errors.append({"index": index, "id": items[index].get(pk), "detail": err.detail})

        log.debug("%d resources for %s were updated", updated, resource_name)
        inc_operation(resource_name, "update", updated)

        if errors:
            errors.sort(key=lambda e: e["index"])
            log.debug("%d resources for %s failed on update", len(errors), resource_name)
            for err in errors:
                log.debug("Update error detail: %s", err)
            raise BulkUpdateFailed(updated=updated, errors=errors)
        return updated

    async def delete(self, resource_name: str, id: Any) -> None:
        entry = self.registry.resolve(resource_name)
        removed = await entry.storage.delete_one({entry.policy.primary_key: id})
        if not removed:
            raise NotFound(resource_name, id)
        log.debug("%s/%s was removed successfully", resource_name, id)
        inc_operation(resource_name, "delete")

    async def delete_many(self, resource_name: str, items: Any) -> int:
        """Delete by primary key. Items may be documents or bare ids; unmatched ids are skipped."""
        entry = self.registry.resolve(resource_name)
        pk = entry.policy.primary_key
        values = items if isinstance(items, list) else [items]

        ids = []
        for item in values:
            value = item.get(pk) if isinstance(item, Mapping) else item
            if value is not None and not isinstance(value, (dict, list)):
                ids.append(value)
        if not ids:
            return 0

        deleted = await entry.storage.delete_many({pk: {"$in": ids}})
        log.debug("%d resources for %s were deleted", deleted, resource_name)
        inc_operation(resource_name, "delete", deleted)
        return deleted
