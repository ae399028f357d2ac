from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import List, Mapping

from .config import ResourceConfigMap, parse_resource_config
from .errors import UnknownResource
from .policy import ResourcePolicy
from .sequence import SequenceGenerator
from .storage.base import DocumentStore, StorageBackend
from .storage.schema import StorageSchema

log = logging.getLogger("commonrest.registry")


@dataclass(frozen=True)
class ResourceEntry:
    name: str
    storage: DocumentStore
    policy: ResourcePolicy


class ResourceRegistry:
    """Per-resource storage handles and policies, built once per process.

    Resolution order:
      1) configured resource names (fixed at construction)
      2) anything else -> UnknownResource
    """

    def __init__(self, config: ResourceConfigMap, backend: StorageBackend):
        config = parse_resource_config(config)
        self.backend = backend
        entries = {}
        for name, rc in config.items():
            entries[name] = ResourceEntry(
                name=name,
                storage=backend.collection(name, StorageSchema(rc.db)),
                policy=ResourcePolicy(rc.rest),
            )
        self._entries: Mapping[str, ResourceEntry] = MappingProxyType(entries)
        self.sequence = SequenceGenerator(backend.counters())
        self._provisioned = False

    async def provision(self) -> None:
        """Prepare every collection and the counter store. Runs once."""
        if self._provisioned:
            return
        await self.backend.provision([e.storage for e in self._entries.values()])
        self._provisioned = True
        log.info("Registry ready on %s storage: %s", self.backend.name, ", ".join(self.names()))

    def _entry(self, resource_name: str) -> ResourceEntry:
        entry = self._entries.get(resource_name)
        if entry is None:
            log.error("Can not find config schema of resource for: %s", resource_name)
            raise UnknownResource(resource_name)
        return entry

    def resolve_storage(self, resource_name: str) -> DocumentStore:
        return self._entry(resource_name).storage

    def resolve_policy(self, resource_name: str) -> ResourcePolicy:
        return self._entry(resource_name).policy

    def resolve(self, resource_name: str) -> ResourceEntry:
        return self._entry(resource_name)

    def names(self) -> List[str]:
        return sorted(self._entries)

    @property
    def entries(self) -> Mapping[str, ResourceEntry]:
        return self._entries
