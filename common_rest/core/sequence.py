from __future__ import annotations

import logging

from .errors import StorageUnavailable
from .observability.metrics import SEQUENCE_FAILURES_TOTAL, SEQUENCE_VALUES_TOTAL
from .storage.base import CounterStore

log = logging.getLogger("commonrest.sequence")


def sequence_key(resource_name: str, field_name: str) -> str:
    return f"{resource_name}_{field_name}"


class SequenceGenerator:
    """Issues auto-increment values from the durable counter store.

    Uniqueness across callers and processes comes from the store's atomic
    increment-and-fetch; there is no in-process counter to fall back to.
    """

    def __init__(self, store: CounterStore):
        self.store = store

    async def next_value(self, resource_name: str, field_name: str) -> int:
        key = sequence_key(resource_name, field_name)
        try:
            value = await self.store.increment_and_get(key)
        except StorageUnavailable:
            SEQUENCE_FAILURES_TOTAL.labels(resource=resource_name, field=field_name).inc()
            log.error("Can not get auto-incremented value for %s.%s", resource_name, field_name)
            raise

        SEQUENCE_VALUES_TOTAL.labels(resource=resource_name, field=field_name).inc()
        log.debug("Issued %s=%d", key, value)
        return value
