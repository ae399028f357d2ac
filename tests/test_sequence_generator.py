"""Auto-increment values must be unique and gap-free under concurrent callers."""
from __future__ import annotations

import asyncio
import concurrent.futures
import json

import pytest

from common_rest.core.errors import StorageUnavailable
from common_rest.core.sequence import SequenceGenerator, sequence_key
from common_rest.core.storage.file import FileBackend, FileCounterStore


def _generator(data_dir) -> SequenceGenerator:
    backend = FileBackend(data_dir=data_dir)
    asyncio.run(backend.provision([]))
    return SequenceGenerator(backend.counters())


def test_sequence_key_format():
    assert sequence_key("hero", "id") == "hero_id"


def test_first_value_is_one_and_values_increase(data_dir):
    gen = _generator(data_dir)
    assert asyncio.run(gen.next_value("hero", "id")) == 1
    assert asyncio.run(gen.next_value("hero", "id")) == 2
    # independent counter per (resource, field)
    assert asyncio.run(gen.next_value("hero", "badge")) == 1
    assert asyncio.run(gen.next_value("asset", "id")) == 1


def test_counter_is_durable_across_restarts(data_dir):
    asyncio.run(_generator(data_dir).next_value("hero", "id"))
    asyncio.run(_generator(data_dir).next_value("hero", "id"))

    assert asyncio.run(_generator(data_dir).next_value("hero", "id")) == 3
    counters = json.loads((data_dir / "counters.json").read_text(encoding="utf-8"))["counters"]
    assert counters["hero_id"] == {"_id": "hero_id", "seq": 3}


def test_concurrent_coroutines_get_exact_range(data_dir):
    gen = _generator(data_dir)
    prev = asyncio.run(gen.next_value("hero", "id"))

    async def burst(n: int):
        return await asyncio.gather(*(gen.next_value("hero", "id") for _ in range(n)))

    values = asyncio.run(burst(25))
    assert sorted(values) == list(range(prev + 1, prev + 26))


def test_concurrent_generators_across_threads_get_exact_range(data_dir):
    """Separate store instances simulate separate server processes."""
    _generator(data_dir)

    def draw(_: int) -> int:
        gen = SequenceGenerator(FileCounterStore(data_dir=data_dir))
        return asyncio.run(gen.next_value("hero", "id"))

    with concurrent.futures.ThreadPoolExecutor(max_workers=8) as pool:
        values = list(pool.map(draw, range(40)))

    assert sorted(values) == list(range(1, 41))


def test_unreachable_store_raises_storage_unavailable(tmp_path):
    not_a_dir = tmp_path / "occupied"
    not_a_dir.write_text("x", encoding="utf-8")
    gen = SequenceGenerator(FileCounterStore(data_dir=not_a_dir))

    with pytest.raises(StorageUnavailable):
        asyncio.run(gen.next_value("hero", "id"))
