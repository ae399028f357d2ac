import asyncio
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from common_rest.api.main import create_app
from common_rest.core.registry import ResourceRegistry
from common_rest.core.settings import Settings
from common_rest.core.storage.base import CounterStore
from common_rest.core.storage.file import FileBackend


HERO_CONFIG = {
    "hero": {
        "db": {
            "id": {"type": "integer", "required": True, "unique": True},
            "name": {"type": "string", "required": True},
            "power": "string",
            "rank": {"type": "integer", "default": 0},
            "owner": "string",
        },
        "rest": {
            "id": {"autoIncrement": True, "primaryKey": True, "writable": False},
            "name": {"required": True},
            "power": {},
            "rank": {},
            "owner": {"writable": False},
            "_id": {"readable": False},
            "__v": {"readable": False, "writable": False},
        },
    },
    # no primary key declared: addressed by the implicit _id
    "note": {
        "db": {"title": "string", "body": "string"},
        "rest": {"title": {"required": True}, "body": {}},
    },
}


class MemoryCounterStore(CounterStore):
    """Test double: counts increments in memory."""

    def __init__(self):
        self.values = {}
        self.calls = []

    async def increment_and_get(self, key: str) -> int:
        self.calls.append(key)
        self.values[key] = self.values.get(key, 0) + 1
        return self.values[key]


@pytest.fixture()
def data_dir(tmp_path: Path) -> Path:
    return tmp_path / "data"


@pytest.fixture()
def settings(tmp_path: Path, data_dir: Path) -> Settings:
    return Settings(config_path=tmp_path / "resources.yaml", data_dir=data_dir)


@pytest.fixture()
def backend(data_dir: Path) -> FileBackend:
    return FileBackend(data_dir=data_dir)


@pytest.fixture()
def registry(backend: FileBackend) -> ResourceRegistry:
    reg = ResourceRegistry(HERO_CONFIG, backend)
    asyncio.run(reg.provision())
    return reg


@pytest.fixture()
def app(settings: Settings):
    return create_app(settings, resource_config=HERO_CONFIG)


@pytest.fixture()
def client(app):
    with TestClient(app) as c:
        yield c
