"""
Static resource configuration.

The file maps each resource name to its storage schema (``db``) and its field
policies (``rest``). YAML or JSON:

    hero:
      db:
        id: {type: integer, required: true, unique: true}
        name: {type: string, required: true}
      rest:
        id: {autoIncrement: true, primaryKey: true, writable: false}
        name: {required: true}
        _id: {readable: false}
        __v: {readable: false, writable: false}

Loaded once at startup. A missing or malformed file is a startup error.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .storage.schema import StorageSchema

_log = logging.getLogger("commonrest.config")


class ConfigError(RuntimeError):
    pass


class ResourceConfig(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    db: Dict[str, Any] = Field(default_factory=dict)
    # None means "no policy": every field readable, nothing writable.
    rest: Optional[Dict[str, Any]] = None


ResourceConfigMap = Dict[str, ResourceConfig]


def parse_resource_config(raw: Any) -> ResourceConfigMap:
    if not isinstance(raw, Mapping) or not raw:
        raise ConfigError("resource configuration must be a non-empty mapping of resource name -> {db, rest}")

    out: ResourceConfigMap = {}
    for name, body in raw.items():
        if isinstance(body, ResourceConfig):
            rc = body
        else:
            try:
                rc = ResourceConfig.model_validate(body or {})
            except ValidationError as exc:
                raise ConfigError(f"invalid configuration for resource {name!r}: {exc}") from exc
        try:
            StorageSchema(rc.db)
        except ValueError as exc:
            raise ConfigError(f"invalid storage schema for resource {name!r}: {exc}") from exc
        out[str(name)] = rc
    return out


def load_resource_config(path: Path) -> ResourceConfigMap:
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"resource configuration not found: {path}")

    try:
        raw_text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"cannot read resource configuration {path}: {exc}") from exc

    # JSON first, YAML otherwise
    try:
        data = json.loads(raw_text)
    except json.JSONDecodeError:
        try:
            data = yaml.safe_load(raw_text)
        except yaml.YAMLError as exc:
            raise ConfigError(f"failed to parse {path} as JSON or YAML: {exc}") from exc

    config = parse_resource_config(data)
    _log.info("Loaded %d resources from %s: %s", len(config), path, ", ".join(sorted(config)))
    return config
