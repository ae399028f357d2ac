from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

log = logging.getLogger("commonrest.policy")

# Identity field every stored document carries when no primary key is declared.
DEFAULT_PRIMARY_KEY = "_id"

# config key -> attribute; camelCase is the documented configuration format.
_OVERRIDE_KEYS = {
    "required": "required",
    "writable": "writable",
    "readable": "readable",
    "primaryKey": "primary_key",
    "primary_key": "primary_key",
    "autoIncrement": "auto_increment",
    "auto_increment": "auto_increment",
}


@dataclass(frozen=True)
class FieldPolicy:
    required: bool = False
    writable: bool = True
    readable: bool = True
    primary_key: bool = False
    auto_increment: bool = False

    @classmethod
    def from_overrides(cls, raw: Any) -> "FieldPolicy":
        """Build a policy from a partial mapping of flags.

        Unknown keys are ignored. An auto-increment field is never writable,
        whatever the configuration says.
        """
        values: Dict[str, bool] = {}
        if isinstance(raw, Mapping):
            for key, value in raw.items():
                attr = _OVERRIDE_KEYS.get(str(key))
                if attr is not None:
                    values[attr] = bool(value)

        if values.get("auto_increment"):
            values["writable"] = False
        return cls(**values)

    def to_dict(self) -> Dict[str, bool]:
        return {
            "required": self.required,
            "writable": self.writable,
            "readable": self.readable,
            "primaryKey": self.primary_key,
            "autoIncrement": self.auto_increment,
        }


class ResourcePolicy:
    """Ordered field name -> FieldPolicy mapping for one resource.

    ``ResourcePolicy(None)`` describes a resource with no policy at all: every
    field is readable and nothing is accepted on input.
    """

    def __init__(self, raw: Optional[Mapping[str, Any]] = None):
        self._has_policy = raw is not None
        fields: Dict[str, FieldPolicy] = {}
        if isinstance(raw, Mapping):
            for name, overrides in raw.items():
                fields[str(name)] = FieldPolicy.from_overrides(overrides)
        self._fields = MappingProxyType(fields)
        self._primary_key = self._find_primary_key()

    def _find_primary_key(self) -> str:
        keys = [name for name, fp in self._fields.items() if fp.primary_key]
        if len(keys) > 1:
            log.warning("Multiple primary keys declared (%s); using %r", ", ".join(keys), keys[0])
        return keys[0] if keys else DEFAULT_PRIMARY_KEY

    @property
    def fields(self) -> Mapping[str, FieldPolicy]:
        return self._fields

    @property
    def primary_key(self) -> str:
        return self._primary_key

    @property
    def auto_increment_fields(self) -> List[str]:
        return [name for name, fp in self._fields.items() if fp.auto_increment]

    def is_readable(self, field: str) -> bool:
        if not self._has_policy:
            return True
        fp = self._fields.get(field)
        return fp.readable if fp is not None else True

    def get(self, field: str) -> Optional[FieldPolicy]:
        return self._fields.get(field)

    def items(self) -> Iterator[Tuple[str, FieldPolicy]]:
        return iter(self._fields.items())

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __contains__(self, field: object) -> bool:
        return field in self._fields

    def __len__(self) -> int:
        return len(self._fields)

    def to_dict(self) -> Dict[str, Dict[str, bool]]:
        return {name: fp.to_dict() for name, fp in self._fields.items()}
