"""Storage-level schema for one resource collection.

Declarations come from the ``db`` section of the resource configuration:

    db:
      id: {type: integer, required: true, unique: true}
      name: {type: string, required: true}
      address: string

Values are cast the way a document database casts against its schema, so a
path parameter ``"1"`` addresses a document whose integer ``id`` is ``1``.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional

from ..errors import InvalidDocument

# Bookkeeping fields stamped by every store.
ID_FIELD = "_id"
VERSION_FIELD = "__v"
RESERVED_FIELDS = (ID_FIELD, VERSION_FIELD)

_TRUE = {"true", "1", "yes"}
_FALSE = {"false", "0", "no"}


class _CastError(ValueError):
    pass


def _to_string(value: Any) -> Any:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    raise _CastError("expected a string")


def _to_integer(value: Any) -> Any:
    if isinstance(value, bool):
        raise _CastError("expected an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise _CastError("expected an integer")


def _to_number(value: Any) -> Any:
    if isinstance(value, bool):
        raise _CastError("expected a number")
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        s = value.strip()
        try:
            return int(s)
        except ValueError:
            pass
        try:
            return float(s)
        except ValueError:
            pass
    raise _CastError("expected a number")


def _to_boolean(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        s = value.strip().lower()
        if s in _TRUE:
            return True
        if s in _FALSE:
            return False
    raise _CastError("expected a boolean")


def _to_object(value: Any) -> Any:
    if isinstance(value, dict):
        return value
    raise _CastError("expected an object")


def _to_array(value: Any) -> Any:
    if isinstance(value, list):
        return value
    raise _CastError("expected an array")


def _to_any(value: Any) -> Any:
    return value


_CASTERS: Dict[str, Callable[[Any], Any]] = {
    "string": _to_string,
    "str": _to_string,
    "integer": _to_integer,
    "int": _to_integer,
    "number": _to_number,
    "float": _to_number,
    "boolean": _to_boolean,
    "bool": _to_boolean,
    "object": _to_object,
    "dict": _to_object,
    "mixed": _to_object,
    "array": _to_array,
    "list": _to_array,
    "any": _to_any,
}


@dataclass(frozen=True)
class FieldSchema:
    name: str
    type: str = "any"
    required: bool = False
    unique: bool = False
    default: Any = None
    has_default: bool = False

    @classmethod
    def parse(cls, name: str, raw: Any) -> "FieldSchema":
        if isinstance(raw, str):
            raw = {"type": raw}
        if not isinstance(raw, Mapping):
            raise ValueError(f"invalid storage declaration for field {name!r}")

        type_name = str(raw.get("type") or "any").strip().lower()
        if type_name not in _CASTERS:
            raise ValueError(f"unknown storage type {type_name!r} for field {name!r}")

        return cls(
            name=name,
            type=type_name,
            required=bool(raw.get("required", False)),
            unique=bool(raw.get("unique", False)),
            default=raw.get("default"),
            has_default="default" in raw,
        )

    def cast(self, value: Any) -> Any:
        if value is None:
            return None
        try:
            return _CASTERS[self.type](value)
        except _CastError as exc:
            raise InvalidDocument(f"{self.name}: {exc}", field=self.name) from exc


class StorageSchema:
    def __init__(self, raw: Optional[Mapping[str, Any]] = None):
        self.fields: Dict[str, FieldSchema] = {
            str(name): FieldSchema.parse(str(name), decl) for name, decl in (raw or {}).items()
        }

    @property
    def strict(self) -> bool:
        return bool(self.fields)

    @property
    def unique_fields(self) -> List[str]:
        return [f.name for f in self.fields.values() if f.unique]

    def _cast_fields(self, doc: Mapping[str, Any]) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for key, value in doc.items():
            fs = self.fields.get(key)
            if fs is not None:
                out[key] = fs.cast(value)
            elif key in RESERVED_FIELDS or not self.strict:
                out[key] = value
        return out

    def prepare_insert(self, doc: Mapping[str, Any]) -> Dict[str, Any]:
        """Cast values, apply defaults and check required fields for a new document."""
        out = self._cast_fields(doc)
        for fs in self.fields.values():
            if fs.name not in out and fs.has_default:
                out[fs.name] = copy.deepcopy(fs.default)
            if fs.required and out.get(fs.name) is None:
                raise InvalidDocument(f"{fs.name}: path is required", field=fs.name)
        return out

    def prepare_patch(self, patch: Mapping[str, Any]) -> Dict[str, Any]:
        out = self._cast_fields(patch)
        for key, value in out.items():
            fs = self.fields.get(key)
            if fs is not None and fs.required and value is None:
                raise InvalidDocument(f"{key}: path is required", field=key)
        return out

    def cast_filter(self, filter: Optional[Mapping[str, Any]]) -> Optional[Dict[str, Any]]:
        """Cast filter values to their storage types.

        Returns ``None`` when the filter cannot match anything (a value that
        does not cast, or an empty ``$in``).
        """
        out: Dict[str, Any] = {}
        for key, cond in (filter or {}).items():
            fs = self.fields.get(key)
            if isinstance(cond, Mapping) and "$in" in cond:
                values = []
                for v in cond["$in"]:
                    try:
                        values.append(fs.cast(v) if fs is not None else v)
                    except InvalidDocument:
                        continue
                if not values:
                    return None
                out[key] = {"$in": values}
                continue
            try:
                out[key] = fs.cast(cond) if fs is not None else cond
            except InvalidDocument:
                return None
        return out


def matches(doc: Mapping[str, Any], filter: Mapping[str, Any]) -> bool:
    for key, cond in filter.items():
        if isinstance(cond, Mapping) and "$in" in cond:
            if key not in doc or doc[key] not in cond["$in"]:
                return False
        elif doc.get(key) != cond:
            return False
    return True
