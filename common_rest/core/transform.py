"""Policy-driven document shaping.

``project`` decides what callers may see; ``build_for_save`` decides what
callers may write. Only fields declared in the resource policy are ever
copied from input: undeclared fields are dropped, not rejected.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping

from .errors import MissingParameter
from .policy import ResourcePolicy
from .sequence import SequenceGenerator


class SaveMode(str, Enum):
    CREATE = "create"
    UPDATE = "update"


def project(document: Mapping[str, Any], policy: ResourcePolicy) -> Dict[str, Any]:
    return {key: value for key, value in document.items() if policy.is_readable(key)}


def project_many(documents: Iterable[Mapping[str, Any]], policy: ResourcePolicy) -> List[Dict[str, Any]]:
    return [project(d, policy) for d in documents]


def check_required(
    user_input: Mapping[str, Any],
    policy: ResourcePolicy,
    resource_name: str,
    mode: SaveMode,
) -> None:
    """Raise MissingParameter for the first required writable field absent on create."""
    if mode is not SaveMode.CREATE:
        return
    for name, fp in policy.items():
        if fp.auto_increment:
            continue
        if fp.writable and fp.required and name not in user_input:
            raise MissingParameter(name, resource_name)


async def build_for_save(
    user_input: Mapping[str, Any],
    policy: ResourcePolicy,
    resource_name: str,
    mode: SaveMode,
    sequence: SequenceGenerator,
) -> Dict[str, Any]:
    """Shape caller input into the document to persist.

    Required fields are checked before any sequence value is drawn, so a
    failed create never consumes a counter value.
    """
    check_required(user_input, policy, resource_name, mode)

    document: Dict[str, Any] = {}
    for name, fp in policy.items():
        if mode is SaveMode.CREATE and fp.auto_increment:
            document[name] = await sequence.next_value(resource_name, name)
        elif fp.writable and name in user_input:
            document[name] = user_input[name]
    return document
