from __future__ import annotations

import re
from typing import Iterable, Optional

from prometheus_client import Counter, Histogram


# Paths served outside the resource router.
_FIXED_ROOTS = frozenset({"health", "metrics", "docs", "redoc", "openapi.json"})


def normalize_path(path: str, api_prefix: str = "/api", resources: Optional[Iterable[str]] = None) -> str:
    """Reduce high-cardinality paths for metrics labels.

    Under ``api_prefix`` a resource name not in ``resources`` becomes
    ``:resource``, an item segment becomes ``:id`` and anything deeper ``*``.
    """
    p = path or "/"

    # UUID-ish
    p = re.sub(r"/[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}", "/:uuid", p)
    # long hex (generated _id values, ObjectIds)
    p = re.sub(r"/[0-9a-fA-F]{16,}", "/:hex", p)
    # ints
    p = re.sub(r"/\d+", "/:id", p)

    if p == api_prefix:
        return p
    if not p.startswith(api_prefix + "/"):
        if resources is not None and p != "/" and p.lstrip("/").split("/")[0] not in _FIXED_ROOTS:
            return "/:unmatched"
        return p
    parts = p[len(api_prefix) + 1 :].split("/")
    if parts[0] in _FIXED_ROOTS and not api_prefix:
        return p

    known = set(resources) if resources is not None else None
    if known is not None and parts[0] and parts[0] not in known:
        parts[0] = ":resource"
    if len(parts) > 2:
        parts = parts[:2] + ["*"]
    if len(parts) >= 2 and parts[1] and parts[1] != "batch-delete" and not parts[1].startswith(":"):
        parts[1] = ":id"
    return api_prefix + "/" + "/".join(parts)


HTTP_REQUESTS_TOTAL = Counter(
    "commonrest_http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "commonrest_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)
