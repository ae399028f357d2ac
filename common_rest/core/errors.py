"""Typed errors raised by the resource engine.

Every error carries an HTTP status and a stable ``code``. The API layer turns
them into JSON responses; anything that is not a ``RestError`` is treated as an
unexpected server fault.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class RestError(Exception):
    status_code: int = 500
    code: str = "rest_error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def extra(self) -> Dict[str, Any]:
        """Additional fields merged into the error payload."""
        return {}


class UnknownResource(RestError):
    status_code = 400
    code = "unknown_resource"

    def __init__(self, resource: str):
        self.resource = resource
        super().__init__(f"Schema of resource: {resource} is not configured")

    def extra(self) -> Dict[str, Any]:
        return {"resource": self.resource}


class MissingParameter(RestError):
    status_code = 400
    code = "missing_parameter"

    def __init__(self, parameter: str, resource: str):
        self.parameter = parameter
        self.resource = resource
        super().__init__(f"{parameter} is required to create the {resource}")

    def extra(self) -> Dict[str, Any]:
        return {"parameter": self.parameter}


class InvalidDocument(RestError):
    status_code = 400
    code = "invalid_document"

    def __init__(self, message: str, *, field: Optional[str] = None):
        self.field = field
        super().__init__(message)

    def extra(self) -> Dict[str, Any]:
        return {"field": self.field} if self.field else {}


class NotFound(RestError):
    status_code = 404
    code = "not_found"

    def __init__(self, resource: str, id: Any):
        self.resource = resource
        self.id = id
        super().__init__(f"{resource}/{id} is not found")


class ServerError(RestError):
    status_code = 500
    code = "server_error"


class StorageUnavailable(ServerError):
    code = "storage_unavailable"


class BulkUpdateFailed(ServerError):
    code = "bulk_update_failed"

    def __init__(self, *, updated: int, errors: List[Dict[str, Any]]):
        self.updated = updated
        self.errors = errors
        super().__init__("Failed on updating")

    def extra(self) -> Dict[str, Any]:
        return {"updated": self.updated, "errors": self.errors}
