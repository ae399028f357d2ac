from __future__ import annotations

import logging
import traceback
from typing import Callable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response

from common_rest.core.errors import RestError

log = logging.getLogger("commonrest.errors")


def _request_id(request: Request):
    return getattr(request.state, "request_id", None) or request.headers.get("x-request-id")


async def rest_error_handler(request: Request, exc: RestError) -> JSONResponse:
    """Map a typed engine error to its status code and a JSON body."""
    payload = {"detail": exc.message, "code": exc.code, **exc.extra()}
    rid = _request_id(request)
    if rid:
        payload["request_id"] = rid

    if exc.status_code >= 500:
        log.error("%s: %s rid=%s path=%s", exc.code, exc.message, rid, request.url.path)
    else:
        log.debug("%s: %s rid=%s path=%s", exc.code, exc.message, rid, request.url.path)
    return JSONResponse(status_code=exc.status_code, content=payload)


class SafeErrorMiddleware(BaseHTTPMiddleware):
    """
    - Never return stack traces to clients
    - Preserve request_id if present
    - Log traceback server-side
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            rid = _request_id(request)
            log.error(
                "Unhandled error: %s rid=%s path=%s\n%s",
                str(e),
                rid,
                request.url.path,
                traceback.format_exc(),
            )
            payload = {"detail": "Internal Server Error", "code": "server_error"}
            if rid:
                payload["request_id"] = rid
            return JSONResponse(status_code=500, content=payload)
