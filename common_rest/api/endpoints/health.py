from __future__ import annotations

from fastapi import APIRouter, Request
from starlette.responses import JSONResponse

router = APIRouter()


@router.get("/health")
def health_check():
    return {"status": "healthy"}


@router.get("/health/live")
async def live():
    return {"status": "ok"}


@router.get("/health/ready")
async def ready(request: Request):
    """
    Readiness reflects ability to serve traffic: the registry is built and
    the storage backend answers.
    """
    registry = getattr(request.app.state, "registry", None)
    problems: list[str] = []

    if registry is None:
        problems.append("registry_not_ready")
    elif not await registry.backend.ping():
        problems.append(f"storage_unreachable:{registry.backend.name}")

    if problems:
        return JSONResponse(
            status_code=503,
            content={"status": "not_ready", "problems": problems},
        )

    return {"status": "ready", "storage": registry.backend.name, "resources": registry.names()}
