from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Mapping, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from common_rest import __version__
from common_rest.api.endpoints import health
from common_rest.api.endpoints import metrics_export
from common_rest.api.endpoints.resources import router as resources_router
from common_rest.api.middleware.error_shaping import SafeErrorMiddleware, rest_error_handler
from common_rest.api.middleware.request_context import RequestContextMiddleware
from common_rest.core.config import load_resource_config
from common_rest.core.errors import RestError
from common_rest.core.registry import ResourceRegistry
from common_rest.core.resources import ResourceService
from common_rest.core.settings import Settings
from common_rest.core.storage import StorageBackend, create_backend

log = logging.getLogger("commonrest.app")


def create_app(
    settings: Optional[Settings] = None,
    *,
    resource_config: Optional[Mapping[str, Any]] = None,
    backend: Optional[StorageBackend] = None,
) -> FastAPI:
    """Build the API.

    The resource configuration is loaded (from ``settings.config_path`` unless
    given) and the registry built exactly once, when the app starts. A backend
    passed in is left open on shutdown; one created here is closed.
    """
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        config = resource_config if resource_config is not None else load_resource_config(settings.config_path)
        store = backend or create_backend(settings)
        registry = ResourceRegistry(config, store)
        await registry.provision()

        app.state.registry = registry
        app.state.service = ResourceService(registry)
        log.info("Serving %d resources under %s", len(registry.names()), settings.api_prefix or "/")
        try:
            yield
        finally:
            if backend is None:
                await store.close()

    app = FastAPI(
        title="Common REST API",
        version=__version__,
        lifespan=lifespan,
    )

    # ------------------------------------------------------------
    # Middleware stack (ORDER MATTERS)
    # Starlette reverses add_middleware order: the LAST call = OUTERMOST wrapper.
    # Runtime order (outermost → innermost):
    #   SafeErrorMiddleware → CORSMiddleware → RequestContext → handler
    # ------------------------------------------------------------
    app.add_middleware(RequestContextMiddleware, api_prefix=settings.api_prefix)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(SafeErrorMiddleware)

    app.add_exception_handler(RestError, rest_error_handler)

    # Fixed surfaces first so an empty prefix cannot shadow them.
    app.include_router(health.router)
    app.include_router(metrics_export.router)
    app.include_router(resources_router, prefix=settings.api_prefix)

    return app


app = create_app()
