"""Application definition for multildap."""

from __future__ import annotations

import json
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.openapi.utils import get_openapi
from fastapi.responses import JSONResponse
from safir.dependencies.http_client import http_client_dependency
from safir.logging import configure_uvicorn_logging
from safir.slack.webhook import SlackRouteErrorHandler

from . import __version__
from .dependencies.config import config_dependency
from .dependencies.context import context_dependency
from .exceptions import APIError
from .handlers import internal, ldap

__all__ = ["create_app", "create_openapi"]


async def _api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def create_app(*, load_config: bool = True) -> FastAPI:
    """Create the FastAPI application.

    This is in a function rather than using a global variable (as is more
    typical for FastAPI) because the route prefix and Slack alerting depend
    on configuration settings and we therefore want to recreate the
    application between tests.

    Parameters
    ----------
    load_config
        If set to `False`, do not try to load the configuration. This is used
        primarily for OpenAPI schema generation, where constructing the app
        is required but the configuration won't matter.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
        config = config_dependency.config()
        await context_dependency.initialize(config)

        yield

        await context_dependency.aclose()
        await http_client_dependency.aclose()

    # Load configuration if it is available to us and configure Uvicorn
    # logging.
    config = None
    path_prefix = ""
    if load_config:
        config = config_dependency.config()
        path_prefix = config.path_prefix
        configure_uvicorn_logging()

    app = FastAPI(
        title="multildap",
        description=(
            "multildap resolves users against a federation of LDAP servers"
            " in priority order and reports on the health of each server."
        ),
        version=__version__,
        tags_metadata=[
            {
                "name": "admin",
                "description": "APIs that can only be used by administrators.",
            },
            {
                "name": "internal",
                "description": "Internal routes used by health checks.",
            },
        ],
        openapi_url=f"{path_prefix}/openapi.json",
        docs_url=f"{path_prefix}/docs",
        redoc_url=f"{path_prefix}/redoc",
        lifespan=lifespan,
    )

    # Add all of the routes.
    app.include_router(internal.router)
    app.include_router(ldap.router, prefix=path_prefix)

    # Configure Slack alerts.
    if config and config.slack_alerts and config.slack_webhook:
        logger = structlog.get_logger(config.name)
        SlackRouteErrorHandler.initialize(
            config.slack_webhook, config.name, logger
        )
        logger.debug("Initialized Slack webhook")

    # Handle exceptions descended from APIError.
    app.exception_handler(APIError)(_api_error_handler)

    return app


def create_openapi() -> str:
    """Generate the OpenAPI schema.

    Returns
    -------
    str
        OpenAPI schema as serialized JSON.
    """
    app = create_app(load_config=False)
    schema = get_openapi(
        title=app.title,
        description=app.description,
        version=app.version,
        routes=app.routes,
    )
    return json.dumps(schema)
