"""Application factory for the FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers) so
tests can build isolated instances.
"""

from __future__ import annotations

from fastapi import FastAPI

from oplimit.api.routes import health_router, operations_router
from oplimit.core.config import settings
from oplimit.core.exception_handlers import setup_exception_handlers
from oplimit.core.logging import configure_logging, limiter_log_context
from oplimit.core.middleware import request_id_middleware
from oplimit.core.openapi import apply_openapi_customizations


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log, context=limiter_log_context())

    app = FastAPI(
        title="oplimit",
        description=(
            "Fixed-window rate limiting service. Answers whether a caller's "
            "quota for an operation is exhausted in the current window and "
            "records the attempt when it is not."
        ),
        version="0.1.0",
        debug=settings.app.debug,
    )

    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(operations_router, prefix="/v1")
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
