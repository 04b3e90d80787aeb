"""Rendering of service errors as HTTP responses."""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from delivery.errors import DeliveryError

logger = structlog.get_logger(__name__)


async def delivery_error_handler(request: Request, exc: DeliveryError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning("Upstream failure surfaced", path=request.url.path, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def register_error_handlers(app: FastAPI) -> None:
    """Register protean's handlers plus the delivery error taxonomy."""
    register_exception_handlers(app)
    app.add_exception_handler(DeliveryError, delivery_error_handler)
