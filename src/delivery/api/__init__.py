"""Delivery service API package."""

from delivery.api.errors import register_error_handlers
from delivery.api.routes import (
    delivery_router,
    driver_router,
    geocoding_router,
    lalamove_router,
    shipping_router,
    tracking_router,
)

ROUTERS = (
    delivery_router,
    lalamove_router,
    tracking_router,
    driver_router,
    shipping_router,
    geocoding_router,
)

__all__ = ["ROUTERS", "register_error_handlers"]
