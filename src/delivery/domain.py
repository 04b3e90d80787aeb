"""Delivery bounded context — Courier Dispatch and Delivery Lifecycle.

Turns paid marketplace orders into physical deliveries, drives the external
courier through quotation, placement, editing and cancellation, and keeps
the Delivery and Order state machines truthful while courier webhooks and
polls arrive out of order.
"""

from protean.domain import Domain

from delivery.utils.logging import configure_logging, get_logger

# Configure logging for the application
configure_logging()

# Get logger for this module
logger = get_logger(__name__)

# Domain Composition Root
delivery = Domain(name="delivery")
