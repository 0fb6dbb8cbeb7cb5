"""Storefront bounded context: payments, webhook ingestion, fulfillment tracking
and reconciliation for the storefront's orders.

A single domain owns the order ledger so that payment callbacks, carrier
events and admin actions all go through one state machine.
"""

from protean.domain import Domain

from storefront.utils.logging import configure_logging, get_logger

# Configure logging for the application
configure_logging()

# Get logger for this module
logger = get_logger(__name__)

# Domain Composition Root
storefront = Domain(name="storefront")
