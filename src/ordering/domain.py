"""Ordering domain: carts, orders and payment reconciliation.

The whole order workflow lives in one bounded context so that a single
Unit of Work can span the cart, the order, the products whose stock moves
and the shipping address that gets snapshotted.
"""

import structlog
from protean.domain import Domain

ordering = Domain(name="ordering")

logger = structlog.get_logger(__name__)
