"""Ordering bounded context — orders, payments, shipments and adjustments.

Keeps every order's monetary totals, payment state and shipment state in step
with its line items, payments, shipments and adjustments. The reconciliation
lives in ``ordering.order.updater``; command handlers call it after each change.
"""

from protean.domain import Domain

from shared.logging import configure_logging

ordering = Domain(name="ordering")

configure_logging()
