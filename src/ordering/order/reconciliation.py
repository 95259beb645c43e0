"""Explicit reconciliation — for callers that changed an order's records elsewhere."""

import structlog
from protean import handle
from protean.fields import Identifier
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.order import Order
from ordering.order.updater import reconcile

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class ReconcileOrder:
    order_id = Identifier(required=True)


@ordering.command_handler(part_of=Order)
class ReconcileOrderHandler:
    @handle(ReconcileOrder)
    def reconcile_order(self, command):
        order = current_domain.repository_for(Order).get(command.order_id)
        derived = reconcile(order)
        logger.info(
            "Reconciled order on request",
            order_id=str(order.id),
            payment_state=derived.payment_state,
            shipment_state=derived.shipment_state,
        )
        return derived.total
