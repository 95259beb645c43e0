"""Order cancellation and resumption — commands and handler."""

from protean import handle
from protean.fields import Identifier
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.order import Order
from ordering.order.updater import reconcile


@ordering.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)


@ordering.command(part_of="Order")
class ResumeOrder:
    order_id = Identifier(required=True)


@ordering.command_handler(part_of=Order)
class CancelOrderHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        order = current_domain.repository_for(Order).get(command.order_id)
        order.cancel()
        reconcile(order)

    @handle(ResumeOrder)
    def resume_order(self, command):
        order = current_domain.repository_for(Order).get(command.order_id)
        order.resume()
        reconcile(order)
