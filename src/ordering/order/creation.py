"""Order creation — command and handler."""

import json

from protean import handle
from protean.fields import Identifier, Text
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.order import Order


@ordering.command(part_of="Order")
class CreateOrder:
    customer_id = Identifier(required=True)
    distributor_id = Identifier(required=True)
    order_cycle_id = Identifier()
    distributor_address = Text()  # JSON: address dict
    bill_address = Text()  # JSON: address dict


def _load_address(value):
    if not value:
        return None
    return json.loads(value) if isinstance(value, str) else value


@ordering.command_handler(part_of=Order)
class CreateOrderHandler:
    @handle(CreateOrder)
    def create_order(self, command):
        order = Order.create(
            customer_id=command.customer_id,
            distributor_id=command.distributor_id,
            order_cycle_id=command.order_cycle_id,
            distributor_address=_load_address(command.distributor_address),
            bill_address=_load_address(command.bill_address),
        )
        current_domain.repository_for(Order).add(order)
        return str(order.id)
