"""Order fulfillment — shipments and shipping method selection.

Selecting a pickup shipping method points the ship address at the
distributor before the order is persisted.
"""

import json

from protean import handle
from protean.fields import Boolean, Identifier, String, Text
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.order import Order
from ordering.order.updater import reconcile


@ordering.command(part_of="Order")
class AddShipment:
    order_id = Identifier(required=True)
    units = Text(required=True)  # JSON: list of {variant_id, status}


@ordering.command(part_of="Order")
class ShipShipment:
    order_id = Identifier(required=True)
    shipment_id = Identifier(required=True)


@ordering.command(part_of="Order")
class SelectShippingMethod:
    order_id = Identifier(required=True)
    shipping_method_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    require_ship_address = Boolean(default=True)


@ordering.command_handler(part_of=Order)
class OrderFulfillmentHandler:
    @handle(AddShipment)
    def add_shipment(self, command):
        order = current_domain.repository_for(Order).get(command.order_id)
        units = json.loads(command.units) if isinstance(command.units, str) else command.units
        shipment = order.add_shipment(units=units)
        reconcile(order)
        return str(shipment.id)

    @handle(ShipShipment)
    def ship_shipment(self, command):
        order = current_domain.repository_for(Order).get(command.order_id)
        order.ship_shipment(command.shipment_id)
        reconcile(order)

    @handle(SelectShippingMethod)
    def select_shipping_method(self, command):
        order = current_domain.repository_for(Order).get(command.order_id)
        order.select_shipping_method(
            shipping_method_id=command.shipping_method_id,
            name=command.name,
            require_ship_address=command.require_ship_address,
        )
        reconcile(order)
