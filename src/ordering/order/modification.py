"""Order modification — line item and adjustment commands.

Every change is followed by reconciliation so the stored totals always
match the line items and adjustments.
"""

from protean import handle
from protean.fields import Boolean, Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.order import Calculator, Order
from ordering.order.updater import reconcile


@ordering.command(part_of="Order")
class AddLineItem:
    order_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    price = Float(required=True, min_value=0.0)


@ordering.command(part_of="Order")
class AddAdjustment:
    order_id = Identifier(required=True)
    label = String(required=True, max_length=255)
    amount = Float(default=0.0)
    calculator = String(choices=Calculator)
    rate = Float()
    eligible = Boolean(default=True)


@ordering.command(part_of="Order")
class CloseAdjustment:
    order_id = Identifier(required=True)
    adjustment_id = Identifier(required=True)


@ordering.command_handler(part_of=Order)
class ModifyOrderHandler:
    @handle(AddLineItem)
    def add_line_item(self, command):
        order = current_domain.repository_for(Order).get(command.order_id)
        line_item = order.add_line_item(
            variant_id=command.variant_id,
            quantity=command.quantity,
            price=command.price,
        )
        reconcile(order)
        return str(line_item.id)

    @handle(AddAdjustment)
    def add_adjustment(self, command):
        order = current_domain.repository_for(Order).get(command.order_id)
        adjustment = order.add_adjustment(
            label=command.label,
            amount=command.amount or 0.0,
            calculator=command.calculator,
            rate=command.rate,
            eligible=command.eligible,
        )
        reconcile(order)
        return str(adjustment.id)

    @handle(CloseAdjustment)
    def close_adjustment(self, command):
        order = current_domain.repository_for(Order).get(command.order_id)
        order.close_adjustment(command.adjustment_id)
        reconcile(order)
