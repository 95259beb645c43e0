"""Domain events for the Order aggregate.

Events are immutable facts about an order. They feed the state change audit
log (``ordering.projections.state_changes``) and are published to other
contexts once the unit of work commits.
"""

from protean.fields import DateTime, Float, Identifier, Integer, String

from ordering.domain import ordering


@ordering.event(part_of="Order")
class OrderCreated:
    """A new order was opened for a customer at a distributor."""

    __version__ = 1

    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    distributor_id = Identifier(required=True)
    order_cycle_id = Identifier()
    created_at = DateTime(required=True)


@ordering.event(part_of="Order")
class LineItemAdded:
    __version__ = 1

    order_id = Identifier(required=True)
    line_item_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    quantity = Integer(required=True)
    price = Float(required=True)


@ordering.event(part_of="Order")
class AdjustmentAdded:
    __version__ = 1

    order_id = Identifier(required=True)
    adjustment_id = Identifier(required=True)
    label = String(required=True)
    amount = Float(required=True)
    calculator = String()


@ordering.event(part_of="Order")
class PaymentCreated:
    __version__ = 1

    order_id = Identifier(required=True)
    payment_id = Identifier(required=True)
    amount = Float(required=True)
    payment_method = String(required=True)


@ordering.event(part_of="Order")
class PaymentCaptured:
    """A payment was completed and now counts toward the payment total."""

    __version__ = 1

    order_id = Identifier(required=True)
    payment_id = Identifier(required=True)
    amount = Float(required=True)


@ordering.event(part_of="Order")
class PaymentFailed:
    __version__ = 1

    order_id = Identifier(required=True)
    payment_id = Identifier(required=True)
    reason = String()


@ordering.event(part_of="Order")
class PaymentVoided:
    __version__ = 1

    order_id = Identifier(required=True)
    payment_id = Identifier(required=True)


@ordering.event(part_of="Order")
class ShipmentAdded:
    __version__ = 1

    order_id = Identifier(required=True)
    shipment_id = Identifier(required=True)
    number = String(required=True)
    unit_count = Integer(default=0)


@ordering.event(part_of="Order")
class ShipmentShipped:
    __version__ = 1

    order_id = Identifier(required=True)
    shipment_id = Identifier(required=True)
    shipped_at = DateTime(required=True)


@ordering.event(part_of="Order")
class ShippingMethodSelected:
    """A shipping method was chosen; pickups ship to the distributor's address."""

    __version__ = 1

    order_id = Identifier(required=True)
    shipping_method_id = Identifier(required=True)
    name = String(required=True)
    require_ship_address = String(required=True)  # serialized bool


@ordering.event(part_of="Order")
class OrderCompleted:
    __version__ = 1

    order_id = Identifier(required=True)
    total = Float(required=True)
    completed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderCanceled:
    __version__ = 1

    order_id = Identifier(required=True)
    canceled_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderResumed:
    __version__ = 1

    order_id = Identifier(required=True)
    resumed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class PaymentStateChanged:
    """Raised only when reconciliation moves the order to a different payment state."""

    __version__ = 1

    order_id = Identifier(required=True)
    previous_state = String()
    next_state = String()
    changed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class ShipmentStateChanged:
    """Raised every time reconciliation computes the shipment state of a completed order."""

    __version__ = 1

    order_id = Identifier(required=True)
    previous_state = String()
    next_state = String()
    changed_at = DateTime(required=True)
