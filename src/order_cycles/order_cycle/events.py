"""Domain events for the OrderCycle aggregate."""

from protean.fields import Boolean, Identifier, List, String

from order_cycles.domain import order_cycles


@order_cycles.event(part_of="OrderCycle")
class ScheduleMembershipChanged:
    """Schedules were added to or removed from the order cycle."""

    __version__ = 1

    order_cycle_id = Identifier(required=True)
    added_schedule_ids = List(content_type=String)
    removed_schedule_ids = List(content_type=String)


@order_cycles.event(part_of="OrderCycle")
class ExchangeAdded:
    __version__ = 1

    order_cycle_id = Identifier(required=True)
    exchange_id = Identifier(required=True)
    enterprise_id = Identifier(required=True)
    incoming = Boolean(default=False)


@order_cycles.event(part_of="OrderCycle")
class ExchangeRemoved:
    __version__ = 1

    order_cycle_id = Identifier(required=True)
    exchange_id = Identifier(required=True)
    enterprise_id = Identifier(required=True)
    incoming = Boolean(default=False)


@order_cycles.event(part_of="OrderCycle")
class ShippingMethodsSelected:
    """An empty selection means every attachable shipping method is offered."""

    __version__ = 1

    order_cycle_id = Identifier(required=True)
    shipping_method_ids = List(content_type=String)
