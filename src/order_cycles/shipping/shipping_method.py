"""Shipping method aggregate — how a distributor hands goods to customers.

A method is attachable to an order cycle when one of its distributors receives
an outgoing exchange of that cycle and the method is offered on the shopfront.
"""

from enum import Enum

from protean.fields import Boolean, List, String

from order_cycles.domain import order_cycles
from order_cycles.utils.queries import fetch_all


class DisplayOn(Enum):
    BOTH = "both"
    BACK_END = "back_end"


@order_cycles.aggregate
class ShippingMethod:
    name = String(required=True, max_length=255)
    distributor_ids = List(content_type=String, default=list)
    display_on = String(choices=DisplayOn, default=DisplayOn.BOTH.value)
    require_ship_address = Boolean(default=True)

    @property
    def is_frontend(self):
        return self.display_on != DisplayOn.BACK_END.value


@order_cycles.repository(part_of=ShippingMethod)
class ShippingMethodRepository:
    def attachable_by_distributor(self, order_cycle) -> dict[str, set[str]]:
        """Map each distributor of the order cycle to the ids of its attachable methods."""
        attachable = {str(distributor_id): set() for distributor_id in order_cycle.distributor_ids}
        for method in fetch_all(self._dao.query):
            if not method.is_frontend:
                continue
            for distributor_id in method.distributor_ids or []:
                if str(distributor_id) in attachable:
                    attachable[str(distributor_id)].add(str(method.id))
        return attachable
