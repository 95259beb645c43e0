"""State changes — audit log of payment and shipment state transitions per order."""

import uuid

from protean.core.projector import on
from protean.fields import DateTime, Identifier, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.events import PaymentStateChanged, ShipmentStateChanged
from ordering.order.order import Order


@ordering.projection
class StateChange:
    entry_id = Identifier(identifier=True, required=True)
    order_id = Identifier(required=True)
    name = String(required=True, max_length=20)  # "payment" or "shipment"
    previous_state = String(max_length=50)
    next_state = String(max_length=50)
    created_at = DateTime(required=True)


def _record(name, event):
    current_domain.repository_for(StateChange).add(
        StateChange(
            entry_id=str(uuid.uuid4()),
            order_id=event.order_id,
            name=name,
            previous_state=event.previous_state,
            next_state=event.next_state,
            created_at=event.changed_at,
        )
    )


@ordering.projector(projector_for=StateChange, aggregates=[Order])
class StateChangeProjector:
    @on(PaymentStateChanged)
    def on_payment_state_changed(self, event):
        _record("payment", event)

    @on(ShipmentStateChanged)
    def on_shipment_state_changed(self, event):
        _record("shipment", event)
