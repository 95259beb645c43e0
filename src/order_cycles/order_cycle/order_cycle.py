"""OrderCycle aggregate with its Exchange entities.

Incoming exchanges bring a supplier's variants to the coordinator; outgoing
exchanges hand them on to distributors. Schedules are referenced by id, and
the selected shipping methods are a subset of those attachable through the
outgoing exchanges (an empty selection means "all of them").
"""

from datetime import UTC, datetime

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, HasMany, Identifier, List, String, Text

from order_cycles.domain import order_cycles
from order_cycles.order_cycle.events import (
    ExchangeAdded,
    ExchangeRemoved,
    ScheduleMembershipChanged,
    ShippingMethodsSelected,
)
from order_cycles.utils.queries import fetch_all

EXCHANGE_DETAILS = ("variant_ids", "pickup_time", "pickup_instructions", "receival_instructions")


def as_utc(value):
    """Treat naive datetimes as UTC so they compare with aware ones."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


@order_cycles.entity(part_of="OrderCycle")
class Exchange:
    sender_id = Identifier(required=True)
    receiver_id = Identifier(required=True)
    incoming = Boolean(default=False)
    variant_ids = List(content_type=String, default=list)
    pickup_time = String(max_length=255)
    pickup_instructions = Text()
    receival_instructions = Text()

    @property
    def enterprise_id(self):
        """The supplier of an incoming exchange, or the distributor of an outgoing one."""
        return self.sender_id if self.incoming else self.receiver_id


@order_cycles.aggregate
class OrderCycle:
    name = String(required=True, max_length=255)
    coordinator_id = Identifier(required=True)
    orders_open_at = DateTime()
    orders_close_at = DateTime()
    schedule_ids = List(content_type=String, default=list)
    selected_shipping_method_ids = List(content_type=String, default=list)
    exchanges = HasMany(Exchange)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def orders_close_after_they_open(self):
        if self.orders_open_at and self.orders_close_at:
            if as_utc(self.orders_close_at) <= as_utc(self.orders_open_at):
                raise ValidationError({"orders_close_at": ["must be after the open date"]})

    @classmethod
    def create(cls, **attributes):
        now = datetime.now(UTC)
        return cls(created_at=now, updated_at=now, **attributes)

    def update_attributes(self, **attributes):
        """Assign several attributes at once; invariants are checked once all are set.

        If the new values break an invariant, the previous values are put back
        before the error propagates.
        """
        previous = {name: getattr(self, name) for name in attributes}
        previous["updated_at"] = self.updated_at
        try:
            with atomic_change(self):
                for name, value in attributes.items():
                    setattr(self, name, value)
                self.updated_at = datetime.now(UTC)
        except ValidationError:
            with atomic_change(self):
                for name, value in previous.items():
                    setattr(self, name, value)
            raise

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def incoming_exchanges(self):
        return [e for e in self.exchanges if e.incoming]

    @property
    def outgoing_exchanges(self):
        return [e for e in self.exchanges if not e.incoming]

    @property
    def distributor_ids(self):
        return [str(e.receiver_id) for e in self.outgoing_exchanges]

    def is_closed(self, now=None):
        now = now or datetime.now(UTC)
        return self.orders_close_at is not None and as_utc(self.orders_close_at) <= now

    def find_exchange(self, enterprise_id, incoming):
        return next(
            (e for e in self.exchanges if e.incoming == incoming and str(e.enterprise_id) == str(enterprise_id)),
            None,
        )

    # -------------------------------------------------------------------
    # Exchanges
    # -------------------------------------------------------------------
    def add_exchange(self, enterprise_id, incoming, **details):
        if incoming:
            sender_id, receiver_id = enterprise_id, self.coordinator_id
        else:
            sender_id, receiver_id = self.coordinator_id, enterprise_id

        exchange = Exchange(
            sender_id=sender_id,
            receiver_id=receiver_id,
            incoming=incoming,
            **{k: v for k, v in details.items() if k in EXCHANGE_DETAILS},
        )
        self.add_exchanges(exchange)
        self.updated_at = datetime.now(UTC)

        self.raise_(
            ExchangeAdded(
                order_cycle_id=str(self.id),
                exchange_id=str(exchange.id),
                enterprise_id=str(enterprise_id),
                incoming=incoming,
            )
        )
        return exchange

    def update_exchange(self, exchange, **details):
        with atomic_change(self):
            for name, value in details.items():
                if name in EXCHANGE_DETAILS:
                    setattr(exchange, name, list(value) if name == "variant_ids" else value)
            self.updated_at = datetime.now(UTC)

    def remove_exchange(self, exchange):
        self.remove_exchanges(exchange)
        self.updated_at = datetime.now(UTC)

        self.raise_(
            ExchangeRemoved(
                order_cycle_id=str(self.id),
                exchange_id=str(exchange.id),
                enterprise_id=str(exchange.enterprise_id),
                incoming=exchange.incoming,
            )
        )

    # -------------------------------------------------------------------
    # Schedules & shipping methods
    # -------------------------------------------------------------------
    def assign_schedule_ids(self, schedule_ids):
        """Replace the schedule membership. Returns (added, removed) ids."""
        previous = [str(s) for s in (self.schedule_ids or [])]
        current = list(dict.fromkeys(str(s) for s in schedule_ids))
        added = [s for s in current if s not in previous]
        removed = [s for s in previous if s not in current]

        self.schedule_ids = current
        self.updated_at = datetime.now(UTC)

        if added or removed:
            self.raise_(
                ScheduleMembershipChanged(
                    order_cycle_id=str(self.id),
                    added_schedule_ids=added,
                    removed_schedule_ids=removed,
                )
            )
        return added, removed

    def select_shipping_methods(self, requested_ids, attachable_by_distributor):
        """Select shipping methods among the attachable ones.

        Args:
            requested_ids: Shipping method ids the caller asked for.
            attachable_by_distributor: Dict of distributor id to the set of
                shipping method ids attachable through that distributor.

        Selecting every attachable method is stored as an empty selection.
        Every distributor that has attachable methods must keep at least one.
        """
        attachable = set().union(*attachable_by_distributor.values())
        selected = [i for i in dict.fromkeys(str(r) for r in requested_ids) if i in attachable]

        if set(selected) == attachable:
            selected = []
        elif selected:
            missing = sorted(
                distributor_id
                for distributor_id, method_ids in attachable_by_distributor.items()
                if method_ids and not method_ids & set(selected)
            )
            if missing:
                raise ValidationError(
                    {
                        "selected_shipping_method_ids": [
                            f"Distributor {distributor_id} needs at least one shipping method"
                            for distributor_id in missing
                        ]
                    }
                )

        self.selected_shipping_method_ids = selected
        self.updated_at = datetime.now(UTC)

        self.raise_(ShippingMethodsSelected(order_cycle_id=str(self.id), shipping_method_ids=selected))
        return selected


@order_cycles.repository(part_of=OrderCycle)
class OrderCycleRepository:
    def not_closed(self, now=None) -> list[OrderCycle]:
        """Order cycles still taking orders (or without a close date yet)."""
        now = now or datetime.now(UTC)
        return [oc for oc in fetch_all(self._dao.query) if not oc.is_closed(now)]
