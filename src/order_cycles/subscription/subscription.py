"""Subscription aggregate — a customer's standing order against a schedule.

Each subscription holds one proxy order per order cycle it takes part in. A
proxy order is a placeholder until the real order is placed for that cycle.
"""

from datetime import UTC, datetime

from protean.fields import DateTime, HasMany, Identifier

from order_cycles.domain import order_cycles
from order_cycles.order_cycle.order_cycle import as_utc
from order_cycles.utils.queries import fetch_all


@order_cycles.entity(part_of="Subscription")
class ProxyOrder:
    order_cycle_id = Identifier(required=True)
    order_id = Identifier()
    placed_at = DateTime()
    canceled_at = DateTime()

    @property
    def is_placed(self):
        return self.placed_at is not None


@order_cycles.aggregate
class Subscription:
    customer_id = Identifier(required=True)
    shop_id = Identifier(required=True)
    schedule_id = Identifier(required=True)
    begins_at = DateTime()
    ends_at = DateTime()
    canceled_at = DateTime()
    paused_at = DateTime()
    proxy_orders = HasMany(ProxyOrder)

    @property
    def is_canceled(self):
        return self.canceled_at is not None

    @property
    def is_paused(self):
        return self.paused_at is not None

    def covers(self, order_cycle):
        """Whether the order cycle closes within the subscription's window."""
        if self.is_canceled or order_cycle.orders_close_at is None:
            return False

        closes_at = as_utc(order_cycle.orders_close_at)
        if self.begins_at is None or as_utc(self.begins_at) >= closes_at:
            return False
        return self.ends_at is None or closes_at <= as_utc(self.ends_at)

    def proxy_order_for(self, order_cycle_id):
        return next((p for p in self.proxy_orders if str(p.order_cycle_id) == str(order_cycle_id)), None)

    def sync_proxy_orders(self, eligible_ids, open_ids):
        """Create and remove proxy orders. Returns (created, removed) order cycle ids.

        Args:
            eligible_ids: Open order cycles this subscription should take part in.
            open_ids: Every order cycle that is still open. Proxy orders for
                cycles outside this set are never touched.
        """
        eligible_ids = [str(i) for i in eligible_ids]
        open_ids = {str(i) for i in open_ids}

        created = []
        for order_cycle_id in eligible_ids:
            if self.proxy_order_for(order_cycle_id) is None:
                self.add_proxy_orders(ProxyOrder(order_cycle_id=order_cycle_id))
                created.append(order_cycle_id)

        stale = [
            p
            for p in self.proxy_orders
            if not p.is_placed and str(p.order_cycle_id) in open_ids and str(p.order_cycle_id) not in eligible_ids
        ]
        for proxy_order in stale:
            self.remove_proxy_orders(proxy_order)

        return created, [str(p.order_cycle_id) for p in stale]

    def place(self, order_cycle_id, order_id):
        proxy_order = self.proxy_order_for(order_cycle_id)
        if proxy_order is not None:
            proxy_order.order_id = order_id
            proxy_order.placed_at = datetime.now(UTC)
        return proxy_order


@order_cycles.repository(part_of=Subscription)
class SubscriptionRepository:
    def for_schedules(self, schedule_ids) -> list[Subscription]:
        schedule_ids = {str(s) for s in schedule_ids}
        if not schedule_ids:
            return []
        return fetch_all(self._dao.query.filter(schedule_id__in=list(schedule_ids)))
