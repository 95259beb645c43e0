"""Keep subscriptions' proxy orders in step with the order cycles of their schedules."""

from datetime import UTC, datetime

import structlog
from protean.utils.globals import current_domain

from order_cycles.order_cycle.order_cycle import OrderCycle
from order_cycles.subscription.subscription import Subscription

logger = structlog.get_logger(__name__)


class ProxyOrderSyncer:
    """Creates missing proxy orders and removes ones that no longer apply.

    Only open order cycles are considered. Placed proxy orders stay as they are.
    """

    def __init__(self, now=None):
        self.now = now or datetime.now(UTC)

    def sync(self, subscriptions):
        subscriptions = list(subscriptions)
        if not subscriptions:
            return []

        open_cycles = current_domain.repository_for(OrderCycle).not_closed(self.now)
        open_ids = [str(oc.id) for oc in open_cycles]
        repo = current_domain.repository_for(Subscription)

        for subscription in subscriptions:
            eligible_ids = [
                str(oc.id)
                for oc in open_cycles
                if str(subscription.schedule_id) in (oc.schedule_ids or []) and subscription.covers(oc)
            ]
            created, removed = subscription.sync_proxy_orders(eligible_ids, open_ids)
            repo.add(subscription)

            logger.info(
                "Proxy orders synced",
                subscription_id=str(subscription.id),
                created=created,
                removed=removed,
            )

        return subscriptions
