"""Apply requested incoming and outgoing exchanges to an order cycle."""

import structlog

from order_cycles.enterprise.permissions import Permissions

logger = structlog.get_logger(__name__)


class ExchangeApplicator:
    """Brings an order cycle's exchanges in line with the requested ones.

    Only exchanges the user may manage are touched: a requested exchange is
    updated when one with the same direction and enterprise exists and added
    otherwise; a manageable exchange that was not requested is removed. A
    direction that was not supplied (``None``) is left alone.
    """

    def __init__(self, order_cycle, user, permissions=None):
        self.order_cycle = order_cycle
        self.user = user
        self.permissions = permissions or Permissions(user)

    def apply(self, incoming=None, outgoing=None):
        if incoming is not None:
            self._apply_direction(incoming, incoming=True)
        if outgoing is not None:
            self._apply_direction(outgoing, incoming=False)
        return self.order_cycle

    def _manageable(self, enterprise_id):
        return self.permissions.can_manage_exchange(self.order_cycle, enterprise_id)

    def _apply_direction(self, requested, incoming):
        requested_ids = set()

        for params in requested:
            enterprise_id = str(params.enterprise_id)
            requested_ids.add(enterprise_id)

            if not self._manageable(enterprise_id):
                logger.info(
                    "Skipping unmanageable exchange",
                    order_cycle_id=str(self.order_cycle.id),
                    enterprise_id=enterprise_id,
                    incoming=incoming,
                )
                continue

            exchange = self.order_cycle.find_exchange(enterprise_id, incoming)
            if exchange is None:
                self.order_cycle.add_exchange(enterprise_id, incoming, **params.details())
            else:
                self.order_cycle.update_exchange(exchange, **params.details())

        stale = [
            e
            for e in self.order_cycle.exchanges
            if e.incoming == incoming
            and str(e.enterprise_id) not in requested_ids
            and self._manageable(e.enterprise_id)
        ]
        for exchange in stale:
            self.order_cycle.remove_exchange(exchange)
