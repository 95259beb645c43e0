"""Order cycle form — saves an order cycle's whole configuration in one go.

The top-level attributes are validated first. Then one unit of work persists
the order cycle, its schedule membership, its exchanges and its selected
shipping methods, and resyncs the subscriptions of schedules that were added
or removed. A validation error anywhere in that unit of work rolls all of it
back and is reported through ``form.errors``; any other error propagates.

Schedules are scoped by permission: the user only adds or removes schedules
they may edit, and every other schedule the order cycle belongs to stays put.
"""

import structlog
from protean.core.unit_of_work import UnitOfWork
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain
from pydantic import ValidationError as ParamsError

from order_cycles.enterprise.permissions import Permissions
from order_cycles.order_cycle.exchanges import ExchangeApplicator
from order_cycles.order_cycle.order_cycle import OrderCycle
from order_cycles.order_cycle.schemas import OrderCycleParams
from order_cycles.shipping.shipping_method import ShippingMethod
from order_cycles.subscription.subscription import Subscription
from order_cycles.subscription.syncer import ProxyOrderSyncer

logger = structlog.get_logger(__name__)


def build_schedule_ids(existing, requested, permitted):
    """Work out the schedule ids an order cycle ends up with.

    Requested ids the user may edit are added, permitted ids that were not
    requested are removed, and ids outside ``permitted`` are left as they are.
    Order is kept: existing ids first, then newly added ones.
    """
    existing = [str(i) for i in existing]
    requested = {str(i) for i in requested}
    permitted = {str(i) for i in permitted}

    result = list(existing)
    result += [i for i in sorted(requested & permitted) if i not in result]
    return [i for i in result if i not in permitted or i in requested]


class OrderCycleForm:
    def __init__(self, order_cycle, params, user, permissions=None, syncer=None):
        self.order_cycle = order_cycle
        self.params = params or {}
        self.user = user
        self.permissions = permissions or Permissions(user)
        self.syncer = syncer or ProxyOrderSyncer()
        self.errors: dict[str, list[str]] = {}

    @property
    def is_new(self):
        return self.order_cycle is None

    def save(self) -> bool:
        try:
            params = OrderCycleParams.model_validate(self.params)
        except ParamsError as exc:
            for error in exc.errors():
                field = ".".join(str(part) for part in error["loc"]) or "base"
                self._add_error(field, error["msg"])
            return False

        existing_ids = [] if self.is_new else list(self.order_cycle.schedule_ids or [])
        schedule_ids = None
        # An empty list is treated like an omitted one
        if params.schedule_ids:
            requested = params.schedule_ids
            permitted = self.permissions.editable_schedule_ids(set(requested) | set(existing_ids))
            schedule_ids = build_schedule_ids(existing_ids, requested, permitted)

        try:
            self._assign_attributes(params.attributes())
        except ValidationError as exc:
            self._merge_errors(exc.messages)
            logger.info("Order cycle invalid", errors=self.errors)
            return False

        try:
            with UnitOfWork():
                self._save_in_transaction(params, schedule_ids)
        except ValidationError as exc:
            self._merge_errors(exc.messages)
            logger.info(
                "Order cycle save rolled back",
                order_cycle_id=str(self.order_cycle.id),
                errors=self.errors,
            )
            return False

        logger.info(
            "Order cycle saved",
            order_cycle_id=str(self.order_cycle.id),
            schedule_ids=list(self.order_cycle.schedule_ids or []),
        )
        return True

    def _assign_attributes(self, attributes):
        if self.is_new:
            self.order_cycle = OrderCycle.create(**attributes)
        elif attributes:
            self.order_cycle.update_attributes(**attributes)

    def _save_in_transaction(self, params, schedule_ids):
        repo = current_domain.repository_for(OrderCycle)
        repo.add(self.order_cycle)

        added, removed = [], []
        if schedule_ids is not None:
            added, removed = self.order_cycle.assign_schedule_ids(schedule_ids)
            repo.add(self.order_cycle)

        if params.incoming_exchanges is not None or params.outgoing_exchanges is not None:
            ExchangeApplicator(self.order_cycle, self.user, self.permissions).apply(
                incoming=params.incoming_exchanges,
                outgoing=params.outgoing_exchanges,
            )
            repo.add(self.order_cycle)

        if params.selected_shipping_method_ids is not None:
            # Exchanges must be current before working out attachable methods
            self.order_cycle = repo.get(self.order_cycle.id)
            attachable = current_domain.repository_for(ShippingMethod).attachable_by_distributor(self.order_cycle)
            self.order_cycle.select_shipping_methods(params.selected_shipping_method_ids, attachable)
            repo.add(self.order_cycle)

        if added or removed:
            subscriptions = current_domain.repository_for(Subscription).for_schedules(added + removed)
            self.syncer.sync(subscriptions)

    def _add_error(self, field, message):
        messages = self.errors.setdefault(field, [])
        if message not in messages:
            messages.append(message)

    def _merge_errors(self, messages):
        for field, reasons in (messages or {}).items():
            if isinstance(reasons, str):
                reasons = [reasons]
            for reason in reasons:
                self._add_error(field or "base", str(reason))
