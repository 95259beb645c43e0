"""Order updater — reconciles an order's totals and states with its sub-collections.

Whenever line items, payments, shipments or adjustments change, the order's
stored totals and its ``payment_state``/``shipment_state`` have to be worked
out again. This happens in two phases:

1. ``compute_derived_state(order)`` reads the order and returns a
   ``DerivedFields`` record. It does not touch the order.
2. ``Order.apply_derived_state(derived)`` writes the record in one change, and
   the caller persists the order once through its repository.

Repositories have no save hooks, so persisting a reconciled order can never
trigger another reconciliation.

Shipment state (first match wins):
    - backorder: the order has backordered inventory
    - partial: the shipments are in more than one state
    - otherwise the single state all shipments share (None without shipments)

Payment state (first match wins):
    - failed: there are payments and none of them is valid
    - void: the order was canceled and nothing was collected
    - balance_due / credit_owed / paid: from the outstanding balance, which is
      ``-payment_total`` for canceled orders that collected a payment
"""

from dataclasses import dataclass, field

import structlog
from protean.utils.globals import current_domain

from ordering.order.order import Order, PaymentState, ShipmentState, round_money

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class DerivedFields:
    """Everything reconciliation derives for one order."""

    item_total: float
    adjustment_total: float
    payment_total: float
    total: float
    payment_state: str | None
    shipment_state: str | None
    shipment_states: dict[str, str] = field(default_factory=dict)
    adjustment_amounts: dict[str, float] = field(default_factory=dict)
    payment_state_changed: bool = False
    shipment_state_computed: bool = False


def _totals(order, adjustment_amounts):
    """Return (payment_total, item_total, adjustment_total) for the order.

    ``adjustment_amounts`` overrides the stored amount of the adjustments it names.
    """
    payment_total = round_money(sum(p.amount for p in order.payments if p.is_completed))
    item_total = round_money(sum(li.amount for li in order.line_items))
    adjustment_total = round_money(
        sum(adjustment_amounts.get(str(a.id), a.amount) for a in order.adjustments if a.eligible)
    )
    return payment_total, item_total, adjustment_total


def infer_shipment_state(order, shipment_states):
    if order.is_backordered:
        return ShipmentState.BACKORDER.value

    distinct = set(shipment_states)
    if len(distinct) > 1:
        return ShipmentState.PARTIAL.value
    return next(iter(distinct), None)


def infer_payment_state(order, payment_total, total):
    payments = list(order.payments)
    if payments and not any(p.in_valid_state for p in payments):
        return PaymentState.FAILED.value
    if order.is_canceled and payment_total == 0:
        return PaymentState.VOID.value

    balance = round_money(total - payment_total)
    if order.is_canceled and any(p.is_completed for p in payments):
        balance = -payment_total

    if balance > 0:
        return PaymentState.BALANCE_DUE.value
    if balance < 0:
        return PaymentState.CREDIT_OWED.value
    return PaymentState.PAID.value


def compute_derived_state(order):
    """Work out the order's totals and states without modifying it."""
    payment_total, item_total, adjustment_total = _totals(order, {})

    payment_state = order.payment_state
    shipment_state = order.shipment_state
    shipment_states = {}

    if order.is_completed:
        payment_state = infer_payment_state(order, payment_total, round_money(item_total + adjustment_total))
        # Each shipment decides its own state before the order summarises them
        shipment_states = {str(s.id): s.determine_state(order, payment_state) for s in order.shipments}
        shipment_state = infer_shipment_state(order, shipment_states.values())

    # Adjustments may depend on the totals and states above, so totals are worked out again
    adjustment_amounts = {str(a.id): a.compute_amount(item_total) for a in order.adjustments}
    payment_total, item_total, adjustment_total = _totals(order, adjustment_amounts)

    return DerivedFields(
        item_total=item_total,
        adjustment_total=adjustment_total,
        payment_total=payment_total,
        total=round_money(item_total + adjustment_total),
        payment_state=payment_state,
        shipment_state=shipment_state,
        shipment_states=shipment_states,
        adjustment_amounts=adjustment_amounts,
        payment_state_changed=order.is_completed and payment_state != order.payment_state,
        shipment_state_computed=order.is_completed,
    )


class OrderUpdater:
    """Reconciles orders and runs post-update hooks in registration order.

    Hooks are plain callables taking the order. They run after the order has
    been reconciled and handed to the repository.
    """

    def __init__(self, hooks=None):
        self._hooks = list(hooks or [])

    @property
    def hooks(self):
        return tuple(self._hooks)

    def register_hook(self, hook):
        """Register a post-update hook. Usable as a decorator."""
        self._hooks.append(hook)
        return hook

    def update(self, order):
        derived = compute_derived_state(order)
        order.apply_derived_state(derived)

        logger.debug(
            "Order reconciled",
            order_id=str(order.id),
            total=derived.total,
            payment_state=derived.payment_state,
            shipment_state=derived.shipment_state,
        )
        return derived

    def run_hooks(self, order):
        for hook in self._hooks:
            hook(order)

    def reconcile(self, order):
        """Update the order, persist it once, then run the hooks."""
        derived = self.update(order)
        current_domain.repository_for(Order).add(order)
        self.run_hooks(order)
        return derived


order_updater = OrderUpdater()
register_update_hook = order_updater.register_hook


def reconcile(order):
    return order_updater.reconcile(order)
