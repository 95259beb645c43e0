"""Tests for order reconciliation: totals, payment state and shipment state."""

import pytest
from ordering.order.events import PaymentStateChanged, ShipmentStateChanged
from ordering.order.order import (
    Calculator,
    InventoryUnitStatus,
    Order,
    PaymentState,
    ShipmentState,
    ShipmentStatus,
)
from ordering.order.updater import (
    DerivedFields,
    OrderUpdater,
    compute_derived_state,
    infer_payment_state,
)

DISTRIBUTOR_ADDRESS = {
    "street": "1 Market Lane",
    "city": "Fitzroy",
    "state": "VIC",
    "postal_code": "3065",
    "country": "AU",
}


def _make_order(quantity=2, price=50.0):
    order = Order.create(
        customer_id="cust-001",
        distributor_id="dist-001",
        distributor_address=DISTRIBUTOR_ADDRESS,
    )
    order.add_line_item("var-001", quantity, price)
    return order


def _make_completed_order(quantity=2, price=50.0):
    order = _make_order(quantity, price)
    order.complete()
    return order


def _pay(order, *amounts, capture=True):
    payments = []
    for amount in amounts:
        payment = order.add_payment(amount, "cash")
        if capture:
            order.capture_payment(payment.id)
        payments.append(payment)
    return payments


def _events_of(order, event_cls):
    return [e for e in order._events if isinstance(e, event_cls)]


class TestTotals:
    def test_item_total_sums_line_items(self):
        order = _make_order(quantity=3, price=12.5)
        OrderUpdater().update(order)
        assert order.item_total == 37.5
        assert order.total == 37.5

    def test_payment_total_counts_completed_payments_only(self):
        order = _make_completed_order()
        _pay(order, 30.0)
        _pay(order, 20.0, capture=False)
        OrderUpdater().update(order)
        assert order.payment_total == 30.0

    def test_total_is_item_total_plus_adjustment_total(self):
        order = _make_order()
        order.add_adjustment("Delivery fee", calculator=Calculator.FLAT_RATE.value, rate=7.5)
        order.add_adjustment("Hub fee", calculator=Calculator.FLAT_PERCENT_ITEM_TOTAL.value, rate=10.0)
        OrderUpdater().update(order)

        assert order.item_total == 100.0
        assert order.adjustment_total == 17.5
        assert order.total == order.item_total + order.adjustment_total

    def test_ineligible_adjustments_are_left_out(self):
        order = _make_order()
        order.add_adjustment("Promotion", amount=-10.0, eligible=False)
        OrderUpdater().update(order)
        assert order.adjustment_total == 0.0
        assert order.total == 100.0

    def test_percent_adjustment_follows_item_total(self):
        order = _make_order()
        adjustment = order.add_adjustment("Hub fee", calculator=Calculator.FLAT_PERCENT_ITEM_TOTAL.value, rate=10.0)
        OrderUpdater().update(order)

        order.add_line_item("var-002", 1, 100.0)
        OrderUpdater().update(order)

        assert adjustment.amount == 20.0
        assert order.total == 220.0

    def test_closed_adjustment_keeps_its_amount(self):
        order = _make_order()
        adjustment = order.add_adjustment("Hub fee", calculator=Calculator.FLAT_PERCENT_ITEM_TOTAL.value, rate=10.0)
        OrderUpdater().update(order)
        order.close_adjustment(adjustment.id)

        order.add_line_item("var-002", 1, 100.0)
        OrderUpdater().update(order)

        assert adjustment.amount == 10.0
        assert order.total == 210.0

    def test_totals_are_rounded_to_cents(self):
        order = _make_order(quantity=3, price=0.1)
        OrderUpdater().update(order)
        assert order.item_total == 0.3


class TestIncompleteOrders:
    def test_states_are_not_inferred_before_completion(self):
        order = _make_order()
        _pay(order, 100.0)
        OrderUpdater().update(order)

        assert order.payment_state is None
        assert order.shipment_state is None
        assert order.payment_total == 100.0

    def test_no_state_change_events_before_completion(self):
        order = _make_order()
        order._events.clear()
        OrderUpdater().update(order)
        assert _events_of(order, PaymentStateChanged) == []
        assert _events_of(order, ShipmentStateChanged) == []


class TestPaymentState:
    @pytest.mark.parametrize(
        "amounts, expected",
        [
            ((100.0,), PaymentState.PAID.value),
            ((60.0, 40.0), PaymentState.PAID.value),
            ((60.0,), PaymentState.BALANCE_DUE.value),
            ((), PaymentState.BALANCE_DUE.value),
            ((120.0,), PaymentState.CREDIT_OWED.value),
        ],
    )
    def test_inferred_from_balance(self, amounts, expected):
        order = _make_completed_order()
        _pay(order, *amounts)
        OrderUpdater().update(order)
        assert order.payment_state == expected

    def test_failed_when_no_payment_is_valid(self):
        order = _make_completed_order()
        payment = order.add_payment(100.0, "card")
        order.fail_payment(payment.id, reason="Declined")
        OrderUpdater().update(order)
        assert order.payment_state == PaymentState.FAILED.value

    def test_one_valid_payment_is_enough_to_avoid_failed(self):
        order = _make_completed_order()
        failed = order.add_payment(100.0, "card")
        order.fail_payment(failed.id)
        order.add_payment(100.0, "card")
        OrderUpdater().update(order)
        assert order.payment_state == PaymentState.BALANCE_DUE.value

    def test_failed_takes_precedence_over_void(self):
        order = _make_completed_order()
        payment = order.add_payment(100.0, "card")
        order.fail_payment(payment.id)
        order.cancel()
        OrderUpdater().update(order)
        assert order.payment_state == PaymentState.FAILED.value

    def test_void_when_canceled_without_payment(self):
        order = _make_completed_order()
        order.cancel()
        OrderUpdater().update(order)
        assert order.payment_state == PaymentState.VOID.value

    def test_credit_owed_when_canceled_after_payment(self):
        order = _make_completed_order()
        _pay(order, 40.0)
        order.cancel()
        OrderUpdater().update(order)
        assert order.payment_state == PaymentState.CREDIT_OWED.value

    def test_infer_payment_state_uses_given_totals(self):
        order = _make_completed_order()
        assert infer_payment_state(order, 10.0, 10.0) == PaymentState.PAID.value
        assert infer_payment_state(order, 5.0, 10.0) == PaymentState.BALANCE_DUE.value


class TestShipmentState:
    def test_no_shipments_means_no_shipment_state(self):
        order = _make_completed_order()
        OrderUpdater().update(order)
        assert order.shipment_state is None

    def test_pending_until_paid(self):
        order = _make_completed_order()
        order.add_shipment([{"variant_id": "var-001"}])
        OrderUpdater().update(order)
        assert order.shipment_state == ShipmentState.PENDING.value

    def test_ready_once_paid(self):
        order = _make_completed_order()
        shipment = order.add_shipment([{"variant_id": "var-001"}])
        _pay(order, 100.0)
        OrderUpdater().update(order)

        assert shipment.status == ShipmentStatus.READY.value
        assert order.shipment_state == ShipmentState.READY.value

    def test_partial_when_shipments_disagree(self):
        order = _make_completed_order()
        first = order.add_shipment([{"variant_id": "var-001"}])
        order.add_shipment([{"variant_id": "var-001"}])
        _pay(order, 100.0)
        OrderUpdater().update(order)

        order.ship_shipment(first.id)
        OrderUpdater().update(order)

        assert order.shipment_state == ShipmentState.PARTIAL.value

    def test_shipped_when_every_shipment_shipped(self):
        order = _make_completed_order()
        shipment = order.add_shipment([{"variant_id": "var-001"}])
        _pay(order, 100.0)
        OrderUpdater().update(order)
        order.ship_shipment(shipment.id)
        OrderUpdater().update(order)

        assert order.shipment_state == ShipmentState.SHIPPED.value

    def test_backorder_takes_precedence(self):
        order = _make_completed_order()
        order.add_shipment([{"variant_id": "var-001"}])
        order.add_shipment([{"variant_id": "var-001", "status": InventoryUnitStatus.BACKORDERED.value}])
        _pay(order, 100.0)
        OrderUpdater().update(order)

        assert order.shipment_state == ShipmentState.BACKORDER.value

    def test_canceled_order_cancels_shipments(self):
        order = _make_completed_order()
        shipment = order.add_shipment([{"variant_id": "var-001"}])
        order.cancel()
        OrderUpdater().update(order)

        assert shipment.status == ShipmentStatus.CANCELED.value
        assert order.shipment_state == ShipmentState.CANCELED.value


class TestStateChangeEvents:
    def test_payment_state_change_raised_once(self):
        order = _make_completed_order()
        order._events.clear()

        OrderUpdater().update(order)
        OrderUpdater().update(order)

        changes = _events_of(order, PaymentStateChanged)
        assert len(changes) == 1
        assert changes[0].previous_state is None
        assert changes[0].next_state == PaymentState.BALANCE_DUE.value

    def test_shipment_state_change_raised_on_every_update(self):
        order = _make_completed_order()
        order._events.clear()

        OrderUpdater().update(order)
        OrderUpdater().update(order)

        assert len(_events_of(order, ShipmentStateChanged)) == 2


class TestIdempotence:
    def test_second_update_changes_nothing(self):
        order = _make_completed_order()
        order.add_adjustment("Hub fee", calculator=Calculator.FLAT_PERCENT_ITEM_TOTAL.value, rate=5.0)
        order.add_shipment([{"variant_id": "var-001"}])
        _pay(order, 50.0)

        OrderUpdater().update(order)
        snapshot = (
            order.item_total,
            order.adjustment_total,
            order.payment_total,
            order.total,
            order.payment_state,
            order.shipment_state,
            [s.status for s in order.shipments],
            [a.amount for a in order.adjustments],
        )

        OrderUpdater().update(order)
        assert snapshot == (
            order.item_total,
            order.adjustment_total,
            order.payment_total,
            order.total,
            order.payment_state,
            order.shipment_state,
            [s.status for s in order.shipments],
            [a.amount for a in order.adjustments],
        )


class TestComputeDerivedState:
    def test_does_not_modify_the_order(self):
        order = _make_completed_order()
        _pay(order, 100.0)

        derived = compute_derived_state(order)

        assert isinstance(derived, DerivedFields)
        assert derived.total == 100.0
        assert derived.payment_state == PaymentState.PAID.value
        assert order.total == 0.0
        assert order.payment_state is None

    def test_flags_payment_state_change(self):
        order = _make_completed_order()
        assert compute_derived_state(order).payment_state_changed is True

        OrderUpdater().update(order)
        assert compute_derived_state(order).payment_state_changed is False


class TestHooks:
    def test_hooks_run_in_registration_order(self):
        calls = []
        updater = OrderUpdater(hooks=[lambda order: calls.append("first")])

        @updater.register_hook
        def second(order):
            calls.append("second")

        updater.run_hooks(_make_order())
        assert calls == ["first", "second"]
        assert updater.hooks[1] is second
