"""BDD tests for order reconciliation."""

import json

from ordering.order.cancellation import CancelOrder
from ordering.order.completion import CompleteOrder
from ordering.order.creation import CreateOrder
from ordering.order.fulfillment import AddShipment
from ordering.order.modification import AddLineItem
from ordering.order.order import Order
from ordering.order.payment import CapturePayment, CreatePayment
from protean import current_domain
from pytest_bdd import given, parsers, scenarios, then, when

scenarios("features/order_reconciliation.feature")


def _process(command):
    return current_domain.process(command, asynchronous=False)


def _order(order_id):
    return current_domain.repository_for(Order).get(order_id)


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(
    parsers.cfparse('an order with {quantity:d} of "{variant_id}" at {price:f}'),
    target_fixture="order_id",
)
def _(quantity, variant_id, price):
    order_id = _process(CreateOrder(customer_id="cust-001", distributor_id="dist-001"))
    _process(AddLineItem(order_id=order_id, variant_id=variant_id, quantity=quantity, price=price))
    return order_id


@given("the order is completed")
def _(order_id):
    _process(CompleteOrder(order_id=order_id))


@given(parsers.cfparse('a shipment for "{variant_id}"'))
def _(order_id, variant_id):
    _process(AddShipment(order_id=order_id, units=json.dumps([{"variant_id": variant_id}])))


@given(parsers.cfparse('a backordered shipment for "{variant_id}"'))
def _(order_id, variant_id):
    _process(
        AddShipment(
            order_id=order_id,
            units=json.dumps([{"variant_id": variant_id, "status": "backordered"}]),
        )
    )


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('{quantity:d} of "{variant_id}" at {price:f} is added'))
def _(order_id, quantity, variant_id, price):
    _process(AddLineItem(order_id=order_id, variant_id=variant_id, quantity=quantity, price=price))


@when("the order is completed")
def _(order_id):
    _process(CompleteOrder(order_id=order_id))


@when("the order is canceled")
def _(order_id):
    _process(CancelOrder(order_id=order_id))


@when(parsers.cfparse("a payment of {amount:f} is captured"))
def _(order_id, amount):
    payment_id = _process(CreatePayment(order_id=order_id, amount=amount, payment_method="card"))
    _process(CapturePayment(order_id=order_id, payment_id=payment_id))


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse("the order total is {total:f}"))
def _(order_id, total):
    assert _order(order_id).total == total


@then(parsers.cfparse('the payment state is "{state}"'))
def _(order_id, state):
    assert _order(order_id).payment_state == state


@then(parsers.cfparse('the shipment state is "{state}"'))
def _(order_id, state):
    assert _order(order_id).shipment_state == state
