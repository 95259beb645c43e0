"""Order payments — commands and handler.

Payments are captured, failed or voided one at a time; the order's
``payment_total`` and ``payment_state`` follow through reconciliation.
"""

from protean import handle
from protean.fields import Float, Identifier, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.order import Order
from ordering.order.updater import reconcile


@ordering.command(part_of="Order")
class CreatePayment:
    order_id = Identifier(required=True)
    amount = Float(required=True)
    payment_method = String(required=True, max_length=50)


@ordering.command(part_of="Order")
class CapturePayment:
    order_id = Identifier(required=True)
    payment_id = Identifier(required=True)


@ordering.command(part_of="Order")
class FailPayment:
    order_id = Identifier(required=True)
    payment_id = Identifier(required=True)
    reason = String(max_length=500)


@ordering.command(part_of="Order")
class VoidPayment:
    order_id = Identifier(required=True)
    payment_id = Identifier(required=True)


@ordering.command_handler(part_of=Order)
class OrderPaymentHandler:
    @handle(CreatePayment)
    def create_payment(self, command):
        order = current_domain.repository_for(Order).get(command.order_id)
        payment = order.add_payment(amount=command.amount, payment_method=command.payment_method)
        reconcile(order)
        return str(payment.id)

    @handle(CapturePayment)
    def capture_payment(self, command):
        order = current_domain.repository_for(Order).get(command.order_id)
        order.capture_payment(command.payment_id)
        reconcile(order)

    @handle(FailPayment)
    def fail_payment(self, command):
        order = current_domain.repository_for(Order).get(command.order_id)
        order.fail_payment(command.payment_id, reason=command.reason)
        reconcile(order)

    @handle(VoidPayment)
    def void_payment(self, command):
        order = current_domain.repository_for(Order).get(command.order_id)
        order.void_payment(command.payment_id)
        reconcile(order)
