"""Order aggregate — the unit whose totals and states the updater reconciles.

An order owns its line items, payments, shipments, inventory units and
adjustments. The stored totals (``item_total``, ``adjustment_total``,
``payment_total``, ``total``) and the inferred ``payment_state`` and
``shipment_state`` are derived values: they are never set directly by a
command, only through ``apply_derived_state`` after the updater has computed
them from the sub-collections (see ``ordering.order.updater``).

Checkout lifecycle:
    cart → address → delivery → payment → confirmation → complete
    complete → canceled → resumed
"""

from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    ValueObject,
)

from ordering.domain import ordering
from ordering.order.events import (
    AdjustmentAdded,
    LineItemAdded,
    OrderCanceled,
    OrderCompleted,
    OrderCreated,
    OrderResumed,
    PaymentCaptured,
    PaymentCreated,
    PaymentFailed,
    PaymentStateChanged,
    PaymentVoided,
    ShipmentAdded,
    ShipmentShipped,
    ShipmentStateChanged,
    ShippingMethodSelected,
)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    CART = "cart"
    ADDRESS = "address"
    DELIVERY = "delivery"
    PAYMENT = "payment"
    CONFIRMATION = "confirmation"
    COMPLETE = "complete"
    CANCELED = "canceled"
    AWAITING_RETURN = "awaiting_return"
    RETURNED = "returned"
    RESUMED = "resumed"


class PaymentState(Enum):
    """Order-level payment state, inferred from payments and balance."""

    PAID = "paid"
    BALANCE_DUE = "balance_due"
    CREDIT_OWED = "credit_owed"
    FAILED = "failed"
    VOID = "void"


class ShipmentState(Enum):
    """Order-level shipment state, inferred from the shipments' own states."""

    SHIPPED = "shipped"
    PARTIAL = "partial"
    READY = "ready"
    BACKORDER = "backorder"
    PENDING = "pending"
    CANCELED = "canceled"


class PaymentStatus(Enum):
    CHECKOUT = "checkout"
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    VOID = "void"
    INVALID = "invalid"


class ShipmentStatus(Enum):
    PENDING = "pending"
    READY = "ready"
    SHIPPED = "shipped"
    CANCELED = "canceled"


class InventoryUnitStatus(Enum):
    ON_HAND = "on_hand"
    BACKORDERED = "backordered"
    SHIPPED = "shipped"
    RETURNED = "returned"


class AdjustmentStatus(Enum):
    OPEN = "open"
    CLOSED = "closed"
    FINALIZED = "finalized"


class Calculator(Enum):
    FLAT_RATE = "flat_rate"
    FLAT_PERCENT_ITEM_TOTAL = "flat_percent_item_total"


_CHECKOUT_STATUSES = {
    OrderStatus.CART,
    OrderStatus.ADDRESS,
    OrderStatus.DELIVERY,
    OrderStatus.PAYMENT,
    OrderStatus.CONFIRMATION,
}

# Orders in these states may have their shipments prepared and shipped
_SHIPPABLE_STATUSES = {
    OrderStatus.COMPLETE,
    OrderStatus.RESUMED,
    OrderStatus.AWAITING_RETURN,
    OrderStatus.RETURNED,
}

_CANCELABLE_STATUSES = {OrderStatus.COMPLETE, OrderStatus.RESUMED}

_PAID_STATES = {PaymentState.PAID.value, PaymentState.CREDIT_OWED.value}

# Payments that can still be captured, failed or voided
_OPEN_PAYMENT_STATUSES = {
    PaymentStatus.CHECKOUT.value,
    PaymentStatus.PENDING.value,
    PaymentStatus.PROCESSING.value,
}

_INVALID_PAYMENT_STATUSES = {PaymentStatus.FAILED.value, PaymentStatus.INVALID.value}


def round_money(value):
    """Round a monetary amount to cents."""
    return round((value or 0.0) + 0.0, 2)


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@ordering.value_object(part_of="Order")
class Address:
    street = String(required=True, max_length=255)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    postal_code = String(required=True, max_length=20)
    country = String(required=True, max_length=100)


@ordering.value_object(part_of="Order")
class SelectedShippingMethod:
    """The shipping method chosen at checkout, captured by value.

    Pickup methods do not require a ship address; the order is then shipped to
    the distributor's own address.
    """

    shipping_method_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    require_ship_address = Boolean(default=True)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Order")
class LineItem:
    variant_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    price = Float(required=True, min_value=0.0)

    @property
    def amount(self):
        return round_money(self.price * self.quantity)


@ordering.entity(part_of="Order")
class Payment:
    amount = Float(required=True)
    payment_method = String(required=True, max_length=50)
    status = String(choices=PaymentStatus, default=PaymentStatus.CHECKOUT.value)
    failure_reason = String(max_length=500)

    @property
    def is_completed(self):
        return self.status == PaymentStatus.COMPLETED.value

    @property
    def in_valid_state(self):
        """Failed and invalid payments are the only ones that do not count as valid."""
        return self.status not in _INVALID_PAYMENT_STATUSES


@ordering.entity(part_of="Order")
class InventoryUnit:
    variant_id = Identifier(required=True)
    shipment_id = Identifier()
    status = String(choices=InventoryUnitStatus, default=InventoryUnitStatus.ON_HAND.value)

    @property
    def is_backordered(self):
        return self.status == InventoryUnitStatus.BACKORDERED.value


@ordering.entity(part_of="Order")
class Shipment:
    """A package of inventory units leaving the distributor.

    A shipment works out its own state from the order it belongs to; the order
    then summarises all of its shipments into ``shipment_state``.
    """

    number = String(required=True, max_length=32)
    status = String(choices=ShipmentStatus, default=ShipmentStatus.PENDING.value)
    shipped_at = DateTime()

    def determine_state(self, order, payment_state):
        """Return the state this shipment should be in, given the order and its payment state.

        - canceled: the order was canceled
        - pending: the order cannot ship yet, or some of our units are backordered
        - shipped: already shipped, stays shipped
        - ready: the order is paid (or owes credit)
        - pending: otherwise
        """
        if order.is_canceled:
            return ShipmentStatus.CANCELED.value
        if not order.can_ship:
            return ShipmentStatus.PENDING.value
        if any(unit.is_backordered for unit in order.units_for_shipment(self.id)):
            return ShipmentStatus.PENDING.value
        if self.status == ShipmentStatus.SHIPPED.value:
            return ShipmentStatus.SHIPPED.value
        if payment_state in _PAID_STATES:
            return ShipmentStatus.READY.value
        return ShipmentStatus.PENDING.value

    def update_state(self, order):
        self.status = self.determine_state(order, order.payment_state)


@ordering.entity(part_of="Order")
class Adjustment:
    """A charge or credit on the order (fees, taxes, promotions).

    Open adjustments with a calculator recompute their amount whenever the
    order is reconciled; closed and finalized ones keep the amount they have.
    Only eligible adjustments count toward the order's adjustment total.
    """

    label = String(required=True, max_length=255)
    amount = Float(default=0.0)
    eligible = Boolean(default=True)
    status = String(choices=AdjustmentStatus, default=AdjustmentStatus.OPEN.value)
    calculator = String(choices=Calculator)
    rate = Float()

    @property
    def is_immutable(self):
        return self.status != AdjustmentStatus.OPEN.value

    def compute_amount(self, item_total):
        if self.is_immutable or not self.calculator:
            return round_money(self.amount)
        if self.calculator == Calculator.FLAT_RATE.value:
            return round_money(self.rate)
        return round_money(item_total * (self.rate or 0.0) / 100)

    def update_amount(self, item_total):
        self.amount = self.compute_amount(item_total)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@ordering.aggregate
class Order:
    number = String(max_length=32)
    customer_id = Identifier(required=True)
    distributor_id = Identifier(required=True)
    order_cycle_id = Identifier()
    status = String(choices=OrderStatus, default=OrderStatus.CART.value)
    completed_at = DateTime()
    item_total = Float(default=0.0)
    adjustment_total = Float(default=0.0)
    payment_total = Float(default=0.0)
    total = Float(default=0.0)
    payment_state = String(choices=PaymentState)
    shipment_state = String(choices=ShipmentState)
    shipping_method = ValueObject(SelectedShippingMethod)
    ship_address = ValueObject(Address)
    bill_address = ValueObject(Address)
    distributor_address = ValueObject(Address)
    line_items = HasMany(LineItem)
    payments = HasMany(Payment)
    shipments = HasMany(Shipment)
    inventory_units = HasMany(InventoryUnit)
    adjustments = HasMany(Adjustment)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def total_is_item_total_plus_adjustment_total(self):
        if round_money(self.item_total + self.adjustment_total) != round_money(self.total):
            raise ValidationError({"total": ["Total must equal item total plus adjustment total"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        customer_id,
        distributor_id,
        order_cycle_id=None,
        distributor_address=None,
        bill_address=None,
    ):
        """Open a new order in the cart state.

        Args:
            customer_id: The customer placing the order.
            distributor_id: The enterprise the order is placed with.
            order_cycle_id: The order cycle the order belongs to, if any.
            distributor_address: Dict with street, city, state, postal_code, country.
                Used as the ship address for pickup shipping methods.
            bill_address: Dict with the same keys.
        """
        now = datetime.now(UTC)
        order = cls(
            number=f"R{uuid4().int % 10**9:09d}",
            customer_id=customer_id,
            distributor_id=distributor_id,
            order_cycle_id=order_cycle_id,
            distributor_address=Address(**distributor_address) if distributor_address else None,
            bill_address=Address(**bill_address) if bill_address else None,
            created_at=now,
            updated_at=now,
        )
        order.raise_(
            OrderCreated(
                order_id=str(order.id),
                customer_id=str(customer_id),
                distributor_id=str(distributor_id),
                order_cycle_id=str(order_cycle_id) if order_cycle_id else None,
                created_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def is_completed(self):
        return self.completed_at is not None

    @property
    def is_canceled(self):
        return self.status == OrderStatus.CANCELED.value

    @property
    def can_ship(self):
        return OrderStatus(self.status) in _SHIPPABLE_STATUSES

    @property
    def is_backordered(self):
        return any(unit.is_backordered for unit in self.inventory_units)

    @property
    def is_paid(self):
        return self.payment_state in _PAID_STATES

    @property
    def outstanding_balance(self):
        return round_money(self.total - self.payment_total)

    def units_for_shipment(self, shipment_id):
        return [unit for unit in self.inventory_units if str(unit.shipment_id) == str(shipment_id)]

    def _find(self, collection, entity_id, field):
        entity = next((e for e in collection if str(e.id) == str(entity_id)), None)
        if entity is None:
            raise ValidationError({field: [f"{entity_id} not found on order {self.number}"]})
        return entity

    def _assert_not_canceled(self):
        if self.is_canceled:
            raise ValidationError({"status": ["A canceled order cannot be modified"]})

    # -------------------------------------------------------------------
    # Line items & adjustments
    # -------------------------------------------------------------------
    def add_line_item(self, variant_id, quantity, price):
        """Add a variant to the order, or increase the quantity already ordered."""
        self._assert_not_canceled()

        line_item = next((li for li in self.line_items if str(li.variant_id) == str(variant_id)), None)
        if line_item:
            line_item.quantity += quantity
            line_item.price = price
        else:
            line_item = LineItem(variant_id=variant_id, quantity=quantity, price=price)
            self.add_line_items(line_item)
        self.updated_at = datetime.now(UTC)

        self.raise_(
            LineItemAdded(
                order_id=str(self.id),
                line_item_id=str(line_item.id),
                variant_id=str(variant_id),
                quantity=line_item.quantity,
                price=price,
            )
        )
        return line_item

    def add_adjustment(self, label, amount=0.0, calculator=None, rate=None, eligible=True):
        self._assert_not_canceled()

        adjustment = Adjustment(
            label=label,
            amount=amount,
            calculator=calculator,
            rate=rate,
            eligible=eligible,
        )
        adjustment.update_amount(self.item_total)
        self.add_adjustments(adjustment)
        self.updated_at = datetime.now(UTC)

        self.raise_(
            AdjustmentAdded(
                order_id=str(self.id),
                adjustment_id=str(adjustment.id),
                label=label,
                amount=adjustment.amount,
                calculator=calculator,
            )
        )
        return adjustment

    def close_adjustment(self, adjustment_id):
        """Freeze an adjustment's amount; reconciliation no longer recomputes it."""
        adjustment = self._find(self.adjustments, adjustment_id, "adjustment_id")
        adjustment.status = AdjustmentStatus.CLOSED.value
        self.updated_at = datetime.now(UTC)

    # -------------------------------------------------------------------
    # Payments
    # -------------------------------------------------------------------
    def add_payment(self, amount, payment_method):
        self._assert_not_canceled()

        payment = Payment(amount=amount, payment_method=payment_method)
        self.add_payments(payment)
        self.updated_at = datetime.now(UTC)

        self.raise_(
            PaymentCreated(
                order_id=str(self.id),
                payment_id=str(payment.id),
                amount=amount,
                payment_method=payment_method,
            )
        )
        return payment

    def _open_payment(self, payment_id):
        payment = self._find(self.payments, payment_id, "payment_id")
        if payment.status not in _OPEN_PAYMENT_STATUSES:
            raise ValidationError({"payment_id": [f"Payment is already {payment.status}"]})
        return payment

    def capture_payment(self, payment_id):
        payment = self._open_payment(payment_id)
        payment.status = PaymentStatus.COMPLETED.value
        self.updated_at = datetime.now(UTC)

        self.raise_(
            PaymentCaptured(
                order_id=str(self.id),
                payment_id=str(payment.id),
                amount=payment.amount,
            )
        )

    def fail_payment(self, payment_id, reason=None):
        payment = self._open_payment(payment_id)
        payment.status = PaymentStatus.FAILED.value
        payment.failure_reason = reason
        self.updated_at = datetime.now(UTC)

        self.raise_(
            PaymentFailed(
                order_id=str(self.id),
                payment_id=str(payment.id),
                reason=reason,
            )
        )

    def void_payment(self, payment_id):
        payment = self._find(self.payments, payment_id, "payment_id")
        if payment.status not in _OPEN_PAYMENT_STATUSES | {PaymentStatus.COMPLETED.value}:
            raise ValidationError({"payment_id": [f"Cannot void a {payment.status} payment"]})

        payment.status = PaymentStatus.VOID.value
        self.updated_at = datetime.now(UTC)

        self.raise_(PaymentVoided(order_id=str(self.id), payment_id=str(payment.id)))

    # -------------------------------------------------------------------
    # Shipments
    # -------------------------------------------------------------------
    def add_shipment(self, units):
        """Add a shipment carrying the given inventory units.

        Args:
            units: List of dicts with variant_id and optionally status
                   (on_hand or backordered).
        """
        self._assert_not_canceled()

        shipment = Shipment(number=f"H{uuid4().int % 10**11:011d}")
        self.add_shipments(shipment)
        for unit in units:
            self.add_inventory_units(
                InventoryUnit(
                    variant_id=unit["variant_id"],
                    shipment_id=str(shipment.id),
                    status=unit.get("status", InventoryUnitStatus.ON_HAND.value),
                )
            )
        self.updated_at = datetime.now(UTC)

        self.raise_(
            ShipmentAdded(
                order_id=str(self.id),
                shipment_id=str(shipment.id),
                number=shipment.number,
                unit_count=len(units),
            )
        )
        return shipment

    def ship_shipment(self, shipment_id):
        shipment = self._find(self.shipments, shipment_id, "shipment_id")
        if shipment.status != ShipmentStatus.READY.value:
            raise ValidationError({"shipment_id": [f"Only ready shipments can ship, this one is {shipment.status}"]})

        now = datetime.now(UTC)
        with atomic_change(self):
            shipment.status = ShipmentStatus.SHIPPED.value
            shipment.shipped_at = now
            for unit in self.units_for_shipment(shipment.id):
                unit.status = InventoryUnitStatus.SHIPPED.value
            self.updated_at = now

        self.raise_(
            ShipmentShipped(
                order_id=str(self.id),
                shipment_id=str(shipment.id),
                shipped_at=now,
            )
        )

    def select_shipping_method(self, shipping_method_id, name, require_ship_address=True):
        self._assert_not_canceled()

        self.shipping_method = SelectedShippingMethod(
            shipping_method_id=shipping_method_id,
            name=name,
            require_ship_address=require_ship_address,
        )
        self.shipping_address_from_distributor()
        self.updated_at = datetime.now(UTC)

        self.raise_(
            ShippingMethodSelected(
                order_id=str(self.id),
                shipping_method_id=str(shipping_method_id),
                name=name,
                require_ship_address=str(require_ship_address),
            )
        )

    def shipping_address_from_distributor(self):
        """Ship to the distributor's address when the shipping method is a pickup."""
        if self.shipping_method is None or self.shipping_method.require_ship_address:
            return

        self.ship_address = self.distributor_address

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def complete(self):
        """Finish checkout. The order now takes part in payment and shipment reconciliation."""
        if OrderStatus(self.status) not in _CHECKOUT_STATUSES:
            raise ValidationError({"status": [f"Cannot complete an order in {self.status} state"]})
        if not self.line_items:
            raise ValidationError({"line_items": ["Cannot complete an order without line items"]})

        now = datetime.now(UTC)
        self.status = OrderStatus.COMPLETE.value
        self.completed_at = now
        self.updated_at = now

        self.raise_(OrderCompleted(order_id=str(self.id), total=self.total, completed_at=now))

    def cancel(self):
        if OrderStatus(self.status) not in _CANCELABLE_STATUSES:
            raise ValidationError({"status": [f"Cannot cancel an order in {self.status} state"]})

        now = datetime.now(UTC)
        self.status = OrderStatus.CANCELED.value
        self.updated_at = now

        self.raise_(OrderCanceled(order_id=str(self.id), canceled_at=now))

    def resume(self):
        if not self.is_canceled:
            raise ValidationError({"status": ["Only canceled orders can be resumed"]})

        now = datetime.now(UTC)
        self.status = OrderStatus.RESUMED.value
        self.updated_at = now

        self.raise_(OrderResumed(order_id=str(self.id), resumed_at=now))

    # -------------------------------------------------------------------
    # Reconciliation
    # -------------------------------------------------------------------
    def apply_derived_state(self, derived):
        """Write the values computed by ``compute_derived_state`` in one change.

        Raises ``PaymentStateChanged`` when the payment state moved, and
        ``ShipmentStateChanged`` whenever the shipment state was computed.
        """
        previous_payment_state = self.payment_state
        previous_shipment_state = self.shipment_state
        now = datetime.now(UTC)

        with atomic_change(self):
            for shipment in self.shipments:
                status = derived.shipment_states.get(str(shipment.id))
                if status and status != shipment.status:
                    shipment.status = status
            for adjustment in self.adjustments:
                amount = derived.adjustment_amounts.get(str(adjustment.id))
                if amount is not None and amount != adjustment.amount:
                    adjustment.amount = amount

            self.payment_state = derived.payment_state
            self.shipment_state = derived.shipment_state
            self.item_total = derived.item_total
            self.adjustment_total = derived.adjustment_total
            self.payment_total = derived.payment_total
            self.total = derived.total
            self.updated_at = now

        if derived.payment_state_changed:
            self.raise_(
                PaymentStateChanged(
                    order_id=str(self.id),
                    previous_state=previous_payment_state,
                    next_state=derived.payment_state,
                    changed_at=now,
                )
            )
        if derived.shipment_state_computed:
            self.raise_(
                ShipmentStateChanged(
                    order_id=str(self.id),
                    previous_state=previous_shipment_state,
                    next_state=derived.shipment_state,
                    changed_at=now,
                )
            )
