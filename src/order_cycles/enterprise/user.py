"""User aggregate — the person acting on order cycles."""

from protean.fields import Boolean, String

from order_cycles.domain import order_cycles


@order_cycles.aggregate
class User:
    email = String(required=True, max_length=255)
    admin = Boolean(default=False)
