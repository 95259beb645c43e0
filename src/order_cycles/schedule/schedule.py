"""Schedule aggregate — a recurrence linking order cycles to subscriptions.

Membership lives on the order cycle (``OrderCycle.schedule_ids``); each
subscription points at one schedule.
"""

from datetime import UTC, datetime

from protean.fields import DateTime, Identifier, String

from order_cycles.domain import order_cycles


@order_cycles.aggregate
class Schedule:
    name = String(required=True, max_length=255)
    coordinator_id = Identifier(required=True)
    created_at = DateTime(default=lambda: datetime.now(UTC))
