"""Order cycles bounded context — order cycles, schedules and subscriptions.

An order cycle is the window in which producers supply and distributors sell
through a coordinator. Saving one reconciles its exchanges, its schedules and
its shipping methods in a single unit of work, then brings the proxy orders of
affected subscriptions up to date.
"""

from protean.domain import Domain

from shared.logging import configure_logging

order_cycles = Domain(name="order_cycles")

configure_logging()
