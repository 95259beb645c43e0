"""Enterprise aggregate — producers, hubs and shops that take part in order cycles."""

from protean.fields import Boolean, List, String

from order_cycles.domain import order_cycles
from order_cycles.utils.queries import fetch_all


@order_cycles.aggregate
class Enterprise:
    name = String(required=True, max_length=255)
    manager_ids = List(content_type=String, default=list)
    is_distributor = Boolean(default=False)

    def is_managed_by(self, user):
        return bool(user.admin) or str(user.id) in (self.manager_ids or [])


@order_cycles.repository(part_of=Enterprise)
class EnterpriseRepository:
    def managed_by(self, user) -> list[Enterprise]:
        """Enterprises the user manages (every enterprise for admins)."""
        return [e for e in fetch_all(self._dao.query) if e.is_managed_by(user)]
