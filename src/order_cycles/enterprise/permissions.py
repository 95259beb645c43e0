"""Permissions — what an acting user may edit within order cycles.

A user manages an enterprise when they are an admin or one of its managers.
Schedules are editable through their coordinator; exchanges through either the
order cycle's coordinator or the exchanging enterprise.
"""

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from order_cycles.enterprise.enterprise import Enterprise
from order_cycles.schedule.schedule import Schedule


class Permissions:
    def __init__(self, user):
        self.user = user
        self._managed_enterprise_ids = None

    def managed_enterprise_ids(self) -> set[str]:
        if self._managed_enterprise_ids is None:
            self._managed_enterprise_ids = {
                str(e.id) for e in current_domain.repository_for(Enterprise).managed_by(self.user)
            }
        return self._managed_enterprise_ids

    def manages(self, enterprise_id) -> bool:
        return bool(self.user.admin) or str(enterprise_id) in self.managed_enterprise_ids()

    def editable_schedule_ids(self, candidate_ids) -> set[str]:
        """The subset of ``candidate_ids`` naming schedules the user may edit.

        Unknown ids are never editable.
        """
        repo = current_domain.repository_for(Schedule)
        editable = set()
        for schedule_id in candidate_ids:
            try:
                schedule = repo.get(str(schedule_id))
            except ObjectNotFoundError:
                continue
            if self.manages(schedule.coordinator_id):
                editable.add(str(schedule.id))
        return editable

    def can_manage_exchange(self, order_cycle, enterprise_id) -> bool:
        return self.manages(order_cycle.coordinator_id) or self.manages(enterprise_id)
