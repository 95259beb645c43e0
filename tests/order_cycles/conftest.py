import pytest
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def order_cycles_bed():
    from order_cycles.domain import order_cycles

    bed = DomainFixture(order_cycles)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(order_cycles_bed):
    with order_cycles_bed.domain_context():
        yield

        from protean import current_domain

        # Clear all databases and drain the event store after every test
        for _, provider in current_domain.providers.items():
            provider._data_reset()
        current_domain.event_store.store._data_reset()


# ---------------------------------------------------------------------------
# Persisted collaborators
# ---------------------------------------------------------------------------
@pytest.fixture()
def manager():
    from order_cycles.enterprise.user import User
    from protean import current_domain

    user = User(email="manager@foodhub.test")
    current_domain.repository_for(User).add(user)
    return user


@pytest.fixture()
def admin():
    from order_cycles.enterprise.user import User
    from protean import current_domain

    user = User(email="admin@foodhub.test", admin=True)
    current_domain.repository_for(User).add(user)
    return user


@pytest.fixture()
def enterprise_factory():
    from order_cycles.enterprise.enterprise import Enterprise
    from protean import current_domain

    def _create(name, managers=(), is_distributor=False):
        enterprise = Enterprise(
            name=name,
            manager_ids=[str(u.id) for u in managers],
            is_distributor=is_distributor,
        )
        current_domain.repository_for(Enterprise).add(enterprise)
        return enterprise

    return _create


@pytest.fixture()
def schedule_factory():
    from order_cycles.schedule.schedule import Schedule
    from protean import current_domain

    def _create(name, coordinator):
        schedule = Schedule(name=name, coordinator_id=str(coordinator.id))
        current_domain.repository_for(Schedule).add(schedule)
        return schedule

    return _create


@pytest.fixture()
def shipping_method_factory():
    from order_cycles.shipping.shipping_method import ShippingMethod
    from protean import current_domain

    def _create(name, *distributors, display_on="both"):
        method = ShippingMethod(
            name=name,
            distributor_ids=[str(d.id) for d in distributors],
            display_on=display_on,
        )
        current_domain.repository_for(ShippingMethod).add(method)
        return method

    return _create


@pytest.fixture()
def coordinator(enterprise_factory, manager):
    return enterprise_factory("Northside Food Hub", managers=[manager], is_distributor=True)
