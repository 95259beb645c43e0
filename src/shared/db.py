"""Create and drop the relational schema behind a domain's providers.

Only providers backed by an RDBMS are touched; the memory provider used in
development and tests has no schema.
"""

from protean.domain import Domain
from sqlalchemy import create_engine

RDBMS_PROVIDERS = ("sqlite", "postgresql")


def _register_models(domain: Domain, provider) -> None:
    # Accessing a repository's DAO registers the record's table with SQLAlchemy
    records = (
        list(domain.registry.aggregates.values())
        + list(domain.registry.entities.values())
        + list(domain.registry.projections.values())
    )
    for record in records:
        if record.cls.meta_.provider == provider.name:
            domain.repository_for(record.cls)._dao  # noqa: B018


def setup_db(domain: Domain) -> list[str]:
    """Create tables for every RDBMS provider. Returns the provider names handled."""
    handled = []
    with domain.domain_context():
        for name, provider in domain.providers.items():
            if provider.conn_info["provider"] not in RDBMS_PROVIDERS:
                continue
            engine = create_engine(provider.conn_info["database_uri"])
            _register_models(domain, provider)
            provider._metadata.create_all(engine)
            handled.append(name)
    return handled


def drop_db(domain: Domain) -> list[str]:
    handled = []
    with domain.domain_context():
        for name, provider in domain.providers.items():
            if provider.conn_info["provider"] not in RDBMS_PROVIDERS:
                continue
            engine = create_engine(provider.conn_info["database_uri"])
            provider._metadata.drop_all(engine)
            handled.append(name)
    return handled
