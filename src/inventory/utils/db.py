"""Schema management for relational providers (PostgreSQL, SQLite).

The memory provider used in development and tests needs no schema; these
helpers only act on providers backed by a database URI.
"""

from protean.domain import Domain
from sqlalchemy import create_engine

_RELATIONAL_PROVIDERS = ("sqlite", "postgresql")


def _relational_providers(domain: Domain):
    for _, provider in domain.providers.items():
        if provider.conn_info["provider"] in _RELATIONAL_PROVIDERS:
            yield provider


def _register_tables(domain: Domain, provider) -> None:
    """Touch each repository's DAO so its table is registered on the provider's metadata."""
    registries = (
        domain.registry.aggregates,
        domain.registry.entities,
        domain.registry.projections,
    )
    for registry in registries:
        for _, element in registry.items():
            if element.cls.meta_.provider == provider.name:
                domain.repository_for(element.cls)._dao  # noqa: B018


def setup_db(domain: Domain) -> list[str]:
    """Create the ledger, reservation, movement and read-model tables."""
    created = []
    with domain.domain_context():
        for provider in _relational_providers(domain):
            engine = create_engine(provider.conn_info["database_uri"])
            _register_tables(domain, provider)
            provider._metadata.create_all(engine)
            created.append(provider.name)
    return created


def drop_db(domain: Domain) -> list[str]:
    dropped = []
    with domain.domain_context():
        for provider in _relational_providers(domain):
            engine = create_engine(provider.conn_info["database_uri"])
            _register_tables(domain, provider)
            provider._metadata.drop_all(engine)
            dropped.append(provider.name)
    return dropped
