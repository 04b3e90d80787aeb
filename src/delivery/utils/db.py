"""Schema management for relational providers (production runs on Postgres)."""

import structlog
from protean.domain import Domain
from sqlalchemy import create_engine

logger = structlog.get_logger(__name__)

RELATIONAL_PROVIDERS = ("sqlite", "postgresql")


def relational_providers(domain: Domain):
    return [
        provider
        for _, provider in domain.providers.items()
        if provider.conn_info["provider"] in RELATIONAL_PROVIDERS
    ]


def setup_db(domain: Domain) -> list[str]:
    """Create tables for every aggregate and projection. Returns the provider names set up."""
    prepared = []
    with domain.domain_context():
        for provider in relational_providers(domain):
            engine = create_engine(provider.conn_info["database_uri"])

            # Touching the DAO registers the element's model with the provider's metadata
            for registry in (domain.registry.aggregates, domain.registry.entities, domain.registry.projections):
                for record in registry.values():
                    if record.cls.meta_.provider == provider.name:
                        domain.repository_for(record.cls)._dao  # noqa: B018

            provider._metadata.create_all(engine)
            logger.info("Database schema ready", provider=provider.name)
            prepared.append(provider.name)
    return prepared


def drop_db(domain: Domain) -> list[str]:
    dropped = []
    with domain.domain_context():
        for provider in relational_providers(domain):
            engine = create_engine(provider.conn_info["database_uri"])
            provider._metadata.drop_all(engine)
            logger.info("Database schema dropped", provider=provider.name)
            dropped.append(provider.name)
    return dropped
