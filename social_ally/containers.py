from dependency_injector import containers, providers

from social_ally.config import Settings
from social_ally.drivers import default_registry
from social_ally.providers.transport import HttpTransport
from social_ally.services.ally_service import AllyService
from social_ally.services.state_store import InMemoryStateStore


class ConfigModule(containers.DeclarativeContainer):
    """Application configuration."""

    config = providers.Singleton(Settings)


class ClientModule(containers.DeclarativeContainer):
    """Outbound HTTP, driver lookup and OAuth state storage."""

    config = providers.DependenciesContainer()

    transport = providers.Singleton(
        HttpTransport, timeout=config.config.provided.HTTP_TIMEOUT_SECONDS
    )
    registry = providers.Singleton(default_registry)
    state_store = providers.Singleton(InMemoryStateStore)


class ServiceModule(containers.DeclarativeContainer):
    """Service layer dependencies."""

    config = providers.DependenciesContainer()
    clients = providers.DependenciesContainer()

    ally_service = providers.Factory(
        AllyService,
        settings=config.config,
        registry=clients.registry,
        transport=clients.transport,
        state_store=clients.state_store,
    )


class Container(containers.DeclarativeContainer):
    """Application container."""

    wiring_config = containers.WiringConfiguration(
        modules=[
            "social_ally.routers.ally_router",
        ],
    )

    config = providers.Container(ConfigModule)
    clients = providers.Container(ClientModule, config=config)
    services = providers.Container(
        ServiceModule, config=config, clients=clients
    )
