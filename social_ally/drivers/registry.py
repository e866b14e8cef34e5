import logging
from functools import partial
from typing import Any, Callable, Dict, List, Mapping, Union

from social_ally.core.exceptions import UnknownDriverError
from social_ally.drivers.base import Driver, Provider
from social_ally.providers.transport import HttpTransport
from social_ally.schemas.oauth import ProviderConfig

logger = logging.getLogger(__name__)

DriverFactory = Callable[[Union[ProviderConfig, Mapping[str, Any]], HttpTransport], Driver]


class DriverRegistry:
    """Name -> driver factory mapping owned by the hosting application."""

    def __init__(self):
        self._factories: Dict[str, DriverFactory] = {}

    def register(self, name: str, factory: DriverFactory) -> None:
        key = name.lower()
        if key in self._factories:
            logger.warning(f"Replacing driver registered as {key}")
        self._factories[key] = factory

    def register_provider(self, provider: Provider) -> None:
        self.register(provider.name, partial(Driver, provider))

    def names(self) -> List[str]:
        return sorted(self._factories)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._factories

    def create(
        self,
        name: str,
        config: Union[ProviderConfig, Mapping[str, Any]],
        transport: HttpTransport,
    ) -> Driver:
        factory = self._factories.get(name.lower())
        if factory is None:
            raise UnknownDriverError(name)
        return factory(config, transport)
