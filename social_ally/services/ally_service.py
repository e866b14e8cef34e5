import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Optional, Union

from social_ally.config import Settings
from social_ally.core.exceptions import InvalidStateError
from social_ally.drivers.base import Driver
from social_ally.drivers.registry import DriverRegistry
from social_ally.providers.transport import HttpTransport
from social_ally.schemas.oauth import CallbackParameters, NormalizedUser
from social_ally.services.state_store import StateStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthorizationRedirect:
    url: str
    state: Optional[str]


class AllyService:
    """Redirect/callback orchestration on top of the drivers.

    Owns what the drivers deliberately leave to the host: generating the
    CSRF state, remembering it until the callback, and resolving the
    provider config by name.
    """

    def __init__(
        self,
        settings: Settings,
        registry: DriverRegistry,
        transport: HttpTransport,
        state_store: StateStore,
    ):
        self.settings = settings
        self.registry = registry
        self.transport = transport
        self.state_store = state_store

    def driver(self, name: str) -> Driver:
        return self.registry.create(name, self.settings.provider_config(name), self.transport)

    async def begin(self, name: str, stateless: bool = False) -> AuthorizationRedirect:
        driver = self.driver(name)

        state = None
        if driver.supports_state and not self._stateless(driver.name, stateless):
            state = secrets.token_urlsafe(32)
            self.state_store.save(
                state=state,
                provider=driver.name,
                expires_at=datetime.now(timezone.utc)
                + timedelta(minutes=self.settings.OAUTH_STATE_EXPIRE_MINUTES),
            )

        url = await driver.get_redirect_url(state)
        logger.info(f"Redirecting to {driver.name} authorization page")
        return AuthorizationRedirect(url=url, state=state)

    async def complete(
        self,
        name: str,
        query: Union[CallbackParameters, Mapping[str, Any]],
        stateless: bool = False,
    ) -> NormalizedUser:
        driver = self.driver(name)
        params = CallbackParameters.from_query(query)

        # Without a code the driver fails before any state is consumed
        original_state = None
        if params.code and driver.supports_state and not self._stateless(driver.name, stateless):
            original_state = self._consume_state(driver.name, params.state)

        return await driver.get_user(params, original_state)

    async def user_from_token(self, name: str, access_token: str) -> NormalizedUser:
        return await self.driver(name).get_user_by_token(access_token)

    def _stateless(self, provider: str, requested: bool) -> bool:
        """Stateless mode is a host decision: per call from code, or per provider in settings."""
        return requested or provider in self.settings.OAUTH_STATELESS_PROVIDERS

    def _consume_state(self, provider: str, state: Optional[str]) -> str:
        if not state:
            logger.warning(f"{provider} callback did not include state")
            raise InvalidStateError("Missing oauth state")

        record = self.state_store.pop(state)
        if record is None or record.provider != provider:
            logger.warning(f"{provider} callback with unknown or expired state")
            raise InvalidStateError("Invalid or expired state")
        return record.state
