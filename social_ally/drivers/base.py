import logging
from dataclasses import dataclass
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Mapping,
    Optional,
    Tuple,
    Union,
)

from social_ally.config import validate_provider_config
from social_ally.core.exceptions import (
    MissingCodeError,
    ProfileFetchError,
    ProfileMappingError,
    TransportError,
)
from social_ally.providers.oauth2 import OAuth2Engine, extract_error_message, validate_state
from social_ally.providers.transport import HttpTransport
from social_ally.schemas.oauth import (
    AccessTokenResult,
    CallbackParameters,
    NormalizedUser,
    ProviderConfig,
)

logger = logging.getLogger(__name__)

DEFAULT_REDIRECT_ERROR = "OAuth failed during redirect"

FetchProfile = Callable[[HttpTransport, AccessTokenResult], Awaitable[Tuple[Any, Optional[Any]]]]
MapProfile = Callable[[Any, Optional[Any], AccessTokenResult], NormalizedUser]
ConfigParams = Callable[[ProviderConfig], Dict[str, str]]


@dataclass(frozen=True)
class LongLivedTokenExchange:
    """Second round trip turning a short-lived token into a long-lived one."""

    exchange_url: str
    grant_type: str
    refresh_url: Optional[str] = None
    refresh_grant_type: Optional[str] = None
    method: str = "GET"


@dataclass(frozen=True)
class Provider:
    """Everything that differs between two OAuth2 providers."""

    name: str
    authorize_url: str
    access_token_url: str
    scope_separator: str
    default_scopes: Tuple[str, ...]
    fetch_profile: FetchProfile
    map_profile: MapProfile
    error_fields: Tuple[str, ...] = ("error_description", "error")
    redirect_extras: Optional[ConfigParams] = None
    token_extras: Optional[ConfigParams] = None
    token_method: str = "POST"
    token_body: str = "form"
    long_lived: Optional[LongLivedTokenExchange] = None
    supports_state: bool = True


async def fetch_resource(
    transport: HttpTransport,
    provider: str,
    resource: str,
    url: str,
    params: Optional[Mapping[str, Any]] = None,
    headers: Optional[Mapping[str, str]] = None,
    method: str = "GET",
) -> Any:
    """GET (by default) a provider resource, raising ProfileFetchError on failure"""
    try:
        response = await transport.request(method, url, params=params, headers=headers)
    except TransportError as e:
        raise ProfileFetchError(f"{provider} {resource} request failed: {e.message}", raw=e.details)

    if not response.ok:
        message = extract_error_message(response.body) or f"Failed to fetch {provider} {resource}"
        logger.error(f"{provider} {resource} fetch failed with status {response.status_code}: {message}")
        raise ProfileFetchError(message, status=response.status_code, raw=response.body)
    return response.body


class Driver:
    """Binds the OAuth2 engine to one provider and produces NormalizedUser records.

    Holds only immutable configuration, so a single instance can serve
    concurrent callbacks.
    """

    def __init__(
        self,
        provider: Provider,
        config: Union[ProviderConfig, Mapping[str, Any]],
        transport: HttpTransport,
    ):
        self.provider = provider
        self.config = validate_provider_config(provider.name, config)
        self.transport = transport

        self.scope = list(self.config.scope) or list(provider.default_scopes)
        self.redirect_options = {"response_type": "code", **self.config.options}

        self.engine = OAuth2Engine(
            config=self.config,
            authorize_url=provider.authorize_url,
            access_token_url=provider.access_token_url,
            scope_separator=provider.scope_separator,
            transport=transport,
            token_method=provider.token_method,
            token_body=provider.token_body,
            provider=provider.name,
        )

    @property
    def name(self) -> str:
        return self.provider.name

    @property
    def supports_state(self) -> bool:
        return self.provider.supports_state

    async def get_redirect_url(self, state: Optional[str] = None) -> str:
        options = dict(self.redirect_options)
        if self.provider.redirect_extras:
            options.update(self.provider.redirect_extras(self.config))
        return self.engine.build_redirect_url(
            self.config.redirect_uri, self.scope, options, state=state
        )

    def parse_redirect_error(
        self, callback_params: Union[CallbackParameters, Mapping[str, Any]]
    ) -> str:
        params = CallbackParameters.from_query(callback_params)
        payload = params.model_dump(exclude_none=True)
        return extract_error_message(payload, self.provider.error_fields) or DEFAULT_REDIRECT_ERROR

    async def get_user(
        self,
        callback_params: Union[CallbackParameters, Mapping[str, Any]],
        original_state: Optional[str] = None,
    ) -> NormalizedUser:
        """Turn the provider callback into a normalized user.

        Any failure aborts the whole call; no partial user is returned.
        """
        params = CallbackParameters.from_query(callback_params)

        if not params.code:
            message = self.parse_redirect_error(params)
            logger.warning(f"{self.name} callback without code: {message}")
            raise MissingCodeError(message, raw=params.model_dump(exclude_none=True))

        if self.supports_state:
            validate_state(original_state, params.state)

        token = await self.engine.exchange_code_for_token(
            params.code, self.config.redirect_uri, self._token_extras()
        )

        if self.provider.long_lived:
            token = await self.exchange_long_lived_token(token)

        return await self._user_from_token(token)

    async def get_user_by_token(self, access_token: str) -> NormalizedUser:
        if not access_token:
            raise ProfileMappingError(
                "An access token is required", details={"provider": self.name, "field": "access_token"}
            )
        return await self._user_from_token(AccessTokenResult.from_access_token(access_token))

    async def exchange_long_lived_token(self, token: AccessTokenResult) -> AccessTokenResult:
        exchange = self.provider.long_lived
        if exchange is None:
            return token

        long_lived = await self.engine.exchange_token(
            exchange.exchange_url,
            {
                "grant_type": exchange.grant_type,
                "client_secret": self.config.client_secret,
                "access_token": token.access_token,
            },
            method=exchange.method,
        )
        # Short-lived payload may carry identifiers the long-lived one lacks
        return long_lived.model_copy(update={"raw": {**token.raw, **long_lived.raw}})

    async def refresh_token(self, token: str) -> AccessTokenResult:
        """Refresh a token; callers decide when, e.g. via should_refresh()"""
        exchange = self.provider.long_lived
        if exchange and exchange.refresh_url:
            return await self.engine.exchange_token(
                exchange.refresh_url,
                {"grant_type": exchange.refresh_grant_type, "access_token": token},
                method=exchange.method,
            )

        params = {
            "grant_type": "refresh_token",
            "refresh_token": token,
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
        }
        params.update(self._token_extras())
        return await self.engine.exchange_token(
            self.provider.access_token_url, params, method="POST", body=self.provider.token_body
        )

    def _token_extras(self) -> Dict[str, str]:
        if self.provider.token_extras:
            return self.provider.token_extras(self.config)
        return {}

    async def _user_from_token(self, token: AccessTokenResult) -> NormalizedUser:
        try:
            raw_profile, raw_email = await self.provider.fetch_profile(self.transport, token)
        except TransportError as e:
            raise ProfileFetchError(e.message, raw=e.details)

        user = self.provider.map_profile(raw_profile, raw_email, token)
        logger.info(f"Resolved {self.name} user {user.id}")
        return user
