"""Social authentication through OAuth2 providers with normalized users."""

from social_ally.config import Settings, get_settings, validate_provider_config
from social_ally.core.exceptions import (
    AllyError,
    ConfigurationError,
    InvalidStateError,
    MissingCodeError,
    OAuthError,
    ProfileFetchError,
    ProfileMappingError,
    TokenExchangeError,
    TransportError,
    UnknownDriverError,
)
from social_ally.drivers import Driver, DriverRegistry, Provider, default_registry
from social_ally.providers.oauth2 import OAuth2Engine, should_refresh, validate_state
from social_ally.providers.transport import HttpTransport
from social_ally.schemas.oauth import (
    AccessTokenResult,
    CallbackParameters,
    NormalizedUser,
    ProviderConfig,
    TokenBundle,
)

__version__ = "0.1.0"
