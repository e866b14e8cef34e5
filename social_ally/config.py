from functools import lru_cache
from typing import Any, Dict, List, Mapping, Union

from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from social_ally.core.exceptions import ConfigurationError
from social_ally.schemas.oauth import ProviderConfig

REQUIRED_PROVIDER_KEYS = ("client_id", "client_secret", "redirect_uri")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="allow",
    )
    # Application
    APP_NAME: str = "Social Ally"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Outbound HTTP
    HTTP_TIMEOUT_SECONDS: float = 30.0

    # OAuth state
    OAUTH_STATE_EXPIRE_MINUTES: int = 10
    # Providers whose callbacks skip the state check, e.g. ["tiktok"]
    OAUTH_STATELESS_PROVIDERS: List[str] = []

    # GitHub
    GITHUB_CLIENT_ID: str = ""
    GITHUB_CLIENT_SECRET: str = ""
    GITHUB_REDIRECT_URI: str = ""
    GITHUB_SCOPE: List[str] = []
    GITHUB_OPTIONS: Dict[str, str] = {}
    GITHUB_HEADERS: Dict[str, str] = {}

    # LinkedIn
    LINKEDIN_CLIENT_ID: str = ""
    LINKEDIN_CLIENT_SECRET: str = ""
    LINKEDIN_REDIRECT_URI: str = ""
    LINKEDIN_SCOPE: List[str] = []
    LINKEDIN_OPTIONS: Dict[str, str] = {}
    LINKEDIN_HEADERS: Dict[str, str] = {}

    # Threads
    THREADS_CLIENT_ID: str = ""
    THREADS_CLIENT_SECRET: str = ""
    THREADS_REDIRECT_URI: str = ""
    THREADS_SCOPE: List[str] = []
    THREADS_OPTIONS: Dict[str, str] = {}
    THREADS_HEADERS: Dict[str, str] = {}

    # TikTok
    TIKTOK_CLIENT_ID: str = ""
    TIKTOK_CLIENT_SECRET: str = ""
    TIKTOK_REDIRECT_URI: str = ""
    TIKTOK_SCOPE: List[str] = []
    TIKTOK_OPTIONS: Dict[str, str] = {}
    TIKTOK_HEADERS: Dict[str, str] = {}

    def provider_values(self, provider: str) -> Dict[str, Any]:
        """Collect the <PROVIDER>_* settings into provider config keys"""
        prefix = provider.upper()
        values: Dict[str, Any] = {}
        for key in ("client_id", "client_secret", "redirect_uri", "scope", "options", "headers"):
            value = getattr(self, f"{prefix}_{key.upper()}", None)
            if value is not None:
                values[key] = value
        return values

    def provider_config(self, provider: str) -> ProviderConfig:
        return validate_provider_config(provider, self.provider_values(provider))


def validate_provider_config(
    provider: str, values: Union[ProviderConfig, Mapping[str, Any], None]
) -> ProviderConfig:
    """Make sure the provider config has every required key.

    Raises ConfigurationError naming the missing keys; no flow is attempted
    with an incomplete config.
    """
    if isinstance(values, ProviderConfig):
        values = values.model_dump()
    values = dict(values or {})

    missing = [key for key in REQUIRED_PROVIDER_KEYS if not values.get(key)]
    if missing:
        raise ConfigurationError.missing_keys(provider, missing)

    try:
        return ProviderConfig(
            client_id=values["client_id"],
            client_secret=values["client_secret"],
            redirect_uri=values["redirect_uri"],
            scope=list(values.get("scope") or []),
            options=dict(values.get("options") or {}),
            headers=dict(values.get("headers") or {}),
        )
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid configuration for the {provider} provider",
            details={"provider": provider, "errors": e.errors(include_url=False, include_context=False)},
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
