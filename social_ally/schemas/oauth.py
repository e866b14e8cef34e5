from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from social_ally.core.exceptions import ProfileMappingError, TokenExchangeError


def _to_int(value: Any) -> Optional[int]:
    """Providers send expiry as int, float or numeric string."""
    if value is None or value == "":
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


class ProviderConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    client_id: str
    client_secret: str
    redirect_uri: str
    scope: List[str] = Field(default_factory=list)
    options: Dict[str, str] = Field(default_factory=dict)
    headers: Dict[str, str] = Field(default_factory=dict)


class AuthorizationRequest(BaseModel):
    redirect_uri: str
    scopes: List[str] = Field(default_factory=list)
    state: Optional[str] = None
    extra_options: Dict[str, str] = Field(default_factory=dict)


class CallbackParameters(BaseModel):
    """Query parameters the provider sends back to the redirect URI."""

    model_config = ConfigDict(extra="allow")

    code: Optional[str] = None
    state: Optional[str] = None
    error: Optional[Any] = None
    error_description: Optional[str] = None
    error_message: Optional[str] = None

    @classmethod
    def from_query(cls, query: "Mapping[str, Any] | CallbackParameters") -> "CallbackParameters":
        if isinstance(query, CallbackParameters):
            return query
        return cls(**dict(query))

    def get(self, key: str, default: Any = None) -> Any:
        value = getattr(self, key, None)
        if value is None and self.model_extra:
            value = self.model_extra.get(key)
        return default if value is None else value


class AccessTokenResult(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    token_type: Optional[str] = None
    expires_in: Optional[int] = None
    expires_at: Optional[datetime] = None
    refresh_expires_in: Optional[int] = None
    raw: Dict[str, Any] = Field(default_factory=dict, description="Provider raw payload")

    @classmethod
    def from_response(
        cls, raw: Mapping[str, Any], now: Optional[datetime] = None
    ) -> "AccessTokenResult":
        access_token = raw.get("access_token") if raw else None
        if not access_token:
            raise TokenExchangeError(
                "Invalid token response from provider", raw=dict(raw or {})
            )

        expires_in = _to_int(raw.get("expires_in"))
        expires_at = None
        if expires_in is not None:
            expires_at = (now or datetime.now(timezone.utc)) + timedelta(seconds=expires_in)

        refresh_token = raw.get("refresh_token")
        token_type = raw.get("token_type")
        return cls(
            access_token=str(access_token),
            refresh_token=str(refresh_token) if refresh_token else None,
            token_type=str(token_type) if token_type else None,
            expires_in=expires_in,
            expires_at=expires_at,
            refresh_expires_in=_to_int(raw.get("refresh_expires_in")),
            raw=dict(raw),
        )

    @classmethod
    def from_access_token(cls, access_token: str) -> "AccessTokenResult":
        return cls(access_token=access_token, raw={})


class TokenBundle(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    refresh_token_expiry: Optional[int] = None
    token_expiry: Optional[int] = None

    @field_validator("access_token")
    @classmethod
    def access_token_required(cls, value: str) -> str:
        if not value:
            raise ValueError("access_token must not be empty")
        return value

    @classmethod
    def from_result(cls, token: AccessTokenResult) -> "TokenBundle":
        return cls(
            access_token=token.access_token,
            refresh_token=token.refresh_token,
            refresh_token_expiry=token.refresh_expires_in,
            token_expiry=token.expires_in,
        )


class NormalizedUser(BaseModel):
    provider: str
    id: str
    nickname: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    avatar_url: Optional[str] = None
    original: Any = None
    token: TokenBundle


def build_user(
    provider: str,
    token: AccessTokenResult,
    id: Any,
    original: Any = None,
    nickname: Optional[str] = None,
    name: Optional[str] = None,
    email: Optional[str] = None,
    avatar_url: Optional[str] = None,
) -> NormalizedUser:
    """Assemble a NormalizedUser, rejecting responses without identity."""
    if id is None or str(id) == "":
        raise ProfileMappingError(
            f"{provider} profile did not include a user id",
            details={"provider": provider, "field": "id"},
        )
    if token is None or not token.access_token:
        raise ProfileMappingError(
            f"{provider} token response did not include an access token",
            details={"provider": provider, "field": "access_token"},
        )

    return NormalizedUser(
        provider=provider,
        id=str(id),
        nickname=nickname or None,
        name=name or None,
        email=email or None,
        avatar_url=avatar_url or None,
        original=original,
        token=TokenBundle.from_result(token),
    )
