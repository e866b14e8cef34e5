"""Provider-agnostic parts of the OAuth2 authorization-code grant.

The engine is stateless: it is parameterized by a provider's authorize and
token endpoints, its scope separator and the resolved ``ProviderConfig``.
It builds redirect URLs, performs the code-for-token exchange (and any
secondary token exchange), and classifies failed responses.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Union
from urllib.parse import quote, urlencode

from social_ally.core.exceptions import InvalidStateError, TokenExchangeError, TransportError
from social_ally.providers.transport import HttpTransport, TransportResponse
from social_ally.schemas.oauth import AccessTokenResult, ProviderConfig

logger = logging.getLogger(__name__)

REFRESH_WINDOW = timedelta(hours=24)

ERROR_MESSAGE_FIELDS = ("error_description", "error_message", "error_reason", "message", "error")
MAX_TEXT_ERROR_LENGTH = 200


def extract_error_message(
    payload: Any, fields: Iterable[str] = ERROR_MESSAGE_FIELDS
) -> Optional[str]:
    """Most specific error message found in a provider payload, if any.

    Providers disagree on where the message lives: ``error`` may be a code,
    a sentence, or an object with its own ``message``.
    """
    if isinstance(payload, str):
        return _text_error(payload)
    if not isinstance(payload, Mapping):
        return None
    for field in fields:
        value = payload.get(field)
        if isinstance(value, Mapping):
            nested = extract_error_message(value, ("message", "error_description", "error_user_msg"))
            if nested:
                return nested
        elif isinstance(value, str) and value:
            return value
    return None


def _text_error(text: str) -> Optional[str]:
    """Short plain-text bodies are messages; markup and empty bodies are not."""
    text = text.strip()
    if not text or text.startswith("<"):
        return None
    if len(text) > MAX_TEXT_ERROR_LENGTH:
        return text[:MAX_TEXT_ERROR_LENGTH].rstrip() + "..."
    return text


def validate_state(expected: Optional[str], received: Optional[str]) -> None:
    """Raise InvalidStateError when a non-empty expected state is not echoed back.

    Comparison is strict string equality. An empty ``expected`` skips the
    check altogether, which also lets providers that never echo state
    through.
    """
    if not expected:
        return
    if received != expected:
        raise InvalidStateError()


def _as_datetime(value: Union[datetime, int, float]) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return datetime.fromtimestamp(value, tz=timezone.utc)


def should_refresh(
    expires_at: Optional[Union[datetime, int, float]],
    now: Optional[Union[datetime, int, float]] = None,
) -> bool:
    """True iff the token is still valid but expires within the next 24 hours.

    Advisory only; nothing in the engine refreshes on its own.
    """
    if expires_at is None:
        return False
    expires = _as_datetime(expires_at)
    current = _as_datetime(now) if now is not None else datetime.now(timezone.utc)
    return current < expires <= current + REFRESH_WINDOW


class OAuth2Engine:
    def __init__(
        self,
        config: ProviderConfig,
        authorize_url: str,
        access_token_url: str,
        scope_separator: str,
        transport: HttpTransport,
        token_method: str = "POST",
        token_body: str = "form",
        provider: str = "oauth2",
    ):
        self.config = config
        self.authorize_url = authorize_url
        self.access_token_url = access_token_url
        self.scope_separator = scope_separator
        self.transport = transport
        self.token_method = token_method.upper()
        self.token_body = token_body
        self.provider = provider

    def join_scopes(self, scopes: Optional[Sequence[str]]) -> str:
        return self.scope_separator.join(scope for scope in (scopes or []) if scope)

    def build_redirect_url(
        self,
        redirect_uri: str,
        scopes: Optional[Sequence[str]] = None,
        extra_options: Optional[Mapping[str, Any]] = None,
        state: Optional[str] = None,
    ) -> str:
        """Absolute URL of the provider's authorization page.

        Caller supplied options win over computed defaults, except
        ``response_type`` which is always ``code``. ``state`` is passed
        through verbatim; persisting it is the caller's job.
        """
        params: Dict[str, Any] = {
            "client_id": self.config.client_id,
            "redirect_uri": redirect_uri,
            "scope": self.join_scopes(scopes),
        }
        if extra_options:
            params.update(extra_options)
        if state is not None:
            params["state"] = state
        params["response_type"] = "code"

        joiner = "&" if "?" in self.authorize_url else "?"
        return f"{self.authorize_url}{joiner}{urlencode(params, quote_via=quote)}"

    def validate_state(self, expected: Optional[str], received: Optional[str]) -> None:
        validate_state(expected, received)

    async def exchange_code_for_token(
        self,
        code: str,
        redirect_uri: str,
        extra_params: Optional[Mapping[str, Any]] = None,
    ) -> AccessTokenResult:
        """Exchange an authorization code for an access token (one call, no retry)"""
        params: Dict[str, Any] = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri,
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
        }
        if extra_params:
            params.update(extra_params)

        logger.debug(f"Exchanging authorization code with {self.provider}")
        response = await self._send(
            self.token_method, self.access_token_url, params, body=self.token_body
        )
        return self._parse_token_response(response, "Failed to exchange authorization code")

    async def exchange_token(
        self,
        url: str,
        params: Mapping[str, Any],
        method: str = "GET",
        body: str = "form",
    ) -> AccessTokenResult:
        """Secondary token call (long-lived exchange, refresh)"""
        logger.debug(f"Running secondary token exchange with {self.provider}")
        response = await self._send(method.upper(), url, dict(params), body=body)
        return self._parse_token_response(response, "Failed to exchange access token")

    async def _send(
        self, method: str, url: str, params: Dict[str, Any], body: str
    ) -> TransportResponse:
        headers = {"Accept": "application/json"}
        headers.update(self.config.headers)
        try:
            if method == "GET":
                return await self.transport.request("GET", url, params=params, headers=headers)
            if body == "json":
                return await self.transport.request(method, url, json=params, headers=headers)
            return await self.transport.request(method, url, data=params, headers=headers)
        except TransportError as e:
            raise TokenExchangeError(e.message, raw=e.details)

    def _parse_token_response(
        self, response: TransportResponse, failure_message: str
    ) -> AccessTokenResult:
        body = response.body
        if not response.ok:
            message = extract_error_message(body) or failure_message
            logger.error(
                f"{self.provider} token exchange failed with status {response.status_code}: {message}"
            )
            raise TokenExchangeError(message, status=response.status_code, raw=body)

        if not isinstance(body, Mapping) or not body.get("access_token"):
            message = extract_error_message(body) or "Invalid token response from provider"
            logger.error(f"{self.provider} token response has no access token: {message}")
            raise TokenExchangeError(message, status=response.status_code, raw=body)

        return AccessTokenResult.from_response(body)
