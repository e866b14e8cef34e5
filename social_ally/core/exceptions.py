from typing import Any, Dict, Optional


class AllyError(Exception):
    """Base exception for social authentication errors"""

    status_code: int = 500
    error_code: str = "ALLY_000"

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
    ):
        self.message = message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        if error_code is not None:
            self.error_code = error_code
        super().__init__(message)

    def __str__(self) -> str:  # Ensure str(e) returns the human message
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": False,
            "error": {
                "code": self.error_code,
                "message": self.message,
                "details": self.details,
            },
        }


class ConfigurationError(AllyError):
    """Required provider configuration is missing"""

    status_code = 500
    error_code = "CONFIG_001"

    def __init__(self, message: str = "Invalid provider configuration", details: Optional[Dict] = None):
        super().__init__(message, details)

    @classmethod
    def missing_keys(cls, provider: str, keys: list) -> "ConfigurationError":
        return cls(
            f"Make sure to define {', '.join(keys)} for the {provider} provider",
            details={"provider": provider, "missing": keys},
        )


class UnknownDriverError(AllyError):
    """No driver registered under the requested name"""

    status_code = 404
    error_code = "CONFIG_002"

    def __init__(self, name: str):
        super().__init__(f"Unknown OAuth provider: {name}", details={"provider": name})


class TransportError(AllyError):
    """Outbound HTTP call could not be completed"""

    status_code = 502
    error_code = "HTTP_001"

    def __init__(self, message: str = "HTTP request failed", details: Optional[Dict] = None):
        super().__init__(message, details)


class OAuthError(AllyError):
    """OAuth flow errors"""

    status_code = 400
    error_code = "OAUTH_000"

    def __init__(self, message: str = "OAuth error", details: Optional[Dict] = None):
        super().__init__(message, details)


class TokenExchangeError(OAuthError):
    """Code-for-token (or secondary token) exchange failed"""

    error_code = "OAUTH_001"

    def __init__(
        self,
        message: str = "Failed to exchange authorization code",
        status: Optional[int] = None,
        raw: Any = None,
    ):
        self.status = status
        self.raw = raw
        details: Dict[str, Any] = {}
        if status is not None:
            details["status"] = status
        if raw is not None:
            details["raw"] = raw
        super().__init__(message, details)


class MissingCodeError(TokenExchangeError):
    """Callback did not carry an authorization code"""

    def __init__(self, message: str = "OAuth failed during redirect", raw: Any = None):
        super().__init__(message, status=None, raw=raw)


class InvalidStateError(OAuthError):
    """Returned state does not match the expected value"""

    error_code = "OAUTH_002"

    def __init__(self, message: str = "Invalid oauth state", details: Optional[Dict] = None):
        super().__init__(message, details)


class ProfileFetchError(OAuthError):
    """Profile or email resource could not be fetched"""

    status_code = 502
    error_code = "OAUTH_003"

    def __init__(
        self,
        message: str = "Failed to fetch user information",
        status: Optional[int] = None,
        raw: Any = None,
    ):
        self.status = status
        self.raw = raw
        details: Dict[str, Any] = {}
        if status is not None:
            details["status"] = status
        if raw is not None:
            details["raw"] = raw
        super().__init__(message, details)


class ProfileMappingError(OAuthError):
    """Mandatory identity fields missing from provider response"""

    status_code = 502
    error_code = "OAUTH_004"

    def __init__(self, message: str = "Provider response is missing mandatory fields", details: Optional[Dict] = None):
        super().__init__(message, details)
