from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import pytest

from social_ally.providers.transport import TransportResponse
from social_ally.schemas.oauth import ProviderConfig


@dataclass
class RecordedCall:
    method: str
    url: str
    params: Optional[Dict[str, Any]] = None
    data: Optional[Dict[str, Any]] = None
    json: Optional[Any] = None
    headers: Dict[str, str] = field(default_factory=dict)


class StubTransport:
    """Canned responses keyed by (method, url); records every request."""

    def __init__(self):
        self.routes: Dict[Tuple[str, str], List[Any]] = {}
        self.calls: List[RecordedCall] = []

    def add(self, method: str, url: str, body: Any = None, status_code: int = 200) -> "StubTransport":
        self.routes.setdefault((method.upper(), url), []).append(
            TransportResponse(status_code=status_code, body=body if body is not None else {})
        )
        return self

    def fail(self, method: str, url: str, error: Exception) -> "StubTransport":
        self.routes.setdefault((method.upper(), url), []).append(error)
        return self

    async def request(self, method, url, params=None, data=None, json=None, headers=None):
        self.calls.append(
            RecordedCall(
                method=method.upper(),
                url=url,
                params=dict(params) if params else None,
                data=dict(data) if data else None,
                json=json,
                headers=dict(headers or {}),
            )
        )
        queue = self.routes.get((method.upper(), url))
        if not queue:
            raise AssertionError(f"Unexpected request: {method} {url}")
        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(response, Exception):
            raise response
        return response

    def calls_to(self, url: str) -> List[RecordedCall]:
        return [call for call in self.calls if call.url == url]


@pytest.fixture
def stub_transport():
    return StubTransport()


@pytest.fixture
def provider_config():
    return ProviderConfig(
        client_id="client-123",
        client_secret="secret-456",
        redirect_uri="https://app.example.com/auth/callback",
    )
