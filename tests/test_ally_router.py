import pytest
from dependency_injector import providers
from fastapi.testclient import TestClient

from social_ally.config import Settings
from social_ally.core.exceptions import InvalidStateError, MissingCodeError, UnknownDriverError
from social_ally.drivers import default_registry, github
from social_ally.main import app
from social_ally.schemas.oauth import NormalizedUser, TokenBundle
from social_ally.services.ally_service import AllyService, AuthorizationRedirect
from social_ally.services.state_store import InMemoryStateStore


def _user(provider: str) -> NormalizedUser:
    return NormalizedUser(
        provider=provider,
        id="42",
        nickname="alice",
        original={"id": "42", "username": "alice"},
        token=TokenBundle(access_token="T", token_expiry=3600),
    )


class FakeAllyService:
    def __init__(self):
        self.completed = []

    async def begin(self, name: str):
        if name == "myspace":
            raise UnknownDriverError(name)
        state = "generated-state"
        return AuthorizationRedirect(url=f"https://{name}.example.com/authorize?state={state}", state=state)

    async def complete(self, name: str, query):
        self.completed.append((name, dict(query)))
        if not query.get("code"):
            raise MissingCodeError(query.get("error") or "OAuth failed during redirect")
        if query.get("state") != "generated-state":
            raise InvalidStateError("Invalid or expired state")
        return _user(name)

    async def user_from_token(self, name: str, access_token: str):
        return _user(name)


@pytest.fixture
def fake_service():
    return FakeAllyService()


@pytest.fixture(autouse=True)
def patch_ally_service(fake_service):
    container = app.container  # type: ignore
    container.services.ally_service.override(providers.Object(fake_service))
    yield
    container.services.ally_service.reset_override()


client = TestClient(app)


def test_redirect():
    res = client.get("/auth/github/redirect", follow_redirects=False)
    assert res.status_code == 307
    assert res.headers["location"] == "https://github.example.com/authorize?state=generated-state"


def test_redirect_unknown_provider():
    res = client.get("/auth/myspace/redirect", follow_redirects=False)
    assert res.status_code == 404
    body = res.json()
    assert body["success"] is False
    assert body["error"]["code"] == "CONFIG_002"


def test_callback_success(fake_service):
    res = client.get("/auth/github/callback", params={"code": "c", "state": "generated-state"})
    assert res.status_code == 200
    body = res.json()
    assert body["success"] is True
    assert body["data"]["user"]["id"] == "42"
    assert body["data"]["user"]["token"]["access_token"] == "T"
    assert body["data"]["user"]["email"] is None
    assert fake_service.completed == [("github", {"code": "c", "state": "generated-state"})]


def test_callback_state_mismatch():
    res = client.get("/auth/github/callback", params={"code": "c", "state": "forged"})
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "OAUTH_002"


def test_callback_provider_error():
    res = client.get("/auth/github/callback", params={"error": "access_denied"})
    assert res.status_code == 400
    body = res.json()
    assert body["error"]["code"] == "OAUTH_001"
    assert body["error"]["message"] == "access_denied"


def test_callback_query_cannot_disable_state_check(stub_transport):
    stub_transport.add("POST", github.TOKEN_URL, {"access_token": "ATTACKER"})
    stub_transport.add("GET", github.USER_URL, {"id": 666, "login": "mallory"})
    settings = Settings(
        _env_file=None,
        GITHUB_CLIENT_ID="gh-client",
        GITHUB_CLIENT_SECRET="gh-secret",
        GITHUB_REDIRECT_URI="https://app.example.com/auth/github/callback",
    )
    service = AllyService(settings, default_registry(), stub_transport, InMemoryStateStore())
    app.container.services.ally_service.override(providers.Object(service))  # type: ignore

    res = client.get("/auth/github/callback", params={"code": "attacker-code", "stateless": "true"})

    assert res.status_code == 400
    assert res.json()["error"]["code"] == "OAUTH_002"
    assert stub_transport.calls == []


def test_user_from_token():
    res = client.post("/auth/threads/token", json={"access_token": "T"})
    assert res.status_code == 200
    assert res.json()["data"]["user"]["provider"] == "threads"


def test_user_from_token_requires_body():
    res = client.post("/auth/threads/token", json={})
    assert res.status_code == 422
    assert res.json()["error"]["code"] == "VALIDATION_001"


def test_health():
    assert client.get("/health").json() == {"status": "ok"}
