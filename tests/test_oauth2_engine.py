from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlparse

import pytest

from social_ally.core.exceptions import InvalidStateError, TokenExchangeError, TransportError
from social_ally.providers.oauth2 import (
    MAX_TEXT_ERROR_LENGTH,
    OAuth2Engine,
    extract_error_message,
    should_refresh,
    validate_state,
)

AUTHORIZE_URL = "https://provider.example.com/oauth/authorize"
TOKEN_URL = "https://provider.example.com/oauth/token"


@pytest.fixture
def engine(provider_config, stub_transport):
    return OAuth2Engine(
        config=provider_config,
        authorize_url=AUTHORIZE_URL,
        access_token_url=TOKEN_URL,
        scope_separator=",",
        transport=stub_transport,
        provider="example",
    )


def _query(url: str) -> dict:
    return {k: v[0] for k, v in parse_qs(urlparse(url).query, keep_blank_values=True).items()}


class TestBuildRedirectUrl:
    def test_includes_required_parameters(self, engine, provider_config):
        url = engine.build_redirect_url(provider_config.redirect_uri, ["read", "email"])

        assert url.startswith(AUTHORIZE_URL + "?")
        query = _query(url)
        assert query["client_id"] == "client-123"
        assert query["redirect_uri"] == provider_config.redirect_uri
        assert query["response_type"] == "code"
        assert query["scope"] == "read,email"
        assert "state" not in query

    @pytest.mark.parametrize(
        "scopes, separator, expected",
        [
            (["a"], ",", "a"),
            (["a", "b", "c"], ",", "a,b,c"),
            (["r_liteprofile", "r_emailaddress"], " ", "r_liteprofile r_emailaddress"),
            (["a", "", "b"], ",", "a,b"),
        ],
    )
    def test_scopes_joined_with_separator(self, provider_config, stub_transport, scopes, separator, expected):
        engine = OAuth2Engine(provider_config, AUTHORIZE_URL, TOKEN_URL, separator, stub_transport)

        scope = _query(engine.build_redirect_url("https://cb", scopes))["scope"]

        assert scope == expected
        assert not scope.startswith(separator)
        assert not scope.endswith(separator)

    def test_empty_scopes_still_send_scope(self, engine):
        assert _query(engine.build_redirect_url("https://cb", []))["scope"] == ""

    @pytest.mark.parametrize(
        "state",
        ["abc", "with space", "a+b/c=d&e", "ünïcode-☃", "%41%20already-encoded", "x" * 64],
    )
    def test_state_round_trips_unmodified(self, engine, state):
        url = engine.build_redirect_url("https://cb", ["read"], state=state)

        returned = _query(url)["state"]

        assert returned == state
        validate_state(state, returned)

    def test_extra_options_override_defaults_except_response_type(self, engine):
        url = engine.build_redirect_url(
            "https://cb",
            ["read"],
            extra_options={"scope": "custom", "response_type": "token", "prompt": "consent"},
        )

        query = _query(url)
        assert query["scope"] == "custom"
        assert query["prompt"] == "consent"
        assert query["response_type"] == "code"

    def test_authorize_url_with_existing_query(self, provider_config, stub_transport):
        engine = OAuth2Engine(provider_config, AUTHORIZE_URL + "?tenant=1", TOKEN_URL, ",", stub_transport)

        url = engine.build_redirect_url("https://cb", ["read"])

        assert url.startswith(AUTHORIZE_URL + "?tenant=1&")
        assert _query(url)["tenant"] == "1"

    def test_no_network_call(self, engine, stub_transport):
        engine.build_redirect_url("https://cb", ["read"], state="s")

        assert stub_transport.calls == []


class TestValidateState:
    @pytest.mark.parametrize("expected", [None, ""])
    @pytest.mark.parametrize("received", [None, "", "anything"])
    def test_skipped_without_expected_state(self, expected, received):
        validate_state(expected, received)

    def test_matching_state_passes(self):
        validate_state("abc", "abc")

    @pytest.mark.parametrize("received", [None, "", "ABC", "abc ", "abd"])
    def test_mismatch_fails(self, received):
        with pytest.raises(InvalidStateError):
            validate_state("abc", received)

    def test_engine_method_delegates(self, engine):
        with pytest.raises(InvalidStateError):
            engine.validate_state("abc", "xyz")


class TestShouldRefresh:
    now = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)

    @pytest.mark.parametrize(
        "delta, expected",
        [
            (timedelta(hours=-1), False),
            (timedelta(0), False),
            (timedelta(seconds=1), True),
            (timedelta(hours=23), True),
            (timedelta(hours=24), True),
            (timedelta(hours=24, seconds=1), False),
            (timedelta(days=30), False),
        ],
    )
    def test_window(self, delta, expected):
        assert should_refresh(self.now + delta, self.now) is expected

    def test_accepts_epoch_seconds(self):
        now = self.now.timestamp()
        assert should_refresh(now + 3600, now) is True
        assert should_refresh(now - 3600, now) is False

    def test_naive_datetimes_are_utc(self):
        naive_now = self.now.replace(tzinfo=None)
        assert should_refresh(naive_now + timedelta(hours=2), self.now) is True

    def test_missing_expiry(self):
        assert should_refresh(None, self.now) is False


class TestExchangeCodeForToken:
    @pytest.mark.asyncio
    async def test_success(self, engine, stub_transport):
        stub_transport.add(
            "POST",
            TOKEN_URL,
            {"access_token": "T", "refresh_token": "R", "token_type": "bearer", "expires_in": 3600},
        )

        result = await engine.exchange_code_for_token("the-code", "https://cb", {"client_key": "k"})

        assert result.access_token == "T"
        assert result.refresh_token == "R"
        assert result.expires_in == 3600
        assert result.expires_at is not None
        assert result.raw["token_type"] == "bearer"

        call = stub_transport.calls[0]
        assert call.data == {
            "grant_type": "authorization_code",
            "code": "the-code",
            "redirect_uri": "https://cb",
            "client_id": "client-123",
            "client_secret": "secret-456",
            "client_key": "k",
        }
        assert call.headers["Accept"] == "application/json"

    @pytest.mark.asyncio
    async def test_config_headers_merged(self, stub_transport):
        from social_ally.schemas.oauth import ProviderConfig

        config = ProviderConfig(
            client_id="c", client_secret="s", redirect_uri="https://cb", headers={"X-Trace": "1"}
        )
        engine = OAuth2Engine(config, AUTHORIZE_URL, TOKEN_URL, ",", stub_transport)
        stub_transport.add("POST", TOKEN_URL, {"access_token": "T"})

        await engine.exchange_code_for_token("code", "https://cb")

        assert stub_transport.calls[0].headers["X-Trace"] == "1"

    @pytest.mark.asyncio
    async def test_json_body_and_get_method(self, provider_config, stub_transport):
        json_engine = OAuth2Engine(
            provider_config, AUTHORIZE_URL, TOKEN_URL, ",", stub_transport, token_body="json"
        )
        get_engine = OAuth2Engine(
            provider_config, AUTHORIZE_URL, TOKEN_URL, ",", stub_transport, token_method="GET"
        )
        stub_transport.add("POST", TOKEN_URL, {"access_token": "T"})
        stub_transport.add("GET", TOKEN_URL, {"access_token": "T"})

        await json_engine.exchange_code_for_token("code", "https://cb")
        await get_engine.exchange_code_for_token("code", "https://cb")

        assert stub_transport.calls[0].json["code"] == "code"
        assert stub_transport.calls[0].data is None
        assert stub_transport.calls[1].params["code"] == "code"

    @pytest.mark.asyncio
    async def test_non_success_status(self, engine, stub_transport):
        payload = {"error": "invalid_grant", "error_description": "Code expired"}
        stub_transport.add("POST", TOKEN_URL, payload, status_code=400)

        with pytest.raises(TokenExchangeError) as exc_info:
            await engine.exchange_code_for_token("code", "https://cb")

        assert exc_info.value.message == "Code expired"
        assert exc_info.value.status == 400
        assert exc_info.value.raw == payload

    @pytest.mark.asyncio
    async def test_success_status_without_access_token(self, engine, stub_transport):
        stub_transport.add("POST", TOKEN_URL, {"error": "bad_verification_code"})

        with pytest.raises(TokenExchangeError) as exc_info:
            await engine.exchange_code_for_token("code", "https://cb")

        assert exc_info.value.message == "bad_verification_code"

    @pytest.mark.asyncio
    async def test_unparseable_body(self, engine, stub_transport):
        stub_transport.add("POST", TOKEN_URL, "<html>oops</html>")

        with pytest.raises(TokenExchangeError) as exc_info:
            await engine.exchange_code_for_token("code", "https://cb")

        assert exc_info.value.message == "Invalid token response from provider"
        assert exc_info.value.raw == "<html>oops</html>"

    @pytest.mark.asyncio
    async def test_html_error_page_not_used_as_message(self, engine, stub_transport):
        page = "<!DOCTYPE html><html><body>502 Bad Gateway</body></html>"
        stub_transport.add("POST", TOKEN_URL, page, status_code=502)

        with pytest.raises(TokenExchangeError) as exc_info:
            await engine.exchange_code_for_token("code", "https://cb")

        assert "html" not in exc_info.value.message
        assert exc_info.value.status == 502
        assert exc_info.value.raw == page

    @pytest.mark.asyncio
    async def test_transport_failure_is_not_retried(self, engine, stub_transport):
        stub_transport.fail("POST", TOKEN_URL, TransportError("OAuth provider timeout"))

        with pytest.raises(TokenExchangeError) as exc_info:
            await engine.exchange_code_for_token("code", "https://cb")

        assert exc_info.value.message == "OAuth provider timeout"
        assert len(stub_transport.calls) == 1


class TestExchangeToken:
    @pytest.mark.asyncio
    async def test_secondary_exchange(self, engine, stub_transport):
        url = "https://provider.example.com/access_token"
        stub_transport.add("GET", url, {"access_token": "LONG", "expires_in": "5183944"})

        result = await engine.exchange_token(url, {"grant_type": "exchange", "access_token": "SHORT"})

        assert result.access_token == "LONG"
        assert result.expires_in == 5183944
        assert stub_transport.calls[0].params == {"grant_type": "exchange", "access_token": "SHORT"}


class TestExtractErrorMessage:
    @pytest.mark.parametrize(
        "payload, expected",
        [
            ({"error": "access_denied"}, "access_denied"),
            ({"error": "access_denied", "error_description": "User said no"}, "User said no"),
            ({"error": {"message": "Nested failure", "code": 190}}, "Nested failure"),
            ({"message": "Plain"}, "Plain"),
            ({}, None),
            (None, None),
            ("text body", "text body"),
            ("  text body\n", "text body"),
            ("", None),
            ("<html><body>Server Error</body></html>", None),
        ],
    )
    def test_variants(self, payload, expected):
        assert extract_error_message(payload) == expected

    def test_long_text_truncated(self):
        message = extract_error_message("x" * 5000)

        assert len(message) == MAX_TEXT_ERROR_LENGTH + 3
        assert message.endswith("...")
