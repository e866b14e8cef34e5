"""TikTok (Login Kit v2) provider.

TikTok names the client identifier ``client_key`` and wants it on both
the authorize redirect and the token call. The token response carries the
user's ``open_id``.
"""

from typing import Any

from social_ally.core.exceptions import ProfileFetchError
from social_ally.drivers.base import Provider, fetch_resource
from social_ally.providers.transport import HttpTransport, bearer
from social_ally.schemas.oauth import AccessTokenResult, NormalizedUser, ProviderConfig, build_user
from social_ally.schemas.profiles import TikTokUserInfoResponse, parse_payload

AUTHORIZE_URL = "https://www.tiktok.com/v2/auth/authorize/"
TOKEN_URL = "https://open.tiktokapis.com/v2/oauth/token/"
USER_INFO_URL = "https://open.tiktokapis.com/v2/user/info/"

USER_FIELDS = "open_id,union_id,avatar_url,display_name,username"


def client_key(config: ProviderConfig):
    return {"client_key": config.client_id}


async def fetch_profile(transport: HttpTransport, token: AccessTokenResult):
    body = await fetch_resource(
        transport,
        "tiktok",
        "profile",
        USER_INFO_URL,
        params={"fields": USER_FIELDS},
        headers=bearer(token.access_token),
    )

    # Errors come back with HTTP 200 and a non-"ok" error code
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict) and error.get("code") not in (None, "", "ok"):
        raise ProfileFetchError(error.get("message") or "Failed to fetch tiktok profile", raw=body)
    return body, None


def map_profile(raw: Any, _email: Any, token: AccessTokenResult) -> NormalizedUser:
    response = parse_payload(TikTokUserInfoResponse, raw, "tiktok")
    user = response.data.user if response.data and response.data.user else None

    return build_user(
        "tiktok",
        token,
        id=(user.open_id if user else None) or token.raw.get("open_id"),
        original=raw,
        nickname=user.username if user else None,
        name=user.display_name if user else None,
        avatar_url=user.avatar_url if user else None,
    )


TIKTOK = Provider(
    name="tiktok",
    authorize_url=AUTHORIZE_URL,
    access_token_url=TOKEN_URL,
    scope_separator=",",
    default_scopes=("user.info.basic", "user.info.profile"),
    fetch_profile=fetch_profile,
    map_profile=map_profile,
    error_fields=("error_description", "error"),
    redirect_extras=client_key,
    token_extras=client_key,
)
