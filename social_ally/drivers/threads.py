"""Threads provider.

The code exchange yields a short-lived token (about an hour); a second
call trades it for a long-lived one (60 days) which can be refreshed with
``Driver.refresh_token`` once ``should_refresh`` says so.
"""

from typing import Any

from social_ally.drivers.base import LongLivedTokenExchange, Provider, fetch_resource
from social_ally.providers.transport import HttpTransport
from social_ally.schemas.oauth import AccessTokenResult, NormalizedUser, build_user
from social_ally.schemas.profiles import ThreadsProfile, parse_payload

AUTHORIZE_URL = "https://threads.net/oauth/authorize"
TOKEN_URL = "https://graph.threads.net/oauth/access_token"
LONG_LIVED_URL = "https://graph.threads.net/access_token"
REFRESH_URL = "https://graph.threads.net/refresh_access_token"
PROFILE_URL = "https://graph.threads.net/v1.0/me"

PROFILE_FIELDS = "id,username,name,threads_profile_picture_url,threads_biography"


async def fetch_profile(transport: HttpTransport, token: AccessTokenResult):
    profile = await fetch_resource(
        transport,
        "threads",
        "profile",
        PROFILE_URL,
        params={"fields": PROFILE_FIELDS, "access_token": token.access_token},
        headers={"Accept": "application/json"},
    )
    return profile, None


def map_profile(raw: Any, _email: Any, token: AccessTokenResult) -> NormalizedUser:
    profile = parse_payload(ThreadsProfile, raw, "threads")
    return build_user(
        "threads",
        token,
        id=profile.id or token.raw.get("user_id"),
        original=raw,
        nickname=profile.username,
        name=profile.name,
        avatar_url=profile.threads_profile_picture_url,
    )


THREADS = Provider(
    name="threads",
    authorize_url=AUTHORIZE_URL,
    access_token_url=TOKEN_URL,
    scope_separator=",",
    default_scopes=("threads_basic",),
    fetch_profile=fetch_profile,
    map_profile=map_profile,
    error_fields=("error_description", "error_message", "error_reason", "error"),
    long_lived=LongLivedTokenExchange(
        exchange_url=LONG_LIVED_URL,
        grant_type="th_exchange_token",
        refresh_url=REFRESH_URL,
        refresh_grant_type="th_refresh_token",
    ),
)
