"""GitHub OAuth 2.0 provider."""

from typing import Any, Optional

from social_ally.drivers.base import Provider, fetch_resource
from social_ally.providers.transport import HttpTransport, bearer
from social_ally.schemas.oauth import AccessTokenResult, NormalizedUser, build_user
from social_ally.schemas.profiles import GitHubEmail, GitHubProfile, parse_payload

AUTHORIZE_URL = "https://github.com/login/oauth/authorize"
TOKEN_URL = "https://github.com/login/oauth/access_token"
USER_URL = "https://api.github.com/user"
EMAILS_URL = "https://api.github.com/user/emails"


async def fetch_profile(transport: HttpTransport, token: AccessTokenResult):
    headers = bearer(token.access_token)
    profile = await fetch_resource(transport, "github", "profile", USER_URL, headers=headers)

    # Private emails are only listed on the emails resource
    emails = None
    if not (isinstance(profile, dict) and profile.get("email")):
        emails = await fetch_resource(transport, "github", "email", EMAILS_URL, headers=headers)
    return profile, emails


def primary_email(emails: Any) -> Optional[str]:
    """Primary verified email, else primary, else nothing"""
    if not isinstance(emails, list):
        return None
    entries = [parse_payload(GitHubEmail, e, "github") for e in emails if isinstance(e, dict)]
    for entry in entries:
        if entry.primary and entry.verified and entry.email:
            return entry.email
    for entry in entries:
        if entry.primary and entry.email:
            return entry.email
    return None


def map_profile(raw: Any, emails: Any, token: AccessTokenResult) -> NormalizedUser:
    profile = parse_payload(GitHubProfile, raw, "github")
    return build_user(
        "github",
        token,
        id=profile.id,
        original=raw,
        nickname=profile.login,
        name=profile.name or profile.login,
        email=profile.email or primary_email(emails),
        avatar_url=profile.avatar_url,
    )


GITHUB = Provider(
    name="github",
    authorize_url=AUTHORIZE_URL,
    access_token_url=TOKEN_URL,
    scope_separator=" ",
    default_scopes=("user:email",),
    fetch_profile=fetch_profile,
    map_profile=map_profile,
    error_fields=("error_description", "error"),
)
