"""LinkedIn provider.

Identity and contact data live on separate resources: the profile comes
from ``/v2/me`` and the email address from ``clientAwareMemberHandles``.
Names are localized maps; we pick the preferred locale or the first
variant.
"""

from typing import Any, Optional

from social_ally.drivers.base import Provider, fetch_resource
from social_ally.providers.transport import HttpTransport, bearer
from social_ally.schemas.oauth import AccessTokenResult, NormalizedUser, build_user
from social_ally.schemas.profiles import (
    LinkedInEmailResponse,
    LinkedInProfile,
    LocalizedString,
    parse_payload,
)

AUTHORIZE_URL = "https://www.linkedin.com/oauth/v2/authorization"
TOKEN_URL = "https://www.linkedin.com/oauth/v2/accessToken"

PROFILE_URL = (
    "https://api.linkedin.com/v2/me?projection=("
    "id,firstName,lastName,localizedFirstName,localizedLastName,"
    "profilePicture(displayImage~:playableStreams))"
)
EMAIL_URL = (
    "https://api.linkedin.com/v2/clientAwareMemberHandles"
    "?q=members&projection=(elements*(primary,type,handle~))"
)


async def fetch_profile(transport: HttpTransport, token: AccessTokenResult):
    headers = bearer(token.access_token, {"x-li-format": "json"})
    profile = await fetch_resource(transport, "linkedin", "profile", PROFILE_URL, headers=headers)
    email = await fetch_resource(transport, "linkedin", "email", EMAIL_URL, headers=headers)
    return profile, email


def _localized(value: Optional[LocalizedString], fallback: Optional[str]) -> Optional[str]:
    if value is not None:
        picked = value.first()
        if picked:
            return picked
    return fallback


def avatar_url(profile_picture: Any) -> Optional[str]:
    """Largest rendition of the display image, if the projection included it"""
    if not isinstance(profile_picture, dict):
        return None
    display_image = profile_picture.get("displayImage~")
    if not isinstance(display_image, dict):
        return None
    elements = display_image.get("elements")
    if not isinstance(elements, list):
        return None
    for element in reversed(elements):
        identifiers = element.get("identifiers") if isinstance(element, dict) else None
        if not isinstance(identifiers, list):
            continue
        for identifier in identifiers:
            value = identifier.get("identifier") if isinstance(identifier, dict) else None
            if isinstance(value, str) and value:
                return value
    return None


def primary_email(raw_email: Any) -> Optional[str]:
    if not raw_email:
        return None
    handles = parse_payload(LinkedInEmailResponse, raw_email, "linkedin").elements
    emails = [h for h in handles if h.type == "EMAIL" and h.email_address]
    for handle in emails:
        if handle.primary:
            return handle.email_address
    return emails[0].email_address if emails else None


def map_profile(raw: Any, raw_email: Any, token: AccessTokenResult) -> NormalizedUser:
    profile = parse_payload(LinkedInProfile, raw, "linkedin")
    first_name = _localized(profile.firstName, profile.localizedFirstName)
    last_name = _localized(profile.lastName, profile.localizedLastName)
    full_name = " ".join(part for part in (first_name, last_name) if part)

    return build_user(
        "linkedin",
        token,
        id=profile.id,
        original=raw,
        nickname=first_name,
        name=full_name,
        email=primary_email(raw_email),
        avatar_url=avatar_url(profile.profilePicture),
    )


LINKEDIN = Provider(
    name="linkedin",
    authorize_url=AUTHORIZE_URL,
    access_token_url=TOKEN_URL,
    scope_separator=" ",
    default_scopes=("r_liteprofile", "r_emailaddress"),
    fetch_profile=fetch_profile,
    map_profile=map_profile,
    error_fields=("error_description", "error"),
)
