"""Partial, explicitly typed shapes of the provider payloads we consume.

Every field is optional; the mapping functions decide what is mandatory.
Unknown keys are kept so the untouched payload can be handed back as
``NormalizedUser.original``.
"""

from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from social_ally.core.exceptions import ProfileMappingError

ModelT = TypeVar("ModelT", bound=BaseModel)


class RawPayload(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


def parse_payload(model: Type[ModelT], raw: Any, provider: str) -> ModelT:
    """Validate a provider payload, surfacing shape errors as mapping errors."""
    try:
        return model.model_validate(raw or {})
    except ValidationError as e:
        raise ProfileMappingError(
            f"Unexpected {provider} response shape",
            details={"provider": provider, "errors": e.errors(include_url=False, include_context=False)},
        )


# GitHub


class GitHubProfile(RawPayload):
    id: Optional[int] = None
    login: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    avatar_url: Optional[str] = None


class GitHubEmail(RawPayload):
    email: Optional[str] = None
    primary: bool = False
    verified: bool = False


# LinkedIn


class LocalizedString(RawPayload):
    localized: Dict[str, str] = Field(default_factory=dict)
    preferredLocale: Optional[Dict[str, str]] = None

    def first(self) -> Optional[str]:
        """Value for the preferred locale, else the first localized variant."""
        if self.preferredLocale:
            key = "{}_{}".format(
                self.preferredLocale.get("language", ""),
                self.preferredLocale.get("country", ""),
            )
            if self.localized.get(key):
                return self.localized[key]
        for value in self.localized.values():
            if value:
                return value
        return None


class LinkedInProfile(RawPayload):
    id: Optional[str] = None
    firstName: Optional[LocalizedString] = None
    lastName: Optional[LocalizedString] = None
    localizedFirstName: Optional[str] = None
    localizedLastName: Optional[str] = None
    profilePicture: Optional[Any] = None


class LinkedInEmailHandle(RawPayload):
    type: Optional[str] = None
    primary: bool = False
    handle: Optional[Dict[str, Any]] = Field(default=None, alias="handle~")

    @property
    def email_address(self) -> Optional[str]:
        if not self.handle:
            return None
        return self.handle.get("emailAddress")


class LinkedInEmailResponse(RawPayload):
    elements: List[LinkedInEmailHandle] = Field(default_factory=list)


# Threads


class ThreadsProfile(RawPayload):
    id: Optional[str] = None
    username: Optional[str] = None
    name: Optional[str] = None
    threads_profile_picture_url: Optional[str] = None
    threads_biography: Optional[str] = None


# TikTok


class TikTokUser(RawPayload):
    open_id: Optional[str] = None
    union_id: Optional[str] = None
    avatar_url: Optional[str] = None
    display_name: Optional[str] = None
    username: Optional[str] = None


class TikTokUserData(RawPayload):
    user: Optional[TikTokUser] = None


class TikTokError(RawPayload):
    code: Optional[str] = None
    message: Optional[str] = None
    log_id: Optional[str] = None


class TikTokUserInfoResponse(RawPayload):
    data: Optional[TikTokUserData] = None
    error: Optional[TikTokError] = None
