import logging
from typing import Any

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import RedirectResponse

from social_ally.containers import Container
from social_ally.schemas.oauth import NormalizedUser
from social_ally.schemas.responses import AccessTokenRequest, BaseResponse
from social_ally.services.ally_service import AllyService

router = APIRouter(prefix="/auth", tags=["social-auth"])
logger = logging.getLogger(__name__)


def _user_payload(user: NormalizedUser) -> dict:
    return {"user": user.model_dump(mode="json")}


@router.get("/{provider}/redirect")
@inject
async def redirect(
    provider: str,
    ally_service: AllyService = Depends(Provide[Container.services.ally_service]),
):
    """Redirects the user agent to the provider's authorization page."""
    result = await ally_service.begin(provider)
    return RedirectResponse(url=result.url, status_code=status.HTTP_307_TEMPORARY_REDIRECT)


@router.get("/{provider}/callback", response_model=BaseResponse)
@inject
async def callback(
    request: Request,
    provider: str,
    ally_service: AllyService = Depends(Provide[Container.services.ally_service]),
) -> Any:
    """Provider redirects here. Exchange code -> token -> normalized user."""
    user = await ally_service.complete(provider, dict(request.query_params))
    return BaseResponse(success=True, data=_user_payload(user))


@router.post("/{provider}/token", response_model=BaseResponse)
@inject
async def user_from_token(
    provider: str,
    body: AccessTokenRequest,
    ally_service: AllyService = Depends(Provide[Container.services.ally_service]),
) -> Any:
    """Resolve a user from an access token obtained elsewhere."""
    user = await ally_service.user_from_token(provider, body.access_token)
    return BaseResponse(success=True, data=_user_payload(user))
