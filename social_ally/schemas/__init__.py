from .oauth import (
    AccessTokenResult,
    AuthorizationRequest,
    CallbackParameters,
    NormalizedUser,
    ProviderConfig,
    TokenBundle,
    build_user,
)
from .responses import AccessTokenRequest, BaseResponse, Error
