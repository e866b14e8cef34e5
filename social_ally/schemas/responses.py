from pydantic import BaseModel
from typing import Optional


class Error(BaseModel):
    code: str
    message: str
    details: Optional[dict] = None


class BaseResponse(BaseModel):
    success: bool = True
    data: Optional[dict] = None
    error: Optional[Error] = None
    meta: Optional[dict] = None


class AccessTokenRequest(BaseModel):
    access_token: str
