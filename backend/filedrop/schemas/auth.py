"""Admin auth request/response schemas."""
from typing import Optional
from filedrop.schemas.base import CamelModel


class VerifyRequest(CamelModel):
    password: Optional[str] = None


class VerifyResponse(CamelModel):
    success: bool = True
    expires_at: int


class SessionCheckResponse(CamelModel):
    authenticated: bool
