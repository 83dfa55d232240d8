"""Admin auth routes: login, session check, logout."""
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.responses import JSONResponse

from filedrop.dependencies import SESSION_COOKIE, get_services
from filedrop.schemas.auth import SessionCheckResponse, VerifyRequest, VerifyResponse
from filedrop.schemas.common import SuccessResponse
from filedrop.services.container import Services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/verify", response_model=VerifyResponse)
async def verify(body: VerifyRequest, response: Response, services: Services = Depends(get_services)):
    """Check the admin password and open a session cookie."""
    if not body.password:
        raise HTTPException(status_code=400, detail="Password is required")

    session = services.auth.login(body.password)
    if session is None:
        raise HTTPException(status_code=401, detail="Wrong password")

    token, expires_at = session
    response.set_cookie(
        SESSION_COOKIE,
        token,
        max_age=int(services.auth.sessions.ttl_ms / 1000),
        httponly=True,
        samesite="lax",
    )
    return VerifyResponse(expires_at=expires_at)


@router.get("/check", response_model=SessionCheckResponse)
async def check(request: Request, services: Services = Depends(get_services)):
    """200 with an active session, 401 otherwise."""
    if services.auth.check_session(request.cookies.get(SESSION_COOKIE)):
        return SessionCheckResponse(authenticated=True)
    response = JSONResponse(status_code=401, content={"authenticated": False})
    response.delete_cookie(SESSION_COOKIE)
    return response


@router.post("/logout", response_model=SuccessResponse)
async def logout(request: Request, response: Response, services: Services = Depends(get_services)):
    services.auth.invalidate_session(request.cookies.get(SESSION_COOKIE))
    response.delete_cookie(SESSION_COOKIE)
    logger.info("Admin logged out")
    return SuccessResponse()
