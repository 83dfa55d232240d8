"""FastAPI dependencies shared by the routers."""
from fastapi import Depends, HTTPException, Request

from filedrop.services.container import Services

SESSION_COOKIE = "admin_session"


def get_services(request: Request) -> Services:
    return request.app.state.services


def is_admin(request: Request, services: Services) -> bool:
    return services.auth.check_session(request.cookies.get(SESSION_COOKIE))


def require_admin(request: Request, services: Services = Depends(get_services)) -> None:
    """Gate for admin-only routes (listing, delete, settings changes)."""
    if not is_admin(request, services):
        raise HTTPException(status_code=401, detail="Admin login required")
