"""
API Dependencies
Common dependencies for FastAPI routes (services, caller identity, admin guard).
"""

from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status

from fanai.services.container import Services


def get_services(request: Request) -> Services:
    """Services built during the application lifespan."""
    return request.app.state.services


def get_current_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    """Caller identity, set by the session layer in front of the API."""
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated"
        )
    return x_user_id


def require_admin(
    x_admin_token: Optional[str] = Header(None),
    services: Services = Depends(get_services),
):
    expected = services.settings.ADMIN_TOKEN
    if not expected or x_admin_token != expected:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
