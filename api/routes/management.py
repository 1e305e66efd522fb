"""
Session Management API Routes

This module provides REST endpoints for the authenticated session:
- GET /api/user: Get the current user
- POST /api/logout: Destroy the session
"""

from typing import Optional

from fastapi import APIRouter, Depends, Response

from api.dependencies import (
    CookieSettings,
    get_cookie_settings,
    get_existing_session_id,
    get_flow,
    get_session_id,
)
from api.schemas import ErrorResponse, MessageResponse, UserResponse
from core.auth_flow import AuthFlow

# Create router
router = APIRouter(prefix="/api", tags=["session"], responses={401: {"model": ErrorResponse}})


@router.get("/user", response_model=UserResponse)
def get_current_user(
    session_id: str = Depends(get_session_id),
    flow: AuthFlow = Depends(get_flow),
):
    """
    Get the user the session is authenticated as.

    Raises:
        401: If the session is not authenticated.
    """
    user = flow.current_user(session_id)
    return UserResponse(**user.to_public_dict())


@router.post("/logout", response_model=MessageResponse)
def logout(
    response: Response,
    session_id: Optional[str] = Depends(get_existing_session_id),
    flow: AuthFlow = Depends(get_flow),
    cookie: CookieSettings = Depends(get_cookie_settings),
):
    """
    Log out, destroying the session unconditionally.

    An unknown cookie gets no fresh session id, only the deletion.
    """
    flow.logout(session_id)
    response.delete_cookie(cookie.name)
    return MessageResponse(message="Logged out successfully")
