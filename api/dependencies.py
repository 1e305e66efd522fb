"""
FastAPI dependencies shared by the route modules.

The session cookie only ever carries an opaque id minted by the server. An
id the server doesn't know (expired, forged, from another deployment) is
never adopted: the request gets a fresh id instead.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request, Response

from core.auth_flow import AuthFlow, get_auth_flow
from core.config import get_session_config
from core.session_store import DEFAULT_MAX_AGE


@dataclass(frozen=True)
class CookieSettings:
    name: str = "secureface_session"
    max_age: int = DEFAULT_MAX_AGE
    secure: bool = False


def get_flow() -> AuthFlow:
    """Provide the application's AuthFlow."""
    return get_auth_flow()


def get_cookie_settings() -> CookieSettings:
    """Read session cookie settings from config.yaml."""
    session_config = get_session_config()
    return CookieSettings(
        name=session_config.get("cookie_name", CookieSettings.name),
        max_age=int(session_config.get("max_age", DEFAULT_MAX_AGE)),
        secure=bool(session_config.get("secure", False)),
    )


def get_session_id(
    request: Request,
    response: Response,
    flow: AuthFlow = Depends(get_flow),
    cookie: CookieSettings = Depends(get_cookie_settings),
) -> str:
    """
    Resolve the caller's session id, minting a new one when needed.

    New ids are sent back as an HttpOnly cookie. Nothing is stored
    server-side until the flow writes to the session.
    """
    session_id = request.cookies.get(cookie.name)

    if not flow.sessions.exists(session_id):
        session_id = flow.sessions.new_id()
        response.set_cookie(
            key=cookie.name,
            value=session_id,
            max_age=cookie.max_age,
            httponly=True,
            secure=cookie.secure,
            samesite="lax",
        )

    return session_id


def get_existing_session_id(
    request: Request,
    flow: AuthFlow = Depends(get_flow),
    cookie: CookieSettings = Depends(get_cookie_settings),
) -> Optional[str]:
    """Return the caller's session id if it names a live session, without minting one."""
    session_id = request.cookies.get(cookie.name)
    return session_id if flow.sessions.exists(session_id) else None
