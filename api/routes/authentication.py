"""
Authentication API Routes

This module provides the three login steps:
1. POST /api/login/email: Start a login, receive the challenge
2. POST /api/login/face: Submit the face descriptor from the camera
3. POST /api/login/verify: Submit the signature over the challenge

State between the steps lives in the server-side session, so all three
calls must carry the same session cookie.
"""

import logging

from fastapi import APIRouter, Depends

from api.dependencies import get_flow, get_session_id
from api.schemas import (
    EmailRequest,
    ErrorResponse,
    FaceDescriptorRequest,
    FaceVerifyResponse,
    LoginChallengeResponse,
    LoginResponse,
    SignatureRequest,
    UserResponse,
)
from core.auth_flow import AuthFlow

# Setup logging
logger = logging.getLogger(__name__)

# Create router
router = APIRouter(
    prefix="/api/login",
    tags=["authentication"],
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
)


@router.post("/email", response_model=LoginChallengeResponse)
def start_login(
    request: EmailRequest,
    session_id: str = Depends(get_session_id),
    flow: AuthFlow = Depends(get_flow),
):
    """
    Start a login attempt for an email address.

    Returns the challenge to sign and whether a face check is expected.

    Raises:
        404: If no user has this email.
    """
    login = flow.start_login(session_id, request.email)
    return LoginChallengeResponse(
        message="Login initiated",
        challenge=login.challenge,
        requires_face_recognition=login.requires_face_recognition,
    )


@router.post("/face", response_model=FaceVerifyResponse)
def verify_face(
    request: FaceDescriptorRequest,
    session_id: str = Depends(get_session_id),
    flow: AuthFlow = Depends(get_flow),
):
    """
    Check the login face descriptor against the enrolled one.

    A failed match can be retried; the challenge stays valid.

    Raises:
        401: If no login is in progress or the face doesn't match.
        400: If the descriptor is malformed.
    """
    flow.submit_face_descriptor(session_id, request.face_descriptor)
    return FaceVerifyResponse(message="Face recognition successful", verified=True)


@router.post("/verify", response_model=LoginResponse)
def verify_signature(
    request: SignatureRequest,
    session_id: str = Depends(get_session_id),
    flow: AuthFlow = Depends(get_flow),
):
    """
    Verify the signed challenge and complete the login.

    Raises:
        401: If no login is in progress, the face check is still pending,
             or the signature is invalid.
    """
    user = flow.submit_signature(session_id, request.signature)
    return LoginResponse(
        message="Login successful",
        user=UserResponse(**user.to_public_dict()),
    )
