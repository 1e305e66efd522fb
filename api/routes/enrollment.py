"""
Enrollment API Routes

This module provides the account side of the flow:
- POST /api/register: Create an account and bind it to the session
- GET /api/verify/{token}: Consume an email verification token
- GET /verify/{token}: Link target from the email, verifies the address
- POST /api/verify/resend: Send a fresh verification link
- POST /api/register/face: Enroll a face descriptor and receive the private key

The private key returned by face enrollment is the only copy. The client
must store it; the server keeps the public half.
"""

import logging

from fastapi import APIRouter, Depends

from api.dependencies import get_flow, get_session_id
from api.schemas import (
    EmailRequest,
    EnrollmentResponse,
    ErrorResponse,
    FaceDescriptorRequest,
    MessageResponse,
    RegisterRequest,
    RegisterResponse,
    VerifyEmailResponse,
)
from core.auth_flow import AuthFlow

# Setup logging
logger = logging.getLogger(__name__)

# Create routers
router = APIRouter(
    prefix="/api",
    tags=["enrollment"],
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
link_router = APIRouter(tags=["enrollment"], responses={400: {"model": ErrorResponse}})


@router.post("/register", response_model=RegisterResponse, status_code=201)
def register(
    request: RegisterRequest,
    session_id: str = Depends(get_session_id),
    flow: AuthFlow = Depends(get_flow),
):
    """
    Register a new user.

    The session is authenticated as the new user so face enrollment can
    follow immediately.

    Raises:
        409: If the email is already registered.
    """
    result = flow.register(session_id, request.email, request.name)

    if result.user.email_verified:
        message = "Registration successful. Continue to face capture."
    else:
        message = "Registration successful. Check your email to verify your address."

    return RegisterResponse(
        message=message,
        user_id=result.user.id,
        email_verified=result.user.email_verified,
        verification_sent=result.verification_sent,
        redirect_to_face=result.user.email_verified,
    )


@router.get("/verify/{token}", response_model=VerifyEmailResponse)
def verify_email(
    token: str,
    session_id: str = Depends(get_session_id),
    flow: AuthFlow = Depends(get_flow),
):
    """
    Verify an email address with the emailed token.

    Raises:
        400: If the token is unknown, already used or expired.
    """
    flow.verify_email(session_id, token)
    return VerifyEmailResponse(message="Email successfully verified", verified=True)


@router.post("/verify/resend", response_model=MessageResponse)
def resend_verification(request: EmailRequest, flow: AuthFlow = Depends(get_flow)):
    """
    Send a new verification link, invalidating the previous one.

    A link issued within the last `verification.resend_cooldown_seconds`
    is kept and no email is sent.

    Raises:
        404: If no user has this email.
    """
    if flow.resend_verification(request.email):
        return MessageResponse(message="Verification email sent")
    return MessageResponse(message="No verification email sent")


@link_router.get("/verify/{token}", response_model=VerifyEmailResponse)
def verification_link(
    token: str,
    session_id: str = Depends(get_session_id),
    flow: AuthFlow = Depends(get_flow),
):
    """
    Target of the emailed link. Consumes the token like GET /api/verify/{token}.

    Raises:
        400: If the token is unknown, already used or expired.
    """
    logger.info("Received verification link click")
    flow.verify_email(session_id, token)
    return VerifyEmailResponse(message="Email successfully verified", verified=True)


@router.post("/register/face", response_model=EnrollmentResponse)
def enroll_face(
    request: FaceDescriptorRequest,
    session_id: str = Depends(get_session_id),
    flow: AuthFlow = Depends(get_flow),
):
    """
    Enroll the session user's face and provision their key pair.

    Raises:
        401: If the session is not authenticated.
        403: If the user's email is not verified.
        400: If the descriptor is malformed.
    """
    result = flow.enroll_face(session_id, request.face_descriptor)
    return EnrollmentResponse(
        message="Face recognition setup complete",
        private_key=result.private_key,
    )
