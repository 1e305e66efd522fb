"""
Pydantic Schemas for API Request/Response Models

This module defines the data models used for communication between the
browser client and the authentication API.

These schemas provide:
- Type validation
- Automatic documentation in OpenAPI/Swagger
- Clear interface contracts

Descriptor fields accept both `face_descriptor` and the camelCase
`faceDescriptor` sent by the browser client.
"""

from typing import List, Optional, Dict, Any
from pydantic import AliasChoices, BaseModel, EmailStr, Field


# ============================================================
# Registration Schemas
# ============================================================

class RegisterRequest(BaseModel):
    """Request to create a new account."""
    email: EmailStr = Field(..., description="Email address (case-insensitive, unique)")
    name: str = Field(..., min_length=2, max_length=100, description="Display name")


class RegisterResponse(BaseModel):
    """Response after successful registration."""
    message: str = Field(..., description="Status message")
    user_id: int = Field(..., description="ID of the new user")
    email_verified: bool = Field(..., description="Whether the email is already verified")
    verification_sent: bool = Field(False, description="Whether a verification email was sent")
    redirect_to_face: bool = Field(..., description="Client should continue to face capture")


class VerifyEmailResponse(BaseModel):
    """Response after consuming a verification token."""
    message: str = Field(..., description="Status message")
    verified: bool = Field(..., description="Whether the email is now verified")


class EmailRequest(BaseModel):
    """Request carrying only an email address."""
    email: EmailStr = Field(..., description="Email address of the account")


class FaceDescriptorRequest(BaseModel):
    """Face descriptor computed in the browser."""
    face_descriptor: List[float] = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("face_descriptor", "faceDescriptor"),
        description="Fixed-length face descriptor (128 floats for face-api.js)",
    )


class EnrollmentResponse(BaseModel):
    """Response after face enrollment."""
    message: str = Field(..., description="Status message")
    private_key: str = Field(
        ...,
        description="PKCS#8 PEM private key. Delivered once; the server does not keep it.",
    )


# ============================================================
# Login Schemas
# ============================================================

class LoginChallengeResponse(BaseModel):
    """Response to a login request: the challenge to sign."""
    message: str = Field(..., description="Status message")
    challenge: str = Field(..., description="Hex challenge to sign with the private key")
    requires_face_recognition: bool = Field(
        ..., description="Whether the account has an enrolled face"
    )


class FaceVerifyResponse(BaseModel):
    """Response to a successful login face check."""
    message: str = Field(..., description="Status message")
    verified: bool = Field(..., description="Whether the face matched")


class SignatureRequest(BaseModel):
    """Signature over the outstanding challenge."""
    signature: str = Field(
        ...,
        min_length=1,
        description="Base64 RSASSA-PKCS1-v1_5 / SHA-256 signature of the challenge",
    )


class UserResponse(BaseModel):
    """Public information about the authenticated user."""
    id: int = Field(..., description="User ID")
    name: str = Field(..., description="Display name")
    email: str = Field(..., description="Email address")
    email_verified: bool = Field(..., description="Whether the email is verified")


class LoginResponse(BaseModel):
    """Response after a completed login."""
    message: str = Field(..., description="Status message")
    user: UserResponse


class MessageResponse(BaseModel):
    """Generic status response."""
    message: str = Field(..., description="Status message")


class ErrorResponse(BaseModel):
    """Error body returned for every failed request."""
    message: str = Field(..., description="Human-readable error message")
    code: str = Field(..., description="Stable error code, e.g. INVALID_SIGNATURE")
    errors: Optional[List[Dict[str, Any]]] = Field(
        None, description="Field-level validation errors"
    )


# ============================================================
# Health Check Schemas
# ============================================================

class HealthResponse(BaseModel):
    """System health check response."""
    status: str = Field(..., description="Overall status: 'healthy' or 'unhealthy'")
    registered_users: int = Field(..., description="Number of registered users")
    active_sessions: int = Field(..., description="Number of live server-side sessions")
