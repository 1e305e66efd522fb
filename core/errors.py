"""
Authentication Error Taxonomy

Every expected failure of the authentication flow is an AuthError subclass
carrying the HTTP status and a stable machine-readable code. The API layer
turns these into JSON responses verbatim; anything that is not an AuthError
is treated as an internal fault and reported without details.

Messages are fixed strings. In particular, face-match and signature
failures use the same message whatever the cause, so a caller cannot tell
a malformed value from a wrong one.
"""

from typing import Any, Dict, List, Optional


class AuthError(Exception):
    """Base class for expected authentication flow failures."""

    status_code: int = 400
    code: str = "AUTH_ERROR"
    default_message: str = "Authentication error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "code": self.code}


class ValidationError(AuthError):
    """Malformed input shape, with optional field-level detail."""

    status_code = 400
    code = "VALIDATION_ERROR"
    default_message = "Validation error"

    def __init__(
        self,
        message: Optional[str] = None,
        errors: Optional[List[Dict[str, Any]]] = None,
    ):
        super().__init__(message)
        self.errors = errors or []

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["errors"] = self.errors
        return data


class DescriptorShapeError(ValidationError):
    """A face descriptor is empty, non-finite or of the wrong length."""

    default_message = "Malformed face descriptor"


class Conflict(AuthError):
    status_code = 409
    code = "CONFLICT"
    default_message = "A user with this email already exists"


class NotFound(AuthError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "User not found"


class InvalidOrExpiredToken(AuthError):
    status_code = 400
    code = "INVALID_OR_EXPIRED_TOKEN"
    default_message = "Invalid or expired verification token"


class FaceVerificationFailed(AuthError):
    status_code = 401
    code = "FACE_VERIFICATION_FAILED"
    default_message = "Face verification failed"


class FaceVerificationRequired(AuthError):
    status_code = 401
    code = "FACE_VERIFICATION_REQUIRED"
    default_message = "Face verification must succeed before signing the challenge"


class InvalidSignature(AuthError):
    status_code = 401
    code = "INVALID_SIGNATURE"
    default_message = "Invalid signature"


class NotAuthenticated(AuthError):
    status_code = 401
    code = "NOT_AUTHENTICATED"
    default_message = "Not authenticated"


class EmailNotVerified(AuthError):
    status_code = 403
    code = "EMAIL_NOT_VERIFIED"
    default_message = "Email address has not been verified"


class LoginNotInitiated(AuthError):
    status_code = 401
    code = "LOGIN_NOT_INITIATED"
    default_message = "Login not initiated"


class InternalError(AuthError):
    status_code = 500
    code = "INTERNAL_ERROR"
    default_message = "Internal server error"
