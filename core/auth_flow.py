"""
Authentication Flow Controller

This module orchestrates the passwordless authentication state machine.

Registration and enrollment:

    Anonymous --register--> Registered-Unverified --verify_email--> Verified-NoFace
    Verified-NoFace --enroll_face--> Enrolled (descriptor + public key stored,
                                               private key returned once)

Login (per browser session, see core.session_store):

    LoginIdle --start_login--> ChallengeIssued(user, challenge)
    ChallengeIssued --submit_face_descriptor--> FaceMatched | ChallengeIssued (retry)
    FaceMatched --submit_signature--> LoginIdle + authenticated session
                                    | FaceMatched (invalid signature, retry)

Every session mutation runs inside SessionStore.transaction(), so a
challenge can be consumed at most once even when requests race.

When `require_face_match` is set, a user who enrolled a face must pass the
face check before a signature is accepted. With it unset the face check is
advisory. Either way the face check is over a vector the client computed
itself: it is not a liveness check and does not stop replay of a captured
descriptor.

Usage:
    from core.auth_flow import AuthFlow, FlowSettings

    flow = AuthFlow(user_store, session_store, email_sender, FlowSettings())
    flow.register(session_id, "alice@example.com", "Alice")
    enrollment = flow.enroll_face(session_id, descriptor)
    login = flow.start_login(session_id, "alice@example.com")
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

from core import errors
from core.challenge import issue_challenge
from core.email_sender import EmailSender
from core.keys import MIN_KEY_SIZE, provision_key_pair, verify_signature
from core.matching import DEFAULT_THRESHOLD, EuclideanDescriptorMatcher, MatchResult
from core.session_store import (
    LOGIN_IDLE,
    ChallengeIssued,
    FaceMatched,
    SessionStore,
)
from core.user_store import User, UserStore

logger = logging.getLogger(__name__)

# Seconds an issued verification token is protected from replacement by a resend
DEFAULT_RESEND_COOLDOWN = 60


@dataclass
class FlowSettings:
    """
    Tunable policy for the authentication flow.

    Attributes:
        auto_verify: Mark emails verified at registration instead of
            sending a verification link.
        require_face_match: Only accept a signature after a face match.
        match_threshold: Euclidean distance cut-off for face matches.
        descriptor_dim: Required descriptor length (None = any).
        rsa_key_size: Modulus size of provisioned key pairs.
        resend_cooldown_seconds: Minimum age of the active verification
            token before a resend may replace it.
    """

    auto_verify: bool = True
    require_face_match: bool = True
    match_threshold: float = DEFAULT_THRESHOLD
    descriptor_dim: Optional[int] = 128
    rsa_key_size: int = MIN_KEY_SIZE
    resend_cooldown_seconds: int = DEFAULT_RESEND_COOLDOWN

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "FlowSettings":
        """Build settings from the loaded config.yaml dictionary."""
        matching = config.get("matching", {}) or {}
        verification = config.get("verification", {}) or {}
        keys = config.get("keys", {}) or {}

        return cls(
            auto_verify=bool(verification.get("auto_verify", True)),
            require_face_match=bool(matching.get("require_face_match", True)),
            match_threshold=float(matching.get("threshold", DEFAULT_THRESHOLD)),
            descriptor_dim=matching.get("descriptor_dim", 128),
            rsa_key_size=int(keys.get("rsa_key_size", MIN_KEY_SIZE)),
            resend_cooldown_seconds=int(
                verification.get("resend_cooldown_seconds", DEFAULT_RESEND_COOLDOWN)
            ),
        )


@dataclass
class RegistrationResult:
    user: User
    verification_sent: bool


@dataclass
class EnrollmentResult:
    user: User
    private_key: str

    def __repr__(self) -> str:
        return f"EnrollmentResult(user_id={self.user.id}, private_key=<redacted>)"


@dataclass
class LoginChallenge:
    challenge: str
    requires_face_recognition: bool


class AuthFlow:
    """
    The register / verify / enroll / login state machine.

    Args:
        users: Persistence for user records.
        sessions: Server-side session store holding flow state.
        email_sender: Transport for verification links.
        settings: Flow policy.
    """

    def __init__(
        self,
        users: UserStore,
        sessions: SessionStore,
        email_sender: EmailSender,
        settings: Optional[FlowSettings] = None,
    ):
        self.users = users
        self.sessions = sessions
        self.email_sender = email_sender
        self.settings = settings or FlowSettings()
        self.matcher = EuclideanDescriptorMatcher({
            "threshold": self.settings.match_threshold,
            "descriptor_dim": self.settings.descriptor_dim,
        })

    # ------------------------------------------------------------
    # Registration and email verification
    # ------------------------------------------------------------

    def register(self, session_id: str, email: str, name: str) -> RegistrationResult:
        """
        Create an account and bind it to the session.

        Raises:
            ValidationError: If email or name is blank.
            Conflict: If the email is already registered (case-insensitive).
        """
        email = (email or "").strip()
        name = (name or "").strip()
        if not email or not name:
            raise errors.ValidationError("Email and name are required")

        if self.users.get_user_by_email(email) is not None:
            raise errors.Conflict()

        user = self.users.create_user(email, name, email_verified=self.settings.auto_verify)

        verification_sent = False
        if not user.email_verified:
            issued = self.users.create_verification_token(user.id)
            if issued is None:
                raise errors.NotFound()
            verification_sent = self._send_verification(user, issued[0])

        with self.sessions.transaction(session_id) as session:
            session.user_id = user.id

        logger.info(f"Registered user id={user.id} (verified={user.email_verified})")
        return RegistrationResult(user=user, verification_sent=verification_sent)

    def _send_verification(self, user: User, token: str) -> bool:
        """Email a verification token. Delivery failures are logged, not raised."""
        try:
            self.email_sender.send_verification_email(user.email, token)
        except Exception:
            logger.exception(f"Failed to send verification email for user id={user.id}")
            return False
        return True

    def verify_email(self, session_id: str, token: str) -> User:
        """
        Consume a verification token and authenticate the session.

        Raises:
            InvalidOrExpiredToken: If the token is unknown, used or expired.
        """
        user = self.users.verify_user_email(token) if token else None
        if user is None:
            logger.warning("Rejected verification token")
            raise errors.InvalidOrExpiredToken()

        with self.sessions.transaction(session_id) as session:
            session.user_id = user.id

        logger.info(f"Verified email for user id={user.id}")
        return user

    def resend_verification(self, email: str) -> bool:
        """
        Send a fresh verification link, replacing the active token.

        A token younger than `resend_cooldown_seconds` is kept, so repeated
        requests can't keep invalidating the link the user already holds.

        Returns:
            True if an email was dispatched, False if the address is
            already verified, the active token is too recent, or delivery
            failed.

        Raises:
            NotFound: If no user has this email.
        """
        user = self.users.get_user_by_email(email)
        if user is None:
            raise errors.NotFound()

        if user.email_verified:
            return False

        issued = self.users.create_verification_token(
            user.id, min_interval_seconds=self.settings.resend_cooldown_seconds
        )
        if issued is None:
            logger.warning(f"Verification resend throttled for user id={user.id}")
            return False

        return self._send_verification(user, issued[0])

    # ------------------------------------------------------------
    # Face enrollment
    # ------------------------------------------------------------

    def enroll_face(self, session_id: str, descriptor: Sequence[float]) -> EnrollmentResult:
        """
        Store the user's face descriptor and provision their key pair.

        Re-enrollment replaces the public key, so any private key issued
        earlier stops working.

        Raises:
            NotAuthenticated: If the session holds no user.
            NotFound: If the session's user no longer exists.
            EmailNotVerified: If the user's email is not verified.
            ValidationError: If the descriptor is malformed.
        """
        user = self._session_user(session_id)

        if not user.email_verified:
            raise errors.EmailNotVerified()

        vector = self.matcher.validate(descriptor)
        key_pair = provision_key_pair(self.settings.rsa_key_size)

        updated = self.users.save_enrollment(user.id, vector.tolist(), key_pair.public_key)
        if updated is None:
            raise errors.NotFound()

        logger.info(f"Enrolled face and provisioned key pair for user id={user.id}")
        return EnrollmentResult(user=updated, private_key=key_pair.private_key)

    # ------------------------------------------------------------
    # Login
    # ------------------------------------------------------------

    def start_login(self, session_id: str, email: str) -> LoginChallenge:
        """
        Begin a login attempt and issue a challenge.

        A new challenge replaces any outstanding one for this session.

        Raises:
            NotFound: If no user has this email. No flow state is written.
        """
        user = self.users.get_user_by_email(email or "")
        if user is None:
            logger.warning("Login requested for unknown email")
            raise errors.NotFound()

        challenge = issue_challenge()
        with self.sessions.transaction(session_id) as session:
            session.login = ChallengeIssued(user_id=user.id, challenge=challenge)

        logger.info(f"Issued login challenge for user id={user.id}")
        return LoginChallenge(challenge=challenge, requires_face_recognition=user.has_face)

    def submit_face_descriptor(self, session_id: str, descriptor: Sequence[float]) -> MatchResult:
        """
        Compare a login descriptor against the enrolled one.

        A mismatch leaves the challenge in place so the client can retry.

        Raises:
            LoginNotInitiated: If no challenge is outstanding.
            NotFound: If the user or their enrolled descriptor is missing.
            ValidationError: If the descriptor is malformed.
            FaceVerificationFailed: If the faces don't match.
        """
        with self.sessions.transaction(session_id) as session:
            state = session.login
            if not isinstance(state, (ChallengeIssued, FaceMatched)):
                raise errors.LoginNotInitiated()

            user = self.users.get_user(state.user_id)
            if user is None or not user.has_face:
                raise errors.NotFound("User or face descriptor not found")

            result = self.matcher.compare(descriptor, user.face_descriptor)

            if result.is_match:
                session.login = FaceMatched(user_id=state.user_id, challenge=state.challenge)
            else:
                session.login = ChallengeIssued(user_id=state.user_id, challenge=state.challenge)

        if not result.is_match:
            logger.warning(f"Face verification failed for user id={user.id}")
            raise errors.FaceVerificationFailed()

        logger.info(f"Face verified for user id={user.id}")
        return result

    def submit_signature(self, session_id: str, signature: str) -> User:
        """
        Verify the signed challenge and authenticate the session.

        On success the flow state is cleared and the session holds the
        user. On failure the flow state is kept so the client can retry.

        Raises:
            LoginNotInitiated: If no challenge is outstanding.
            NotFound: If the user or their public key is missing.
            FaceVerificationRequired: If face matching is enforced and has
                not succeeded yet.
            InvalidSignature: If the signature doesn't verify.
        """
        with self.sessions.transaction(session_id) as session:
            state = session.login
            if not isinstance(state, (ChallengeIssued, FaceMatched)):
                raise errors.LoginNotInitiated()

            user = self.users.get_user(state.user_id)
            if user is None or not user.public_key:
                raise errors.NotFound("User or public key not found")

            if (
                self.settings.require_face_match
                and user.has_face
                and not isinstance(state, FaceMatched)
            ):
                raise errors.FaceVerificationRequired()

            if not verify_signature(user.public_key, state.challenge, signature or ""):
                logger.warning(f"Invalid signature for user id={user.id}")
                raise errors.InvalidSignature()

            session.user_id = user.id
            session.login = LOGIN_IDLE

        logger.info(f"Login completed for user id={user.id}")
        return user

    # ------------------------------------------------------------
    # Session
    # ------------------------------------------------------------

    def current_user(self, session_id: str) -> User:
        """
        Return the authenticated user of this session.

        Raises:
            NotAuthenticated: If the session holds no user.
            NotFound: If that user no longer exists.
        """
        return self._session_user(session_id)

    def logout(self, session_id: Optional[str]) -> None:
        """Destroy the session, whatever state it is in. None is a no-op."""
        if session_id is None:
            return
        self.sessions.destroy(session_id)
        logger.info("Session destroyed on logout")

    def _session_user(self, session_id: str) -> User:
        session = self.sessions.get(session_id)
        if not session.is_authenticated:
            raise errors.NotAuthenticated()

        user = self.users.get_user(session.user_id)
        if user is None:
            raise errors.NotFound()
        return user


# Singleton instance for the flow
_flow_instance: Optional[AuthFlow] = None


def get_auth_flow() -> AuthFlow:
    """
    Get or create the singleton AuthFlow, wired from config.yaml.

    Returns:
        The shared AuthFlow instance.
    """
    global _flow_instance

    if _flow_instance is None:
        from core.config import get_config
        from core.email_sender import create_email_sender
        from core.session_store import get_session_store
        from core.user_store import get_user_store

        config = get_config()
        verification = config.get("verification", {}) or {}
        base_url = verification.get(
            "base_url", config.get("api", {}).get("base_url", "http://localhost:8000")
        )

        _flow_instance = AuthFlow(
            users=get_user_store(),
            sessions=get_session_store(),
            email_sender=create_email_sender(config.get("email", {}) or {}, base_url),
            settings=FlowSettings.from_config(config),
        )

    return _flow_instance
