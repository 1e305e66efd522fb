"""
Core Module for the SecureFace Authentication Service

This package contains the authentication core: descriptor matching,
challenge issuing, key provisioning and signature verification, user and
session storage, and the flow controller that ties them together.

Main components:
    - config: Configuration loading and management
    - errors: Authentication error taxonomy
    - matching: Face descriptor comparison
    - challenge: Random login challenges and verification tokens
    - keys: RSA key provisioning and signature verification
    - user_store: SQLite user persistence
    - session_store: Server-side sessions and login flow state
    - email_sender: Verification email transports
    - auth_flow: Registration, enrollment and login state machine

Usage:
    from core.auth_flow import AuthFlow, FlowSettings
    from core.user_store import UserStore
    from core.session_store import SessionStore
"""

from core.config import (
    get_config,
    get_section,
    get_api_config,
    get_storage_config,
    get_matching_config,
    get_session_config,
    get_verification_config,
    get_email_config,
    get_keys_config,
    get_server_config,
)

from core.challenge import issue_challenge

from core.keys import (
    KeyPair,
    provision_key_pair,
    sign_challenge,
    verify_signature,
)

from core.user_store import (
    User,
    UserStore,
    get_user_store,
)

from core.session_store import (
    SessionStore,
    SessionData,
    LoginIdle,
    ChallengeIssued,
    FaceMatched,
    get_session_store,
)

from core.auth_flow import (
    AuthFlow,
    FlowSettings,
    get_auth_flow,
)

__all__ = [
    # Configuration
    "get_config",
    "get_section",
    "get_api_config",
    "get_storage_config",
    "get_matching_config",
    "get_session_config",
    "get_verification_config",
    "get_email_config",
    "get_keys_config",
    "get_server_config",
    # Challenges and keys
    "issue_challenge",
    "KeyPair",
    "provision_key_pair",
    "sign_challenge",
    "verify_signature",
    # Storage
    "User",
    "UserStore",
    "get_user_store",
    "SessionStore",
    "SessionData",
    "LoginIdle",
    "ChallengeIssued",
    "FaceMatched",
    "get_session_store",
    # Flow
    "AuthFlow",
    "FlowSettings",
    "get_auth_flow",
]
