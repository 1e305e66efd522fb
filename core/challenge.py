"""
Login challenge issuing.

A challenge is 32 bytes from the operating system CSPRNG, hex-encoded.
It is only meaningful together with the login flow state that holds it;
storing it there (and overwriting any earlier one) is the flow
controller's job.
"""

import secrets

CHALLENGE_BYTES = 32


def issue_challenge() -> str:
    """Return a fresh 64-character hex challenge (256 bits of entropy)."""
    return secrets.token_hex(CHALLENGE_BYTES)


def new_verification_token() -> str:
    """Return a fresh single-use email verification token."""
    return secrets.token_hex(CHALLENGE_BYTES)
