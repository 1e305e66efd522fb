"""
Key provisioning and challenge signature verification.

At enrollment the server generates an RSA key pair, keeps the public key
and hands the private key to the browser exactly once. At login the browser
signs the server's challenge with WebCrypto RSASSA-PKCS1-v1_5 / SHA-256 and
the server verifies it against the stored public key.

Keys are PEM text: SubjectPublicKeyInfo for the public key and unencrypted
PKCS#8 for the private key, the formats WebCrypto imports directly.
"""

import base64
import binascii
import logging
from dataclasses import dataclass

from cryptography.exceptions import InvalidSignature as CryptoInvalidSignature
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

logger = logging.getLogger(__name__)

PUBLIC_EXPONENT = 65537
MIN_KEY_SIZE = 2048


@dataclass(frozen=True)
class KeyPair:
    """PEM-encoded RSA key pair."""

    public_key: str
    private_key: str

    def __repr__(self) -> str:
        # Keep the private key out of logs and tracebacks
        return "KeyPair(public_key=<pem>, private_key=<redacted>)"


def provision_key_pair(key_size: int = MIN_KEY_SIZE) -> KeyPair:
    """
    Generate an RSA key pair for challenge signing.

    Args:
        key_size: Modulus size in bits (at least 2048).

    Returns:
        KeyPair with PEM public (SPKI) and private (PKCS#8) keys.
    """
    if key_size < MIN_KEY_SIZE:
        raise ValueError(f"RSA key size must be at least {MIN_KEY_SIZE} bits, got {key_size}")

    private_key = rsa.generate_private_key(
        public_exponent=PUBLIC_EXPONENT,
        key_size=key_size,
    )

    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )

    return KeyPair(public_key=public_pem.decode("ascii"), private_key=private_pem.decode("ascii"))


def sign_challenge(private_key_pem: str, challenge: str) -> str:
    """
    Sign a challenge the way the browser does.

    Args:
        private_key_pem: PKCS#8 PEM private key.
        challenge: Challenge string issued by the server.

    Returns:
        Base64-encoded RSASSA-PKCS1-v1_5 / SHA-256 signature.
    """
    private_key = serialization.load_pem_private_key(
        private_key_pem.encode("ascii"), password=None
    )
    signature = private_key.sign(
        challenge.encode("utf-8"),
        padding.PKCS1v15(),
        hashes.SHA256(),
    )
    return base64.b64encode(signature).decode("ascii")


def verify_signature(public_key_pem: str, challenge: str, signature: str) -> bool:
    """
    Check that `signature` is a valid signature over `challenge`.

    Returns False for every kind of failure (bad base64, unreadable key,
    wrong key, wrong data) so callers cannot tell them apart.
    """
    try:
        signature_bytes = base64.b64decode(signature, validate=True)
        public_key = serialization.load_pem_public_key(public_key_pem.encode("ascii"))
        if not isinstance(public_key, rsa.RSAPublicKey):
            return False

        public_key.verify(
            signature_bytes,
            challenge.encode("utf-8"),
            padding.PKCS1v15(),
            hashes.SHA256(),
        )
        return True
    except (CryptoInvalidSignature, binascii.Error, ValueError, TypeError, UnsupportedAlgorithm):
        return False
    except Exception:
        # Provider faults are still "not valid" to the caller
        logger.exception("Unexpected error during signature verification")
        return False
