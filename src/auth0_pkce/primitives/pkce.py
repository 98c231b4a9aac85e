"""PKCE (Proof Key for Code Exchange) primitives.

Implements RFC 7636 verifier generation and S256 challenge derivation to
prevent authorization code interception attacks.
"""

from __future__ import annotations

import base64
import hashlib
import secrets
import string

from auth0_pkce.models.security import PKCEParameters

MIN_VERIFIER_LENGTH = 43
MAX_VERIFIER_LENGTH = 128

VERIFIER_ALPHABET = string.ascii_letters + string.digits


def generate_verifier(size: int | None = None) -> str:
    """Generate a cryptographically secure code verifier.

    RFC 7636 Section 4.1: the verifier must be 43-128 characters long.
    Only alphanumeric characters are used, so the verifier is safe in any
    URL or form context without escaping.

    Args:
        size: Requested length. Anything outside 43-128 (or ``None``)
            falls back to 128.

    Returns:
        A random verifier of the resolved length
    """
    if size is None or not (MIN_VERIFIER_LENGTH <= size <= MAX_VERIFIER_LENGTH):
        size = MAX_VERIFIER_LENGTH
    return "".join(secrets.choice(VERIFIER_ALPHABET) for _ in range(size))


def derive_challenge(verifier: str) -> str:
    """Derive the S256 code challenge for ``verifier``.

    RFC 7636 Section 4.2: BASE64URL-ENCODE(SHA256(ASCII(code_verifier)))
    with the trailing ``=`` padding removed.
    """
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    encoded = base64.b64encode(digest).decode("ascii")
    return encoded.replace("+", "-").replace("/", "_").rstrip("=")


class PKCEManager:
    """Generates verifier/challenge pairs for authorization attempts."""

    def __init__(self, verifier_size: int | None = None):
        self.verifier_size = verifier_size

    def generate_parameters(self) -> PKCEParameters:
        verifier = generate_verifier(self.verifier_size)
        return PKCEParameters(
            code_verifier=verifier,
            code_challenge=derive_challenge(verifier),
            code_challenge_method="S256",
        )
