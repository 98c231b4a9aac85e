"""Security-related models for the PKCE flow.

Contains the verifier/challenge pair held by a session for one
authorization attempt.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class PKCEParameters:
    """PKCE (Proof Key for Code Exchange) parameters (RFC 7636).

    Immutable pair generated for each session set-up. The verifier stays in
    memory; only the challenge is sent in the authorize request.
    """

    code_verifier: str = field(repr=False)
    code_challenge: str = field()
    code_challenge_method: str = field(default="S256")

    def __post_init__(self) -> None:
        """Validate PKCE parameters meet RFC 7636 requirements."""
        if not (43 <= len(self.code_verifier) <= 128):
            raise ValueError("code_verifier must be 43-128 characters")
        if not self.code_verifier.isalnum():
            raise ValueError("code_verifier must be alphanumeric")
        if self.code_challenge_method != "S256":
            raise ValueError("Only S256 code challenge method is supported")
