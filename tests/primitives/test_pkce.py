import base64
import hashlib
import string

import pytest

from auth0_pkce.models.security import PKCEParameters
from auth0_pkce.primitives.pkce import (
    PKCEManager,
    derive_challenge,
    generate_verifier,
)

ALPHANUMERIC = set(string.ascii_letters + string.digits)


class TestGenerateVerifier:
    @pytest.mark.parametrize("size", [43, 44, 64, 100, 127, 128])
    def test_valid_size_is_honoured(self, size: int) -> None:
        # Act
        verifier = generate_verifier(size)

        # Assert
        assert len(verifier) == size
        assert set(verifier) <= ALPHANUMERIC

    @pytest.mark.parametrize("size", [None, 0, 32, 42, 129, 1000, -5])
    def test_out_of_range_size_falls_back_to_128(self, size) -> None:
        # Act
        verifier = generate_verifier(size)

        # Assert
        assert len(verifier) == 128
        assert set(verifier) <= ALPHANUMERIC

    def test_verifiers_are_unique(self) -> None:
        # Act
        verifiers = {generate_verifier() for _ in range(20)}

        # Assert
        assert len(verifiers) == 20


class TestDeriveChallenge:
    def test_matches_rfc7636_appendix_b(self) -> None:
        # Arrange - test vector from RFC 7636 Appendix B
        verifier = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"

        # Act
        challenge = derive_challenge(verifier)

        # Assert
        assert challenge == "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"

    def test_is_deterministic_and_url_safe(self) -> None:
        # Arrange
        verifier = generate_verifier()

        # Act
        first = derive_challenge(verifier)
        second = derive_challenge(verifier)

        # Assert
        assert first == second
        assert "+" not in first
        assert "/" not in first
        assert "=" not in first

    def test_is_base64url_sha256(self) -> None:
        # Arrange
        verifier = generate_verifier(64)

        # Act
        challenge = derive_challenge(verifier)

        # Assert
        expected = (
            base64.urlsafe_b64encode(hashlib.sha256(verifier.encode("ascii")).digest())
            .decode("ascii")
            .rstrip("=")
        )
        assert challenge == expected


class TestPKCEManager:
    def test_generate_parameters_crypto_requirements(self) -> None:
        # Arrange
        pkce_manager = PKCEManager()

        # Act
        params = pkce_manager.generate_parameters()

        # Assert
        assert len(params.code_verifier) == 128
        assert params.code_challenge == derive_challenge(params.code_verifier)
        assert params.code_challenge_method == "S256"

    def test_generate_parameters_uniqueness(self) -> None:
        # Arrange
        pkce_manager = PKCEManager(verifier_size=43)

        # Act
        params1 = pkce_manager.generate_parameters()
        params2 = pkce_manager.generate_parameters()

        # Assert
        assert len(params1.code_verifier) == 43
        assert params1.code_verifier != params2.code_verifier
        assert params1.code_challenge != params2.code_challenge

    def test_parameters_reject_short_verifier(self) -> None:
        with pytest.raises(ValueError):
            PKCEParameters(code_verifier="abc", code_challenge=derive_challenge("abc"))

    def test_verifier_is_hidden_from_repr(self) -> None:
        # Arrange
        params = PKCEManager().generate_parameters()

        # Assert
        assert params.code_verifier not in repr(params)
