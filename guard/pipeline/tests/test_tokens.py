# ./guard/pipeline/tests/test_tokens.py
"""
Tests for identity token issuing and verification.
"""

import base64
import json
from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from guard.identity import Identity, TokenService

from .support import TEST_AUDIENCE, TEST_ISSUER, TEST_SECRET


def b64url(data: dict) -> str:
    raw = json.dumps(data, separators=(",", ":")).encode()
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


class TestIssueAndVerify:
    """Test the happy path."""

    def test_roundtrip(self, tokens):
        token = tokens.issue(42, "alice", ["User", "Admin", "User"], email="alice@example.com")

        verification = tokens.verify(token)

        assert verification.ok
        identity = verification.identity
        assert identity.subject_id == "42"
        assert identity.display_name == "alice"
        assert identity.roles == frozenset({"User", "Admin"})
        assert identity.email == "alice@example.com"
        assert identity.expires_at - identity.issued_at == timedelta(hours=1)

    def test_claims(self, tokens):
        token = tokens.issue(7, "bob", ["User"])

        claims = jwt.get_unverified_claims(token)

        assert claims["sub"] == "7"
        assert claims["iss"] == TEST_ISSUER
        assert claims["aud"] == TEST_AUDIENCE
        assert claims["roles"] == ["User"]
        assert "email" not in claims
        assert jwt.get_unverified_header(token)["alg"] == "HS256"

    def test_empty_secret_refused(self):
        with pytest.raises(ValueError):
            TokenService("", TEST_ISSUER, TEST_AUDIENCE)


class TestRejections:
    """Test that every tampered or foreign token is refused with a reason."""

    @pytest.mark.parametrize("token", [None, ""])
    def test_missing(self, tokens, token):
        assert tokens.verify(token).reason == "missing token"

    def test_garbage(self, tokens):
        verification = tokens.verify("not-a-token")

        assert not verification.ok
        assert verification.reason == "malformed token"

    def test_expired(self):
        past = datetime.now(timezone.utc) - timedelta(hours=2)
        issuer = TokenService(TEST_SECRET, TEST_ISSUER, TEST_AUDIENCE, clock=lambda: past)
        verifier = TokenService(TEST_SECRET, TEST_ISSUER, TEST_AUDIENCE)

        verification = verifier.verify(issuer.issue(1, "alice", ["User"]))

        assert verification.reason == "token expired"

    def test_tampered_signature(self, tokens):
        token = tokens.issue(1, "alice", ["User"])
        header, payload, signature = token.split(".")
        middle = len(signature) // 2
        flipped = "A" if signature[middle] != "A" else "B"
        tampered = ".".join([header, payload, signature[:middle] + flipped + signature[middle + 1:]])

        verification = tokens.verify(tampered)

        assert not verification.ok
        assert verification.reason == "invalid signature or structure"

    def test_elevated_roles_in_payload(self, tokens):
        """Re-signing is impossible without the key, so swapping the payload breaks the signature."""
        token = tokens.issue(1, "alice", ["User"])
        header, _, signature = token.split(".")
        claims = jwt.get_unverified_claims(token)
        claims["roles"] = ["Admin"]

        verification = tokens.verify(".".join([header, b64url(claims), signature]))

        assert verification.reason == "invalid signature or structure"

    def test_alg_none(self, tokens):
        now = int(datetime.now(timezone.utc).timestamp())
        claims = {
            "sub": "1",
            "roles": ["Admin"],
            "iss": TEST_ISSUER,
            "aud": TEST_AUDIENCE,
            "iat": now,
            "exp": now + 3600,
        }
        token = f"{b64url({'alg': 'none', 'typ': 'JWT'})}.{b64url(claims)}."

        verification = tokens.verify(token)

        assert not verification.ok
        assert verification.reason == "unexpected algorithm 'none'"

    def test_other_hmac_algorithm(self, tokens):
        other = TokenService(TEST_SECRET, TEST_ISSUER, TEST_AUDIENCE, algorithm="HS512")

        verification = tokens.verify(other.issue(1, "alice", ["User"]))

        assert verification.reason == "unexpected algorithm 'HS512'"

    def test_wrong_audience(self, tokens):
        other = TokenService(TEST_SECRET, TEST_ISSUER, "SomeOtherAudience")

        verification = tokens.verify(other.issue(1, "alice", ["User"]))

        assert verification.reason.startswith("invalid claims")

    def test_wrong_issuer(self, tokens):
        other = TokenService(TEST_SECRET, "SomeoneElse", TEST_AUDIENCE)

        verification = tokens.verify(other.issue(1, "alice", ["User"]))

        assert verification.reason.startswith("invalid claims")

    def test_wrong_secret(self, tokens):
        other = TokenService("f" * 64, TEST_ISSUER, TEST_AUDIENCE)

        verification = tokens.verify(other.issue(1, "alice", ["User"]))

        assert verification.reason == "invalid signature or structure"

    def test_malformed_roles_claim(self, tokens):
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {
                "sub": "1",
                "roles": {"Admin": True},
                "iss": TEST_ISSUER,
                "aud": TEST_AUDIENCE,
                "iat": now,
                "exp": now + timedelta(minutes=5),
            },
            TEST_SECRET,
            algorithm="HS256",
        )

        assert tokens.verify(token).reason == "malformed roles claim"


class TestIdentity:
    def _identity(self, roles):
        now = datetime.now(timezone.utc)
        return Identity("1", "alice", frozenset(roles), now, now + timedelta(hours=1))

    def test_has_role(self):
        identity = self._identity({"User"})

        assert identity.has_role("User")
        assert not identity.has_role("Admin")

    def test_has_any_role(self):
        identity = self._identity({"User"})

        assert identity.has_any_role({"Admin", "User"})
        assert not identity.has_any_role({"Admin"})
        assert not identity.has_any_role(set())
