"""Credential codec tests: opaque tokens, PKCE and signed access tokens."""

import pytest
from jose import jwt

from django_mcp_broker.crypto import (
    TokenValidationError,
    base64url_encode,
    compute_code_challenge,
    create_access_token,
    decode_access_token,
    generate_token,
    verify_code_challenge,
)

from _helpers import START_TIME

SECRET = "unit-test-secret"
ISSUER = "https://mcp.example.com"

# RFC 7636 Appendix B
RFC_VERIFIER = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"
RFC_CHALLENGE = "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"


def make_token(now=START_TIME, lifetime=3600, **claims):
    claims.setdefault("sub", "00DORG")
    return create_access_token(claims, secret=SECRET, issuer=ISSUER, lifetime=lifetime, now=now)


class TestOpaqueTokens:
    def test_base64url_has_no_padding_or_unsafe_characters(self):
        encoded = base64url_encode(b"\xfb\xff\xfe")
        assert encoded == "-__-"
        assert base64url_encode(b"a") == "YQ"

    def test_generate_token_is_url_safe_and_unique(self):
        tokens = {generate_token() for _ in range(100)}
        assert len(tokens) == 100
        for token in tokens:
            assert len(token) == 43
            assert "=" not in token and "+" not in token and "/" not in token

    def test_generate_token_length_follows_byte_count(self):
        assert len(generate_token(16)) == 22


class TestPKCE:
    def test_rfc7636_example(self):
        assert compute_code_challenge(RFC_VERIFIER) == RFC_CHALLENGE
        assert verify_code_challenge(RFC_VERIFIER, RFC_CHALLENGE)

    def test_mismatched_verifier_is_rejected(self):
        assert not verify_code_challenge(RFC_VERIFIER + "x", RFC_CHALLENGE)

    def test_plain_challenge_is_not_accepted(self):
        # The verifier itself must not pass as its own challenge
        assert not verify_code_challenge(RFC_VERIFIER, RFC_VERIFIER)


class TestAccessTokens:
    def test_claims_survive_signing(self):
        token = make_token(instance_url="https://acme.test", upstream_token="up-1", scope="mcp:read")

        payload = decode_access_token(token, secret=SECRET, issuer=ISSUER, now=START_TIME + 10)

        assert payload["sub"] == "00DORG"
        assert payload["instance_url"] == "https://acme.test"
        assert payload["upstream_token"] == "up-1"
        assert payload["iss"] == ISSUER
        assert payload["iat"] == int(START_TIME)
        assert payload["exp"] == int(START_TIME) + 3600

    def test_reserved_claims_cannot_be_overridden(self):
        token = make_token(iss="https://evil.example.com", exp=int(START_TIME) + 10**9)
        claims = jwt.get_unverified_claims(token)
        assert claims["iss"] == ISSUER
        assert claims["exp"] == int(START_TIME) + 3600

    def test_valid_until_just_before_expiry(self):
        token = make_token()
        decode_access_token(token, secret=SECRET, issuer=ISSUER, now=START_TIME + 3599.999)

    @pytest.mark.parametrize("offset", [3600, 3601, 86400])
    def test_rejected_at_or_after_expiry(self, offset):
        token = make_token()
        with pytest.raises(TokenValidationError):
            decode_access_token(token, secret=SECRET, issuer=ISSUER, now=START_TIME + offset)

    def test_wrong_secret_is_rejected(self):
        token = make_token()
        with pytest.raises(TokenValidationError):
            decode_access_token(token, secret="other-secret", issuer=ISSUER, now=START_TIME)

    def test_wrong_issuer_is_rejected(self):
        token = make_token()
        with pytest.raises(TokenValidationError):
            decode_access_token(token, secret=SECRET, issuer="https://other.example.com", now=START_TIME)

    def test_tampered_payload_is_rejected(self):
        header, payload, signature = make_token().split(".")
        forged_payload = make_token(sub="00DOTHER").split(".")[1]
        with pytest.raises(TokenValidationError):
            decode_access_token(
                f"{header}.{forged_payload}.{signature}",
                secret=SECRET,
                issuer=ISSUER,
                now=START_TIME,
            )

    def test_subject_is_required(self):
        token = create_access_token({}, secret=SECRET, issuer=ISSUER, lifetime=3600, now=START_TIME)
        with pytest.raises(TokenValidationError):
            decode_access_token(token, secret=SECRET, issuer=ISSUER, now=START_TIME)

    def test_garbage_is_rejected(self):
        with pytest.raises(TokenValidationError):
            decode_access_token("not-a-jwt", secret=SECRET, issuer=ISSUER, now=START_TIME)

    def test_expiry_follows_injected_clock_not_wall_clock(self):
        # Minted and checked long before the wall clock's present
        token = make_token(now=1_000_000_000.0)
        payload = decode_access_token(token, secret=SECRET, issuer=ISSUER, now=1_000_000_000.0 + 60)
        assert payload["exp"] == 1_000_000_000 + 3600

    def test_missing_expiry_is_rejected(self):
        token = jwt.encode({"sub": "00DORG", "iss": ISSUER}, SECRET, algorithm="HS256")
        with pytest.raises(TokenValidationError):
            decode_access_token(token, secret=SECRET, issuer=ISSUER, now=START_TIME)

    def test_fractional_now_keeps_full_lifetime(self):
        token = make_token(now=START_TIME + 0.75)
        claims = jwt.get_unverified_claims(token)

        assert claims["iat"] == int(START_TIME)
        assert claims["exp"] == int(START_TIME) + 3601
        decode_access_token(token, secret=SECRET, issuer=ISSUER, now=START_TIME + 0.75 + 3599.9)
