"""
Credential helpers: opaque token generation, PKCE verification and signed
access tokens.
"""

import base64
import hashlib
import hmac
import math
import secrets

from jose import JWTError, jwt

# Only registered claims that the broker manages itself.
RESERVED_CLAIMS = ("iss", "iat", "exp")


class TokenValidationError(Exception):
    """Raised when an access token fails signature, issuer or expiry checks."""


def base64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode().rstrip("=")


def generate_token(nbytes: int = 32) -> str:
    """Return an unpredictable URL-safe value for codes, states and refresh tokens."""
    return base64url_encode(secrets.token_bytes(nbytes))


def compute_code_challenge(code_verifier: str) -> str:
    sha256 = hashlib.sha256(code_verifier.encode()).digest()
    return base64url_encode(sha256)


def verify_code_challenge(code_verifier: str, code_challenge: str) -> bool:
    """Check an S256 PKCE verifier against the challenge sent to /authorize."""
    # see https://datatracker.ietf.org/doc/html/rfc7636#section-4.6
    return hmac.compare_digest(
        compute_code_challenge(code_verifier).encode(),
        code_challenge.encode(),
    )


def create_access_token(
    claims: dict,
    *,
    secret: str,
    issuer: str,
    lifetime: int,
    now: float,
    algorithm: str = "HS256",
) -> str:
    issued_at = int(now)
    to_encode = {key: value for key, value in claims.items() if key not in RESERVED_CLAIMS}
    to_encode.update(
        {
            "iss": issuer,
            "iat": issued_at,
            # Rounded up so a fractional now never shortens the lifetime
            "exp": math.ceil(now + lifetime),
        }
    )
    return jwt.encode(to_encode, secret, algorithm=algorithm)


def decode_access_token(
    token: str,
    *,
    secret: str,
    issuer: str,
    now: float,
    algorithm: str = "HS256",
) -> dict:
    """
    Verify an access token and return its claims.

    Expiry is checked against ``now`` instead of the wall clock: a token is
    rejected at or after its ``exp`` instant.
    """
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[algorithm],
            issuer=issuer,
            options={
                "verify_aud": False,
                # Expiry is checked below against the injected clock;
                # require_exp would turn the wall-clock check back on.
                "verify_exp": False,
                "require_iss": True,
                "require_sub": True,
            },
        )
    except JWTError as e:
        raise TokenValidationError(str(e)) from e

    expires_at = payload.get("exp")
    if not isinstance(expires_at, (int, float)) or now >= expires_at:
        raise TokenValidationError("Token has expired")

    return payload
