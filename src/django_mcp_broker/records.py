"""Pydantic models for broker state and for the request/response bodies of the
OAuth endpoints."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


# Store records

class PendingAuthRequest(BaseModel):
    """An authorization request waiting for the upstream provider to call back."""

    internal_state: str
    code_challenge: str
    client_redirect_uri: str
    client_state: str | None = None
    created_at: float


class IssuedAuthCode(BaseModel):
    """An internal authorization code waiting to be redeemed at the token endpoint."""

    code: str
    upstream_access_token: str
    upstream_refresh_token: str | None = None
    upstream_instance_url: str | None = None
    tenant_id: str
    code_challenge: str
    created_at: float


class RefreshRecord(BaseModel):
    refresh_token: str
    upstream_refresh_token: str | None = None
    upstream_instance_url: str | None = None
    tenant_id: str
    created_at: float


class AuthIdentity(BaseModel):
    """Identity of a caller that presented a valid access token."""

    tenant_id: str
    instance_url: str | None = None
    upstream_token: str
    scope: str

    @property
    def is_authenticated(self) -> bool:
        # Lets DRF's IsAuthenticated permission accept the identity as request.user
        return True


class UpstreamTokens(BaseModel):
    model_config = ConfigDict(extra="ignore")

    access_token: str
    refresh_token: str | None = None
    instance_url: str | None = None
    id: str | None = None


# Endpoint bodies

class AuthorizationRequest(BaseModel):
    response_type: Literal["code"]
    redirect_uri: str = Field(..., min_length=1)
    code_challenge: str = Field(..., min_length=1)
    code_challenge_method: Literal["S256"]
    state: str | None = None
    login_url: str | None = None


class CallbackRequest(BaseModel):
    code: str | None = None
    state: str | None = None
    error: str | None = None
    error_description: str | None = None


class AuthorizationCodeGrant(BaseModel):
    grant_type: Literal["authorization_code"]
    code: str = Field(..., min_length=1)
    code_verifier: str = Field(..., min_length=1)


class RefreshTokenGrant(BaseModel):
    grant_type: Literal["refresh_token"]
    refresh_token: str = Field(..., min_length=1)


class TokenResponse(BaseModel):
    access_token: str
    token_type: Literal["Bearer"] = "Bearer"
    expires_in: int
    refresh_token: str | None = None
    scope: str


class OAuthErrorResponse(BaseModel):
    error: str
    description: str | None = None
