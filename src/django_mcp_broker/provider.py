import logging
import threading
import time
from urllib.parse import urlsplit

from mcp.server.auth.provider import construct_redirect_uri

from pydantic import ValidationError

from rest_framework import status

from django_mcp_broker.conf import BrokerSettings, get_broker_settings
from django_mcp_broker.crypto import (
    TokenValidationError,
    create_access_token,
    decode_access_token,
    generate_token,
    verify_code_challenge,
)
from django_mcp_broker.errors import OAuthError, UpstreamError
from django_mcp_broker.records import (
    AuthIdentity,
    AuthorizationCodeGrant,
    AuthorizationRequest,
    CallbackRequest,
    IssuedAuthCode,
    PendingAuthRequest,
    RefreshRecord,
    RefreshTokenGrant,
    TokenResponse,
)
from django_mcp_broker.store import Store, TTLStore
from django_mcp_broker.sweeper import ExpirySweeper
from django_mcp_broker.types import Clock
from django_mcp_broker.upstream import UpstreamClient, parse_tenant_id

logger = logging.getLogger(__name__)


class AuthProvider:
    """
    Authorization server state machine.

    Drives the authorize -> upstream login -> callback -> code redemption
    sequence, renews access tokens from refresh records and verifies bearer
    tokens. All protocol state lives in three TTL-bounded stores; access
    tokens themselves are stateless signed JWTs.
    """

    def __init__(
        self,
        settings: BrokerSettings,
        upstream: UpstreamClient | None = None,
        clock: Clock = time.time,
    ):
        self.settings = settings
        self.clock = clock
        self.upstream = upstream or UpstreamClient(settings)

        self.pending_requests: Store[PendingAuthRequest] = TTLStore(
            "pending_requests", settings.pending_request_lifetime, clock
        )
        self.auth_codes: Store[IssuedAuthCode] = TTLStore(
            "auth_codes", settings.authorization_code_lifetime, clock
        )
        self.refresh_tokens: Store[RefreshRecord] = TTLStore(
            "refresh_tokens", settings.refresh_token_lifetime, clock
        )

        self.sweeper = ExpirySweeper(
            [self.pending_requests, self.auth_codes, self.refresh_tokens],
            interval=settings.sweep_interval,
            clock=clock,
        )

    async def authorize(self, params: AuthorizationRequest) -> str:
        """Record the client's request and return the upstream login URL."""
        if params.login_url is not None:
            login_url = urlsplit(params.login_url)
            if login_url.scheme not in ("http", "https") or not login_url.netloc:
                raise OAuthError("invalid_request", "login_url must be an absolute http(s) URL")

        internal_state = generate_token(16)
        self.pending_requests.put(
            internal_state,
            PendingAuthRequest(
                internal_state=internal_state,
                code_challenge=params.code_challenge,
                client_redirect_uri=params.redirect_uri,
                client_state=params.state,
                created_at=self.clock(),
            ),
        )
        logger.info("Registered authorization request, redirecting to upstream login")

        return self.upstream.authorization_url(internal_state, login_url=params.login_url)

    async def handle_callback(self, params: CallbackRequest) -> str:
        """
        Complete the upstream leg of the flow.

        Returns the client redirect URI carrying a freshly minted internal code
        and the client's original state.
        """
        if params.error:
            logger.warning("Upstream authorization failed: %s", params.error)
            raise OAuthError(params.error, params.error_description)

        if not params.code:
            raise OAuthError("invalid_request", "code required")

        pending = self.pending_requests.pop(params.state) if params.state else None
        if pending is None:
            # Unknown, expired and already consumed states look the same
            raise OAuthError("invalid_state", "Unknown or expired state")

        try:
            tokens = await self.upstream.exchange_code(params.code)
        except UpstreamError:
            logger.exception("Upstream authorization code exchange failed")
            raise OAuthError(
                "server_error",
                "Upstream token exchange failed",
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )

        code = generate_token()
        tenant_id = parse_tenant_id(tokens.id)
        self.auth_codes.put(
            code,
            IssuedAuthCode(
                code=code,
                upstream_access_token=tokens.access_token,
                upstream_refresh_token=tokens.refresh_token,
                upstream_instance_url=tokens.instance_url,
                tenant_id=tenant_id,
                code_challenge=pending.code_challenge,
                created_at=self.clock(),
            ),
        )
        logger.info("Issued authorization code for tenant %s", tenant_id)

        return construct_redirect_uri(pending.client_redirect_uri, code=code, state=pending.client_state)

    async def exchange_authorization_code(self, grant: AuthorizationCodeGrant) -> TokenResponse:
        # Consumed before anything else so a code can never be redeemed twice,
        # even when the verifier turns out to be wrong.
        auth_code = self.auth_codes.pop(grant.code)
        if auth_code is None:
            raise OAuthError("invalid_grant", "Code expired or invalid")

        if not verify_code_challenge(grant.code_verifier, auth_code.code_challenge):
            logger.warning("PKCE verification failed for tenant %s", auth_code.tenant_id)
            raise OAuthError("invalid_grant", "PKCE verification failed")

        access_token = self._create_access_token(
            tenant_id=auth_code.tenant_id,
            instance_url=auth_code.upstream_instance_url,
            upstream_token=auth_code.upstream_access_token,
        )

        refresh_token = generate_token()
        self.refresh_tokens.put(
            refresh_token,
            RefreshRecord(
                refresh_token=refresh_token,
                upstream_refresh_token=auth_code.upstream_refresh_token,
                upstream_instance_url=auth_code.upstream_instance_url,
                tenant_id=auth_code.tenant_id,
                created_at=self.clock(),
            ),
        )
        logger.info("Issued tokens for tenant %s", auth_code.tenant_id)

        return TokenResponse(
            access_token=access_token,
            expires_in=self.settings.access_token_lifetime,
            refresh_token=refresh_token,
            scope=self.settings.scope,
        )

    async def exchange_refresh_token(self, grant: RefreshTokenGrant) -> TokenResponse:
        rotate = self.settings.rotate_refresh_tokens
        if rotate:
            record = self.refresh_tokens.pop(grant.refresh_token)
        else:
            record = self.refresh_tokens.get(grant.refresh_token)
        if record is None:
            raise OAuthError("invalid_grant", "Refresh token expired or invalid")

        try:
            if record.upstream_refresh_token is None:
                raise UpstreamError("Upstream did not issue a refresh token")
            tokens = await self.upstream.refresh(record.upstream_refresh_token)
        except UpstreamError as e:
            # Force a full re-authorization instead of looping on a broken credential
            self.refresh_tokens.delete(grant.refresh_token)
            logger.warning("Revoked refresh token for tenant %s: %s", record.tenant_id, e)
            raise OAuthError("invalid_grant", "Upstream refresh failed")

        instance_url = tokens.instance_url or record.upstream_instance_url
        access_token = self._create_access_token(
            tenant_id=record.tenant_id,
            instance_url=instance_url,
            upstream_token=tokens.access_token,
        )

        new_refresh_token = None
        if rotate:
            new_refresh_token = generate_token()
            self.refresh_tokens.put(
                new_refresh_token,
                RefreshRecord(
                    refresh_token=new_refresh_token,
                    upstream_refresh_token=tokens.refresh_token or record.upstream_refresh_token,
                    upstream_instance_url=instance_url,
                    tenant_id=record.tenant_id,
                    created_at=self.clock(),
                ),
            )
        logger.info("Refreshed access token for tenant %s", record.tenant_id)

        return TokenResponse(
            access_token=access_token,
            expires_in=self.settings.access_token_lifetime,
            refresh_token=new_refresh_token,
            scope=self.settings.scope,
        )

    def authenticate(self, authorization_header: str | None) -> AuthIdentity:
        """Validate an ``Authorization: Bearer <token>`` header value."""
        scheme, _, token = (authorization_header or "").partition(" ")
        token = token.strip()
        if scheme.lower() != "bearer" or not token or " " in token:
            raise OAuthError(
                "unauthorized",
                "Bearer token required",
                status_code=status.HTTP_401_UNAUTHORIZED,
            )
        return self.load_access_token(token)

    def load_access_token(self, token: str) -> AuthIdentity:
        """Verify a token by signature, issuer and expiry alone; no store lookup."""
        try:
            payload = decode_access_token(
                token,
                secret=self.settings.signing_secret,
                issuer=self.settings.issuer_url,
                now=self.clock(),
                algorithm=self.settings.signing_algorithm,
            )
            return AuthIdentity(
                tenant_id=payload["sub"],
                instance_url=payload.get("instance_url"),
                upstream_token=payload.get("upstream_token"),
                scope=payload.get("scope", ""),
            )
        except (TokenValidationError, ValidationError):
            raise OAuthError(
                "invalid_token",
                "Token expired or invalid",
                status_code=status.HTTP_401_UNAUTHORIZED,
            )

    def _create_access_token(self, tenant_id: str, instance_url: str | None, upstream_token: str) -> str:
        return create_access_token(
            {
                "sub": tenant_id,
                "instance_url": instance_url,
                "upstream_token": upstream_token,
                "scope": self.settings.scope,
            },
            secret=self.settings.signing_secret,
            issuer=self.settings.issuer_url,
            lifetime=self.settings.access_token_lifetime,
            now=self.clock(),
            algorithm=self.settings.signing_algorithm,
        )


_auth_provider: AuthProvider | None = None
_auth_provider_lock = threading.Lock()


def get_auth_provider() -> AuthProvider:
    """Process-wide provider built from Django settings on first use."""
    global _auth_provider
    with _auth_provider_lock:
        if _auth_provider is None:
            _auth_provider = AuthProvider(get_broker_settings())
        return _auth_provider


def set_auth_provider(provider: AuthProvider | None) -> None:
    global _auth_provider
    with _auth_provider_lock:
        _auth_provider = provider


def reset_auth_provider() -> None:
    set_auth_provider(None)
