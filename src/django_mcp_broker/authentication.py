from rest_framework import exceptions
from rest_framework.authentication import BaseAuthentication, get_authorization_header
from rest_framework.request import Request

from django_mcp_broker.errors import OAuthError
from django_mcp_broker.provider import get_auth_provider
from django_mcp_broker.records import AuthIdentity


class BearerTokenAuthentication(BaseAuthentication):
    """
    Authenticates requests carrying an access token issued by the broker.

    ``request.user`` and ``request.auth`` are both set to the caller's
    ``AuthIdentity``. Validation is purely cryptographic, no store is consulted.
    """

    keyword = "Bearer"

    def authenticate(self, request: Request) -> tuple[AuthIdentity, AuthIdentity]:
        header = get_authorization_header(request).decode("latin-1")
        try:
            identity = get_auth_provider().authenticate(header)
        except OAuthError as e:
            detail = e.to_response().model_dump(exclude_none=True)
            if e.error == "unauthorized":
                raise exceptions.NotAuthenticated(detail=detail)
            raise exceptions.AuthenticationFailed(detail=detail)
        return (identity, identity)

    def authenticate_header(self, request: Request) -> str:
        issuer = get_auth_provider().settings.issuer_url
        return f'{self.keyword} resource_metadata="{issuer}/.well-known/oauth-protected-resource"'
