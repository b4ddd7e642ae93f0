import json

from mcp.shared.auth import OAuthMetadata

from pydantic import AnyHttpUrl

from rest_framework.views import APIView
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.permissions import AllowAny

from django_mcp_broker.conf import BrokerSettings
from django_mcp_broker.provider import get_auth_provider

# Constants
AUTHORIZATION_PATH = "/oauth/authorize"
TOKEN_PATH = "/oauth/token"


class OAuthAuthorizationServerView(APIView):
    """OAuth Authorization Server Metadata endpoint (RFC 8414)"""

    authentication_classes = []
    permission_classes = [AllowAny]

    def get(self, request: Request):
        settings = get_auth_provider().settings
        metadata = self.build_metadata(settings)

        data = json.loads(metadata.model_dump_json(exclude_none=True).encode("utf-8"))
        # AnyHttpUrl appends "/" to a bare origin; issuer must equal the token iss
        data["issuer"] = settings.issuer_url

        return Response(
            headers={"Cache-Control": "public, max-age=3600"},
            data=data,
        )

    def build_metadata(self, settings: BrokerSettings) -> OAuthMetadata:
        issuer_url = settings.issuer_url

        return OAuthMetadata(
            issuer=AnyHttpUrl(issuer_url),
            authorization_endpoint=AnyHttpUrl(issuer_url + AUTHORIZATION_PATH),
            token_endpoint=AnyHttpUrl(issuer_url + TOKEN_PATH),
            scopes_supported=settings.scopes,
            response_types_supported=["code"],
            grant_types_supported=["authorization_code", "refresh_token"],
            token_endpoint_auth_methods_supported=["none"],
            code_challenge_methods_supported=["S256"],
        )
