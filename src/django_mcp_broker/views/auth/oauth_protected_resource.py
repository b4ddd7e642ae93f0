import json

from mcp.shared.auth import ProtectedResourceMetadata

from pydantic import AnyHttpUrl

from rest_framework.views import APIView
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.permissions import AllowAny

from django_mcp_broker.conf import BrokerSettings
from django_mcp_broker.provider import get_auth_provider


class OAuthProtectedResourceView(APIView):
    """OAuth Protected Resource Metadata endpoint (RFC 9728)"""

    authentication_classes = []
    permission_classes = [AllowAny]

    def get(self, request: Request):
        settings = get_auth_provider().settings
        metadata = self.build_metadata(settings)

        data = json.loads(metadata.model_dump_json(exclude_none=True).encode("utf-8"))
        # AnyHttpUrl appends "/" to a bare origin
        data["resource"] = settings.issuer_url
        data["authorization_servers"] = [settings.issuer_url]

        return Response(
            headers={"Cache-Control": "public, max-age=3600"},
            data=data,
        )

    def build_metadata(self, settings: BrokerSettings) -> ProtectedResourceMetadata:
        return ProtectedResourceMetadata(
            resource=AnyHttpUrl(settings.issuer_url),
            authorization_servers=[AnyHttpUrl(settings.issuer_url)],
            scopes_supported=settings.scopes,
            bearer_methods_supported=["header"],
        )
