import logging

from asgiref.sync import async_to_sync

from mcp.server.auth.errors import stringify_pydantic_error

from pydantic import ValidationError

from rest_framework.views import APIView
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.permissions import AllowAny
from rest_framework import status

from django_mcp_broker.errors import OAuthError
from django_mcp_broker.provider import get_auth_provider
from django_mcp_broker.records import AuthorizationRequest
from django_mcp_broker.views.auth.forms import read_form
from django_mcp_broker.views.auth.responses import error_response, redirect_response

logger = logging.getLogger(__name__)


class AuthorizeView(APIView):
    """OAuth authorization endpoint, starts the flow with a PKCE challenge"""

    authentication_classes = []
    permission_classes = [AllowAny]

    def get(self, request: Request) -> Response:
        return self.handle(request.query_params.dict())

    def post(self, request: Request) -> Response:
        try:
            params = read_form(request)
        except OAuthError as e:
            return error_response(e)
        return self.handle(params)

    def handle(self, params: dict) -> Response:
        provider = get_auth_provider()

        try:
            try:
                auth_request = AuthorizationRequest.model_validate(params)
            except ValidationError as validation_error:
                error = "invalid_request"
                for e in validation_error.errors():
                    if e["loc"] == ("response_type",):
                        error = "unsupported_response_type"
                        break
                raise OAuthError(error, stringify_pydantic_error(validation_error))

            # Let the provider pick the upstream URI to redirect to
            return redirect_response(async_to_sync(provider.authorize)(auth_request))

        except OAuthError as e:
            logger.info("Rejected authorization request: %s", e.error)
            return error_response(e)
        except Exception:
            logger.exception("Unexpected error in authorization endpoint")
            return error_response(
                OAuthError(
                    "server_error",
                    "An unexpected error occurred",
                    status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                )
            )
