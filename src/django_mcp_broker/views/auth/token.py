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
from django_mcp_broker.records import AuthorizationCodeGrant, RefreshTokenGrant, TokenResponse
from django_mcp_broker.views.auth.forms import read_form
from django_mcp_broker.views.auth.responses import NO_STORE_HEADERS, error_response, model_response

logger = logging.getLogger(__name__)

GRANT_TYPES = {
    "authorization_code": AuthorizationCodeGrant,
    "refresh_token": RefreshTokenGrant,
}


class TokenView(APIView):
    """Redeems authorization codes and refresh tokens for access tokens"""

    authentication_classes = []
    permission_classes = [AllowAny]

    def post(self, request: Request) -> Response:
        provider = get_auth_provider()

        try:
            form_data = read_form(request)

            grant_type = form_data.get("grant_type")
            if grant_type is not None and not isinstance(grant_type, str):
                raise OAuthError("invalid_request", "grant_type must be a string")

            grant_model = GRANT_TYPES.get(grant_type)
            if grant_model is None:
                raise OAuthError(
                    "unsupported_grant_type",
                    f"Supported grant types are {', '.join(GRANT_TYPES)}",
                )

            try:
                grant = grant_model.model_validate(form_data)
            except ValidationError as validation_error:
                raise OAuthError("invalid_request", stringify_pydantic_error(validation_error))

            tokens: TokenResponse
            match grant:
                case AuthorizationCodeGrant():
                    tokens = async_to_sync(provider.exchange_authorization_code)(grant)
                case RefreshTokenGrant():
                    tokens = async_to_sync(provider.exchange_refresh_token)(grant)

        except OAuthError as e:
            logger.info("Rejected token request: %s", e.error)
            return error_response(e)
        except Exception:
            logger.exception("Unexpected error in token endpoint")
            return error_response(
                OAuthError(
                    "server_error",
                    "An unexpected error occurred",
                    status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                )
            )

        return model_response(tokens, headers=NO_STORE_HEADERS)
