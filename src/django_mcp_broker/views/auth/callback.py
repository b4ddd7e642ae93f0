import logging

from asgiref.sync import async_to_sync

from rest_framework.views import APIView
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.permissions import AllowAny
from rest_framework import status

from django_mcp_broker.errors import OAuthError
from django_mcp_broker.provider import get_auth_provider
from django_mcp_broker.records import CallbackRequest
from django_mcp_broker.views.auth.responses import error_response, redirect_response

logger = logging.getLogger(__name__)


class CallbackView(APIView):
    """Upstream provider redirects the user's browser here after sign-in"""

    authentication_classes = []
    permission_classes = [AllowAny]

    def get(self, request: Request) -> Response:
        provider = get_auth_provider()
        params = CallbackRequest(
            code=request.query_params.get("code"),
            state=request.query_params.get("state"),
            error=request.query_params.get("error"),
            error_description=request.query_params.get("error_description"),
        )

        try:
            return redirect_response(async_to_sync(provider.handle_callback)(params))
        except OAuthError as e:
            return error_response(e)
        except Exception:
            logger.exception("Unexpected error in upstream callback")
            return error_response(
                OAuthError(
                    "server_error",
                    "An unexpected error occurred",
                    status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                )
            )
