from rest_framework import status

from django_mcp_broker.records import OAuthErrorResponse


class OAuthError(Exception):
    """
    A protocol error answered to the caller as ``{error, description?}``.

    ``error`` is drawn from the OAuth error vocabulary (``invalid_request``,
    ``invalid_grant``, ``invalid_state``, ``unsupported_response_type``,
    ``unsupported_grant_type``, ``invalid_token``, ``unauthorized``,
    ``server_error``).
    """

    def __init__(
        self,
        error: str,
        description: str | None = None,
        status_code: int = status.HTTP_400_BAD_REQUEST,
    ):
        super().__init__(description or error)
        self.error = error
        self.description = description
        self.status_code = status_code

    def to_response(self) -> OAuthErrorResponse:
        return OAuthErrorResponse(error=self.error, description=self.description)


class UpstreamError(Exception):
    """The upstream provider rejected a request, timed out or returned garbage."""
