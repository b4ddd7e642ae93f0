from django.http import QueryDict

from rest_framework.exceptions import ParseError, UnsupportedMediaType
from rest_framework.request import Request

from django_mcp_broker.errors import OAuthError


def read_form(request: Request) -> dict:
    """
    Return a form-encoded or JSON request body as a flat dict.

    Raises ``OAuthError("invalid_request")`` for bodies that cannot be parsed
    or are not a JSON object.
    """
    try:
        data = request.data
    except (ParseError, UnsupportedMediaType):
        raise OAuthError("invalid_request", "Malformed request body")

    if isinstance(data, QueryDict):
        return data.dict()
    if not isinstance(data, dict):
        raise OAuthError("invalid_request", "Request body must be an object")
    return dict(data)
