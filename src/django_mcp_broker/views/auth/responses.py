import json

from pydantic import BaseModel

from rest_framework.response import Response
from rest_framework import status

from django_mcp_broker.errors import OAuthError

NO_STORE_HEADERS = {
    "Cache-Control": "no-store",
    "Pragma": "no-cache",
}


def model_response(
    obj: BaseModel,
    status_code: int = status.HTTP_200_OK,
    headers: dict[str, str] | None = None,
) -> Response:
    return Response(
        data=json.loads(obj.model_dump_json(exclude_none=True).encode("utf-8")),
        status=status_code,
        headers=headers,
    )


def error_response(error: OAuthError) -> Response:
    return model_response(error.to_response(), status_code=error.status_code, headers=NO_STORE_HEADERS)


def redirect_response(location: str) -> Response:
    # Not HttpResponseRedirect: client redirect URIs may use custom schemes
    return Response(
        headers={
            "Cache-Control": "no-store",
            "Location": location,
        },
        status=status.HTTP_302_FOUND,
    )
