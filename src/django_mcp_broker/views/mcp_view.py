import logging

import mcp.types as types
from mcp.server.auth.errors import stringify_pydantic_error
from mcp.shared.version import SUPPORTED_PROTOCOL_VERSIONS

from pydantic import ValidationError

from rest_framework.views import APIView
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from rest_framework import status
from rest_framework.exceptions import ParseError

from django_mcp_broker.authentication import BearerTokenAuthentication
from django_mcp_broker.records import AuthIdentity

logger = logging.getLogger(__name__)

SERVER_NAME = "django-mcp-broker"
SERVER_VERSION = "0.1.0"


class McpView(APIView):
    """
    Bearer-protected MCP endpoint.

    ``initialize`` and ``ping`` are answered here; every other method is handed
    to ``handle_method`` together with the caller's identity. Subclass and
    override it to serve tools, resources and prompts.
    """

    authentication_classes = [BearerTokenAuthentication]
    permission_classes = [IsAuthenticated]

    def post(self, request: Request) -> Response:
        identity: AuthIdentity = request.auth
        try:
            body = request.data
        except ParseError:
            return self.invalid_response(None, types.PARSE_ERROR, "Parse error")

        if isinstance(body, dict) and "id" not in body:
            try:
                types.JSONRPCNotification.model_validate(body)
            except ValidationError as e:
                return self.invalid_response(None, types.INVALID_REQUEST, stringify_pydantic_error(e))
            return Response(status=status.HTTP_202_ACCEPTED)

        try:
            rpc_request = types.JSONRPCRequest.model_validate(body)
        except ValidationError as e:
            request_id = body.get("id") if isinstance(body, dict) else None
            if not isinstance(request_id, (str, int)):
                request_id = None
            return self.invalid_response(request_id, types.INVALID_REQUEST, stringify_pydantic_error(e))

        logger.debug("MCP %s from tenant %s", rpc_request.method, identity.tenant_id)

        if rpc_request.method == "initialize":
            requested_version = (rpc_request.params or {}).get("protocolVersion")
            if requested_version not in SUPPORTED_PROTOCOL_VERSIONS:
                requested_version = types.LATEST_PROTOCOL_VERSION

            init_result = types.InitializeResult(
                protocolVersion=requested_version,
                capabilities=types.ServerCapabilities(),
                serverInfo=types.Implementation(name=SERVER_NAME, version=SERVER_VERSION),
            )
            return self.result_response(rpc_request, init_result.model_dump(by_alias=True, exclude_none=True))

        if rpc_request.method == "ping":
            return self.result_response(rpc_request, {})

        return self.handle_method(rpc_request, identity)

    def invalid_response(self, request_id: str | int | None, code: int, message: str) -> Response:
        # JSONRPCError cannot carry a null id, which is what an unidentifiable request gets
        return Response(
            {"jsonrpc": "2.0", "id": request_id, "error": {"code": code, "message": message}},
            status=status.HTTP_400_BAD_REQUEST,
        )

    def handle_method(self, rpc_request: types.JSONRPCRequest, identity: AuthIdentity) -> Response:
        return self.error_response(
            rpc_request,
            types.ErrorData(code=types.METHOD_NOT_FOUND, message=f"Method not found: {rpc_request.method}"),
        )

    def result_response(self, rpc_request: types.JSONRPCRequest, result: dict) -> Response:
        response = types.JSONRPCResponse(
            jsonrpc="2.0",
            id=rpc_request.id,
            result=result,
        )
        return Response(response.model_dump(by_alias=True, exclude_none=True))

    def error_response(self, rpc_request: types.JSONRPCRequest, error: types.ErrorData) -> Response:
        response = types.JSONRPCError(
            jsonrpc="2.0",
            id=rpc_request.id,
            error=error,
        )
        return Response(response.model_dump(by_alias=True, exclude_none=True))
