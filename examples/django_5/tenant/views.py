import httpx

import mcp.types as types

from rest_framework.response import Response

from django_mcp_broker.records import AuthIdentity
from django_mcp_broker.views.mcp_view import McpView

API_VERSION = "v60.0"

TOOLS = [
    types.Tool(
        name="whoami",
        description="Returns the tenant the access token was issued for",
        inputSchema={"type": "object"},
    ),
    types.Tool(
        name="query",
        description="Runs a SOQL query against the caller's instance",
        inputSchema={
            "type": "object",
            "required": ["soql"],
            "properties": {
                "soql": {"type": "string", "description": "Query to run"},
            },
        },
    ),
]


class TenantMcpView(McpView):
    """Example tools that act on behalf of the caller with its upstream token."""

    def handle_method(self, rpc_request: types.JSONRPCRequest, identity: AuthIdentity) -> Response:
        if rpc_request.method == "tools/list":
            result = types.ListToolsResult(tools=TOOLS)
            return self.result_response(rpc_request, result.model_dump(by_alias=True, exclude_none=True))

        if rpc_request.method == "tools/call":
            params = types.CallToolRequestParams.model_validate(rpc_request.params or {})
            match params.name:
                case "whoami":
                    text = f"tenant={identity.tenant_id} instance={identity.instance_url}"
                case "query":
                    text = self.run_query(identity, (params.arguments or {}).get("soql", ""))
                case _:
                    return self.error_response(
                        rpc_request,
                        types.ErrorData(code=types.INVALID_PARAMS, message=f"Unknown tool: {params.name}"),
                    )
            result = types.CallToolResult(content=[types.TextContent(type="text", text=text)])
            return self.result_response(rpc_request, result.model_dump(by_alias=True, exclude_none=True))

        return super().handle_method(rpc_request, identity)

    def run_query(self, identity: AuthIdentity, soql: str) -> str:
        response = httpx.get(
            f"{identity.instance_url}/services/data/{API_VERSION}/query",
            params={"q": soql},
            headers={"Authorization": f"Bearer {identity.upstream_token}"},
            timeout=10.0,
        )
        return response.text
