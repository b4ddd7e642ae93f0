"""
Client for the upstream OAuth provider (Salesforce-style): builds the browser
redirect to its authorization endpoint and calls its token endpoint.
"""

import logging

import httpx

from mcp.server.auth.provider import construct_redirect_uri

from pydantic import ValidationError

from django_mcp_broker.conf import BrokerSettings
from django_mcp_broker.errors import UpstreamError
from django_mcp_broker.records import UpstreamTokens

logger = logging.getLogger(__name__)

UNKNOWN_TENANT = "unknown"


def parse_tenant_id(identity_url: str | None) -> str:
    """
    Extract the org id from an identity URL such as
    ``https://login.salesforce.com/id/00Dxx0000001gPL/005xx000001Sv6e``.
    """
    if not identity_url:
        return UNKNOWN_TENANT
    parts = identity_url.split("/")
    if len(parts) > 4 and parts[4]:
        return parts[4]
    return UNKNOWN_TENANT


class UpstreamClient:
    def __init__(self, settings: BrokerSettings, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = settings
        # Tests substitute an httpx.MockTransport
        self.transport = transport

    def authorization_url(self, state: str, login_url: str | None = None) -> str:
        """Where to send the user's browser to sign in with the upstream provider."""
        params = {
            "response_type": "code",
            "client_id": self.settings.upstream_client_id,
            "redirect_uri": self.settings.callback_url,
            "state": state,
            "scope": self.settings.upstream_scope,
            "prompt": self.settings.upstream_prompt,
        }
        return construct_redirect_uri(login_url or self.settings.upstream_authorize_url, **params)

    async def exchange_code(self, code: str) -> UpstreamTokens:
        return await self._request_tokens(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.settings.callback_url,
            }
        )

    async def refresh(self, refresh_token: str) -> UpstreamTokens:
        return await self._request_tokens(
            {
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
            }
        )

    async def _request_tokens(self, form: dict[str, str]) -> UpstreamTokens:
        data = {
            **form,
            "client_id": self.settings.upstream_client_id,
            "client_secret": self.settings.upstream_client_secret,
        }
        grant_type = form["grant_type"]

        try:
            async with httpx.AsyncClient(
                timeout=self.settings.upstream_timeout,
                transport=self.transport,
            ) as client:
                response = await client.post(
                    self.settings.upstream_token_url,
                    data=data,
                    headers={"Accept": "application/json"},
                )
        except httpx.TimeoutException as e:
            raise UpstreamError(f"Upstream {grant_type} request timed out") from e
        except httpx.HTTPError as e:
            raise UpstreamError(f"Upstream {grant_type} request failed: {e}") from e

        if response.is_error:
            raise UpstreamError(
                f"Upstream {grant_type} request returned {response.status_code}: {response.text[:500]}"
            )

        try:
            return UpstreamTokens.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise UpstreamError(f"Upstream {grant_type} response was not a token response") from e
