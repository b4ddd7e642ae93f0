"""
Shared pytest fixtures.

Django is configured here, before any broker module is imported. Upstream
calls never leave the process: the provider under test talks to a
``FakeUpstream`` through ``httpx.MockTransport``, and time is a ``FakeClock``.
"""

import json
from urllib.parse import parse_qsl

import django
from django.conf import settings

import httpx
import pytest

from _helpers import BROKER_SETTINGS

if not settings.configured:
    settings.configure(
        DEBUG=False,
        SECRET_KEY="django-insecure-test-key",
        ALLOWED_HOSTS=["testserver"],
        ROOT_URLCONF="django_mcp_broker.urls",
        INSTALLED_APPS=[
            "django.contrib.contenttypes",
            "django.contrib.auth",
            "rest_framework",
        ],
        DATABASES={"default": {"ENGINE": "django.db.backends.sqlite3", "NAME": ":memory:"}},
        MIDDLEWARE=[],
        REST_FRAMEWORK={
            "DEFAULT_RENDERER_CLASSES": ["rest_framework.renderers.JSONRenderer"],
            "UNAUTHENTICATED_USER": None,
        },
        MCP_BROKER=BROKER_SETTINGS,
    )
    django.setup()

from asgiref.sync import async_to_sync  # noqa: E402
from rest_framework.test import APIClient  # noqa: E402

from django_mcp_broker.conf import BrokerSettings  # noqa: E402
from django_mcp_broker.crypto import compute_code_challenge, generate_token  # noqa: E402
from django_mcp_broker.provider import AuthProvider, reset_auth_provider, set_auth_provider  # noqa: E402
from django_mcp_broker.records import AuthorizationRequest, CallbackRequest  # noqa: E402
from django_mcp_broker.upstream import UpstreamClient  # noqa: E402

from _helpers import CLIENT_REDIRECT_URI, UPSTREAM_IDENTITY_URL, FakeClock, query_params  # noqa: E402


class FakeUpstream:
    """Stands in for the upstream token endpoint."""

    def __init__(self):
        self.requests: list[dict[str, str]] = []
        self.fail_code_exchange = False
        self.fail_refresh = False
        self.refresh_count = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        form = dict(parse_qsl(request.content.decode()))
        self.requests.append(form)

        if form.get("grant_type") == "authorization_code":
            if self.fail_code_exchange:
                return httpx.Response(400, json={"error": "invalid_grant"})
            return httpx.Response(
                200,
                json={
                    "access_token": "upstream-access-1",
                    "refresh_token": "upstream-refresh-1",
                    "instance_url": "https://acme.my.upstream.test",
                    "id": UPSTREAM_IDENTITY_URL,
                    "token_type": "Bearer",
                },
            )

        if form.get("grant_type") == "refresh_token":
            if self.fail_refresh:
                return httpx.Response(400, json={"error": "invalid_grant", "error_description": "expired"})
            self.refresh_count += 1
            return httpx.Response(
                200,
                json={
                    "access_token": f"upstream-access-refreshed-{self.refresh_count}",
                    "instance_url": "https://acme-new.my.upstream.test",
                    "id": UPSTREAM_IDENTITY_URL,
                },
            )

        return httpx.Response(400, content=json.dumps({"error": "unsupported_grant_type"}))


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def broker_settings():
    return BrokerSettings.from_django()


@pytest.fixture
def fake_upstream():
    return FakeUpstream()


@pytest.fixture
def make_provider(clock, fake_upstream):
    """Build a provider wired to the fake upstream and installed for the views."""

    def _make(settings: BrokerSettings | None = None) -> AuthProvider:
        settings = settings or BrokerSettings.from_django()
        provider = AuthProvider(
            settings,
            upstream=UpstreamClient(settings, transport=httpx.MockTransport(fake_upstream)),
            clock=clock,
        )
        set_auth_provider(provider)
        return provider

    yield _make
    reset_auth_provider()


@pytest.fixture
def provider(make_provider):
    return make_provider()


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def pkce():
    """A (code_verifier, code_challenge) pair."""
    verifier = generate_token(32)
    return verifier, compute_code_challenge(verifier)


@pytest.fixture
def issue_code(provider):
    """Run authorize + callback against the provider and return the internal code."""

    def _issue(code_challenge: str, client_state: str | None = "client-state") -> str:
        upstream_url = async_to_sync(provider.authorize)(
            AuthorizationRequest(
                response_type="code",
                redirect_uri=CLIENT_REDIRECT_URI,
                code_challenge=code_challenge,
                code_challenge_method="S256",
                state=client_state,
            )
        )
        state = query_params(upstream_url)["state"]
        client_url = async_to_sync(provider.handle_callback)(
            CallbackRequest(code="upstream-code", state=state)
        )
        return query_params(client_url)["code"]

    return _issue

