"""
Broker settings.

Read from the ``MCP_BROKER`` dict in Django settings, e.g.::

    MCP_BROKER = {
        "ISSUER": "https://mcp.example.com",
        "SIGNING_SECRET": "...",
        "UPSTREAM_CLIENT_ID": "...",
        "UPSTREAM_CLIENT_SECRET": "...",
    }

Secrets fall back to environment variables so they can stay out of the
settings module.
"""

import os

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.core.signals import setting_changed

from pydantic import BaseModel, Field

SETTINGS_NAME = "MCP_BROKER"

# Settings key -> environment variable consulted when the key is not set.
ENV_FALLBACKS = {
    "ISSUER": "OAUTH_ISSUER",
    "SIGNING_SECRET": "OAUTH_JWT_SECRET",
    "UPSTREAM_CLIENT_ID": "UPSTREAM_OAUTH_CLIENT_ID",
    "UPSTREAM_CLIENT_SECRET": "UPSTREAM_OAUTH_CLIENT_SECRET",
}

REQUIRED = ("ISSUER", "SIGNING_SECRET", "UPSTREAM_CLIENT_ID", "UPSTREAM_CLIENT_SECRET")


class BrokerSettings(BaseModel):
    issuer: str
    signing_secret: str
    signing_algorithm: str = "HS256"

    upstream_client_id: str
    upstream_client_secret: str
    upstream_authorize_url: str = "https://login.salesforce.com/services/oauth2/authorize"
    upstream_token_url: str = "https://login.salesforce.com/services/oauth2/token"
    upstream_scope: str = "api refresh_token"
    upstream_prompt: str | None = "login consent"
    upstream_timeout: float = 10.0

    callback_path: str = "/oauth/callback"
    scopes: list[str] = Field(default_factory=lambda: ["mcp:read", "mcp:write"])

    # Lifetimes in seconds
    access_token_lifetime: int = 3600
    refresh_token_lifetime: int = 86400 * 30
    pending_request_lifetime: int = 600
    authorization_code_lifetime: int = 600
    sweep_interval: float = 600

    rotate_refresh_tokens: bool = False

    @property
    def issuer_url(self) -> str:
        return self.issuer.rstrip("/")

    @property
    def callback_url(self) -> str:
        return f"{self.issuer_url}{self.callback_path}"

    @property
    def scope(self) -> str:
        return " ".join(self.scopes)

    @classmethod
    def from_django(cls) -> "BrokerSettings":
        """Build settings from ``settings.MCP_BROKER`` and the environment."""
        user_settings = dict(getattr(settings, SETTINGS_NAME, None) or {})

        for key, env_var in ENV_FALLBACKS.items():
            if not user_settings.get(key) and os.environ.get(env_var):
                user_settings[key] = os.environ[env_var]

        missing = [key for key in REQUIRED if not user_settings.get(key)]
        if missing:
            raise ImproperlyConfigured(
                f"{SETTINGS_NAME} is missing required values: {', '.join(missing)}"
            )

        return cls.model_validate({key.lower(): value for key, value in user_settings.items()})


_broker_settings: BrokerSettings | None = None


def get_broker_settings() -> BrokerSettings:
    global _broker_settings
    if _broker_settings is None:
        _broker_settings = BrokerSettings.from_django()
    return _broker_settings


def reload_broker_settings(*args, **kwargs) -> None:
    setting = kwargs.get("setting")
    if setting is None or setting == SETTINGS_NAME:
        global _broker_settings
        _broker_settings = None

        # The provider caches settings, stores and the upstream client.
        from django_mcp_broker.provider import reset_auth_provider
        reset_auth_provider()


setting_changed.connect(reload_broker_settings)
