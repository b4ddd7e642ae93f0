import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "django-insecure-example-key")
DEBUG = os.environ.get("DJANGO_DEBUG", "1") == "1"
ALLOWED_HOSTS = ["*"]

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.auth",
    "rest_framework",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
]

ROOT_URLCONF = "django_5.urls"
ASGI_APPLICATION = "django_5.asgi.application"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "db.sqlite3",
    }
}

REST_FRAMEWORK = {
    "DEFAULT_RENDERER_CLASSES": ["rest_framework.renderers.JSONRenderer"],
    "UNAUTHENTICATED_USER": None,
}

# ISSUER, SIGNING_SECRET and the upstream client credentials fall back to
# OAUTH_ISSUER, OAUTH_JWT_SECRET, UPSTREAM_OAUTH_CLIENT_ID and
# UPSTREAM_OAUTH_CLIENT_SECRET.
MCP_BROKER = {
    "ISSUER": os.environ.get("OAUTH_ISSUER", "http://127.0.0.1:8002"),
    "ROTATE_REFRESH_TOKENS": False,
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "loggers": {
        "django_mcp_broker": {
            "handlers": ["console"],
            "level": os.environ.get("BROKER_LOG_LEVEL", "INFO"),
        },
    },
}
