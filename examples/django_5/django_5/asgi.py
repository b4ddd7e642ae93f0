import django
import os

from django.core.asgi import get_asgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'django_5.settings')
django.setup()

from django_mcp_broker.middleware import LifespanMiddleware, create_sweeper_lifespan  # noqa: E402
from django_mcp_broker.provider import get_auth_provider  # noqa: E402

# Expired authorization requests, codes and refresh records are evicted for
# as long as the server runs.
on_startup, on_shutdown = create_sweeper_lifespan(get_auth_provider().sweeper)

application = LifespanMiddleware(get_asgi_application(), on_startup, on_shutdown)
