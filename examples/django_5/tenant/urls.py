# Served ahead of the broker's own routes so the tenant-aware MCP view
# replaces the default /mcp endpoint.
from django.urls import path

from tenant.views import TenantMcpView

urlpatterns = [
    path("mcp", TenantMcpView.as_view()),
]
