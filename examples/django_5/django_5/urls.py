from django.urls import include, path

urlpatterns = [
    path("", include("tenant.urls")),
    path("", include("django_mcp_broker.urls")),
]
