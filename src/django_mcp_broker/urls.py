from django.urls import path

from django_mcp_broker.views.auth.oauth_authorization_server import OAuthAuthorizationServerView
from django_mcp_broker.views.auth.oauth_protected_resource import OAuthProtectedResourceView
from django_mcp_broker.views.auth.authorize import AuthorizeView
from django_mcp_broker.views.auth.callback import CallbackView
from django_mcp_broker.views.auth.token import TokenView
from django_mcp_broker.views.mcp_view import McpView

urlpatterns = [
    path(
        '.well-known/oauth-authorization-server',
        OAuthAuthorizationServerView.as_view(),
    ),
    path(
        '.well-known/oauth-protected-resource',
        OAuthProtectedResourceView.as_view(),
    ),
    path('oauth/authorize', AuthorizeView.as_view()),
    path('oauth/callback', CallbackView.as_view()),
    path('oauth/token', TokenView.as_view()),
    path('mcp', McpView.as_view()),
]
