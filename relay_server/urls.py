"""
URL configuration for relay_server.

HTTP surface is deliberately small:
- /health/            health check
- /<relay path>       426 for anything that is not a WebSocket upgrade
Everything else is a 404 (static files are handled in asgi.py when enabled).
"""
from django.conf import settings
from django.urls import path

from realtime.views import upgrade_required
from .health import health

urlpatterns = [
    path("health/", health),
    path(settings.RELAY_WEBSOCKET_PATH, upgrade_required),
    path(f"{settings.RELAY_WEBSOCKET_PATH}/", upgrade_required),
]
