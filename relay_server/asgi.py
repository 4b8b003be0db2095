"""
ASGI config for the relay_server project.

It exposes the ASGI callable as a module-level variable named ``application``.

For more information on this file, see
https://docs.djangoproject.com/en/stable/howto/deployment/asgi/
"""
import os

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "relay_server.settings")

from channels.routing import ProtocolTypeRouter, URLRouter
from django.conf import settings
from django.core.asgi import get_asgi_application

# Standard Django ASGI application for HTTP. Must run before importing routing:
# it populates the app registry, which builds the relay singleton.
django_asgi_app = get_asgi_application()

from django.contrib.staticfiles.handlers import ASGIStaticFilesHandler  # noqa: E402

from relay_server.routing import websocket_urlpatterns  # noqa: E402

http_app = django_asgi_app
if settings.RELAY_SERVE_STATIC:
    # No separate asset server in front: serve STATIC_URL from here.
    http_app = ASGIStaticFilesHandler(django_asgi_app)

# Channels router for WebSockets.
#
# No AuthMiddlewareStack: participants are not authenticated, the relay trusts
# the id announced in `join`.
application = ProtocolTypeRouter(
    {
        "http": http_app,
        "websocket": URLRouter(websocket_urlpatterns),
    }
)
