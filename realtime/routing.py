import re

from django.apps import apps
from django.conf import settings
from django.urls import re_path

from .consumers import RelayConsumer

# One relay for the whole session, built in RealtimeConfig.ready().
relay = apps.get_app_config("realtime").relay

websocket_urlpatterns = [
    re_path(rf"^{re.escape(settings.RELAY_WEBSOCKET_PATH)}/?$", RelayConsumer.as_asgi(relay=relay)),
]
