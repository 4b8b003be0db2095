"""
Django app configuration for the realtime app.
Builds the relay singleton on startup.
"""

import logging

from django.apps import AppConfig
from django.conf import settings

from .registry import SessionRegistry
from .relay import RelayServer

logger = logging.getLogger(__name__)


class RealtimeConfig(AppConfig):
    """App configuration for the presence relay."""

    name = "realtime"

    relay: RelayServer

    def ready(self):
        """Create the one relay (and its registry) shared by every connection."""
        self.relay = RelayServer(
            SessionRegistry(),
            send_timeout=settings.RELAY_SEND_TIMEOUT_SECONDS,
        )
        logger.info(
            "Relay ready on /%s (send_timeout=%ss)",
            settings.RELAY_WEBSOCKET_PATH,
            settings.RELAY_SEND_TIMEOUT_SECONDS,
        )
