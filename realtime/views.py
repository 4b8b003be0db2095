"""
HTTP side of the relay path.

A real upgrade is routed to the WebSocket consumer by the ASGI server and never
reaches Django's HTTP stack; anything that does gets a 426.
"""

import logging

from django.http import HttpResponse

from .errors import ProtocolError
from .relay import validate_upgrade

logger = logging.getLogger(__name__)


def upgrade_required(request):
    try:
        validate_upgrade(request.headers)
        # Upgrade header present, but the request still came in as plain HTTP.
        raise ProtocolError("WebSocket upgrade was not performed")
    except ProtocolError as e:
        logger.info("Rejected non-upgrade request to %s: %s", request.path, e.message)
        response = HttpResponse(e.message, status=e.status_code, content_type="text/plain")
        response["Upgrade"] = "websocket"
        return response
