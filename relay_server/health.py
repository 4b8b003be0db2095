from __future__ import annotations

import os
import time

from django.apps import apps
from django.http import JsonResponse


def health(request):
    """
    Health check endpoint.

    Keep it cheap and dependency-free:
    - No channel layer call (Redis maintenance must not fail the check)
    - Counts come straight from the in-process relay
    """

    relay = apps.get_app_config("realtime").relay
    return JsonResponse(
        {
            "status": "ok",
            "ts": int(time.time()),
            "instance_id": os.environ.get("INSTANCE_ID", "unknown-instance"),
            **relay.stats(),
        }
    )
