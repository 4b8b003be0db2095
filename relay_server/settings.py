"""
Settings for the presence relay (Django + Channels, ASGI).

Key requirements implemented:
- Django + Django Channels (ASGI)
- One relay instance per session (in-memory channel layer by default)
- Environment-based configuration
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv

# Local dev can keep env vars in a `.env` file; real environment variables win.
load_dotenv()

from relay_server.config import config as relay_config  # noqa: E402


BASE_DIR = Path(__file__).resolve().parent.parent


def _env(name: str, default: str | None = None) -> str | None:
    v = os.environ.get(name)
    return v if v not in (None, "") else default


def _env_bool(name: str, default: bool = False) -> bool:
    v = _env(name)
    if v is None:
        return default
    return v.strip().lower() in ("1", "true", "yes", "y", "on")


def _env_csv(name: str, default: str = "") -> List[str]:
    raw = _env(name, default) or ""
    return [x.strip() for x in raw.split(",") if x.strip()]


# SECURITY WARNING: Do not hardcode secrets in code.
DEBUG = _env_bool("DJANGO_DEBUG", default=False)

SECRET_KEY = _env("DJANGO_SECRET_KEY", "dev-insecure-secret-key-change-me")
if not DEBUG and (not SECRET_KEY or SECRET_KEY.startswith("dev-insecure-")):
    raise RuntimeError("DJANGO_SECRET_KEY must be set in production")

ALLOWED_HOSTS = _env_csv("DJANGO_ALLOWED_HOSTS", default="localhost,127.0.0.1")

# CORS: browsers loading the game from another origin still need /health/.
CORS_ALLOWED_ORIGINS = _env_csv("CORS_ALLOWED_ORIGINS", default="http://localhost:3000,http://127.0.0.1:3000")

# Behind a proxy, Django must respect X-Forwarded-Host.
USE_X_FORWARDED_HOST = True


INSTALLED_APPS = [
    "corsheaders",
    "django.contrib.staticfiles",
    # Channels must be installed to enable ASGI + websocket routing.
    "channels",
    # Session registry + relay.
    "realtime.apps.RealtimeConfig",
]

MIDDLEWARE = [
    "corsheaders.middleware.CorsMiddleware",
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
]

ROOT_URLCONF = "relay_server.urls"

ASGI_APPLICATION = "relay_server.asgi.application"

# The relay keeps no history, so there is no database.
DATABASES: dict = {}

USE_TZ = True

STATIC_URL = "static/"
STATICFILES_DIRS = [p for p in [BASE_DIR / "static"] if p.is_dir()]


#
# Relay configuration (see relay_server.config)
#
RELAY_WEBSOCKET_PATH = relay_config.WEBSOCKET_PATH
RELAY_SEND_TIMEOUT_SECONDS = relay_config.SEND_TIMEOUT_SECONDS
RELAY_SERVE_STATIC = relay_config.SERVE_STATIC


#
# Channels configuration
#
# The relay and its registry live in process memory (realtime.apps), so the
# server must run as exactly one worker process: a second worker would hold
# its own session and never see the first one's participants.
# The channel layer only carries frames to a consumer's own channel, so the
# in-memory layer is enough. REDIS_URL swaps in RedisChannelLayer as the
# transport for that same single process; it does not make multiple workers
# share a session.
#
REDIS_URL = _env("REDIS_URL", None)
if REDIS_URL:
    CHANNEL_LAYERS = {
        "default": {
            "BACKEND": "channels_redis.core.RedisChannelLayer",
            "CONFIG": {
                # `hosts` accepts redis:// URLs.
                "hosts": [REDIS_URL],
                "capacity": int(_env("CHANNEL_LAYER_CAPACITY", "1000") or "1000"),
                "expiry": int(_env("CHANNEL_LAYER_EXPIRY", "60") or "60"),
            },
        }
    }
else:
    CHANNEL_LAYERS = {
        "default": {
            "BACKEND": "channels.layers.InMemoryChannelLayer",
            "CONFIG": {
                "capacity": int(_env("CHANNEL_LAYER_CAPACITY", "1000") or "1000"),
                "expiry": int(_env("CHANNEL_LAYER_EXPIRY", "60") or "60"),
            },
        }
    }


LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {"console": {"class": "logging.StreamHandler", "formatter": "plain"}},
    "root": {"handlers": ["console"], "level": _env("DJANGO_LOG_LEVEL", "INFO") or "INFO"},
}
