from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RelaySettings(BaseSettings):
    model_config = SettingsConfigDict(
        # Priority: environment variables > .env file
        env_prefix="RELAY_",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=True,
        extra="ignore",
    )

    # Path (no leading slash) that accepts WebSocket upgrades.
    WEBSOCKET_PATH: str = "websocket"
    # Upper bound for a single per-peer send during a broadcast.
    SEND_TIMEOUT_SECONDS: float = Field(default=5.0, gt=0)
    # Serve STATIC_URL from the ASGI app (no separate asset server in front).
    SERVE_STATIC: bool = False

    @field_validator("WEBSOCKET_PATH")
    @classmethod
    def strip_slashes(cls, value: str) -> str:
        path = value.strip().strip("/")
        if not path:
            raise ValueError("RELAY_WEBSOCKET_PATH cannot be empty")
        return path


config = RelaySettings()
