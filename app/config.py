"""
Application configuration from environment variables.
"""
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class AppConfig(BaseSettings):
    mapping_path: str = "config/mapping.json"
    forward_timeout_ms: int = Field(default=5000, gt=0)
    # Max inbound body size in bytes. Meta batches stay far below 10MB
    max_body_size: int = 10 * 1024 * 1024
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"
    reload_token: str | None = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8"
    )

    @property
    def forward_timeout(self) -> float:
        """Forwarding timeout in seconds."""
        return self.forward_timeout_ms / 1000


@lru_cache
def get_config() -> AppConfig:
    return AppConfig()
