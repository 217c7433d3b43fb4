"""Application configuration using Pydantic Settings."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="AMIGA_GDB_RELAY_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Relay server settings
    host: str = "127.0.0.1"
    port: int = 5680
    debug: bool = False
    log_level: str = "INFO"

    # Debug stub (FS-UAE) settings
    stub_host: str = "localhost"
    stub_port: int = Field(default=6860, ge=1, le=65535)

    # RSP settings
    request_timeout_seconds: float = Field(default=30.0, ge=0.1, le=600.0)
    remote_program_prefix: str = "dh0:"

    # Stop event channel
    event_queue_size: int = Field(default=1000, ge=1, le=100000)
    event_history_size: int = Field(default=100, ge=0, le=10000)


# Global settings instance
settings = Settings()
