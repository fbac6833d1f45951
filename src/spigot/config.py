"""Configuration management for spigot using Pydantic Settings."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from spigot.host.storage import DEFAULT_MAX_KEY_SIZE, DEFAULT_MAX_VALUE_SIZE
from spigot.types import BALANCE_MAX, BLOCK_NUMBER_MAX


class SpigotConfig(BaseSettings):
    """spigot configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    # Host state
    state_file: str = Field(default=".spigot/state.json", alias="SPIGOT_STATE_FILE")
    caller: str | None = Field(default=None, alias="SPIGOT_CALLER")

    # Deployment defaults
    default_cooldown: int = Field(
        default=10, alias="SPIGOT_DEFAULT_COOLDOWN", ge=0, le=BLOCK_NUMBER_MAX
    )
    default_drip_amount: int = Field(
        default=100, alias="SPIGOT_DEFAULT_DRIP_AMOUNT", ge=0, le=BALANCE_MAX
    )

    # Storage buffers
    storage_max_key_size: int = Field(
        default=DEFAULT_MAX_KEY_SIZE, alias="SPIGOT_STORAGE_MAX_KEY_SIZE", gt=0
    )
    storage_max_value_size: int = Field(
        default=DEFAULT_MAX_VALUE_SIZE, alias="SPIGOT_STORAGE_MAX_VALUE_SIZE", gt=0
    )

    # HTTP service
    http_host: str = Field(default="127.0.0.1", alias="SPIGOT_HTTP_HOST")
    http_port: int = Field(default=8080, alias="SPIGOT_HTTP_PORT", ge=1, le=65535)

    # Observability
    log_level: str = Field(default="INFO", alias="SPIGOT_LOG_LEVEL")
    log_format: str = Field(default="json", alias="SPIGOT_LOG_FORMAT")
