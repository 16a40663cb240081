"""Application configuration using Pydantic Settings.

Loads configuration from environment variables and .env files.
Command-line flags are layered on top by the entry point.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

OUTPUT_METHODS = ("stdout", "udp")


def split_host_port(address: str) -> tuple[str, int]:
    """Split a ``host:port`` string.

    IPv6 hosts must be bracketed (``[::1]:2055``). An empty host means
    all interfaces.

    Args:
        address: Address string.

    Returns:
        Tuple of (host, port).

    Raises:
        ValueError: If the address has no valid port.
    """
    host, sep, port = address.rpartition(":")
    if not sep:
        raise ValueError(f"missing port in address {address!r}")

    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    elif ":" in host:
        raise ValueError(f"too many colons in address {address!r}")

    try:
        port_number = int(port)
    except ValueError:
        raise ValueError(f"invalid port in address {address!r}") from None

    if not 0 <= port_number <= 65535:
        raise ValueError(f"port out of range in address {address!r}")

    return host or "0.0.0.0", port_number


class ReceiverSettings(BaseSettings):
    """NetFlow receiver configuration."""

    model_config = SettingsConfigDict(env_prefix="RECEIVER_")

    listen_address: str = "0.0.0.0:2055"

    # Value for SO_RCVBUF
    receive_buffer_bytes: int = Field(default=212992, ge=1)

    # Reject packets whose version field is not 5
    strict_version: bool = False

    @field_validator("listen_address")
    @classmethod
    def validate_listen_address(cls, v: str) -> str:
        """Ensure listen address is host:port."""
        split_host_port(v)
        return v


class OutputSettings(BaseSettings):
    """Output sink configuration."""

    model_config = SettingsConfigDict(env_prefix="OUTPUT_")

    # Validated when the sink is created, an unknown method is fatal
    method: str = "stdout"
    destination: str = ""

    channel_size: int = Field(default=100, ge=1)

    # UDP sink
    write_timeout: float = Field(default=3.0, gt=0)
    reconnect_delay: float = Field(default=1.0, ge=0)


class DNSSettings(BaseSettings):
    """Reverse DNS configuration."""

    model_config = SettingsConfigDict(env_prefix="DNS_")

    cache_ttl: int = Field(default=86400, ge=1)
    timeout: float = Field(default=2.0, ge=0.1)
    servers: list[str] = Field(default_factory=list)

    # 0 leaves concurrent lookups unbounded
    max_concurrent_lookups: int = Field(default=0, ge=0)


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(env_prefix="LOG_")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["json", "console"] = "json"
    include_timestamp: bool = True
    include_caller: bool = False


class MetricsSettings(BaseSettings):
    """Prometheus exporter configuration."""

    model_config = SettingsConfigDict(env_prefix="METRICS_")

    enabled: bool = False
    address: str = "0.0.0.0"
    port: int = Field(default=9105, ge=1, le=65535)


class Settings(BaseSettings):
    """Main application settings aggregating all configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Application info
    app_name: str = "FlowRelay"
    app_version: str = "0.1.0"
    environment: Literal["development", "staging", "production"] = "production"

    # Sub-configurations
    receiver: ReceiverSettings = Field(default_factory=ReceiverSettings)
    output: OutputSettings = Field(default_factory=OutputSettings)
    dns: DNSSettings = Field(default_factory=DNSSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    metrics: MetricsSettings = Field(default_factory=MetricsSettings)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings singleton."""
    return Settings()
