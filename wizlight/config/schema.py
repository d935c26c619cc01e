"""Configuration schema using Pydantic."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings, SettingsConfigDict


class Base(BaseModel):
    """Base model that accepts both camelCase and snake_case keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DiscoveryConfig(Base):
    """Timing and width of the two discovery strategies."""

    broadcast_window: float = Field(3.0, gt=0)        # Seconds to collect broadcast replies
    broadcast_resend_after: float = Field(1.0, ge=0)  # Second probe offset
    scan_delay: float = Field(0.5, ge=0)              # Head start given to broadcast before scanning
    scan_probe_timeout: float = Field(0.2, gt=0)      # Per-host timeout during the subnet scan
    scan_batch_size: int = Field(50, ge=1, le=254)    # Probes in flight at once
    cache_probe_timeout: float = Field(0.5, gt=0)     # Validation probe of a cached address


class CommandConfig(Base):
    """Command send/retry behaviour."""

    timeout: float = Field(2.0, gt=0)     # Per-attempt reply timeout
    retries: int = Field(3, ge=1)         # Total attempts per command
    retry_delay: float = Field(0.5, ge=0) # Flat delay between attempts


class WizConfig(BaseSettings):
    """Root configuration for wizlight.

    Read from ``WIZ_*`` environment variables; nested sections use ``__``
    (e.g. ``WIZ_DISCOVERY__SCAN_BATCH_SIZE=25``).
    """

    model_config = SettingsConfigDict(env_prefix="WIZ_", env_nested_delimiter="__")

    mac: str = ""                 # Bulb identifier (12 hex digits)
    ip: str = ""                  # Last known address, validated before use
    skip_broadcast: bool = False  # Set after broadcast failed and the scan was needed
    port: int = 38899             # Bulb UDP port
    discovery: DiscoveryConfig = Field(default_factory=DiscoveryConfig)
    command: CommandConfig = Field(default_factory=CommandConfig)
