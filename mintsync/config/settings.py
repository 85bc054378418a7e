"""
Application settings.

Loads configuration from environment variables using pydantic-settings.
"""

from loguru import logger
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from mintsync.config.constants import (
    ABSENCE_CONFIRMATIONS,
    DISCOVERY_UPPER_BOUND,
    IPFS_GATEWAYS,
    LEDGER_EXECUTOR_WORKERS,
    LEDGER_TIMEOUT,
    METADATA_FETCH_TIMEOUT,
    PENDING_ALERT_AFTER_ATTEMPTS,
    PENDING_CLAIM_LEASE_SECONDS,
    PENDING_RETRY_DELAY_SECONDS,
    PENDING_SWEEP_BATCH_SIZE,
    PROBE_MAX_ATTEMPTS,
    RECONCILE_SCAN_DELAY,
    SCAN_CHUNK_SIZE,
)


def _validate_address(value: str) -> str:
    """Validate a 0x-prefixed 20-byte hex address and lowercase it."""
    if not value.startswith("0x") or len(value) != 42:
        raise ValueError(
            f"Invalid address: {value}. "
            "Must start with 0x and be 42 characters long."
        )
    try:
        int(value[2:], 16)
    except ValueError as exc:
        raise ValueError(f"Invalid address format: {value}") from exc
    return value.lower()


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str
    database_echo: bool = False

    # Ledger RPC
    rpc_url: str
    rpc_fallback_urls: str = ""  # Comma-separated list
    rpc_timeout: float = Field(
        default=LEDGER_TIMEOUT, gt=0, description="Timeout per ledger call in seconds"
    )
    rpc_max_concurrent: int = Field(
        default=LEDGER_EXECUTOR_WORKERS, ge=1, description="Concurrent ledger calls"
    )

    # Contracts
    nft_contract_address: str
    quest_contract_address: str | None = None

    # Event scanning
    sync_start_block: int = Field(default=0, ge=0)
    quest_start_block: int = Field(default=0, ge=0)
    scan_chunk_size: int = Field(default=SCAN_CHUNK_SIZE, ge=1)
    scan_interval_seconds: int = Field(default=30, ge=1)
    block_confirmations: int = Field(
        default=0, ge=0, description="Blocks behind head treated as not yet final"
    )

    # Pending mint sweep
    pending_sweep_interval_seconds: int = Field(default=60, ge=1)
    pending_sweep_batch_size: int = Field(default=PENDING_SWEEP_BATCH_SIZE, ge=1)
    pending_claim_lease_seconds: int = Field(default=PENDING_CLAIM_LEASE_SECONDS, ge=1)
    pending_alert_after_attempts: int = Field(
        default=PENDING_ALERT_AFTER_ATTEMPTS,
        ge=1,
        description="Retry count at which a pending mint is escalated to operators",
    )
    pending_retry_delay_seconds: float = Field(default=PENDING_RETRY_DELAY_SECONDS, ge=0)

    # Gap reconciliation
    reconcile_interval_hours: int = Field(default=24, ge=1)
    discovery_upper_bound: int = Field(default=DISCOVERY_UPPER_BOUND, ge=1)
    absence_confirmations: int = Field(
        default=ABSENCE_CONFIRMATIONS,
        ge=1,
        description="Definitive reverts required before a token ID is treated as absent",
    )
    probe_max_attempts: int = Field(default=PROBE_MAX_ATTEMPTS, ge=1)
    reconcile_scan_delay: float = Field(default=RECONCILE_SCAN_DELAY, ge=0)

    # Metadata
    ipfs_gateways: str = ",".join(IPFS_GATEWAYS)  # Preferred gateway first
    metadata_fetch_timeout: float = Field(default=METADATA_FETCH_TIMEOUT, gt=0)

    # Quest listener
    quest_poll_interval_seconds: int = Field(default=5, ge=1)

    # Redis (for Dramatiq)
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str | None = None
    redis_db: int = 0

    # Application
    environment: str = "production"
    debug: bool = False
    log_level: str = "INFO"
    health_check_port: int = Field(
        default=8081, ge=1, le=65535, description="Health check HTTP server port"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode="after")
    def validate_production(self) -> "Settings":
        """Validate production-specific requirements."""
        if self.environment == "production" and self.debug:
            raise ValueError(
                "DEBUG must be False in production environment. "
                "Set DEBUG=false in your .env file."
            )
        return self

    @model_validator(mode="after")
    def warn_missing_quest_contract(self) -> "Settings":
        """Quest listener is optional."""
        if not self.quest_contract_address:
            logger.info(
                "QUEST_CONTRACT_ADDRESS not set - quest listener disabled"
            )
        return self

    @field_validator("nft_contract_address")
    @classmethod
    def validate_nft_contract(cls, v: str) -> str:
        """Validate NFT contract address."""
        return _validate_address(v)

    @field_validator("quest_contract_address")
    @classmethod
    def validate_quest_contract(cls, v: str | None) -> str | None:
        """Validate quest contract address when provided."""
        if not v:
            return None
        return _validate_address(v)

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Validate database URL."""
        if not v.startswith(("postgresql://", "postgresql+asyncpg://")):
            raise ValueError(
                "DATABASE_URL must start with postgresql:// or postgresql+asyncpg://"
            )
        return v

    def get_async_database_url(self) -> str:
        """Database URL with the asyncpg driver."""
        if self.database_url.startswith("postgresql://"):
            return self.database_url.replace(
                "postgresql://", "postgresql+asyncpg://", 1
            )
        return self.database_url

    def get_rpc_urls(self) -> list[str]:
        """Primary RPC URL followed by fallbacks, without duplicates."""
        urls = [self.rpc_url]
        for url in self.rpc_fallback_urls.split(","):
            url_stripped = url.strip()
            if url_stripped and url_stripped not in urls:
                urls.append(url_stripped)
        return urls

    def get_ipfs_gateways(self) -> tuple[str, ...]:
        """Parse gateway list, preferred gateway first."""
        gateways = tuple(
            g.strip().rstrip("/") for g in self.ipfs_gateways.split(",") if g.strip()
        )
        return gateways or IPFS_GATEWAYS


# Global settings instance
settings = Settings()
