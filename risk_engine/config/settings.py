"""
Payment Risk Engine - Configuration Settings

Centralized configuration using Pydantic Settings for type-safe
environment variable handling with validation.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, computed_field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    Example: FRAUD_SENSITIVITY=high will set fraud_sensitivity to "high"
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # =========================================================================
    # Application Settings
    # =========================================================================
    app_env: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Application environment"
    )
    app_debug: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    app_log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level"
    )

    # =========================================================================
    # Redis Configuration
    # =========================================================================
    redis_host: str = Field(
        default="localhost",
        description="Redis server hostname"
    )
    redis_port: int = Field(
        default=6379,
        description="Redis server port"
    )
    redis_db: int = Field(
        default=0,
        description="Redis database number"
    )
    redis_key_prefix: str = Field(
        default="risk:",
        description="Prefix for all Redis keys to avoid conflicts"
    )
    redis_password: str | None = Field(
        default=None,
        description="Redis password (optional)"
    )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def redis_url(self) -> str:
        """Construct Redis connection URL."""
        auth = f":{self.redis_password}@" if self.redis_password else ""
        return f"redis://{auth}{self.redis_host}:{self.redis_port}/{self.redis_db}"

    # =========================================================================
    # PostgreSQL Configuration (token vault)
    # =========================================================================
    postgres_host: str = Field(
        default="localhost",
        description="PostgreSQL server hostname"
    )
    postgres_port: int = Field(
        default=5432,
        description="PostgreSQL server port"
    )
    postgres_db: str = Field(
        default="payment_risk",
        description="PostgreSQL database name"
    )
    postgres_user: str = Field(
        default="risk_user",
        description="PostgreSQL username"
    )
    postgres_password: str = Field(
        default="",
        description="PostgreSQL password (set via POSTGRES_PASSWORD env var)"
    )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def postgres_url(self) -> str:
        """Construct PostgreSQL connection URL for asyncpg."""
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # =========================================================================
    # API Configuration
    # =========================================================================
    api_host: str = Field(
        default="0.0.0.0",
        description="API server bind address"
    )
    api_port: int = Field(
        default=8000,
        description="API server port"
    )

    # =========================================================================
    # Collaborator Backends
    # =========================================================================
    datasource_backend: Literal["memory", "redis"] = Field(
        default="memory",
        description="Backend for transaction/location/device/behaviour history and deny-lists"
    )
    token_vault_backend: Literal["memory", "redis", "postgres"] = Field(
        default="memory",
        description="Backend for encrypted token storage"
    )

    # =========================================================================
    # Card Cryptography
    # =========================================================================
    card_encryption_key: str | None = Field(
        default=None,
        description="Base64 AES key (16, 24 or 32 bytes) used to encrypt card data"
    )
    card_encryption_key_id: str = Field(
        default="k1",
        description="Identifier recorded with every ciphertext"
    )
    deny_list_hash_key: str | None = Field(
        default=None,
        description="Secret key used for HMAC fingerprints of deny-listed card numbers"
    )

    # =========================================================================
    # Fraud Detection Defaults
    # =========================================================================
    fraud_detection_enabled: bool = Field(
        default=True,
        description="Run risk analyzers at all"
    )
    fraud_sensitivity: Literal["low", "medium", "high"] = Field(
        default="medium",
        description="Sensitivity profile selecting the threshold table"
    )
    risk_policy_path: str | None = Field(
        default="config/risk_policy.yaml",
        description="Optional YAML file overriding factor weights and thresholds"
    )

    # =========================================================================
    # Timeouts (seconds)
    # =========================================================================
    collaborator_timeout_seconds: float = Field(
        default=0.5,
        gt=0,
        description="Timeout applied to each collaborator lookup"
    )
    analysis_timeout_seconds: float = Field(
        default=2.0,
        gt=0,
        description="Default timeout for a whole fraud analysis"
    )

    # =========================================================================
    # Request Security
    # =========================================================================
    api_credentials: dict[str, str] = Field(
        default_factory=dict,
        description="JSON map of API key to request signing secret"
    )
    signature_tolerance_seconds: int = Field(
        default=300,
        description="Maximum age of a signed request"
    )
    rate_limit_capacity: int = Field(
        default=100,
        ge=1,
        description="Token bucket size / requests per window per API key"
    )
    rate_limit_refill_per_second: float = Field(
        default=10.0,
        gt=0,
        description="Token bucket refill rate per API key"
    )
    rate_limit_window_seconds: int = Field(
        default=60,
        ge=1,
        description="Window used by the Redis fixed-window limiter"
    )

    # =========================================================================
    # Metrics Configuration
    # =========================================================================
    metrics_enabled: bool = Field(
        default=True,
        description="Enable Prometheus metrics endpoint"
    )

    @model_validator(mode="after")
    def _validate_production_security(self) -> "Settings":
        """Enforce required security settings in production."""
        if self.app_env == "production":
            missing: list[str] = []
            if not self.card_encryption_key:
                missing.append("CARD_ENCRYPTION_KEY")
            if not self.deny_list_hash_key:
                missing.append("DENY_LIST_HASH_KEY")
            if not self.api_credentials:
                missing.append("API_CREDENTIALS")
            if missing:
                raise ValueError(
                    "Missing required settings for production: "
                    + ", ".join(missing)
                )
        return self


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses LRU cache to avoid re-parsing environment on every call.
    """
    return Settings()


# Singleton settings instance for easy import
settings = get_settings()
