"""
ERP Insights Engine
Centralized Configuration Management

Configuration is loaded from environment variables (and an optional ``.env``
file) through Pydantic settings, grouped in one section per concern.
"""

from functools import lru_cache
from typing import List, Literal, Optional, Tuple
from pydantic import Field, field_validator, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


# Divisor used by the discount rate: "subtotal" (pre-tax list value) or "total".
DISCOUNT_RATE_BASE = "subtotal"

# Composite RFM score (3-15) lower bounds, checked top-down.
DEFAULT_RFM_SEGMENT_BANDS: List[Tuple[int, str]] = [
    (13, "Champions"),
    (10, "Loyal Customers"),
    (8, "Potential Loyalists"),
    (6, "Needs Attention"),
    (4, "At Risk"),
    (3, "Lost"),
]


class DatabaseSettings(BaseSettings):
    """PostgreSQL Database Configuration"""

    model_config = SettingsConfigDict(env_prefix="POSTGRES_")

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    db: str = Field(default="erp", alias="POSTGRES_DB", description="Database name")
    user: str = Field(default="erp", description="Database user")
    password: SecretStr = Field(default="secure_password", description="Database password")
    pool_size: int = Field(default=20, description="Connection pool size")
    pool_timeout: int = Field(default=30, description="Pool timeout in seconds")
    echo: bool = Field(default=False, description="Echo SQL queries")
    url: Optional[str] = Field(default=None, description="Full async database URL (overrides host/port)")

    @property
    def async_url(self) -> str:
        """Async database URL for asyncpg"""
        if self.url:
            return self.url
        return f"postgresql+asyncpg://{self.user}:{self.password.get_secret_value()}@{self.host}:{self.port}/{self.db}"


class ApiSettings(BaseSettings):
    """HTTP Surface Configuration"""

    model_config = SettingsConfigDict(env_prefix="API_")

    prefix: str = Field(default="/api/v1", description="Route prefix")
    organization_header: str = Field(
        default="X-Organization-ID",
        description="Header carrying the already-authorized organization id",
    )
    cors_origins: List[str] = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins"
    )


class MonitoringSettings(BaseSettings):
    """Logging Configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="json", alias="LOG_FORMAT", description="Log format: json or text")


class InsightsSettings(BaseSettings):
    """Aggregation Engine Configuration"""

    model_config = SettingsConfigDict(env_prefix="INSIGHTS_")

    default_limit: int = Field(default=10, description="Default top-N size")
    max_limit: int = Field(default=100, description="Largest accepted top-N size")
    overdue_grace_days: int = Field(
        default=30,
        description="Days after order date before an unpaid balance counts as overdue",
    )
    active_customer_days: int = Field(default=30, description="Trailing window for active customers")
    retention_window_days: int = Field(default=30, description="Default retention window")
    churn_window_days: int = Field(default=90, description="Default churn window")
    max_window_days: int = Field(default=3650, description="Largest accepted retention/churn window")
    discount_rate_base: Literal["subtotal", "total"] = Field(
        default=DISCOUNT_RATE_BASE,
        description="Denominator of the discount rate",
    )
    growth_anchor: Literal["now", "latest_data"] = Field(
        default="now",
        description="Month used as the current month for growth metrics",
    )
    max_range_days: Optional[int] = Field(
        default=None,
        description="Longest accepted startDate/endDate range (unbounded when unset)",
    )
    query_timeout_seconds: float = Field(default=30.0, description="Fetch timeout per request")
    rfm_segment_bands: List[Tuple[int, str]] = Field(
        default_factory=lambda: list(DEFAULT_RFM_SEGMENT_BANDS),
        description="RFM composite score bands as (minimum score, label)",
    )

    @field_validator("rfm_segment_bands")
    @classmethod
    def validate_bands(cls, v: List[Tuple[int, str]]) -> List[Tuple[int, str]]:
        """Bands are applied highest threshold first"""
        if not v:
            raise ValueError("At least one RFM segment band is required")
        return sorted(v, key=lambda band: band[0], reverse=True)


class Settings(BaseSettings):
    """
    Main Application Settings

    Aggregates all configuration sections and provides a single entry point
    for accessing application configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Application
    app_name: str = Field(default="erp-insights", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")
    debug: bool = Field(default=False, alias="DEBUG", description="Debug mode")

    # API Server
    api_host: str = Field(default="0.0.0.0", alias="API_HOST", description="API host")
    api_port: int = Field(default=8000, alias="API_PORT", description="API port")

    # Version
    version: str = Field(default="1.0.0", description="Application version")

    # Subsystem configurations
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    api: ApiSettings = Field(default_factory=ApiSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)
    insights: InsightsSettings = Field(default_factory=InsightsSettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value"""
        allowed = ["development", "staging", "production", "testing"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v.lower()

    @property
    def is_development(self) -> bool:
        """Check if running in development"""
        return self.app_env == "development"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache to ensure settings are only loaded once.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
