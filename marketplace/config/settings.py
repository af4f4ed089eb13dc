"""
Marketplace Analytics
Centralized Configuration Management

This module provides configuration management using Pydantic settings with
environment variable support, validation, and type safety.
"""

from functools import lru_cache
from typing import List, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Relational store configuration"""

    model_config = SettingsConfigDict(env_prefix="DATABASE_")

    url: str = Field(
        default="sqlite+aiosqlite:///./marketplace.db",
        description="SQLAlchemy async URL (sqlite+aiosqlite or postgresql+asyncpg)",
    )
    echo: bool = Field(default=False, description="Echo SQL queries")
    pool_pre_ping: bool = Field(default=True, description="Verify connections before use")


class StoreSettings(BaseSettings):
    """Data-access backend selection"""

    model_config = SettingsConfigDict(env_prefix="STORE_")

    backend: str = Field(default="json", description="Store backend: json or database")
    json_path: str = Field(default="./data/store", description="Directory holding users/products/orders JSON files")

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        """Validate backend name"""
        allowed = ["json", "database"]
        if v.lower() not in allowed:
            raise ValueError(f"Store backend must be one of: {allowed}")
        return v.lower()


class AnalyticsSettings(BaseSettings):
    """Analytics engine thresholds and defaults"""

    model_config = SettingsConfigDict(env_prefix="ANALYTICS_")

    # Revenue
    revenue_statuses: List[str] = Field(
        default=["delivered"],
        description="Order statuses counted as realised revenue",
    )

    # Inventory
    low_stock_threshold: int = Field(default=10, description="Stock level below which a product is low")
    reorder_point: int = Field(default=5, description="Suggested reorder point reported with product analytics")

    # Segmentation
    high_value_share: float = Field(default=0.2, description="Share of ranked customers in the high value tier")
    medium_value_share: float = Field(default=0.6, description="Share of ranked customers in the medium value tier")
    new_customer_days: int = Field(default=30, description="Join age (days) for the new tag")
    at_risk_days: int = Field(default=60, description="Last-order age (days) after which a customer is at risk")
    dormant_days: int = Field(default=120, description="Last-order age (days) after which a customer is dormant")

    # Churn
    churn_window_days: int = Field(default=30, description="Trailing window a customer must transact in")
    churn_lookback_days: int = Field(default=90, description="Lookback defining previously-active customers")

    # Reports
    default_period: str = Field(default="month", description="Dashboard period when none is requested")
    order_analytics_days: int = Field(default=30, description="Default order analytics window in days")
    top_products_limit: int = Field(default=10, description="Top products listed per report")
    recent_activity_limit: int = Field(default=10, description="Recent activity entries per report")
    order_sample_limit: int = Field(default=50, description="Orders echoed with order analytics")

    # Forecast
    forecast_method: str = Field(default="linear_trend", description="linear_trend or growth_sample")
    forecast_granularity: str = Field(default="month", description="Bucket size of the forecast history")
    forecast_history_periods: int = Field(default=6, description="Complete periods used as history")
    forecast_horizon: int = Field(default=3, description="Projected periods")
    forecast_confidence_margin: float = Field(default=0.10, description="Symmetric bound around each forecast point")
    forecast_seed: Optional[int] = Field(default=None, description="Seed for the growth_sample method")

    # Alerts
    anomaly_z_threshold: float = Field(default=3.0, description="Z-score threshold for revenue anomalies")
    anomaly_pct_change_threshold: float = Field(default=50.0, description="Period-over-period change (%) flagged")

    @field_validator("revenue_statuses")
    @classmethod
    def validate_revenue_statuses(cls, v: List[str]) -> List[str]:
        """Validate order status names"""
        allowed = ["pending", "confirmed", "processing", "shipped", "delivered", "cancelled", "refunded"]
        statuses = [s.strip().lower() for s in v]
        unknown = [s for s in statuses if s not in allowed]
        if unknown:
            raise ValueError(f"Revenue statuses must be among: {allowed}; got {unknown}")
        return statuses

    @field_validator("forecast_method")
    @classmethod
    def validate_forecast_method(cls, v: str) -> str:
        """Validate forecast method"""
        allowed = ["linear_trend", "growth_sample"]
        if v.lower() not in allowed:
            raise ValueError(f"Forecast method must be one of: {allowed}")
        return v.lower()


class SecuritySettings(BaseSettings):
    """HTTP security configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        alias="CORS_ORIGINS",
        description="Allowed CORS origins"
    )


class MonitoringSettings(BaseSettings):
    """Logging configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="json", alias="LOG_FORMAT", description="Log format: json or console")


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
    app_name: str = Field(default="marketplace-analytics", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")
    debug: bool = Field(default=False, alias="DEBUG", description="Debug mode")

    # API Server
    api_host: str = Field(default="0.0.0.0", alias="API_HOST", description="API host")
    api_port: int = Field(default=8000, alias="API_PORT", description="API port")

    # Version
    version: str = Field(default="1.0.0", description="Application version")

    # Subsystem configurations
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    analytics: AnalyticsSettings = Field(default_factory=AnalyticsSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value"""
        allowed = ["development", "staging", "production", "testing"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v.lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.app_env == "production"

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
