"""
Application Configuration Module

Centralizes all configuration using environment variables with Pydantic Settings.
Supports two modes:
    - DEVELOPMENT: In-memory order repository seeded with a demo shop
    - PRODUCTION: SQLAlchemy repository backed by PostgreSQL

The ENV_MODE variable controls which services are instantiated throughout
the application, enabling seamless switching between local testing and
production deployment.

Usage:
    from qrmenu.core.config import get_settings

    settings = get_settings()
    if settings.is_development:
        # Use in-memory services
    else:
        # Use the database

Author: Khalil Bannouri
Version: 1.0.0
"""

import logging
import sys
from enum import Enum
from typing import Optional
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EnvironmentMode(str, Enum):
    """
    Application environment modes.

    Attributes:
        DEVELOPMENT: Local testing with in-memory services
        PRODUCTION: Live environment backed by PostgreSQL
        STAGING: Pre-production testing against a real database
    """
    DEVELOPMENT = "development"
    PRODUCTION = "production"
    STAGING = "staging"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables or .env file.

    Attributes:
        env_mode: Current environment (development/production/staging)
        debug: Enable verbose logging and error details

        # Geofence
        browse_radius_meters: Radius a diner must be within to see the menu
        order_radius_meters: Radius a diner must be within to place an order

        # Guest sessions
        session_ttl_minutes: Lifetime of a guest session from creation
        session_store_path: JSON file holding persisted guest sessions

        # Polling
        order_poll_interval_seconds: How often the guest view refreshes orders
        session_check_interval_seconds: How often session expiry is re-checked
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # ENVIRONMENT
    # ==========================================================================

    env_mode: EnvironmentMode = Field(
        default=EnvironmentMode.DEVELOPMENT,
        description="Application environment mode"
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode with verbose logging"
    )

    # ==========================================================================
    # APPLICATION
    # ==========================================================================

    app_name: str = Field(
        default="QR Menu Ordering",
        description="Application display name"
    )
    app_version: str = Field(
        default="1.0.0",
        description="Application version"
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API server host"
    )
    api_port: int = Field(
        default=8001,
        description="API server port"
    )

    # ==========================================================================
    # DATABASE
    # ==========================================================================

    database_url: Optional[str] = Field(
        default=None,
        description="PostgreSQL connection URL (postgresql+psycopg://...)"
    )

    # ==========================================================================
    # DINER CLIENT
    # ==========================================================================

    api_base_url: str = Field(
        default="http://localhost:8001",
        description="Base URL the diner client uses to reach the API"
    )
    http_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout for diner client HTTP requests"
    )

    # ==========================================================================
    # GEOFENCE
    # ==========================================================================

    browse_radius_meters: float = Field(
        default=10_000.0,
        gt=0,
        description="Maximum distance from the shop to browse the menu"
    )
    order_radius_meters: float = Field(
        default=200.0,
        gt=0,
        description="Maximum distance from the shop to submit an order"
    )

    # ==========================================================================
    # GUEST SESSIONS
    # ==========================================================================

    session_ttl_minutes: int = Field(
        default=120,
        ge=1,
        description="Guest session lifetime, measured from creation"
    )
    session_key_prefix: str = Field(
        default="qr-menu-session-",
        description="Storage key prefix; the shop id is appended"
    )
    session_store_path: str = Field(
        default="data/sessions.json",
        description="File used to persist guest sessions on this device"
    )
    session_lock_timeout: int = Field(
        default=10,
        description="Seconds to wait for the session file lock"
    )

    # ==========================================================================
    # POLLING
    # ==========================================================================

    order_poll_interval_seconds: float = Field(
        default=15.0,
        gt=0,
        description="Guest order list refresh interval"
    )
    session_check_interval_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Guest session expiry re-check interval"
    )

    # ==========================================================================
    # DEMO SHOP (development mode)
    # ==========================================================================

    demo_shop_id: str = Field(
        default="demo-shop",
        description="Id of the shop seeded in development mode"
    )
    demo_shop_name: str = Field(
        default="Demo Bistro",
        description="Display name of the development shop"
    )
    demo_shop_maps_url: str = Field(
        default="https://www.google.com/maps/@12.9716,77.5946,17z",
        description="Google Maps link pinpointing the development shop"
    )
    demo_shop_active: bool = Field(
        default=True,
        description="Whether the development shop accepts guests"
    )

    # ==========================================================================
    # VALIDATORS
    # ==========================================================================

    @field_validator("env_mode", mode="before")
    @classmethod
    def validate_env_mode(cls, v: str) -> EnvironmentMode:
        """Convert string to EnvironmentMode enum."""
        if isinstance(v, EnvironmentMode):
            return v
        try:
            return EnvironmentMode(v.lower())
        except ValueError:
            valid = [e.value for e in EnvironmentMode]
            raise ValueError(f"Invalid env_mode. Must be one of: {valid}")

    # ==========================================================================
    # COMPUTED PROPERTIES
    # ==========================================================================

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.env_mode == EnvironmentMode.DEVELOPMENT

    @property
    def use_real_services(self) -> bool:
        """Check if the database-backed services should be used."""
        return self.env_mode in (EnvironmentMode.PRODUCTION, EnvironmentMode.STAGING)

    @property
    def session_ttl_ms(self) -> int:
        """Guest session lifetime in milliseconds."""
        return self.session_ttl_minutes * 60 * 1000

    # ==========================================================================
    # VALIDATION METHODS
    # ==========================================================================

    def validate_production_config(self) -> list[str]:
        """
        Validate that all required production settings are configured.

        Returns:
            List of missing configuration keys (empty if all present)
        """
        missing = []

        if self.use_real_services:
            if not self.database_url:
                missing.append("DATABASE_URL")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Configured application settings

    Example:
        >>> settings = get_settings()
        >>> print(settings.env_mode)
        EnvironmentMode.DEVELOPMENT
    """
    return Settings()


# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================

def setup_logging(level: int = logging.INFO) -> logging.Logger:
    """
    Configure application-wide logging.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)

    Returns:
        Configured root logger
    """
    settings = get_settings()

    if settings.debug:
        level = logging.DEBUG

    log_format = "%(asctime)s │ %(levelname)-8s │ %(name)-25s │ %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"

    logging.basicConfig(
        level=level,
        format=log_format,
        datefmt=date_format,
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("filelock").setLevel(logging.WARNING)

    return logging.getLogger("qrmenu")
