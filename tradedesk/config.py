"""
Configuration management using Pydantic

This module provides application-wide configuration using Pydantic BaseSettings
with support for environment variables and type validation.
"""

from decimal import Decimal
from typing import Optional
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """
    Trading core configuration settings.

    All settings can be overridden using environment variables prefixed
    with TRADEDESK_. For example, TRADEDESK_LOG_LEVEL overrides log_level.
    """

    # Market
    symbol: str = Field(
        default="BTC-USDT",
        description="Trading pair served by a session"
    )

    # Book and tape
    trade_tape_capacity: int = Field(
        default=1000,
        gt=0,
        description="Maximum number of trades kept on the tape"
    )
    default_depth: int = Field(
        default=5,
        gt=0,
        description="Levels per side shown by the order-book panel"
    )

    # Order entry bounds, unset means only the positivity checks apply
    min_order_quantity: Optional[Decimal] = Field(
        default=None,
        description="Minimum order quantity"
    )
    max_order_quantity: Optional[Decimal] = Field(
        default=None,
        description="Maximum order quantity"
    )
    min_price: Optional[Decimal] = Field(
        default=None,
        description="Minimum acceptable limit price"
    )
    max_price: Optional[Decimal] = Field(
        default=None,
        description="Maximum acceptable limit price"
    )

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    log_dir: Optional[str] = Field(
        default=None,
        description="Directory for log files (console only when unset)"
    )
    use_json_logs: bool = Field(
        default=False,
        description="Emit JSON log records"
    )

    class Config:
        env_prefix = "TRADEDESK_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """
    Get the global settings instance.

    Returns:
        Settings instance
    """
    return settings
