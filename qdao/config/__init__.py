"""
QDAO Unified Configuration

Loads all sections of config.toml at startup.
Environment variables override TOML values.
"""

from .loader import (
    DAOConfig,
    DatabaseConfig,
    GovernanceSectionConfig,
    LoggingConfig,
    MetricsConfig,
    SQLiteConfig,
    load_config,
)

__all__ = [
    "DAOConfig",
    "DatabaseConfig",
    "GovernanceSectionConfig",
    "LoggingConfig",
    "MetricsConfig",
    "SQLiteConfig",
    "load_config",
]
