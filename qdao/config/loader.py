"""
QDAO TOML Configuration Loader

Loads config.toml at startup with environment variable overrides.
Every section is a dataclass with from_dict + apply_env.

Environment variable mapping:
    [governance] minimum_quorum           → QDAO_MIN_QUORUM
    [governance] voting_duration          → QDAO_VOTING_DURATION
    [governance] proposal_execution_delay → QDAO_EXECUTION_DELAY
    [logging] level                       → QDAO_LOG_LEVEL
    [database.sqlite] path                → QDAO_DB_PATH
    [metrics] enabled                     → QDAO_METRICS_ENABLED
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

try:
    import tomllib as tomli  # Python 3.11+
except ImportError:
    import tomli  # type: ignore[no-redef]

from ..constants import (
    DEFAULT_DB_PATH,
    GOVERNANCE_DEFAULT_EXECUTION_DELAY,
    GOVERNANCE_DEFAULT_MIN_QUORUM,
    GOVERNANCE_DEFAULT_VOTING_DURATION,
)
from ..exceptions import ConfigurationError
from ..governance.state import GovernanceParameters
from ..logger import LogManager

logger = logging.getLogger(__name__)

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _env_int(name: str, value: str) -> int:
    try:
        return int(value)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from e


# ---------------------------------------------------------------------------
# Section dataclasses
# ---------------------------------------------------------------------------


@dataclass
class GovernanceSectionConfig:
    """[governance] section."""
    minimum_quorum: int = GOVERNANCE_DEFAULT_MIN_QUORUM
    voting_duration: int = GOVERNANCE_DEFAULT_VOTING_DURATION
    proposal_execution_delay: int = GOVERNANCE_DEFAULT_EXECUTION_DELAY
    owner: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GovernanceSectionConfig":
        return cls(
            minimum_quorum=data.get("minimum_quorum", GOVERNANCE_DEFAULT_MIN_QUORUM),
            voting_duration=data.get("voting_duration", GOVERNANCE_DEFAULT_VOTING_DURATION),
            proposal_execution_delay=data.get(
                "proposal_execution_delay", GOVERNANCE_DEFAULT_EXECUTION_DELAY
            ),
            owner=data.get("owner", ""),
        )

    def apply_env(self) -> None:
        """Override from environment variables."""
        if v := os.environ.get("QDAO_MIN_QUORUM"):
            self.minimum_quorum = _env_int("QDAO_MIN_QUORUM", v)
        if v := os.environ.get("QDAO_VOTING_DURATION"):
            self.voting_duration = _env_int("QDAO_VOTING_DURATION", v)
        if v := os.environ.get("QDAO_EXECUTION_DELAY"):
            self.proposal_execution_delay = _env_int("QDAO_EXECUTION_DELAY", v)
        if v := os.environ.get("QDAO_OWNER"):
            self.owner = v

    def to_parameters(self) -> GovernanceParameters:
        return GovernanceParameters(
            minimum_quorum=self.minimum_quorum,
            voting_duration=self.voting_duration,
            proposal_execution_delay=self.proposal_execution_delay,
        )


@dataclass
class LoggingConfig:
    """[logging] section."""
    level: str = "INFO"
    console: bool = True
    file: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoggingConfig":
        return cls(
            level=str(data.get("level", "INFO")).upper(),
            console=data.get("console", True),
            file=data.get("file"),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("QDAO_LOG_LEVEL"):
            self.level = v.upper()
        if v := os.environ.get("QDAO_LOG_FILE"):
            self.file = v


# -- Database -----------------------------------------------------------

@dataclass
class SQLiteConfig:
    """[database.sqlite]."""
    path: str = DEFAULT_DB_PATH

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SQLiteConfig":
        return cls(
            path=data.get("path", DEFAULT_DB_PATH),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("QDAO_DB_PATH"):
            self.path = v


@dataclass
class DatabaseConfig:
    """[database] section."""
    type: str = "sqlite"
    sqlite: SQLiteConfig = field(default_factory=SQLiteConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DatabaseConfig":
        return cls(
            type=data.get("type", "sqlite"),
            sqlite=SQLiteConfig.from_dict(data.get("sqlite", {})),
        )

    def apply_env(self) -> None:
        self.sqlite.apply_env()


@dataclass
class MetricsConfig:
    """[metrics] section."""
    enabled: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MetricsConfig":
        return cls(enabled=data.get("enabled", False))

    def apply_env(self) -> None:
        if v := os.environ.get("QDAO_METRICS_ENABLED"):
            self.enabled = v.lower() in ("1", "true", "yes")


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------


@dataclass
class DAOConfig:
    """
    Unified configuration.

    Loads every section of config.toml and applies environment variable
    overrides. This is the single source of truth at startup.
    """
    governance: GovernanceSectionConfig = field(default_factory=GovernanceSectionConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    metrics: MetricsConfig = field(default_factory=MetricsConfig)

    # --- factories --------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DAOConfig":
        """Create DAOConfig from a parsed TOML dict."""
        return cls(
            governance=GovernanceSectionConfig.from_dict(data.get("governance", {})),
            logging=LoggingConfig.from_dict(data.get("logging", {})),
            database=DatabaseConfig.from_dict(data.get("database", {})),
            metrics=MetricsConfig.from_dict(data.get("metrics", {})),
        )

    @classmethod
    def from_file(cls, config_path: str) -> "DAOConfig":
        """
        Load configuration from a TOML file.

        A missing file yields defaults (with env overrides).
        """
        path = Path(config_path)
        if not path.exists():
            logger.warning("Config file not found: %s, using defaults", config_path)
            cfg = cls()
            cfg.apply_env()
            return cfg

        try:
            with open(path, "rb") as f:
                raw = tomli.load(f)
        except tomli.TOMLDecodeError as e:
            raise ConfigurationError(f"Invalid TOML in {config_path}: {e}") from e

        cfg = cls.from_dict(raw)
        cfg.apply_env()
        return cfg

    # --- env overrides ----------------------------------------------------

    def apply_env(self) -> None:
        """Apply environment variable overrides to all sections."""
        self.governance.apply_env()
        self.logging.apply_env()
        self.database.apply_env()
        self.metrics.apply_env()

    # --- validation -------------------------------------------------------

    def validate(self) -> bool:
        """
        Validate all configuration sections.

        Raises:
            ValueError: on invalid config
        """
        for name in ("minimum_quorum", "voting_duration", "proposal_execution_delay"):
            value = getattr(self.governance, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ValueError(f"governance.{name} must be a non-negative integer")
        if self.logging.level not in _LOG_LEVELS:
            raise ValueError(f"Invalid log level: {self.logging.level}")
        if self.database.type != "sqlite":
            raise ValueError("Only 'sqlite' database type is supported")
        if not self.database.sqlite.path:
            raise ValueError("database.sqlite.path cannot be empty")
        return True

    def to_parameters(self) -> GovernanceParameters:
        return self.governance.to_parameters()

    def configure_logging(self) -> None:
        """Re-apply the [logging] section to the process-wide LogManager."""
        LogManager().reconfigure(
            log_level=self.logging.level,
            log_file=Path(self.logging.file) if self.logging.file else None,
            console_output=self.logging.console,
            file_output=bool(self.logging.file) or None,
        )

    # --- serialisation ----------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict (for diagnostics, NOT for re-creating TOML)."""
        return {
            "governance": {
                "minimum_quorum": self.governance.minimum_quorum,
                "voting_duration": self.governance.voting_duration,
                "proposal_execution_delay": self.governance.proposal_execution_delay,
                "owner": self.governance.owner,
            },
            "logging": {
                "level": self.logging.level,
                "console": self.logging.console,
                "file": self.logging.file,
            },
            "database": {
                "type": self.database.type,
                "sqlite": {
                    "path": self.database.sqlite.path,
                },
            },
            "metrics": {
                "enabled": self.metrics.enabled,
            },
        }


# -----------------------------------------------------------------------
# Convenience function
# -----------------------------------------------------------------------

def load_config(path: Optional[str] = None) -> DAOConfig:
    """
    Load configuration.

    Resolution order:
        1. Explicit *path* argument
        2. QDAO_CONFIG env var
        3. ./config.toml in current directory
        4. Defaults (with env overrides)
    """
    if path is None:
        path = os.environ.get("QDAO_CONFIG", "config.toml")

    return DAOConfig.from_file(path)
