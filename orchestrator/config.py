"""
Orchestrator - Configuration.

============================================================
RESPONSIBILITY
============================================================
Loads monitor settings from the environment (and a `.env` file).

Environment variables:
- NODE_ENV: production | development | test (production makes alerting live)
- BETTERSTACK_API_KEY: alerting backend token
- THORNODE_ADDRESS: operator's validator address
- CHECK_INTERVAL_SECONDS: health check cadence (default 60)
- CLEANUP_INTERVAL_SECONDS: incident retention cadence (default 3600)
- INCIDENT_RETENTION: resolved incidents kept (default 50)
- INCIDENT_MAX_AGE_DAYS: optional age limit for resolved incidents
- INCIDENT_REQUESTER_EMAIL: requester shown on incidents
- NODES_FILE: optional YAML node catalog
- HTTP_TIMEOUT_SECONDS: per request timeout (default 30)
- LOG_LEVEL: DEBUG | INFO | WARNING | ERROR (default INFO)

============================================================
"""

import logging
import os
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

from alerting.incidents import DEFAULT_REQUESTER_EMAIL
from chain_adapters.exceptions import ConfigurationError


logger = logging.getLogger(__name__)


class Environment(Enum):
    PRODUCTION = "production"
    DEVELOPMENT = "development"
    TEST = "test"


_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def _int_env(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}", config_key=name, original_error=e)


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}", config_key=name, original_error=e)


@dataclass
class MonitorSettings:
    """Runtime settings of the monitor."""
    environment: Environment = Environment.DEVELOPMENT
    betterstack_api_key: str = ""
    thornode_address: str = ""
    check_interval_seconds: int = 60
    cleanup_interval_seconds: int = 3600
    incident_retention: int = 50
    incident_max_age_days: Optional[int] = None
    incident_requester_email: str = DEFAULT_REQUESTER_EMAIL
    nodes_file: Optional[Path] = None
    http_timeout_seconds: float = 30.0
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        """Validate settings."""
        if self.check_interval_seconds <= 0:
            raise ConfigurationError("check interval must be positive", config_key="CHECK_INTERVAL_SECONDS")
        if self.cleanup_interval_seconds <= 0:
            raise ConfigurationError("cleanup interval must be positive", config_key="CLEANUP_INTERVAL_SECONDS")
        if self.incident_retention < 0:
            raise ConfigurationError("incident retention must not be negative", config_key="INCIDENT_RETENTION")
        if self.http_timeout_seconds <= 0:
            raise ConfigurationError("HTTP timeout must be positive", config_key="HTTP_TIMEOUT_SECONDS")
        self.log_level = self.log_level.upper()
        if self.log_level not in _LOG_LEVELS:
            raise ConfigurationError(f"unknown log level '{self.log_level}'", config_key="LOG_LEVEL")
        if self.alerting_live and not self.betterstack_api_key:
            raise ConfigurationError(
                "BETTERSTACK_API_KEY is required in production", config_key="BETTERSTACK_API_KEY"
            )

    # ─────────────────────────────────────────────────────────────
    # Derived
    # ─────────────────────────────────────────────────────────────

    @property
    def alerting_live(self) -> bool:
        """Alerting calls reach the backend only in production."""
        return self.environment == Environment.PRODUCTION

    @property
    def strict_checks(self) -> bool:
        """Programming errors fail loud only in development."""
        return self.environment == Environment.DEVELOPMENT

    @property
    def discriminator(self) -> str:
        """Last four characters of the operator address, suffixed to alert names."""
        return self.thornode_address[-4:]

    @property
    def incident_max_age(self) -> Optional[timedelta]:
        if self.incident_max_age_days is None:
            return None
        return timedelta(days=self.incident_max_age_days)

    # ─────────────────────────────────────────────────────────────
    # Loading
    # ─────────────────────────────────────────────────────────────

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "MonitorSettings":
        """
        Load settings from environment variables.

        Raises:
            ConfigurationError: On malformed or missing values
        """
        if dotenv:
            load_dotenv()

        raw_env = os.getenv("NODE_ENV", Environment.DEVELOPMENT.value).strip().lower()
        try:
            environment = Environment(raw_env)
        except ValueError as e:
            raise ConfigurationError(f"unknown NODE_ENV '{raw_env}'", config_key="NODE_ENV", original_error=e)

        nodes_file = os.getenv("NODES_FILE")

        return cls(
            environment=environment,
            betterstack_api_key=os.getenv("BETTERSTACK_API_KEY", ""),
            thornode_address=os.getenv("THORNODE_ADDRESS", ""),
            check_interval_seconds=_int_env("CHECK_INTERVAL_SECONDS", 60),
            cleanup_interval_seconds=_int_env("CLEANUP_INTERVAL_SECONDS", 3600),
            incident_retention=_int_env("INCIDENT_RETENTION", 50),
            incident_max_age_days=_int_env("INCIDENT_MAX_AGE_DAYS", None),
            incident_requester_email=os.getenv("INCIDENT_REQUESTER_EMAIL", DEFAULT_REQUESTER_EMAIL),
            nodes_file=Path(nodes_file) if nodes_file else None,
            http_timeout_seconds=_float_env("HTTP_TIMEOUT_SECONDS", 30.0),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary, without secrets."""
        return {
            "environment": self.environment.value,
            "alerting_live": self.alerting_live,
            "thornode_address": self.thornode_address,
            "check_interval_seconds": self.check_interval_seconds,
            "cleanup_interval_seconds": self.cleanup_interval_seconds,
            "incident_retention": self.incident_retention,
            "incident_max_age_days": self.incident_max_age_days,
            "nodes_file": str(self.nodes_file) if self.nodes_file else None,
            "http_timeout_seconds": self.http_timeout_seconds,
            "log_level": self.log_level,
        }
