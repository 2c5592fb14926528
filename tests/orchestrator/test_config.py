"""
Monitor Settings Tests.
"""

from datetime import timedelta
from pathlib import Path

import pytest

from chain_adapters import ConfigurationError
from orchestrator import Environment, MonitorSettings


ENV_VARS = (
    "NODE_ENV",
    "BETTERSTACK_API_KEY",
    "THORNODE_ADDRESS",
    "CHECK_INTERVAL_SECONDS",
    "CLEANUP_INTERVAL_SECONDS",
    "INCIDENT_RETENTION",
    "INCIDENT_MAX_AGE_DAYS",
    "INCIDENT_REQUESTER_EMAIL",
    "NODES_FILE",
    "HTTP_TIMEOUT_SECONDS",
    "LOG_LEVEL",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestFromEnv:
    """Tests for MonitorSettings.from_env."""

    def test_defaults(self, clean_env):
        settings = MonitorSettings.from_env(dotenv=False)

        assert settings.environment == Environment.DEVELOPMENT
        assert settings.check_interval_seconds == 60
        assert settings.incident_retention == 50
        assert settings.incident_max_age is None
        assert settings.nodes_file is None
        assert settings.strict_checks
        assert not settings.alerting_live

    def test_production(self, clean_env):
        clean_env.setenv("NODE_ENV", "Production")
        clean_env.setenv("BETTERSTACK_API_KEY", "token")
        clean_env.setenv("THORNODE_ADDRESS", "thor1qpgxwq9hfmaxx7k2")
        clean_env.setenv("INCIDENT_MAX_AGE_DAYS", "30")
        clean_env.setenv("NODES_FILE", "nodes.yaml")
        clean_env.setenv("LOG_LEVEL", "debug")

        settings = MonitorSettings.from_env(dotenv=False)

        assert settings.alerting_live
        assert not settings.strict_checks
        assert settings.discriminator == "x7k2"
        assert settings.incident_max_age == timedelta(days=30)
        assert settings.nodes_file == Path("nodes.yaml")
        assert settings.log_level == "DEBUG"

    def test_production_requires_api_key(self, clean_env):
        clean_env.setenv("NODE_ENV", "production")

        with pytest.raises(ConfigurationError) as exc_info:
            MonitorSettings.from_env(dotenv=False)

        assert exc_info.value.config_key == "BETTERSTACK_API_KEY"

    @pytest.mark.parametrize("name,value", [
        ("CHECK_INTERVAL_SECONDS", "soon"),
        ("CHECK_INTERVAL_SECONDS", "0"),
        ("HTTP_TIMEOUT_SECONDS", "-1"),
        ("INCIDENT_RETENTION", "-5"),
        ("NODE_ENV", "staging"),
        ("LOG_LEVEL", "LOUD"),
    ])
    def test_invalid_values(self, clean_env, name, value):
        clean_env.setenv(name, value)

        with pytest.raises(ConfigurationError):
            MonitorSettings.from_env(dotenv=False)

    def test_to_dict_hides_api_key(self, clean_env):
        settings = MonitorSettings(betterstack_api_key="token")

        data = settings.to_dict()

        assert "token" not in data.values()
        assert data["environment"] == "development"
