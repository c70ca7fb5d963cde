"""
Configuration Tests
===================

Defaults, YAML loading and environment overrides.
"""

import pytest
from pydantic import ValidationError

from screenguard_agent.config import Settings, load_config


ENV_VARS = [
    "SCREENGUARD_ESCALATION_DELAY",
    "SCREENGUARD_ZERO_TOLERANCE",
    "SCREENGUARD_PERSISTENT_THRESHOLD",
    "SCREENGUARD_MIN_INTERVAL_MS",
    "SCREENGUARD_SKIP_FACTOR",
    "SCREENGUARD_NOTIFICATION_COOLDOWN",
    "SCREENGUARD_NOTIFICATIONS_ENABLED",
    "SCREENGUARD_SENSOR_URL",
    "SCREENGUARD_AGENT_PORT",
    "SCREENGUARD_LOG_LEVEL",
    "PORT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "timing:\n"
        "  escalation_delay_sec: 3.5\n"
        "  zero_tolerance: 5\n"
        "throttle:\n"
        "  skip_factor: 2\n"
        "notifications:\n"
        "  cooldown_sec: 10\n"
        "sensor:\n"
        "  url: ws://localhost:9000/ws/faces\n"
    )
    return path


class TestDefaults:
    """Built-in values."""

    def test_defaults(self):
        settings = Settings()

        assert settings.timing.escalation_delay_sec == 2.0
        assert settings.timing.zero_tolerance == 10
        assert settings.timing.persistent_threshold_sec == 60.0
        assert settings.timing.persistence_poll_sec == 1.0
        assert settings.throttle.min_interval_sec == 0.2
        assert settings.throttle.skip_factor == 3
        assert settings.notifications.cooldown_sec == 5.0
        assert settings.notifications.enabled
        assert settings.sensor.url is None

    def test_missing_file_uses_defaults(self, tmp_path):
        settings = load_config(str(tmp_path / "absent.yaml"))

        assert settings == Settings()


class TestYamlLoading:
    """Values read from config.yaml."""

    def test_file_values(self, config_file):
        settings = load_config(str(config_file))

        assert settings.timing.escalation_delay_sec == 3.5
        assert settings.timing.zero_tolerance == 5
        assert settings.throttle.skip_factor == 2
        assert settings.throttle.min_interval_sec == 0.2
        assert settings.notifications.cooldown_sec == 10.0
        assert settings.sensor.url == "ws://localhost:9000/ws/faces"

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")

        assert load_config(str(path)) == Settings()

    def test_invalid_value_rejected(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("timing:\n  zero_tolerance: 0\n")

        with pytest.raises(ValidationError):
            load_config(str(path))


class TestEnvOverrides:
    """Environment variables win over the file."""

    def test_env_beats_file(self, config_file, monkeypatch):
        monkeypatch.setenv("SCREENGUARD_ESCALATION_DELAY", "1.5")
        monkeypatch.setenv("SCREENGUARD_SKIP_FACTOR", "5")

        settings = load_config(str(config_file))

        assert settings.timing.escalation_delay_sec == 1.5
        assert settings.throttle.skip_factor == 5
        assert settings.timing.zero_tolerance == 5

    def test_min_interval_in_milliseconds(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SCREENGUARD_MIN_INTERVAL_MS", "250")

        settings = load_config(str(tmp_path / "absent.yaml"))

        assert settings.throttle.min_interval_sec == 0.25

    @pytest.mark.parametrize("raw,expected", [("false", False), ("0", False), ("true", True), ("ON", True)])
    def test_notifications_flag(self, tmp_path, monkeypatch, raw, expected):
        monkeypatch.setenv("SCREENGUARD_NOTIFICATIONS_ENABLED", raw)

        settings = load_config(str(tmp_path / "absent.yaml"))

        assert settings.notifications.enabled is expected

    def test_port_precedence(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SCREENGUARD_AGENT_PORT", "9100")
        assert load_config(str(tmp_path / "absent.yaml")).server.port == 9100

        monkeypatch.setenv("PORT", "8080")
        assert load_config(str(tmp_path / "absent.yaml")).server.port == 8080

    def test_sensor_url_and_log_level(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SCREENGUARD_SENSOR_URL", "ws://sensor:9000/ws")
        monkeypatch.setenv("SCREENGUARD_LOG_LEVEL", "DEBUG")

        settings = load_config(str(tmp_path / "absent.yaml"))

        assert settings.sensor.url == "ws://sensor:9000/ws"
        assert settings.logging.level == "DEBUG"
