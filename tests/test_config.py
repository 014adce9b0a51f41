"""Tests for environment-driven settings."""

import pytest

from config import Settings


class TestSettings:

    def test_defaults(self):
        s = Settings.from_env({})
        assert s.tick_interval == 1.5
        assert s.history_limit == 20
        assert s.event_log_size == 200
        assert s.seed is None
        assert s.autostart is True
        assert s.log_level == "INFO"
        assert (s.host, s.port) == ("127.0.0.1", 8000)

    def test_reads_environment(self):
        s = Settings.from_env(
            {
                "ROUTER_TICK_INTERVAL": "0.25",
                "ROUTER_HISTORY_LIMIT": "50",
                "ROUTER_SEED": "7",
                "ROUTER_AUTOSTART": "off",
                "ROUTER_LOG_LEVEL": "debug",
                "ROUTER_PORT": "9001",
            }
        )
        assert s.tick_interval == 0.25
        assert s.history_limit == 50
        assert s.seed == 7
        assert s.autostart is False
        assert s.log_level == "DEBUG"
        assert s.port == 9001

    def test_empty_seed_means_unseeded(self):
        assert Settings.from_env({"ROUTER_SEED": ""}).seed is None

    @pytest.mark.parametrize(
        "env",
        [
            {"ROUTER_AUTOSTART": "maybe"},
            {"ROUTER_TICK_INTERVAL": "0"},
            {"ROUTER_TICK_INTERVAL": "fast"},
            {"ROUTER_HISTORY_LIMIT": "0"},
            {"ROUTER_EVENT_LOG_SIZE": "-1"},
        ],
    )
    def test_invalid_values(self, env):
        with pytest.raises(ValueError):
            Settings.from_env(env)
