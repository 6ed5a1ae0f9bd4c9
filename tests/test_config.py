"""Tests for config module."""

import pytest

from src.swordsman.config import DEFAULT_CLIENT_KEY, WatcherConfig, client_key_for


class TestWatcherConfig:
    """Tests for WatcherConfig class."""

    def test_default_values(self):
        config = WatcherConfig()
        assert config.watchman_binary_path is None
        assert config.report_existing_files is False
        assert config.check_capabilities is False
        assert config.required_capabilities == ["relative_root"]
        assert config.stat_workers == 4
        assert config.command_timeout == 10.0
        assert config.poll_interval == 0.2

    def test_custom_values(self):
        config = WatcherConfig(
            watchman_binary_path="/opt/watchman/bin/watchman",
            report_existing_files=True,
            stat_workers=0,
        )
        assert config.watchman_binary_path == "/opt/watchman/bin/watchman"
        assert config.report_existing_files is True
        assert config.stat_workers == 0

    def test_required_capabilities_not_shared(self):
        first = WatcherConfig()
        second = WatcherConfig()
        first.required_capabilities.append("wildmatch")
        assert second.required_capabilities == ["relative_root"]

    def test_client_key_default(self):
        assert WatcherConfig().client_key == DEFAULT_CLIENT_KEY

    def test_client_key_binary_path(self):
        config = WatcherConfig(watchman_binary_path="/usr/bin/watchman")
        assert config.client_key == "/usr/bin/watchman"

    def test_negative_stat_workers_rejected(self):
        with pytest.raises(ValueError):
            WatcherConfig(stat_workers=-1)

    def test_non_positive_timeouts_rejected(self):
        with pytest.raises(ValueError):
            WatcherConfig(command_timeout=0)
        with pytest.raises(ValueError):
            WatcherConfig(poll_interval=-0.5)


class TestClientKeyFor:
    """Tests for client_key_for function."""

    def test_none_is_default(self):
        assert client_key_for(None) == "default"

    def test_empty_string_is_default(self):
        assert client_key_for("") == "default"

    def test_path_is_key(self):
        assert client_key_for("/bin/watchman") == "/bin/watchman"
