"""Unit tests for YAML configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from auction_escrow.config import get_server_config, load_server_config


@pytest.fixture
def config_file(tmp_path: Path):
    def _write(text: str) -> Path:
        path = tmp_path / "server.yaml"
        path.write_text(text)
        return path

    return _write


class TestServerConfig:
    """Test suite for loading server configuration."""

    def test_packaged_defaults(self, monkeypatch):
        """Test that the packaged server.yaml loads."""
        monkeypatch.delenv("ESCROW_CONFIG_PATH", raising=False)
        get_server_config.cache_clear()
        config = get_server_config()
        assert config.auction.min_increment_percent == 5
        assert config.auction.refund_fee_percent == 2
        assert config.transfers.backend == "local"
        assert config.notifications.backend == "local"
        get_server_config.cache_clear()

    def test_env_path_override(self, monkeypatch, config_file):
        """Test that ESCROW_CONFIG_PATH selects the config file."""
        path = config_file(
            "auction:\n"
            "  default_duration_seconds: 60\n"
            "transfers:\n"
            "  backend: http\n"
            "  options:\n"
            "    endpoint: https://payouts.test\n"
            "logging:\n"
            "  level: debug\n"
        )
        monkeypatch.setenv("ESCROW_CONFIG_PATH", str(path))
        get_server_config.cache_clear()
        try:
            config = get_server_config()
        finally:
            get_server_config.cache_clear()
        assert config.auction.default_duration_seconds == 60
        assert config.transfers.backend == "http"
        assert config.transfers.options["endpoint"] == "https://payouts.test"
        assert config.logging.level == "DEBUG"

    def test_empty_file_uses_defaults(self, config_file):
        """Test that an empty file falls back to defaults."""
        config = load_server_config(config_file(""))
        assert config.auction.default_duration_seconds == 3600
        assert config.notifications.history_size == 256

    def test_missing_file(self, tmp_path):
        """Test that a missing config file raises."""
        with pytest.raises(FileNotFoundError):
            load_server_config(tmp_path / "absent.yaml")

    def test_fee_out_of_range(self, config_file):
        """Test that a fee outside 0..100 is rejected."""
        with pytest.raises(ValueError):
            load_server_config(config_file("auction:\n  refund_fee_percent: 150\n"))


    def test_unrecognised_sections_are_ignored(self, config_file):
        """Test that sections the server does not read, such as ``listen``, are ignored."""
        config = load_server_config(config_file("listen:\n  port: 8080\nauction:\n  refund_fee_percent: 3\n"))
        assert config.auction.refund_fee_percent == 3
        assert not hasattr(config, "listen")
