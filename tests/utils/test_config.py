"""
Tests for configuration loading.
"""

import os
import tempfile

import pytest

from mcapidx.utils.config import Config, get_config, reset_config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "MCAPIDX_LOG_LEVEL",
        "MCAPIDX_LOG_FORMAT",
        "MCAPIDX_CHUNK_SIZE",
        "MCAPIDX_REQUIRE_FOOTER",
    ):
        monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()


class TestConfig:
    """Test Config."""

    def test_defaults(self):
        """Test values from the bundled default configuration."""
        config = Config()

        assert config.get("walker.chunk_size") == 65536
        assert config.get("walker.require_footer") is False
        assert config.get("logging.level") == "INFO"

    def test_missing_key_default(self):
        """Test unknown keys return the supplied default."""
        config = Config()

        assert config.get("walker.nonexistent", 7) == 7
        assert config.get("nothing.here") is None

    def test_file_overrides_merge(self):
        """Test a user file deep-merges over the defaults."""
        with tempfile.NamedTemporaryFile(delete=False, mode='w', suffix=".yaml") as f:
            f.write("walker:\n  chunk_size: 4096\n")
            filepath = f.name

        try:
            config = Config(filepath)

            assert config.get("walker.chunk_size") == 4096
            assert config.get("walker.require_footer") is False
        finally:
            os.unlink(filepath)

    def test_empty_file(self):
        """Test an empty YAML file leaves defaults in place."""
        with tempfile.NamedTemporaryFile(delete=False, mode='w', suffix=".yaml") as f:
            filepath = f.name

        try:
            assert Config(filepath).get("walker.chunk_size") == 65536
        finally:
            os.unlink(filepath)

    def test_env_overrides(self, monkeypatch):
        """Test environment variables override file values."""
        monkeypatch.setenv("MCAPIDX_CHUNK_SIZE", "1024")
        monkeypatch.setenv("MCAPIDX_REQUIRE_FOOTER", "yes")
        monkeypatch.setenv("MCAPIDX_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("MCAPIDX_LOG_FORMAT", "json")

        config = Config()

        assert config.get("walker.chunk_size") == 1024
        assert config.get("walker.require_footer") is True
        assert config.get("logging.level") == "DEBUG"
        assert config.get("logging.format") == "json"

    def test_set_nested(self):
        """Test set() creates intermediate sections."""
        config = Config()

        config.set("output.listing.width", 120)

        assert config.get("output.listing.width") == 120
        assert config.get("output.listing") == {"width": 120}


def test_global_config_is_cached():
    """Test get_config returns one instance until reset."""
    first = get_config()

    assert get_config() is first

    reset_config()

    assert get_config() is not first
