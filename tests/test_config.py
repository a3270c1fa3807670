"""
Tests for the configuration module.

Tests YAML loading, validation and the resolved client settings.
"""

from pathlib import Path

import pytest

from offline_contacts.config import (
    DEFAULT_GRAPHQL_URL,
    ClientSettings,
    ConfigError,
    ConfigLoader,
    load_settings,
    validate_config,
)
from offline_contacts.config.settings import ENV_GRAPHQL_URL


@pytest.fixture(autouse=True)
def no_env_url(monkeypatch):
    monkeypatch.delenv(ENV_GRAPHQL_URL, raising=False)


class TestConfigLoader:
    """Tests for loading YAML files."""

    def test_missing_file_returns_empty(self, tmp_path):
        """Test that no config file means an empty config."""
        assert ConfigLoader(config_dir=tmp_path).load() == {}

    def test_empty_file_returns_empty(self, tmp_path):
        """Test that an empty file means an empty config."""
        (tmp_path / "config.yaml").write_text("")
        assert ConfigLoader(config_dir=tmp_path).load() == {}

    def test_load_values(self, tmp_path):
        """Test loading a populated config file."""
        (tmp_path / "config.yaml").write_text(
            "graphql_url: https://api.example.com/graphql\npage_size: 25\n"
        )
        config = ConfigLoader(config_dir=tmp_path).load_and_validate()
        assert config == {"graphql_url": "https://api.example.com/graphql", "page_size": 25}

    def test_invalid_yaml_raises(self, tmp_path):
        """Test that unparsable YAML raises ConfigError."""
        (tmp_path / "config.yaml").write_text("page_size: [unclosed\n")
        with pytest.raises(ConfigError, match="parse"):
            ConfigLoader(config_dir=tmp_path).load()

    def test_non_mapping_raises(self, tmp_path):
        """Test that a YAML list is rejected."""
        (tmp_path / "config.yaml").write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="dictionary"):
            ConfigLoader(config_dir=tmp_path).load()

    def test_custom_file_name(self, tmp_path):
        """Test a non-default file name."""
        (tmp_path / "other.yaml").write_text("batch_size: 3\n")
        loader = ConfigLoader(config_dir=tmp_path, config_file="other.yaml")
        assert loader.load() == {"batch_size": 3}


class TestValidateConfig:
    """Tests for value validation."""

    def test_valid_config(self):
        """Test that a complete valid config passes."""
        validate_config(
            {
                "graphql_url": "http://localhost:4000/graphql",
                "request_timeout": 2,
                "probe_timeout": 1.5,
                "page_size": 10,
                "cache_duration": 0,
                "batch_size": 5,
                "debounce_delay": 0.3,
                "session_db": ":memory:",
                "log_dir": "/tmp/logs",
                "log_retention_count": 0,
                "verbose": True,
                "unknown_key": "ignored",
            }
        )

    @pytest.mark.parametrize(
        "config, message",
        [
            ({"page_size": "ten"}, "Invalid type"),
            ({"page_size": True}, "Invalid type"),
            ({"verbose": "yes"}, "Invalid type"),
            ({"graphql_url": "ftp://example.com"}, "http"),
            ({"page_size": 0}, "page_size"),
            ({"batch_size": 0}, "batch_size"),
            ({"request_timeout": 0}, "request_timeout"),
            ({"cache_duration": -1}, "cache_duration"),
            ({"debounce_delay": -0.1}, "debounce_delay"),
            ({"log_retention_count": -1}, "log_retention_count"),
        ],
    )
    def test_invalid_values(self, config, message):
        """Test that bad types and ranges raise ConfigError."""
        with pytest.raises(ConfigError, match=message):
            validate_config(config)

    def test_loader_validate_delegates(self):
        """Test ConfigLoader.validate."""
        with pytest.raises(ConfigError):
            ConfigLoader(config_dir=Path("/nonexistent")).validate({"page_size": -5})


class TestClientSettings:
    """Tests for the resolved settings."""

    def test_defaults(self):
        """Test defaults when no config is given."""
        settings = ClientSettings.from_dict(None)

        assert settings.graphql_url == DEFAULT_GRAPHQL_URL
        assert settings.request_timeout == 5.0
        assert settings.page_size == 10
        assert settings.cache_duration == 300
        assert settings.batch_size == 5
        assert settings.debounce_delay == 0.3
        assert settings.verbose is False

    def test_unknown_keys_are_ignored(self):
        """Test that extra keys do not break construction."""
        settings = ClientSettings.from_dict({"page_size": 3, "theme": "dark"})
        assert settings.page_size == 3

    def test_env_overrides_url(self, monkeypatch):
        """Test the GraphQL URL environment override."""
        monkeypatch.setenv(ENV_GRAPHQL_URL, "https://env.example.com/graphql")
        settings = ClientSettings.from_dict({"graphql_url": "http://file.example.com"})
        assert settings.graphql_url == "https://env.example.com/graphql"

    def test_invalid_value_raises(self):
        """Test that from_dict validates."""
        with pytest.raises(ConfigError):
            ClientSettings.from_dict({"batch_size": 0})

    def test_session_db_path(self, tmp_path):
        """Test session database resolution."""
        assert ClientSettings().session_db_path(tmp_path) == str(tmp_path.resolve() / "session.db")
        assert ClientSettings(session_db=":memory:").session_db_path(tmp_path) == ":memory:"
        assert ClientSettings(session_db="s.db").session_db_path(tmp_path) == str(
            tmp_path.resolve() / "s.db"
        )

    def test_log_path(self):
        """Test log directory expansion."""
        assert ClientSettings().log_path() is None
        assert ClientSettings(log_dir="~/logs").log_path() == Path("~/logs").expanduser()

    def test_to_dict(self):
        """Test that to_dict round trips through from_dict."""
        settings = ClientSettings(page_size=7, log_dir="/tmp/x")
        assert ClientSettings.from_dict(settings.to_dict()) == settings


class TestLoadSettings:
    """Tests for load_settings."""

    def test_from_config_dir(self, tmp_path):
        """Test loading settings from a config directory."""
        (tmp_path / "config.yaml").write_text("page_size: 4\nverbose: true\n")
        settings = load_settings(tmp_path)
        assert settings.page_size == 4
        assert settings.verbose is True

    def test_explicit_config_file(self, tmp_path):
        """Test loading an explicit file outside the config directory."""
        config_file = tmp_path / "custom.yaml"
        config_file.write_text("batch_size: 2\n")
        settings = load_settings(tmp_path / "empty", config_file)
        assert settings.batch_size == 2

    def test_invalid_file_raises(self, tmp_path):
        """Test that an invalid file raises ConfigError."""
        (tmp_path / "config.yaml").write_text("page_size: 0\n")
        with pytest.raises(ConfigError):
            load_settings(tmp_path)
