"""
Unit Tests for Configuration Module

These tests verify that the configuration system works correctly:
- Default values are applied when needed
- Values can be overridden from the environment
- Validation catches invalid configurations
- Property methods work as expected

Run with:
    pytest tests/unit/test_config.py -v
"""

import pytest
from core.config import Settings, settings, validate_configuration


class TestConfigurationLoading:
    """Test that configuration loads correctly"""

    def test_provider_urls_loaded(self):
        """Verify both upstream URLs are set"""
        assert settings.dex_base_url.startswith("http")
        assert settings.history_base_url.startswith("http")

    def test_app_port_is_valid_integer(self):
        """Verify app port is a valid integer"""
        assert isinstance(settings.app_port, int)
        assert 1 <= settings.app_port <= 65535

    def test_debug_mode_is_boolean(self):
        """Verify debug setting is a boolean"""
        assert isinstance(settings.debug, bool)

    def test_log_level_is_set(self):
        """Verify log level is configured"""
        assert isinstance(settings.log_level, str)
        assert len(settings.log_level) > 0


class TestDefaults:
    """Test the documented default values"""

    def test_cache_defaults(self):
        config = Settings(_env_file=None)
        assert config.token_list_ttl == 60
        assert config.history_open_ttl == 60
        assert config.history_closed_ttl == 86_400
        assert config.negative_ttl == 300
        assert config.cache_capacity == 512

    def test_retry_disabled_by_default(self):
        config = Settings(_env_file=None)
        assert config.upstream_retry_attempts == 1
        assert config.upstream_retry_backoff == 0.5

    def test_refresher_disabled_by_default(self):
        config = Settings(_env_file=None)
        assert config.token_refresh_interval == 0
        assert config.refresh_enabled is False


class TestEnvironmentOverrides:
    """Test that environment variables override defaults"""

    def test_env_vars_are_case_insensitive(self, monkeypatch):
        monkeypatch.setenv("TOKEN_LIST_TTL", "15")
        monkeypatch.setenv("cache_capacity", "8")

        config = Settings(_env_file=None)

        assert config.token_list_ttl == 15
        assert config.cache_capacity == 8

    def test_refresh_enabled_with_positive_interval(self, monkeypatch):
        monkeypatch.setenv("TOKEN_REFRESH_INTERVAL", "30")
        assert Settings(_env_file=None).refresh_enabled is True


class TestConfigurationProperties:
    """Test computed properties and helper methods"""

    def test_cors_origins_list_splits_and_strips(self):
        config = Settings(_env_file=None, cors_origins=" http://a.test , http://b.test,")
        assert config.cors_origins_list == ["http://a.test", "http://b.test"]

    def test_history_headers_without_key(self):
        headers = Settings(_env_file=None, history_api_key="").get_history_headers()
        assert headers == {"Accept": "application/json"}

    def test_history_headers_include_api_key_when_set(self):
        headers = Settings(_env_file=None, history_api_key="secret").get_history_headers()
        assert headers["authorization"] == "Apikey secret"


class TestConfigurationValidation:
    """Test configuration validation function"""

    def test_validate_configuration_succeeds(self):
        """Default configuration is valid"""
        validate_configuration(Settings(_env_file=None))

    @pytest.mark.parametrize(
        "overrides",
        [
            {"dex_base_url": "ftp://dex.test"},
            {"history_timeout": 0},
            {"token_list_ttl": 0},
            {"negative_ttl": -1},
            {"cache_capacity": 0},
            {"upstream_retry_attempts": 0},
            {"upstream_retry_attempts": 6},
            {"upstream_retry_backoff": -0.1},
            {"history_max_points": 0},
            {"token_refresh_interval": -5},
            {"app_port": 70000},
            {"log_level": "VERBOSE"},
        ],
    )
    def test_validation_rejects_invalid_values(self, overrides):
        config = Settings(_env_file=None, **overrides)
        with pytest.raises(ValueError):
            validate_configuration(config)
