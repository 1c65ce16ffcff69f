"""
Tests for OfflineQueueConfig Pydantic model and validate_config helper.

Tests validation rules for URL format, storage backend choice, range
constraints, boolean coercion, default values, the store factory and
error handling.
"""

import pytest
from pydantic import ValidationError

from validation.config import OfflineQueueConfig, build_store, validate_config


class TestOfflineQueueConfig:
    """Tests for OfflineQueueConfig Pydantic model."""

    # =========================================================================
    # Required field tests
    # =========================================================================

    def test_valid_config_with_required_fields(self, valid_config_dict):
        """Config with required fields is valid."""
        config = OfflineQueueConfig(**valid_config_dict)
        assert config.api_base_url == valid_config_dict["api_base_url"]
        assert config.auth_token == valid_config_dict["auth_token"]

    def test_api_base_url_required(self):
        """api_base_url is required."""
        config, error = validate_config({"auth_token": "token"})
        assert config is None
        assert "api_base_url" in error

    def test_auth_token_optional(self):
        config, error = validate_config({"api_base_url": "https://api.example.com"})
        assert error is None
        assert config.auth_token is None

    # =========================================================================
    # URL validation tests
    # =========================================================================

    @pytest.mark.parametrize("invalid_url", [
        "ftp://server",
        "file:///path",
        "api.example.com",
        "localhost:8080",
        "",
    ])
    def test_api_base_url_must_be_http(self, invalid_url):
        """api_base_url must start with http:// or https://."""
        config, error = validate_config({"api_base_url": invalid_url})
        assert config is None
        assert "api_base_url" in error

    def test_api_base_url_trailing_slashes_removed(self):
        config = OfflineQueueConfig(api_base_url="https://api.example.com/v1//")
        assert config.api_base_url == "https://api.example.com/v1"

    # =========================================================================
    # Storage backend tests
    # =========================================================================

    @pytest.mark.parametrize("value,expected", [
        ("sqlite", "sqlite"),
        ("JSON", "json"),
        ("Memory", "memory"),
    ])
    def test_storage_backend_normalized(self, value, expected):
        config = OfflineQueueConfig(api_base_url="http://localhost", storage_backend=value)
        assert config.storage_backend == expected

    @pytest.mark.parametrize("value", ["redis", "", 3])
    def test_storage_backend_rejected(self, value):
        with pytest.raises(ValidationError):
            OfflineQueueConfig(api_base_url="http://localhost", storage_backend=value)

    # =========================================================================
    # Range validation tests (use parametrize)
    # =========================================================================

    @pytest.mark.parametrize("retries,valid", [
        (0, True),
        (3, True),
        (20, True),
        (-1, False),
        (21, False),
    ])
    def test_max_retries_range(self, retries, valid):
        """max_retries must be 0-20."""
        config, error = validate_config({
            "api_base_url": "http://localhost",
            "max_retries": retries,
        })
        assert (config is not None) == valid
        if valid:
            assert config.max_retries == retries
        else:
            assert "max_retries" in error

    @pytest.mark.parametrize("size,valid", [
        (1, True),
        (1000, True),
        (100000, True),
        (0, False),
        (100001, False),
    ])
    def test_max_queue_size_range(self, size, valid):
        """max_queue_size must be 1-100000."""
        config, error = validate_config({
            "api_base_url": "http://localhost",
            "max_queue_size": size,
        })
        assert (config is not None) == valid
        if not valid:
            assert "max_queue_size" in error

    @pytest.mark.parametrize("hours,valid", [
        (0.5, True),
        (24.0, True),
        (720.0, True),
        (0.0, False),
        (721.0, False),
    ])
    def test_max_age_hours_range(self, hours, valid):
        config, error = validate_config({
            "api_base_url": "http://localhost",
            "max_age_hours": hours,
        })
        assert (config is not None) == valid

    def test_max_age_ms(self):
        config = OfflineQueueConfig(api_base_url="http://localhost", max_age_hours=1.5)
        assert config.max_age_ms == 90 * 60 * 1000

    # =========================================================================
    # Boolean coercion tests
    # =========================================================================

    @pytest.mark.parametrize("string_value,expected", [
        ("true", True),
        ("True", True),
        ("1", True),
        ("yes", True),
        ("false", False),
        ("0", False),
        ("no", False),
    ])
    def test_debug_logging_accepts_string(self, string_value, expected):
        config = OfflineQueueConfig(api_base_url="http://localhost", debug_logging=string_value)
        assert config.debug_logging is expected

    @pytest.mark.parametrize("bad_value", ["maybe", 1, None])
    def test_invalid_boolean_rejected(self, bad_value):
        with pytest.raises(ValidationError):
            OfflineQueueConfig(api_base_url="http://localhost", debug_logging=bad_value)

    # =========================================================================
    # Defaults
    # =========================================================================

    def test_defaults_applied(self):
        """Defaults match the queue and worker constants."""
        config = OfflineQueueConfig(api_base_url="http://localhost")
        assert config.data_dir == "./data"
        assert config.storage_backend == "sqlite"
        assert config.storage_key == "offline_queue"
        assert config.max_queue_size == 1000
        assert config.max_retries == 3
        assert config.retry_base_delay == 1.0
        assert config.retry_max_delay == 30.0
        assert config.max_pass_backoff == 30.0
        assert config.request_timeout == 30.0
        assert config.health_url is None
        assert config.process_interval == 30.0
        assert config.max_age_hours == 24.0
        assert config.cleanup_interval == 3600.0
        assert config.debug_logging is False


class TestValidateConfig:
    """Tests for validate_config helper function."""

    def test_validate_config_success(self, valid_config_dict):
        config, error = validate_config(valid_config_dict)
        assert config is not None
        assert error is None

    def test_validate_config_multiple_errors(self):
        """All field errors are joined into one message."""
        config, error = validate_config({
            "api_base_url": "nope",
            "max_retries": 99,
        })
        assert config is None
        assert "api_base_url" in error
        assert "max_retries" in error
        assert "; " in error

    def test_validate_config_extra_fields_ignored(self):
        config, error = validate_config({
            "api_base_url": "http://localhost",
            "unknown_field": "value",
        })
        assert config is not None
        assert error is None


class TestBuildStore:
    """Tests for build_store factory."""

    def test_memory_backend(self):
        from offline_queue.storage import MemoryStore

        config = OfflineQueueConfig(api_base_url="http://localhost", storage_backend="memory")
        assert isinstance(build_store(config), MemoryStore)

    def test_json_backend(self, valid_config_dict):
        from offline_queue.storage import JsonFileStore

        config = OfflineQueueConfig(**valid_config_dict)
        store = build_store(config)

        assert isinstance(store, JsonFileStore)
        store.set("probe", b"x")
        assert store.get("probe") == b"x"

    @pytest.mark.integration
    def test_sqlite_backend(self, tmp_path):
        from offline_queue.storage import SQLiteStore

        config = OfflineQueueConfig(
            api_base_url="http://localhost",
            data_dir=str(tmp_path),
        )
        assert isinstance(build_store(config), SQLiteStore)


class TestOfflineQueueConfigLogConfig:
    """Tests for log_config method."""

    def test_log_config_masks_token(self, mocker, valid_config_dict):
        """log_config masks token in log output."""
        mock_log = mocker.patch("validation.config.log")
        config = OfflineQueueConfig(**valid_config_dict)
        config.log_config()

        mock_log.info.assert_called_once()
        log_message = mock_log.info.call_args[0][0]

        # Full token should not be in the message
        assert valid_config_dict["auth_token"] not in log_message
        assert "toke****3456" in log_message
        mock_log.warning.assert_not_called()

    def test_log_config_short_token_fully_masked(self, mocker):
        mock_log = mocker.patch("validation.config.log")
        OfflineQueueConfig(api_base_url="http://localhost", auth_token="abc").log_config()

        log_message = mock_log.info.call_args[0][0]
        assert "token=****" in log_message
        assert "abc" not in log_message

    def test_log_config_warns_when_debug_enabled(self, mocker):
        mock_log = mocker.patch("validation.config.log")
        OfflineQueueConfig(api_base_url="http://localhost", debug_logging=True).log_config()

        mock_log.warning.assert_called_once()
        assert "DEBUG LOGGING ENABLED" in mock_log.warning.call_args[0][0]
