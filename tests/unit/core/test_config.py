"""Unit tests for src/core/config.py module."""

import pytest
from pydantic import ValidationError

from src.core.config import (
    CacheConfig,
    ChannelConfig,
    DatabaseConfig,
    NotificationConfig,
    Settings,
    get_settings,
)


@pytest.mark.unit
class TestCacheConfig:
    """Tests for the CacheConfig model."""

    def test_default_ttls(self) -> None:
        """Verify the per-domain TTL defaults in minutes."""
        config = CacheConfig()

        assert config.default_ttl_minutes == 5
        assert config.business_data_ttl_minutes == 5
        assert config.settings_ttl_minutes == 60
        assert config.stats_ttl_minutes == 10
        assert config.notifications_ttl_minutes == 2
        assert config.cleanup_interval_seconds == 600

    def test_ttl_must_be_positive(self) -> None:
        """A zero TTL is rejected."""
        with pytest.raises(ValidationError):
            CacheConfig(default_ttl_minutes=0)

    @pytest.mark.parametrize("debug", [True, False])
    def test_debug_logging_follows_debug_flag(
        self, debug: bool, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Unset cache debug logging inherits the app debug flag."""
        monkeypatch.setenv("DEBUG", str(debug).lower())

        assert Settings().cache_config.debug_logging is debug

    def test_explicit_debug_logging_wins(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """An explicit value is kept even in debug mode."""
        monkeypatch.setenv("DEBUG", "true")
        monkeypatch.setenv("CACHE_CONFIG__DEBUG_LOGGING", "false")

        assert Settings().cache_config.debug_logging is False


@pytest.mark.unit
class TestNotificationConfig:
    """Tests for the NotificationConfig model."""

    def test_defaults(self) -> None:
        """Verify retention, reminder window and currency defaults."""
        config = NotificationConfig()

        assert config.retention_days == 30
        assert config.reminder_window_days == 3
        assert config.timezone == "UTC"
        assert config.currency_symbol == "₪"

    def test_unknown_timezone_is_rejected(self) -> None:
        """Time zones must exist in the tz database."""
        with pytest.raises(ValidationError, match="Unknown time zone"):
            NotificationConfig(timezone="Mars/Olympus_Mons")

    def test_tzinfo(self) -> None:
        """The configured zone is exposed as a tzinfo."""
        config = NotificationConfig(timezone="Asia/Jerusalem")

        assert config.tzinfo.key == "Asia/Jerusalem"


@pytest.mark.unit
class TestChannelConfig:
    """Tests for the ChannelConfig model."""

    def test_defaults(self) -> None:
        """Verify reconnection and polling defaults."""
        config = ChannelConfig()

        assert config.connection_timeout_seconds == 5
        assert config.reconnection_attempts == 5
        assert config.reconnection_delay_seconds == 1
        assert config.list_poll_interval_seconds == 60
        assert config.unread_poll_interval_seconds == 120

    def test_negative_attempts_rejected(self) -> None:
        """Reconnection attempts cannot be negative."""
        with pytest.raises(ValidationError):
            ChannelConfig(reconnection_attempts=-1)


@pytest.mark.unit
class TestDatabaseConfig:
    """Tests for the DatabaseConfig model."""

    def test_requires_asyncpg_driver(self) -> None:
        """Only async PostgreSQL URLs are accepted."""
        with pytest.raises(ValidationError, match="postgresql\\+asyncpg"):
            DatabaseConfig(database_url="postgresql://u:p@localhost/db")


@pytest.mark.unit
class TestSettings:
    """Tests for the Settings class."""

    def test_nested_environment_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Nested fields are overridden with the __ delimiter."""
        monkeypatch.setenv("NOTIFICATION_CONFIG__CRON_SECRET", "s3cret")
        monkeypatch.setenv("CHANNEL_CONFIG__RECONNECTION_ATTEMPTS", "2")

        settings = Settings()

        assert settings.notification_config.cron_secret == "s3cret"
        assert settings.channel_config.reconnection_attempts == 2

    def test_empty_docs_url_disables_docs(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """An empty docs URL becomes None."""
        monkeypatch.setenv("DOCS_URL", "")

        assert Settings().docs_url is None

    @pytest.mark.parametrize(
        ("environment", "expected"),
        [("development", "console"), ("production", "json")],
    )
    def test_formatter_detection(
        self, environment: str, expected: str, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """The log formatter follows the environment when unset."""
        monkeypatch.delenv("K_SERVICE", raising=False)
        monkeypatch.delenv("AWS_EXECUTION_ENV", raising=False)
        monkeypatch.setenv("ENVIRONMENT", environment)

        assert Settings().log_config.log_formatter_type == expected

    def test_get_settings_is_cached(self) -> None:
        """get_settings returns the same instance until the cache is cleared."""
        first = get_settings()

        assert get_settings() is first
        get_settings.cache_clear()
        assert get_settings() is not first
