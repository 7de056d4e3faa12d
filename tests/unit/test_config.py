"""Tests for runtime configuration."""

import pytest

from src.utils.config import AppConfig, get_required_env


class TestGetRequiredEnv:
    def test_returns_value(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("USER_POOL_ID", "us-east-1_abc")

        assert get_required_env("USER_POOL_ID") == "us-east-1_abc"

    def test_uses_default(self) -> None:
        assert get_required_env("USER_POOL_ID", "fallback") == "fallback"

    def test_missing_raises(self) -> None:
        with pytest.raises(ValueError, match="USER_POOL_ID"):
            get_required_env("USER_POOL_ID")


class TestAppConfig:
    """Tests for AppConfig.from_env."""

    def test_defaults(self) -> None:
        config = AppConfig.from_env()

        assert config.db_host is None
        assert config.db_port == 5432
        assert config.db_name == "appdb"
        assert config.invite_queue_url is None
        assert config.from_email == "noreply@yourdomain.com"
        assert config.app_base_url == ""
        assert config.admin_group == "admin"
        assert config.default_group == "player"
        assert config.debug is False

    def test_reads_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DB_HOST", "db.internal")
        monkeypatch.setenv("DB_PORT", "6543")
        monkeypatch.setenv("DB_NAME", "campaigns")
        monkeypatch.setenv("DB_SECRET_ARN", "arn:aws:secretsmanager:us-east-1:123:secret:db")
        monkeypatch.setenv("INVITE_QUEUE_URL", "https://sqs.example/queue")
        monkeypatch.setenv("FROM_EMAIL", "gm@example.com")
        monkeypatch.setenv("APP_BASE_URL", "https://app.example.com/")
        monkeypatch.setenv("USER_POOL_ID", "us-east-1_abc")
        monkeypatch.setenv("ADMIN_GROUP", "ops")
        monkeypatch.setenv("DEBUG", "true")

        config = AppConfig.from_env()

        assert config.db_host == "db.internal"
        assert config.db_port == 6543
        assert config.db_name == "campaigns"
        assert config.db_secret_arn.endswith("secret:db")  # type: ignore[union-attr]
        assert config.invite_queue_url == "https://sqs.example/queue"
        assert config.from_email == "gm@example.com"
        assert config.app_base_url == "https://app.example.com"
        assert config.user_pool_id == "us-east-1_abc"
        assert config.admin_group == "ops"
        assert config.debug is True

    @pytest.mark.parametrize("value,expected", [("1", True), ("yes", True), ("0", False), ("", False)])
    def test_debug_flag(self, monkeypatch: pytest.MonkeyPatch, value: str, expected: bool) -> None:
        monkeypatch.setenv("DEBUG", value)

        assert AppConfig.from_env().debug is expected

    def test_is_frozen(self) -> None:
        config = AppConfig()

        with pytest.raises(AttributeError):
            config.debug = True  # type: ignore[misc]
