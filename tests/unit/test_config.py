# ABOUTME: Unit tests for configuration management
# ABOUTME: Tests settings loading, validation, and workspace connection assembly

import os
from unittest.mock import patch

import pytest
from pydantic import SecretStr
from pydantic import ValidationError as PydanticValidationError

from tracker_mcp.config import SecuritySettings, ServerSettings, WorkspaceConnection, load_settings


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove workspace variables that a developer shell may carry."""
    for name in (
        "TRACKER_URL",
        "TRACKER_WORKSPACE",
        "TRACKER_TOKEN",
        "TRACKER_EMAIL",
        "TRACKER_PASSWORD",
        "TRACKER_MCP_ENV_FILE",
        "TRACKER_MCP_LOG_LEVEL",
        "TRACKER_MCP_BULK_BATCH_SIZE",
        "MCP_READ_ONLY",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.mark.unit
class TestWorkspaceConnection:
    """Tests for WorkspaceConnection configuration."""

    def test_url_validation_adds_https(self):
        """Test that URL without scheme gets https added."""
        connection = WorkspaceConnection(url="tracker.example.com", workspace="eng")
        assert connection.url == "https://tracker.example.com"

    def test_url_validation_preserves_http(self):
        """Test that explicit http scheme is preserved."""
        connection = WorkspaceConnection(url="http://localhost:8087", workspace="eng")
        assert connection.url == "http://localhost:8087"

    def test_url_validation_removes_trailing_slash(self):
        """Test that trailing slash is removed from URL."""
        connection = WorkspaceConnection(url="https://tracker.example.com/", workspace="eng")
        assert connection.url == "https://tracker.example.com"

    def test_credentials_default_empty(self):
        """Test token and password default to empty secrets."""
        connection = WorkspaceConnection(url="https://tracker.example.com", workspace="eng")

        assert connection.token.get_secret_value() == ""
        assert connection.password.get_secret_value() == ""
        assert connection.timeout == 30.0


@pytest.mark.unit
class TestSecuritySettings:
    """Tests for SecuritySettings configuration."""

    def test_defaults(self, clean_env):
        """Test default security settings."""
        settings = SecuritySettings()

        assert settings.read_only is True
        assert settings.disable_destructive is True
        assert settings.audit_log is None
        assert settings.rate_limit_calls == 100
        assert settings.rate_limit_window == 60

    def test_env_prefix(self):
        """Test environment variable prefix."""
        with patch.dict(os.environ, {"MCP_READ_ONLY": "false"}):
            settings = SecuritySettings()
            assert settings.read_only is False


@pytest.mark.unit
class TestServerSettings:
    """Tests for ServerSettings configuration."""

    def test_connection_from_fields(self, clean_env):
        """Test the workspace connection is assembled from settings fields."""
        settings = ServerSettings(
            tracker_url="tracker.example.com/",
            tracker_workspace="engineering",
            tracker_token=SecretStr("test-token"),
            request_timeout=5.0,
        )

        connection = settings.connection
        assert connection is not None
        assert connection.url == "https://tracker.example.com"
        assert connection.workspace == "engineering"
        assert connection.token.get_secret_value() == "test-token"
        assert connection.timeout == 5.0

    def test_connection_from_env(self, clean_env, monkeypatch: pytest.MonkeyPatch):
        """Test TRACKER_* variables feed the connection."""
        monkeypatch.setenv("TRACKER_URL", "https://tracker.example.com")
        monkeypatch.setenv("TRACKER_WORKSPACE", "ops")
        monkeypatch.setenv("TRACKER_EMAIL", "dev@example.com")

        connection = ServerSettings().connection

        assert connection is not None
        assert connection.workspace == "ops"
        assert connection.email == "dev@example.com"

    def test_connection_none_when_no_url(self, clean_env):
        """Test connection is None when URL not set."""
        assert ServerSettings().connection is None

    def test_defaults(self, clean_env):
        """Test server and engine defaults."""
        settings = ServerSettings()

        assert settings.server_name == "tracker-mcp"
        assert settings.log_level == "INFO"
        assert settings.json_logs is False
        assert settings.bulk_batch_size == 10
        assert settings.list_limit == 50

    def test_invalid_log_level(self, clean_env):
        """Test unknown log levels are rejected."""
        with pytest.raises(PydanticValidationError):
            ServerSettings(log_level="LOUD")

    @pytest.mark.parametrize("batch_size", [0, 51])
    def test_batch_size_bounds(self, clean_env, batch_size):
        """Test the bulk batch size stays within 1..50."""
        with pytest.raises(PydanticValidationError):
            ServerSettings(bulk_batch_size=batch_size)

    def test_engine_defaults_from_env(self, clean_env, monkeypatch: pytest.MonkeyPatch):
        """Test TRACKER_MCP_ prefixed variables are read."""
        monkeypatch.setenv("TRACKER_MCP_BULK_BATCH_SIZE", "25")

        assert ServerSettings().bulk_batch_size == 25

    def test_load_settings_reads_env_file(self, clean_env, tmp_path, monkeypatch):
        """Test load_settings honours TRACKER_MCP_ENV_FILE."""
        env_file = tmp_path / "tracker.env"
        env_file.write_text("TRACKER_URL=http://localhost:8087\nTRACKER_WORKSPACE=dev\n")
        monkeypatch.setenv("TRACKER_MCP_ENV_FILE", str(env_file))

        settings = load_settings()

        assert settings.connection is not None
        assert settings.connection.url == "http://localhost:8087"
