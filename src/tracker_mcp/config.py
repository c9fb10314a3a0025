# ABOUTME: Configuration management for the Tracker MCP Server
# ABOUTME: Uses pydantic-settings for type-safe environment variable handling

"""
Configuration management using pydantic-settings.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

This module defines every setting the server reads at startup:

1. WorkspaceConnection: where the tracker workspace lives and how to log in
2. SecuritySettings: the safety switches (read-only, destructive, rate limit)
3. ServerSettings: the top-level container that also holds engine defaults

Values come from environment variables (optionally a dotenv file named by
TRACKER_MCP_ENV_FILE). Pydantic validates and converts them, so an invalid
value fails at startup instead of in the middle of a cascade.

=============================================================================
ENVIRONMENT VARIABLES
=============================================================================

    TRACKER_URL          Workspace server URL
    TRACKER_WORKSPACE    Workspace name
    TRACKER_TOKEN        API token (preferred)
    TRACKER_EMAIL        Login email (used when no token is set)
    TRACKER_PASSWORD     Login password

    MCP_READ_ONLY              Block all write tools (default: true)
    MCP_DISABLE_DESTRUCTIVE    Block all deletions (default: true)
    MCP_AUDIT_LOG              Path of the JSON-lines audit log
    MCP_RATE_LIMIT_CALLS       Calls allowed per window (default: 100)
    MCP_RATE_LIMIT_WINDOW      Window in seconds (default: 60)

    TRACKER_MCP_LOG_LEVEL        DEBUG | INFO | WARNING | ERROR | CRITICAL
    TRACKER_MCP_BULK_BATCH_SIZE  Default bulk deletion batch size (default: 10)
    TRACKER_MCP_LIST_LIMIT       Default template listing limit (default: 50)
"""

from __future__ import annotations

import os
from pathlib import Path  # noqa: TC003 - Required at runtime for Pydantic
from typing import Annotated

from pydantic import BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# =============================================================================
# WORKSPACE CONNECTION
# =============================================================================


class WorkspaceConnection(BaseModel):
    """
    Connection details for one tracker workspace.

    This is a BaseModel (not BaseSettings) because it is assembled from
    ServerSettings fields rather than read from the environment itself.

    USAGE EXAMPLE:
    --------------
        connection = WorkspaceConnection(
            url="https://tracker.example.com",
            workspace="engineering",
            token=SecretStr("my-api-token"),
        )
    """

    model_config = {"extra": "ignore"}

    url: str = Field(description="Workspace server URL")

    workspace: str = Field(description="Workspace name")

    token: SecretStr = Field(default=SecretStr(""), description="Workspace API token")
    # SecretStr prints as "**********"; use token.get_secret_value() to read it.

    email: str = Field(default="", description="Login email, used when no token is set")

    password: SecretStr = Field(default=SecretStr(""), description="Login password")

    timeout: float = Field(default=30.0, gt=0, description="HTTP timeout in seconds")

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """
        Ensure URL has a scheme and no trailing slash.

        "tracker.example.com"   -> "https://tracker.example.com"
        "https://example.com/"  -> "https://example.com"
        """
        if not v.startswith(("http://", "https://")):
            v = f"https://{v}"
        return v.rstrip("/")


# =============================================================================
# SECURITY SETTINGS
# =============================================================================


class SecuritySettings(BaseSettings):
    """
    Security-related configuration.

    DEFENSE IN DEPTH:
    -----------------
    Layer 1: MCP_READ_ONLY=true (default)
        - Blocks archive, template mutations and issue creation
        - Analysis, validation and dry runs stay available

    Layer 2: MCP_DISABLE_DESTRUCTIVE=true (default)
        - Even if writes are enabled, blocks every real deletion

    Layer 3: Rate limiting (MCP_RATE_LIMIT_*)
        - Prevents runaway agent loops from hammering the workspace

    Layer 4: Name confirmation (in SafetyGuard)
        - delete_project must be called with confirm=true AND
          confirm_name matching the project identifier
    """

    model_config = SettingsConfigDict(env_prefix="MCP_")

    read_only: bool = Field(
        default=True,
        description="Block all write operations when true",
    )

    disable_destructive: bool = Field(
        default=True,
        description="Block deletions when true",
    )
    # Dry-run deletions are reads and are never blocked by this switch.

    audit_log: Path | None = Field(
        default=None,
        description="Path to audit log file",
    )
    # When None, audit entries go to the structlog stream.

    rate_limit_calls: int = Field(
        default=100,
        description="Maximum tool calls per window",
    )

    rate_limit_window: int = Field(
        default=60,
        description="Rate limit window in seconds",
    )


# =============================================================================
# MAIN SERVER SETTINGS
# =============================================================================


class ServerSettings(BaseSettings):
    """
    Main server configuration.

    USAGE:
    ------
        settings = load_settings()
        settings.connection             # WorkspaceConnection or None
        settings.security.read_only     # Security switch
        settings.bulk_batch_size        # Engine default
    """

    model_config = SettingsConfigDict(
        env_prefix="TRACKER_MCP_",
        env_nested_delimiter="__",
        extra="ignore",
        populate_by_name=True,
    )

    # -------------------------------------------------------------------------
    # WORKSPACE CONNECTION (from environment)
    # -------------------------------------------------------------------------

    tracker_url: str = Field(
        default="",
        validation_alias="TRACKER_URL",
        description="Workspace server URL",
    )

    tracker_workspace: str = Field(
        default="",
        validation_alias="TRACKER_WORKSPACE",
        description="Workspace name",
    )

    tracker_token: SecretStr = Field(
        default=SecretStr(""),
        validation_alias="TRACKER_TOKEN",
        description="Workspace API token",
    )

    tracker_email: str = Field(
        default="",
        validation_alias="TRACKER_EMAIL",
        description="Login email",
    )

    tracker_password: SecretStr = Field(
        default=SecretStr(""),
        validation_alias="TRACKER_PASSWORD",
        description="Login password",
    )

    request_timeout: float = Field(default=30.0, gt=0, description="HTTP timeout in seconds")

    # -------------------------------------------------------------------------
    # SERVER METADATA
    # -------------------------------------------------------------------------

    server_name: str = Field(
        default="tracker-mcp",
        description="MCP server name",
    )

    log_level: Annotated[str, Field(pattern=r"^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")] = Field(
        default="INFO",
        description="Logging level",
    )

    json_logs: bool = Field(default=False, description="Emit JSON log lines")

    # -------------------------------------------------------------------------
    # ENGINE DEFAULTS
    # -------------------------------------------------------------------------

    bulk_batch_size: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Default batch size for bulk issue deletion",
    )

    list_limit: int = Field(
        default=50,
        ge=1,
        description="Default limit for template listing and search",
    )

    # -------------------------------------------------------------------------
    # NESTED SECURITY SETTINGS
    # -------------------------------------------------------------------------

    security: SecuritySettings = Field(default_factory=SecuritySettings)

    @property
    def connection(self) -> WorkspaceConnection | None:
        """
        Build the workspace connection from environment fields.

        Returns None if TRACKER_URL is not set.
        """
        if not self.tracker_url:
            return None
        return WorkspaceConnection(
            url=self.tracker_url,
            workspace=self.tracker_workspace,
            token=self.tracker_token,
            email=self.tracker_email,
            password=self.tracker_password,
            timeout=self.request_timeout,
        )


# =============================================================================
# SETTINGS LOADER
# =============================================================================


def load_settings() -> ServerSettings:
    """
    Load settings from environment with validation.

    If TRACKER_MCP_ENV_FILE is set, additional variables are read from
    that dotenv file. Useful for local development:

        TRACKER_URL=http://localhost:8087
        TRACKER_WORKSPACE=dev
        TRACKER_EMAIL=dev@example.com
        TRACKER_PASSWORD=dev
        MCP_READ_ONLY=false

    Raises:
        pydantic.ValidationError: If configuration is invalid.
    """
    return ServerSettings(
        _env_file=os.environ.get("TRACKER_MCP_ENV_FILE"),
    )
