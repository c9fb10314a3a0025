# ABOUTME: Safety utilities for Tracker MCP Server
# ABOUTME: Implements confirmation patterns, rate limiting, and destructive operation guards

"""Safety utilities implementing defense-in-depth patterns."""

from __future__ import annotations

import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from tracker_mcp.config import SecuritySettings

logger = structlog.get_logger(__name__)


@dataclass
class ConfirmationRequired:
    """Response indicating confirmation is required for destructive operation."""

    operation: str
    target: str
    impact: str
    confirmation_instructions: str
    details: dict[str, Any] = field(default_factory=dict)

    def format_message(self) -> str:
        """Format confirmation request for agent consumption."""
        lines = [
            f"CONFIRMATION REQUIRED: {self.operation}",
            "",
            f"Target: {self.target}",
            f"Impact: {self.impact}",
        ]

        if self.details:
            lines.append("")
            lines.append("Details:")
            for key, value in self.details.items():
                lines.append(f"  {key}: {value}")

        lines.extend(["", self.confirmation_instructions])
        return "\n".join(lines)


@dataclass
class OperationBlocked:
    """Response indicating operation is blocked by security settings."""

    operation: str
    reason: str
    setting: str

    def format_message(self) -> str:
        """Format blocked message for agent consumption."""
        return (
            f"OPERATION BLOCKED: {self.operation}\n"
            f"Reason: {self.reason}\n"
            f"Setting: {self.setting}\n"
            f"To enable: Set {self.setting}=false in server configuration"
        )


class RateLimiter:
    """Sliding-window rate limiter keyed by operation."""

    def __init__(self, max_calls: int = 100, window_seconds: int = 60) -> None:
        """Initialize rate limiter.

        Args:
            max_calls: Maximum calls allowed in window
            window_seconds: Window size in seconds
        """
        self._max_calls = max_calls
        self._window = window_seconds
        self._calls: dict[str, list[float]] = defaultdict(list)

    def check(self, key: str) -> bool:
        """Record a call for `key` and report whether it is allowed.

        Args:
            key: Rate limit key (e.g., "write:delete_issue")

        Returns:
            True if allowed, False if rate limited
        """
        now = time.time()
        self._calls[key] = [t for t in self._calls[key] if now - t < self._window]

        if len(self._calls[key]) >= self._max_calls:
            logger.warning("Rate limit exceeded", key=key, calls=len(self._calls[key]))
            return False

        self._calls[key].append(now)
        return True

    def reset(self, key: str | None = None) -> None:
        """Reset rate limit counters for one key, or all keys when None."""
        if key:
            self._calls.pop(key, None)
        else:
            self._calls.clear()


class SafetyGuard:
    """Safety guard implementing defense-in-depth patterns.

    Tools fall into three tiers:

    - read: analysis, listing, validation and every dry run. Rate limited only.
    - write: archive and template mutations. Blocked in read-only mode.
    - destructive: real deletions. Also blocked by MCP_DISABLE_DESTRUCTIVE,
      and project deletion additionally needs a name confirmation.
    """

    def __init__(self, settings: SecuritySettings) -> None:
        self._settings = settings
        self._rate_limiter = RateLimiter(
            max_calls=settings.rate_limit_calls,
            window_seconds=settings.rate_limit_window,
        )

    def check_read_operation(self, operation: str) -> OperationBlocked | None:
        """Check if read operation is allowed.

        Returns:
            OperationBlocked if blocked, None if allowed
        """
        if not self._rate_limiter.check(f"read:{operation}"):
            return OperationBlocked(
                operation=operation,
                reason="Rate limit exceeded",
                setting="MCP_RATE_LIMIT_CALLS",
            )
        return None

    def check_write_operation(self, operation: str) -> OperationBlocked | None:
        """Check if write operation is allowed.

        Returns:
            OperationBlocked if blocked, None if allowed
        """
        if self._settings.read_only:
            return OperationBlocked(
                operation=operation,
                reason="Server is running in read-only mode",
                setting="MCP_READ_ONLY",
            )

        if not self._rate_limiter.check(f"write:{operation}"):
            return OperationBlocked(
                operation=operation,
                reason="Rate limit exceeded",
                setting="MCP_RATE_LIMIT_CALLS",
            )

        return None

    def check_destructive_operation(self, operation: str) -> OperationBlocked | None:
        """Check if a deletion may run.

        Returns:
            OperationBlocked if blocked, None if allowed
        """
        write_check = self.check_write_operation(operation)
        if write_check:
            return write_check

        if self._settings.disable_destructive:
            return OperationBlocked(
                operation=operation,
                reason="Destructive operations are disabled",
                setting="MCP_DISABLE_DESTRUCTIVE",
            )

        return None

    def check_confirmed_operation(
        self,
        operation: str,
        target: str,
        confirmed: bool = False,
        confirm_name: str | None = None,
    ) -> OperationBlocked | ConfirmationRequired | None:
        """Check a destructive operation that also needs name confirmation.

        Args:
            operation: Operation name
            target: Target entity identifier
            confirmed: Whether user has confirmed
            confirm_name: Name confirmation (must match target)

        Returns:
            OperationBlocked if blocked, ConfirmationRequired if needs confirmation,
            None if allowed
        """
        destructive_check = self.check_destructive_operation(operation)
        if destructive_check:
            return destructive_check

        if not confirmed or confirm_name != target:
            return ConfirmationRequired(
                operation=operation,
                target=target,
                impact=self._get_impact_description(operation),
                confirmation_instructions=(
                    f"To proceed, set confirm=true AND confirm_name='{target}'"
                ),
            )

        return None

    @staticmethod
    def _get_impact_description(operation: str) -> str:
        """Get human-readable impact description for operation."""
        impacts = {
            "delete_project": (
                "Project and all its issues, components, milestones and templates "
                "will be PERMANENTLY DELETED"
            ),
            "delete_issue": "Issue and all its sub-issues will be PERMANENTLY DELETED",
            "bulk_delete_issues": "Every listed issue and its sub-issues will be PERMANENTLY DELETED",
        }
        return impacts.get(operation, "This operation may have significant impact")
