# ABOUTME: Structured logging with correlation IDs for Tracker MCP Server
# ABOUTME: Implements audit logging for every tool call, including blocked and failed ones

"""
Structured logging with correlation IDs and audit trails.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

1. STRUCTURED LOGGING: structlog emits key/value events, rendered as JSON in
   production or colored text during development.

2. CORRELATION IDs: every log line of one tool call carries the same short
   id. A project deletion touches dozens of documents; the id lets you pull
   all of those lines back together:

       jq 'select(.correlation_id == "a1b2c3d4")' server.log

3. AUDIT LOGGING: one record per tool call saying who tried to do what to
   which entity, and whether it succeeded, was blocked, or failed.

=============================================================================
CONTEXT VARIABLES (contextvars)
=============================================================================

Several tool calls can be in flight at once on the same event loop, so the
correlation id cannot be a plain global. A ContextVar gives each async task
its own value:

    async def request_1():
        set_correlation_id("aaa")
        await delete_issue_cascade(...)   # logs carry "aaa"

    async def request_2():
        set_correlation_id("bbb")
        await delete_project(...)         # logs carry "bbb"
"""

from __future__ import annotations

import json
import logging
import uuid
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from collections.abc import MutableMapping
    from pathlib import Path

# =============================================================================
# CORRELATION ID
# =============================================================================

correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")


def get_correlation_id() -> str:
    """
    Get current correlation ID or generate new one.

    Code running outside a tool call (startup, tests) still gets an id so
    its log lines stay correlatable. Eight characters of a UUID4 are enough
    to avoid collisions within one server's log window.

    Returns:
        8-character correlation ID string.
    """
    cid = correlation_id.get()
    if not cid:
        cid = str(uuid.uuid4())[:8]
        correlation_id.set(cid)
    return cid


def set_correlation_id(cid: str) -> None:
    """
    Set correlation ID for current context.

    Called at the start of every tool with the MCP request id. An empty
    string makes the next get_correlation_id() generate a fresh one.
    """
    correlation_id.set(cid)


def add_correlation_id(
    logger: structlog.types.WrappedLogger,  # noqa: ARG001 - Required by structlog Processor API
    method_name: str,  # noqa: ARG001 - Required by structlog Processor API
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Structlog processor adding the correlation ID to every event."""
    event_dict["correlation_id"] = get_correlation_id()
    return event_dict


# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
) -> None:
    """
    Configure structured logging.

    Call once at startup. The processor pipeline is:

    1. merge_contextvars: values bound with structlog.contextvars
    2. add_log_level: "level" field
    3. TimeStamper: ISO timestamp
    4. add_correlation_id: the request's correlation id
    5. Renderer: JSON or colored console text

    Args:
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL. The deletion engines
               log every traversal step at DEBUG.
        json_output: JSON lines for log aggregators when True.
    """
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        add_correlation_id,
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


# =============================================================================
# AUDIT LOGGER
# =============================================================================


class AuditLogger:
    """
    Audit logger for recording all tool calls.

    Every entry records:
    - timestamp: UTC ISO 8601
    - correlation_id: request identifier
    - action: tool name ("delete_issue", "create_template")
    - target: entity identifier ("PROJ-12", "project=PROJ")
    - result: "success", "dry_run", "blocked", "error", "partial"
    - details: optional context (counts, reasons, error text)

    With a log_path the entries are appended to that file as JSON lines;
    otherwise they go through structlog under the "audit" logger.

    EXAMPLE ENTRIES:
    ----------------
    {"timestamp": "2026-01-15T10:30:00+00:00", "correlation_id": "abc12345",
     "action": "delete_issue", "target": "PROJ-12", "result": "success",
     "details": {"deleted_count": 4}}

    {"timestamp": "2026-01-15T10:30:05+00:00", "correlation_id": "def67890",
     "action": "delete_project", "target": "PROJ", "result": "blocked",
     "details": {"reason": "Destructive operations are disabled"}}
    """

    def __init__(self, log_path: Path | None = None) -> None:
        """
        Initialize audit logger.

        Args:
            log_path: Path to audit log file, or None for structlog output.
                      The parent directory must exist; the file is appended to.
        """
        self._log_path = log_path
        self._logger = structlog.get_logger("audit")

    def log(
        self,
        action: str,
        target: str,
        result: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Log an auditable action.

        All specialized methods (log_read, log_write, ...) delegate here.
        """
        entry: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "correlation_id": get_correlation_id(),
            "action": action,
            "target": target,
            "result": result,
        }

        if details:
            entry["details"] = details

        if self._log_path:
            with self._log_path.open("a") as f:
                f.write(json.dumps(entry, default=str) + "\n")
        else:
            self._logger.info(
                "audit",
                action=action,
                target=target,
                result=result,
                details=details,
            )

    def log_read(self, action: str, target: str) -> None:
        """Log a successful read (analysis, listing, dry run preview)."""
        self.log(action, target, "success")

    def log_write(
        self,
        action: str,
        target: str,
        result: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Log a write operation.

        Example:
            audit_logger.log_write(
                "delete_issue", "PROJ-12", "success", {"deleted_count": 4}
            )
        """
        self.log(action, target, result, details)

    def log_blocked(self, action: str, target: str, reason: str) -> None:
        """Log an operation refused by the safety guard."""
        self.log(action, target, "blocked", {"reason": reason})

    def log_error(self, action: str, target: str, error: str) -> None:
        """Log an operation that failed with an error."""
        self.log(action, target, "error", {"error": error})
