# ABOUTME: Unit tests for logging utilities
# ABOUTME: Tests correlation IDs, configure_logging, and AuditLogger class

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import structlog

from tracker_mcp.utils.logging import (
    AuditLogger,
    add_correlation_id,
    configure_logging,
    correlation_id,
    get_correlation_id,
    set_correlation_id,
)


@pytest.mark.unit
class TestCorrelationId:
    """Tests for correlation ID generation and context management."""

    def test_get_correlation_id_generates_new_when_empty(self):
        """Test that get_correlation_id generates a hex ID when none exists."""
        correlation_id.set("")

        cid = get_correlation_id()

        assert len(cid) == 8
        int(cid, 16)

    def test_get_correlation_id_returns_existing(self):
        """Test that get_correlation_id returns existing ID when set."""
        set_correlation_id("test1234")

        assert get_correlation_id() == "test1234"

    def test_get_correlation_id_preserves_value(self):
        """Test that subsequent calls return the same generated ID."""
        correlation_id.set("")

        assert get_correlation_id() == get_correlation_id()


@pytest.mark.unit
class TestAddCorrelationId:
    """Tests for the add_correlation_id processor function."""

    def test_adds_correlation_id_to_event_dict(self):
        """Test that correlation ID is added to event dictionary."""
        set_correlation_id("proc1234")

        result = add_correlation_id(MagicMock(), "info", {"event": "Removed issue"})

        assert result["correlation_id"] == "proc1234"
        assert result["event"] == "Removed issue"


@pytest.mark.unit
class TestConfigureLogging:
    """Tests for configure_logging function."""

    def test_console_renderer_by_default(self):
        """Test the console renderer closes the pipeline by default."""
        with patch.object(structlog, "configure") as mock_configure:
            configure_logging()

        processors = mock_configure.call_args.kwargs["processors"]
        assert add_correlation_id in processors
        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)

    def test_json_output(self):
        """Test JSON rendering when requested."""
        with patch.object(structlog, "configure") as mock_configure:
            configure_logging(level="DEBUG", json_output=True)

        processors = mock_configure.call_args.kwargs["processors"]
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)

    def test_processors_order(self):
        """Test the correlation id is added before rendering."""
        with patch.object(structlog, "configure") as mock_configure:
            configure_logging(level="WARNING")

        processors = mock_configure.call_args.kwargs["processors"]
        assert processors.index(add_correlation_id) == len(processors) - 2


@pytest.mark.unit
class TestAuditLogger:
    """Tests for AuditLogger."""

    def test_log_to_file(self, tmp_path: Path):
        """Test logging to a file writes one JSON line."""
        log_file = tmp_path / "audit.log"
        audit = AuditLogger(log_path=log_file)
        set_correlation_id("file1234")

        audit.log("delete_issue", "PROJ-12", "success", {"deleted_count": 4})

        entry = json.loads(log_file.read_text().strip())
        assert entry["action"] == "delete_issue"
        assert entry["target"] == "PROJ-12"
        assert entry["result"] == "success"
        assert entry["correlation_id"] == "file1234"
        assert entry["details"] == {"deleted_count": 4}
        assert entry["timestamp"].endswith("+00:00")

    def test_log_without_details(self, tmp_path: Path):
        """Test logging without details does not add details key."""
        log_file = tmp_path / "audit.log"
        AuditLogger(log_path=log_file).log("list_templates", "project=PROJ", "success")

        assert "details" not in json.loads(log_file.read_text().strip())

    def test_log_appends_to_file(self, tmp_path: Path):
        """Test that multiple log calls append to the file."""
        log_file = tmp_path / "audit.log"
        audit = AuditLogger(log_path=log_file)

        audit.log_read("list_templates", "project=PROJ")
        audit.log_write("archive_project", "PROJ", "success")
        audit.log_blocked("delete_project", "PROJ", "confirmation required")
        audit.log_error("delete_issue", "PROJ-9", "ISSUE_NOT_FOUND")

        entries = [json.loads(line) for line in log_file.read_text().strip().split("\n")]
        assert [e["result"] for e in entries] == ["success", "success", "blocked", "error"]
        assert entries[2]["details"] == {"reason": "confirmation required"}
        assert entries[3]["details"] == {"error": "ISSUE_NOT_FOUND"}

    def test_log_to_structlog(self):
        """Test logging through structlog when no log path specified."""
        audit = AuditLogger(log_path=None)

        with patch.object(audit, "_logger") as mock_logger:
            audit.log("delete_issue", "PROJ-1", "dry_run", {"would_delete": 3})

        mock_logger.info.assert_called_once_with(
            "audit",
            action="delete_issue",
            target="PROJ-1",
            result="dry_run",
            details={"would_delete": 3},
        )

    def test_helpers_delegate_to_log(self):
        """Test the specialised helpers delegate to log."""
        audit = AuditLogger()

        with patch.object(audit, "log") as mock_log:
            audit.log_read("get_template_details", "t-1")
            audit.log_blocked("delete_issue", "PROJ-1", "Rate limited")

        assert mock_log.call_args_list[0].args == ("get_template_details", "t-1", "success")
        assert mock_log.call_args_list[1].args == (
            "delete_issue",
            "PROJ-1",
            "blocked",
            {"reason": "Rate limited"},
        )
