# ABOUTME: Unit tests for the tracker error taxonomy
# ABOUTME: Tests error codes and the text rendered for tool callers

import pytest

from tracker_mcp.services.errors import (
    DeletionBlockedError,
    InvalidFieldError,
    InvalidIndexError,
    NotFoundError,
    TrackerError,
    ValidationError,
)


@pytest.mark.unit
class TestTrackerErrors:
    """Tests for error codes and messages."""

    def test_not_found_code_from_kind(self):
        """Test NotFoundError derives its code from the entity kind."""
        error = NotFoundError("issue status", "PROJ")

        assert error.code == "ISSUE_STATUS_NOT_FOUND"
        assert error.message == "Issue status not found: PROJ"

    def test_str_includes_suggestion(self):
        """Test the suggestion is appended on its own line."""
        error = TrackerError("SOME_CODE", "Went wrong", suggestion="Try again")

        assert str(error) == "SOME_CODE: Went wrong\nSuggestion: Try again"

    def test_validation_error(self):
        """Test ValidationError keeps the offending field."""
        error = ValidationError("Template title is required", field="title")

        assert error.code == "VALIDATION_ERROR"
        assert error.field == "title"
        assert error.data == {"field": "title"}

    def test_invalid_field_lists_allowed(self):
        """Test InvalidFieldError suggests the allowed fields."""
        error = InvalidFieldError("space", ["title", "priority"])

        assert error.code == "INVALID_FIELD"
        assert "Field 'space' cannot be updated" in str(error)
        assert "title, priority" in str(error)

    def test_invalid_index_for_empty_collection(self):
        """Test InvalidIndexError wording when there is nothing to index."""
        error = InvalidIndexError(0, 0)

        assert error.code == "INVALID_INDEX"
        assert "collection is empty" in error.suggestion

    def test_deletion_blocked_joins_blockers(self):
        """Test DeletionBlockedError lists every blocker."""
        error = DeletionBlockedError("project", "PROJ", ["A", "B"])

        assert error.blockers == ["A", "B"]
        assert error.message == "Cannot delete project PROJ: A, B"
        assert isinstance(error, TrackerError)
