# ABOUTME: Error taxonomy for tracker deletion and template engines
# ABOUTME: Every business failure is a TrackerError with a stable machine-readable code

"""
Tracker error types.

=============================================================================
ERROR CODES
=============================================================================

    <KIND>_NOT_FOUND    an identifier did not resolve (ISSUE_NOT_FOUND, ...)
    VALIDATION_ERROR    a required value is missing or malformed
    INVALID_FIELD       an update targeted a field outside the allow-list
    INVALID_INDEX       a child template index is out of range
    DELETION_BLOCKED    impact analysis found blockers and force was not set

Expected business outcomes (e.g. "project is already archived") are NOT
errors; engines return them as normal results. Transport failures are
WorkspaceError from the client and are never wrapped here.

The tool layer turns any of these into text with str(error):

    ISSUE_NOT_FOUND: Issue not found: PROJ-999
"""

from __future__ import annotations

from typing import Any


class TrackerError(Exception):
    """Base class for engine errors carrying a stable code."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        suggestion: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.data = data or {}
        super().__init__(str(self))

    def __str__(self) -> str:
        text = f"{self.code}: {self.message}"
        if self.suggestion:
            text += f"\nSuggestion: {self.suggestion}"
        return text


class NotFoundError(TrackerError):
    """An identifier did not resolve to a document."""

    def __init__(self, kind: str, identifier: str) -> None:
        self.kind = kind
        self.identifier = identifier
        super().__init__(
            f"{kind.upper().replace(' ', '_')}_NOT_FOUND",
            f"{kind.capitalize()} not found: {identifier}",
            data={"kind": kind, "identifier": identifier},
        )


class ValidationError(TrackerError):
    """A required value is missing or has the wrong shape."""

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        suggestion: str | None = None,
    ) -> None:
        self.field = field
        super().__init__(
            "VALIDATION_ERROR",
            message,
            suggestion=suggestion,
            data={"field": field} if field else None,
        )


class InvalidFieldError(TrackerError):
    """An update named a field that may not be changed."""

    def __init__(self, field: str, allowed: list[str]) -> None:
        self.field = field
        self.allowed = allowed
        super().__init__(
            "INVALID_FIELD",
            f"Field '{field}' cannot be updated",
            suggestion=f"Updatable fields: {', '.join(allowed)}",
            data={"field": field, "allowed": allowed},
        )


class InvalidIndexError(TrackerError):
    """A positional index fell outside the collection."""

    def __init__(self, index: int, size: int) -> None:
        self.index = index
        self.size = size
        valid = f"0 to {size - 1}" if size else "none (collection is empty)"
        super().__init__(
            "INVALID_INDEX",
            f"Index {index} is out of range",
            suggestion=f"Valid indexes: {valid}",
            data={"index": index, "size": size},
        )


class DeletionBlockedError(TrackerError):
    """Impact analysis reported blockers and the caller did not force."""

    def __init__(self, entity_type: str, identifier: str, blockers: list[str]) -> None:
        self.entity_type = entity_type
        self.identifier = identifier
        self.blockers = list(blockers)
        super().__init__(
            "DELETION_BLOCKED",
            f"Cannot delete {entity_type} {identifier}: {', '.join(blockers)}",
            suggestion="Resolve the blockers first or retry with force=true",
            data={"blockers": self.blockers},
        )
