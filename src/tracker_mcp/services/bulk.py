# ABOUTME: Bulk issue deletion orchestrator running the cascade engine in batches
# ABOUTME: Records per-item failures or aborts on the first one, depending on continue_on_error

"""Batched bulk deletion of issues."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog

from tracker_mcp.services.deletion import delete_issue
from tracker_mcp.services.errors import TrackerError, ValidationError
from tracker_mcp.utils.client import WorkspaceError

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

    from tracker_mcp.utils.client import RemoteClient

logger = structlog.get_logger(__name__)

DEFAULT_BATCH_SIZE = 10


@dataclass
class BulkItemResult:
    identifier: str
    success: bool
    deleted_count: int = 0
    deleted_issues: list[str] = field(default_factory=list)
    would_delete: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    error: str | None = None


@dataclass
class BulkDeletionResult:
    """Aggregate outcome; `results` follows input order."""

    success: bool
    total_requested: int
    success_count: int
    failed_count: int
    batches: int
    dry_run: bool = False
    results: list[BulkItemResult] = field(default_factory=list)


async def bulk_delete_issues(
    client: RemoteClient,
    identifiers: list[str],
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
    continue_on_error: bool = True,
    cascade: bool = True,
    force: bool = False,
    dry_run: bool = False,
    log: FilteringBoundLogger | None = None,
) -> BulkDeletionResult:
    """
    Delete many issues in consecutive batches of `batch_size`.

    Items are processed one at a time, in input order; repeated identifiers
    are processed once. With continue_on_error a failed item is recorded and
    the run moves on; without it the first failure propagates and nothing
    after it is attempted. Earlier deletions are never rolled back.

    Raises:
        ValidationError: If batch_size is not positive.
        TrackerError / WorkspaceError: First failure when continue_on_error is False.
    """
    log = log if log is not None else logger
    if batch_size <= 0:
        raise ValidationError(
            f"batch_size must be positive, got {batch_size}", field="batch_size"
        )

    unique = list(dict.fromkeys(identifiers))
    batches = [unique[i : i + batch_size] for i in range(0, len(unique), batch_size)]
    results: list[BulkItemResult] = []

    for number, batch in enumerate(batches, start=1):
        log.debug("Processing batch", batch=number, of=len(batches), size=len(batch))
        for identifier in batch:
            try:
                outcome = await delete_issue(
                    client,
                    identifier,
                    cascade=cascade,
                    force=force,
                    dry_run=dry_run,
                    log=log,
                )
            except (TrackerError, WorkspaceError) as e:
                if not continue_on_error:
                    raise
                log.debug("Bulk item failed", issue=identifier, error=str(e))
                results.append(BulkItemResult(identifier=identifier, success=False, error=str(e)))
                continue

            results.append(
                BulkItemResult(
                    identifier=identifier,
                    success=True,
                    deleted_count=outcome.deleted_count,
                    deleted_issues=outcome.deleted_issues,
                    would_delete=outcome.would_delete,
                    warnings=outcome.warnings,
                )
            )

    failed = sum(1 for r in results if not r.success)
    return BulkDeletionResult(
        success=failed == 0,
        total_requested=len(unique),
        success_count=len(results) - failed,
        failed_count=failed,
        batches=math.ceil(len(unique) / batch_size),
        dry_run=dry_run,
        results=results,
    )
