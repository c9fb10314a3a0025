# ABOUTME: Cascading deletion engine for issues, projects, components, and milestones
# ABOUTME: Supports dry runs, forced deletion past blockers, and project archiving

"""
Cascading deletion engine.

=============================================================================
TRAVERSAL ORDER
=============================================================================

Sub-issue trees are walked breadth first with an explicit worklist, so a
deep tree never grows the Python call stack:

    PROJ-1                discovery order:  PROJ-1, PROJ-2, PROJ-3, PROJ-4
    ├── PROJ-2            removal order:    PROJ-4, PROJ-3, PROJ-2, PROJ-1
    │   └── PROJ-4
    └── PROJ-3

Every descendant is discovered after its ancestors, so removing in reverse
discovery order always removes children before their parent. Results list
identifiers in discovery order (root first).

=============================================================================
FAILURE MODEL
=============================================================================

The workspace has no multi-document transactions. A removal failure in the
middle of a cascade propagates immediately and leaves the already removed
descendants gone while the parent still exists. Calling the same deletion
again is safe: the traversal only rediscovers documents that still exist.

A dry run performs the same reads and traversal and returns the same counts
but never calls update / remove_doc / remove_collection.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import structlog

from tracker_mcp.services.errors import DeletionBlockedError
from tracker_mcp.services.impact import (
    analyze_component_impact,
    analyze_milestone_impact,
    issue_impact_for,
    project_impact_for,
)
from tracker_mcp.services.resolver import resolve_issue, resolve_project
from tracker_mcp.utils.client import DocClass

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

    from tracker_mcp.utils.client import Document, RemoteClient

logger = structlog.get_logger(__name__)


@dataclass
class IssueDeletionResult:
    """Outcome of deleting one issue (and its subtree)."""

    success: bool
    deleted_count: int
    deleted_issues: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    forced_deletion: bool = False
    dry_run: bool = False
    would_delete: list[str] = field(default_factory=list)


@dataclass
class ProjectDeletionResult:
    """Outcome of deleting a project and everything it owns."""

    success: bool
    project: str
    deleted: dict[str, Any] = field(default_factory=dict)
    forced_deletion: bool = False
    dry_run: bool = False
    would_delete: dict[str, Any] = field(default_factory=dict)


@dataclass
class ArchiveResult:
    success: bool
    project: str
    archived: bool
    message: str = ""


@dataclass
class DetachDeletionResult:
    """Outcome of deleting a component or milestone."""

    success: bool
    entity_type: str
    label: str
    affected_issues: int
    dry_run: bool = False


# =============================================================================
# TRAVERSAL
# =============================================================================


async def collect_subtree(
    client: RemoteClient,
    root: Document,
    *,
    known_children: list[Document] | None = None,
    visited: set[str] | None = None,
    log: FilteringBoundLogger | None = None,
) -> list[Document]:
    """
    Return `root` and all its descendants in breadth-first discovery order.

    Args:
        known_children: Direct children of `root` if already fetched
        visited: Document ids to skip; updated in place so several roots
                 can share one set
    """
    log = log if log is not None else logger
    visited = visited if visited is not None else set()

    order = [root]
    visited.add(root["_id"])
    worklist: deque[tuple[Document, list[Document] | None]] = deque([(root, known_children)])

    while worklist:
        parent, children = worklist.popleft()
        if children is None:
            children = await client.find_all(DocClass.ISSUE, {"attachedTo": parent["_id"]})

        for child in children:
            if child["_id"] in visited:
                continue
            visited.add(child["_id"])
            order.append(child)
            worklist.append((child, None))

        log.debug(
            "Traversed issue level",
            parent=parent.get("identifier"),
            children=len(children),
        )

    return order


async def _remove_issues(
    client: RemoteClient,
    ordered: list[Document],
    log: FilteringBoundLogger,
) -> None:
    for issue in reversed(ordered):
        await client.remove_doc(DocClass.ISSUE, issue["_id"])
        log.debug("Removed issue", issue=issue.get("identifier"))


# =============================================================================
# ISSUES
# =============================================================================


async def delete_issue(
    client: RemoteClient,
    identifier: str,
    *,
    cascade: bool = True,
    force: bool = False,
    dry_run: bool = False,
    log: FilteringBoundLogger | None = None,
) -> IssueDeletionResult:
    """
    Delete an issue, by default together with its whole sub-issue tree.

    With cascade=False the issue alone is removed and its sub-issues keep a
    dangling parent reference; the result carries a warning with their count.

    Raises:
        NotFoundError: If the issue does not resolve (even when forced).
        DeletionBlockedError: If analysis found blockers and force is False.
    """
    log = log if log is not None else logger
    issue = await resolve_issue(client, identifier, log=log)

    children: list[Document] | None = None
    if not force:
        impact = await issue_impact_for(client, issue, log=log)
        if impact.blockers:
            raise DeletionBlockedError("issue", identifier, impact.blockers)
        children = impact.sub_issues

    warnings = []
    if cascade:
        ordered = await collect_subtree(client, issue, known_children=children, log=log)
    else:
        if children is None:
            children = await client.find_all(DocClass.ISSUE, {"attachedTo": issue["_id"]})
        ordered = [issue]
        if children:
            warnings.append(f"Issue has {len(children)} sub-issues that were not deleted")

    identifiers = [doc.get("identifier", doc["_id"]) for doc in ordered]

    if dry_run:
        log.debug("Dry run issue deletion", issue=identifier, would_delete=len(identifiers))
        return IssueDeletionResult(
            success=True,
            deleted_count=0,
            warnings=warnings,
            forced_deletion=force,
            dry_run=True,
            would_delete=identifiers,
        )

    await _remove_issues(client, ordered, log)

    return IssueDeletionResult(
        success=True,
        deleted_count=len(identifiers),
        deleted_issues=identifiers,
        warnings=warnings,
        forced_deletion=force,
    )


# =============================================================================
# PROJECTS
# =============================================================================


async def delete_project(
    client: RemoteClient,
    identifier: str,
    *,
    force: bool = False,
    dry_run: bool = False,
    log: FilteringBoundLogger | None = None,
) -> ProjectDeletionResult:
    """
    Delete a project with all its issues, components, milestones and templates.

    Issues go first (each root cascaded, sharing one visited set so a
    sub-issue also present in the project listing is removed once), then
    components, milestones, templates (children before parent), and finally
    the project document itself.

    Raises:
        NotFoundError: If the project does not resolve.
        DeletionBlockedError: If analysis found blockers and force is False.
    """
    log = log if log is not None else logger
    project = await resolve_project(client, identifier, log=log)
    impact = await project_impact_for(client, project, log=log)

    if impact.blockers and not force:
        raise DeletionBlockedError("project", identifier, impact.blockers)

    visited: set[str] = set()
    issue_count = 0
    for issue in impact.issues:
        if issue["_id"] in visited:
            continue
        ordered = await collect_subtree(client, issue, visited=visited, log=log)
        issue_count += len(ordered)
        if not dry_run:
            await _remove_issues(client, ordered, log)

    counts: dict[str, Any] = {
        "project": True,
        "issues": issue_count,
        "components": len(impact.components),
        "milestones": len(impact.milestones),
        "templates": len(impact.templates),
    }

    if dry_run:
        log.debug("Dry run project deletion", project=identifier, **counts)
        return ProjectDeletionResult(
            success=True,
            project=identifier,
            deleted={"project": False, "issues": 0, "components": 0, "milestones": 0, "templates": 0},
            forced_deletion=force,
            dry_run=True,
            would_delete=counts,
        )

    for component in impact.components:
        await client.remove_doc(DocClass.COMPONENT, component["_id"])
    for milestone in impact.milestones:
        await client.remove_doc(DocClass.MILESTONE, milestone["_id"])
    for template in impact.templates:
        children = await client.find_all(DocClass.TEMPLATE_CHILD, {"attachedTo": template["_id"]})
        for child in children:
            await client.remove_collection(DocClass.TEMPLATE_CHILD, child["_id"])
        await client.remove_doc(DocClass.TEMPLATE, template["_id"])

    await client.remove_doc(DocClass.PROJECT, project["_id"])
    log.debug("Removed project", project=identifier, **counts)

    return ProjectDeletionResult(
        success=True,
        project=identifier,
        deleted=counts,
        forced_deletion=force,
    )


async def archive_project(
    client: RemoteClient,
    identifier: str,
    *,
    log: FilteringBoundLogger | None = None,
) -> ArchiveResult:
    """
    Archive a project instead of deleting it.

    An already archived project is reported with success=False; that is a
    normal outcome, not an error.
    """
    log = log if log is not None else logger
    project = await resolve_project(client, identifier, log=log)

    if project.get("archived"):
        return ArchiveResult(
            success=False,
            project=identifier,
            archived=True,
            message="Project is already archived",
        )

    await client.update(project, {"archived": True})
    log.debug("Archived project", project=identifier)
    return ArchiveResult(success=True, project=identifier, archived=True)


# =============================================================================
# COMPONENTS AND MILESTONES
# =============================================================================


async def _delete_detaching(
    client: RemoteClient,
    kind: DocClass,
    reference_field: str,
    project_identifier: str,
    label: str,
    dry_run: bool,
    log: FilteringBoundLogger | None,
) -> DetachDeletionResult:
    log = log if log is not None else logger
    analyze = analyze_component_impact if kind is DocClass.COMPONENT else analyze_milestone_impact
    impact = await analyze(client, project_identifier, label, log=log)

    if not dry_run:
        for issue in impact.issues:
            await client.update(issue, {reference_field: None})
            log.debug("Detached issue", issue=issue.get("identifier"), field=reference_field)
        await client.remove_doc(kind, impact.entity["_id"])
        log.debug("Removed entity", kind=reference_field, label=label)

    return DetachDeletionResult(
        success=True,
        entity_type=reference_field,
        label=label,
        affected_issues=len(impact.issues),
        dry_run=dry_run,
    )


async def delete_component(
    client: RemoteClient,
    project_identifier: str,
    label: str,
    *,
    dry_run: bool = False,
    log: FilteringBoundLogger | None = None,
) -> DetachDeletionResult:
    """Delete a component, clearing it from every issue that references it."""
    return await _delete_detaching(
        client, DocClass.COMPONENT, "component", project_identifier, label, dry_run, log
    )


async def delete_milestone(
    client: RemoteClient,
    project_identifier: str,
    label: str,
    *,
    dry_run: bool = False,
    log: FilteringBoundLogger | None = None,
) -> DetachDeletionResult:
    """Delete a milestone, clearing it from every issue that references it."""
    return await _delete_detaching(
        client, DocClass.MILESTONE, "milestone", project_identifier, label, dry_run, log
    )
