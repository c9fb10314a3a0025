# ABOUTME: Read-only deletion impact analysis for issues, projects, components, milestones
# ABOUTME: Reports blockers and warnings without ever issuing a mutating call

"""
Deletion impact analysis.

=============================================================================
BLOCKERS VS WARNINGS
=============================================================================

A BLOCKER stops a deletion unless the caller passes force=true:

    issue:    "Blocks PROJ-7"       (a "blocks" relation to an existing issue)
    project:  "Project has active issues"
              "Project has GitHub integration enabled"

A WARNING is informational; it describes collateral the deletion takes with
it ("Has 3 sub-issues that will be deleted").

Every function here only calls find_one / find_all.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog

from tracker_mcp.services.errors import ValidationError
from tracker_mcp.services.resolver import resolve, resolve_issue, resolve_project
from tracker_mcp.utils.client import DocClass

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

    from tracker_mcp.utils.client import Document, RemoteClient

logger = structlog.get_logger(__name__)

# Issue statuses that do not count as active work
TERMINAL_STATUSES = frozenset({"done", "canceled"})

ENTITY_TYPES = ("issue", "project", "component", "milestone")


@dataclass
class IssueImpact:
    """What deleting one issue would take with it."""

    issue: Document
    blockers: list[str] = field(default_factory=list)
    sub_issues: list[Document] = field(default_factory=list)
    comments: int = 0
    attachments: int = 0
    warnings: list[str] = field(default_factory=list)


@dataclass
class ProjectImpact:
    """Everything owned by a project."""

    project: Document
    blockers: list[str] = field(default_factory=list)
    issues: list[Document] = field(default_factory=list)
    components: list[Document] = field(default_factory=list)
    milestones: list[Document] = field(default_factory=list)
    templates: list[Document] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass
class ReferenceImpact:
    """Issues referencing a component or milestone."""

    entity: Document
    project: Document
    issues: list[Document] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass
class DeletionValidation:
    """Summary answer to "can this entity be deleted?"."""

    entity_type: str
    identifier: str
    can_delete: bool
    blockers: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    impact: dict[str, int] = field(default_factory=dict)


# =============================================================================
# ISSUES
# =============================================================================


async def analyze_issue_impact(
    client: RemoteClient,
    identifier: str,
    *,
    log: FilteringBoundLogger | None = None,
) -> IssueImpact:
    """
    Analyze the impact of deleting an issue.

    Raises:
        NotFoundError: If the issue does not resolve.
    """
    issue = await resolve_issue(client, identifier, log=log)
    return await issue_impact_for(client, issue, log=log)


async def issue_impact_for(
    client: RemoteClient,
    issue: Document,
    *,
    log: FilteringBoundLogger | None = None,
) -> IssueImpact:
    """Analyze an already resolved issue document."""
    log = log if log is not None else logger

    sub_issues = await client.find_all(DocClass.ISSUE, {"attachedTo": issue["_id"]})

    blockers = []
    for relation in issue.get("relations") or []:
        if relation.get("type") != "blocks":
            continue
        target = await client.find_one(DocClass.ISSUE, {"_id": relation.get("target")})
        if target:
            blockers.append(f"Blocks {target.get('identifier')}")

    comments = int(issue.get("comments") or 0)
    attachments = int(issue.get("attachments") or 0)

    warnings = []
    if sub_issues:
        warnings.append(f"Has {len(sub_issues)} sub-issues that will be deleted")
    if comments:
        warnings.append(f"Has {comments} comments that will be deleted")
    if attachments:
        warnings.append(f"Has {attachments} attachments that will be deleted")

    log.debug(
        "Analyzed issue impact",
        issue=issue.get("identifier"),
        sub_issues=len(sub_issues),
        blockers=len(blockers),
    )
    return IssueImpact(
        issue=issue,
        blockers=blockers,
        sub_issues=sub_issues,
        comments=comments,
        attachments=attachments,
        warnings=warnings,
    )


# =============================================================================
# PROJECTS
# =============================================================================


async def analyze_project_impact(
    client: RemoteClient,
    identifier: str,
    *,
    log: FilteringBoundLogger | None = None,
) -> ProjectImpact:
    """
    Analyze the impact of deleting a project.

    Raises:
        NotFoundError: If the project does not resolve.
    """
    project = await resolve_project(client, identifier, log=log)
    return await project_impact_for(client, project, log=log)


async def project_impact_for(
    client: RemoteClient,
    project: Document,
    *,
    log: FilteringBoundLogger | None = None,
) -> ProjectImpact:
    """Analyze an already resolved project document."""
    log = log if log is not None else logger
    space = {"space": project["_id"]}

    issues = await client.find_all(DocClass.ISSUE, space)
    components = await client.find_all(DocClass.COMPONENT, space)
    milestones = await client.find_all(DocClass.MILESTONE, space)
    templates = await client.find_all(DocClass.TEMPLATE, space)

    blockers = []
    # A missing status counts as active
    if any(issue.get("status") not in TERMINAL_STATUSES for issue in issues):
        blockers.append("Project has active issues")
    if project.get("githubIntegration"):
        blockers.append("Project has GitHub integration enabled")

    warnings = [
        f"Has {len(items)} {name} that will be deleted"
        for name, items in (
            ("issues", issues),
            ("components", components),
            ("milestones", milestones),
            ("templates", templates),
        )
        if items
    ]

    log.debug(
        "Analyzed project impact",
        project=project.get("identifier"),
        issues=len(issues),
        blockers=len(blockers),
    )
    return ProjectImpact(
        project=project,
        blockers=blockers,
        issues=issues,
        components=components,
        milestones=milestones,
        templates=templates,
        warnings=warnings,
    )


# =============================================================================
# COMPONENTS AND MILESTONES
# =============================================================================


async def _analyze_reference(
    client: RemoteClient,
    kind: DocClass,
    reference_field: str,
    project_identifier: str,
    label: str,
    log: FilteringBoundLogger | None,
) -> ReferenceImpact:
    log = log if log is not None else logger
    project = await resolve_project(client, project_identifier, log=log)
    entity = await resolve(client, kind, label, space=project["_id"], log=log)

    issues = await client.find_all(
        DocClass.ISSUE, {"space": project["_id"], reference_field: entity["_id"]}
    )

    warnings = [f"Used by {len(issues)} issues that will be detached"] if issues else []
    log.debug("Analyzed reference impact", kind=reference_field, label=label, issues=len(issues))
    return ReferenceImpact(entity=entity, project=project, issues=issues, warnings=warnings)


async def analyze_component_impact(
    client: RemoteClient,
    project_identifier: str,
    label: str,
    *,
    log: FilteringBoundLogger | None = None,
) -> ReferenceImpact:
    """Find the issues that reference a component."""
    return await _analyze_reference(
        client, DocClass.COMPONENT, "component", project_identifier, label, log
    )


async def analyze_milestone_impact(
    client: RemoteClient,
    project_identifier: str,
    label: str,
    *,
    log: FilteringBoundLogger | None = None,
) -> ReferenceImpact:
    """Find the issues that reference a milestone."""
    return await _analyze_reference(
        client, DocClass.MILESTONE, "milestone", project_identifier, label, log
    )


# =============================================================================
# VALIDATION
# =============================================================================


async def validate_deletion(
    client: RemoteClient,
    entity_type: str,
    identifier: str,
    project_identifier: str | None = None,
    *,
    log: FilteringBoundLogger | None = None,
) -> DeletionValidation:
    """
    Check whether an entity can be deleted without force.

    Args:
        entity_type: One of "issue", "project", "component", "milestone"
        identifier: Issue/project code, or component/milestone label
        project_identifier: Owning project, required for components and milestones

    Raises:
        ValidationError: Unknown entity type, or missing project for a label lookup.
        NotFoundError: If the entity does not resolve.
    """
    if entity_type not in ENTITY_TYPES:
        raise ValidationError(
            f"Unknown entity type: {entity_type}",
            field="entity_type",
            suggestion=f"Use one of: {', '.join(ENTITY_TYPES)}",
        )

    if entity_type == "issue":
        issue_impact = await analyze_issue_impact(client, identifier, log=log)
        return DeletionValidation(
            entity_type=entity_type,
            identifier=identifier,
            can_delete=not issue_impact.blockers,
            blockers=issue_impact.blockers,
            warnings=issue_impact.warnings,
            impact={
                "sub_issues": len(issue_impact.sub_issues),
                "comments": issue_impact.comments,
                "attachments": issue_impact.attachments,
            },
        )

    if entity_type == "project":
        project_impact = await analyze_project_impact(client, identifier, log=log)
        return DeletionValidation(
            entity_type=entity_type,
            identifier=identifier,
            can_delete=not project_impact.blockers,
            blockers=project_impact.blockers,
            warnings=project_impact.warnings,
            impact={
                "issues": len(project_impact.issues),
                "components": len(project_impact.components),
                "milestones": len(project_impact.milestones),
                "templates": len(project_impact.templates),
            },
        )

    if not project_identifier:
        raise ValidationError(
            f"project_identifier is required to validate a {entity_type}",
            field="project_identifier",
        )

    analyze = analyze_component_impact if entity_type == "component" else analyze_milestone_impact
    reference_impact = await analyze(client, project_identifier, identifier, log=log)
    return DeletionValidation(
        entity_type=entity_type,
        identifier=identifier,
        can_delete=True,
        warnings=reference_impact.warnings,
        impact={"affected_issues": len(reference_impact.issues)},
    )
