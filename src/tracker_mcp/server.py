# ABOUTME: FastMCP server initialization and main entry point
# ABOUTME: Exposes deletion, impact analysis, and template tools over the workspace client

"""Tracker MCP Server - Safe cascade deletion and issue templates."""

from __future__ import annotations

import sys
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

import structlog
from mcp.server.fastmcp import Context, FastMCP
from pydantic import BaseModel, Field

from tracker_mcp.config import ServerSettings, load_settings
from tracker_mcp.services import bulk, deletion, impact, templates
from tracker_mcp.services.errors import TrackerError
from tracker_mcp.utils.client import WorkspaceClient, WorkspaceError
from tracker_mcp.utils.logging import AuditLogger, configure_logging, set_correlation_id
from tracker_mcp.utils.safety import ConfirmationRequired, SafetyGuard

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from tracker_mcp.utils.client import Document, RemoteClient

MCPContext = Context[Any, Any]
logger = structlog.get_logger(__name__)

# Global state (initialized in lifespan)
_settings: ServerSettings | None = None
_client: RemoteClient | None = None
_safety_guard: SafetyGuard | None = None
_audit_logger: AuditLogger | None = None


@asynccontextmanager
async def lifespan(_server: FastMCP) -> AsyncIterator[dict[str, Any]]:
    """Manage server lifecycle: load config, connect the client, cleanup on shutdown."""
    global _settings, _client, _safety_guard, _audit_logger

    _settings = load_settings()
    configure_logging(level=_settings.log_level, json_output=_settings.json_logs)
    logger.info("Starting Tracker MCP Server", server=_settings.server_name)
    _safety_guard = SafetyGuard(_settings.security)
    _audit_logger = AuditLogger(_settings.security.audit_log)

    workspace_client: WorkspaceClient | None = None
    connection = _settings.connection
    if connection:
        workspace_client = WorkspaceClient(connection)
        await workspace_client.__aenter__()
        _client = workspace_client
        logger.info(
            "Connected to workspace", url=connection.url, workspace=connection.workspace
        )
    else:
        logger.warning("No workspace configured; set TRACKER_URL and TRACKER_WORKSPACE")

    yield {"settings": _settings, "client": _client}

    if workspace_client:
        await workspace_client.__aexit__(None, None, None)
        logger.info("Disconnected from workspace")

    _client = None
    logger.info("Tracker MCP Server stopped")


mcp = FastMCP(ServerSettings.model_fields["server_name"].default, lifespan=lifespan)


def get_client() -> RemoteClient:
    """Get the workspace client."""
    if not _client:
        raise RuntimeError("No workspace connected. Set TRACKER_URL and TRACKER_WORKSPACE.")
    return _client


def get_settings() -> ServerSettings:
    """Get server settings."""
    if not _settings:
        raise RuntimeError("Server not initialized")
    return _settings


def get_safety_guard() -> SafetyGuard:
    """Get safety guard for permission checking."""
    if not _safety_guard:
        raise RuntimeError("Server not initialized")
    return _safety_guard


def get_audit_logger() -> AuditLogger:
    """Get audit logger for recording operations."""
    if not _audit_logger:
        raise RuntimeError("Server not initialized")
    return _audit_logger


def _check_deletion(operation: str, target: str, dry_run: bool) -> str | None:
    """Dry runs are reads; real deletions go through the destructive guard."""
    guard = get_safety_guard()
    if dry_run:
        blocked = guard.check_read_operation(operation)
    else:
        blocked = guard.check_destructive_operation(operation)
    if blocked:
        get_audit_logger().log_blocked(operation, target, blocked.reason)
        return blocked.format_message()
    return None


def _bullets(title: str, items: list[str]) -> list[str]:
    if not items:
        return []
    return ["", f"{title}:", *[f"  - {item}" for item in items]]


def _template_line(template: Document) -> str:
    return (
        f"- {template.get('title')} (id={template.get('_id')}) "
        f"priority={templates.priority_name(template.get('priority'))} "
        f"estimation={template.get('estimation') or 0}h"
    )


# =============================================================================
# TIER 1: Read Operations (Always Available)
# =============================================================================


class ValidateDeletionParams(BaseModel):
    """Parameters for validate_deletion tool."""

    entity_type: str = Field(description="Entity type: issue, project, component, or milestone")
    identifier: str = Field(description="Issue/project identifier, or component/milestone label")
    project_identifier: str | None = Field(
        default=None, description="Owning project (required for component and milestone)"
    )


@mcp.tool()
async def validate_deletion(params: ValidateDeletionParams, ctx: MCPContext) -> str:
    """
    Check whether an entity can be deleted without force.

    Reports blockers, warnings and the number of dependent entities.
    Never changes anything.
    """
    set_correlation_id(ctx.request_id if hasattr(ctx, "request_id") else "")

    blocked = get_safety_guard().check_read_operation("validate_deletion")
    if blocked:
        get_audit_logger().log_blocked("validate_deletion", params.identifier, blocked.reason)
        return blocked.format_message()

    try:
        result = await impact.validate_deletion(
            get_client(), params.entity_type, params.identifier, params.project_identifier
        )
        get_audit_logger().log_read(
            "validate_deletion", f"{params.entity_type}={params.identifier}"
        )

        verdict = "CAN DELETE" if result.can_delete else "BLOCKED"
        lines = [f"Deletion validation for {result.entity_type} {result.identifier}: {verdict}"]
        lines.extend(_bullets("Blockers", result.blockers))
        lines.extend(_bullets("Warnings", result.warnings))
        lines.extend(_bullets("Impact", [f"{k}: {v}" for k, v in result.impact.items()]))
        if not result.can_delete:
            lines.extend(["", "Resolve the blockers or retry the deletion with force=true."])
        return "\n".join(lines)

    except (TrackerError, WorkspaceError) as e:
        get_audit_logger().log_error("validate_deletion", params.identifier, str(e))
        return str(e)


class AnalyzeIssueDeletionParams(BaseModel):
    """Parameters for analyze_issue_deletion tool."""

    identifier: str = Field(description="Issue identifier (e.g., PROJ-123)")


@mcp.tool()
async def analyze_issue_deletion(params: AnalyzeIssueDeletionParams, ctx: MCPContext) -> str:
    """
    Show what deleting an issue would remove.

    Lists direct sub-issues, comment and attachment counts, and blockers.
    """
    set_correlation_id(ctx.request_id if hasattr(ctx, "request_id") else "")

    blocked = get_safety_guard().check_read_operation("analyze_issue_deletion")
    if blocked:
        get_audit_logger().log_blocked("analyze_issue_deletion", params.identifier, blocked.reason)
        return blocked.format_message()

    try:
        result = await impact.analyze_issue_impact(get_client(), params.identifier)
        get_audit_logger().log_read("analyze_issue_deletion", params.identifier)

        lines = [
            f"Deletion impact for issue {params.identifier}: {result.issue.get('title', '')}",
            "",
            f"Sub-issues: {len(result.sub_issues)}",
            f"Comments: {result.comments}",
            f"Attachments: {result.attachments}",
        ]
        lines.extend(
            _bullets(
                "Sub-issues to be deleted",
                [f"{s.get('identifier')}: {s.get('title', '')}" for s in result.sub_issues],
            )
        )
        lines.extend(_bullets("Blockers", result.blockers))
        lines.extend(_bullets("Warnings", result.warnings))
        return "\n".join(lines)

    except (TrackerError, WorkspaceError) as e:
        get_audit_logger().log_error("analyze_issue_deletion", params.identifier, str(e))
        return str(e)


class AnalyzeProjectDeletionParams(BaseModel):
    """Parameters for analyze_project_deletion tool."""

    identifier: str = Field(description="Project identifier (e.g., PROJ)")


@mcp.tool()
async def analyze_project_deletion(params: AnalyzeProjectDeletionParams, ctx: MCPContext) -> str:
    """
    Show everything deleting a project would remove.

    If the project has blockers, consider archive_project instead.
    """
    set_correlation_id(ctx.request_id if hasattr(ctx, "request_id") else "")

    blocked = get_safety_guard().check_read_operation("analyze_project_deletion")
    if blocked:
        get_audit_logger().log_blocked(
            "analyze_project_deletion", params.identifier, blocked.reason
        )
        return blocked.format_message()

    try:
        result = await impact.analyze_project_impact(get_client(), params.identifier)
        get_audit_logger().log_read("analyze_project_deletion", params.identifier)

        lines = [
            f"Deletion impact for project {params.identifier}: {result.project.get('name', '')}",
            "",
            f"Issues: {len(result.issues)}",
            f"Components: {len(result.components)}",
            f"Milestones: {len(result.milestones)}",
            f"Templates: {len(result.templates)}",
        ]
        lines.extend(_bullets("Blockers", result.blockers))
        lines.extend(_bullets("Warnings", result.warnings))
        if result.blockers:
            lines.extend(
                ["", f"Alternative: archive_project(identifier='{params.identifier}')"]
            )
        return "\n".join(lines)

    except (TrackerError, WorkspaceError) as e:
        get_audit_logger().log_error("analyze_project_deletion", params.identifier, str(e))
        return str(e)


class ListTemplatesParams(BaseModel):
    """Parameters for list_templates tool."""

    project_identifier: str = Field(description="Project identifier")
    limit: int | None = Field(default=None, ge=1, description="Maximum templates to return")


@mcp.tool()
async def list_templates(params: ListTemplatesParams, ctx: MCPContext) -> str:
    """List the issue templates of a project, most recently modified first."""
    set_correlation_id(ctx.request_id if hasattr(ctx, "request_id") else "")

    blocked = get_safety_guard().check_read_operation("list_templates")
    if blocked:
        get_audit_logger().log_blocked("list_templates", params.project_identifier, blocked.reason)
        return blocked.format_message()

    try:
        found = await templates.list_templates(
            get_client(),
            params.project_identifier,
            limit=params.limit or get_settings().list_limit,
        )
        get_audit_logger().log_read("list_templates", f"project={params.project_identifier}")

        if not found:
            return f"No templates found in project {params.project_identifier}."

        lines = [f"Found {len(found)} template(s) in {params.project_identifier}:", ""]
        lines.extend(_template_line(t) for t in found)
        return "\n".join(lines)

    except (TrackerError, WorkspaceError) as e:
        get_audit_logger().log_error("list_templates", params.project_identifier, str(e))
        return str(e)


class SearchTemplatesParams(BaseModel):
    """Parameters for search_templates tool."""

    query: str = Field(description="Text to find in template title or description")
    project_identifier: str | None = Field(default=None, description="Limit to one project")
    limit: int | None = Field(default=None, ge=1, description="Maximum matches to return")


@mcp.tool()
async def search_templates(params: SearchTemplatesParams, ctx: MCPContext) -> str:
    """Search templates by title or description (case-insensitive)."""
    set_correlation_id(ctx.request_id if hasattr(ctx, "request_id") else "")

    blocked = get_safety_guard().check_read_operation("search_templates")
    if blocked:
        get_audit_logger().log_blocked("search_templates", params.query, blocked.reason)
        return blocked.format_message()

    try:
        found = await templates.search_templates(
            get_client(),
            params.query,
            project_identifier=params.project_identifier,
            limit=params.limit or get_settings().list_limit,
        )
        get_audit_logger().log_read("search_templates", f"query={params.query}")

        if not found:
            return "No templates found matching the search criteria."

        lines = [f"Found {len(found)} template(s) matching '{params.query}':", ""]
        lines.extend(_template_line(t) for t in found)
        return "\n".join(lines)

    except (TrackerError, WorkspaceError) as e:
        get_audit_logger().log_error("search_templates", params.query, str(e))
        return str(e)


class GetTemplateDetailsParams(BaseModel):
    """Parameters for get_template_details tool."""

    template_id: str = Field(description="Template id")


@mcp.tool()
async def get_template_details(params: GetTemplateDetailsParams, ctx: MCPContext) -> str:
    """Show a template's fields and its child templates in order."""
    set_correlation_id(ctx.request_id if hasattr(ctx, "request_id") else "")

    blocked = get_safety_guard().check_read_operation("get_template_details")
    if blocked:
        get_audit_logger().log_blocked("get_template_details", params.template_id, blocked.reason)
        return blocked.format_message()

    try:
        details = await templates.get_template_details(get_client(), params.template_id)
        get_audit_logger().log_read("get_template_details", params.template_id)

        template = details.template
        project = details.project.get("identifier") if details.project else "unknown"
        lines = [
            f"Template: {template.get('title')}",
            f"Id: {template.get('_id')}",
            f"Project: {project}",
            f"Priority: {templates.priority_name(template.get('priority'))}",
            f"Estimation: {template.get('estimation') or 0}h",
        ]
        if template.get("description"):
            lines.extend(["", template["description"]])
        lines.extend(
            _bullets(
                f"Child templates ({len(details.children)})",
                [
                    f"[{index}] {child.get('title')} "
                    f"priority={templates.priority_name(child.get('priority'))}"
                    for index, child in enumerate(details.children)
                ],
            )
        )
        return "\n".join(lines)

    except (TrackerError, WorkspaceError) as e:
        get_audit_logger().log_error("get_template_details", params.template_id, str(e))
        return str(e)


# =============================================================================
# TIER 2: Write Operations (Require MCP_READ_ONLY=false)
# =============================================================================


class ArchiveProjectParams(BaseModel):
    """Parameters for archive_project tool."""

    identifier: str = Field(description="Project identifier")


@mcp.tool()
async def archive_project(params: ArchiveProjectParams, ctx: MCPContext) -> str:
    """
    Archive a project (soft delete).

    The project and its data are preserved but hidden from active views.
    """
    set_correlation_id(ctx.request_id if hasattr(ctx, "request_id") else "")

    blocked = get_safety_guard().check_write_operation("archive_project")
    if blocked:
        get_audit_logger().log_blocked("archive_project", params.identifier, blocked.reason)
        return blocked.format_message()

    try:
        result = await deletion.archive_project(get_client(), params.identifier)

        if not result.success:
            get_audit_logger().log_write("archive_project", params.identifier, "unchanged")
            return f"{result.message}: {params.identifier}"

        get_audit_logger().log_write("archive_project", params.identifier, "success")
        return (
            f"Archived project {params.identifier}\n\n"
            "The project and all its data are preserved but hidden from active views."
        )

    except (TrackerError, WorkspaceError) as e:
        get_audit_logger().log_error("archive_project", params.identifier, str(e))
        return str(e)


class ChildTemplateParams(BaseModel):
    """A child template definition."""

    title: str = Field(description="Child template title")
    description: str = Field(default="", description="Child template description")
    priority: str | None = Field(
        default=None, description="NoPriority, urgent, high, medium (default), or low"
    )
    estimation: float | None = Field(default=None, ge=0, description="Estimated hours")
    assignee: str | None = Field(default=None, description="Assignee email")
    component: str | None = Field(default=None, description="Component label")
    milestone: str | None = Field(default=None, description="Milestone label")


class CreateTemplateParams(ChildTemplateParams):
    """Parameters for create_template tool."""

    project_identifier: str = Field(description="Project identifier")
    title: str = Field(description="Template title")
    children: list[ChildTemplateParams] = Field(
        default_factory=list, description="Child templates to create with the template"
    )


@mcp.tool()
async def create_template(params: CreateTemplateParams, ctx: MCPContext) -> str:
    """Create an issue template, optionally with child templates."""
    set_correlation_id(ctx.request_id if hasattr(ctx, "request_id") else "")

    blocked = get_safety_guard().check_write_operation("create_template")
    if blocked:
        get_audit_logger().log_blocked("create_template", params.title, blocked.reason)
        return blocked.format_message()

    try:
        result = await templates.create_template(
            get_client(),
            params.project_identifier,
            params.model_dump(exclude={"project_identifier"}),
        )
        get_audit_logger().log_write(
            "create_template",
            result.template_id,
            "success",
            {"children_created": result.children_created},
        )
        return (
            f"Created template '{result.title}' in {result.project}\n"
            f"Id: {result.template_id}\n"
            f"Child templates: {result.children_created}"
        )

    except (TrackerError, WorkspaceError) as e:
        get_audit_logger().log_error("create_template", params.title, str(e))
        return str(e)


class UpdateTemplateParams(BaseModel):
    """Parameters for update_template tool."""

    template_id: str = Field(description="Template id")
    field: str = Field(
        description=(
            "Field to update: title, description, priority, estimation, "
            "assignee, component, or milestone"
        )
    )
    value: str | int | float | None = Field(
        default=None, description="New value (empty clears assignee/component/milestone)"
    )


@mcp.tool()
async def update_template(params: UpdateTemplateParams, ctx: MCPContext) -> str:
    """Update one field of a template."""
    set_correlation_id(ctx.request_id if hasattr(ctx, "request_id") else "")

    blocked = get_safety_guard().check_write_operation("update_template")
    if blocked:
        get_audit_logger().log_blocked("update_template", params.template_id, blocked.reason)
        return blocked.format_message()

    try:
        result = await templates.update_template(
            get_client(), params.template_id, params.field, params.value
        )
        get_audit_logger().log_write(
            "update_template", params.template_id, "success", {"field": result.field}
        )
        return f"Updated {result.field} of template {result.template_id}"

    except (TrackerError, WorkspaceError) as e:
        get_audit_logger().log_error("update_template", params.template_id, str(e))
        return str(e)


class AddChildTemplateParams(ChildTemplateParams):
    """Parameters for add_child_template tool."""

    template_id: str = Field(description="Parent template id")


@mcp.tool()
async def add_child_template(params: AddChildTemplateParams, ctx: MCPContext) -> str:
    """Append a child template to an existing template."""
    set_correlation_id(ctx.request_id if hasattr(ctx, "request_id") else "")

    blocked = get_safety_guard().check_write_operation("add_child_template")
    if blocked:
        get_audit_logger().log_blocked("add_child_template", params.template_id, blocked.reason)
        return blocked.format_message()

    try:
        result = await templates.add_child_template(
            get_client(), params.template_id, params.model_dump(exclude={"template_id"})
        )
        get_audit_logger().log_write("add_child_template", params.template_id, "success")
        return (
            f"Added child template '{result.title}' to {result.template_id}\n"
            f"Template now has {result.total_children} child template(s)"
        )

    except (TrackerError, WorkspaceError) as e:
        get_audit_logger().log_error("add_child_template", params.template_id, str(e))
        return str(e)


class RemoveChildTemplateParams(BaseModel):
    """Parameters for remove_child_template tool."""

    template_id: str = Field(description="Parent template id")
    index: int = Field(description="Zero-based position of the child (see get_template_details)")


@mcp.tool()
async def remove_child_template(params: RemoveChildTemplateParams, ctx: MCPContext) -> str:
    """Remove the child template at a position."""
    set_correlation_id(ctx.request_id if hasattr(ctx, "request_id") else "")

    blocked = get_safety_guard().check_write_operation("remove_child_template")
    if blocked:
        get_audit_logger().log_blocked(
            "remove_child_template", params.template_id, blocked.reason
        )
        return blocked.format_message()

    try:
        result = await templates.remove_child_template(
            get_client(), params.template_id, params.index
        )
        get_audit_logger().log_write(
            "remove_child_template", params.template_id, "success", {"index": params.index}
        )
        return (
            f"Removed child template '{result.title}' from {result.template_id}\n"
            f"Template now has {result.total_children} child template(s)"
        )

    except (TrackerError, WorkspaceError) as e:
        get_audit_logger().log_error("remove_child_template", params.template_id, str(e))
        return str(e)


class CreateIssueFromTemplateParams(BaseModel):
    """Parameters for create_issue_from_template tool."""

    template_id: str = Field(description="Template id")
    title: str | None = Field(default=None, description="Override issue title")
    priority: str | None = Field(default=None, description="Override priority")
    assignee: str | None = Field(default=None, description="Override assignee email")
    component: str | None = Field(default=None, description="Override component label")
    milestone: str | None = Field(default=None, description="Override milestone label")
    estimation: float | None = Field(default=None, ge=0, description="Override estimation")
    include_children: bool = Field(
        default=True, description="Create a sub-issue for every child template"
    )


@mcp.tool()
async def create_issue_from_template(
    params: CreateIssueFromTemplateParams, ctx: MCPContext
) -> str:
    """Create an issue (and sub-issues from child templates) from a template."""
    set_correlation_id(ctx.request_id if hasattr(ctx, "request_id") else "")

    blocked = get_safety_guard().check_write_operation("create_issue_from_template")
    if blocked:
        get_audit_logger().log_blocked(
            "create_issue_from_template", params.template_id, blocked.reason
        )
        return blocked.format_message()

    try:
        result = await templates.create_issue_from_template(
            get_client(),
            params.template_id,
            params.model_dump(exclude={"template_id"}, exclude_none=True),
        )
        get_audit_logger().log_write(
            "create_issue_from_template",
            result.identifier,
            "success",
            {"template_id": params.template_id, "children_created": result.children_created},
        )

        lines = [f"Created {result.children_created + 1} issue(s) from template", ""]
        lines.append(f"- {result.identifier}")
        lines.extend(f"  - {child} (sub-issue)" for child in result.child_identifiers)
        return "\n".join(lines)

    except (TrackerError, WorkspaceError) as e:
        get_audit_logger().log_error("create_issue_from_template", params.template_id, str(e))
        return str(e)


# =============================================================================
# TIER 3: Destructive Operations (Require MCP_DISABLE_DESTRUCTIVE=false)
# =============================================================================


class DeleteIssueParams(BaseModel):
    """Parameters for delete_issue tool."""

    identifier: str = Field(description="Issue identifier (e.g., PROJ-123)")
    cascade: bool = Field(default=True, description="Also delete all sub-issues (default: true)")
    force: bool = Field(default=False, description="Delete even if blockers exist")
    dry_run: bool = Field(default=False, description="Preview without deleting")


@mcp.tool()
async def delete_issue(params: DeleteIssueParams, ctx: MCPContext) -> str:
    """
    Delete an issue and, by default, its whole sub-issue tree (DESTRUCTIVE).

    Run with dry_run=true first to see what would be removed.
    """
    set_correlation_id(ctx.request_id if hasattr(ctx, "request_id") else "")

    blocked = _check_deletion("delete_issue", params.identifier, params.dry_run)
    if blocked:
        return blocked

    try:
        result = await deletion.delete_issue(
            get_client(),
            params.identifier,
            cascade=params.cascade,
            force=params.force,
            dry_run=params.dry_run,
        )

        if result.dry_run:
            get_audit_logger().log_write("delete_issue", params.identifier, "dry_run")
            lines = [
                f"[DRY-RUN] Deleting {params.identifier} would remove "
                f"{len(result.would_delete)} issue(s):"
            ]
            lines.extend(f"  - {ident}" for ident in result.would_delete)
        else:
            get_audit_logger().log_write(
                "delete_issue",
                params.identifier,
                "success",
                {"deleted_count": result.deleted_count, "forced": result.forced_deletion},
            )
            lines = [f"Deleted issue {params.identifier}"]
            if result.deleted_count > 1:
                lines[0] += f" including {result.deleted_count - 1} sub-issue(s)"
            if result.forced_deletion:
                lines.append("Blocker checks were skipped (force=true)")

        lines.extend(_bullets("Warnings", result.warnings))
        return "\n".join(lines)

    except (TrackerError, WorkspaceError) as e:
        get_audit_logger().log_error("delete_issue", params.identifier, str(e))
        return str(e)


class BulkDeleteIssuesParams(BaseModel):
    """Parameters for bulk_delete_issues tool."""

    identifiers: list[str] = Field(min_length=1, description="Issue identifiers to delete")
    batch_size: int | None = Field(default=None, ge=1, le=50, description="Issues per batch")
    continue_on_error: bool = Field(
        default=True, description="Record failures and keep going (default: true)"
    )
    cascade: bool = Field(default=True, description="Also delete sub-issues")
    force: bool = Field(default=False, description="Delete even if blockers exist")
    dry_run: bool = Field(default=False, description="Preview without deleting")


@mcp.tool()
async def bulk_delete_issues(params: BulkDeleteIssuesParams, ctx: MCPContext) -> str:
    """Delete many issues in batches (DESTRUCTIVE)."""
    set_correlation_id(ctx.request_id if hasattr(ctx, "request_id") else "")

    target = ",".join(params.identifiers)
    blocked = _check_deletion("bulk_delete_issues", target, params.dry_run)
    if blocked:
        return blocked

    try:
        batch_size = params.batch_size or get_settings().bulk_batch_size
        await ctx.report_progress(0, len(params.identifiers), "Deleting issues")

        result = await bulk.bulk_delete_issues(
            get_client(),
            params.identifiers,
            batch_size=batch_size,
            continue_on_error=params.continue_on_error,
            cascade=params.cascade,
            force=params.force,
            dry_run=params.dry_run,
        )

        await ctx.report_progress(result.total_requested, result.total_requested, "Done")
        get_audit_logger().log_write(
            "bulk_delete_issues",
            target,
            "dry_run" if result.dry_run else ("success" if result.success else "partial"),
            {"succeeded": result.success_count, "failed": result.failed_count},
        )

        mode = "[DRY-RUN] " if result.dry_run else ""
        lines = [
            f"{mode}Bulk deletion: {result.success_count}/{result.total_requested} succeeded "
            f"in {result.batches} batch(es)",
            "",
        ]
        for item in result.results:
            if not item.success:
                lines.append(f"- {item.identifier}: FAILED ({item.error})")
            elif result.dry_run:
                lines.append(f"- {item.identifier}: would delete {len(item.would_delete)} issue(s)")
            else:
                lines.append(f"- {item.identifier}: deleted {item.deleted_count} issue(s)")
        return "\n".join(lines)

    except (TrackerError, WorkspaceError) as e:
        get_audit_logger().log_error("bulk_delete_issues", target, str(e))
        return str(e)


class DeleteProjectParams(BaseModel):
    """Parameters for delete_project tool."""

    identifier: str = Field(description="Project identifier to delete")
    force: bool = Field(default=False, description="Delete even if blockers exist")
    dry_run: bool = Field(default=False, description="Preview without deleting")
    confirm: bool = Field(default=False, description="Must be true to execute deletion")
    confirm_name: str | None = Field(
        default=None, description="Type the project identifier to confirm deletion"
    )


@mcp.tool()
async def delete_project(params: DeleteProjectParams, ctx: MCPContext) -> str:
    """
    Delete a project with all its issues, components, milestones and templates (DESTRUCTIVE).

    Requires explicit confirmation. Set confirm=true AND confirm_name
    matching the project identifier to proceed. Consider archive_project.
    """
    set_correlation_id(ctx.request_id if hasattr(ctx, "request_id") else "")

    if params.dry_run:
        blocked_message = _check_deletion("delete_project", params.identifier, dry_run=True)
        if blocked_message:
            return blocked_message
    else:
        blocked = get_safety_guard().check_confirmed_operation(
            "delete_project",
            params.identifier,
            confirmed=params.confirm,
            confirm_name=params.confirm_name,
        )
        if blocked:
            if isinstance(blocked, ConfirmationRequired):
                try:
                    preview = await impact.analyze_project_impact(get_client(), params.identifier)
                    blocked.details = {
                        "issues": len(preview.issues),
                        "components": len(preview.components),
                        "milestones": len(preview.milestones),
                        "templates": len(preview.templates),
                    }
                except (TrackerError, WorkspaceError) as e:
                    logger.debug("Project preview failed", project=params.identifier, error=str(e))
                get_audit_logger().log_blocked(
                    "delete_project", params.identifier, "confirmation required"
                )
                return blocked.format_message()
            get_audit_logger().log_blocked("delete_project", params.identifier, blocked.reason)
            return blocked.format_message()

    try:
        await ctx.report_progress(0, 1, f"Deleting project {params.identifier}")

        result = await deletion.delete_project(
            get_client(), params.identifier, force=params.force, dry_run=params.dry_run
        )

        await ctx.report_progress(1, 1, "Done")

        counts = result.would_delete if result.dry_run else result.deleted
        get_audit_logger().log_write(
            "delete_project",
            params.identifier,
            "dry_run" if result.dry_run else "success",
            counts,
        )

        header = (
            f"[DRY-RUN] Deleting project {params.identifier} would remove:"
            if result.dry_run
            else f"Deleted project {params.identifier} and all its contents:"
        )
        return "\n".join(
            [
                header,
                f"- {counts['issues']} issues",
                f"- {counts['components']} components",
                f"- {counts['milestones']} milestones",
                f"- {counts['templates']} templates",
            ]
        )

    except (TrackerError, WorkspaceError) as e:
        get_audit_logger().log_error("delete_project", params.identifier, str(e))
        return str(e)


class DeleteLabeledEntityParams(BaseModel):
    """Parameters for delete_component and delete_milestone tools."""

    project_identifier: str = Field(description="Project identifier")
    label: str = Field(description="Component or milestone label")
    dry_run: bool = Field(default=False, description="Preview without deleting")


async def _delete_labeled(
    operation: str, params: DeleteLabeledEntityParams, ctx: MCPContext
) -> str:
    set_correlation_id(ctx.request_id if hasattr(ctx, "request_id") else "")

    target = f"{params.project_identifier}/{params.label}"
    blocked = _check_deletion(operation, target, params.dry_run)
    if blocked:
        return blocked

    delete = deletion.delete_component if operation == "delete_component" else deletion.delete_milestone
    try:
        result = await delete(
            get_client(), params.project_identifier, params.label, dry_run=params.dry_run
        )
        get_audit_logger().log_write(
            operation,
            target,
            "dry_run" if result.dry_run else "success",
            {"affected_issues": result.affected_issues},
        )

        if result.dry_run:
            return (
                f"[DRY-RUN] Deleting {result.entity_type} '{result.label}' would detach it "
                f"from {result.affected_issues} issue(s)"
            )
        return (
            f"Deleted {result.entity_type} '{result.label}' from project "
            f"{params.project_identifier}\nRemoved from {result.affected_issues} issue(s)"
        )

    except (TrackerError, WorkspaceError) as e:
        get_audit_logger().log_error(operation, target, str(e))
        return str(e)


@mcp.tool()
async def delete_component(params: DeleteLabeledEntityParams, ctx: MCPContext) -> str:
    """Delete a component, clearing it from every issue that uses it (DESTRUCTIVE)."""
    return await _delete_labeled("delete_component", params, ctx)


@mcp.tool()
async def delete_milestone(params: DeleteLabeledEntityParams, ctx: MCPContext) -> str:
    """Delete a milestone, clearing it from every issue that uses it (DESTRUCTIVE)."""
    return await _delete_labeled("delete_milestone", params, ctx)


class DeleteTemplateParams(BaseModel):
    """Parameters for delete_template tool."""

    template_id: str = Field(description="Template id")


@mcp.tool()
async def delete_template(params: DeleteTemplateParams, ctx: MCPContext) -> str:
    """Delete a template and all its child templates (DESTRUCTIVE)."""
    set_correlation_id(ctx.request_id if hasattr(ctx, "request_id") else "")

    blocked = _check_deletion("delete_template", params.template_id, dry_run=False)
    if blocked:
        return blocked

    try:
        result = await templates.delete_template(get_client(), params.template_id)
        get_audit_logger().log_write(
            "delete_template",
            params.template_id,
            "success",
            {"deleted_children": result.deleted_children},
        )
        return (
            f"Deleted template '{result.title}'\n"
            f"Child templates removed: {result.deleted_children}"
        )

    except (TrackerError, WorkspaceError) as e:
        get_audit_logger().log_error("delete_template", params.template_id, str(e))
        return str(e)


# =============================================================================
# MCP RESOURCES
# =============================================================================


@mcp.resource("tracker://workspace")
async def get_workspace_resource() -> str:
    """Get the configured workspace connection (no credentials)."""
    connection = get_settings().connection
    if not connection:
        return "No workspace configured"

    auth = "token" if connection.token.get_secret_value() else "email login"
    if not connection.token.get_secret_value() and not connection.email:
        auth = "none"

    return (
        f"Server: {get_settings().server_name}\n"
        "Workspace Connection:\n"
        f"  URL: {connection.url}\n"
        f"  Workspace: {connection.workspace}\n"
        f"  Authentication: {auth}"
    )


@mcp.resource("tracker://security")
async def get_security_resource() -> str:
    """Get current security settings."""
    settings = get_settings()
    sec = settings.security

    return (
        "Security Settings:\n"
        f"  Read-only mode: {sec.read_only}\n"
        f"  Destructive operations disabled: {sec.disable_destructive}\n"
        f"  Rate limit: {sec.rate_limit_calls} calls per {sec.rate_limit_window}s\n"
        f"  Bulk batch size: {settings.bulk_batch_size}"
    )


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================


def main() -> None:
    """Run the Tracker MCP server."""
    configure_logging(level="INFO")
    logger.info("Tracker MCP Server starting")

    try:
        mcp.run()
    except KeyboardInterrupt:
        logger.info("Server interrupted")
        sys.exit(0)
    except Exception as e:
        logger.error("Server error", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
