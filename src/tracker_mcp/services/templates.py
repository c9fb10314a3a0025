# ABOUTME: Issue template hierarchy manager with CRUD, search, and issue instantiation
# ABOUTME: Templates own one level of child templates stored as attached documents

"""
Issue templates.

=============================================================================
TEMPLATE SHAPE
=============================================================================

A template is an IssueTemplate document in a project space. Its children
are IssueTemplateChild documents attached to it through the "children"
collection; the hierarchy is exactly one level deep.

    IssueTemplate "Release checklist"
    ├── IssueTemplateChild "Update changelog"
    └── IssueTemplateChild "Tag release"

Children keep their creation order, which is what the positional index of
remove_child_template refers to.

=============================================================================
FIELD VALUES
=============================================================================

    priority    NoPriority=0, urgent=1, high=2, medium=3, low=4
                (names are case-insensitive; "none" means NoPriority)
    estimation  non-negative number of hours
    assignee    account email, stored as the account id
    component   component label in the same project, stored as its id
    milestone   milestone label in the same project, stored as its id

Creating an issue from a template copies these values into a new Issue,
numbered after the project's highest issue number, and turns each child
template into a sub-issue of it.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import structlog

from tracker_mcp.services.errors import (
    InvalidFieldError,
    InvalidIndexError,
    NotFoundError,
    ValidationError,
)
from tracker_mcp.services.resolver import resolve, resolve_project, resolve_template
from tracker_mcp.utils.client import NO_PARENT, DocClass

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping

    from structlog.typing import FilteringBoundLogger

    from tracker_mcp.utils.client import Document, RemoteClient

logger = structlog.get_logger(__name__)

PRIORITIES = {"nopriority": 0, "urgent": 1, "high": 2, "medium": 3, "low": 4}
PRIORITY_NAMES = ["NoPriority", "Urgent", "High", "Medium", "Low"]
DEFAULT_PRIORITY = "medium"

UPDATABLE_FIELDS = (
    "title",
    "description",
    "priority",
    "estimation",
    "assignee",
    "component",
    "milestone",
)

DEFAULT_LIST_LIMIT = 50


# =============================================================================
# RESULTS
# =============================================================================


@dataclass
class TemplateCreationResult:
    success: bool
    template_id: str
    title: str
    project: str
    children_created: int


@dataclass
class TemplateDetails:
    template: Document
    project: Document | None
    children: list[Document] = field(default_factory=list)


@dataclass
class TemplateUpdateResult:
    success: bool
    template_id: str
    field: str
    value: Any


@dataclass
class ChildTemplateResult:
    """Outcome of adding or removing one child template."""

    success: bool
    template_id: str
    child_id: str
    title: str
    total_children: int


@dataclass
class TemplateDeletionResult:
    success: bool
    template_id: str
    title: str
    deleted_children: int


@dataclass
class IssueFromTemplateResult:
    success: bool
    issue_id: str
    identifier: str
    children_created: int
    child_identifiers: list[str] = field(default_factory=list)


# =============================================================================
# FIELD VALIDATION
# =============================================================================


def parse_priority(value: Any) -> int:
    """Map a priority name (or 0..4, whole floats included) to its stored number."""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, int) and not isinstance(value, bool) and 0 <= value < len(PRIORITY_NAMES):
        return value
    key = str(value).strip().lower().replace(" ", "")
    if key == "none":
        key = "nopriority"
    if key not in PRIORITIES:
        raise ValidationError(
            f"Invalid priority: {value}",
            field="priority",
            suggestion="Use one of: NoPriority, urgent, high, medium, low",
        )
    return PRIORITIES[key]


def priority_name(value: Any) -> str:
    if isinstance(value, int) and 0 <= value < len(PRIORITY_NAMES):
        return PRIORITY_NAMES[value]
    return "Not set"


def parse_estimation(value: Any) -> float:
    """Estimation must be a non-negative number."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(
            f"Invalid estimation: {value}", field="estimation", suggestion="Use a non-negative number"
        ) from None
    if math.isnan(number) or number < 0:
        raise ValidationError(
            f"Invalid estimation: {value}", field="estimation", suggestion="Use a non-negative number"
        )
    return number


def _required_title(value: Any) -> str:
    title = str(value or "").strip()
    if not title:
        raise ValidationError("Template title is required", field="title")
    return title


async def _assignee_id(
    client: RemoteClient, email: str | None, log: FilteringBoundLogger
) -> str | None:
    if not email:
        return None
    account = await resolve(client, DocClass.ACCOUNT, email, log=log)
    return account["_id"]


async def _label_id(
    client: RemoteClient,
    kind: DocClass,
    space: str,
    label: str | None,
    log: FilteringBoundLogger,
) -> str | None:
    if not label:
        return None
    doc = await resolve(client, kind, label, space=space, log=log)
    return doc["_id"]


async def _template_fields(
    client: RemoteClient,
    space: str,
    data: Mapping[str, Any],
    log: FilteringBoundLogger,
) -> dict[str, Any]:
    """Validate template (or child) input and resolve its references."""
    priority = data.get("priority")
    estimation = data.get("estimation")
    return {
        "title": _required_title(data.get("title")),
        "description": data.get("description") or "",
        "priority": parse_priority(DEFAULT_PRIORITY if priority in (None, "") else priority),
        "estimation": parse_estimation(0 if estimation in (None, "") else estimation),
        "assignee": await _assignee_id(client, data.get("assignee"), log),
        "component": await _label_id(client, DocClass.COMPONENT, space, data.get("component"), log),
        "milestone": await _label_id(client, DocClass.MILESTONE, space, data.get("milestone"), log),
    }


# Per-field validators for update_template: (client, space, value, log) -> stored value


async def _update_title(
    client: RemoteClient, space: str, value: Any, log: FilteringBoundLogger
) -> Any:
    return _required_title(value)


async def _update_description(
    client: RemoteClient, space: str, value: Any, log: FilteringBoundLogger
) -> Any:
    return str(value or "")


async def _update_priority(
    client: RemoteClient, space: str, value: Any, log: FilteringBoundLogger
) -> Any:
    return parse_priority(value)


async def _update_estimation(
    client: RemoteClient, space: str, value: Any, log: FilteringBoundLogger
) -> Any:
    return parse_estimation(value)


async def _update_assignee(
    client: RemoteClient, space: str, value: Any, log: FilteringBoundLogger
) -> Any:
    return await _assignee_id(client, value, log)


async def _update_component(
    client: RemoteClient, space: str, value: Any, log: FilteringBoundLogger
) -> Any:
    return await _label_id(client, DocClass.COMPONENT, space, value, log)


async def _update_milestone(
    client: RemoteClient, space: str, value: Any, log: FilteringBoundLogger
) -> Any:
    return await _label_id(client, DocClass.MILESTONE, space, value, log)


_FIELD_PARSERS: dict[str, Callable[[RemoteClient, str, Any, FilteringBoundLogger], Awaitable[Any]]] = {
    "title": _update_title,
    "description": _update_description,
    "priority": _update_priority,
    "estimation": _update_estimation,
    "assignee": _update_assignee,
    "component": _update_component,
    "milestone": _update_milestone,
}


async def _children_of(client: RemoteClient, template: Document) -> list[Document]:
    return await client.find_all(
        DocClass.TEMPLATE_CHILD,
        {"attachedTo": template["_id"]},
        {"sort": {"createdOn": 1}},
    )


# =============================================================================
# CRUD
# =============================================================================


async def create_template(
    client: RemoteClient,
    project_identifier: str,
    data: Mapping[str, Any],
    *,
    log: FilteringBoundLogger | None = None,
) -> TemplateCreationResult:
    """
    Create a template and its child templates.

    Every child is validated before anything is written, then the template
    is created followed by one add_collection call per child.

    Raises:
        ValidationError: Blank title (template or child), bad priority/estimation.
        NotFoundError: Project, assignee, component or milestone does not resolve.
    """
    log = log if log is not None else logger
    _required_title(data.get("title"))
    project = await resolve_project(client, project_identifier, log=log)
    space = project["_id"]

    fields = await _template_fields(client, space, data, log)
    children = [await _template_fields(client, space, child, log) for child in data.get("children") or []]

    template_id = await client.create_doc(DocClass.TEMPLATE, {**fields, "space": space})
    for child in children:
        await client.add_collection(
            DocClass.TEMPLATE_CHILD, template_id, space, DocClass.TEMPLATE, "children", child
        )

    log.debug("Created template", template_id=template_id, children=len(children))
    return TemplateCreationResult(
        success=True,
        template_id=template_id,
        title=fields["title"],
        project=project_identifier,
        children_created=len(children),
    )


async def list_templates(
    client: RemoteClient,
    project_identifier: str,
    *,
    limit: int = DEFAULT_LIST_LIMIT,
    log: FilteringBoundLogger | None = None,
) -> list[Document]:
    """Templates of one project, most recently modified first."""
    project = await resolve_project(client, project_identifier, log=log)
    return await client.find_all(
        DocClass.TEMPLATE,
        {"space": project["_id"]},
        {"sort": {"modifiedOn": -1}, "limit": limit},
    )


async def search_templates(
    client: RemoteClient,
    query: str,
    *,
    project_identifier: str | None = None,
    limit: int = DEFAULT_LIST_LIMIT,
    log: FilteringBoundLogger | None = None,
) -> list[Document]:
    """
    Case-insensitive substring search over template title and description.

    The limit applies after filtering, so it caps matches, not candidates.
    """
    criteria: dict[str, Any] = {}
    if project_identifier:
        project = await resolve_project(client, project_identifier, log=log)
        criteria["space"] = project["_id"]

    templates = await client.find_all(DocClass.TEMPLATE, criteria, {"sort": {"modifiedOn": -1}})

    needle = (query or "").strip().lower()
    matches = [
        t
        for t in templates
        if needle in str(t.get("title") or "").lower()
        or needle in str(t.get("description") or "").lower()
    ]
    return matches[:limit]


async def get_template_details(
    client: RemoteClient,
    template_id: str,
    *,
    log: FilteringBoundLogger | None = None,
) -> TemplateDetails:
    """A template with its owning project and child templates."""
    template = await resolve_template(client, template_id, log=log)
    project = await client.find_one(DocClass.PROJECT, {"_id": template.get("space")})
    children = await _children_of(client, template)
    return TemplateDetails(template=template, project=project, children=children)


async def update_template(
    client: RemoteClient,
    template_id: str,
    field_name: str,
    value: Any,
    *,
    log: FilteringBoundLogger | None = None,
) -> TemplateUpdateResult:
    """
    Update a single template field.

    assignee, component and milestone accept an empty value to clear the
    reference.

    Raises:
        InvalidFieldError: Field outside the updatable set.
        ValidationError / NotFoundError: From the field's validator.
    """
    log = log if log is not None else logger
    parser = _FIELD_PARSERS.get(field_name)
    if parser is None:
        raise InvalidFieldError(field_name, list(UPDATABLE_FIELDS))

    template = await resolve_template(client, template_id, log=log)
    stored = await parser(client, template.get("space", ""), value, log)
    await client.update(template, {field_name: stored})

    log.debug("Updated template", template_id=template_id, field=field_name)
    return TemplateUpdateResult(success=True, template_id=template_id, field=field_name, value=stored)


async def add_child_template(
    client: RemoteClient,
    template_id: str,
    child_data: Mapping[str, Any],
    *,
    log: FilteringBoundLogger | None = None,
) -> ChildTemplateResult:
    """Append one child template."""
    log = log if log is not None else logger
    template = await resolve_template(client, template_id, log=log)
    space = template.get("space", "")

    child = await _template_fields(client, space, child_data, log)
    existing = await _children_of(client, template)
    child_id = await client.add_collection(
        DocClass.TEMPLATE_CHILD, template["_id"], space, DocClass.TEMPLATE, "children", child
    )

    return ChildTemplateResult(
        success=True,
        template_id=template_id,
        child_id=child_id,
        title=child["title"],
        total_children=len(existing) + 1,
    )


async def remove_child_template(
    client: RemoteClient,
    template_id: str,
    index: int,
    *,
    log: FilteringBoundLogger | None = None,
) -> ChildTemplateResult:
    """
    Remove the child template at a zero-based position.

    Raises:
        InvalidIndexError: If index is outside 0..len(children)-1.
    """
    log = log if log is not None else logger
    template = await resolve_template(client, template_id, log=log)
    children = await _children_of(client, template)

    if index < 0 or index >= len(children):
        raise InvalidIndexError(index, len(children))

    child = children[index]
    await client.remove_collection(DocClass.TEMPLATE_CHILD, child["_id"])

    log.debug("Removed child template", template_id=template_id, index=index)
    return ChildTemplateResult(
        success=True,
        template_id=template_id,
        child_id=child["_id"],
        title=child.get("title", ""),
        total_children=len(children) - 1,
    )


async def delete_template(
    client: RemoteClient,
    template_id: str,
    *,
    log: FilteringBoundLogger | None = None,
) -> TemplateDeletionResult:
    """
    Delete a template: every child first, then the template itself.

    The first failing removal propagates; nothing is retried.
    """
    log = log if log is not None else logger
    template = await resolve_template(client, template_id, log=log)
    children = await _children_of(client, template)

    for child in children:
        await client.remove_collection(DocClass.TEMPLATE_CHILD, child["_id"])
    await client.remove_doc(DocClass.TEMPLATE, template["_id"])

    log.debug("Deleted template", template_id=template_id, children=len(children))
    return TemplateDeletionResult(
        success=True,
        template_id=template_id,
        title=template.get("title", ""),
        deleted_children=len(children),
    )


# =============================================================================
# INSTANTIATION
# =============================================================================


async def _default_status(
    client: RemoteClient, project: Document, log: FilteringBoundLogger
) -> str:
    """Project default, else the first backlog status, else any status."""
    if project.get("defaultIssueStatus"):
        return project["defaultIssueStatus"]

    backlog = await client.find_all(
        DocClass.ISSUE_STATUS, {"space": project["_id"], "category": "backlog"}
    )
    if backlog:
        return backlog[0]["_id"]

    any_status = await client.find_one(DocClass.ISSUE_STATUS, {"space": project["_id"]})
    if any_status:
        return any_status["_id"]

    raise NotFoundError("issue status", project.get("identifier", project["_id"]))


async def _next_issue_number(client: RemoteClient, space: str) -> int:
    last = await client.find_one(DocClass.ISSUE, {"space": space}, {"sort": {"number": -1}})
    return int((last or {}).get("number") or 0) + 1


def _issue_attributes(
    source: Mapping[str, Any], *, number: int, identifier: str, status: str
) -> dict[str, Any]:
    estimation = source.get("estimation") or 0
    return {
        "title": source.get("title", ""),
        "description": source.get("description") or "",
        "status": status,
        "priority": source.get("priority", 0),
        "assignee": source.get("assignee"),
        "component": source.get("component"),
        "milestone": source.get("milestone"),
        "estimation": estimation,
        "remainingTime": estimation,
        "dueDate": source.get("dueDate"),
        "number": number,
        "identifier": identifier,
        "rank": "",
        "subIssues": 0,
        "comments": 0,
        "attachments": 0,
        "reportedTime": 0,
        "relations": [],
    }


async def create_issue_from_template(
    client: RemoteClient,
    template_id: str,
    overrides: Mapping[str, Any] | None = None,
    *,
    log: FilteringBoundLogger | None = None,
) -> IssueFromTemplateResult:
    """
    Create an issue (and by default one sub-issue per child) from a template.

    Overrides win over template values: title, priority, assignee (email),
    component and milestone (labels), estimation, include_children.

    Raises:
        NotFoundError: Template, its project, an override reference, or any
            issue status does not resolve.
        ValidationError: Invalid priority or estimation override.
    """
    log = log if log is not None else logger
    overrides = overrides or {}

    template = await resolve_template(client, template_id, log=log)
    space = template.get("space", "")
    project = await client.find_one(DocClass.PROJECT, {"_id": space})
    if not project:
        raise NotFoundError("project", space)

    merged: dict[str, Any] = dict(template)
    if overrides.get("title"):
        merged["title"] = overrides["title"]
    if overrides.get("priority") is not None:
        merged["priority"] = parse_priority(overrides["priority"])
    if overrides.get("estimation") is not None:
        merged["estimation"] = parse_estimation(overrides["estimation"])
    if overrides.get("assignee") is not None:
        merged["assignee"] = await _assignee_id(client, overrides["assignee"], log)
    if overrides.get("component") is not None:
        merged["component"] = await _label_id(
            client, DocClass.COMPONENT, space, overrides["component"], log
        )
    if overrides.get("milestone") is not None:
        merged["milestone"] = await _label_id(
            client, DocClass.MILESTONE, space, overrides["milestone"], log
        )

    status = await _default_status(client, project, log)
    number = await _next_issue_number(client, space)
    identifier = f"{project.get('identifier')}-{number}"

    issue_id = await client.add_collection(
        DocClass.ISSUE,
        NO_PARENT,
        space,
        DocClass.ISSUE,
        "subIssues",
        _issue_attributes(merged, number=number, identifier=identifier, status=status),
    )
    log.debug("Created issue from template", template_id=template_id, issue=identifier)

    child_identifiers: list[str] = []
    if overrides.get("include_children", True):
        parent = {"_id": issue_id, "_class": DocClass.ISSUE, "space": space}
        for child in await _children_of(client, template):
            number += 1
            child_identifier = f"{project.get('identifier')}-{number}"
            await client.add_collection(
                DocClass.ISSUE,
                issue_id,
                space,
                DocClass.ISSUE,
                "subIssues",
                _issue_attributes(child, number=number, identifier=child_identifier, status=status),
            )
            await client.update(parent, {"$inc": {"subIssues": 1}})
            child_identifiers.append(child_identifier)
            log.debug("Created child issue", parent=identifier, issue=child_identifier)

    return IssueFromTemplateResult(
        success=True,
        issue_id=issue_id,
        identifier=identifier,
        children_created=len(child_identifiers),
        child_identifiers=child_identifiers,
    )
