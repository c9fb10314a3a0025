# ABOUTME: Entity resolver turning human identifiers into workspace documents
# ABOUTME: Raises NotFoundError when nothing matches; never caches across calls

"""Identifier resolution for tracker entities."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from tracker_mcp.services.errors import NotFoundError
from tracker_mcp.utils.client import DocClass

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

    from tracker_mcp.utils.client import Document, RemoteClient

logger = structlog.get_logger(__name__)

# kind -> (human name, lookup field)
_LOOKUPS: dict[DocClass, tuple[str, str]] = {
    DocClass.PROJECT: ("project", "identifier"),
    DocClass.ISSUE: ("issue", "identifier"),
    DocClass.COMPONENT: ("component", "label"),
    DocClass.MILESTONE: ("milestone", "label"),
    DocClass.TEMPLATE: ("template", "_id"),
    DocClass.ACCOUNT: ("assignee", "email"),
}


async def resolve(
    client: RemoteClient,
    kind: DocClass,
    identifier: str,
    *,
    space: str | None = None,
    log: FilteringBoundLogger | None = None,
) -> Document:
    """
    Resolve a human-facing identifier to its document.

    Projects and issues resolve by code ("PROJ", "PROJ-12"), components and
    milestones by label within `space`, templates by id and accounts by
    email.

    Raises:
        NotFoundError: If no document matches.
    """
    log = log if log is not None else logger
    name, lookup_field = _LOOKUPS[kind]
    query: dict[str, str] = {lookup_field: identifier}
    if space is not None:
        query["space"] = space

    doc = await client.find_one(kind, query)
    if not doc:
        raise NotFoundError(name, identifier)

    log.debug("Resolved entity", kind=name, identifier=identifier, doc_id=doc.get("_id"))
    return doc


async def resolve_project(
    client: RemoteClient, identifier: str, *, log: FilteringBoundLogger | None = None
) -> Document:
    return await resolve(client, DocClass.PROJECT, identifier, log=log)


async def resolve_issue(
    client: RemoteClient, identifier: str, *, log: FilteringBoundLogger | None = None
) -> Document:
    return await resolve(client, DocClass.ISSUE, identifier, log=log)


async def resolve_template(
    client: RemoteClient, template_id: str, *, log: FilteringBoundLogger | None = None
) -> Document:
    return await resolve(client, DocClass.TEMPLATE, template_id, log=log)
