# ABOUTME: Workspace document API client with retry logic and error handling
# ABOUTME: Provides the async RemoteClient surface the deletion and template services consume

"""
Workspace document API client.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

The tracker workspace stores every entity (projects, issues, components,
milestones, templates, accounts) as a DOCUMENT identified by its class and
id. This module provides the HTTP client that talks to that store:

1. HTTP COMMUNICATION: One JSON POST per document primitive
2. AUTHENTICATION: Bearer token, or a one-time email/password login
3. ERROR HANDLING: HTTP errors become structured WorkspaceError exceptions
4. RETRY LOGIC: Timeouts are retried with exponential backoff

=============================================================================
THE DOCUMENT PRIMITIVES
=============================================================================

    find_one(class, query)            -> document | None
    find_all(class, query, options)   -> list of documents
    create_doc(class, attributes)     -> new id
    update(document, operations)      -> ack
    remove_doc(class, id)             -> ack
    add_collection(class, attached_to, space, attached_to_class,
                   collection, attributes) -> new id
    remove_collection(class, id)      -> ack

Services never import WorkspaceClient directly. They accept anything that
satisfies the RemoteClient protocol below, which keeps them testable with a
plain AsyncMock.
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING, Any, Protocol

import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

if TYPE_CHECKING:
    from tracker_mcp.config import WorkspaceConnection

logger = structlog.get_logger(__name__)

Document = dict[str, Any]


# =============================================================================
# DOCUMENT CLASSES
# =============================================================================


class DocClass(StrEnum):
    """Document classes understood by the workspace store."""

    PROJECT = "tracker:class:Project"
    ISSUE = "tracker:class:Issue"
    COMPONENT = "tracker:class:Component"
    MILESTONE = "tracker:class:Milestone"
    TEMPLATE = "tracker:class:IssueTemplate"
    TEMPLATE_CHILD = "tracker:class:IssueTemplateChild"
    ISSUE_STATUS = "tracker:class:IssueStatus"
    ACCOUNT = "core:class:Account"


# Attachment target for issues that have no parent issue
NO_PARENT = "tracker:ids:NoParent"


class RemoteClient(Protocol):
    """The narrow document surface every service depends on.

    Implementations report every remote failure, transport errors included,
    as WorkspaceError.
    """

    async def find_one(
        self,
        kind: str,
        query: dict[str, Any],
        options: dict[str, Any] | None = None,
    ) -> Document | None: ...

    async def find_all(
        self,
        kind: str,
        query: dict[str, Any],
        options: dict[str, Any] | None = None,
    ) -> list[Document]: ...

    async def create_doc(self, kind: str, attributes: dict[str, Any]) -> str: ...

    async def update(self, doc: Document, operations: dict[str, Any]) -> Any: ...

    async def remove_doc(self, kind: str, doc_id: str) -> Any: ...

    async def add_collection(
        self,
        kind: str,
        attached_to: str,
        space: str,
        attached_to_class: str,
        collection: str,
        attributes: dict[str, Any],
    ) -> str: ...

    async def remove_collection(self, kind: str, doc_id: str) -> Any: ...


# =============================================================================
# WORKSPACE ERROR CLASS
# =============================================================================


class WorkspaceError(Exception):
    """
    Structured error returned by the workspace store.

    Keeps the HTTP status code alongside the store's message so callers can
    tell a permission problem (403) from an unavailable store (503).

    USAGE:
    ------
    try:
        await client.remove_doc(DocClass.ISSUE, "issue-1")
    except WorkspaceError as e:
        print(f"Error {e.code}: {e.message}")
    """

    def __init__(self, code: int, message: str, details: str | None = None) -> None:
        self.code = code
        self.message = message
        self.details = details
        super().__init__(str(self))

    def __str__(self) -> str:
        base = f"Workspace API error ({self.code}): {self.message}"
        if self.details:
            base += f" - {self.details}"
        return base


# =============================================================================
# WORKSPACE CLIENT
# =============================================================================


class WorkspaceClient:
    """
    Async workspace client with retry logic.

    LIFECYCLE:
    ----------
    ALWAYS use the context manager pattern:

        async with WorkspaceClient(connection) as client:
            project = await client.find_one(DocClass.PROJECT, {"identifier": "PROJ"})

    On enter the HTTP connection pool is created and, if no token is
    configured, the client exchanges email/password for one.

    RETRY LOGIC:
    ------------
    Only timeouts are retried (3 attempts, exponential backoff). A 4xx/5xx
    answer is a definitive result and is raised immediately. Transport
    failures, including a timeout on the last attempt, become WorkspaceError
    with code 0.
    """

    def __init__(self, connection: WorkspaceConnection) -> None:
        self._connection = connection
        self._token = connection.token.get_secret_value()
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> WorkspaceClient:
        """Create the HTTP client, logging in first when only credentials are set."""
        if not self._token and self._connection.email:
            self._token = await self._login()

        headers = {"Content-Type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"

        self._client = httpx.AsyncClient(
            base_url=f"{self._connection.url}/api/v1/workspaces/{self._connection.workspace}",
            headers=headers,
            timeout=self._connection.timeout,
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _login(self) -> str:
        """
        Exchange email/password for a workspace token.

        Uses a short-lived HTTP client because the main client needs the
        token in its default headers.
        """
        try:
            async with httpx.AsyncClient(timeout=self._connection.timeout) as login_client:
                response = await login_client.post(
                    f"{self._connection.url}/api/v1/login",
                    json={
                        "email": self._connection.email,
                        "password": self._connection.password.get_secret_value(),
                        "workspace": self._connection.workspace,
                    },
                )
        except httpx.HTTPError as e:
            raise WorkspaceError(
                code=0, message=f"Login failed: {type(e).__name__}", details=str(e) or None
            ) from e

        if response.status_code >= 400:
            raise WorkspaceError(
                code=response.status_code,
                message="Login failed",
                details=response.text[:200] if response.text else None,
            )

        token = response.json().get("token", "")
        if not token:
            raise WorkspaceError(code=response.status_code, message="Login returned no token")

        logger.info("Logged in to workspace", workspace=self._connection.workspace)
        return str(token)

    @retry(
        retry=retry_if_exception_type(httpx.TimeoutException),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    async def _post(self, path: str, payload: dict[str, Any]) -> httpx.Response:
        """POST with retry; the last timeout is re-raised once attempts run out."""
        assert self._client is not None
        return await self._client.post(path, json=payload)

    async def _request(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        """
        POST a JSON payload to a document endpoint.

        Args:
            path: Endpoint path (e.g., "/find-one")
            payload: JSON request body

        Returns:
            Decoded JSON response (empty dict for empty bodies)

        Raises:
            WorkspaceError: On 4xx/5xx answers, and with code 0 on transport
                failures (connection errors, timeouts after all retries)
            RuntimeError: If the client is used outside 'async with'
        """
        if not self._client:
            raise RuntimeError("Client not initialized. Use 'async with' context manager.")

        log = logger.bind(path=path, workspace=self._connection.workspace)
        log.debug("Making workspace API request")

        try:
            response = await self._post(path, payload)
        except httpx.HTTPError as e:
            log.warning("Workspace API unreachable", error=str(e), error_type=type(e).__name__)
            raise WorkspaceError(
                code=0,
                message=f"Request failed: {type(e).__name__}",
                details=str(e) or None,
            ) from e

        if response.status_code >= 400:
            error_body = response.text
            log.warning("Workspace API error", status=response.status_code, body=error_body[:200])

            message = f"HTTP {response.status_code}"
            details = None
            try:
                error_json = response.json()
                message = error_json.get("message", message)
                details = error_json.get("error")
            except ValueError:
                details = error_body[:200] if error_body else None

            raise WorkspaceError(code=response.status_code, message=message, details=details)

        result = response.json() if response.content else {}
        return result if isinstance(result, dict) else {}

    # =========================================================================
    # DOCUMENT PRIMITIVES
    # =========================================================================

    async def find_one(
        self,
        kind: str,
        query: dict[str, Any],
        options: dict[str, Any] | None = None,
    ) -> Document | None:
        """Return the first document of `kind` matching `query`, or None."""
        payload: dict[str, Any] = {"_class": str(kind), "query": query}
        if options:
            payload["options"] = options
        data = await self._request("/find-one", payload)
        return data.get("doc") or None

    async def find_all(
        self,
        kind: str,
        query: dict[str, Any],
        options: dict[str, Any] | None = None,
    ) -> list[Document]:
        """
        Return every document of `kind` matching `query`.

        Options follow the store's conventions, e.g.
        {"sort": {"modifiedOn": -1}, "limit": 50}.
        """
        payload: dict[str, Any] = {"_class": str(kind), "query": query}
        if options:
            payload["options"] = options
        data = await self._request("/find-all", payload)
        return data.get("docs") or []

    async def create_doc(self, kind: str, attributes: dict[str, Any]) -> str:
        """Create a document and return its id."""
        data = await self._request(
            "/create-doc", {"_class": str(kind), "attributes": attributes}
        )
        return str(data.get("id", ""))

    async def update(self, doc: Document, operations: dict[str, Any]) -> dict[str, Any]:
        """Apply partial `operations` to an existing document."""
        return await self._request(
            "/update-doc",
            {
                "_class": doc.get("_class"),
                "_id": doc.get("_id"),
                "space": doc.get("space"),
                "operations": operations,
            },
        )

    async def remove_doc(self, kind: str, doc_id: str) -> dict[str, Any]:
        """Remove a standalone document."""
        return await self._request("/remove-doc", {"_class": str(kind), "_id": doc_id})

    async def add_collection(
        self,
        kind: str,
        attached_to: str,
        space: str,
        attached_to_class: str,
        collection: str,
        attributes: dict[str, Any],
    ) -> str:
        """Create a document attached to a parent's collection and return its id."""
        data = await self._request(
            "/add-collection",
            {
                "_class": str(kind),
                "attachedTo": attached_to,
                "space": space,
                "attachedToClass": str(attached_to_class),
                "collection": collection,
                "attributes": attributes,
            },
        )
        return str(data.get("id", ""))

    async def remove_collection(self, kind: str, doc_id: str) -> dict[str, Any]:
        """Remove a document attached to a parent's collection."""
        return await self._request("/remove-collection", {"_class": str(kind), "_id": doc_id})
