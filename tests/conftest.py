# ABOUTME: Pytest fixtures and configuration for Tracker MCP Server tests
# ABOUTME: Provides an in-memory workspace double, settings, and MCP context fixtures

import itertools
import os
from collections import defaultdict
from typing import Any, AsyncIterator
from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic import SecretStr

from tracker_mcp.config import SecuritySettings, ServerSettings, WorkspaceConnection
from tracker_mcp.utils.client import DocClass, WorkspaceClient
from tracker_mcp.utils.safety import SafetyGuard


class FakeWorkspace:
    """In-memory document store implementing the RemoteClient surface.

    Every primitive is an AsyncMock wrapping the in-memory behaviour, so
    tests can both inspect the resulting documents and assert on calls.
    Queries match on field equality; a "sort" option is honoured so that
    "highest issue number" lookups behave like the real store.
    """

    MUTATING = ("create_doc", "update", "remove_doc", "add_collection", "remove_collection")

    def __init__(self) -> None:
        self.docs: dict[str, list[dict[str, Any]]] = defaultdict(list)
        self._ids = itertools.count(1)

        self.find_one = AsyncMock(side_effect=self._find_one)
        self.find_all = AsyncMock(side_effect=self._find_all)
        self.create_doc = AsyncMock(side_effect=self._create_doc)
        self.update = AsyncMock(side_effect=self._update)
        self.remove_doc = AsyncMock(side_effect=self._remove)
        self.add_collection = AsyncMock(side_effect=self._add_collection)
        self.remove_collection = AsyncMock(side_effect=self._remove)

    # -- seeding ------------------------------------------------------------

    def add(self, kind: DocClass, **attrs: Any) -> dict[str, Any]:
        doc_id = attrs.pop("_id", None) or f"doc-{next(self._ids)}"
        doc = {"_id": doc_id, "_class": str(kind), **attrs}
        self.docs[str(kind)].append(doc)
        return doc

    def get(self, doc_id: str) -> dict[str, Any] | None:
        for docs in self.docs.values():
            for doc in docs:
                if doc["_id"] == doc_id:
                    return doc
        return None

    def ids(self, kind: DocClass) -> list[str]:
        return [doc["_id"] for doc in self.docs[str(kind)]]

    def mutation_count(self) -> int:
        return sum(getattr(self, name).await_count for name in self.MUTATING)

    # -- primitives ---------------------------------------------------------

    def _select(
        self, kind: str, query: dict[str, Any], options: dict[str, Any] | None
    ) -> list[dict[str, Any]]:
        docs = [
            doc
            for doc in self.docs[str(kind)]
            if all(doc.get(k) == v for k, v in query.items() if not k.startswith("$"))
        ]
        for key, direction in ((options or {}).get("sort") or {}).items():
            docs.sort(key=lambda d: d.get(key) or 0, reverse=direction < 0)
        limit = (options or {}).get("limit")
        return docs[:limit] if limit else docs

    async def _find_one(self, kind, query, options=None):
        docs = self._select(kind, query, options)
        return docs[0] if docs else None

    async def _find_all(self, kind, query, options=None):
        return list(self._select(kind, query, options))

    async def _create_doc(self, kind, attributes):
        return self.add(kind, **attributes)["_id"]

    async def _update(self, doc, operations):
        target = self.get(doc["_id"])
        if target is None:
            return {}
        for key, value in operations.items():
            if key == "$inc":
                for field_name, amount in value.items():
                    target[field_name] = (target.get(field_name) or 0) + amount
            else:
                target[key] = value
        return {}

    async def _remove(self, kind, doc_id):
        self.docs[str(kind)] = [d for d in self.docs[str(kind)] if d["_id"] != doc_id]
        return {}

    async def _add_collection(self, kind, attached_to, space, attached_to_class, collection, attributes):
        doc = self.add(
            kind,
            attachedTo=attached_to,
            space=space,
            attachedToClass=str(attached_to_class),
            collection=collection,
            **attributes,
        )
        return doc["_id"]


@pytest.fixture
def workspace() -> FakeWorkspace:
    """Create an empty in-memory workspace."""
    return FakeWorkspace()


@pytest.fixture
def project(workspace: FakeWorkspace) -> dict[str, Any]:
    """Seed a project PROJ with one backlog status."""
    proj = workspace.add(DocClass.PROJECT, _id="proj-1", identifier="PROJ", name="Project")
    workspace.add(DocClass.ISSUE_STATUS, _id="status-backlog", space="proj-1", category="backlog")
    return proj


@pytest.fixture
def issue_tree(workspace: FakeWorkspace, project: dict[str, Any]) -> dict[str, dict[str, Any]]:
    """Seed PROJ-1 with children PROJ-2, PROJ-3 and grandchild PROJ-4 (under PROJ-2)."""
    root = workspace.add(
        DocClass.ISSUE, _id="i-1", identifier="PROJ-1", title="Root", space="proj-1",
        attachedTo="tracker:ids:NoParent", status="done", number=1,
    )
    child_a = workspace.add(
        DocClass.ISSUE, _id="i-2", identifier="PROJ-2", title="Child A", space="proj-1",
        attachedTo="i-1", status="done", number=2,
    )
    child_b = workspace.add(
        DocClass.ISSUE, _id="i-3", identifier="PROJ-3", title="Child B", space="proj-1",
        attachedTo="i-1", status="done", number=3,
    )
    grandchild = workspace.add(
        DocClass.ISSUE, _id="i-4", identifier="PROJ-4", title="Grandchild", space="proj-1",
        attachedTo="i-2", status="done", number=4,
    )
    return {"PROJ-1": root, "PROJ-2": child_a, "PROJ-3": child_b, "PROJ-4": grandchild}


@pytest.fixture
def workspace_connection() -> WorkspaceConnection:
    """Create a workspace connection for client tests."""
    return WorkspaceConnection(
        url="https://tracker.example.com",
        workspace="engineering",
        token=SecretStr("test-token"),
    )


@pytest.fixture
def mock_security_settings() -> SecuritySettings:
    """Create permissive security settings for testing."""
    return SecuritySettings(
        read_only=False,
        disable_destructive=False,
        audit_log=None,
        rate_limit_calls=100,
        rate_limit_window=60,
    )


@pytest.fixture
def read_only_security_settings() -> SecuritySettings:
    """Create read-only security settings for testing."""
    return SecuritySettings(
        read_only=True,
        disable_destructive=True,
        audit_log=None,
        rate_limit_calls=100,
        rate_limit_window=60,
    )


@pytest.fixture
def mock_server_settings(mock_security_settings: SecuritySettings) -> ServerSettings:
    """Create server settings pointing at a fake workspace."""
    return ServerSettings(
        tracker_url="https://tracker.example.com",
        tracker_workspace="engineering",
        tracker_token=SecretStr("test-token"),
        security=mock_security_settings,
    )


@pytest.fixture
def safety_guard(mock_security_settings: SecuritySettings) -> SafetyGuard:
    """Create a safety guard for testing."""
    return SafetyGuard(mock_security_settings)


@pytest.fixture
def read_only_safety_guard(read_only_security_settings: SecuritySettings) -> SafetyGuard:
    """Create a read-only safety guard for testing."""
    return SafetyGuard(read_only_security_settings)


@pytest.fixture
def mock_ctx() -> MagicMock:
    """Create a mock MCP context with async report_progress."""
    ctx = MagicMock()
    ctx.request_id = "test-request-123"
    ctx.report_progress = AsyncMock()
    return ctx


# Integration test fixtures


@pytest.fixture
async def live_workspace_client() -> AsyncIterator[WorkspaceClient | None]:
    """Create a live workspace client when TRACKER_URL and TRACKER_WORKSPACE are set."""
    url = os.environ.get("TRACKER_URL")
    name = os.environ.get("TRACKER_WORKSPACE")
    if not url or not name:
        yield None
        return

    connection = WorkspaceConnection(
        url=url,
        workspace=name,
        token=SecretStr(os.environ.get("TRACKER_TOKEN", "")),
        email=os.environ.get("TRACKER_EMAIL", ""),
        password=SecretStr(os.environ.get("TRACKER_PASSWORD", "")),
    )
    async with WorkspaceClient(connection) as client:
        yield client
