# ABOUTME: Integration tests for the workspace client and engines against a live workspace
# ABOUTME: Requires TRACKER_URL, TRACKER_WORKSPACE and TRACKER_TEST_PROJECT; skipped otherwise

"""Integration tests against a live tracker workspace.

These tests require:
- TRACKER_URL and TRACKER_WORKSPACE pointing at a reachable workspace
- TRACKER_TOKEN, or TRACKER_EMAIL and TRACKER_PASSWORD
- TRACKER_TEST_PROJECT naming a project the credentials can read

Tests that write (create then delete a template) additionally need
TRACKER_TEST_WRITES=1 and clean up after themselves.
"""

from __future__ import annotations

import os
import uuid

import pytest

from tracker_mcp.services import deletion, impact, templates
from tracker_mcp.services.errors import NotFoundError
from tracker_mcp.utils.client import DocClass, WorkspaceClient

pytestmark = pytest.mark.integration

TEST_PROJECT = os.environ.get("TRACKER_TEST_PROJECT", "")


@pytest.fixture
def client(live_workspace_client: WorkspaceClient | None) -> WorkspaceClient:
    """Skip unless a live workspace and test project are configured."""
    if live_workspace_client is None or not TEST_PROJECT:
        pytest.skip("TRACKER_URL, TRACKER_WORKSPACE and TRACKER_TEST_PROJECT are required")
    return live_workspace_client


class TestLiveReads:
    """Read-only checks."""

    async def test_project_resolves(self, client: WorkspaceClient):
        """Test the configured project can be found."""
        project = await client.find_one(DocClass.PROJECT, {"identifier": TEST_PROJECT})

        assert project is not None
        assert project["identifier"] == TEST_PROJECT

    async def test_project_impact(self, client: WorkspaceClient):
        """Test impact analysis runs against the live store."""
        result = await impact.analyze_project_impact(client, TEST_PROJECT)

        assert result.project["identifier"] == TEST_PROJECT
        assert isinstance(result.issues, list)

    async def test_unknown_issue(self, client: WorkspaceClient):
        """Test a missing issue surfaces as NotFoundError."""
        with pytest.raises(NotFoundError):
            await impact.analyze_issue_impact(client, f"{TEST_PROJECT}-999999999")

    async def test_project_dry_run(self, client: WorkspaceClient):
        """Test a project dry run completes and reports counts."""
        result = await deletion.delete_project(client, TEST_PROJECT, force=True, dry_run=True)

        assert result.dry_run is True
        assert result.would_delete["project"] is True


@pytest.mark.skipif(
    os.environ.get("TRACKER_TEST_WRITES") != "1", reason="TRACKER_TEST_WRITES=1 not set"
)
class TestLiveTemplateLifecycle:
    """Create, inspect and delete a throwaway template."""

    async def test_template_lifecycle(self, client: WorkspaceClient):
        """Test a template with one child round-trips through the store."""
        title = f"integration-{uuid.uuid4().hex[:8]}"
        created = await templates.create_template(
            client, TEST_PROJECT, {"title": title, "children": [{"title": "child"}]}
        )

        try:
            details = await templates.get_template_details(client, created.template_id)
            assert details.template["title"] == title
            assert len(details.children) == 1
        finally:
            removed = await templates.delete_template(client, created.template_id)

        assert removed.deleted_children == 1
