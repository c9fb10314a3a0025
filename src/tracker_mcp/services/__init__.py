# ABOUTME: Services package initialization for Tracker MCP Server
# ABOUTME: Holds the deletion, impact analysis, bulk, and template engines

"""
Tracker MCP Services Package

Engines consumed by the tool layer in server.py:
    - errors.py: TrackerError taxonomy raised by every engine
    - resolver.py: Identifier to document resolution
    - impact.py: Read-only deletion impact analysis and validation
    - deletion.py: Cascading deletion of issues, projects, components, milestones
    - bulk.py: Batched deletion of many issues
    - templates.py: Issue template hierarchy and instantiation

Every engine function takes the RemoteClient as its first argument and an
optional structlog logger as the `log` keyword. None of them keep state
between calls.
"""
