# ABOUTME: Tracker MCP Server package initialization
# ABOUTME: Exposes version information for the deletion and template tool server

"""
Tracker MCP Server - Safe cascade deletion and issue templates via Model Context Protocol.

=============================================================================
WHAT DOES THIS PACKAGE DO?
=============================================================================

An AI assistant connected over MCP can ask this server to:

1. ANALYZE what deleting an issue or project would take with it
2. DELETE issues (with their sub-issue trees), projects, components,
   milestones and templates, with dry-run previews and blocker checks
3. MANAGE issue templates and instantiate them into real issues

Every entity lives as a document in a remote tracker workspace. The server
never holds state of its own; it reads and writes through the workspace API.

=============================================================================
PACKAGE STRUCTURE OVERVIEW
=============================================================================

tracker_mcp/
├── __init__.py          <- YOU ARE HERE: Package entry point
├── config.py            <- Configuration management (env vars, settings)
├── server.py            <- MCP server with all tools and resources
├── services/
│   ├── errors.py        <- Error taxonomy shared by the engines
│   ├── resolver.py      <- Identifier lookups (PROJ-12 -> document)
│   ├── impact.py        <- Deletion impact analysis
│   ├── deletion.py      <- Cascade deletion engine
│   ├── bulk.py          <- Batched bulk issue deletion
│   └── templates.py     <- Template CRUD and instantiation
└── utils/
    ├── client.py        <- HTTP client for the workspace document API
    ├── logging.py       <- Structured logging with audit trails
    └── safety.py        <- Security guards and rate limiting
"""

# Version 0.x.x: initial development, the tool surface may still change.
__version__ = "0.1.0"

__all__ = ["__version__"]
