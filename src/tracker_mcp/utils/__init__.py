# ABOUTME: Utilities package initialization for Tracker MCP Server
# ABOUTME: Contains shared utilities for the workspace client, safety, and logging

"""
Tracker MCP Utilities Package

Shared utilities:
    - client.py: Workspace document API client with retry logic
    - safety.py: Confirmation patterns and destructive operation guards
    - logging.py: Structured logging with correlation IDs
"""
