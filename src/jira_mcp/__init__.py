"""Jira MCP server: Jira Cloud tools with a rate-limited client and audited mutations."""

__version__ = "1.0.0"
