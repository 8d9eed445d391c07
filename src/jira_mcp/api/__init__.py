"""Jira API modules.

This package provides the core HTTP client and the resource-specific
endpoint wrappers used by the MCP tools.

Classes:
    JiraClient: Async HTTP client with throttling, retry and pagination
    RateLimiter: Token-bucket throttle owned by each client
    IssuesAPI: Issue reads, search and mutations
    CommentsAPI: Issue comments
    WorklogsAPI: Issue worklogs
    LinksAPI: Issue links and remote links
    SprintsAPI: Boards and sprints (Agile API)
    ProjectsAPI: Projects and release versions

Exceptions:
    JiraError: Base exception for all Jira MCP errors
    ConfigurationError: Missing or invalid configuration
    ValidationError: Malformed caller input
    AuthenticationError: Rejected credentials
    APIError: Non-2xx API responses
    RateLimitError: Local bucket empty or upstream 429
    NotFoundError: Named resource does not exist
    NetworkError: Transport failures
"""
from .adf import adf_to_text, is_adf_document, text_to_adf
from .client import DEFAULT_RETRY, JiraClient, RetryConfig, is_retryable
from .comments import CommentsAPI
from .exceptions import (
    APIError,
    AuthenticationError,
    ConfigurationError,
    ErrorKind,
    JiraError,
    NetworkError,
    NotFoundError,
    RateLimitError,
    RequestTimeoutError,
    ValidationError,
    format_error_message,
)
from .issues import MINIMAL_ISSUE_FIELDS, IssuesAPI
from .links import LinksAPI
from .projects import ProjectsAPI
from .rate_limiter import RateLimiter, create_jira_rate_limiter
from .sprints import SprintsAPI
from .worklogs import WorklogsAPI

__all__ = [
    # Client
    "JiraClient",
    "RetryConfig",
    "DEFAULT_RETRY",
    "is_retryable",
    # Throttling
    "RateLimiter",
    "create_jira_rate_limiter",
    # Endpoints
    "IssuesAPI",
    "MINIMAL_ISSUE_FIELDS",
    "CommentsAPI",
    "WorklogsAPI",
    "LinksAPI",
    "SprintsAPI",
    "ProjectsAPI",
    # Document format
    "text_to_adf",
    "adf_to_text",
    "is_adf_document",
    # Exceptions
    "ErrorKind",
    "JiraError",
    "ConfigurationError",
    "ValidationError",
    "AuthenticationError",
    "APIError",
    "RateLimitError",
    "NotFoundError",
    "NetworkError",
    "RequestTimeoutError",
    "format_error_message",
]
