#!/usr/bin/env python3
"""Async HTTP Client for the Jira Cloud REST API.

This module provides a reusable, composable HTTP client that handles the
common concerns of Jira API communication:

    - Basic authentication (email + API token), header built once
    - Client-side throttling via a token-bucket RateLimiter
    - Upstream 429 handling that honours the Retry-After header
    - Exponential backoff for 5xx, other API errors and network failures
    - Offset pagination (startAt/maxResults) and token pagination (nextPageToken)
    - Comprehensive error handling with typed exceptions

Design Philosophy:
    This client knows HOW to talk to Jira, but not WHAT to fetch.
    It has no knowledge of issues, comments, or worklogs.
    That knowledge belongs in the endpoint wrappers that compose this client.

Usage:
    async with JiraClient() as client:
        # Single request
        issue = await client.get("/rest/api/3/issue/PROJ-1")

        # Paginated fetch (memory efficient)
        async for page in client.paginate(
            "/rest/api/3/issue/PROJ-1/comment", items_key="comments"
        ):
            for comment in page:
                process(comment)
"""
import asyncio
import base64
import json
import logging
import os
from dataclasses import dataclass
from typing import Any, AsyncIterator, Optional

import aiohttp

from .exceptions import (
    APIError,
    AuthenticationError,
    ConfigurationError,
    ErrorKind,
    JiraError,
    NetworkError,
    RateLimitError,
    RequestTimeoutError,
)
from .rate_limiter import DEFAULT_REQUESTS_PER_MINUTE, RateLimiter, create_jira_rate_limiter

logger = logging.getLogger(__name__)

# ============================================
# Configuration
# ============================================

@dataclass
class RetryConfig:
    """Retry policy for a JiraClient.

    Attributes:
        max_attempts: Attempts per request, counting the first one
        base_delay: Seconds before the first retry; doubles each attempt
        max_rate_limit_wait: Ceiling on cumulative seconds spent waiting on 429s
        max_rate_limit_retries: Ceiling on the number of 429 retries per request
        default_retry_after: Seconds to wait when a 429 carries no Retry-After
    """
    max_attempts: int = 3
    base_delay: float = 1.0
    max_rate_limit_wait: float = 300.0
    max_rate_limit_retries: int = 10
    default_retry_after: int = 60

    def backoff_delay(self, attempt: int) -> float:
        """Delay after failed attempt number ``attempt`` (1-based)."""
        return self.base_delay * 2 ** (attempt - 1)


DEFAULT_RETRY = RetryConfig()

AUTH_FAILED_MESSAGE = "Invalid Jira credentials. Please check your email and API token."
FORBIDDEN_MESSAGE = "Access forbidden. Check your permissions."


def is_retryable(error: JiraError) -> bool:
    """Decide whether a failed attempt may be retried with backoff.

    Upstream 429s are handled separately and never reach this check.
    """
    if error.kind == ErrorKind.NETWORK:
        return True
    if error.kind == ErrorKind.API:
        return error.recoverable
    if error.kind == ErrorKind.RATE_LIMIT:
        return True
    # Authentication, not-found, validation and configuration are final
    return False


def _clean_params(params: Optional[dict]) -> Optional[dict[str, str]]:
    """Drop None values and stringify the rest for the query string."""
    if not params:
        return None
    cleaned = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, bool):
            cleaned[key] = "true" if value else "false"
        elif isinstance(value, (list, tuple)):
            cleaned[key] = ",".join(str(v) for v in value)
        else:
            cleaned[key] = str(value)
    return cleaned or None


# ============================================
# The Client
# ============================================

class JiraClient:
    """Async HTTP client for the Jira Cloud REST API.

    This client is designed to be used as an async context manager to ensure
    proper session lifecycle management:

        async with JiraClient(base_url, email, api_token) as client:
            data = await client.get("/rest/api/3/myself")

    Attributes:
        base_url: Site URL without trailing slash (e.g., "https://acme.atlassian.net")
        email: Account email used for Basic auth
        rate_limiter: Token bucket consulted before every request
        retry_config: Retry/backoff policy
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        email: Optional[str] = None,
        api_token: Optional[str] = None,
        *,
        rate_limiter: Optional[RateLimiter] = None,
        requests_per_minute: int = DEFAULT_REQUESTS_PER_MINUTE,
        retry_config: Optional[RetryConfig] = None,
        timeout: float = 30.0,
    ):
        """Initialize the JiraClient.

        Args:
            base_url: Jira site URL. Falls back to JIRA_BASE_URL.
            email: Account email. Falls back to JIRA_EMAIL.
            api_token: API token. Falls back to JIRA_API_TOKEN.
            rate_limiter: Pre-built limiter (tests inject one with a fake clock)
            requests_per_minute: Limiter budget when no limiter is given
            retry_config: Retry policy (defaults to 3 attempts, 1s base delay)
            timeout: Total per-request timeout in seconds

        Raises:
            ConfigurationError: If any credential is missing.
        """
        self.base_url = (base_url or os.getenv("JIRA_BASE_URL", "")).rstrip("/")
        self.email = email or os.getenv("JIRA_EMAIL", "")
        api_token = api_token or os.getenv("JIRA_API_TOKEN", "")

        missing = [
            key
            for key, value in (
                ("JIRA_BASE_URL", self.base_url),
                ("JIRA_EMAIL", self.email),
                ("JIRA_API_TOKEN", api_token),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(
                f"Missing Jira configuration: {', '.join(missing)}. "
                "Provide them as arguments or environment variables.",
                missing_keys=missing,
            )

        credentials = base64.b64encode(f"{self.email}:{api_token}".encode()).decode()
        self._auth_header = f"Basic {credentials}"

        self.rate_limiter = rate_limiter or create_jira_rate_limiter(requests_per_minute)
        self.retry_config = retry_config or DEFAULT_RETRY
        self.timeout = timeout

        # Session is created in __aenter__, closed in __aexit__
        self._session: Optional[aiohttp.ClientSession] = None

    # ----------------------------------------
    # Context Manager Protocol
    # ----------------------------------------

    async def __aenter__(self) -> "JiraClient":
        """Enter async context: create the HTTP session."""
        self._session = aiohttp.ClientSession(
            connector=aiohttp.TCPConnector(
                limit=10,  # Max concurrent connections
                limit_per_host=10,
            ),
            timeout=aiohttp.ClientTimeout(
                total=self.timeout,
                connect=10,
            ),
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context: close the HTTP session."""
        await self.close()

    async def close(self) -> None:
        """Close the HTTP session if open."""
        if self._session:
            await self._session.close()
            self._session = None

    # ----------------------------------------
    # Low-Level Request Methods
    # ----------------------------------------

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": self._auth_header,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _retry_after_ms(self, header_value: Optional[str]) -> int:
        """Parse a Retry-After header (seconds) into milliseconds."""
        try:
            seconds = int(header_value) if header_value else self.retry_config.default_retry_after
        except ValueError:
            seconds = self.retry_config.default_retry_after
        return max(0, seconds) * 1000

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        json_body: Optional[Any] = None,
    ) -> Any:
        """Make a single HTTP request (no retry logic).

        Args:
            method: HTTP method (GET, POST, PUT, PATCH, DELETE)
            path: API path (e.g., "/rest/api/3/issue/PROJ-1")
            params: Query parameters (None values dropped)
            json_body: JSON request body

        Returns:
            Parsed JSON response, or {} for empty responses

        Raises:
            RateLimitError: On HTTP 429 (upstream=True)
            AuthenticationError: On HTTP 401
            APIError: On any other non-2xx status
            NetworkError: If the connection fails
            RequestTimeoutError: If the request times out
            RuntimeError: If called outside of async context manager
        """
        if not self._session:
            raise RuntimeError(
                "JiraClient must be used as async context manager: "
                "async with JiraClient(...) as client:"
            )

        url = f"{self.base_url}{path}"
        logger.debug(f"{method} {path}")

        try:
            async with self._session.request(
                method=method,
                url=url,
                headers=self._headers(),
                params=_clean_params(params),
                json=json_body,
            ) as response:
                status = response.status
                body_text = await response.text()

                if status == 429:
                    retry_after_ms = self._retry_after_ms(response.headers.get("Retry-After"))
                    raise RateLimitError(
                        f"Rate limited by Jira API for {method} {path}",
                        retry_after_ms=retry_after_ms,
                        upstream=True,
                    )

                if status == 401:
                    raise AuthenticationError(AUTH_FAILED_MESSAGE)

                if status == 403:
                    raise APIError(
                        FORBIDDEN_MESSAGE,
                        status_code=403,
                        response_body=body_text or None,
                        endpoint=path,
                        method=method,
                    )

                if status >= 400:
                    raise APIError.from_response(
                        status,
                        response.reason,
                        body_text,
                        endpoint=path,
                        method=method,
                    )

                if status == 204 or not body_text.strip():
                    return {}

                try:
                    return json.loads(body_text)
                except ValueError as e:
                    raise APIError(
                        f"Invalid JSON in response from {method} {path}",
                        status_code=status,
                        response_body=body_text,
                        endpoint=path,
                        method=method,
                        recoverable=False,
                        cause=e,
                    )

        # aiohttp.ServerTimeoutError is also a ClientConnectionError
        except asyncio.TimeoutError as e:
            raise RequestTimeoutError(
                f"Request to {path} timed out",
                timeout_seconds=self.timeout,
                cause=e,
            )

        except aiohttp.ClientConnectionError as e:
            raise NetworkError(
                f"Failed to connect to {self.base_url}",
                details={"host": self.base_url},
                cause=e,
            )

        except aiohttp.ClientError as e:
            raise NetworkError(
                f"Network error during {method} {path}: {e}",
                cause=e,
            )

    async def _request_with_retry(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        json_body: Optional[Any] = None,
        skip_rate_limit: bool = False,
    ) -> Any:
        """Make an HTTP request with throttling, retry and backoff.

        This method wraps _request() with resilience logic:
            - Local token bucket: wait for a token once per call
            - 429 Rate Limited: sleep Retry-After (at least base_delay), retry
              without using an attempt, up to max_rate_limit_retries times
            - 401 / 403 / 404: fail immediately
            - Other API errors and network errors: exponential backoff

        Raises:
            RateLimitError: If 429 retries or their cumulative wait exceed the ceiling
            AuthenticationError: On bad credentials
            APIError: If the request fails after all retries
            NetworkError: If a network error persists after retries
        """
        if not skip_rate_limit:
            await self.rate_limiter.wait_for_token()

        policy = self.retry_config
        attempt = 1
        rate_limit_waited = 0.0
        rate_limit_retries = 0

        while True:
            try:
                return await self._request(method, path, params, json_body)

            except RateLimitError as e:
                wait_time = max(e.retry_after, policy.base_delay)
                if (
                    rate_limit_retries >= policy.max_rate_limit_retries
                    or rate_limit_waited + wait_time > policy.max_rate_limit_wait
                ):
                    logger.error(
                        f"Rate limited on {method} {path}; giving up after "
                        f"{rate_limit_retries} retries and {rate_limit_waited:.0f}s of waiting"
                    )
                    raise
                rate_limit_retries += 1
                rate_limit_waited += wait_time
                logger.warning(
                    f"Rate limited by Jira, waiting {wait_time:.0f}s "
                    f"(attempt {attempt}/{policy.max_attempts})"
                )
                await asyncio.sleep(wait_time)

            except JiraError as e:
                if not is_retryable(e):
                    raise
                if attempt >= policy.max_attempts:
                    logger.error(
                        f"All {policy.max_attempts} attempts failed for {method} {path}: {e}"
                    )
                    raise
                delay = policy.backoff_delay(attempt)
                logger.warning(
                    f"Request failed: {e}. Retrying in {delay:.1f}s "
                    f"(attempt {attempt}/{policy.max_attempts})"
                )
                await asyncio.sleep(delay)
                attempt += 1

    # ----------------------------------------
    # High-Level Request Methods
    # ----------------------------------------

    async def get(
        self,
        path: str,
        params: Optional[dict] = None,
        skip_rate_limit: bool = False,
    ) -> Any:
        """Make a GET request."""
        return await self._request_with_retry(
            "GET", path, params=params, skip_rate_limit=skip_rate_limit
        )

    async def post(
        self,
        path: str,
        json_body: Optional[Any] = None,
        params: Optional[dict] = None,
        skip_rate_limit: bool = False,
    ) -> Any:
        """Make a POST request."""
        return await self._request_with_retry(
            "POST", path, params=params, json_body=json_body, skip_rate_limit=skip_rate_limit
        )

    async def put(
        self,
        path: str,
        json_body: Optional[Any] = None,
        params: Optional[dict] = None,
        skip_rate_limit: bool = False,
    ) -> Any:
        """Make a PUT request."""
        return await self._request_with_retry(
            "PUT", path, params=params, json_body=json_body, skip_rate_limit=skip_rate_limit
        )

    async def patch(
        self,
        path: str,
        json_body: Optional[Any] = None,
        params: Optional[dict] = None,
        skip_rate_limit: bool = False,
    ) -> Any:
        """Make a PATCH request."""
        return await self._request_with_retry(
            "PATCH", path, params=params, json_body=json_body, skip_rate_limit=skip_rate_limit
        )

    async def delete(
        self,
        path: str,
        params: Optional[dict] = None,
        skip_rate_limit: bool = False,
    ) -> Any:
        """Make a DELETE request."""
        return await self._request_with_retry(
            "DELETE", path, params=params, skip_rate_limit=skip_rate_limit
        )

    # ----------------------------------------
    # Status
    # ----------------------------------------

    @property
    def remaining_rate_limit(self) -> int:
        """Whole tokens left in the local bucket."""
        return self.rate_limiter.remaining_tokens()

    async def validate_connection(self) -> bool:
        """Check credentials and reachability with GET /rest/api/3/myself.

        Returns:
            True if Jira answered, False on any non-authentication failure

        Raises:
            AuthenticationError: If the credentials are rejected
        """
        try:
            await self.get("/rest/api/3/myself")
        except AuthenticationError:
            raise
        except JiraError as e:
            logger.error(f"Failed to validate Jira connection: {e}")
            return False
        logger.info("Jira connection validated successfully")
        return True

    # ----------------------------------------
    # Pagination Methods
    # ----------------------------------------

    async def paginate(
        self,
        path: str,
        items_key: str = "values",
        params: Optional[dict] = None,
        page_size: int = 50,
        max_items: Optional[int] = None,
    ) -> AsyncIterator[list[dict]]:
        """Iterate through an offset-paginated endpoint (startAt/maxResults).

        Pages are fetched on demand; stopping iteration stops fetching.

        Args:
            path: API path
            items_key: Response key that holds the page items
            params: Additional query parameters
            page_size: maxResults per request
            max_items: Stop after this many items (None = no limit)

        Yields:
            List of items from each page
        """
        params = dict(params or {})  # Copy to avoid mutating caller's dict
        start_at = 0
        fetched = 0

        while True:
            params["startAt"] = start_at
            params["maxResults"] = page_size

            data = await self.get(path, params=dict(params))
            items = data.get(items_key) or []

            if max_items is not None and fetched + len(items) > max_items:
                items = items[: max_items - fetched]

            if items:
                yield items
            fetched += len(items)

            total = data.get("total")
            if not items or data.get("isLast"):
                break
            if total is not None and start_at + len(items) >= total:
                break
            if max_items is not None and fetched >= max_items:
                break

            start_at += len(items)

        logger.debug(f"Pagination of {path} complete: {fetched} items")

    async def paginate_tokens(
        self,
        path: str,
        items_key: str = "issues",
        params: Optional[dict] = None,
        page_size: int = 100,
        max_items: int = 1000,
    ) -> AsyncIterator[list[dict]]:
        """Iterate through a token-paginated endpoint (nextPageToken).

        Yields:
            List of items from each page, never more than ``max_items`` in total
        """
        params = dict(params or {})
        next_token: Optional[str] = None
        fetched = 0

        while fetched < max_items:
            params["maxResults"] = min(page_size, max_items - fetched)
            params["nextPageToken"] = next_token

            data = await self.get(path, params=dict(params))
            items = (data.get(items_key) or [])[: max_items - fetched]

            if items:
                yield items
            fetched += len(items)

            next_token = data.get("nextPageToken")
            if not next_token or not items:
                break


__all__ = [
    "AUTH_FAILED_MESSAGE",
    "DEFAULT_RETRY",
    "FORBIDDEN_MESSAGE",
    "JiraClient",
    "RetryConfig",
    "is_retryable",
]
