# -*- coding: utf-8 -*-
"""Location: ./fixtureforge/api_client.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0
Authors: fixtureforge contributors

Async HTTP client for the entity REST API.

Provides connection pooling, bearer authentication, request statistics and
optional retry with exponential backoff. Retrying is off by default: fixture
materialization treats the first failure as final.
"""

# Standard
import asyncio
import logging
from typing import Any, Dict, List, Optional

# Third-Party
import httpx

logger = logging.getLogger(__name__)

SUCCESS_STATUSES = [200, 201, 202, 204]

# Transport failures worth another attempt when retries are enabled
RETRYABLE_ERRORS = (httpx.ConnectError, httpx.ReadTimeout, httpx.WriteTimeout, httpx.PoolTimeout)


class APIClient:
    """Pooled async client for the entity API.

    Every request carries JSON headers and, when a token is set, a bearer
    ``Authorization`` header. Counters for requests, errors, retries and
    rate-limit hits are exposed through :meth:`get_stats`.
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        max_connections: int = 10,
        max_retries: int = 0,
        retry_base_delay: float = 1.0,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/") + "/"
        self.token = token
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self.timeout = timeout

        # Connection pool
        limits = httpx.Limits(
            max_connections=max_connections,
            max_keepalive_connections=max(1, max_connections // 2),
            keepalive_expiry=30,
        )
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            limits=limits,
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
            transport=transport,
        )

        # Statistics
        self.total_requests = 0
        self.total_errors = 0
        self.total_retries = 0
        self.total_rate_limited = 0

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def request(
        self,
        method: str,
        path: str,
        json: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None,
        expected_status: Optional[List[int]] = None,
    ) -> httpx.Response:
        """Make an HTTP request with optional retry and rate-limit handling.

        Args:
            method: HTTP method (GET, POST, PATCH, DELETE)
            path: URL path relative to the base URL (e.g., customer-address)
            json: JSON body
            params: Query parameters
            expected_status: Status codes counted as success (default: 2xx)

        Returns:
            httpx.Response: The last response; callers inspect ``status_code``.

        Raises:
            httpx.TransportError: If the request cannot be sent after all retries
        """
        accepted = SUCCESS_STATUSES if expected_status is None else expected_status
        headers = self._headers()
        attempt = 0

        while True:
            retries_left = attempt < self.max_retries
            self.total_requests += 1
            logger.debug("%s %s (attempt %d)", method, path, attempt + 1)
            try:
                response = await self._client.request(method, path, headers=headers, json=json, params=params)
            except RETRYABLE_ERRORS:
                if not retries_left:
                    self.total_errors += 1
                    raise
                self.total_retries += 1
                await asyncio.sleep(self._backoff(attempt))
                attempt += 1
                continue

            status = response.status_code
            if status in accepted:
                return response

            if retries_left and status == 429:
                self.total_rate_limited += 1
                delay = response.headers.get("Retry-After")
                await asyncio.sleep(float(delay) if delay else self._backoff(attempt))
            elif retries_left and status >= 500:
                self.total_retries += 1
                await asyncio.sleep(self._backoff(attempt))
            else:
                self.total_errors += 1
                return response
            attempt += 1

    def _backoff(self, attempt: int) -> float:
        """Exponential delay before retry number ``attempt + 1``."""
        return self.retry_base_delay * (2**attempt)

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None, expected_status: Optional[List[int]] = None) -> httpx.Response:
        return await self.request("GET", path, params=params, expected_status=expected_status or [200])

    async def post(self, path: str, json: Any = None, expected_status: Optional[List[int]] = None) -> httpx.Response:
        return await self.request("POST", path, json=json, expected_status=expected_status)

    async def patch(self, path: str, json: Any = None, expected_status: Optional[List[int]] = None) -> httpx.Response:
        return await self.request("PATCH", path, json=json, expected_status=expected_status)

    async def delete(self, path: str, expected_status: Optional[List[int]] = None) -> httpx.Response:
        return await self.request("DELETE", path, expected_status=expected_status or [200, 202, 204])

    async def close(self):
        await self._client.aclose()

    async def __aenter__(self) -> "APIClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def get_stats(self) -> Dict[str, int]:
        return {
            "total_requests": self.total_requests,
            "total_errors": self.total_errors,
            "total_retries": self.total_retries,
            "total_rate_limited": self.total_rate_limited,
        }
