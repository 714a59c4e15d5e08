# Copyright 2026 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# SPDX-License-Identifier: Apache-2.0

"""HTTP utilities for releaseplan.

Provides a managed :class:`httpx.AsyncClient` with connection pooling and
a request helper that retries transient failures with exponential backoff.
Used by :mod:`releaseplan.backends.registry.pypi`.

Usage::

    from releaseplan.net import http_client, request_with_retry

    async with http_client() as client:
        response = await request_with_retry(client, 'GET', 'https://pypi.org/pypi/httpx/json')
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Final

import httpx

from releaseplan.logging import get_logger

log = get_logger('releaseplan.net')

DEFAULT_POOL_SIZE: Final[int] = 10
DEFAULT_TIMEOUT: Final[float] = 30.0

MAX_RETRIES: Final[int] = 3
RETRY_BACKOFF_BASE: Final[float] = 1.0

# HTTP status codes that trigger a retry.
RETRYABLE_STATUS_CODES: Final[frozenset[int]] = frozenset({429, 500, 502, 503, 504})


@asynccontextmanager
async def http_client(
    *,
    pool_size: int = DEFAULT_POOL_SIZE,
    timeout: float = DEFAULT_TIMEOUT,
    headers: dict[str, str] | None = None,
) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Create a managed async HTTP client with connection pooling.

    Args:
        pool_size: Maximum number of connections in the pool.
        timeout: Request timeout in seconds.
        headers: Optional default headers.

    Yields:
        An :class:`httpx.AsyncClient` instance.
    """
    limits = httpx.Limits(max_connections=pool_size, max_keepalive_connections=pool_size)
    async with httpx.AsyncClient(
        limits=limits,
        timeout=httpx.Timeout(timeout),
        headers=headers or {},
        follow_redirects=True,
    ) as client:
        yield client


async def request_with_retry(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    max_retries: int = MAX_RETRIES,
    backoff_base: float = RETRY_BACKOFF_BASE,
) -> httpx.Response:
    """Make an HTTP request, retrying 429, 5xx and connection errors.

    Args:
        client: The httpx async client to use.
        method: HTTP method.
        url: Request URL.
        max_retries: Maximum number of retry attempts.
        backoff_base: Base delay in seconds; doubles each attempt.

    Returns:
        The last :class:`httpx.Response`. Non-retryable error statuses
        are returned as-is for the caller to interpret.

    Raises:
        httpx.HTTPStatusError: If every attempt got a retryable status.
        httpx.TransportError: If every attempt failed to connect.
    """
    last_exception: Exception | None = None
    response: httpx.Response | None = None

    for attempt in range(max_retries + 1):
        delay = backoff_base * (2**attempt)
        try:
            response = await client.request(method, url)
        except (httpx.ConnectError, httpx.ReadTimeout, httpx.WriteTimeout) as exc:
            last_exception = exc
            response = None
            log.warning('http_retry_error', url=url, error=str(exc), attempt=attempt + 1, delay=delay)
        else:
            if response.status_code not in RETRYABLE_STATUS_CODES:
                return response
            last_exception = None
            log.warning('http_retry', url=url, status=response.status_code, attempt=attempt + 1, delay=delay)
        if attempt < max_retries:
            await asyncio.sleep(delay)

    if last_exception is not None:
        raise last_exception
    if response is not None:
        response.raise_for_status()
        return response
    msg = 'request_with_retry: no attempts were made'
    raise RuntimeError(msg)


__all__ = [
    'DEFAULT_POOL_SIZE',
    'DEFAULT_TIMEOUT',
    'MAX_RETRIES',
    'RETRYABLE_STATUS_CODES',
    'http_client',
    'request_with_retry',
]
