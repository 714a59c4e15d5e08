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

"""Tests for releaseplan.net module.

Requests go through httpx.MockTransport; no network access is needed.
"""

from __future__ import annotations

import httpx
import pytest
from releaseplan.net import http_client, request_with_retry


def _client(statuses: list[int], seen: list[str]) -> httpx.AsyncClient:
    """Client answering with ``statuses`` in order, the last one repeated."""

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        status = statuses[min(len(seen) - 1, len(statuses) - 1)]
        return httpx.Response(status, text='body')

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestHttpClient:
    """Tests for http_client() context manager."""

    @pytest.mark.asyncio
    async def test_yields_configured_client(self) -> None:
        """The client carries the timeout and headers."""
        async with http_client(timeout=7.0, headers={'User-Agent': 'releaseplan-test'}) as client:
            assert isinstance(client, httpx.AsyncClient)
            assert client.timeout.read == 7.0
            assert client.headers['User-Agent'] == 'releaseplan-test'
            assert client.follow_redirects


class TestRequestWithRetry:
    """Tests for request_with_retry()."""

    @pytest.mark.asyncio
    async def test_success(self) -> None:
        """A 200 is returned immediately."""
        seen: list[str] = []
        async with _client([200], seen) as client:
            response = await request_with_retry(client, 'GET', 'https://index.test/x')
        assert response.status_code == 200
        assert len(seen) == 1

    @pytest.mark.asyncio
    async def test_404_not_retried(self) -> None:
        """Non-retryable statuses are returned as-is."""
        seen: list[str] = []
        async with _client([404], seen) as client:
            response = await request_with_retry(client, 'GET', 'https://index.test/x', max_retries=3)
        assert response.status_code == 404
        assert len(seen) == 1

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self) -> None:
        """Transient 503s are retried."""
        seen: list[str] = []
        async with _client([503, 502, 200], seen) as client:
            response = await request_with_retry(client, 'GET', 'https://index.test/x', backoff_base=0.0)
        assert response.status_code == 200
        assert len(seen) == 3

    @pytest.mark.asyncio
    async def test_persistent_failure_raises(self) -> None:
        """Exhausted retries on a retryable status raise HTTPStatusError."""
        seen: list[str] = []
        async with _client([500], seen) as client:
            with pytest.raises(httpx.HTTPStatusError):
                await request_with_retry(client, 'GET', 'https://index.test/x', max_retries=2, backoff_base=0.0)
        assert len(seen) == 3

    @pytest.mark.asyncio
    async def test_connect_error_raises(self) -> None:
        """Connection failures are retried and finally re-raised."""
        attempts = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal attempts
            attempts += 1
            raise httpx.ConnectError('refused', request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(httpx.ConnectError):
                await request_with_retry(client, 'GET', 'https://index.test/x', max_retries=1, backoff_base=0.0)
        assert attempts == 2
