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

"""Tests for the PyPI resolver.

Uses httpx mock transport to avoid real network calls.
"""

from __future__ import annotations

import io
import json
import tarfile
from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import httpx
import pytest
from releaseplan.backends.registry.pypi import PyPIResolver
from releaseplan.errors import E, ReleasePlanError
from releaseplan.versioning import parse_version
from releaseplan.workspace import Package

SDIST_URL = 'https://files.test/packages/a-0.1.0.tar.gz'


def _sdist(files: dict[str, str], prefix: str = 'a-0.1.0') -> bytes:
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode='w:gz') as tar:
        for name, content in files.items():
            data = content.encode()
            info = tarfile.TarInfo(f'{prefix}/{name}')
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    return buf.getvalue()


def _releases(**versions: list[dict[str, Any]]) -> str:
    return json.dumps({'info': {'name': 'a'}, 'releases': versions})


def _sdist_file(url: str = SDIST_URL, *, yanked: bool = False) -> dict[str, Any]:
    return {'packagetype': 'sdist', 'url': url, 'yanked': yanked}


def _mock_transport(responses: dict[str, httpx.Response]) -> Callable[[httpx.Request], httpx.Response]:
    """Create a mock transport that returns canned responses by URL suffix."""

    def handler(request: httpx.Request) -> httpx.Response:
        """Handler."""
        url = str(request.url)
        for suffix, response in responses.items():
            if url.endswith(suffix):
                return response
        return httpx.Response(404, text='Not found')

    return handler


def _make_client_cm(transport: Callable[[httpx.Request], httpx.Response]) -> Any:  # noqa: ANN401
    """Create a context manager that yields an httpx.AsyncClient with mock transport."""

    @asynccontextmanager
    async def _client_cm(**kw: Any) -> AsyncGenerator[httpx.AsyncClient]:  # noqa: ANN401
        async with httpx.AsyncClient(transport=httpx.MockTransport(transport)) as client:
            yield client

    return _client_cm


@pytest.fixture()
def pypi() -> PyPIResolver:
    """Resolver pointed at a fake index."""
    return PyPIResolver(base_url='https://pypi.test/', pool_size=1, timeout=5.0)


@pytest.fixture()
def package(tmp_path: Path) -> Package:
    """Package a 0.1.0."""
    path = tmp_path / 'ws' / 'a'
    return Package(name='a', version=parse_version('0.1.0'), path=path, manifest_path=path / 'pyproject.toml')


def _install(monkeypatch: pytest.MonkeyPatch, responses: dict[str, httpx.Response]) -> None:
    monkeypatch.setattr('releaseplan.backends.registry.pypi.http_client', _make_client_cm(_mock_transport(responses)))


class TestLatestPublished:
    """Tests for PyPIResolver.latest_published."""

    @pytest.mark.asyncio()
    async def test_downloads_newest_sdist(
        self, pypi: PyPIResolver, package: Package, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """The newest live release is extracted without its top-level directory."""
        body = _releases(**{
            '0.0.9': [_sdist_file('https://files.test/old.tar.gz')],
            '0.1.0': [_sdist_file(), {'packagetype': 'bdist_wheel', 'url': 'https://files.test/a.whl'}],
        })
        _install(
            monkeypatch,
            {
                '/pypi/a/json': httpx.Response(200, text=body),
                SDIST_URL: httpx.Response(200, content=_sdist({'pyproject.toml': '[project]\n', 'a.py': 'A = 1\n'})),
            },
        )
        dest = tmp_path / 'out'

        snapshot = await pypi.latest_published(package, dest)

        assert snapshot is not None
        assert snapshot.version == parse_version('0.1.0')
        assert snapshot.content_dir == dest
        assert snapshot.published_at is None
        assert (dest / 'a.py').read_text() == 'A = 1\n'
        assert (dest / 'pyproject.toml').is_file()

    @pytest.mark.asyncio()
    async def test_skips_yanked_and_invalid(
        self, pypi: PyPIResolver, package: Package, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Yanked releases and unparseable versions are ignored."""
        body = _releases(**{
            '0.1.0': [_sdist_file()],
            '0.2.0': [_sdist_file('https://files.test/yanked.tar.gz', yanked=True)],
            'not-a-version': [_sdist_file('https://files.test/bogus.tar.gz')],
        })
        _install(
            monkeypatch,
            {
                '/pypi/a/json': httpx.Response(200, text=body),
                SDIST_URL: httpx.Response(200, content=_sdist({'pyproject.toml': ''})),
            },
        )

        snapshot = await pypi.latest_published(package, tmp_path / 'out')

        assert snapshot is not None
        assert snapshot.version == parse_version('0.1.0')

    @pytest.mark.asyncio()
    async def test_not_found(
        self, pypi: PyPIResolver, package: Package, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """A 404 means the package was never published."""
        _install(monkeypatch, {})
        assert await pypi.latest_published(package, tmp_path / 'out') is None

    @pytest.mark.asyncio()
    async def test_no_releases(
        self, pypi: PyPIResolver, package: Package, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """A project with only yanked files counts as unpublished."""
        body = _releases(**{'0.1.0': [_sdist_file(yanked=True)]})
        _install(monkeypatch, {'/pypi/a/json': httpx.Response(200, text=body)})
        assert await pypi.latest_published(package, tmp_path / 'out') is None

    @pytest.mark.asyncio()
    async def test_server_error(
        self, pypi: PyPIResolver, package: Package, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Other statuses are a registry error."""
        _install(monkeypatch, {'/pypi/a/json': httpx.Response(403, text='forbidden')})
        with pytest.raises(ReleasePlanError) as exc_info:
            await pypi.latest_published(package, tmp_path / 'out')
        assert exc_info.value.code == E.REGISTRY_UNAVAILABLE

    @pytest.mark.asyncio()
    async def test_bad_json(
        self, pypi: PyPIResolver, package: Package, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """A non-JSON body is a registry error."""
        _install(monkeypatch, {'/pypi/a/json': httpx.Response(200, text='not json')})
        with pytest.raises(ReleasePlanError) as exc_info:
            await pypi.latest_published(package, tmp_path / 'out')
        assert exc_info.value.code == E.REGISTRY_UNAVAILABLE

    @pytest.mark.asyncio()
    async def test_no_sdist(
        self, pypi: PyPIResolver, package: Package, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Wheel-only releases cannot be compared."""
        body = _releases(**{'0.1.0': [{'packagetype': 'bdist_wheel', 'url': 'https://files.test/a.whl'}]})
        _install(monkeypatch, {'/pypi/a/json': httpx.Response(200, text=body)})
        with pytest.raises(ReleasePlanError) as exc_info:
            await pypi.latest_published(package, tmp_path / 'out')
        assert exc_info.value.code == E.SNAPSHOT_FAILED

    @pytest.mark.asyncio()
    async def test_download_failed(
        self, pypi: PyPIResolver, package: Package, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """A missing sdist file is a snapshot error."""
        _install(monkeypatch, {'/pypi/a/json': httpx.Response(200, text=_releases(**{'0.1.0': [_sdist_file()]}))})
        with pytest.raises(ReleasePlanError) as exc_info:
            await pypi.latest_published(package, tmp_path / 'out')
        assert exc_info.value.code == E.SNAPSHOT_FAILED

    @pytest.mark.asyncio()
    async def test_connection_error(
        self, pypi: PyPIResolver, package: Package, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Unreachable indexes are a registry error."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError('refused', request=request)

        monkeypatch.setattr('releaseplan.backends.registry.pypi.http_client', _make_client_cm(handler))
        monkeypatch.setattr('releaseplan.net.asyncio.sleep', _no_sleep)
        with pytest.raises(ReleasePlanError) as exc_info:
            await pypi.latest_published(package, tmp_path / 'out')
        assert exc_info.value.code == E.REGISTRY_UNAVAILABLE


async def _no_sleep(delay: float) -> None:
    return None
