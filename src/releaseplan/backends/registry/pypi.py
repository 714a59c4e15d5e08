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

"""PyPI resolver.

Finds the newest release of a package through the PyPI JSON API and
extracts its sdist, which carries the ``pyproject.toml`` and sources the
history walk compares against.
"""

from __future__ import annotations

import io
from pathlib import Path
from typing import Any

import httpx
import semver

from releaseplan.backends._archive import extract_tar
from releaseplan.errors import E, ReleasePlanError
from releaseplan.logging import get_logger
from releaseplan.net import DEFAULT_POOL_SIZE, DEFAULT_TIMEOUT, http_client, request_with_retry
from releaseplan.snapshot import RegistrySnapshot
from releaseplan.versioning import parse_version
from releaseplan.workspace import Package

log = get_logger('releaseplan.backends.pypi')

DEFAULT_INDEX_URL = 'https://pypi.org'


def _newest_release(releases: dict[str, list[dict[str, Any]]]) -> tuple[semver.Version, list[dict[str, Any]]] | None:
    """Highest version that still has at least one non-yanked file."""
    best: tuple[semver.Version, list[dict[str, Any]]] | None = None
    for raw_version, files in releases.items():
        live = [f for f in files if not f.get('yanked', False)]
        if not live:
            continue
        try:
            version = parse_version(raw_version)
        except ReleasePlanError:
            log.debug('pypi_version_skipped', version=raw_version)
            continue
        if best is None or version > best[0]:
            best = (version, live)
    return best


class PyPIResolver:
    """:class:`~releaseplan.snapshot.SnapshotResolver` for PyPI-compatible indexes.

    Args:
        base_url: Index root serving ``/pypi/<name>/json``.
        pool_size: HTTP connection pool size.
        timeout: HTTP request timeout in seconds.
    """

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_INDEX_URL,
        pool_size: int = DEFAULT_POOL_SIZE,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize with the index URL, pool size, and timeout."""
        self._base_url = base_url.rstrip('/')
        self._pool_size = pool_size
        self._timeout = timeout

    async def latest_published(self, package: Package, dest: Path) -> RegistrySnapshot | None:
        """Download and extract the newest sdist of ``package`` into ``dest``."""
        url = f'{self._base_url}/pypi/{package.name}/json'
        async with http_client(pool_size=self._pool_size, timeout=self._timeout) as client:
            try:
                response = await request_with_retry(client, 'GET', url)
            except httpx.HTTPError as exc:
                raise ReleasePlanError(
                    code=E.REGISTRY_UNAVAILABLE,
                    message=f'Failed to query {url}: {exc}',
                    hint='Check network access to the package index, or set git_only = true.',
                ) from exc
            if response.status_code == 404:
                log.info('package_not_in_registry', package=package.name)
                return None
            if response.status_code != 200:
                raise ReleasePlanError(
                    code=E.REGISTRY_UNAVAILABLE,
                    message=f'{url} answered HTTP {response.status_code}',
                    hint='Check the registry_url setting and the index status.',
                )

            try:
                releases = response.json().get('releases', {})
            except ValueError as exc:
                raise ReleasePlanError(
                    code=E.REGISTRY_UNAVAILABLE,
                    message=f'{url} returned invalid JSON',
                    hint='Check that registry_url points at a PyPI-compatible JSON API.',
                ) from exc

            newest = _newest_release(releases)
            if newest is None:
                log.info('package_has_no_releases', package=package.name)
                return None
            version, files = newest

            sdist = next((f for f in files if f.get('packagetype') == 'sdist'), None)
            if sdist is None:
                raise ReleasePlanError(
                    code=E.SNAPSHOT_FAILED,
                    message=f'{package.name} {version} has no source distribution on {self._base_url}',
                    hint='Publish an sdist, or set git_only = true to compare against release tags instead.',
                )

            try:
                download = await request_with_retry(client, 'GET', str(sdist['url']))
            except httpx.HTTPError as exc:
                raise ReleasePlanError(
                    code=E.SNAPSHOT_FAILED,
                    message=f'Downloading {sdist["url"]} failed: {exc}',
                    hint='Retry later; the index may be degraded.',
                ) from exc
            if download.status_code != 200:
                raise ReleasePlanError(
                    code=E.SNAPSHOT_FAILED,
                    message=f'Downloading {sdist["url"]} failed with HTTP {download.status_code}',
                    hint='Retry later; the index may be degraded.',
                )

        extract_tar(io.BytesIO(download.content), dest, strip_components=1)
        log.info('registry_snapshot', package=package.name, version=str(version))
        return RegistrySnapshot(version=version, content_dir=dest)


__all__ = ['DEFAULT_INDEX_URL', 'PyPIResolver']
