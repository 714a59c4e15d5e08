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

"""Fake published-artifact resolvers and compatibility checker."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path

from releaseplan.compat import CheckResult, Compatible
from releaseplan.snapshot import PublishedSnapshot, RegistrySnapshot, TagSnapshot
from releaseplan.versioning import parse_version
from releaseplan.workspace import Package


@dataclass(frozen=True)
class Published:
    """What a fake resolver knows about one package."""

    version: str
    files: dict[str, str]
    published_at: str | None = None


class FakeResolver:
    """Materialises canned snapshots.

    Args:
        published: Package name to :class:`Published`.
        kind: ``"registry"`` or ``"tag"``; selects the snapshot type.
        error: Raised by every lookup when set.
    """

    def __init__(
        self,
        published: dict[str, Published] | None = None,
        *,
        kind: str = 'registry',
        error: Exception | None = None,
    ) -> None:
        """Store the canned data."""
        self.published = dict(published or {})
        self.kind = kind
        self.error = error
        self.calls: list[str] = []

    async def latest_published(self, package: Package, dest: Path) -> PublishedSnapshot | None:
        """Write the canned files to ``dest``."""
        self.calls.append(package.name)
        if self.error is not None:
            raise self.error
        entry = self.published.get(package.name)
        if entry is None:
            return None
        dest.mkdir(parents=True, exist_ok=True)
        for path, content in entry.files.items():
            target = dest / path
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding='utf-8')
        version = parse_version(entry.version)
        if self.kind == 'tag':
            return TagSnapshot(
                version=version,
                content_dir=dest,
                published_at=entry.published_at,
                tag=f'{package.name}-v{entry.version}',
            )
        return RegistrySnapshot(version=version, content_dir=dest, published_at=entry.published_at)


class FakeCompatibilityChecker:
    """Returns a fixed result per local directory name and records concurrency."""

    def __init__(self, results: dict[str, CheckResult] | None = None, *, delay: float = 0.0) -> None:
        """Store the canned results."""
        self.results = dict(results or {})
        self.delay = delay
        self.calls: list[tuple[Path, Path]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def check(self, local_dir: Path, published_dir: Path) -> CheckResult:
        """Return the result configured for ``local_dir.name`` (default compatible)."""
        self.calls.append((local_dir, published_dir))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.in_flight -= 1
        return self.results.get(local_dir.name, Compatible())


__all__ = ['FakeCompatibilityChecker', 'FakeResolver', 'Published']
