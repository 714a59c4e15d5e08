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

"""Tests for the release-tag resolver."""

from __future__ import annotations

from pathlib import Path

import pytest
from releaseplan.backends.registry.git_tags import GitTagResolver
from releaseplan.snapshot import SnapshotResolver, TagSnapshot
from releaseplan.versioning import parse_version
from releaseplan.workspace import Package, discover_workspace
from tests._fakes import FakeSourceControl, manifest, root_manifest


class CountingVcs(FakeSourceControl):
    """Counts tag listings."""

    list_calls = 0

    async def list_tags(self) -> list[str]:
        """Count, then delegate."""
        self.list_calls += 1
        return await super().list_tags()


def _repo(tmp_path: Path) -> CountingVcs:
    vcs = CountingVcs(tmp_path / 'repo')
    vcs.commit(
        'chore: init',
        {
            'pyproject.toml': root_manifest(),
            'README.md': 'readme v1\n',
            'uv.lock': 'version = 1\n',
            'packages/a/pyproject.toml': manifest('a', '0.1.0', readme='../../README.md'),
            'packages/a/a.py': 'A = 1\n',
            'packages/b/pyproject.toml': manifest('b', '1.0.0'),
        },
    )
    return vcs


def _package(vcs: FakeSourceControl, name: str) -> Package:
    pkg = discover_workspace(vcs.root).get(name)
    assert pkg is not None
    return pkg


def test_satisfies_protocol(tmp_path: Path) -> None:
    """GitTagResolver is a SnapshotResolver."""
    assert isinstance(GitTagResolver(FakeSourceControl(tmp_path)), SnapshotResolver)


class TestLatestPublished:
    """Tests for GitTagResolver.latest_published."""

    @pytest.mark.asyncio
    async def test_exports_newest_tag(self, tmp_path: Path) -> None:
        """The package is exported as of its highest tagged version."""
        vcs = _repo(tmp_path)
        vcs.tag('a-v0.0.9')
        first = vcs.position
        vcs.commit('fix: a', {'packages/a/a.py': 'A = 2\n', 'README.md': 'readme v2\n'})
        second = vcs.position
        vcs.tag('a-v0.1.0')
        vcs.commit('feat: later', {'packages/a/a.py': 'A = 3\n'})
        dest = tmp_path / 'snap'

        snapshot = await GitTagResolver(vcs).latest_published(_package(vcs, 'a'), dest)

        assert isinstance(snapshot, TagSnapshot)
        assert snapshot.version == parse_version('0.1.0')
        assert snapshot.tag == 'a-v0.1.0'
        assert snapshot.published_at == second != first
        assert snapshot.content_dir == dest / 'packages/a'
        assert (snapshot.content_dir / 'a.py').read_text() == 'A = 2\n'
        assert (snapshot.content_dir / 'README.md').read_text() == 'readme v2\n'
        assert (snapshot.content_dir / 'uv.lock').is_file()
        assert (vcs.root / 'packages/a/a.py').read_text() == 'A = 3\n', 'working copy untouched'

    @pytest.mark.asyncio
    async def test_no_tag(self, tmp_path: Path) -> None:
        """Packages without release tags were never published."""
        vcs = _repo(tmp_path)
        vcs.tag('other-v1.0.0')
        assert await GitTagResolver(vcs).latest_published(_package(vcs, 'a'), tmp_path / 'snap') is None

    @pytest.mark.asyncio
    async def test_custom_template(self, tmp_path: Path) -> None:
        """Per-package templates select the tags."""
        vcs = _repo(tmp_path)
        vcs.tag('v1.0.0')
        resolver = GitTagResolver(vcs, tag_templates={'b': 'v{version}'})

        snapshot = await resolver.latest_published(_package(vcs, 'b'), tmp_path / 'snap')

        assert snapshot is not None
        assert snapshot.version == parse_version('1.0.0')
        assert resolver.template_for('a') == '{name}-v{version}'

    @pytest.mark.asyncio
    async def test_missing_extras_ignored(self, tmp_path: Path) -> None:
        """Packages without lockfile or external readme still export."""
        vcs = FakeSourceControl(tmp_path / 'repo')
        vcs.commit('chore: init', {'pyproject.toml': root_manifest(), 'packages/b/pyproject.toml': manifest('b', '1.0.0')})
        vcs.tag('b-v1.0.0')

        snapshot = await GitTagResolver(vcs).latest_published(_package(vcs, 'b'), tmp_path / 'snap')

        assert snapshot is not None
        assert sorted(p.name for p in snapshot.content_dir.iterdir()) == ['pyproject.toml']

    @pytest.mark.asyncio
    async def test_tags_listed_once(self, tmp_path: Path) -> None:
        """Tag listings are cached per resolver."""
        vcs = _repo(tmp_path)
        vcs.tag('a-v0.1.0')
        resolver = GitTagResolver(vcs)

        await resolver.latest_published(_package(vcs, 'a'), tmp_path / 'snap-a')
        await resolver.latest_published(_package(vcs, 'b'), tmp_path / 'snap-b')

        assert vcs.list_calls == 1
