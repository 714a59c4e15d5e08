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

"""Tests for releaseplan.package_compare."""

from __future__ import annotations

from pathlib import Path

from releaseplan.package_compare import (
    are_dependencies_updated,
    are_packages_equal,
    is_lock_updated,
    is_readme_updated,
)
from releaseplan.package_files import SourceTreeCalculator
from tests._fakes import manifest

LOCK = 'version = 1\n\n[[package]]\nname = "httpx"\nversion = "{httpx}"\n\n[[package]]\nname = "anyio"\nversion = "4.0.0"\n'


def _tree(root: Path, files: dict[str, str]) -> Path:
    root.mkdir(parents=True, exist_ok=True)
    for rel, content in files.items():
        (root / rel).parent.mkdir(parents=True, exist_ok=True)
        (root / rel).write_text(content, encoding='utf-8')
    return root


BASE = {'pyproject.toml': manifest('a'), 'a.py': 'A = 1\n'}


class TestArePackagesEqual:
    """Tests for are_packages_equal()."""

    def test_identical(self, tmp_path: Path) -> None:
        """Same files, same bytes."""
        local = _tree(tmp_path / 'local', BASE)
        published = _tree(tmp_path / 'published', {**BASE, 'PKG-INFO': 'Metadata-Version: 2.1\n'})
        assert are_packages_equal(local, published, SourceTreeCalculator())

    def test_manifest_differs(self, tmp_path: Path) -> None:
        """Any manifest byte difference makes them unequal."""
        local = _tree(tmp_path / 'local', BASE)
        published = _tree(tmp_path / 'published', {**BASE, 'pyproject.toml': manifest('a', '0.0.9')})
        assert not are_packages_equal(local, published, SourceTreeCalculator())

    def test_file_added(self, tmp_path: Path) -> None:
        """A new local file makes them unequal."""
        local = _tree(tmp_path / 'local', {**BASE, 'b.py': ''})
        published = _tree(tmp_path / 'published', BASE)
        assert not are_packages_equal(local, published, SourceTreeCalculator())

    def test_content_differs(self, tmp_path: Path) -> None:
        """Changed bytes make them unequal."""
        local = _tree(tmp_path / 'local', {**BASE, 'a.py': 'A = 2\n'})
        published = _tree(tmp_path / 'published', BASE)
        assert not are_packages_equal(local, published, SourceTreeCalculator())

    def test_lockfile_ignored(self, tmp_path: Path) -> None:
        """A lockfile in the snapshot does not count."""
        local = _tree(tmp_path / 'local', BASE)
        published = _tree(tmp_path / 'published', {**BASE, 'uv.lock': 'version = 1\n'})
        assert are_packages_equal(local, published, SourceTreeCalculator())

    def test_external_readme(self, tmp_path: Path) -> None:
        """A readme outside the package is compared against the snapshot root."""
        readme = tmp_path / 'README.md'
        readme.write_text('hello\n', encoding='utf-8')
        local = _tree(tmp_path / 'local', BASE)
        published = _tree(tmp_path / 'published', {**BASE, 'README.md': 'hello\n'})
        assert are_packages_equal(local, published, SourceTreeCalculator(), external_readme=readme)

        readme.write_text('changed\n', encoding='utf-8')
        assert not are_packages_equal(local, published, SourceTreeCalculator(), external_readme=readme)


class TestIsReadmeUpdated:
    """Tests for is_readme_updated()."""

    def test_missing_published_copy(self, tmp_path: Path) -> None:
        """A readme absent from the snapshot counts as updated."""
        readme = _tree(tmp_path, {'README.md': 'x'}) / 'README.md'
        assert is_readme_updated(readme, _tree(tmp_path / 'published', {}))

    def test_missing_local(self, tmp_path: Path) -> None:
        """A readme that no longer exists locally is not an update."""
        assert not is_readme_updated(tmp_path / 'README.md', _tree(tmp_path / 'published', {'README.md': 'x'}))


class TestAreDependenciesUpdated:
    """Tests for are_dependencies_updated()."""

    def test_constraint_changed(self, tmp_path: Path) -> None:
        """A different specifier is an update."""
        local = _tree(tmp_path / 'local', {'pyproject.toml': manifest('b', deps=['a>=0.2.0'])})
        published = _tree(tmp_path / 'published', {'pyproject.toml': manifest('b', deps=['a>=0.1.0'])})
        assert are_dependencies_updated(local / 'pyproject.toml', published)

    def test_formatting_only(self, tmp_path: Path) -> None:
        """Spelling differences in the name are not an update."""
        local = _tree(tmp_path / 'local', {'pyproject.toml': manifest('b', deps=['My_Dep>=1.0'])})
        published = _tree(tmp_path / 'published', {'pyproject.toml': manifest('b', '9.9.9', deps=['my-dep>=1.0'])})
        assert not are_dependencies_updated(local / 'pyproject.toml', published)

    def test_no_published_manifest(self, tmp_path: Path) -> None:
        """Nothing to compare against."""
        local = _tree(tmp_path / 'local', {'pyproject.toml': manifest('b')})
        assert not are_dependencies_updated(local / 'pyproject.toml', _tree(tmp_path / 'published', {}))


class TestIsLockUpdated:
    """Tests for is_lock_updated()."""

    def test_version_moved(self, tmp_path: Path) -> None:
        """A changed pin is an update."""
        local = _tree(tmp_path / 'local', {'uv.lock': LOCK.format(httpx='0.28.0')})
        published = _tree(tmp_path / 'published', {'uv.lock': LOCK.format(httpx='0.27.0')})
        assert is_lock_updated(local / 'uv.lock', published)

    def test_unchanged(self, tmp_path: Path) -> None:
        """Same pins are not an update."""
        local = _tree(tmp_path / 'local', {'uv.lock': LOCK.format(httpx='0.27.0')})
        published = _tree(tmp_path / 'published', {'uv.lock': LOCK.format(httpx='0.27.0')})
        assert not is_lock_updated(local / 'uv.lock', published)

    def test_new_package_only(self, tmp_path: Path) -> None:
        """Packages added to the lock do not count."""
        local = _tree(tmp_path / 'local', {'uv.lock': LOCK.format(httpx='0.27.0') + '\n[[package]]\nname = "new"\nversion = "1.0.0"\n'})
        published = _tree(tmp_path / 'published', {'uv.lock': LOCK.format(httpx='0.27.0')})
        assert not is_lock_updated(local / 'uv.lock', published)

    def test_missing_lockfiles(self, tmp_path: Path) -> None:
        """Without both lockfiles there is no update."""
        assert not is_lock_updated(tmp_path / 'uv.lock', _tree(tmp_path / 'published', {}))
