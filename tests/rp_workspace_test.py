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

"""Tests for releaseplan.workspace."""

from __future__ import annotations

from pathlib import Path

import pytest
import tomlkit
from releaseplan.errors import E, ReleasePlanError
from releaseplan.versioning import parse_version
from releaseplan.workspace import discover_workspace, normalize_name, requirement_specifiers
from tests._fakes import manifest, root_manifest


def _write(root: Path, files: dict[str, str]) -> Path:
    for rel, content in files.items():
        (root / rel).parent.mkdir(parents=True, exist_ok=True)
        (root / rel).write_text(content, encoding='utf-8')
    return root


class TestDiscoverWorkspace:
    """Tests for discover_workspace()."""

    def test_members_and_dependencies(self, tmp_path: Path) -> None:
        """Members are parsed, sorted, and local links recognised."""
        _write(
            tmp_path,
            {
                'pyproject.toml': root_manifest(),
                'packages/plugin/pyproject.toml': manifest(
                    'plugin', '0.3.1', deps=['Core>=0.1.0', 'httpx>=0.27'], local=['core']
                ),
                'packages/core/pyproject.toml': manifest('core', '0.1.0'),
                'packages/notes/README.md': 'not a package\n',
            },
        )

        ws = discover_workspace(tmp_path)

        assert [p.name for p in ws.packages] == ['core', 'plugin']
        plugin = ws.get('Plugin')
        assert plugin is not None
        assert plugin.version == parse_version('0.3.1')
        assert plugin.path == (tmp_path / 'packages/plugin').resolve()
        assert [d.name for d in plugin.dependencies] == ['core', 'httpx']
        assert [(d.name, d.specifier) for d in plugin.local_dependencies] == [('core', '>=0.1.0')]
        assert not plugin.dependencies[1].is_local
        assert ws.version is None
        assert ws.lockfile == tmp_path.resolve() / 'uv.lock'

    def test_unconstrained_local_dependency(self, tmp_path: Path) -> None:
        """Local links without a version requirement are not propagation edges."""
        _write(
            tmp_path,
            {
                'pyproject.toml': root_manifest(),
                'packages/a/pyproject.toml': manifest('a'),
                'packages/b/pyproject.toml': manifest('b', deps=['a'], local=['a']),
            },
        )
        b = discover_workspace(tmp_path).get('b')
        assert b is not None
        assert b.dependencies[0].is_local
        assert b.local_dependencies == []

    def test_path_source(self, tmp_path: Path) -> None:
        """path sources resolve relative to the declaring manifest."""
        b_manifest = manifest('b', deps=['a>=1.0']) + '\n[tool.uv.sources]\na = { path = "../a" }\n'
        _write(
            tmp_path,
            {
                'pyproject.toml': root_manifest(),
                'packages/a/pyproject.toml': manifest('a', '1.0.0'),
                'packages/b/pyproject.toml': b_manifest,
            },
        )
        b = discover_workspace(tmp_path).get('b')
        assert b is not None
        assert b.dependencies[0].path == (tmp_path / 'packages/a').resolve()
        assert b.local_dependencies[0].name == 'a'

    def test_inherited_version(self, tmp_path: Path) -> None:
        """Packages may take the workspace version."""
        _write(
            tmp_path,
            {
                'pyproject.toml': root_manifest(workspace_version='0.4.0'),
                'packages/x/pyproject.toml': manifest('x', inherit_version=True),
            },
        )
        ws = discover_workspace(tmp_path)
        x = ws.get('x')
        assert x is not None
        assert x.version_inherited
        assert x.version == ws.version == parse_version('0.4.0')

    def test_inherited_without_workspace_version(self, tmp_path: Path) -> None:
        """Inheriting requires the root to declare a version."""
        _write(
            tmp_path,
            {'pyproject.toml': root_manifest(), 'packages/x/pyproject.toml': manifest('x', inherit_version=True)},
        )
        with pytest.raises(ReleasePlanError) as exc_info:
            discover_workspace(tmp_path)
        assert exc_info.value.code == E.WORKSPACE_PARSE_ERROR

    def test_package_traits(self, tmp_path: Path) -> None:
        """Scripts, library flag, private classifier and readme are read."""
        tool = manifest('tool', scripts=True, readme='../../README.md') + '\n[tool.releaseplan]\nlibrary = false\n'
        private = manifest('private').replace(
            'dependencies = []', 'classifiers = ["Private :: Do Not Upload"]\ndependencies = []'
        )
        _write(
            tmp_path,
            {
                'pyproject.toml': root_manifest(),
                'README.md': 'hi\n',
                'packages/tool/pyproject.toml': tool,
                'packages/private/pyproject.toml': private,
            },
        )
        ws = discover_workspace(tmp_path)
        cli, hidden = ws.get('tool'), ws.get('private')
        assert cli is not None and hidden is not None
        assert cli.has_executable
        assert not cli.has_library
        assert cli.external_readme() == (tmp_path / 'README.md').resolve()
        assert not hidden.is_publishable
        assert hidden.has_library
        assert hidden.external_readme() is None

    def test_exclude_patterns(self, tmp_path: Path) -> None:
        """Excluded names are left out."""
        _write(
            tmp_path,
            {
                'pyproject.toml': root_manifest(),
                'packages/a/pyproject.toml': manifest('a'),
                'packages/sample-x/pyproject.toml': manifest('sample-x'),
            },
        )
        ws = discover_workspace(tmp_path, exclude_patterns=['sample-*'])
        assert [p.name for p in ws.packages] == ['a']

    def test_member_exclude_globs(self, tmp_path: Path) -> None:
        """[tool.uv.workspace] exclude is honoured."""
        root = root_manifest().replace('members = ["packages/*"]', 'members = ["packages/*"]\nexclude = ["packages/b"]')
        _write(
            tmp_path,
            {
                'pyproject.toml': root,
                'packages/a/pyproject.toml': manifest('a'),
                'packages/b/pyproject.toml': manifest('b'),
            },
        )
        assert [p.name for p in discover_workspace(tmp_path).packages] == ['a']


class TestDiscoveryErrors:
    """Malformed workspaces."""

    def test_no_workspace_section(self, tmp_path: Path) -> None:
        """A root without [tool.uv.workspace] is rejected."""
        _write(tmp_path, {'pyproject.toml': '[project]\nname = "solo"\n'})
        with pytest.raises(ReleasePlanError) as exc_info:
            discover_workspace(tmp_path)
        assert exc_info.value.code == E.WORKSPACE_NOT_FOUND

    def test_missing_root_manifest(self, tmp_path: Path) -> None:
        """A missing root manifest cannot be read."""
        with pytest.raises(ReleasePlanError) as exc_info:
            discover_workspace(tmp_path)
        assert exc_info.value.code == E.MANIFEST_READ_FAILED

    def test_invalid_toml(self, tmp_path: Path) -> None:
        """Broken TOML is reported with the file."""
        _write(tmp_path, {'pyproject.toml': root_manifest(), 'packages/a/pyproject.toml': '[project\n'})
        with pytest.raises(ReleasePlanError) as exc_info:
            discover_workspace(tmp_path)
        assert exc_info.value.code == E.MANIFEST_READ_FAILED
        assert 'packages/a/pyproject.toml' in str(exc_info.value)

    def test_duplicate_names(self, tmp_path: Path) -> None:
        """Two members with the same normalized name are rejected."""
        _write(
            tmp_path,
            {
                'pyproject.toml': root_manifest(),
                'packages/one/pyproject.toml': manifest('my_pkg'),
                'packages/two/pyproject.toml': manifest('My-Pkg'),
            },
        )
        with pytest.raises(ReleasePlanError) as exc_info:
            discover_workspace(tmp_path)
        assert exc_info.value.code == E.WORKSPACE_DUPLICATE_PACKAGE

    def test_missing_name(self, tmp_path: Path) -> None:
        """Members need a project name."""
        _write(tmp_path, {'pyproject.toml': root_manifest(), 'packages/a/pyproject.toml': '[project]\nversion = "1.0.0"\n'})
        with pytest.raises(ReleasePlanError) as exc_info:
            discover_workspace(tmp_path)
        assert exc_info.value.code == E.WORKSPACE_PARSE_ERROR

    def test_invalid_requirement(self, tmp_path: Path) -> None:
        """Dependencies must be PEP 508 strings."""
        _write(tmp_path, {'pyproject.toml': root_manifest(), 'packages/a/pyproject.toml': manifest('a', deps=['>=1'])})
        with pytest.raises(ReleasePlanError) as exc_info:
            discover_workspace(tmp_path)
        assert exc_info.value.code == E.WORKSPACE_PARSE_ERROR


class TestHelpers:
    """Tests for module helpers."""

    def test_normalize_name(self) -> None:
        """PEP 503 normalization."""
        assert normalize_name('My_Package.Name') == 'my-package-name'

    def test_requirement_specifiers(self) -> None:
        """Names are normalized and invalid entries kept verbatim."""
        doc = tomlkit.parse('[project]\ndependencies = ["Foo_Bar>=1.0", "baz", "!!bad"]\n')
        assert requirement_specifiers(doc) == {'foo-bar': '>=1.0', 'baz': '', '!!bad': ''}
