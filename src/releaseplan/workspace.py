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

"""Package discovery for uv workspaces.

Reads ``[tool.uv.workspace]`` from the root ``pyproject.toml``, expands
the member globs, and parses each member's manifest into a
:class:`Package` with its :class:`Dependency` links.

Key Concepts (ELI5)::

    ┌─────────────────────────┬────────────────────────────────────────────┐
    │ Concept                 │ ELI5 Explanation                           │
    ├─────────────────────────┼────────────────────────────────────────────┤
    │ Package                 │ One Python package in the workspace: name, │
    │                         │ version, directory, what it depends on.    │
    ├─────────────────────────┼────────────────────────────────────────────┤
    │ Local dependency        │ A dependency resolved from this checkout   │
    │                         │ (``workspace = true`` or ``path = ...`` in │
    │                         │ ``[tool.uv.sources]``), not from PyPI.     │
    ├─────────────────────────┼────────────────────────────────────────────┤
    │ Inherited version       │ ``[tool.releaseplan] version = {workspace  │
    │                         │ = true}``: the package uses the shared     │
    │                         │ workspace version instead of its own.      │
    └─────────────────────────┴────────────────────────────────────────────┘

Layout::

    pyproject.toml                       (root)
      [tool.uv.workspace]
      members = ["packages/*"]
      [tool.uv.sources]
      core = { workspace = true }
      [tool.releaseplan.workspace]
      version = "0.4.0"                  (optional shared version)

    packages/plugin/pyproject.toml
      [project]
      name = "plugin"
      version = "0.1.1"
      dependencies = ["core>=0.1.0"]     (local link with a constraint)

Usage::

    from releaseplan.workspace import discover_workspace

    ws = discover_workspace(Path('.'))
    for pkg in ws.packages:
        print(pkg.name, pkg.version, [d.name for d in pkg.local_dependencies])
"""

from __future__ import annotations

import fnmatch
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import semver
import tomlkit
import tomlkit.exceptions
from packaging.requirements import InvalidRequirement, Requirement
from packaging.utils import canonicalize_name

from releaseplan.errors import E, ReleasePlanError
from releaseplan.logging import get_logger
from releaseplan.versioning import parse_version

logger = get_logger(__name__)

MANIFEST_NAME = 'pyproject.toml'
LOCKFILE_NAME = 'uv.lock'


@dataclass(frozen=True)
class Dependency:
    """One entry of ``[project].dependencies``.

    Attributes:
        name: Normalized name of the referenced package.
        specifier: Version constraint, e.g. ``">=0.1.0"``. Empty when the
            requirement carries none.
        requirement: The requirement string as written.
        path: Resolved directory for ``path`` sources.
        workspace: Resolved from the workspace (``workspace = true``).
    """

    name: str
    specifier: str = ''
    requirement: str = ''
    path: Path | None = None
    workspace: bool = False

    @property
    def is_local(self) -> bool:
        """Whether the dependency resolves to a directory in this checkout."""
        return self.workspace or self.path is not None

    @property
    def is_version_constrained_local(self) -> bool:
        """A local dependency that also carries a version requirement."""
        return self.is_local and bool(self.specifier)


@dataclass(frozen=True)
class Package:
    """A workspace member.

    Attributes:
        name: Normalized (PEP 503) package name.
        version: Current version from the manifest, or the workspace
            version when inherited.
        path: Absolute package directory.
        manifest_path: Absolute path to the package's ``pyproject.toml``.
        dependencies: Every runtime dependency.
        version_inherited: Uses the shared workspace version.
        is_publishable: No ``Private :: Do Not Upload`` classifier.
        has_library: Exposes an importable API worth compatibility checks.
        has_executable: Declares console or GUI scripts.
        readme: Absolute readme path, when declared.
    """

    name: str
    version: semver.Version
    path: Path
    manifest_path: Path
    dependencies: tuple[Dependency, ...] = ()
    version_inherited: bool = False
    is_publishable: bool = True
    has_library: bool = True
    has_executable: bool = False
    readme: Path | None = None

    @property
    def local_dependencies(self) -> list[Dependency]:
        """Local dependencies that carry a version requirement."""
        return [d for d in self.dependencies if d.is_version_constrained_local]

    def external_readme(self) -> Path | None:
        """The readme, when it lives outside the package directory."""
        if self.readme is None or self.readme.is_relative_to(self.path):
            return None
        return self.readme


@dataclass(frozen=True)
class Workspace:
    """A discovered uv workspace."""

    root: Path
    packages: tuple[Package, ...]
    version: semver.Version | None = None
    _by_name: dict[str, Package] = field(init=False, repr=False, compare=False, default_factory=dict)

    def __post_init__(self) -> None:
        """Index packages by name."""
        self._by_name.update({p.name: p for p in self.packages})

    @property
    def lockfile(self) -> Path:
        """Path to the workspace ``uv.lock``."""
        return self.root / LOCKFILE_NAME

    def get(self, name: str) -> Package | None:
        """Look up a package by (any spelling of) its name."""
        return self._by_name.get(canonicalize_name(name))

    def relative_path(self, path: Path) -> str:
        """``path`` relative to the workspace root, POSIX style."""
        return path.resolve().relative_to(self.root.resolve()).as_posix()


def normalize_name(name: str) -> str:
    """Normalize a Python package name per PEP 503."""
    return canonicalize_name(name)


def load_manifest(path: Path) -> tomlkit.TOMLDocument:
    """Read and parse a TOML manifest.

    Raises:
        ReleasePlanError: ``RP-MANIFEST-READ-FAILED`` if the file cannot
            be read or is not valid TOML.
    """
    try:
        return tomlkit.parse(path.read_text(encoding='utf-8'))
    except OSError as exc:
        raise ReleasePlanError(
            code=E.MANIFEST_READ_FAILED,
            message=f'Failed to read {path}: {exc}',
            hint=f'Check that {path} exists and is readable.',
        ) from exc
    except tomlkit.exceptions.TOMLKitError as exc:
        raise ReleasePlanError(
            code=E.MANIFEST_READ_FAILED,
            message=f'Failed to parse {path}: {exc}',
            hint=f'Check that {path} contains valid TOML.',
        ) from exc


def requirement_specifiers(doc: Mapping[str, Any]) -> dict[str, str]:
    """Map each ``[project].dependencies`` name to its version specifier.

    Unparseable requirements are kept verbatim under their raw text so
    that a change to them is still noticed.
    """
    result: dict[str, str] = {}
    for raw in doc.get('project', {}).get('dependencies', []):
        try:
            req = Requirement(str(raw))
        except InvalidRequirement:
            result[str(raw).strip()] = ''
            continue
        result[canonicalize_name(req.name)] = str(req.specifier)
    return result


def _is_publishable(classifiers: list[str]) -> bool:
    return not any('Private' in c and 'Do Not Upload' in c for c in classifiers)


def _expand_member_globs(root: Path, members: list[str], excludes: list[str]) -> list[Path]:
    """Expand workspace member globs into package directories."""
    found: set[Path] = set()
    for pattern in members:
        for candidate in sorted(root.glob(str(pattern))):
            if candidate.is_dir() and (candidate / MANIFEST_NAME).is_file():
                found.add(candidate.resolve())

    excluded: set[Path] = set()
    for pattern in excludes:
        for candidate in sorted(root.glob(str(pattern))):
            excluded.add(candidate.resolve())

    result = sorted(found - excluded)
    logger.debug('expanded_member_globs', members=members, excludes=excludes, count=len(result))
    return result


def _uv_sources(doc: Mapping[str, Any], base: Path) -> dict[str, dict[str, Any]]:
    """Read ``[tool.uv.sources]``, resolving ``path`` entries against ``base``."""
    result: dict[str, dict[str, Any]] = {}
    for name, spec in doc.get('tool', {}).get('uv', {}).get('sources', {}).items():
        if not isinstance(spec, Mapping):
            continue
        entry = dict(spec)
        if entry.get('path'):
            entry['path'] = (base / str(entry['path'])).resolve()
        result[canonicalize_name(name)] = entry
    return result


def _readme_path(project: Mapping[str, Any], pkg_dir: Path) -> Path | None:
    readme = project.get('readme')
    if isinstance(readme, Mapping):
        readme = readme.get('file')
    if not readme:
        return None
    return (pkg_dir / str(readme)).resolve()


def _parse_package(
    pkg_dir: Path,
    root_sources: Mapping[str, Mapping[str, Any]],
    workspace_version: semver.Version | None,
) -> Package:
    manifest_path = pkg_dir / MANIFEST_NAME
    doc = load_manifest(manifest_path)
    project: dict[str, Any] = dict(doc.get('project', {}))
    name = project.get('name', '')
    if not name:
        raise ReleasePlanError(
            code=E.WORKSPACE_PARSE_ERROR,
            message=f'No [project].name in {manifest_path}',
            hint='Every workspace member must have a [project] section with a name.',
        )

    settings: dict[str, Any] = dict(doc.get('tool', {}).get('releaseplan', {}))
    version_setting = settings.get('version')
    inherited = isinstance(version_setting, Mapping) and bool(version_setting.get('workspace'))
    if inherited:
        if workspace_version is None:
            raise ReleasePlanError(
                code=E.WORKSPACE_PARSE_ERROR,
                message=f'{name} inherits the workspace version but none is declared.',
                hint='Add [tool.releaseplan.workspace] version = "X.Y.Z" to the root pyproject.toml.',
            )
        version = workspace_version
    else:
        raw_version = project.get('version')
        if raw_version is None:
            raise ReleasePlanError(
                code=E.WORKSPACE_PARSE_ERROR,
                message=f'No [project].version in {manifest_path}',
                hint='Set a static version or inherit the workspace version.',
            )
        version = parse_version(str(raw_version))

    sources = {**root_sources, **_uv_sources(doc, pkg_dir)}
    dependencies: list[Dependency] = []
    for raw in project.get('dependencies', []):
        try:
            req = Requirement(str(raw))
        except InvalidRequirement as exc:
            raise ReleasePlanError(
                code=E.WORKSPACE_PARSE_ERROR,
                message=f'Invalid requirement {raw!r} in {manifest_path}: {exc}',
                hint='Dependencies must be PEP 508 requirement strings.',
            ) from exc
        dep_name = canonicalize_name(req.name)
        source = sources.get(dep_name, {})
        path = source.get('path')
        dependencies.append(
            Dependency(
                name=dep_name,
                specifier=str(req.specifier),
                requirement=str(raw).strip(),
                path=path,
                workspace=bool(source.get('workspace')),
            )
        )

    scripts = project.get('scripts') or project.get('gui-scripts')
    return Package(
        name=canonicalize_name(name),
        version=version,
        path=pkg_dir.resolve(),
        manifest_path=manifest_path.resolve(),
        dependencies=tuple(dependencies),
        version_inherited=inherited,
        is_publishable=_is_publishable(list(project.get('classifiers', []))),
        has_library=bool(settings.get('library', True)),
        has_executable=bool(scripts),
        readme=_readme_path(project, pkg_dir),
    )


def discover_workspace(root: Path, *, exclude_patterns: list[str] | None = None) -> Workspace:
    """Discover every package of the uv workspace rooted at ``root``.

    Args:
        root: Directory containing the root ``pyproject.toml``.
        exclude_patterns: Package name globs to leave out.

    Returns:
        The :class:`Workspace`, packages sorted by name.

    Raises:
        ReleasePlanError: If the root manifest has no workspace section,
            a member manifest is malformed, or two members share a name.
    """
    root = root.resolve()
    doc = load_manifest(root / MANIFEST_NAME)
    uv_workspace = doc.get('tool', {}).get('uv', {}).get('workspace')
    if uv_workspace is None:
        raise ReleasePlanError(
            code=E.WORKSPACE_NOT_FOUND,
            message=f'No [tool.uv.workspace] section in {root / MANIFEST_NAME}',
            hint='Run releaseplan from the workspace root or pass --root.',
        )

    raw_ws_version = doc.get('tool', {}).get('releaseplan', {}).get('workspace', {}).get('version')
    workspace_version = parse_version(str(raw_ws_version)) if raw_ws_version is not None else None

    pkg_dirs = _expand_member_globs(
        root,
        [str(m) for m in uv_workspace.get('members', [])],
        [str(x) for x in uv_workspace.get('exclude', [])],
    )
    root_sources = _uv_sources(doc, root)

    packages: dict[str, Package] = {}
    for pkg_dir in pkg_dirs:
        pkg = _parse_package(pkg_dir, root_sources, workspace_version)
        if exclude_patterns and any(fnmatch.fnmatch(pkg.name, pat) for pat in exclude_patterns):
            logger.debug('package_excluded', package=pkg.name)
            continue
        if pkg.name in packages:
            raise ReleasePlanError(
                code=E.WORKSPACE_DUPLICATE_PACKAGE,
                message=f'Package {pkg.name} is defined in both {packages[pkg.name].path} and {pkg.path}',
                hint='Package names must be unique within a workspace.',
            )
        packages[pkg.name] = pkg

    logger.info('workspace_discovered', root=str(root), packages=len(packages))
    return Workspace(
        root=root,
        packages=tuple(sorted(packages.values(), key=lambda p: p.name)),
        version=workspace_version,
    )


__all__ = [
    'LOCKFILE_NAME',
    'MANIFEST_NAME',
    'Dependency',
    'Package',
    'Workspace',
    'discover_workspace',
    'load_manifest',
    'normalize_name',
    'requirement_specifiers',
]
