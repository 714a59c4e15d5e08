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

"""Diff Engine: find the commits a package has accumulated since its last release.

The engine checks out history one commit at a time, restricted to the
package's paths, and compares what the package would publish at each
point with the published snapshot.

Walk (per package)::

    AT_HEAD ──checkout_last_at(paths)──► WALKING(commit)
                                            │
          ┌─────────────────────────────────┤ per commit, first match wins:
          │                                 │
          │  too old (ancestor of tag or    │  stop
          │  published_at) / content equal  │  (synthetic deps commit if empty)
          │  local version > published      │  stop, version unpublished
          │  touches packaged files         │  record commit
          │                                 │
          └──checkout_previous(paths)───────┘  NoMoreHistory: stop
                                            │
                                      RESTORING ──checkout(head)──► AT_HEAD

Key Concepts (ELI5)::

    ┌─────────────────────────┬────────────────────────────────────────────┐
    │ Concept                 │ ELI5 Explanation                           │
    ├─────────────────────────┼────────────────────────────────────────────┤
    │ Relevant paths          │ The package directory plus a readme kept   │
    │                         │ outside it. Only commits touching these    │
    │                         │ are visited.                               │
    ├─────────────────────────┼────────────────────────────────────────────┤
    │ Content boundary        │ The first commit (walking back) where the  │
    │                         │ package matches the published files byte   │
    │                         │ for byte. Nothing older is pending.        │
    ├─────────────────────────┼────────────────────────────────────────────┤
    │ Pre-bumped              │ The user already raised the version by     │
    │                         │ hand. The engine stops and leaves it.      │
    ├─────────────────────────┼────────────────────────────────────────────┤
    │ Walk lock               │ One shared working copy, so only one walk  │
    │                         │ may run at a time.                         │
    └─────────────────────────┴────────────────────────────────────────────┘

The working copy is always checked out back to the original head before
:meth:`DiffEngine.diff` returns or raises.
"""

from __future__ import annotations

import asyncio
import shutil
import tempfile
from collections.abc import Mapping
from enum import Enum
from pathlib import Path

from releaseplan.backends.vcs import NoMoreHistory, SourceControl
from releaseplan.diff import Commit, Diff
from releaseplan.errors import E, ReleasePlanError
from releaseplan.logging import get_logger
from releaseplan.package_compare import (
    are_dependencies_updated,
    are_packages_equal,
    is_lock_updated,
)
from releaseplan.package_files import PackagedFileCalculator
from releaseplan.snapshot import PublishedSnapshot
from releaseplan.tags import DEFAULT_TAG_TEMPLATE, format_tag
from releaseplan.workspace import LOCKFILE_NAME, MANIFEST_NAME, Package

logger = get_logger(__name__)

DEPENDENCIES_UPDATE_MESSAGE = f'chore: update {MANIFEST_NAME} dependencies'
LOCK_UPDATE_MESSAGE = f'chore: update {LOCKFILE_NAME} dependencies'


class WalkState(Enum):
    """Where the shared working copy is."""

    AT_HEAD = 'at_head'
    WALKING = 'walking'
    RESTORING = 'restoring'


def _repo_path(prefix: str, rel: str) -> str:
    return rel if prefix in ('', '.') else f'{prefix}/{rel}'


def _under(path: str, prefix: str) -> bool:
    return prefix in ('', '.') or path.startswith(prefix + '/')


class DiffEngine:
    """Builds a :class:`~releaseplan.diff.Diff` per package by walking history.

    Args:
        vcs: Gateway to the working copy. The engine owns it for the
            whole run.
        calculator: Computes packaged file sets.
        allow_dirty: Skip the clean working copy check.
        tag_templates: Per-package release tag templates.
        default_tag_template: Template for packages without an override.
    """

    def __init__(
        self,
        vcs: SourceControl,
        calculator: PackagedFileCalculator,
        *,
        allow_dirty: bool = False,
        tag_templates: Mapping[str, str] | None = None,
        default_tag_template: str = DEFAULT_TAG_TEMPLATE,
    ) -> None:
        """Initialize the engine at head."""
        self._vcs = vcs
        self._calculator = calculator
        self._allow_dirty = allow_dirty
        self._tag_templates = dict(tag_templates or {})
        self._default_tag_template = default_tag_template
        self._lock = asyncio.Lock()
        self.state = WalkState.AT_HEAD
        self.position: str | None = None

    def _relevant_paths(self, package: Package) -> list[str]:
        root = self._vcs.root.resolve()
        paths = [package.path.resolve().relative_to(root).as_posix()]
        readme = package.external_readme()
        if readme is not None:
            paths.append(readme.resolve().relative_to(root).as_posix())
        return paths

    async def ensure_clean(self) -> None:
        """Raise ``RP-WORKTREE-DIRTY`` unless the working copy is clean or dirt is allowed."""
        if self._allow_dirty:
            return
        if not await self._vcs.is_clean():
            raise ReleasePlanError(
                code=E.WORKTREE_DIRTY,
                message=f'The working tree at {self._vcs.root} has uncommitted changes.',
                hint='Commit or stash your changes, or pass --allow-dirty.',
            )

    async def diff(self, package: Package, snapshot: PublishedSnapshot | None) -> Diff:
        """Compute the :class:`~releaseplan.diff.Diff` of ``package`` against ``snapshot``.

        Args:
            package: The package, as read at head.
            snapshot: Its last published state, or ``None`` if never published.

        Raises:
            ReleasePlanError: ``RP-WORKTREE-DIRTY``,
                ``RP-TAG-WITHOUT-ARTIFACT`` or ``RP-VERSION-BEHIND-TAG``.
        """
        async with self._lock:
            await self.ensure_clean()
            head = await self._vcs.current_head()
            tag_commit = await self._check_current_tag(package, snapshot)
            with tempfile.TemporaryDirectory(prefix='releaseplan-head-') as tmp:
                head_state = self._capture_head_state(package, Path(tmp))
                try:
                    return await self._walk(package, snapshot, tag_commit, head_state)
                finally:
                    if self.state is not WalkState.AT_HEAD:
                        self.state = WalkState.RESTORING
                        await self._vcs.checkout(head)
                        self.state = WalkState.AT_HEAD
                        self.position = None

    async def _check_current_tag(self, package: Package, snapshot: PublishedSnapshot | None) -> str | None:
        """Validate the release tag of the current version, returning its commit."""
        template = self._tag_templates.get(package.name, self._default_tag_template)
        tag = format_tag(template, name=package.name, version=package.version)
        tag_commit = await self._vcs.tag_commit(tag)
        if tag_commit is None:
            return None
        if snapshot is None:
            raise ReleasePlanError(
                code=E.TAG_WITHOUT_ARTIFACT,
                message=f'Package {package.name} was not found in the registry, but the git tag {tag} exists.',
                hint='Consider publishing this version manually.',
            )
        if snapshot.version != package.version:
            raise ReleasePlanError(
                code=E.VERSION_BEHIND_TAG,
                message=(
                    f'Package {package.name} has version {package.version} while the published version is '
                    f'{snapshot.version}, but the git tag {tag} exists.'
                ),
                hint='Consider publishing the new version manually.',
            )
        return tag_commit

    def _capture_head_state(self, package: Package, dest: Path) -> Path:
        """Copy the head manifest and lockfile aside before history is checked out."""
        shutil.copyfile(package.manifest_path, dest / MANIFEST_NAME)
        lockfile = self._vcs.root / LOCKFILE_NAME
        if lockfile.is_file():
            shutil.copyfile(lockfile, dest / LOCKFILE_NAME)
        return dest

    async def _walk(
        self,
        package: Package,
        snapshot: PublishedSnapshot | None,
        tag_commit: str | None,
        head_state: Path,
    ) -> Diff:
        diff = Diff(registry_package_exists=snapshot is not None)
        paths = self._relevant_paths(package)
        try:
            commit = await self._vcs.checkout_last_at(paths)
        except NoMoreHistory:
            logger.info('no_commits_for_package', package=package.name, paths=paths)
            return diff

        self.state = WalkState.WALKING
        while True:
            self.position = commit
            if await self._visit(package, snapshot, tag_commit, head_state, diff, commit, paths):
                break
            try:
                commit = await self._vcs.checkout_previous(paths)
            except NoMoreHistory:
                logger.debug('history_exhausted', package=package.name)
                break

        logger.info('package_diff', package=package.name, commits=len(diff.commits))
        return diff

    async def _visit(
        self,
        package: Package,
        snapshot: PublishedSnapshot | None,
        tag_commit: str | None,
        head_state: Path,
        diff: Diff,
        commit: str,
        paths: list[str],
    ) -> bool:
        """Process one commit; return ``True`` to stop walking."""
        if snapshot is not None:
            if await self._is_too_old(commit, tag_commit, snapshot.published_at):
                logger.debug('walk_stopped', package=package.name, commit=commit[:7], reason='too_old')
                self._record_dependency_update(package, snapshot, head_state, diff)
                return True
            if self._is_equal(package, snapshot):
                logger.debug('walk_stopped', package=package.name, commit=commit[:7], reason='equal')
                self._record_dependency_update(package, snapshot, head_state, diff)
                return True
            if package.version > snapshot.version:
                logger.info(
                    'version_already_bumped',
                    package=package.name,
                    local=str(package.version),
                    published=str(snapshot.version),
                )
                diff.set_version_unpublished(snapshot.version)
                return True

        try:
            changed = await self._vcs.files_changed_in(commit)
            relevant = self._touches_package(package, changed, paths)
        except OSError as exc:
            logger.debug('changed_files_unavailable', package=package.name, commit=commit[:7], error=str(exc))
            relevant = True
        if relevant:
            diff.add_commit(await self._read_commit(commit))
        return False

    def _touches_package(self, package: Package, changed: set[str], paths: list[str]) -> bool:
        """Whether ``changed`` intersects the files ``package`` ships at the current commit.

        Files of nested workspace members are not part of the package. A
        file deleted by the commit counts when it was under the package
        directory and outside any nested member.

        Raises:
            OSError: If the package files cannot be enumerated, e.g. the
                manifest does not exist yet at this commit.
        """
        prefix, *extra = paths
        packaged = {_repo_path(prefix, rel) for rel in self._calculator.files_for(package.path)}
        packaged.update(extra)
        if changed & packaged:
            return True
        root = self._vcs.root.resolve()
        package_dir = package.path.resolve()
        return any(
            _under(f, prefix) and not (root / f).exists() and not self._in_nested_member(package_dir, root / f)
            for f in changed
        )

    @staticmethod
    def _in_nested_member(package_dir: Path, path: Path) -> bool:
        parent = path.parent
        while parent != package_dir and package_dir in parent.parents:
            if (parent / MANIFEST_NAME).is_file():
                return True
            parent = parent.parent
        return False

    async def _is_too_old(self, commit: str, tag_commit: str | None, published_at: str | None) -> bool:
        for boundary in (tag_commit, published_at):
            if boundary and await self._vcs.is_ancestor(commit, boundary):
                return True
        return False

    def _is_equal(self, package: Package, snapshot: PublishedSnapshot) -> bool:
        try:
            return are_packages_equal(
                package.path,
                snapshot.content_dir,
                self._calculator,
                external_readme=package.external_readme(),
            )
        except OSError as exc:
            # Covers FileNotFoundError for commits predating the package.
            logger.debug('package_files_unavailable', package=package.name, error=str(exc))
            return False

    def _record_dependency_update(
        self,
        package: Package,
        snapshot: PublishedSnapshot,
        head_state: Path,
        diff: Diff,
    ) -> None:
        if diff.commits:
            return
        if are_dependencies_updated(head_state / MANIFEST_NAME, snapshot.content_dir):
            diff.add_commit(Commit.synthetic(DEPENDENCIES_UPDATE_MESSAGE))
        elif package.has_executable and is_lock_updated(head_state / LOCKFILE_NAME, snapshot.content_dir):
            diff.add_commit(Commit.synthetic(LOCK_UPDATE_MESSAGE))

    async def _read_commit(self, commit: str) -> Commit:
        message = await self._vcs.commit_message(commit)
        author = await self._vcs.commit_author(commit)
        return Commit(id=commit, message=message, author=author)


__all__ = [
    'DEPENDENCIES_UPDATE_MESSAGE',
    'LOCK_UPDATE_MESSAGE',
    'DiffEngine',
    'WalkState',
]
