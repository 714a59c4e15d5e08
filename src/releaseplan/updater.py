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

"""Update Plan Assembler: turn per-package diffs into a release plan.

:meth:`Updater.packages_to_update` runs the whole pipeline for a
workspace and returns an :class:`UpdatePlan`.

Pipeline::

    resolve snapshots ──► diff (one package at a time, cancellable)
         (parallel)              │
                                 ▼
                      changelog_include (dedup)
                                 │
                                 ▼
                      compat checks (bounded pool)
                                 │
                                 ▼
                      release_commits filter, candidate versions
                                 │
                                 ▼
              ┌──► coordinate (groups, workspace) ──► propagate ──┐
              └──────────────── new packages scheduled ◄──────────┘
                                 │
                                 ▼
                      changelogs ──► UpdatePlan

Key Concepts (ELI5)::

    ┌─────────────────────────┬────────────────────────────────────────────┐
    │ Concept                 │ ELI5 Explanation                           │
    ├─────────────────────────┼────────────────────────────────────────────┤
    │ UpdateResult            │ What happens to one package: its next      │
    │                         │ version, changelog and compat verdict.     │
    ├─────────────────────────┼────────────────────────────────────────────┤
    │ UpdatePlan              │ Every UpdateResult in order, the new       │
    │                         │ workspace version, and packages that       │
    │                         │ failed along the way.                      │
    ├─────────────────────────┼────────────────────────────────────────────┤
    │ RunState                │ Scratch state for one run, e.g. "already   │
    │                         │ warned that the checker is missing".       │
    └─────────────────────────┴────────────────────────────────────────────┘
"""

from __future__ import annotations

import asyncio
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

import semver

from releaseplan.backends.vcs import SourceControl
from releaseplan.changelog import ChangelogRenderer, MarkdownChangelogRenderer, update_changelog
from releaseplan.compat import (
    CompatibilityChecker,
    CompatOutcome,
    Skipped,
    Unavailable,
    run_compat_checks,
)
from releaseplan.config import ReleasePlanConfig
from releaseplan.coordinator import VersionCoordinator
from releaseplan.diff import Commit, Diff
from releaseplan.diff_engine import DiffEngine
from releaseplan.errors import E, ReleasePlanError
from releaseplan.logging import get_logger
from releaseplan.package_files import PackagedFileCalculator, SourceTreeCalculator
from releaseplan.propagation import DependencyPropagator
from releaseplan.snapshot import PublishedSnapshot, SnapshotResolver, resolve_snapshot
from releaseplan.versioning import next_version_from_diff
from releaseplan.workspace import Package, Workspace

logger = get_logger(__name__)


@dataclass(frozen=True)
class UpdateResult:
    """The decision for one package.

    Attributes:
        version: Next version.
        changelog: New changelog content, ``None`` when not updated.
        compat_check: Outcome of the API compatibility check.
        registry_version: Last published version, when the local
            version was already bumped past it.
        commits: Commits in changelog order.
    """

    version: semver.Version
    changelog: str | None = None
    compat_check: CompatOutcome = field(default_factory=Skipped)
    registry_version: semver.Version | None = None
    commits: tuple[Commit, ...] = ()


@dataclass(frozen=True)
class PackageFailure:
    """A package left out of the plan because processing it failed."""

    package: str
    stage: str
    error: str


@dataclass
class UpdatePlan:
    """Ordered release decisions for a workspace.

    Attributes:
        updates: ``(package, result)`` pairs; packages with their own
            changes first, then those pulled in by dependencies.
        workspace_version: New shared workspace version, if it changes.
        failures: Packages skipped because of an error.
    """

    updates: list[tuple[Package, UpdateResult]] = field(default_factory=list)
    workspace_version: semver.Version | None = None
    failures: list[PackageFailure] = field(default_factory=list)

    def get(self, name: str) -> UpdateResult | None:
        """Result for package ``name``, if it is in the plan."""
        return next((r for p, r in self.updates if p.name == name), None)

    @property
    def names(self) -> list[str]:
        """Names of the planned packages in plan order."""
        return [p.name for p, _ in self.updates]


@dataclass
class RunState:
    """State scoped to one :meth:`Updater.packages_to_update` call."""

    compat_announced: bool = False
    compat_unavailable_reported: bool = False
    changelogs: dict[Path, str] = field(default_factory=dict)
    failures: list[PackageFailure] = field(default_factory=list)

    def announce_compat(self, count: int) -> None:
        """Log the start of compatibility checking once per run."""
        if self.compat_announced:
            return
        self.compat_announced = True
        logger.info('compat_checks_started', packages=count)

    def report_compat_unavailable(self, reason: str) -> None:
        """Warn once per run that the checker cannot run."""
        if self.compat_unavailable_reported:
            return
        self.compat_unavailable_reported = True
        logger.warning('compat_checker_unavailable', reason=reason, hint='Compatibility checks are skipped.')

    def fail(self, package: str, stage: str, exc: Exception) -> None:
        """Record a per-package failure."""
        logger.error('package_failed', package=package, stage=stage, error=str(exc), exc_type=type(exc).__name__)
        self.failures.append(PackageFailure(package=package, stage=stage, error=str(exc)))


class Updater:
    """Computes the :class:`UpdatePlan` of a workspace.

    Args:
        workspace: The discovered workspace.
        config: Validated configuration.
        vcs: Gateway to the working copy; exclusively used by this run.
        registry: Registry resolver, skipped for ``git_only`` packages.
        tags: Release tag resolver.
        compat: Compatibility checker, ``None`` to skip all checks.
        renderer: Changelog renderer.
        calculator: Packaged file set calculator.
    """

    def __init__(
        self,
        workspace: Workspace,
        config: ReleasePlanConfig,
        *,
        vcs: SourceControl,
        registry: SnapshotResolver | None = None,
        tags: SnapshotResolver | None = None,
        compat: CompatibilityChecker | None = None,
        renderer: ChangelogRenderer | None = None,
        calculator: PackagedFileCalculator | None = None,
    ) -> None:
        """Wire the collaborators."""
        self._workspace = workspace
        self._config = config
        self._vcs = vcs
        self._registry = registry
        self._tags = tags
        self._compat = compat
        self._renderer = renderer or MarkdownChangelogRenderer()
        self._engine = DiffEngine(
            vcs,
            calculator or SourceTreeCalculator(config.exclude),
            allow_dirty=config.allow_dirty,
            tag_templates={p.name: config.for_package(p.name).tag_name_template for p in workspace.packages},
            default_tag_template=config.defaults.tag_name_template,
        )
        self._coordinator = VersionCoordinator(config.version_groups, workspace.version)
        self._propagator = DependencyPropagator()

    def _releasable(self) -> list[Package]:
        result = []
        for pkg in self._workspace.packages:
            if not self._config.for_package(pkg.name).release:
                logger.debug('package_release_disabled', package=pkg.name)
            elif not pkg.is_publishable:
                logger.debug('package_not_publishable', package=pkg.name)
            else:
                result.append(pkg)
        return result

    async def packages_to_update(self, cancel: asyncio.Event | None = None) -> UpdatePlan:
        """Compute the release plan.

        Args:
            cancel: When set, the run stops before the next package's
                history walk with ``RP-RUN-CANCELLED``. A walk in
                progress always finishes and restores head first.

        Raises:
            ReleasePlanError: On a dirty working copy, tag
                inconsistencies, or cancellation.
        """
        state = RunState()
        packages = self._releasable()
        by_name = {p.name: p for p in packages}
        self._coordinator.validate(by_name)
        await self._engine.ensure_clean()

        with tempfile.TemporaryDirectory(prefix='releaseplan-') as tmp:
            snapshots = await self._resolve_snapshots(packages, Path(tmp), state)
            diffs = await self._diff_all(packages, snapshots, state, cancel)
            self._include_changelogs(diffs)
            await self._check_compat(by_name, diffs, snapshots, state)
            plan = self._assemble(by_name, diffs, snapshots, state)

        plan.failures = state.failures
        logger.info(
            'plan_ready',
            packages=plan.names,
            workspace_version=str(plan.workspace_version) if plan.workspace_version else None,
            failures=len(plan.failures),
        )
        return plan

    async def _resolve_snapshots(
        self,
        packages: list[Package],
        workdir: Path,
        state: RunState,
    ) -> dict[str, PublishedSnapshot | None]:
        async def _one(pkg: Package) -> PublishedSnapshot | None:
            registry = None if self._config.for_package(pkg.name).git_only else self._registry
            return await resolve_snapshot(pkg, workdir, registry=registry, tags=self._tags)

        results = await asyncio.gather(*(_one(p) for p in packages), return_exceptions=True)
        snapshots: dict[str, PublishedSnapshot | None] = {}
        for pkg, result in zip(packages, results):
            if isinstance(result, ReleasePlanError):
                raise result
            if isinstance(result, Exception):
                state.fail(pkg.name, 'snapshot', result)
                continue
            if isinstance(result, BaseException):
                raise result
            snapshots[pkg.name] = result
        return snapshots

    async def _diff_all(
        self,
        packages: list[Package],
        snapshots: dict[str, PublishedSnapshot | None],
        state: RunState,
        cancel: asyncio.Event | None,
    ) -> dict[str, Diff]:
        diffs: dict[str, Diff] = {}
        for pkg in packages:
            if pkg.name not in snapshots:
                continue
            if cancel is not None and cancel.is_set():
                raise ReleasePlanError(
                    code=E.RUN_CANCELLED,
                    message=f'Run cancelled before diffing {pkg.name}.',
                    hint='The working copy is at its original head.',
                )
            try:
                diffs[pkg.name] = await self._engine.diff(pkg, snapshots[pkg.name])
            except ReleasePlanError:
                logger.error('package_diff_aborted', package=pkg.name)
                raise
            except Exception as exc:  # noqa: BLE001 - recorded, the run continues
                state.fail(pkg.name, 'diff', exc)
        return diffs

    def _include_changelogs(self, diffs: dict[str, Diff]) -> None:
        originals = {name: list(diff.commits) for name, diff in diffs.items()}
        for name, diff in diffs.items():
            for other in self._config.for_package(name).changelog_include:
                if other in originals and other != name:
                    diff.add_commits(originals[other])

    async def _check_compat(
        self,
        packages: dict[str, Package],
        diffs: dict[str, Diff],
        snapshots: dict[str, PublishedSnapshot | None],
        state: RunState,
    ) -> None:
        if self._compat is None:
            return
        jobs: dict[str, tuple[Path, Path]] = {}
        for name, diff in diffs.items():
            snapshot = snapshots.get(name)
            pkg = packages[name]
            if (
                snapshot is not None
                and pkg.has_library
                and self._config.for_package(name).compat_check
                and diff.should_update_version()
            ):
                jobs[name] = (pkg.path, snapshot.content_dir)
        if not jobs:
            return

        state.announce_compat(len(jobs))
        results = await run_compat_checks(self._compat, jobs, workers=self._config.compat_workers)
        for name, result in results.items():
            if isinstance(result, Unavailable):
                state.report_compat_unavailable(result.reason)
                diffs[name].compat_check = Skipped()
            else:
                diffs[name].compat_check = result

    def _assemble(
        self,
        packages: dict[str, Package],
        diffs: dict[str, Diff],
        snapshots: dict[str, PublishedSnapshot | None],
        state: RunState,
    ) -> UpdatePlan:
        candidates: dict[str, semver.Version] = {}
        for name, diff in diffs.items():
            cfg = self._config.for_package(name)
            pattern = cfg.release_commits_pattern()
            if pattern is not None and diff.commits and not diff.any_commit_matches(pattern):
                logger.info('no_release_commits', package=name, pattern=cfg.release_commits)
                continue
            if diff.commits or not diff.is_version_published or not diff.registry_package_exists:
                candidates[name] = next_version_from_diff(packages[name].version, diff, cfg.policy())

        propagated: dict[str, Commit] = {}
        while True:
            coordinated = self._coordinator.coordinate(packages, candidates)
            changed = {
                name: version
                for name, version in coordinated.versions.items()
                if name in diffs and (name in candidates or version != packages[name].version)
            }
            remaining = [p for p in packages.values() if p.name not in changed and p.name in diffs]
            result = self._propagator.propagate(changed, remaining)
            if not result.updates:
                break
            for update in result.updates:
                candidates[update.package.name] = update.version
                propagated[update.package.name] = update.commit

        plan = UpdatePlan(workspace_version=coordinated.workspace_version)
        ordered = sorted(changed, key=lambda n: (n in propagated, list(packages).index(n)))
        for name in ordered:
            pkg = packages[name]
            diff = diffs[name]
            commits = (
                [propagated[name]]
                if name in propagated
                else diff.sorted_commits(self._config.sort_commits == 'oldest')
            )
            snapshot = snapshots.get(name)
            version = changed[name]
            try:
                changelog = self._changelog(pkg, version, commits, diff, snapshot, state)
            except OSError as exc:
                state.fail(name, 'changelog', exc)
                continue
            plan.updates.append(
                (
                    pkg,
                    UpdateResult(
                        version=version,
                        changelog=changelog,
                        compat_check=diff.compat_check,
                        registry_version=diff.registry_version,
                        commits=tuple(commits),
                    ),
                )
            )
        return plan

    def _changelog(
        self,
        pkg: Package,
        version: semver.Version,
        commits: list[Commit],
        diff: Diff,
        snapshot: PublishedSnapshot | None,
        state: RunState,
    ) -> str | None:
        if not commits or not self._config.for_package(pkg.name).changelog_update:
            return None
        path = (pkg.path / self._config.for_package(pkg.name).changelog_path).resolve()
        if path in state.changelogs:
            existing: str | None = state.changelogs[path]
        else:
            existing = path.read_text(encoding='utf-8') if path.is_file() else None
        section = self._renderer.build(pkg.name, version, commits, snapshot.version if snapshot else None)
        content = update_changelog(
            existing,
            section,
            next_version=version,
            is_version_published=diff.is_version_published,
        )
        state.changelogs[path] = content
        return content


__all__ = [
    'PackageFailure',
    'RunState',
    'UpdatePlan',
    'UpdateResult',
    'Updater',
]
