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

"""Dependency Propagator: bump packages whose local dependencies moved.

When ``core`` is released as ``0.2.0``, a package requiring
``core>=0.1.0`` from the workspace must be released too, so that its
published metadata points at a version that exists. The propagator runs
in waves until nothing new is scheduled::

    wave 1: changed = {core 0.2.0}
            plugin  (core>=0.1.0)   -> 0.3.1 -> 0.3.2
            app     (plugin>=0.3.1) -> not yet
    wave 2: changed = {core, plugin}
            app     (plugin>=0.3.1) -> 1.0.0 -> 1.0.1
    wave 3: nothing new, stop

Every package is scheduled at most once per run, even if the manifests
describe a cycle.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

import semver
from packaging.specifiers import InvalidSpecifier, SpecifierSet
from packaging.version import InvalidVersion, Version

from releaseplan.diff import Commit
from releaseplan.logging import get_logger
from releaseplan.versioning import VersionIncrement, apply_increment
from releaseplan.workspace import Package

logger = get_logger(__name__)

LOCAL_PACKAGES_UPDATE_PREFIX = 'chore: updated the following local packages: '

# Operators whose version is a lower bound the constraint already accepts.
_FLOOR_OPERATORS = frozenset({'>=', '==', '~=', '==='})


def _pep440(version: semver.Version) -> Version:
    text = f'{version.major}.{version.minor}.{version.patch}'
    if version.prerelease:
        text += f'-{version.prerelease}'
    return Version(text)


def constraint_requires_update(specifier: str, new_version: semver.Version) -> bool:
    """Whether a requirement on a dependency should follow it to ``new_version``.

    A constraint with a lower bound (``>=``, ``==``, ``~=``) needs updating
    when the new version is above that bound. A constraint without one
    needs updating only when it no longer admits the new version.
    Unparseable input is treated as needing an update.

    >>> constraint_requires_update('>=0.1.0', semver.Version.parse('0.1.1'))
    True
    >>> constraint_requires_update('>=0.1.1', semver.Version.parse('0.1.1'))
    False
    >>> constraint_requires_update('<2', semver.Version.parse('1.4.0'))
    False
    """
    try:
        spec_set = SpecifierSet(specifier)
        new = _pep440(new_version)
    except (InvalidSpecifier, InvalidVersion):
        return True

    floors: list[Version] = []
    for spec in spec_set:
        if spec.operator not in _FLOOR_OPERATORS:
            continue
        try:
            floors.append(Version(spec.version.removesuffix('.*')))
        except InvalidVersion:
            return True
    if floors:
        return new > max(floors)
    return not spec_set.contains(new, prereleases=True)


def propagated_version(current: semver.Version) -> semver.Version:
    """Next version for a package bumped only because a dependency moved."""
    if current.prerelease:
        return apply_increment(current, VersionIncrement.PRERELEASE)
    return apply_increment(current, VersionIncrement.PATCH)


def local_packages_update_commit(names: Sequence[str]) -> Commit:
    """Synthetic commit listing the updated local dependencies."""
    return Commit.synthetic(LOCAL_PACKAGES_UPDATE_PREFIX + ', '.join(names))


@dataclass(frozen=True)
class PropagatedUpdate:
    """A package scheduled solely because of its dependencies."""

    package: Package
    version: semver.Version
    commit: Commit
    updated_dependencies: tuple[str, ...]


@dataclass
class PropagationResult:
    """Output of :meth:`DependencyPropagator.propagate`."""

    updates: list[PropagatedUpdate] = field(default_factory=list)
    waves: int = 0


class DependencyPropagator:
    """Schedules cascading updates to a fixed point."""

    def _dependencies_moved(
        self,
        candidate: Package,
        changed: Mapping[str, semver.Version],
    ) -> list[str]:
        return sorted(
            {
                dep.name
                for dep in candidate.local_dependencies
                if dep.name in changed and constraint_requires_update(dep.specifier, changed[dep.name])
            }
        )

    def propagate(
        self,
        changed: Mapping[str, semver.Version],
        candidates: Sequence[Package],
    ) -> PropagationResult:
        """Schedule every candidate that depends, directly or not, on ``changed``.

        Args:
            changed: Packages already in the plan and their next versions.
            candidates: Packages not yet in the plan.

        Returns:
            The scheduled updates in wave order, and the number of waves
            that scheduled something.
        """
        current = dict(changed)
        processed: set[str] = set(current)
        result = PropagationResult()

        while True:
            wave: list[PropagatedUpdate] = []
            for candidate in candidates:
                if candidate.name in processed:
                    continue
                moved = self._dependencies_moved(candidate, current)
                if not moved:
                    continue
                version = propagated_version(candidate.version)
                wave.append(
                    PropagatedUpdate(
                        package=candidate,
                        version=version,
                        commit=local_packages_update_commit(moved),
                        updated_dependencies=tuple(moved),
                    )
                )
            if not wave:
                break
            result.waves += 1
            for update in wave:
                processed.add(update.package.name)
                current[update.package.name] = update.version
                logger.info(
                    'dependency_propagated',
                    package=update.package.name,
                    version=str(update.version),
                    dependencies=list(update.updated_dependencies),
                    wave=result.waves,
                )
            result.updates.extend(wave)

        return result


__all__ = [
    'LOCAL_PACKAGES_UPDATE_PREFIX',
    'DependencyPropagator',
    'PropagatedUpdate',
    'PropagationResult',
    'constraint_requires_update',
    'local_packages_update_commit',
    'propagated_version',
]
