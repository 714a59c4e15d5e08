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

"""Version Coordinator: unify versions across groups and the workspace.

Each package first gets an independent candidate from the version
rules. The coordinator then replaces the candidates of packages that
must move together::

    version_group "sdk":  a 1.2.1, b 1.3.0, c 1.2.0 (unchanged)
                          -> a, b, c all 1.3.0

    version_group "cli":  d 2.0.0, e 1.9.0 (no candidates)
                          -> d, e both 2.0.0

    workspace 0.4.0:      x 0.4.1, y 0.5.0, z 0.3.9 (stale, ignored)
                          -> workspace 0.5.0, x, y, z all 0.5.0

Packages inheriting the workspace version never take part in a group.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

import semver

from releaseplan.errors import E, ReleasePlanError
from releaseplan.logging import get_logger
from releaseplan.workspace import Package

logger = get_logger(__name__)


@dataclass(frozen=True)
class CoordinatedVersions:
    """Result of coordination.

    Attributes:
        versions: Next version per package name, for every candidate.
        workspace_version: New workspace version, or ``None`` when it
            does not change.
        groups: Agreed version per group name.
    """

    versions: dict[str, semver.Version]
    workspace_version: semver.Version | None = None
    groups: dict[str, semver.Version] = field(default_factory=dict)


class VersionCoordinator:
    """Applies workspace and group unification to candidate versions.

    Args:
        version_groups: Group name per package name.
        workspace_version: The current shared workspace version, if any.
    """

    def __init__(
        self,
        version_groups: Mapping[str, str] | None = None,
        workspace_version: semver.Version | None = None,
    ) -> None:
        """Store group membership and the current workspace version."""
        self._groups = dict(version_groups or {})
        self._workspace_version = workspace_version

    def validate(self, packages: Mapping[str, Package]) -> None:
        """Reject packages that both inherit the workspace version and join a group."""
        for name, group in sorted(self._groups.items()):
            pkg = packages.get(name)
            if pkg is not None and pkg.version_inherited:
                raise ReleasePlanError(
                    code=E.CONFIG_INVALID_VALUE,
                    message=f'Package {name} inherits the workspace version and is in version_group {group!r}.',
                    hint='Remove version_group for packages using the workspace version.',
                )

    def coordinate(
        self,
        packages: Mapping[str, Package],
        candidates: Mapping[str, semver.Version],
    ) -> CoordinatedVersions:
        """Unify ``candidates``.

        Args:
            packages: Every package taking part in the run, by name.
            candidates: Independently computed next version per package.
                Packages without a candidate keep their current version.

        Returns:
            The coordinated versions. Members of a group or of the
            workspace set that had no candidate are included when their
            set moves.
        """
        self.validate(packages)
        versions = dict(candidates)

        inherited = [name for name, pkg in packages.items() if pkg.version_inherited]
        workspace_version: semver.Version | None = None
        if inherited and self._workspace_version is not None:
            qualifying = [
                candidates[name]
                for name in inherited
                if name in candidates and candidates[name] >= self._workspace_version
            ]
            if qualifying:
                new = max(qualifying)
                if new != self._workspace_version:
                    workspace_version = new
                for name in inherited:
                    versions[name] = new
                logger.info('workspace_version', current=str(self._workspace_version), next=str(new))
            else:
                for name in inherited:
                    versions.pop(name, None)

        groups: dict[str, semver.Version] = {}
        members: dict[str, list[str]] = {}
        for name, group in self._groups.items():
            if name in packages:
                members.setdefault(group, []).append(name)
        for group, names in sorted(members.items()):
            current = [packages[n].version for n in names]
            grouped = [candidates[n] for n in names if n in candidates]
            agreed = max([*grouped, *current])
            # Nothing to do for an untouched group already in line.
            if not grouped and all(c == agreed for c in current):
                continue
            groups[group] = agreed
            for name in names:
                versions[name] = agreed
            logger.info('version_group', group=group, version=str(agreed), members=sorted(names))

        return CoordinatedVersions(versions=versions, workspace_version=workspace_version, groups=groups)


__all__ = ['CoordinatedVersions', 'VersionCoordinator']
