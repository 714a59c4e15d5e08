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

"""Per-package change records produced by the history walk.

A :class:`Diff` is created empty for each package at the start of an
update run, filled in by :class:`~releaseplan.diff_engine.DiffEngine`,
and then only read by the version rules and the plan assembler.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field

import semver

from releaseplan.compat import CompatOutcome, Skipped

# Commit id used for synthetic entries that no real commit backs.
NO_COMMIT_ID = '0000000'


@dataclass(frozen=True)
class Signature:
    """Author or committer of a commit."""

    name: str
    email: str = ''
    timestamp: int = 0


@dataclass(frozen=True)
class RemoteContributor:
    """Contributor details from the hosting platform (username, PR)."""

    username: str
    pr_number: int | None = None


@dataclass(frozen=True)
class Commit:
    """A commit contributing to a release.

    Two commits are the same change when both ``id`` and ``message`` match,
    so synthetic entries with :data:`NO_COMMIT_ID` stay distinct.
    """

    id: str
    message: str
    author: Signature | None = field(default=None, compare=False)
    committer: Signature | None = field(default=None, compare=False)
    remote: RemoteContributor | None = field(default=None, compare=False)

    @classmethod
    def synthetic(cls, message: str) -> Commit:
        """Build a generated entry with no backing commit."""
        return cls(id=NO_COMMIT_ID, message=message)

    @property
    def is_synthetic(self) -> bool:
        """Whether this entry was generated rather than read from history."""
        return self.id == NO_COMMIT_ID

    @property
    def short_id(self) -> str:
        """First seven characters of the id."""
        return self.id[:7]


@dataclass
class Diff:
    """Changes attributable to one package since its last publication.

    Attributes:
        commits: Contributing commits, newest first as discovered.
        registry_package_exists: A package with this name was found in
            the registry or in release tags.
        is_version_published: The current local version is the published
            one. ``False`` means the user already bumped it by hand.
        compat_check: Outcome of the API compatibility check.
        registry_version: Last published version, set when the local
            version is ahead of it.
    """

    registry_package_exists: bool
    commits: list[Commit] = field(default_factory=list)
    is_version_published: bool = True
    compat_check: CompatOutcome = field(default_factory=Skipped)
    registry_version: semver.Version | None = None

    def should_update_version(self) -> bool:
        """Whether the version rules should compute a new version."""
        return self.registry_package_exists and bool(self.commits) and self.is_version_published

    def set_version_unpublished(self, registry_version: semver.Version) -> None:
        """Record that the local version was bumped past ``registry_version``."""
        self.is_version_published = False
        self.registry_version = registry_version

    def add_commit(self, commit: Commit) -> None:
        """Append ``commit``."""
        self.commits.append(commit)

    def add_commits(self, commits: Iterable[Commit]) -> None:
        """Append every commit that is not already present."""
        for commit in commits:
            if commit not in self.commits:
                self.commits.append(commit)

    def any_commit_matches(self, pattern: re.Pattern[str]) -> bool:
        """Whether any commit message matches ``pattern``."""
        return any(pattern.search(c.message) for c in self.commits)

    def sorted_commits(self, oldest_first: bool) -> list[Commit]:
        """Commits in changelog order."""
        return list(reversed(self.commits)) if oldest_first else list(self.commits)


__all__ = [
    'NO_COMMIT_ID',
    'Commit',
    'Diff',
    'RemoteContributor',
    'Signature',
]
