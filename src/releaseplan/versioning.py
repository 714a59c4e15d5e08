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

"""Semantic version rules: commit messages in, version increment out.

Everything in this module is pure. No git, no registry, no logging.

Key Concepts (ELI5)::

    ┌─────────────────────┬────────────────────────────────────────────────┐
    │ Concept             │ ELI5 Explanation                               │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ VersionIncrement    │ Which part of the version moves: major,       │
    │                     │ minor, patch, or the prerelease counter.      │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ VersionPolicy       │ Knobs for pre-1.0 packages and custom commit  │
    │                     │ types that should count as major or minor.    │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ Pre-1.0 rules       │ Before 1.0.0 a breaking change only bumps the │
    │                     │ minor and a feature only bumps the patch,     │
    │                     │ unless the policy says otherwise.             │
    └─────────────────────┴────────────────────────────────────────────────┘

Decision table (no policy overrides)::

    current     commits              increment    next
    ─────────   ──────────────────   ──────────   ───────
    1.2.3       (none)               None         1.2.3
    1.2.3       fix: x               PATCH        1.2.4
    1.2.3       feat: y              MINOR        1.3.0
    1.2.3       feat!: break         MAJOR        2.0.0
    0.2.3       feat: y              PATCH        0.2.4
    0.2.3       feat!: break         MINOR        0.3.0
    1.0.0-rc.1  anything             PRERELEASE   1.0.0-rc.2
    1.2.3       Update README        PATCH        1.2.4

Usage::

    from releaseplan.versioning import next_version, parse_version

    next_version(parse_version('1.2.3'), ['feat: add X'])  # Version 1.3.0
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

import semver
from packaging.version import InvalidVersion, Version as Pep440Version

from releaseplan.commit_parsing import ParsedCommit, parse_commit
from releaseplan.diff import Diff
from releaseplan.errors import E, ReleasePlanError

# Numeric identifier appended when a prerelease has no numeric component.
PRERELEASE_BASELINE = 1

# PEP 440 prerelease letters to the semver identifiers they become.
_PEP440_PRE_NAMES: dict[str, str] = {
    'a': 'alpha',
    'b': 'beta',
    'rc': 'rc',
}


class VersionIncrement(Enum):
    """The part of a version that advances for a release."""

    MAJOR = 'major'
    MINOR = 'minor'
    PATCH = 'patch'
    PRERELEASE = 'prerelease'


@dataclass(frozen=True)
class VersionPolicy:
    """Tunables for :func:`next_increment`.

    Attributes:
        features_always_increment_minor: ``feat`` commits bump the minor
            version even before 1.0.0.
        breaking_always_increment_major: Breaking commits bump the major
            version even before 1.0.0.
        custom_major_increment_regex: Commit types matching this pattern
            are treated as breaking.
        custom_minor_increment_regex: Commit types matching this pattern
            force at least a minor bump.
    """

    features_always_increment_minor: bool = False
    breaking_always_increment_major: bool = False
    custom_major_increment_regex: str | None = None
    custom_minor_increment_regex: str | None = None
    _major_re: re.Pattern[str] | None = field(init=False, repr=False, compare=False, default=None)
    _minor_re: re.Pattern[str] | None = field(init=False, repr=False, compare=False, default=None)

    def __post_init__(self) -> None:
        """Compile the custom patterns, rejecting invalid ones."""
        major_re = _compile(self.custom_major_increment_regex, 'custom_major_increment_regex')
        minor_re = _compile(self.custom_minor_increment_regex, 'custom_minor_increment_regex')
        object.__setattr__(self, '_major_re', major_re)
        object.__setattr__(self, '_minor_re', minor_re)

    def is_custom_major(self, commit: ParsedCommit) -> bool:
        """Whether ``commit`` matches the custom major pattern."""
        return _type_matches(self._major_re, commit)

    def is_custom_minor(self, commit: ParsedCommit) -> bool:
        """Whether ``commit`` matches the custom minor pattern."""
        return _type_matches(self._minor_re, commit)


def _compile(pattern: str | None, key: str) -> re.Pattern[str] | None:
    if pattern is None:
        return None
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise ReleasePlanError(
            code=E.CONFIG_INVALID_VALUE,
            message=f'{key} is not a valid regular expression: {exc}',
            hint=f'Fix the pattern {pattern!r}.',
        ) from exc


def _type_matches(pattern: re.Pattern[str] | None, commit: ParsedCommit) -> bool:
    return pattern is not None and commit.conventional and bool(pattern.search(commit.type))


DEFAULT_POLICY = VersionPolicy()


def parse_version(text: str) -> semver.Version:
    """Parse a semantic version, accepting PEP 440 spellings too.

    ``1.2.3``, ``1.2.3-rc.1`` and ``1.2.3+build.5`` parse as semver.
    PEP 440 forms are normalised: ``1.0.0rc1`` becomes ``1.0.0-rc.1``,
    ``2.0.0.dev3`` becomes ``2.0.0-dev.3`` and ``1.2`` becomes ``1.2.0``.

    Raises:
        ReleasePlanError: If the string is neither valid semver nor a
            PEP 440 version that maps onto semver.
    """
    try:
        return semver.Version.parse(text)
    except ValueError:
        pass

    try:
        pep = Pep440Version(text)
    except InvalidVersion as exc:
        raise ReleasePlanError(
            code=E.VERSION_INVALID,
            message=f'Version {text!r} is not a valid version.',
            hint='Use a version like "1.2.3" or "1.2.3-rc.1".',
        ) from exc

    if pep.epoch or pep.post is not None or len(pep.release) > 3:
        raise ReleasePlanError(
            code=E.VERSION_INVALID,
            message=f'Version {text!r} has no semantic version equivalent.',
            hint='Epochs, post-releases and four-part versions are not supported.',
        )

    major, minor, patch = (*pep.release, 0, 0)[:3]
    prerelease: list[str] = []
    if pep.pre is not None:
        letter, number = pep.pre
        prerelease += [_PEP440_PRE_NAMES[letter], str(number)]
    if pep.dev is not None:
        prerelease += ['dev', str(pep.dev)]
    return semver.Version(
        major,
        minor,
        patch,
        prerelease='.'.join(prerelease) or None,
        build=pep.local,
    )


def next_increment(
    current: semver.Version,
    commits: Sequence[str],
    policy: VersionPolicy = DEFAULT_POLICY,
) -> VersionIncrement | None:
    """Decide which part of ``current`` the ``commits`` warrant bumping.

    Args:
        current: The package's current version.
        commits: Commit messages contributing to the release.
        policy: Pre-1.0 and custom-pattern tunables.

    Returns:
        The increment, or ``None`` when there are no commits.
    """
    if not commits:
        return None
    if current.prerelease:
        return VersionIncrement.PRERELEASE

    parsed = [parse_commit(message) for message in commits]
    breaking = any(c.breaking or policy.is_custom_major(c) for c in parsed)
    stable = current.major != 0

    if breaking and (stable or policy.breaking_always_increment_major):
        return VersionIncrement.MAJOR

    features = any(c.is_feature for c in parsed)
    if (
        (features and (stable or policy.features_always_increment_minor))
        or (not stable and current.minor != 0 and breaking)
        or any(policy.is_custom_minor(c) for c in parsed)
    ):
        return VersionIncrement.MINOR

    return VersionIncrement.PATCH


def increment_prerelease(version: semver.Version) -> semver.Version:
    """Advance the trailing numeric identifier of the prerelease.

    ``1.0.0-rc.1`` becomes ``1.0.0-rc.2`` and ``1.0.0-alpha`` becomes
    ``1.0.0-alpha.1``. A version without a prerelease moves to the next
    patch with prerelease ``1`` so the result still sorts higher.
    Build metadata is dropped.
    """
    if not version.prerelease:
        return version.bump_patch().replace(prerelease=str(PRERELEASE_BASELINE))

    identifiers = version.prerelease.split('.')
    if identifiers[-1].isdigit():
        identifiers[-1] = str(int(identifiers[-1]) + 1)
    else:
        identifiers.append(str(PRERELEASE_BASELINE))
    return version.replace(prerelease='.'.join(identifiers), build=None)


def apply_increment(version: semver.Version, increment: VersionIncrement) -> semver.Version:
    """Return ``version`` advanced by ``increment``.

    Major resets minor and patch, minor resets patch. All three drop any
    prerelease and build metadata.
    """
    if increment is VersionIncrement.MAJOR:
        return version.bump_major()
    if increment is VersionIncrement.MINOR:
        return version.bump_minor()
    if increment is VersionIncrement.PATCH:
        return version.bump_patch()
    return increment_prerelease(version)


def next_version(
    current: semver.Version,
    commits: Sequence[str],
    policy: VersionPolicy = DEFAULT_POLICY,
) -> semver.Version:
    """Return the version ``commits`` lead to, or ``current`` if none."""
    increment = next_increment(current, commits, policy)
    if increment is None:
        return current
    return apply_increment(current, increment)


def next_version_from_diff(
    current: semver.Version,
    diff: Diff,
    policy: VersionPolicy = DEFAULT_POLICY,
) -> semver.Version:
    """Return the candidate version for a package given its :class:`Diff`.

    Only packages that exist in the registry, have commits and whose local
    version is already published get a computed increment. A never
    published package keeps its version for its first release, and a
    manually pre-bumped package keeps the version the user chose.
    """
    if not diff.should_update_version():
        return current
    return next_version(current, [c.message for c in diff.commits], policy)


__all__ = [
    'DEFAULT_POLICY',
    'PRERELEASE_BASELINE',
    'VersionIncrement',
    'VersionPolicy',
    'apply_increment',
    'increment_prerelease',
    'next_increment',
    'next_version',
    'next_version_from_diff',
    'parse_version',
]
