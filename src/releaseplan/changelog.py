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

"""Changelog sections built from the commits of a pending release.

The planner hands each package's ordered commits to a
:class:`ChangelogRenderer` and prepends the result to the package's
existing changelog. :class:`MarkdownChangelogRenderer` is the default,
grouping Conventional Commits under headings.

Key Concepts (ELI5)::

    ┌─────────────────────────┬─────────────────────────────────────────────┐
    │ Concept                 │ Plain-English                               │
    ├─────────────────────────┼─────────────────────────────────────────────┤
    │ ChangelogEntry          │ One commit: type, scope, description and    │
    │                         │ short SHA.                                  │
    ├─────────────────────────┼─────────────────────────────────────────────┤
    │ ChangelogSection        │ Entries under one heading, e.g. "Features". │
    ├─────────────────────────┼─────────────────────────────────────────────┤
    │ prepend_release         │ Put the new section on top of the old file, │
    │                         │ below the ``# Changelog`` title.            │
    └─────────────────────────┴─────────────────────────────────────────────┘

Output::

    ## 0.5.0 (2026-03-01)

    ### Breaking Changes

    - **auth**: Remove deprecated OAuth1 support (abc1234)

    ### Bug Fixes

    - Fix race condition in publisher (789abcd)

    ### Other

    - Tidy up imports (def4567)
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

import semver

from releaseplan.commit_parsing import ParsedCommit, parse_commit
from releaseplan.diff import Commit
from releaseplan.errors import ReleasePlanError
from releaseplan.logging import get_logger
from releaseplan.versioning import parse_version

logger = get_logger(__name__)

CHANGELOG_TITLE = '# Changelog'

# Maps commit type to section heading (display order matters).
_SECTION_ORDER: list[tuple[str, str]] = [
    ('breaking', 'Breaking Changes'),
    ('feat', 'Features'),
    ('fix', 'Bug Fixes'),
    ('perf', 'Performance'),
    ('refactor', 'Refactoring'),
    ('docs', 'Documentation'),
    ('build', 'Build'),
    ('chore', 'Chores'),
    ('revert', 'Reverts'),
    ('other', 'Other'),
]

# Types left out unless breaking.
DEFAULT_EXCLUDE_TYPES: frozenset[str] = frozenset({'style', 'ci', 'test'})

_PR_REF_PATTERN: re.Pattern[str] = re.compile(r'\(#(\d+)\)')

# "## 0.5.0", "## [0.5.0] - 2026-03-01", "## v0.5.0 (2026-03-01)"
_RELEASE_HEADING: re.Pattern[str] = re.compile(r'^##\s+\[?v?(?P<version>[0-9][^\]\s]*)', re.MULTILINE)


@runtime_checkable
class ChangelogRenderer(Protocol):
    """Turns a release's commits into changelog text."""

    def build(
        self,
        package_name: str,
        next_version: semver.Version,
        commits: Sequence[Commit],
        previous_version: semver.Version | None,
    ) -> str:
        """Render the section for ``next_version``."""
        ...


@dataclass(frozen=True)
class ChangelogEntry:
    """A single changelog line.

    Attributes:
        type: Commit type, ``"other"`` for non-conventional messages.
        description: First line of the commit description.
        sha: Short commit SHA, empty for synthetic commits.
        scope: Optional scope.
        pr_number: PR number from a trailing ``(#123)``, if any.
        breaking: Whether the commit is breaking.
        author: Hosting platform username, if known.
    """

    type: str
    description: str
    sha: str = ''
    scope: str = ''
    pr_number: str = ''
    breaking: bool = False
    author: str = ''


@dataclass
class ChangelogSection:
    """Entries under one heading."""

    heading: str
    entries: list[ChangelogEntry] = field(default_factory=list)


def _commit_to_entry(commit: Commit, parsed: ParsedCommit) -> ChangelogEntry:
    description = parsed.description
    pr_match = _PR_REF_PATTERN.search(description)
    pr_number = pr_match.group(1) if pr_match else ''
    if pr_match:
        description = description[: pr_match.start()].rstrip()
    if pr_number == '' and commit.remote is not None and commit.remote.pr_number is not None:
        pr_number = str(commit.remote.pr_number)

    return ChangelogEntry(
        type=parsed.type,
        description=description,
        sha='' if commit.is_synthetic else commit.short_id,
        scope=parsed.scope,
        pr_number=pr_number,
        breaking=parsed.breaking,
        author=commit.remote.username if commit.remote is not None else '',
    )


def group_entries(entries: Sequence[ChangelogEntry]) -> list[ChangelogSection]:
    """Group entries into sections in display order; empty sections are omitted."""
    buckets: dict[str, list[ChangelogEntry]] = {}
    for entry in entries:
        key = 'breaking' if entry.breaking else entry.type
        buckets.setdefault(key, []).append(entry)

    sections: list[ChangelogSection] = []
    for type_key, heading in _SECTION_ORDER:
        bucket = buckets.pop(type_key, [])
        if bucket:
            sections.append(ChangelogSection(heading=heading, entries=bucket))
    for type_key, bucket in sorted(buckets.items()):
        sections.append(ChangelogSection(heading=type_key.capitalize(), entries=bucket))
    return sections


def _render_entry(entry: ChangelogEntry) -> str:
    """Format: ``- **scope**: description (sha, #pr) by @author``."""
    parts: list[str] = ['- ']
    if entry.scope:
        parts.append(f'**{entry.scope}**: ')
    parts.append(entry.description)

    refs: list[str] = []
    if entry.sha:
        refs.append(entry.sha)
    if entry.pr_number:
        refs.append(f'#{entry.pr_number}')
    if refs:
        parts.append(f' ({", ".join(refs)})')
    if entry.author:
        parts.append(f' by @{entry.author}')
    return ''.join(parts)


class MarkdownChangelogRenderer:
    """Default :class:`ChangelogRenderer` producing grouped Markdown.

    Args:
        date: Date shown next to the version heading.
        exclude_types: Commit types to leave out unless breaking.
    """

    def __init__(self, *, date: str = '', exclude_types: frozenset[str] = DEFAULT_EXCLUDE_TYPES) -> None:
        """Store rendering options."""
        self._date = date
        self._exclude_types = exclude_types

    def build(
        self,
        package_name: str,
        next_version: semver.Version,
        commits: Sequence[Commit],
        previous_version: semver.Version | None,
    ) -> str:
        """See :meth:`ChangelogRenderer.build`."""
        entries: list[ChangelogEntry] = []
        for commit in commits:
            parsed = parse_commit(commit.message)
            if parsed.type in self._exclude_types and not parsed.breaking:
                continue
            entries.append(_commit_to_entry(commit, parsed))

        heading = f'## {next_version}'
        if self._date:
            heading += f' ({self._date})'
        lines = [heading, '']
        for section in group_entries(entries):
            lines.extend([f'### {section.heading}', ''])
            lines.extend(_render_entry(e) for e in section.entries)
            lines.append('')

        logger.debug(
            'changelog_rendered',
            package=package_name,
            version=str(next_version),
            previous=str(previous_version) if previous_version else None,
            entries=len(entries),
        )
        return '\n'.join(lines).rstrip() + '\n'


def last_version_from_changelog(text: str) -> semver.Version | None:
    """Version of the newest release heading in ``text``, if any."""
    match = _RELEASE_HEADING.search(text)
    if match is None:
        return None
    try:
        return parse_version(match.group('version'))
    except ReleasePlanError:
        return None


def prepend_release(existing: str | None, section: str) -> str:
    """Insert ``section`` above the previous releases of ``existing``."""
    if not existing or not existing.strip():
        return f'{CHANGELOG_TITLE}\n\n{section}'
    stripped = existing.lstrip()
    if stripped.startswith(CHANGELOG_TITLE):
        rest = stripped[len(CHANGELOG_TITLE) :].lstrip('\n')
        return f'{CHANGELOG_TITLE}\n\n{section}\n{rest}' if rest else f'{CHANGELOG_TITLE}\n\n{section}'
    return f'{CHANGELOG_TITLE}\n\n{section}\n{stripped}'


def update_changelog(
    existing: str | None,
    section: str,
    *,
    next_version: semver.Version,
    is_version_published: bool,
) -> str:
    """New changelog content for a release.

    An unpublished package whose changelog already starts with
    ``next_version`` was prepared earlier; its changelog is kept as is.
    """
    if existing and not is_version_published and last_version_from_changelog(existing) == next_version:
        logger.debug('changelog_already_prepared', version=str(next_version))
        return existing
    return prepend_release(existing, section)


__all__ = [
    'CHANGELOG_TITLE',
    'DEFAULT_EXCLUDE_TYPES',
    'ChangelogEntry',
    'ChangelogRenderer',
    'ChangelogSection',
    'MarkdownChangelogRenderer',
    'group_entries',
    'last_version_from_changelog',
    'prepend_release',
    'update_changelog',
]
