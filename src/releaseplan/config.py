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

"""Configuration reader for releaseplan.

Reads ``releaseplan.toml`` from the workspace root and returns a
validated :class:`ReleasePlanConfig`. Top-level keys are workspace
defaults; ``[package.<name>]`` tables override them per package.

Key Concepts (ELI5)::

    ┌─────────────────────────┬────────────────────────────────────────────┐
    │ Concept                 │ ELI5 Explanation                           │
    ├─────────────────────────┼────────────────────────────────────────────┤
    │ ReleasePlanConfig       │ Workspace-wide settings plus the per-      │
    │                         │ package overrides.                         │
    ├─────────────────────────┼────────────────────────────────────────────┤
    │ PackageUpdateConfig     │ The effective settings for one package:    │
    │                         │ its overrides layered on the defaults.     │
    ├─────────────────────────┼────────────────────────────────────────────┤
    │ Fuzzy key matching      │ A typo'd key gets a "did you mean" hint.   │
    └─────────────────────────┴────────────────────────────────────────────┘

Supported keys in ``releaseplan.toml``::

    allow_dirty                     = false
    compat_check                    = true
    compat_command                  = ["griffe", "check", "--search", "{local}", "--against", "{published}"]
    compat_workers                  = 4
    changelog_update                = true
    features_always_increment_minor = false
    breaking_always_increment_major = false
    custom_major_increment_regex    = "major"
    custom_minor_increment_regex    = "minor|feat"
    release_commits                 = "^(feat|fix)"
    sort_commits                    = "newest"        # or "oldest"
    tag_name_template               = "{name}-v{version}"
    git_only                        = false
    registry_url                    = "https://pypi.org"
    exclude                         = ["*.log"]

    [package.plugin]
    changelog_path    = "CHANGELOG.md"
    changelog_include = ["core"]
    version_group     = "sdk"
    release           = true
"""

from __future__ import annotations

import difflib
import re
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import tomlkit
import tomlkit.exceptions
from packaging.utils import canonicalize_name

from releaseplan.backends.registry.pypi import DEFAULT_INDEX_URL
from releaseplan.compat import DEFAULT_COMPAT_WORKERS
from releaseplan.errors import E, ReleasePlanError
from releaseplan.logging import get_logger
from releaseplan.tags import DEFAULT_TAG_TEMPLATE
from releaseplan.versioning import VersionPolicy

logger = get_logger(__name__)

CONFIG_FILENAME = 'releaseplan.toml'

ALLOWED_SORT_COMMITS: frozenset[str] = frozenset({'newest', 'oldest'})

# Keys that may appear both at the top level and in [package.<name>].
_SHARED_TYPE_MAP: dict[str, type | tuple[type, ...]] = {
    'compat_check': bool,
    'changelog_update': bool,
    'features_always_increment_minor': bool,
    'breaking_always_increment_major': bool,
    'custom_major_increment_regex': str,
    'custom_minor_increment_regex': str,
    'release_commits': str,
    'tag_name_template': str,
    'git_only': bool,
}

_GLOBAL_TYPE_MAP: dict[str, type | tuple[type, ...]] = {
    **_SHARED_TYPE_MAP,
    'allow_dirty': bool,
    'compat_command': list,
    'compat_workers': int,
    'sort_commits': str,
    'registry_url': str,
    'exclude': list,
}

_PACKAGE_TYPE_MAP: dict[str, type | tuple[type, ...]] = {
    **_SHARED_TYPE_MAP,
    'changelog_path': str,
    'changelog_include': list,
    'version_group': str,
    'release': bool,
}

VALID_KEYS: frozenset[str] = frozenset(_GLOBAL_TYPE_MAP) | {'package'}
VALID_PACKAGE_KEYS: frozenset[str] = frozenset(_PACKAGE_TYPE_MAP)

_REGEX_KEYS = ('custom_major_increment_regex', 'custom_minor_increment_regex', 'release_commits')


@dataclass(frozen=True)
class PackageUpdateConfig:
    """Effective settings for one package.

    Attributes:
        compat_check: Run the API compatibility check.
        changelog_update: Render and prepend a changelog section.
        features_always_increment_minor: ``feat`` bumps minor before 1.0.
        breaking_always_increment_major: Breaking changes bump major before 1.0.
        custom_major_increment_regex: Commit types forcing a major bump.
        custom_minor_increment_regex: Commit types forcing a minor bump.
        release_commits: Release only if a commit message matches.
        tag_name_template: Release tag template.
        git_only: Resolve the published state from tags only.
        changelog_path: Changelog file relative to the package directory.
        changelog_include: Packages whose commits also go into this
            package's changelog.
        version_group: Name of the group this package versions with.
        release: ``False`` leaves the package out of the plan.
    """

    compat_check: bool = True
    changelog_update: bool = True
    features_always_increment_minor: bool = False
    breaking_always_increment_major: bool = False
    custom_major_increment_regex: str | None = None
    custom_minor_increment_regex: str | None = None
    release_commits: str | None = None
    tag_name_template: str = DEFAULT_TAG_TEMPLATE
    git_only: bool = False
    changelog_path: str = 'CHANGELOG.md'
    changelog_include: tuple[str, ...] = ()
    version_group: str | None = None
    release: bool = True

    def policy(self) -> VersionPolicy:
        """Version increment policy for this package."""
        return VersionPolicy(
            features_always_increment_minor=self.features_always_increment_minor,
            breaking_always_increment_major=self.breaking_always_increment_major,
            custom_major_increment_regex=self.custom_major_increment_regex,
            custom_minor_increment_regex=self.custom_minor_increment_regex,
        )

    def release_commits_pattern(self) -> re.Pattern[str] | None:
        """Compiled ``release_commits``, if set."""
        return re.compile(self.release_commits) if self.release_commits else None


@dataclass(frozen=True)
class ReleasePlanConfig:
    """Validated ``releaseplan.toml``.

    Attributes:
        allow_dirty: Skip the clean working copy check.
        compat_command: Compatibility checker command line with
            ``{local}`` and ``{published}`` placeholders. Empty disables
            the check for every package.
        compat_workers: Compatibility checks run in parallel.
        sort_commits: ``"newest"`` or ``"oldest"`` first in changelogs.
        registry_url: Package index root.
        exclude: Globs excluded from packaged file sets.
        defaults: Package settings before overrides.
        packages: Per-package overrides, by normalized name.
        config_path: The file read, or ``None`` when absent.
    """

    allow_dirty: bool = False
    compat_command: tuple[str, ...] = ()
    compat_workers: int = DEFAULT_COMPAT_WORKERS
    sort_commits: str = 'newest'
    registry_url: str = DEFAULT_INDEX_URL
    exclude: tuple[str, ...] = ()
    defaults: PackageUpdateConfig = field(default_factory=PackageUpdateConfig)
    packages: dict[str, dict[str, Any]] = field(default_factory=dict)
    config_path: Path | None = None

    def for_package(self, name: str) -> PackageUpdateConfig:
        """Effective settings for package ``name``."""
        overrides = self.packages.get(name)
        if not overrides:
            return self.defaults
        merged = {f.name: getattr(self.defaults, f.name) for f in fields(PackageUpdateConfig)}
        merged.update(overrides)
        return PackageUpdateConfig(**merged)

    @property
    def version_groups(self) -> dict[str, str]:
        """Group name per package name."""
        return {name: o['version_group'] for name, o in self.packages.items() if o.get('version_group')}


def _suggest(unknown: str, valid: frozenset[str]) -> str | None:
    """Return the closest valid key for a typo, or None."""
    matches = difflib.get_close_matches(unknown, valid, n=1, cutoff=0.6)
    return matches[0] if matches else None


def _check_keys(raw: Mapping[str, Any], valid: frozenset[str], context: str) -> None:
    for key in raw:
        if key in valid:
            continue
        suggestion = _suggest(key, valid)
        raise ReleasePlanError(
            code=E.CONFIG_INVALID_KEY,
            message=f"Unknown key '{key}' in {context}",
            hint=f"Did you mean '{suggestion}'?" if suggestion else f'Check the valid keys for {context}.',
        )


def _validate_value_type(
    key: str,
    value: Any,  # noqa: ANN401 - dynamic config values
    type_map: dict[str, type | tuple[type, ...]],
    *,
    context: str,
) -> None:
    """Raise if a config value has the wrong type."""
    expected = type_map.get(key)
    if expected is None:
        return
    wrong = not isinstance(value, expected) or (expected is int and isinstance(value, bool))
    if wrong:
        type_name = expected.__name__ if isinstance(expected, type) else str(expected)
        raise ReleasePlanError(
            code=E.CONFIG_INVALID_VALUE,
            message=f"'{key}' must be {type_name}, got {type(value).__name__}",
            hint=f'Check the value of {key} in {context}.',
        )


def _validate_string_list(key: str, items: list[object], context: str) -> None:
    """Raise if any item in a list is not a string."""
    for item in items:
        if not isinstance(item, str):
            raise ReleasePlanError(
                code=E.CONFIG_INVALID_VALUE,
                message=f"'{key}' items must be strings, got {type(item).__name__}: {item!r}",
                hint=f'Each {key} entry should be a string in {context}.',
            )


def _validate_regexes(raw: Mapping[str, Any], context: str) -> None:
    for key in _REGEX_KEYS:
        if key not in raw:
            continue
        try:
            re.compile(raw[key])
        except re.error as exc:
            raise ReleasePlanError(
                code=E.CONFIG_INVALID_VALUE,
                message=f"'{key}' in {context} is not a valid regular expression: {exc}",
                hint='Use Python regular expression syntax.',
            ) from exc


def _parse_section(
    raw: Mapping[str, Any],
    type_map: dict[str, type | tuple[type, ...]],
    context: str,
) -> dict[str, Any]:
    for key, value in raw.items():
        _validate_value_type(key, value, type_map, context=context)
    for key in ('compat_command', 'exclude', 'changelog_include'):
        if key in raw:
            _validate_string_list(key, raw[key], context)
    _validate_regexes(raw, context)

    result = dict(raw)
    for key in ('compat_command', 'exclude', 'changelog_include'):
        if key in result:
            result[key] = tuple(result[key])
    return result


def _parse_package_sections(raw: Any) -> dict[str, dict[str, Any]]:  # noqa: ANN401 - dynamic config
    if not isinstance(raw, dict):
        raise ReleasePlanError(
            code=E.CONFIG_INVALID_VALUE,
            message=f'[package] must be a table, got {type(raw).__name__}',
            hint='Use [package.<name>] tables.',
        )
    packages: dict[str, dict[str, Any]] = {}
    for name, section in raw.items():
        context = f'[package.{name}]'
        if not isinstance(section, dict):
            raise ReleasePlanError(
                code=E.CONFIG_INVALID_VALUE,
                message=f'{context} must be a table, got {type(section).__name__}',
                hint=f'Use a [package.{name}] table.',
            )
        _check_keys(section, VALID_PACKAGE_KEYS, context)
        parsed = _parse_section(section, _PACKAGE_TYPE_MAP, context)
        if 'changelog_include' in parsed:
            parsed['changelog_include'] = tuple(canonicalize_name(n) for n in parsed['changelog_include'])
        packages[canonicalize_name(name)] = parsed
    return packages


def load_config(workspace_root: Path) -> ReleasePlanConfig:
    """Load and validate ``releaseplan.toml``.

    Args:
        workspace_root: Directory containing ``releaseplan.toml``.

    Returns:
        A validated :class:`ReleasePlanConfig`; defaults when the file
        does not exist.

    Raises:
        ReleasePlanError: If the file cannot be parsed or contains an
            unknown key or an invalid value.
    """
    config_path = workspace_root / CONFIG_FILENAME
    if not config_path.is_file():
        logger.debug('no_releaseplan_config', path=str(config_path))
        return ReleasePlanConfig()

    try:
        text = config_path.read_text(encoding='utf-8')
    except OSError as exc:
        raise ReleasePlanError(
            code=E.CONFIG_NOT_FOUND,
            message=f'Failed to read {config_path}: {exc}',
            hint=f'Check the permissions of {config_path}.',
        ) from exc

    try:
        raw: dict[str, Any] = tomlkit.parse(text).unwrap()
    except tomlkit.exceptions.TOMLKitError as exc:
        raise ReleasePlanError(
            code=E.CONFIG_INVALID_VALUE,
            message=f'Failed to parse {config_path}: {exc}',
            hint=f'Check that {config_path} contains valid TOML.',
        ) from exc

    _check_keys(raw, VALID_KEYS, CONFIG_FILENAME)
    packages = _parse_package_sections(raw.pop('package', {}))
    parsed = _parse_section(raw, _GLOBAL_TYPE_MAP, CONFIG_FILENAME)

    sort_commits = parsed.get('sort_commits', 'newest')
    if sort_commits not in ALLOWED_SORT_COMMITS:
        raise ReleasePlanError(
            code=E.CONFIG_INVALID_VALUE,
            message=f"sort_commits must be one of {sorted(ALLOWED_SORT_COMMITS)}, got '{sort_commits}'",
            hint="Use 'newest' or 'oldest'.",
        )
    if parsed.get('compat_workers', DEFAULT_COMPAT_WORKERS) < 1:
        raise ReleasePlanError(
            code=E.CONFIG_INVALID_VALUE,
            message=f'compat_workers must be at least 1, got {parsed["compat_workers"]}',
            hint='Set compat_workers to a positive integer.',
        )

    defaults = PackageUpdateConfig(**{k: parsed.pop(k) for k in list(parsed) if k in _SHARED_TYPE_MAP})
    config = ReleasePlanConfig(**parsed, defaults=defaults, packages=packages, config_path=config_path)
    logger.debug('config_loaded', path=str(config_path), packages=sorted(packages))
    return config


__all__ = [
    'ALLOWED_SORT_COMMITS',
    'CONFIG_FILENAME',
    'VALID_KEYS',
    'VALID_PACKAGE_KEYS',
    'PackageUpdateConfig',
    'ReleasePlanConfig',
    'load_config',
]
