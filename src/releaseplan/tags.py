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

"""Release tag names.

Tags are produced from a template such as ``{name}-v{version}`` and read
back by turning the same template into a regular expression with the
package name fixed::

    format_tag('{name}-v{version}', name='core', version='0.5.0')
        -> 'core-v0.5.0'

    latest_release_tag(['core-v0.4.0', 'core-v0.5.0', 'plugin-v9.0.0'],
                       '{name}-v{version}', name='core')
        -> ('core-v0.5.0', Version(0, 5, 0))
"""

from __future__ import annotations

import re
from collections.abc import Iterable

import semver

from releaseplan.errors import ReleasePlanError
from releaseplan.versioning import parse_version

DEFAULT_TAG_TEMPLATE = '{name}-v{version}'

# Loose version capture; parse_version decides whether it is valid.
_VERSION_CAPTURE = r'(?P<version>\d+(?:\.\d+){1,2}(?:[-+.]?[0-9A-Za-z.+-]*)?)'


def format_tag(template: str, *, name: str, version: semver.Version | str) -> str:
    """Render ``template`` for one release.

    >>> format_tag('{name}-v{version}', name='core', version='0.5.0')
    'core-v0.5.0'
    >>> format_tag('v{version}', name='core', version='1.0.0')
    'v1.0.0'
    """
    return template.format(name=name, version=version)


def release_tag_regex(template: str, *, name: str) -> re.Pattern[str]:
    """Regular expression matching ``name``'s release tags.

    The ``version`` group captures the version text.
    """
    escaped = re.escape(template)
    pattern = escaped.replace(r'\{name\}', re.escape(name)).replace(r'\{version\}', _VERSION_CAPTURE)
    return re.compile(f'^{pattern}$')


def tag_version(tag: str, template: str, *, name: str) -> semver.Version | None:
    """Version encoded in ``tag``, or ``None`` if it is not one of ``name``'s tags."""
    match = release_tag_regex(template, name=name).match(tag)
    if match is None:
        return None
    try:
        return parse_version(match.group('version'))
    except ReleasePlanError:
        return None


def latest_release_tag(
    tags: Iterable[str],
    template: str,
    *,
    name: str,
) -> tuple[str, semver.Version] | None:
    """The highest-versioned release tag of ``name`` among ``tags``."""
    best: tuple[str, semver.Version] | None = None
    for tag in tags:
        version = tag_version(tag, template, name=name)
        if version is None:
            continue
        if best is None or version > best[1]:
            best = (tag, version)
    return best


__all__ = [
    'DEFAULT_TAG_TEMPLATE',
    'format_tag',
    'latest_release_tag',
    'release_tag_regex',
    'tag_version',
]
