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

"""The last published state of a package.

A published snapshot is either what the registry serves
(:class:`RegistrySnapshot`) or what a release tag points at
(:class:`TagSnapshot`). Both expose ``version``, ``content_dir`` and
``published_at`` so the history walk treats them alike.

Tie-break when both exist::

    registry 1.2.0, tag 1.1.0   ->  registry
    registry 1.1.0, tag 1.2.0   ->  tag
    registry 1.2.0, tag 1.2.0   ->  registry content, tag commit as
                                    published_at; a warning is logged
                                    when the two manifests differ
"""

from __future__ import annotations

import asyncio
import dataclasses
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, TypeAlias, runtime_checkable

import semver

from releaseplan.logging import get_logger
from releaseplan.package_files import file_hash
from releaseplan.workspace import MANIFEST_NAME, Package

logger = get_logger(__name__)


@dataclass(frozen=True)
class RegistrySnapshot:
    """A package version downloaded from the registry.

    Attributes:
        version: The published version.
        content_dir: Extracted sdist contents.
        published_at: Commit the release was built from, when known.
    """

    version: semver.Version
    content_dir: Path
    published_at: str | None = None


@dataclass(frozen=True)
class TagSnapshot:
    """A package version reconstructed from a release tag.

    Attributes:
        version: The version encoded in the tag.
        content_dir: Package directory exported at the tag.
        published_at: The commit the tag points to.
        tag: The tag name.
    """

    version: semver.Version
    content_dir: Path
    published_at: str | None
    tag: str = ''


PublishedSnapshot: TypeAlias = RegistrySnapshot | TagSnapshot


@runtime_checkable
class SnapshotResolver(Protocol):
    """Published-Artifact Resolver."""

    async def latest_published(self, package: Package, dest: Path) -> PublishedSnapshot | None:
        """Materialise the latest published version of ``package`` under ``dest``.

        Returns:
            The snapshot, or ``None`` if the package was never published.
        """
        ...


def _manifests_differ(a: Path, b: Path) -> bool:
    a_manifest, b_manifest = a / MANIFEST_NAME, b / MANIFEST_NAME
    if not a_manifest.is_file() or not b_manifest.is_file():
        return a_manifest.is_file() != b_manifest.is_file()
    return file_hash(a_manifest) != file_hash(b_manifest)


def select_snapshot(
    package_name: str,
    registry: RegistrySnapshot | None,
    tag: TagSnapshot | None,
) -> PublishedSnapshot | None:
    """Pick the authoritative snapshot among the available ones.

    The higher version wins. On equal versions the registry content is
    used, since that is what users install, and the tag commit fills in
    ``published_at``. If the two manifests disagree the conflict is
    logged as ``snapshot_conflict`` so it can be investigated.
    """
    if registry is None or tag is None:
        return registry or tag
    if registry.version > tag.version:
        return registry
    if tag.version > registry.version:
        return tag

    if _manifests_differ(registry.content_dir, tag.content_dir):
        logger.warning(
            'snapshot_conflict',
            package=package_name,
            version=str(registry.version),
            tag=tag.tag,
            hint='The registry and the release tag disagree on the manifest; using the registry content.',
        )
    return dataclasses.replace(registry, published_at=registry.published_at or tag.published_at)


async def resolve_snapshot(
    package: Package,
    workdir: Path,
    *,
    registry: SnapshotResolver | None = None,
    tags: SnapshotResolver | None = None,
) -> PublishedSnapshot | None:
    """Query both resolvers concurrently and select the snapshot to diff against.

    Args:
        package: The package to look up.
        workdir: Scratch directory; snapshots land in per-source subdirectories.
        registry: Resolver for the package registry.
        tags: Resolver for release tags.
    """

    async def _query(resolver: SnapshotResolver | None, source: str) -> PublishedSnapshot | None:
        if resolver is None:
            return None
        return await resolver.latest_published(package, workdir / package.name / source)

    registry_snapshot, tag_snapshot = await asyncio.gather(_query(registry, 'registry'), _query(tags, 'tag'))
    if registry_snapshot is not None and not isinstance(registry_snapshot, RegistrySnapshot):
        msg = f'registry resolver returned {type(registry_snapshot).__name__}'
        raise TypeError(msg)
    if tag_snapshot is not None and not isinstance(tag_snapshot, TagSnapshot):
        msg = f'tag resolver returned {type(tag_snapshot).__name__}'
        raise TypeError(msg)

    selected = select_snapshot(package.name, registry_snapshot, tag_snapshot)
    logger.debug(
        'snapshot_selected',
        package=package.name,
        source=type(selected).__name__ if selected else None,
        version=str(selected.version) if selected else None,
    )
    return selected


__all__ = [
    'PublishedSnapshot',
    'RegistrySnapshot',
    'SnapshotResolver',
    'TagSnapshot',
    'resolve_snapshot',
    'select_snapshot',
]
