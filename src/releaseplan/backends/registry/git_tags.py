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

"""Release-tag resolver.

Reconstructs the published state of a package from its newest release
tag by exporting the package directory (plus an external readme and the
workspace lockfile, when present) as of the tagged commit. The working
copy is never touched.
"""

from __future__ import annotations

import shutil
from collections.abc import Mapping
from pathlib import Path

from releaseplan.backends.vcs import SourceControl
from releaseplan.errors import ReleasePlanError
from releaseplan.logging import get_logger
from releaseplan.snapshot import TagSnapshot
from releaseplan.tags import DEFAULT_TAG_TEMPLATE, latest_release_tag
from releaseplan.workspace import LOCKFILE_NAME, Package

log = get_logger('releaseplan.backends.git_tags')


class GitTagResolver:
    """:class:`~releaseplan.snapshot.SnapshotResolver` backed by release tags.

    Args:
        vcs: Source-control gateway used to list tags and export trees.
        tag_templates: Per-package tag templates.
        default_template: Template for packages without an override.
    """

    def __init__(
        self,
        vcs: SourceControl,
        *,
        tag_templates: Mapping[str, str] | None = None,
        default_template: str = DEFAULT_TAG_TEMPLATE,
    ) -> None:
        """Initialize with the gateway and tag templates."""
        self._vcs = vcs
        self._templates = dict(tag_templates or {})
        self._default = default_template
        self._tags: list[str] | None = None

    def template_for(self, name: str) -> str:
        """Tag template used for package ``name``."""
        return self._templates.get(name, self._default)

    async def latest_published(self, package: Package, dest: Path) -> TagSnapshot | None:
        """Export ``package`` as of its newest release tag into ``dest``."""
        if self._tags is None:
            self._tags = await self._vcs.list_tags()
        found = latest_release_tag(self._tags, self.template_for(package.name), name=package.name)
        if found is None:
            return None
        tag, version = found
        commit = await self._vcs.tag_commit(tag)

        root = self._vcs.root.resolve()
        rel = package.path.resolve().relative_to(root).as_posix()
        await self._vcs.export_tree(commit or tag, [rel], dest)
        content_dir = dest / rel

        readme = package.external_readme()
        if readme is not None:
            await self._export_file(commit or tag, readme.resolve().relative_to(root).as_posix(), dest, content_dir)
        await self._export_file(commit or tag, LOCKFILE_NAME, dest, content_dir)

        log.info('tag_snapshot', package=package.name, tag=tag, commit=commit)
        return TagSnapshot(version=version, content_dir=content_dir, published_at=commit, tag=tag)

    async def _export_file(self, commit: str, rel: str, dest: Path, content_dir: Path) -> None:
        """Export one repository file and place it at the snapshot root."""
        staging = dest.parent / f'{dest.name}-extra'
        try:
            await self._vcs.export_tree(commit, [rel], staging)
        except ReleasePlanError:
            log.debug('tag_snapshot_file_missing', commit=commit, file=rel)
            return
        exported = staging / rel
        if exported.is_file():
            shutil.copyfile(exported, content_dir / Path(rel).name)


__all__ = ['GitTagResolver']
