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

"""Comparisons between a local package and its published snapshot.

Key Concepts (ELI5)::

    ┌──────────────────────────┬───────────────────────────────────────────┐
    │ Check                    │ What it answers                           │
    ├──────────────────────────┼───────────────────────────────────────────┤
    │ are_packages_equal       │ Would publishing now produce the same     │
    │                          │ files with the same bytes?                │
    ├──────────────────────────┼───────────────────────────────────────────┤
    │ is_readme_updated        │ Did a readme kept outside the package     │
    │                          │ directory change?                         │
    ├──────────────────────────┼───────────────────────────────────────────┤
    │ are_dependencies_updated │ Do the requirement constraints differ     │
    │                          │ even though no commit touched the package?│
    ├──────────────────────────┼───────────────────────────────────────────┤
    │ is_lock_updated          │ Did a version pinned in uv.lock move?     │
    │                          │ Matters for packages shipping scripts.    │
    └──────────────────────────┴───────────────────────────────────────────┘
"""

from __future__ import annotations

from pathlib import Path

from releaseplan.logging import get_logger
from releaseplan.package_files import GENERATED_FILES, PackagedFileCalculator, file_hash
from releaseplan.workspace import LOCKFILE_NAME, MANIFEST_NAME, load_manifest, requirement_specifiers

logger = get_logger(__name__)

# Not part of the file-set comparison.
_IGNORED_FILES = GENERATED_FILES | {LOCKFILE_NAME}


def _same_content(a: Path, b: Path) -> bool:
    return a.is_file() and b.is_file() and file_hash(a) == file_hash(b)


def are_packages_equal(
    local_dir: Path,
    published_dir: Path,
    calculator: PackagedFileCalculator,
    *,
    external_readme: Path | None = None,
) -> bool:
    """Whether ``local_dir`` would publish exactly what was published.

    The manifests must be identical, the file sets must match (generated
    files aside), and every regular local file must hash the same as its
    published counterpart. Lockfiles are ignored and symlinks are not
    compared by content.

    Args:
        local_dir: The package directory in the working copy.
        published_dir: The materialised published snapshot.
        calculator: Computes the file set on both sides.
        external_readme: A readme outside ``local_dir``; it appears at the
            snapshot root but not in the local tree.
    """
    if not _same_content(local_dir / MANIFEST_NAME, published_dir / MANIFEST_NAME):
        logger.debug('manifest_differs', package_dir=str(local_dir))
        return False

    local_files = set(calculator.files_for(local_dir)) - _IGNORED_FILES
    published_files = set(calculator.files_for(published_dir)) - _IGNORED_FILES
    if external_readme is not None:
        published_files.discard(external_readme.name)
    if local_files != published_files:
        logger.debug(
            'file_set_differs',
            package_dir=str(local_dir),
            only_local=sorted(local_files - published_files)[:10],
            only_published=sorted(published_files - local_files)[:10],
        )
        return False

    for rel in sorted(local_files):
        if rel == MANIFEST_NAME:
            continue
        local = local_dir / rel
        if local.is_symlink() or not local.exists():
            continue
        if not _same_content(local, published_dir / rel):
            logger.debug('file_content_differs', package_dir=str(local_dir), file=rel)
            return False

    if external_readme is not None and is_readme_updated(external_readme, published_dir):
        logger.debug('readme_differs', package_dir=str(local_dir), readme=str(external_readme))
        return False
    return True


def is_readme_updated(readme: Path, published_dir: Path) -> bool:
    """Whether ``readme`` differs from the copy at the snapshot root."""
    if not readme.is_file():
        return False
    published = published_dir / readme.name
    if not published.is_file():
        return True
    return file_hash(readme) != file_hash(published)


def are_dependencies_updated(local_manifest: Path, published_dir: Path) -> bool:
    """Whether the requirement constraints differ from the published ones."""
    published_manifest = published_dir / MANIFEST_NAME
    if not published_manifest.is_file():
        return False
    local = requirement_specifiers(load_manifest(local_manifest))
    published = requirement_specifiers(load_manifest(published_manifest))
    return local != published


def _locked_versions(lockfile: Path) -> dict[str, str]:
    doc = load_manifest(lockfile)
    return {str(p.get('name')): str(p.get('version')) for p in doc.get('package', []) if 'version' in p}


def is_lock_updated(local_lock: Path, published_dir: Path) -> bool:
    """Whether any package locked in the snapshot is locked differently now."""
    published_lock = published_dir / LOCKFILE_NAME
    if not published_lock.is_file() or not local_lock.is_file():
        return False
    local = _locked_versions(local_lock)
    for name, version in _locked_versions(published_lock).items():
        if name in local and local[name] != version:
            logger.debug('locked_version_changed', dependency=name, published=version, local=local[name])
            return True
    return False


__all__ = [
    'are_dependencies_updated',
    'are_packages_equal',
    'is_lock_updated',
    'is_readme_updated',
]
