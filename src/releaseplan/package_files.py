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

"""The set of files a package would ship, and their content hashes.

The history walk compares what the package *would* publish at a given
commit against what was actually published. :class:`SourceTreeCalculator`
approximates an sdist by walking the package directory and skipping
caches, build outputs and anything matched by configured globs.
"""

from __future__ import annotations

import fnmatch
import hashlib
import os
from collections.abc import Iterable
from pathlib import Path
from typing import Protocol, runtime_checkable

from releaseplan.workspace import MANIFEST_NAME

# Files that build backends add to an sdist; never present in the source tree.
GENERATED_FILES: frozenset[str] = frozenset({'PKG-INFO'})

# Name globs never considered part of a package.
DEFAULT_EXCLUDES: tuple[str, ...] = (
    '.git',
    '.hg',
    '__pycache__',
    '*.pyc',
    '*.pyo',
    '.venv',
    'build',
    'dist',
    '*.egg-info',
    '.pytest_cache',
    '.mypy_cache',
    '.ruff_cache',
    '.tox',
    '.nox',
)

_CHUNK_SIZE = 64 * 1024


@runtime_checkable
class PackagedFileCalculator(Protocol):
    """Computes the files a package directory would publish."""

    def files_for(self, package_dir: Path) -> list[str]:
        """Sorted POSIX paths relative to ``package_dir``.

        Raises:
            FileNotFoundError: If ``package_dir`` has no manifest, e.g. at
                a commit before the package existed.
        """
        ...


def file_hash(path: Path) -> str:
    """SHA-256 hex digest of ``path``'s content."""
    digest = hashlib.sha256()
    with path.open('rb') as f:
        for chunk in iter(lambda: f.read(_CHUNK_SIZE), b''):
            digest.update(chunk)
    return digest.hexdigest()


def file_hashes(package_dir: Path, files: Iterable[str]) -> dict[str, str]:
    """Hash every regular, non-symlink file of ``files`` under ``package_dir``."""
    result: dict[str, str] = {}
    for rel in files:
        path = package_dir / rel
        if path.is_symlink() or not path.is_file():
            continue
        result[rel] = file_hash(path)
    return result


class SourceTreeCalculator:
    """Walks a package directory, skipping excluded names.

    Args:
        excludes: Extra name or relative-path globs to skip, on top of
            :data:`DEFAULT_EXCLUDES`.
    """

    def __init__(self, excludes: Iterable[str] = ()) -> None:
        """Store the exclusion globs."""
        self._excludes = (*DEFAULT_EXCLUDES, *excludes)

    def _excluded(self, name: str, rel: str) -> bool:
        return any(fnmatch.fnmatch(name, pat) or fnmatch.fnmatch(rel, pat) for pat in self._excludes)

    def files_for(self, package_dir: Path) -> list[str]:
        """See :meth:`PackagedFileCalculator.files_for`."""
        if not (package_dir / MANIFEST_NAME).is_file():
            msg = f'no {MANIFEST_NAME} in {package_dir}'
            raise FileNotFoundError(msg)

        found: list[str] = []
        for dirpath, dirnames, filenames in os.walk(package_dir):
            base = Path(dirpath).relative_to(package_dir)
            # Subdirectories with their own manifest are nested packages.
            dirnames[:] = sorted(
                d
                for d in dirnames
                if not self._excluded(d, (base / d).as_posix()) and not (Path(dirpath) / d / MANIFEST_NAME).is_file()
            )
            for name in filenames:
                rel = (base / name).as_posix()
                if not self._excluded(name, rel):
                    found.append(rel)
        return sorted(found)


__all__ = [
    'DEFAULT_EXCLUDES',
    'GENERATED_FILES',
    'PackagedFileCalculator',
    'SourceTreeCalculator',
    'file_hash',
    'file_hashes',
]
