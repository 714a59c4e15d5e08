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

"""Tar extraction for published snapshots.

Both sdists downloaded from a registry and ``git archive`` output are tar
files. Members are checked before extraction so that an archive cannot
write outside the destination directory.
"""

from __future__ import annotations

import tarfile
from pathlib import Path, PurePosixPath
from typing import IO

from releaseplan.errors import E, ReleasePlanError


def _safe_members(tar: tarfile.TarFile, dest: Path, strip: int) -> list[tarfile.TarInfo]:
    members: list[tarfile.TarInfo] = []
    root = dest.resolve()
    for member in tar.getmembers():
        parts = PurePosixPath(member.name).parts[strip:]
        if not parts or not (member.isfile() or member.isdir()):
            continue
        target = (root / Path(*parts)).resolve()
        if PurePosixPath(member.name).is_absolute() or not target.is_relative_to(root):
            raise ReleasePlanError(
                code=E.SNAPSHOT_FAILED,
                message=f'Archive member {member.name!r} escapes the extraction directory.',
                hint='The archive is malformed or malicious; inspect it manually.',
            )
        member.name = PurePosixPath(*parts).as_posix()
        members.append(member)
    return members


def extract_tar(source: Path | IO[bytes], dest: Path, *, strip_components: int = 0) -> None:
    """Extract a (possibly compressed) tar archive into ``dest``.

    Args:
        source: Archive path or binary file object.
        dest: Destination directory, created if missing.
        strip_components: Leading path components to drop, like
            ``tar --strip-components``. Sdists wrap everything in a
            ``name-version/`` directory.

    Raises:
        ReleasePlanError: ``RP-SNAPSHOT-FAILED`` if the archive is
            unreadable or a member would land outside ``dest``.
    """
    dest.mkdir(parents=True, exist_ok=True)
    try:
        if isinstance(source, Path):
            tar = tarfile.open(source, mode='r:*')
        else:
            tar = tarfile.open(fileobj=source, mode='r:*')
        with tar:
            tar.extractall(dest, members=_safe_members(tar, dest, strip_components))  # noqa: S202 - members checked
    except tarfile.TarError as exc:
        raise ReleasePlanError(
            code=E.SNAPSHOT_FAILED,
            message=f'Failed to extract archive into {dest}: {exc}',
            hint='The downloaded or exported archive is corrupt.',
        ) from exc


__all__ = ['extract_tar']
