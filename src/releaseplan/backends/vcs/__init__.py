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

"""Source-Control Gateway protocol.

Every working-copy mutation the history walk performs goes through this
interface, so tests can swap in an in-memory history. Implementations:

- :class:`~releaseplan.backends.vcs.git.GitCLIBackend`: ``git`` CLI
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Protocol, runtime_checkable

from releaseplan.backends.vcs._types import NoMoreHistory as NoMoreHistory
from releaseplan.backends.vcs.git import GitCLIBackend as GitCLIBackend
from releaseplan.diff import Signature


@runtime_checkable
class SourceControl(Protocol):
    """Protocol for the version control operations the walk needs.

    Paths are POSIX strings relative to :attr:`root`. All methods are
    async so that shelling out does not block the event loop.
    """

    root: Path

    async def is_clean(self) -> bool:
        """Return ``True`` if the working copy has no uncommitted changes."""
        ...

    async def current_head(self) -> str:
        """Branch name (or commit id when detached) to restore after a walk."""
        ...

    async def current_commit(self) -> str:
        """Commit id currently checked out."""
        ...

    async def checkout(self, ref: str) -> None:
        """Check out a branch or commit.

        Raises:
            ReleasePlanError: ``RP-CHECKOUT-FAILED`` on failure.
        """
        ...

    async def checkout_last_at(self, paths: Sequence[str]) -> str:
        """Check out the newest commit, at or before the current one, touching ``paths``.

        Raises:
            NoMoreHistory: If no commit touches ``paths``.
        """
        ...

    async def checkout_previous(self, paths: Sequence[str]) -> str:
        """Check out the next older commit touching ``paths``.

        Raises:
            NoMoreHistory: If there is no such commit.
        """
        ...

    async def files_changed_in(self, commit: str) -> set[str]:
        """Paths added, modified or deleted by ``commit``."""
        ...

    async def is_ancestor(self, maybe_ancestor: str, commit: str) -> bool:
        """Whether ``maybe_ancestor`` is reachable from ``commit`` (or equal)."""
        ...

    async def tag_commit(self, tag: str) -> str | None:
        """Commit a tag points to, or ``None`` if the tag does not exist."""
        ...

    async def list_tags(self) -> list[str]:
        """All tag names."""
        ...

    async def commit_message(self, commit: str) -> str:
        """Full message of ``commit``."""
        ...

    async def commit_author(self, commit: str) -> Signature:
        """Author of ``commit``."""
        ...

    async def export_tree(self, commit: str, paths: Sequence[str], dest: Path) -> None:
        """Write ``paths`` as of ``commit`` under ``dest`` without touching the working copy."""
        ...


__all__ = [
    'GitCLIBackend',
    'NoMoreHistory',
    'SourceControl',
]
