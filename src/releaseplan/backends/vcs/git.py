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

"""Git backend for the Source-Control Gateway.

The :class:`GitCLIBackend` implements
:class:`~releaseplan.backends.vcs.SourceControl` by delegating to ``git``
via :func:`run_command`. Blocking subprocess calls are dispatched to
``asyncio.to_thread()``.
"""

from __future__ import annotations

import asyncio
import tempfile
from collections.abc import Sequence
from pathlib import Path

from releaseplan.backends._archive import extract_tar
from releaseplan.backends._run import CommandResult, run_command
from releaseplan.backends.vcs._types import NoMoreHistory
from releaseplan.diff import Signature
from releaseplan.errors import E, ReleasePlanError
from releaseplan.logging import get_logger

log = get_logger('releaseplan.backends.git')


class GitCLIBackend:
    """:class:`~releaseplan.backends.vcs.SourceControl` over the ``git`` CLI.

    Args:
        repo_root: Path to the git repository root.
    """

    def __init__(self, repo_root: Path) -> None:
        """Initialize with the git repository root path."""
        self.root = repo_root

    def _git(self, *args: str, check: bool = False) -> CommandResult:
        """Run a git command synchronously (called via to_thread)."""
        return run_command(['git', *args], cwd=self.root, check=check)

    async def _run(self, *args: str) -> CommandResult:
        return await asyncio.to_thread(self._git, *args)

    async def is_clean(self) -> bool:
        """Return ``True`` if ``git status`` reports nothing."""
        result = await self._run('status', '--porcelain')
        return result.ok and result.stdout.strip() == ''

    async def current_head(self) -> str:
        """Current branch name, or the commit id on a detached HEAD."""
        result = await self._run('symbolic-ref', '--quiet', '--short', 'HEAD')
        if result.ok and result.stdout.strip():
            return result.stdout.strip()
        return await self.current_commit()

    async def current_commit(self) -> str:
        """Commit id of HEAD."""
        result = await self._run('rev-parse', 'HEAD')
        if not result.ok:
            raise ReleasePlanError(
                code=E.CHECKOUT_FAILED,
                message=f'Cannot resolve HEAD in {self.root}: {result.stderr.strip()}',
                hint='Make sure the repository has at least one commit.',
            )
        return result.stdout.strip()

    async def checkout(self, ref: str) -> None:
        """Check out ``ref``; raises ``RP-CHECKOUT-FAILED`` on failure."""
        result = await self._run('checkout', '--quiet', ref)
        if not result.ok:
            raise ReleasePlanError(
                code=E.CHECKOUT_FAILED,
                message=f'git checkout {ref} failed in {self.root}: {result.stderr.strip()}',
                hint='Local changes block checkouts. Commit or stash them; --allow-dirty cannot bypass this.',
            )
        log.debug('checked_out', ref=ref)

    async def _last_commit_at(self, rev: str, paths: Sequence[str]) -> str:
        result = await self._run('log', '-n1', '--format=%H', rev, '--', *paths)
        commit = result.stdout.strip()
        if not result.ok or not commit:
            raise NoMoreHistory(f'no commit touching {", ".join(paths)} at or before {rev}')
        return commit

    async def checkout_last_at(self, paths: Sequence[str]) -> str:
        """Check out the newest commit at or before HEAD touching ``paths``."""
        commit = await self._last_commit_at('HEAD', paths)
        await self.checkout(commit)
        return commit

    async def checkout_previous(self, paths: Sequence[str]) -> str:
        """Check out the next older commit (first-parent side) touching ``paths``."""
        parent = await self._run('rev-parse', '--verify', '--quiet', 'HEAD~1')
        if not parent.ok:
            raise NoMoreHistory('HEAD is a root commit')
        commit = await self._last_commit_at(parent.stdout.strip(), paths)
        await self.checkout(commit)
        return commit

    async def files_changed_in(self, commit: str) -> set[str]:
        """Paths touched by ``commit`` relative to the repository root."""
        result = await self._run('diff-tree', '--no-commit-id', '--name-only', '-r', '-m', '--root', commit)
        if not result.ok:
            msg = f'cannot list files changed in {commit}: {result.stderr.strip()}'
            raise OSError(msg)
        return {line for line in result.stdout.splitlines() if line}

    async def is_ancestor(self, maybe_ancestor: str, commit: str) -> bool:
        """``git merge-base --is-ancestor``."""
        result = await self._run('merge-base', '--is-ancestor', maybe_ancestor, commit)
        return result.ok

    async def tag_commit(self, tag: str) -> str | None:
        """Commit that ``tag`` points to, peeling annotated tags."""
        result = await self._run('rev-parse', '--verify', '--quiet', f'refs/tags/{tag}^{{commit}}')
        return result.stdout.strip() if result.ok and result.stdout.strip() else None

    async def list_tags(self) -> list[str]:
        """All tag names."""
        result = await self._run('tag', '--list')
        if not result.ok:
            return []
        return [line for line in result.stdout.splitlines() if line]

    async def commit_message(self, commit: str) -> str:
        """Full message of ``commit``."""
        result = await self._run('log', '-n1', '--format=%B', commit)
        return result.stdout.strip()

    async def commit_author(self, commit: str) -> Signature:
        """Author of ``commit``."""
        result = await self._run('log', '-n1', '--format=%an%x00%ae%x00%at', commit)
        name, _, rest = result.stdout.strip().partition('\x00')
        email, _, timestamp = rest.partition('\x00')
        return Signature(name=name, email=email, timestamp=int(timestamp) if timestamp.isdigit() else 0)

    async def export_tree(self, commit: str, paths: Sequence[str], dest: Path) -> None:
        """Write ``paths`` as of ``commit`` under ``dest`` using ``git archive``."""
        with tempfile.TemporaryDirectory(prefix='releaseplan-archive-') as tmp:
            archive = Path(tmp) / 'tree.tar'
            result = await self._run('archive', '--format=tar', f'--output={archive}', commit, *paths)
            if not result.ok:
                raise ReleasePlanError(
                    code=E.SNAPSHOT_FAILED,
                    message=f'git archive {commit} failed: {result.stderr.strip()}',
                    hint='Check that the tagged commit contains the package directory.',
                )
            await asyncio.to_thread(extract_tar, archive, dest)


__all__ = ['GitCLIBackend']
