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

"""Structured error system for releaseplan.

Every error carries a unique ``RP-NAMED-KEY`` code, a human-readable
message, and an optional hint with a suggested fix.

Key Concepts (ELI5)::

    ┌─────────────────────┬────────────────────────────────────────────────┐
    │ Concept             │ ELI5 Explanation                               │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ ErrorCode           │ A named ID like "RP-WORKTREE-DIRTY". Readable │
    │                     │ at a glance and greppable in CI logs.         │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ ErrorInfo           │ Code + message + hint. An error card with a   │
    │                     │ fix suggestion stapled on.                    │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ ReleasePlanError    │ The exception you raise. Carries the card so  │
    │                     │ the CLI can render it.                        │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ ERRORS catalog      │ Pre-written cards for the common failures,    │
    │                     │ shown by ``releaseplan explain CODE``.        │
    └─────────────────────┴────────────────────────────────────────────────┘

Code categories::

    RP-CONFIG-*       releaseplan.toml problems
    RP-WORKSPACE-*    Workspace discovery problems
    RP-VERSION-*      Version parsing and consistency problems
    RP-WORKTREE-*     Working copy state
    RP-CHECKOUT-*     History walking
    RP-REGISTRY-*     Published artifact lookup
    RP-RUN-*          Whole-run control

Usage::

    from releaseplan.errors import E, ReleasePlanError

    raise ReleasePlanError(
        code=E.WORKTREE_DIRTY,
        message='Working tree /src/repo has uncommitted changes.',
        hint='Commit or stash your changes, or pass --allow-dirty.',
    )
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from enum import Enum
from typing import TextIO

from rich.console import Console
from rich.markup import escape as rich_escape


class ErrorCode(str, Enum):
    """All releaseplan diagnostic codes."""

    # Configuration
    CONFIG_NOT_FOUND = 'RP-CONFIG-NOT-FOUND'
    CONFIG_INVALID_KEY = 'RP-CONFIG-INVALID-KEY'
    CONFIG_INVALID_VALUE = 'RP-CONFIG-INVALID-VALUE'

    # Workspace discovery
    WORKSPACE_NOT_FOUND = 'RP-WORKSPACE-NOT-FOUND'
    WORKSPACE_PARSE_ERROR = 'RP-WORKSPACE-PARSE-ERROR'
    WORKSPACE_DUPLICATE_PACKAGE = 'RP-WORKSPACE-DUPLICATE-PACKAGE'
    MANIFEST_READ_FAILED = 'RP-MANIFEST-READ-FAILED'

    # Versions
    VERSION_INVALID = 'RP-VERSION-INVALID'
    VERSION_BEHIND_TAG = 'RP-VERSION-BEHIND-TAG'

    # Working copy and history
    WORKTREE_DIRTY = 'RP-WORKTREE-DIRTY'
    CHECKOUT_FAILED = 'RP-CHECKOUT-FAILED'

    # Published artifacts
    TAG_WITHOUT_ARTIFACT = 'RP-TAG-WITHOUT-ARTIFACT'
    REGISTRY_UNAVAILABLE = 'RP-REGISTRY-UNAVAILABLE'
    SNAPSHOT_FAILED = 'RP-SNAPSHOT-FAILED'

    # Run control
    PACKAGE_FAILED = 'RP-PACKAGE-FAILED'
    RUN_CANCELLED = 'RP-RUN-CANCELLED'


# Convenience alias for shorter imports.
E = ErrorCode


@dataclass(frozen=True)
class ErrorInfo:
    """Metadata for a single error code.

    Attributes:
        code: The ``RP-NAMED-KEY`` error code.
        message: Human-readable description of what went wrong.
        hint: Optional suggestion for how to fix the error.
    """

    code: ErrorCode
    message: str
    hint: str = ''


class ReleasePlanError(Exception):
    """Base exception for all releaseplan errors.

    Args:
        code: The error code from :class:`ErrorCode`.
        message: Human-readable description of what went wrong.
        hint: Optional suggestion for how to fix the error.
    """

    def __init__(self, code: ErrorCode, message: str, hint: str = '') -> None:
        """Initialize with an error code, message, and optional hint."""
        self.info = ErrorInfo(code=code, message=message, hint=hint)
        super().__init__(f'[{code.value}] {message}')

    @property
    def code(self) -> ErrorCode:
        """The error code."""
        return self.info.code

    @property
    def hint(self) -> str:
        """Suggestion for fixing this error, or empty string."""
        return self.info.hint


ERRORS: dict[ErrorCode, ErrorInfo] = {
    E.CONFIG_INVALID_KEY: ErrorInfo(
        code=E.CONFIG_INVALID_KEY,
        message='releaseplan.toml contains a key releaseplan does not know.',
        hint='Check the key for typos; the error message suggests the closest valid key.',
    ),
    E.WORKSPACE_NOT_FOUND: ErrorInfo(
        code=E.WORKSPACE_NOT_FOUND,
        message='No [tool.uv.workspace] section found in the root pyproject.toml.',
        hint='Run releaseplan from the workspace root or pass --root.',
    ),
    E.WORKTREE_DIRTY: ErrorInfo(
        code=E.WORKTREE_DIRTY,
        message='The working tree has uncommitted changes.',
        hint='Commit or stash your changes. History walking checks out old commits and would overwrite them.',
    ),
    E.TAG_WITHOUT_ARTIFACT: ErrorInfo(
        code=E.TAG_WITHOUT_ARTIFACT,
        message='A release tag exists for the current version but the package was not found in the registry.',
        hint='The previous release probably failed half-way. Consider publishing the package manually.',
    ),
    E.VERSION_BEHIND_TAG: ErrorInfo(
        code=E.VERSION_BEHIND_TAG,
        message='The local version is tagged but differs from the latest published version.',
        hint='The registry and the repository disagree. Check whether a newer version was published from another branch.',
    ),
    E.CHECKOUT_FAILED: ErrorInfo(
        code=E.CHECKOUT_FAILED,
        message='Checking out a historical commit failed.',
        hint='Uncommitted changes block checkouts; --allow-dirty cannot be used when they touch walked files.',
    ),
    E.RUN_CANCELLED: ErrorInfo(
        code=E.RUN_CANCELLED,
        message='The update run was cancelled between packages.',
        hint='The working copy was left at its original head; rerun when ready.',
    ),
}


def explain(code: str) -> str | None:
    """Return a detailed explanation for an error code.

    Args:
        code: The error code string, e.g. ``"RP-WORKTREE-DIRTY"``.

    Returns:
        A formatted explanation string, or ``None`` if the code is unknown.
    """
    try:
        error_code = ErrorCode(code)
    except ValueError:
        return None

    info = ERRORS.get(error_code)
    if info is None:
        return f'{code}: No detailed explanation available.'

    lines = [f'{code}: {info.message}']
    if info.hint:
        lines.append(f'  Hint: {info.hint}')
    return '\n'.join(lines)


def render_error(exc: ReleasePlanError, *, file: TextIO | None = None) -> None:
    """Render an error in compiler style, with color on a TTY.

    Output format::

        error[RP-WORKTREE-DIRTY]: Working tree /src/repo has uncommitted changes.
          |
          = hint: Commit or stash your changes.

    Args:
        exc: The error to render.
        file: Output stream (defaults to ``sys.stderr``).
    """
    out = file or sys.stderr

    if out.isatty():
        console = Console(file=out, highlight=False)
        msg = rich_escape(exc.info.message)
        console.print(f'[bold red]error\\[{exc.code.value}][/bold red][bold]: {msg}[/bold]')
        if exc.hint:
            console.print('  [dim]|[/dim]')
            console.print(f'  [dim]=[/dim] [cyan]hint[/cyan]: {rich_escape(exc.hint)}')
        console.print()
    else:
        print(f'error[{exc.code.value}]: {exc.info.message}', file=out)  # noqa: T201 - CLI output
        if exc.hint:
            print('  |', file=out)  # noqa: T201 - CLI output
            print(f'  = hint: {exc.hint}', file=out)  # noqa: T201 - CLI output
        print(file=out)  # noqa: T201 - CLI output


__all__ = [
    'E',
    'ERRORS',
    'ErrorCode',
    'ErrorInfo',
    'ReleasePlanError',
    'explain',
    'render_error',
]
