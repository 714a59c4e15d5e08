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

"""Library API compatibility checks.

A compatibility checker compares the public API of the local package
against the published snapshot and reports whether the change is
backwards compatible. The outcome is informational: it is recorded on the
:class:`~releaseplan.diff.Diff` and shown in the plan, but never changes
the computed version.

The bundled :class:`CommandCompatibilityChecker` runs any external tool
(for example ``griffe check``) with ``{local}`` and ``{published}``
placeholders substituted by the two directories. Exit code 0 means
compatible.

Checks are read-only over two materialised directories, so
:func:`run_compat_checks` runs them concurrently with a bounded number of
workers.
"""

from __future__ import annotations

import asyncio
import shutil
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, TypeAlias, runtime_checkable

from releaseplan.backends._run import run_command
from releaseplan.logging import get_logger

logger = get_logger(__name__)

DEFAULT_COMPAT_WORKERS = 4


@dataclass(frozen=True)
class Compatible:
    """The local API is backwards compatible with the published one."""


@dataclass(frozen=True)
class Incompatible:
    """The local API breaks the published one.

    Attributes:
        details: The checker's report.
    """

    details: str


@dataclass(frozen=True)
class Skipped:
    """No check ran for this package."""


@dataclass(frozen=True)
class Unavailable:
    """The checker tool is not installed or could not run."""

    reason: str


# What ends up on a Diff.
CompatOutcome: TypeAlias = Compatible | Incompatible | Skipped

# What a checker returns.
CheckResult: TypeAlias = Compatible | Incompatible | Unavailable


@runtime_checkable
class CompatibilityChecker(Protocol):
    """Compares a local package directory with its published snapshot."""

    async def check(self, local_dir: Path, published_dir: Path) -> CheckResult:
        """Return the compatibility verdict for the two directories."""
        ...


class CommandCompatibilityChecker:
    """Runs an external API checker command.

    Args:
        command: Command and arguments. ``{local}`` and ``{published}`` in
            any argument are replaced by the directories being compared.
        timeout: Seconds to wait for the command.
    """

    def __init__(self, command: Sequence[str], *, timeout: int = 600) -> None:
        """Store the command template."""
        if not command:
            msg = 'compat command must not be empty'
            raise ValueError(msg)
        self._command = list(command)
        self._timeout = timeout

    async def check(self, local_dir: Path, published_dir: Path) -> CheckResult:
        """Run the command and translate its exit code."""
        if shutil.which(self._command[0]) is None:
            return Unavailable(reason=f'{self._command[0]} is not installed')

        cmd = [arg.format(local=local_dir, published=published_dir) for arg in self._command]
        try:
            result = await asyncio.to_thread(run_command, cmd, cwd=local_dir, timeout=self._timeout)
        except subprocess.TimeoutExpired:
            return Unavailable(reason=f'{self._command[0]} timed out after {self._timeout}s')
        except OSError as exc:
            return Unavailable(reason=f'{self._command[0]} could not run: {exc}')
        if result.ok:
            return Compatible()
        details = '\n'.join(part for part in (result.stdout.strip(), result.stderr.strip()) if part)
        return Incompatible(details=details or f'{result.command_str} exited with {result.return_code}')


async def run_compat_checks(
    checker: CompatibilityChecker,
    jobs: Mapping[str, tuple[Path, Path]],
    *,
    workers: int = DEFAULT_COMPAT_WORKERS,
) -> dict[str, CheckResult]:
    """Run ``checker`` for every job with at most ``workers`` in flight.

    Args:
        checker: The checker to run.
        jobs: Package name to ``(local_dir, published_dir)``.
        workers: Maximum concurrent checks.

    Returns:
        Package name to result. Completion order does not matter; every
        result is keyed by the package it belongs to.
    """
    semaphore = asyncio.Semaphore(max(1, workers))

    async def _one(name: str, local_dir: Path, published_dir: Path) -> tuple[str, CheckResult]:
        async with semaphore:
            logger.debug('compat_check_started', package=name)
            result = await checker.check(local_dir, published_dir)
            logger.debug('compat_check_finished', package=name, result=type(result).__name__)
            return name, result

    results = await asyncio.gather(*(_one(name, local, published) for name, (local, published) in jobs.items()))
    return dict(results)


__all__ = [
    'DEFAULT_COMPAT_WORKERS',
    'CheckResult',
    'CommandCompatibilityChecker',
    'CompatOutcome',
    'CompatibilityChecker',
    'Compatible',
    'Incompatible',
    'Skipped',
    'Unavailable',
    'run_compat_checks',
]
