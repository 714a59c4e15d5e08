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

"""Central subprocess helper.

Every external tool call (``git``, the API compatibility checker) goes
through :func:`run_command`, which logs the invocation and returns a
:class:`CommandResult` instead of raising on a non-zero exit.

Key Concepts (ELI5)::

    ┌─────────────────────┬────────────────────────────────────────────────┐
    │ Concept             │ ELI5 Explanation                               │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ run_command         │ One function that runs any external tool and  │
    │                     │ writes down what happened.                    │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ CommandResult       │ The receipt: exit code, output, duration.     │
    └─────────────────────┴────────────────────────────────────────────────┘
"""

from __future__ import annotations

import os
import subprocess  # noqa: S404 - subprocess is the core purpose of this module
import time
from dataclasses import dataclass
from pathlib import Path

from releaseplan.logging import get_logger

log = get_logger('releaseplan.backends.run')

# Default timeout for subprocess calls (5 minutes).
DEFAULT_TIMEOUT_SECONDS = 300


@dataclass(frozen=True)
class CommandResult:
    """Result of a subprocess invocation.

    Attributes:
        command: The command that was executed.
        return_code: Process exit code (0 = success).
        stdout: Captured standard output.
        stderr: Captured standard error.
        duration: Wall-clock duration in milliseconds.
    """

    command: list[str]
    return_code: int
    stdout: str = ''
    stderr: str = ''
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        """Whether the command exited with code 0."""
        return self.return_code == 0

    @property
    def command_str(self) -> str:
        """The command as a single shell-style string."""
        return ' '.join(self.command)


def run_command(
    cmd: list[str],
    *,
    cwd: Path | str | None = None,
    env: dict[str, str] | None = None,
    timeout: int = DEFAULT_TIMEOUT_SECONDS,
    check: bool = False,
) -> CommandResult:
    """Run ``cmd`` and capture its output.

    Args:
        cmd: Command and arguments.
        cwd: Working directory for the command.
        env: Extra environment variables, merged over the current ones.
        timeout: Seconds to wait before killing the process.
        check: Raise :class:`subprocess.CalledProcessError` on failure.

    Returns:
        A :class:`CommandResult`.

    Raises:
        subprocess.CalledProcessError: If ``check`` and the exit code is
            non-zero.
        subprocess.TimeoutExpired: If the command exceeds ``timeout``.
    """
    cmd_str = ' '.join(cmd)
    log.debug('run_command', cmd=cmd_str, cwd=str(cwd or '.'))

    full_env: dict[str, str] | None = None
    if env:
        full_env = {**os.environ, **env}

    start = time.monotonic()
    try:
        result = subprocess.run(  # noqa: S603 -- trusted inputs from backends
            cmd,
            cwd=cwd,
            env=full_env,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        duration = (time.monotonic() - start) * 1000
        log.error('command_timeout', cmd=cmd_str, timeout=timeout, duration=duration)
        raise

    duration = (time.monotonic() - start) * 1000
    stdout = result.stdout
    stderr = result.stderr
    cmd_result = CommandResult(
        command=cmd,
        return_code=result.returncode,
        stdout=stdout,
        stderr=stderr,
        duration=duration,
    )

    if result.returncode != 0:
        log.debug(
            'command_failed',
            cmd=cmd_str,
            return_code=result.returncode,
            stderr=stderr[:500],
            duration=duration,
        )
        if check:
            raise subprocess.CalledProcessError(
                result.returncode,
                cmd,
                output=stdout,
                stderr=stderr,
            )
    else:
        log.debug('command_ok', cmd=cmd_str, duration=duration)

    return cmd_result


# Re-export subprocess exceptions so consumers don't need to import
# subprocess directly.
CalledProcessError = subprocess.CalledProcessError
TimeoutExpired = subprocess.TimeoutExpired

__all__ = [
    'DEFAULT_TIMEOUT_SECONDS',
    'CalledProcessError',
    'CommandResult',
    'TimeoutExpired',
    'run_command',
]
