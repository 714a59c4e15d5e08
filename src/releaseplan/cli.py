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

"""Command-line interface for releaseplan.

Subcommands::

    releaseplan plan [--root DIR] [--allow-dirty] [--format table|json]
        Compute the release plan of a uv workspace.

    releaseplan next-version VERSION -m MESSAGE [-m MESSAGE ...]
        Apply the version rules to a version and commit messages.

    releaseplan explain CODE
        Describe an RP- error code.

Global flags ``-v`` / ``-q`` / ``--json-log`` control logging.
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import sys
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.table import Table
from rich_argparse import RichHelpFormatter

from releaseplan import __version__
from releaseplan.backends.registry import GitTagResolver, PyPIResolver
from releaseplan.backends.vcs import GitCLIBackend
from releaseplan.compat import CommandCompatibilityChecker, Compatible, CompatOutcome, Incompatible
from releaseplan.config import load_config
from releaseplan.errors import E, ReleasePlanError, explain, render_error
from releaseplan.logging import configure_logging, get_logger
from releaseplan.updater import Updater, UpdatePlan
from releaseplan.versioning import VersionPolicy, next_increment, next_version, parse_version
from releaseplan.workspace import discover_workspace

logger = get_logger(__name__)


def _compat_label(outcome: CompatOutcome) -> str:
    if isinstance(outcome, Compatible):
        return 'compatible'
    if isinstance(outcome, Incompatible):
        return 'incompatible'
    return 'skipped'


def plan_to_dict(plan: UpdatePlan) -> dict[str, Any]:
    """JSON-friendly view of ``plan``."""
    return {
        'workspace_version': str(plan.workspace_version) if plan.workspace_version else None,
        'packages': [
            {
                'name': pkg.name,
                'current_version': str(pkg.version),
                'next_version': str(result.version),
                'registry_version': str(result.registry_version) if result.registry_version else None,
                'compat_check': _compat_label(result.compat_check),
                'compat_details': (
                    result.compat_check.details if isinstance(result.compat_check, Incompatible) else None
                ),
                'commits': [{'id': c.id, 'message': c.message} for c in result.commits],
                'changelog': result.changelog,
            }
            for pkg, result in plan.updates
        ],
        'failures': [{'package': f.package, 'stage': f.stage, 'error': f.error} for f in plan.failures],
    }


def _print_table(plan: UpdatePlan, console: Console) -> None:
    if not plan.updates:
        console.print('Nothing to release.')
    else:
        table = Table(title='Release plan', title_style='bold')
        table.add_column('Package', style='cyan')
        table.add_column('Current')
        table.add_column('Next', style='green')
        table.add_column('Commits', justify='right')
        table.add_column('API')
        for pkg, result in plan.updates:
            next_label = str(result.version)
            if result.registry_version is not None:
                next_label += f' (registry {result.registry_version})'
            table.add_row(
                pkg.name,
                str(pkg.version),
                next_label,
                str(len(result.commits)),
                _compat_label(result.compat_check),
            )
        console.print(table)
    if plan.workspace_version is not None:
        console.print(f'Workspace version: [green]{plan.workspace_version}[/green]')
    for failure in plan.failures:
        console.print(f'[red]failed[/red] {failure.package} ({failure.stage}): {failure.error}')


async def _cmd_plan(args: argparse.Namespace) -> int:
    """Handle the ``plan`` subcommand."""
    root = Path(args.root).resolve()
    config = load_config(root)
    if args.allow_dirty:
        config = dataclasses.replace(config, allow_dirty=True)
    workspace = discover_workspace(root)

    vcs = GitCLIBackend(root)
    tags = GitTagResolver(
        vcs,
        tag_templates={p.name: config.for_package(p.name).tag_name_template for p in workspace.packages},
        default_template=config.defaults.tag_name_template,
    )
    compat = CommandCompatibilityChecker(config.compat_command) if config.compat_command else None
    updater = Updater(
        workspace,
        config,
        vcs=vcs,
        registry=PyPIResolver(base_url=config.registry_url),
        tags=tags,
        compat=compat,
    )
    plan = await updater.packages_to_update()

    if args.format == 'json':
        print(json.dumps(plan_to_dict(plan), indent=2))  # noqa: T201 - CLI output
    else:
        _print_table(plan, Console())

    if plan.failures:
        render_error(
            ReleasePlanError(
                code=E.PACKAGE_FAILED,
                message=f'{len(plan.failures)} package(s) could not be planned: '
                + ', '.join(f.package for f in plan.failures),
                hint='Re-run with -v for details.',
            )
        )
        return 1
    return 0


def _cmd_next_version(args: argparse.Namespace) -> int:
    """Handle the ``next-version`` subcommand."""
    current = parse_version(args.version)
    policy = VersionPolicy(
        features_always_increment_minor=args.features_always_increment_minor,
        breaking_always_increment_major=args.breaking_always_increment_major,
    )
    increment = next_increment(current, args.message, policy)
    result = next_version(current, args.message, policy)
    if args.format == 'json':
        data = {
            'current': str(current),
            'increment': increment.name.lower() if increment else None,
            'next': str(result),
        }
        print(json.dumps(data, indent=2))  # noqa: T201 - CLI output
    else:
        print(result)  # noqa: T201 - CLI output
    return 0


def _cmd_explain(args: argparse.Namespace) -> int:
    """Handle the ``explain`` subcommand."""
    result = explain(args.code)
    if result is None:
        print(f'Unknown error code: {args.code}')  # noqa: T201 - CLI output
        return 1
    print(result)  # noqa: T201 - CLI output
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser.

    Returns:
        Configured :class:`argparse.ArgumentParser`.
    """
    RichHelpFormatter.styles['argparse.groups'] = 'bold yellow'
    parser = argparse.ArgumentParser(
        prog='releaseplan',
        description='Release decisions for uv workspaces.',
        formatter_class=RichHelpFormatter,
    )
    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}',
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument('--verbose', '-v', action='store_true', help='Show debug logs.')
    verbosity.add_argument('--quiet', '-q', action='store_true', help='Only show warnings and errors.')
    parser.add_argument('--json-log', action='store_true', help='Emit logs as JSON lines.')

    subparsers = parser.add_subparsers(dest='command')

    plan_parser = subparsers.add_parser(
        'plan',
        help='Compute which packages to release and their next versions.',
        formatter_class=RichHelpFormatter,
    )
    plan_parser.add_argument(
        '--root',
        default='.',
        help='Workspace root containing pyproject.toml (default: current directory).',
    )
    plan_parser.add_argument(
        '--allow-dirty',
        action='store_true',
        help='Do not require a clean working tree.',
    )
    plan_parser.add_argument(
        '--format',
        choices=['table', 'json'],
        default='table',
        help='Output format (default: table).',
    )

    next_parser = subparsers.add_parser(
        'next-version',
        help='Compute the next version for a version and commit messages.',
        formatter_class=RichHelpFormatter,
    )
    next_parser.add_argument('version', help='Current version, e.g. 1.2.3.')
    next_parser.add_argument(
        '--message',
        '-m',
        action='append',
        default=[],
        help='Commit message (repeatable).',
    )
    next_parser.add_argument(
        '--features-always-increment-minor',
        action='store_true',
        help='Bump minor for features before 1.0.',
    )
    next_parser.add_argument(
        '--breaking-always-increment-major',
        action='store_true',
        help='Bump major for breaking changes before 1.0.',
    )
    next_parser.add_argument(
        '--format',
        choices=['text', 'json'],
        default='text',
        help='Output format (default: text).',
    )

    explain_parser = subparsers.add_parser(
        'explain',
        help='Explain an error code.',
        formatter_class=RichHelpFormatter,
    )
    explain_parser.add_argument('code', help='Error code, e.g. RP-WORKTREE-DIRTY.')

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(verbose=args.verbose, quiet=args.quiet, json_log=args.json_log)

    try:
        command = args.command
        if command == 'plan':
            return asyncio.run(_cmd_plan(args))
        if command == 'next-version':
            return _cmd_next_version(args)
        if command == 'explain':
            return _cmd_explain(args)

        parser.print_help()  # noqa: T201 - CLI output
        print(  # noqa: T201 - CLI output
            f'\n{parser.prog}: error: please provide a command',
            file=sys.stderr,
        )
        return 2

    except ReleasePlanError as exc:
        render_error(exc)
        return 1
    except KeyboardInterrupt:
        logger.info('interrupted')
        return 130


def _main() -> None:
    """Wrapper for pyproject.toml [project.scripts] entry point."""
    sys.exit(main())


__all__ = [
    'build_parser',
    'main',
    'plan_to_dict',
]
