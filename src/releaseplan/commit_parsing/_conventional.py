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

"""Conventional Commits parser.

Pure implementation: depends only on ``re`` and :mod:`._types`.
"""

from __future__ import annotations

import re

from releaseplan.commit_parsing._types import OTHER_TYPE, ParsedCommit

# type(scope)!: description
CC_PATTERN: re.Pattern[str] = re.compile(
    r'^(?P<type>[A-Za-z][\w-]*)'  # type (e.g. feat, fix, chore)
    r'(?:\((?P<scope>[^)]*)\))?'  # optional scope in parens
    r'(?P<breaking>!)?'  # optional breaking change indicator
    r':\s+'  # colon + whitespace
    r'(?P<description>\S.*)$',  # description
)

# Footer lines that mark a breaking change in the message body.
BREAKING_FOOTER_PATTERN: re.Pattern[str] = re.compile(r'^BREAKING[ -]CHANGE:\s', re.MULTILINE)


class ConventionalCommitParser:
    """Parser for `Conventional Commits <https://www.conventionalcommits.org/>`_."""

    def parse(self, message: str) -> ParsedCommit:
        """Parse a commit message as a Conventional Commit.

        Only the subject line is matched against the ``type(scope)!:``
        grammar. The body is scanned for a ``BREAKING CHANGE:`` footer.
        """
        subject, _, body = message.strip().partition('\n')
        subject = subject.strip()

        match = CC_PATTERN.match(subject)
        if not match:
            return ParsedCommit(
                type=OTHER_TYPE,
                description=subject,
                conventional=False,
                raw=message,
            )

        breaking = bool(match.group('breaking')) or bool(BREAKING_FOOTER_PATTERN.search(body))
        return ParsedCommit(
            type=match.group('type').lower(),
            scope=(match.group('scope') or '').strip(),
            description=match.group('description').strip(),
            breaking=breaking,
            raw=message,
        )
