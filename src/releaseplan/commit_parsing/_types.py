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

"""Pure types for commit message parsing.

Frozen dataclasses and a protocol only: no I/O, no logging.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

# Type given to messages that do not follow the convention.
OTHER_TYPE = 'other'


@dataclass(frozen=True)
class ParsedCommit:
    """A parsed commit message.

    Attributes:
        type: Lowercased commit type (``"feat"``, ``"fix"``...), or
            ``"other"`` when the subject does not follow the convention.
        description: The subject after the ``type(scope):`` prefix, or the
            whole subject line for ``other`` commits.
        scope: The optional scope (e.g. ``"auth"``).
        breaking: ``!`` marker or a ``BREAKING CHANGE:`` footer is present.
        conventional: Whether the subject matched the convention.
        raw: The original message.
    """

    type: str
    description: str
    scope: str = ''
    breaking: bool = False
    conventional: bool = True
    raw: str = ''

    @property
    def is_feature(self) -> bool:
        """Whether this commit adds a feature."""
        return self.type == 'feat'


@runtime_checkable
class CommitParser(Protocol):
    """Protocol for commit message parsers.

    A parser never fails: messages it does not understand come back with
    type ``"other"`` so that they still count toward a patch release.
    """

    def parse(self, message: str) -> ParsedCommit:
        """Parse a full commit message (subject plus optional body)."""
        ...
