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

"""Commit message parsing.

Usage::

    from releaseplan.commit_parsing import parse_commit

    cc = parse_commit('feat(auth)!: drop OAuth1')
    assert cc.type == 'feat'
    assert cc.breaking

    parse_commit('Update README').type  # 'other'
"""

from releaseplan.commit_parsing._conventional import ConventionalCommitParser
from releaseplan.commit_parsing._types import OTHER_TYPE, CommitParser, ParsedCommit

_DEFAULT_PARSER = ConventionalCommitParser()


def parse_commit(message: str) -> ParsedCommit:
    """Parse ``message`` with the default Conventional Commits parser."""
    return _DEFAULT_PARSER.parse(message)


__all__ = [
    'OTHER_TYPE',
    'CommitParser',
    'ConventionalCommitParser',
    'ParsedCommit',
    'parse_commit',
]
