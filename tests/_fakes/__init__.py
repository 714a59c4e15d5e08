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

"""Shared test fakes for releaseplan.

Usage::

    from tests._fakes import FakeSourceControl, FakeResolver, Published, manifest

    vcs = FakeSourceControl(tmp_path / 'repo')
    vcs.commit('chore: init', {'pyproject.toml': root_manifest(),
                               'packages/a/pyproject.toml': manifest('a')})
"""

from tests._fakes._resolver import (
    FakeCompatibilityChecker as FakeCompatibilityChecker,
    FakeResolver as FakeResolver,
    Published as Published,
)
from tests._fakes._vcs import BRANCH as BRANCH, FakeCommit as FakeCommit, FakeSourceControl as FakeSourceControl
from tests._fakes._workspace import manifest as manifest, root_manifest as root_manifest

__all__ = [
    'BRANCH',
    'FakeCommit',
    'FakeCompatibilityChecker',
    'FakeResolver',
    'FakeSourceControl',
    'Published',
    'manifest',
    'root_manifest',
]
