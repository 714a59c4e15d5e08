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

"""Published-Artifact Resolvers.

- :class:`~releaseplan.backends.registry.pypi.PyPIResolver`: downloads
  the newest sdist from a PyPI-compatible index.
- :class:`~releaseplan.backends.registry.git_tags.GitTagResolver`:
  exports the package as of its newest release tag.
"""

from releaseplan.backends.registry.git_tags import GitTagResolver
from releaseplan.backends.registry.pypi import PyPIResolver
from releaseplan.snapshot import SnapshotResolver

__all__ = [
    'GitTagResolver',
    'PyPIResolver',
    'SnapshotResolver',
]
