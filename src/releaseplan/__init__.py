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

"""releaseplan: release decisions for uv workspaces.

Given a workspace of interdependent packages, releaseplan works out which
packages need a release, what their next semantic version is, which commits
describe the release, and how a bump ripples through local dependents.

Pipeline::

    DiffEngine ──► Diff ──► versioning ──► VersionCoordinator
                                                   │
                  UpdatePlan ◄── Updater ◄── DependencyPropagator
"""

__version__ = '0.1.0'
