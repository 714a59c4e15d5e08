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

"""Tests for releaseplan.diff."""

from __future__ import annotations

import re

import semver
from releaseplan.compat import Skipped
from releaseplan.diff import NO_COMMIT_ID, Commit, Diff, Signature


class TestCommit:
    """Tests for Commit."""

    def test_identity_ignores_attribution(self) -> None:
        """Commits are equal when id and message match."""
        a = Commit('abc1234', 'fix: x', author=Signature('Ann'))
        b = Commit('abc1234', 'fix: x', author=Signature('Bob'))
        assert a == b

    def test_synthetic(self) -> None:
        """Synthetic commits carry the sentinel id."""
        commit = Commit.synthetic('chore: update pyproject.toml dependencies')
        assert commit.id == NO_COMMIT_ID
        assert commit.is_synthetic

    def test_synthetic_commits_differ_by_message(self) -> None:
        """Two synthetic commits with different messages are distinct."""
        assert Commit.synthetic('a') != Commit.synthetic('b')

    def test_short_id(self) -> None:
        """The short id has seven characters."""
        assert Commit('0123456789abcdef', 'x').short_id == '0123456'


class TestDiff:
    """Tests for Diff."""

    def test_defaults(self) -> None:
        """A fresh diff is empty, published and unchecked."""
        diff = Diff(registry_package_exists=True)
        assert diff.commits == []
        assert diff.is_version_published is True
        assert diff.compat_check == Skipped()
        assert diff.registry_version is None

    def test_should_update_version(self) -> None:
        """Only published packages with commits get a computed version."""
        diff = Diff(registry_package_exists=True)
        assert not diff.should_update_version()
        diff.add_commit(Commit('a', 'fix: x'))
        assert diff.should_update_version()
        diff.set_version_unpublished(semver.Version.parse('0.1.0'))
        assert not diff.should_update_version()
        assert diff.registry_version == semver.Version.parse('0.1.0')

    def test_not_in_registry(self) -> None:
        """Never-published packages do not get a computed version."""
        diff = Diff(registry_package_exists=False, commits=[Commit('a', 'fix: x')])
        assert not diff.should_update_version()

    def test_add_commits_deduplicates(self) -> None:
        """Commits already present are not added twice."""
        diff = Diff(registry_package_exists=True, commits=[Commit('a', 'fix: x')])
        diff.add_commits([Commit('a', 'fix: x'), Commit('b', 'feat: y'), Commit('b', 'feat: y')])
        assert [c.id for c in diff.commits] == ['a', 'b']

    def test_any_commit_matches(self) -> None:
        """Messages are searched with the pattern."""
        diff = Diff(registry_package_exists=True, commits=[Commit('a', 'docs: typo'), Commit('b', 'fix: x')])
        assert diff.any_commit_matches(re.compile('^fix'))
        assert not diff.any_commit_matches(re.compile('^feat'))

    def test_sorted_commits(self) -> None:
        """Commits are newest first unless oldest first is requested."""
        diff = Diff(registry_package_exists=True, commits=[Commit('new', 'b'), Commit('old', 'a')])
        assert [c.id for c in diff.sorted_commits(oldest_first=False)] == ['new', 'old']
        assert [c.id for c in diff.sorted_commits(oldest_first=True)] == ['old', 'new']
        assert [c.id for c in diff.commits] == ['new', 'old'], 'sorting must not mutate the diff'
