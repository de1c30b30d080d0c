"""
Unit tests for the evaluator: repository-set resolution and per-set leaderboards.
"""
import unittest
from datetime import datetime, timezone

from evaluator import resolve_repos, evaluate_repo_sets
from ingest.github import GitHubAPIError
from normalize.models import RepositoryRef, RepoSet, ContributorSet, RepoFailure

NOW = datetime(2024, 3, 31, 12, 0, 0, tzinfo=timezone.utc)


def _ref(name):
    return RepositoryRef.parse(name)


class MockGitHubClient:
    def __init__(self, contributors=None, org_repos=None, org_error=None):
        self.contributors = contributors or {}
        self.org_repos = org_repos or {}
        self.org_error = org_error
        self.fetch_calls = []
        self.listed = []

    def list_org_repos(self, org):
        self.listed.append(org)
        if self.org_error:
            raise self.org_error
        return self.org_repos.get(org, [])

    def fetch_contributors(self, repo, cutoff, min_commits=1, branch=None):
        self.fetch_calls.append((repo, cutoff, min_commits, branch))
        if repo.full_name not in self.contributors:
            return ContributorSet(repo, set(), failure=RepoFailure(repo, 'no_default_branch', 'empty'))
        return ContributorSet(repo, self.contributors[repo.full_name])


class TestResolveRepos(unittest.TestCase):
    def test_fixed_list_is_used_as_is(self):
        repo_set = RepoSet('ecosystem', 1, repos=[_ref('a/x'), _ref('a/y')])
        client = MockGitHubClient()
        self.assertEqual(resolve_repos(client, repo_set), [_ref('a/x'), _ref('a/y')])
        self.assertEqual(client.listed, [])

    def test_live_enumeration_with_exclude(self):
        repo_set = RepoSet('core', 2, org='org', exclude=[_ref('org/broken')])
        client = MockGitHubClient(org_repos={'org': [_ref('org/a'), _ref('org/broken'), _ref('org/b')]})
        self.assertEqual(resolve_repos(client, repo_set), [_ref('org/a'), _ref('org/b')])

    def test_snapshot_fallback_when_enumeration_fails(self):
        repo_set = RepoSet('core', 2, repos=[_ref('org/cached')], org='org')
        client = MockGitHubClient(org_error=GitHubAPIError('boom', kind='http_error', status=502))
        self.assertEqual(resolve_repos(client, repo_set), [_ref('org/cached')])

    def test_enumeration_failure_without_snapshot_propagates(self):
        repo_set = RepoSet('core', 2, org='org')
        client = MockGitHubClient(org_error=GitHubAPIError('denied', kind='auth', status=401))
        with self.assertRaises(GitHubAPIError):
            resolve_repos(client, repo_set)

    def test_snapshot_mode_skips_enumeration(self):
        repo_set = RepoSet('core', 2, repos=[_ref('org/cached')], org='org')
        client = MockGitHubClient(org_repos={'org': [_ref('org/live')]})
        self.assertEqual(resolve_repos(client, repo_set, live=False), [_ref('org/cached')])
        self.assertEqual(client.listed, [])


class TestEvaluateRepoSets(unittest.TestCase):
    def setUp(self):
        self.client = MockGitHubClient(
            contributors={'eco/a': {'x', 'y'}, 'eco/b': {'y', 'z'}, 'org/core1': {'y', 'w'}},
            org_repos={'org': [_ref('org/core1'), _ref('org/empty')]},
        )
        self.sets = [
            RepoSet('ecosystem', 1, repos=[_ref('eco/a'), _ref('eco/b')]),
            RepoSet('core', 2, org='org'),
        ]

    def test_sections_per_set(self):
        ecosystem, core = evaluate_repo_sets(self.client, self.sets, now=NOW)
        self.assertEqual(ecosystem.name, 'ecosystem')
        self.assertEqual(ecosystem.ranking[0], ('y', 2))
        self.assertEqual(sorted(ecosystem.ranking[1:]), [('x', 1), ('z', 1)])
        self.assertEqual(ecosystem.failures, [])
        self.assertEqual(sorted(core.ranking), [('w', 2), ('y', 2)])
        self.assertEqual([f.repo for f in core.failures], [_ref('org/empty')])
        self.assertEqual(core.repo_count, 2)

    def test_one_cutoff_shared_by_both_sets(self):
        sections = evaluate_repo_sets(self.client, self.sets, now=NOW, min_commits=2, branch='main')
        cutoffs = {c for _, c, _, _ in self.client.fetch_calls}
        self.assertEqual(cutoffs, {datetime(2023, 9, 30, 12, 0, 0, tzinfo=timezone.utc)})
        self.assertEqual({(m, b) for _, _, m, b in self.client.fetch_calls}, {(2, 'main')})
        self.assertEqual([s.cutoff for s in sections], ['2023-09-30T12:00:00Z'] * 2)

    def test_per_set_months_override(self):
        self.sets[1].months = 12
        ecosystem, core = evaluate_repo_sets(self.client, self.sets, now=NOW)
        self.assertEqual(ecosystem.cutoff, '2023-09-30T12:00:00Z')
        self.assertEqual(core.cutoff, '2023-03-31T12:00:00Z')


if __name__ == '__main__':
    unittest.main()
