import unittest
from datetime import datetime, timezone

from normalize.models import RepositoryRef, CommitRecord
from normalize.util import normalize_commit, collect_contributors


def _node(oid, date, author=None, committer=None):
    return {
        'oid': oid,
        'committedDate': date,
        'author': {'user': {'login': author} if author else None},
        'committer': {'user': {'login': committer} if committer else None},
    }


class TestRepositoryRef(unittest.TestCase):
    def test_parse_full_name(self):
        repo = RepositoryRef.parse('libp2p/go-libp2p')
        self.assertEqual(repo.owner, 'libp2p')
        self.assertEqual(repo.name, 'go-libp2p')
        self.assertEqual(repo.full_name, 'libp2p/go-libp2p')
        self.assertEqual(str(repo), 'libp2p/go-libp2p')

    def test_parse_rejects_malformed_names(self):
        for bad in ('', 'go-libp2p', 'a/b/c', '/name', 'owner/'):
            with self.assertRaises(ValueError):
                RepositoryRef.parse(bad)

    def test_refs_are_hashable_and_compare_by_value(self):
        self.assertEqual({RepositoryRef('a', 'b'), RepositoryRef.parse('a/b')}, {RepositoryRef('a', 'b')})


class TestNormalizeCommit(unittest.TestCase):
    def test_author_without_linked_committer(self):
        commit = normalize_commit(_node('c1', '2024-01-10T00:00:00Z', author='alice'))
        self.assertEqual(commit.author_login, 'alice')
        self.assertIsNone(commit.committer_login)
        self.assertEqual(commit.logins(), {'alice'})
        self.assertEqual(commit.committed_date, datetime(2024, 1, 10, tzinfo=timezone.utc))

    def test_no_linked_accounts(self):
        commit = normalize_commit({'oid': 'c2', 'committedDate': '2024-01-10T00:00:00Z', 'author': {'user': None}, 'committer': None})
        self.assertEqual(commit.logins(), set())


class TestCollectContributors(unittest.TestCase):
    def setUp(self):
        self.commits = [
            normalize_commit(_node('c1', '2024-01-10T00:00:00Z', author='alice')),
            normalize_commit(_node('c2', '2024-01-11T00:00:00Z')),
            normalize_commit(_node('c3', '2024-01-12T00:00:00Z', author='bob', committer='web-flow')),
            normalize_commit(_node('c4', '2024-01-13T00:00:00Z', author='bob', committer='bob')),
        ]

    def test_union_of_authors_and_committers(self):
        self.assertEqual(collect_contributors(self.commits), {'alice', 'bob', 'web-flow'})

    def test_single_commit_with_only_author(self):
        self.assertEqual(collect_contributors(self.commits[:1]), {'alice'})

    def test_commit_without_accounts_contributes_nothing(self):
        self.assertEqual(collect_contributors(self.commits[1:2]), set())

    def test_min_commits_threshold(self):
        # bob is on two commits (author == committer on c4 counts once)
        self.assertEqual(collect_contributors(self.commits, min_commits=2), {'bob'})

    def test_commits_before_cutoff_are_ignored(self):
        cutoff = datetime(2024, 1, 12, tzinfo=timezone.utc)
        self.assertEqual(collect_contributors(self.commits, cutoff=cutoff), {'bob', 'web-flow'})

    def test_naive_cutoff_is_accepted(self):
        self.assertEqual(collect_contributors(self.commits, cutoff=datetime(2024, 1, 13)), {'bob'})

    def test_commit_on_cutoff_is_included(self):
        record = CommitRecord('c5', datetime(2024, 1, 12, tzinfo=timezone.utc), author_login='carol')
        self.assertEqual(collect_contributors([record], cutoff=datetime(2024, 1, 12, tzinfo=timezone.utc)), {'carol'})


if __name__ == '__main__':
    unittest.main()
