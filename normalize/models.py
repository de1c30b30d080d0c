"""
Unified data models for repositories, commits and weight results.
"""

from datetime import datetime
from typing import List, Optional, Set, Dict, Tuple, NamedTuple


class RepositoryRef(NamedTuple):
    """
    Identifies a remote repository by owner and name.
    """
    owner: str
    name: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    @classmethod
    def parse(cls, full_name: str) -> "RepositoryRef":
        """Build a RepositoryRef from an 'owner/name' string."""
        parts = (full_name or '').strip().split('/')
        if len(parts) != 2 or not parts[0] or not parts[1]:
            raise ValueError(f"Invalid repository name '{full_name}': expected 'owner/name'")
        return cls(parts[0], parts[1])

    def __str__(self):
        return self.full_name


class CommitRecord:
    """
    Attribution-relevant metadata of a single commit.
    """
    def __init__(self, oid: str, committed_date: Optional[datetime], author_login: Optional[str] = None, committer_login: Optional[str] = None):
        self.oid = oid
        self.committed_date = committed_date
        self.author_login = author_login
        self.committer_login = committer_login

    def logins(self) -> Set[str]:
        """Linked account handles for this commit (author and committer, when resolvable)."""
        return {login for login in (self.author_login, self.committer_login) if login}


class RepoFailure:
    """
    Structured report of a repository whose history could not be fetched.
    """
    def __init__(self, repo: RepositoryRef, kind: str, message: str = ''):
        self.repo = repo
        self.kind = kind  # not_found/no_default_branch/no_history/auth/http_error/graphql_error/network_error/bad_response/error
        self.message = message

    def to_dict(self) -> Dict[str, str]:
        return {'repo': self.repo.full_name, 'kind': self.kind, 'message': self.message}

    def __repr__(self):
        return f"RepoFailure({self.repo.full_name!r}, {self.kind!r})"


class ContributorSet:
    """
    Contributor handles of one repository within one cutoff window.
    """
    def __init__(self, repo: RepositoryRef, contributors: Optional[Set[str]] = None, failure: Optional[RepoFailure] = None, commit_count: int = 0):
        self.repo = repo
        self.contributors = set(contributors or ())
        self.failure = failure
        self.commit_count = commit_count

    @property
    def ok(self) -> bool:
        return self.failure is None


class WeightResult:
    """
    Merged contributor weights for a repository set plus the repositories that failed.
    """
    def __init__(self, weights: Dict[str, int], failures: Optional[List[RepoFailure]] = None, repo_count: int = 0):
        self.weights = weights
        self.failures = failures or []
        self.repo_count = repo_count


class RepoSet:
    """
    A configured repository set (core org or ecosystem allow-list) with its flat weight.
    """
    def __init__(self, name: str, weight: int, repos: Optional[List[RepositoryRef]] = None, org: Optional[str] = None, exclude: Optional[List[RepositoryRef]] = None, months: Optional[int] = None):
        self.name = name
        self.weight = weight
        self.repos = list(repos or [])  # fixed allow-list, or cached snapshot when org is set
        self.org = org
        self.exclude = list(exclude or [])
        self.months = months


class LeaderboardSection:
    """
    Ranked output for one repository set, as consumed by report.renderer.
    """
    def __init__(self, name: str, weight: int, cutoff: str, ranking: List[Tuple[str, int]], failures: Optional[List[RepoFailure]] = None, repo_count: int = 0):
        self.name = name
        self.weight = weight
        self.cutoff = cutoff
        self.ranking = ranking
        self.failures = failures or []
        self.repo_count = repo_count

    def __str__(self):
        lines = [f"Weights from {self.name} repositories (weight {self.weight}, since {self.cutoff}):"]
        for login, weight in self.ranking:
            lines.append(f"  {login}: {weight}")
        return "\n".join(lines)
