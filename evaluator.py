"""
Evaluator logic: resolve repository sets, weight their contributors and rank them.
"""
import logging
from datetime import datetime, timezone
from functools import partial
from typing import Iterator, List, Optional
import requests
from ingest.github import GitHubClient, GitHubAPIError
from normalize.models import RepositoryRef, RepoSet, LeaderboardSection
from normalize.util import format_timestamp
from scoring.utils import compute_cutoff, DEFAULT_MONTHS, DEFAULT_MIN_COMMITS
from scoring.weights import compute_weights, rank, DEFAULT_MAX_WORKERS

logger = logging.getLogger(__name__)


def resolve_repos(client: GitHubClient, repo_set: RepoSet, live: bool = True) -> List[RepositoryRef]:
    """
    Return the repositories of a set, minus its exclude list.

    Sets with an org are enumerated live; when that fails the configured snapshot is used instead,
    and without a snapshot the error propagates.
    """
    repos = repo_set.repos
    if repo_set.org and live:
        try:
            repos = client.list_org_repos(repo_set.org)
        except (GitHubAPIError, requests.RequestException) as ex:
            if not repo_set.repos:
                raise
            logger.warning("Listing %s failed (%s); using the %d-repository snapshot", repo_set.org, ex, len(repo_set.repos))
            repos = repo_set.repos
    excluded = set(repo_set.exclude)
    return [r for r in repos if r not in excluded]


def evaluate_repo_set(
    client: GitHubClient,
    repo_set: RepoSet,
    cutoff: datetime,
    min_commits: int = DEFAULT_MIN_COMMITS,
    branch: Optional[str] = None,
    max_workers: int = DEFAULT_MAX_WORKERS,
    live: bool = True,
) -> LeaderboardSection:
    """Compute the ranked leaderboard for a single repository set."""
    repos = resolve_repos(client, repo_set, live=live)
    logger.info("Computing %s weights over %d repositories since %s", repo_set.name, len(repos), format_timestamp(cutoff))
    fetch = partial(client.fetch_contributors, min_commits=min_commits, branch=branch)
    result = compute_weights(repos, repo_set.weight, cutoff, fetch, max_workers=max_workers)
    return LeaderboardSection(
        name=repo_set.name,
        weight=repo_set.weight,
        cutoff=format_timestamp(cutoff),
        ranking=rank(result.weights),
        failures=result.failures,
        repo_count=result.repo_count,
    )


def iter_repo_sets(
    client: GitHubClient,
    repo_sets: List[RepoSet],
    now: Optional[datetime] = None,
    months: int = DEFAULT_MONTHS,
    min_commits: int = DEFAULT_MIN_COMMITS,
    branch: Optional[str] = None,
    max_workers: int = DEFAULT_MAX_WORKERS,
    live: bool = True,
) -> Iterator[LeaderboardSection]:
    """
    Evaluate every repository set in order against one shared cutoff, yielding each section
    as soon as it is ranked.

    Parameters:
        client (GitHubClient): API client shared by all fetches.
        repo_sets (List[RepoSet]): sets to evaluate, typically ecosystem then core.
        now (datetime): reference time; defaults to the current UTC time.
        months (int): cutoff distance in calendar months, unless a set overrides it.
        min_commits (int): commits a handle needs in a repository to count (1 = presence).
        branch (str): None for the default branch, a branch name, or '*' for all branches.
        max_workers (int): concurrent repository fetches per set.
        live (bool): enumerate org-backed sets live instead of using their snapshot.

    Yields:
        LeaderboardSection: one ranked section per set. An error in a later set
        propagates after the earlier sections have been yielded.
    """
    now = now or datetime.now(timezone.utc)
    shared_cutoff = compute_cutoff(now, months)
    for repo_set in repo_sets:
        cutoff = compute_cutoff(now, repo_set.months) if repo_set.months is not None else shared_cutoff
        yield evaluate_repo_set(client, repo_set, cutoff, min_commits=min_commits, branch=branch, max_workers=max_workers, live=live)


def evaluate_repo_sets(client: GitHubClient, repo_sets: List[RepoSet], **kwargs) -> List[LeaderboardSection]:
    """Evaluate every repository set and return all sections; see iter_repo_sets for the parameters."""
    return list(iter_repo_sets(client, repo_sets, **kwargs))
