"""
Weight aggregation and ranking.
Each repository contributes a flat weight to every one of its contributors; per-repository maps are summed.
"""
import logging
import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Tuple
from normalize.models import RepositoryRef, ContributorSet, RepoFailure, WeightResult

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = int(os.getenv("DEVWEIGHT_MAX_WORKERS", "8"))

FetchFn = Callable[[RepositoryRef, datetime], ContributorSet]


def repo_weights(contributors: Iterable[str], flat_weight: int) -> Dict[str, int]:
    """Assign the same flat weight to every contributor of one repository."""
    return {c: flat_weight for c in contributors}


def add_merge(left: Dict[str, int], right: Dict[str, int]) -> Dict[str, int]:
    """Key-wise sum of two weight maps. Keys missing on one side are taken from the other."""
    merged = dict(left)
    for k, v in right.items():
        merged[k] = merged.get(k, 0) + v
    return merged


def _safe_fetch(fetch: FetchFn, repo: RepositoryRef, cutoff: datetime) -> ContributorSet:
    try:
        return fetch(repo, cutoff)
    except Exception as ex:
        logger.exception("Unexpected error fetching %s", repo.full_name)
        return ContributorSet(repo, set(), failure=RepoFailure(repo, 'error', f"{type(ex).__name__}: {ex}"))


def compute_weights(repos: Iterable[RepositoryRef], flat_weight: int, cutoff: datetime, fetch: FetchFn, max_workers: int = DEFAULT_MAX_WORKERS) -> WeightResult:
    """
    Fetch contributors for every repository on a bounded thread pool and merge their weight maps.

    The merge runs on the calling thread once every fetch has settled, so the result does not depend
    on repository order or completion order. Failed repositories contribute nothing and are listed
    in WeightResult.failures.
    """
    unique: List[RepositoryRef] = list(dict.fromkeys(repos))
    if not unique:
        return WeightResult({}, [], 0)

    workers = max(1, min(int(max_workers or 1), len(unique)))
    results: List[ContributorSet] = []
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = [executor.submit(_safe_fetch, fetch, repo, cutoff) for repo in unique]
        for fut in as_completed(futures):
            results.append(fut.result())

    # deterministic merge order keeps tie order stable between runs
    results.sort(key=lambda cs: cs.repo.full_name)
    totals: Dict[str, int] = {}
    failures: List[RepoFailure] = []
    for cs in results:
        if cs.failure is not None:
            failures.append(cs.failure)
        totals = add_merge(totals, repo_weights(cs.contributors, flat_weight))

    logger.info("Weighted %d repositories (%d failed), %d contributors", len(unique), len(failures), len(totals))
    return WeightResult(totals, failures, len(unique))


def rank(weights: Dict[str, int]) -> List[Tuple[str, int]]:
    """Sort a weight map into (contributor, weight) pairs, highest weight first."""
    return sorted(weights.items(), key=lambda kv: kv[1], reverse=True)
