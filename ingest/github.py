"""
GitHub GraphQL ingestion client used by the evaluator and tests.
Lists organization repositories and reads default-branch commit history since a cutoff.
"""
import logging
import os
from datetime import datetime
from typing import List, Dict, Any, Optional, Callable, Iterator
import requests
from normalize.models import RepositoryRef, CommitRecord, ContributorSet, RepoFailure
from normalize.util import normalize_commit, collect_contributors, format_timestamp

logger = logging.getLogger(__name__)

GRAPHQL_URL = os.getenv("GITHUB_GRAPHQL_URL", "https://api.github.com/graphql")
DEFAULT_HTTP_TIMEOUT = float(os.getenv("DEVWEIGHT_HTTP_TIMEOUT", "60"))
PAGE_SIZE = 100

# branch scope value meaning "every branch under refs/heads/"
ALL_BRANCHES = "*"

ORG_REPOS_QUERY = """
query orgRepos($org: String!, $cursor: String) {
  repositoryOwner(login: $org) {
    ... on Organization {
      repositories(first: %d, after: $cursor) {
        pageInfo { endCursor hasNextPage }
        nodes { name owner { login } }
      }
    }
  }
}
""" % PAGE_SIZE

BRANCHES_QUERY = """
query repoBranches($owner: String!, $name: String!, $cursor: String) {
  repository(owner: $owner, name: $name) {
    refs(refPrefix: "refs/heads/", first: %d, after: $cursor) {
      pageInfo { endCursor hasNextPage }
      nodes { name }
    }
  }
}
""" % PAGE_SIZE

_HISTORY_SELECTION = """
      target {
        ... on Commit {
          history(first: %d, since: $since, after: $cursor) {
            pageInfo { endCursor hasNextPage }
            nodes {
              oid
              committedDate
              author { user { login } }
              committer { user { login } }
            }
          }
        }
      }
""" % PAGE_SIZE

DEFAULT_BRANCH_HISTORY_QUERY = """
query defaultBranchHistory($owner: String!, $name: String!, $since: GitTimestamp!, $cursor: String) {
  repository(owner: $owner, name: $name) {
    branch: defaultBranchRef {
      name
%s
    }
  }
}
""" % _HISTORY_SELECTION

BRANCH_HISTORY_QUERY = """
query branchHistory($owner: String!, $name: String!, $qualifiedName: String!, $since: GitTimestamp!, $cursor: String) {
  repository(owner: $owner, name: $name) {
    branch: ref(qualifiedName: $qualifiedName) {
      name
%s
    }
  }
}
""" % _HISTORY_SELECTION


class GitHubAPIError(Exception):
    """Raised when the GitHub API answers with an error or an unusable payload."""

    def __init__(self, message: str, kind: str = "http_error", status: Optional[int] = None):
        super().__init__(message)
        self.kind = kind
        self.status = status


def _error_kind(errors: List[Dict[str, Any]]) -> str:
    types = {(e or {}).get('type') for e in errors}
    return 'not_found' if types == {'NOT_FOUND'} else 'graphql_error'


class GitHubClient:
    """GitHub GraphQL client to enumerate repositories and collect commit contributors."""

    def __init__(self, token: Optional[str], base_url: str = None, session: Optional[requests.Session] = None, timeout: Optional[float] = None):
        self.token = token
        self.base_url = base_url or GRAPHQL_URL
        self.timeout = timeout if timeout is not None else DEFAULT_HTTP_TIMEOUT
        self.headers = {"Accept": "application/vnd.github+json"}
        if self.token:
            self.headers["Authorization"] = f"Bearer {self.token}"
        self.session = session or requests.Session()
        self.session.headers.update(self.headers)

    def graphql(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        """Execute one GraphQL request and return its data object.

        Network errors propagate as requests exceptions; everything else as GitHubAPIError.
        """
        resp = self.session.post(self.base_url, json={"query": query, "variables": variables}, timeout=self.timeout)
        status = resp.status_code
        if status in (401, 403):
            raise GitHubAPIError(f"GitHub rejected the credentials (HTTP {status})", kind='auth', status=status)
        if status != 200:
            raise GitHubAPIError(f"HTTP {status} from {self.base_url}", kind='http_error', status=status)
        try:
            body = resp.json()
        except ValueError as ex:
            raise GitHubAPIError(f"Invalid JSON from {self.base_url}: {ex}", kind='bad_response', status=status) from ex
        errors = body.get('errors') if isinstance(body, dict) else None
        if errors:
            messages = "; ".join(str((e or {}).get('message', e)) for e in errors)
            raise GitHubAPIError(messages, kind=_error_kind(errors), status=status)
        return (body or {}).get('data') or {}

    def _paginate(self, query: str, variables: Dict[str, Any], extract: Callable[[Dict[str, Any]], Dict[str, Any]]) -> Iterator[Dict[str, Any]]:
        """Yield connection nodes page by page until pageInfo.hasNextPage is false."""
        cursor = None
        page = 1
        while True:
            data = self.graphql(query, dict(variables, cursor=cursor))
            connection = extract(data)
            nodes = connection.get('nodes') or []
            logger.debug("page %d: %d nodes (%s)", page, len(nodes), variables)
            for node in nodes:
                if node:
                    yield node
            page_info = connection.get('pageInfo') or {}
            if not page_info.get('hasNextPage'):
                break
            cursor = page_info.get('endCursor')
            if not cursor:
                raise GitHubAPIError("hasNextPage is set but endCursor is missing", kind='bad_response')
            page += 1

    def list_org_repos(self, org: str) -> List[RepositoryRef]:
        """Return every repository of an organization, in API order."""
        def extract(data):
            owner = data.get('repositoryOwner')
            if owner is None or owner.get('repositories') is None:
                raise GitHubAPIError(f"Organization '{org}' not found", kind='not_found')
            return owner['repositories']

        repos: List[RepositoryRef] = []
        for node in self._paginate(ORG_REPOS_QUERY, {"org": org}, extract):
            owner = (node.get('owner') or {}).get('login') or org
            repos.append(RepositoryRef(owner, node['name']))
        logger.info("Enumerated %d repositories in %s", len(repos), org)
        return repos

    def list_branches(self, repo: RepositoryRef) -> List[str]:
        """Return the names of all branches of a repository."""
        def extract(data):
            repository = data.get('repository')
            if repository is None:
                raise GitHubAPIError(f"Repository {repo.full_name} not found", kind='not_found')
            return repository.get('refs') or {}

        return [node['name'] for node in self._paginate(BRANCHES_QUERY, {"owner": repo.owner, "name": repo.name}, extract)]

    def _branch_history(self, repo: RepositoryRef, since: str, branch: Optional[str] = None) -> Iterator[Dict[str, Any]]:
        def extract(data):
            repository = data.get('repository')
            if repository is None:
                raise GitHubAPIError(f"Repository {repo.full_name} not found", kind='not_found')
            ref = repository.get('branch')
            if ref is None:
                if branch:
                    raise GitHubAPIError(f"Branch {branch} not found in {repo.full_name}", kind='not_found')
                raise GitHubAPIError(f"{repo.full_name} has no default branch", kind='no_default_branch')
            history = (ref.get('target') or {}).get('history')
            if history is None:
                raise GitHubAPIError(f"{repo.full_name}@{ref.get('name')} has no commit history", kind='no_history')
            return history

        variables = {"owner": repo.owner, "name": repo.name, "since": since}
        if branch:
            variables["qualifiedName"] = f"refs/heads/{branch}"
            return self._paginate(BRANCH_HISTORY_QUERY, variables, extract)
        return self._paginate(DEFAULT_BRANCH_HISTORY_QUERY, variables, extract)

    def get_commits(self, repo: RepositoryRef, cutoff: datetime, branch: Optional[str] = None) -> List[CommitRecord]:
        """Fetch commits committed at or after cutoff.

        branch=None reads the default branch, ALL_BRANCHES reads every branch (deduplicated by oid).
        Errors propagate to the caller.
        """
        since = format_timestamp(cutoff)
        if branch != ALL_BRANCHES:
            return [normalize_commit(node) for node in self._branch_history(repo, since, branch)]

        commits: Dict[str, CommitRecord] = {}
        for name in self.list_branches(repo):
            for node in self._branch_history(repo, since, name):
                record = normalize_commit(node)
                commits.setdefault(record.oid, record)
        return list(commits.values())

    def fetch_contributors(self, repo: RepositoryRef, cutoff: datetime, min_commits: int = 1, branch: Optional[str] = None) -> ContributorSet:
        """Return the contributor handles of one repository since cutoff.

        A failing repository is logged and reported as an empty ContributorSet carrying a RepoFailure.
        """
        try:
            commits = self.get_commits(repo, cutoff, branch)
        except GitHubAPIError as ex:
            return self._failed(repo, ex.kind, str(ex))
        except requests.RequestException as ex:
            return self._failed(repo, 'network_error', str(ex))
        except (KeyError, TypeError, ValueError) as ex:
            return self._failed(repo, 'bad_response', f"{type(ex).__name__}: {ex}")

        contributors = collect_contributors(commits, cutoff, min_commits)
        logger.debug("%s: %d commits, %d contributors", repo.full_name, len(commits), len(contributors))
        return ContributorSet(repo, contributors, commit_count=len(commits))

    @staticmethod
    def _failed(repo: RepositoryRef, kind: str, message: str) -> ContributorSet:
        logger.warning("Error fetching %s commits (%s): %s", repo.full_name, kind, message)
        return ContributorSet(repo, set(), failure=RepoFailure(repo, kind, message))
