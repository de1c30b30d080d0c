"""
Normalization utility helpers.
Small helpers to normalize raw GraphQL commit nodes into normalize.models entities.
"""
from datetime import datetime, timezone
from typing import Dict, Any, Iterable, Optional, Set
from normalize.models import CommitRecord


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 GitHub timestamp ('2024-01-16T10:00:00Z') into an aware datetime."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: datetime) -> str:
    """Render a datetime as a UTC GitTimestamp ('YYYY-MM-DDTHH:MM:SSZ'). Naive values are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime('%Y-%m-%dT%H:%M:%SZ')


def _linked_login(actor: Any) -> Optional[str]:
    """Return the login of the GitHub account linked to a git actor, or None."""
    if not isinstance(actor, dict):
        return None
    user = actor.get('user') or {}
    return user.get('login') or None


def normalize_commit(raw: Dict[str, Any]) -> CommitRecord:
    """Create a CommitRecord from a raw GraphQL history node."""
    return CommitRecord(
        oid=raw.get('oid') or '',
        committed_date=parse_timestamp(raw.get('committedDate')),
        author_login=_linked_login(raw.get('author')),
        committer_login=_linked_login(raw.get('committer')),
    )


def collect_contributors(commits: Iterable[CommitRecord], cutoff: Optional[datetime] = None, min_commits: int = 1) -> Set[str]:
    """Union author and committer handles across commits.

    Commits dated before cutoff are ignored. A handle is kept when it appears on at
    least min_commits distinct commits; min_commits=1 means presence is enough.
    """
    if cutoff and cutoff.tzinfo is None:
        cutoff = cutoff.replace(tzinfo=timezone.utc)
    counts: Dict[str, int] = {}
    for commit in commits:
        if cutoff and commit.committed_date and commit.committed_date < cutoff:
            continue
        for login in commit.logins():
            counts[login] = counts.get(login, 0) + 1
    threshold = max(1, int(min_commits or 1))
    return {login for login, n in counts.items() if n >= threshold}
