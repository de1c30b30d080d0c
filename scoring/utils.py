"""
Scoring utility functions.
Provides cutoff date arithmetic and repository-set configuration loading used by the evaluator.
"""
from typing import Dict, Any, List, Optional, Union
from datetime import date, datetime, timezone
import calendar
import logging
import os
import yaml
from normalize.models import RepositoryRef, RepoSet

logger = logging.getLogger(__name__)

# filename used for repository-set YAML configuration
REPOS_FILENAME = 'repos.yaml'

DEFAULT_MONTHS = 6
DEFAULT_MIN_COMMITS = 1

CORE_ORG = 'filecoin-project'
CORE_WEIGHT = 2
ECOSYSTEM_WEIGHT = 1

DEFAULT_ECOSYSTEM_REPOS = [
    'libp2p/go-libp2p',
    'libp2p/rust-libp2p',
    'libp2p/js-libp2p',
]


def default_config_path() -> str:
    return os.path.join(os.path.dirname(__file__), 'config', REPOS_FILENAME)


def subtract_months(value: Union[date, datetime], months: int) -> Union[date, datetime]:
    """
    Move value back by a number of calendar months, keeping the time of day.
    When the day of month does not exist in the target month it is clamped to that month's last day
    (2024-03-31 minus 6 months is 2023-09-30).
    """
    index = value.year * 12 + (value.month - 1) - int(months)
    year, month = divmod(index, 12)
    month += 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def compute_cutoff(now: Optional[datetime] = None, months: int = DEFAULT_MONTHS) -> datetime:
    """Return the inclusive cutoff timestamp 'months' calendar months before now (UTC)."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return subtract_months(now, months)


def _parse_repo_list(values: Any, where: str) -> List[RepositoryRef]:
    if values is None:
        return []
    if not isinstance(values, list):
        raise ValueError(f"'{where}' must be a list of 'owner/name' strings")
    return [RepositoryRef.parse(str(v)) for v in values]


def _optional_int(section: Dict[str, Any], key: str, where: str) -> Optional[int]:
    value = section.get(key)
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"'{where}.{key}' must be an integer, got {value!r}")


def _repo_set_from_section(name: str, section: Dict[str, Any]) -> RepoSet:
    if not isinstance(section, dict):
        raise ValueError(f"Repository set '{name}' must be a mapping")
    weight = _optional_int(section, 'weight', name)
    if weight is None:
        raise ValueError(f"Repository set '{name}' has no weight")
    return RepoSet(
        name=name,
        weight=weight,
        repos=_parse_repo_list(section.get('repos'), f"{name}.repos"),
        org=section.get('org') or None,
        exclude=_parse_repo_list(section.get('exclude'), f"{name}.exclude"),
        months=_optional_int(section, 'months', name),
    )


def default_config() -> Dict[str, Any]:
    """Built-in configuration used when no YAML file is available."""
    return {
        'months': DEFAULT_MONTHS,
        'min_commits': DEFAULT_MIN_COMMITS,
        'branch': None,
        'sets': [
            RepoSet('ecosystem', ECOSYSTEM_WEIGHT, repos=[RepositoryRef.parse(r) for r in DEFAULT_ECOSYSTEM_REPOS]),
            RepoSet('core', CORE_WEIGHT, org=CORE_ORG),
        ],
    }


def load_repo_config(path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load repository sets and run parameters from a YAML file.

    Expected layout:

        months: 6
        min_commits: 1
        branch: null
        sets:
          ecosystem: {weight: 1, repos: [owner/name, ...]}
          core: {weight: 2, org: filecoin-project, repos: [...snapshot...], exclude: [...]}

    Sets keep the file order. A missing file yields default_config(); a malformed one raises ValueError.
    """
    explicit = bool(path)
    path = path or default_config_path()
    if not os.path.exists(path):
        if explicit:
            raise ValueError(f"Repository config file not found at: {path}")
        logger.warning("Repository config %s not found; using built-in repository sets without snapshot", path)
        return default_config()
    try:
        with open(path, 'r', encoding='utf-8') as f:
            doc = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as ex:
        raise ValueError(f"Failed to load repository config from {path}: {ex}")
    if not isinstance(doc, dict):
        raise ValueError(f"Repository config {path} must be a mapping")

    sets_doc = doc.get('sets') or {}
    if not isinstance(sets_doc, dict) or not sets_doc:
        raise ValueError(f"Repository config {path} defines no repository sets")

    months = _optional_int(doc, 'months', 'config')
    min_commits = _optional_int(doc, 'min_commits', 'config')
    return {
        'months': DEFAULT_MONTHS if months is None else months,
        'min_commits': DEFAULT_MIN_COMMITS if min_commits is None else min_commits,
        'branch': doc.get('branch') or None,
        'sets': [_repo_set_from_section(name, section) for name, section in sets_doc.items()],
    }
