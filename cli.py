"""
CLI entry point for devweight. Wires the pipeline: config -> enumerate -> fetch -> weight -> rank -> report
"""

import argparse
import logging
import os
import webbrowser
from datetime import datetime, timezone
from ingest.github import GitHubClient
from evaluator import iter_repo_sets
from report.renderer import render
from scoring.utils import load_repo_config
from scoring.weights import DEFAULT_MAX_WORKERS

logger = logging.getLogger(__name__)


def configure_logging(level: str = None):
    """Send log records to stderr so the report on stdout stays clean."""
    level_name = (level or os.getenv('DEVWEIGHT_LOG_LEVEL') or 'INFO').upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _resolve_token(args):
    """Resolve the GitHub token from the CLI flag or GITHUB_TOKEN.
    A missing token is not fatal here; GitHub reports it as an authentication error on the first call.
    """
    args.github_token = args.github_token or os.getenv('GITHUB_TOKEN')
    if not args.github_token:
        logger.warning("No GitHub token (--github_token or env GITHUB_TOKEN); requests will be rejected")


def _apply_overrides(config: dict, args) -> dict:
    """CLI flags take precedence over values from the YAML config."""
    resolved = dict(config)
    if args.months is not None:
        resolved['months'] = args.months
    if args.min_commits is not None:
        resolved['min_commits'] = args.min_commits
    if args.branch:
        resolved['branch'] = args.branch
    return resolved


def iter_leaderboards(args, client: GitHubClient = None):
    """Execute config -> evaluate and yield each LeaderboardSection as soon as it is ranked."""
    config = _apply_overrides(load_repo_config(args.config or None), args)
    client = client or GitHubClient(args.github_token, base_url=args.api_url or None)
    yield from iter_repo_sets(
        client,
        config['sets'],
        months=config['months'],
        min_commits=config['min_commits'],
        branch=config['branch'],
        max_workers=args.max_workers,
        live=not args.snapshot,
    )


def _open_file_in_browser(path: str):
    """Open a file URL in the system default web browser."""
    webbrowser.open("file://" + os.path.abspath(path))


def write_output(fmt: str, rendered: str, args):
    """Write output to --out-file (optionally opening HTML in a browser) or to stdout."""
    out_path = (args.out_file or "").strip()
    if not out_path:
        print(rendered)
        return
    out_dir = os.path.dirname(out_path)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)
    with open(out_path, "w", encoding="utf-8", newline="") as f:
        f.write(rendered)
    print(f"Wrote report to {out_path}")
    if args.open and fmt == "html":
        try:
            _open_file_in_browser(out_path)
        except webbrowser.Error:
            print("Failed to open browser automatically; file saved at", out_path)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Compute developer voting weights from recent commit history")
    parser.add_argument("--config", type=str, default="", help="Path to repository-set YAML (default: scoring/config/repos.yaml)")
    parser.add_argument("--github_token", type=str, help="GitHub API token (or set GITHUB_TOKEN env var)")
    parser.add_argument("--api-url", type=str, default="", help="GraphQL endpoint (default: GITHUB_GRAPHQL_URL env or api.github.com)")
    parser.add_argument("--months", type=int, default=None, help="Cutoff distance in calendar months (overrides config)")
    parser.add_argument("--min-commits", type=int, default=None, help="Commits per repository a contributor needs to count (overrides config)")
    parser.add_argument("--branch", type=str, default="", help="Branch to read instead of the default branch; '*' reads all branches")
    parser.add_argument("--max-workers", type=int, default=DEFAULT_MAX_WORKERS, help="Concurrent repository fetches (overrides DEVWEIGHT_MAX_WORKERS env)")
    parser.add_argument("--snapshot", action="store_true", help="Use the configured repository snapshot instead of listing org repositories live")
    parser.add_argument("--output", type=str, default="text", help="Output format (text, md, csv, json, html)")
    parser.add_argument("--out-file", type=str, default="", help="Output file path. If omitted the report is printed")
    parser.add_argument("--open", action="store_true", help="Open the generated HTML report in the default browser")
    parser.add_argument("--log-level", type=str, default=None, help="Logging level (overrides DEVWEIGHT_LOG_LEVEL env, default INFO)")
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)
    _resolve_token(args)

    fmt = (args.output or "text").lower()
    # plain text to stdout is printed section by section; other outputs are written once at the end
    streaming = fmt == "text" and not (args.out_file or "").strip()
    sections = []
    error = None
    try:
        for section in iter_leaderboards(args):
            if streaming:
                if sections:
                    print()
                print(render([section], fmt="text"))
            sections.append(section)
    except Exception as ex:
        logger.exception("Weight calculation failed")
        error = ex
    if sections and not streaming:
        write_output(fmt, render(sections, fmt=fmt, generated_at=datetime.now(timezone.utc).isoformat()), args)
    if error is not None:
        # sections ranked before the failure have already been reported
        if sections:
            print()
        print(f"Error: {error}")


if __name__ == "__main__":
    main()
