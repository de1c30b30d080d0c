"""
Report renderer: generate text/Markdown/CSV/JSON/HTML leaderboards from LeaderboardSection lists.
HTML and per-section Markdown use the Jinja2 templates under report/templates.
"""

from typing import List, Dict, Any, Optional
from normalize.models import LeaderboardSection
from jinja2 import Environment, FileSystemLoader, select_autoescape
import os
import json
import io
import csv

TEMPLATES_DIR = os.path.join(os.path.dirname(__file__), 'templates')


def _environment() -> Environment:
    return Environment(loader=FileSystemLoader(TEMPLATES_DIR), autoescape=select_autoescape(['html', 'html.j2', 'xml']), trim_blocks=True, lstrip_blocks=True)


def render_text(sections: List[LeaderboardSection]) -> str:
    """Render the labelled ranked lists as plain console text."""
    parts = []
    for s in sections:
        block = [str(s)]
        if not s.ranking:
            block.append("  (no contributors)")
        for f in s.failures:
            block.append(f"  ! {f.repo.full_name}: {f.kind}")
        parts.append("\n".join(block))
    return "\n\n".join(parts)


def render_markdown(sections: List[LeaderboardSection], generated_at: Optional[str] = None) -> str:
    """Render one Markdown section per repository set."""
    tmpl = _environment().get_template('section.md.j2')
    md = ["# Developer Voting Weights\n"]
    if generated_at:
        md.append(f"_Generated {generated_at}_\n")
    for s in sections:
        md.append(tmpl.render(section=s))
    return "\n".join(md)


def render_csv(sections: List[LeaderboardSection]) -> str:
    """Render all rankings as CSV rows: set,rank,contributor,weight."""
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(['set', 'rank', 'contributor', 'weight'])
    for s in sections:
        for position, (login, weight) in enumerate(s.ranking, start=1):
            writer.writerow([s.name, position, login, weight])
    return output.getvalue()


def _section_to_dict(s: LeaderboardSection) -> Dict[str, Any]:
    return {
        'set': s.name,
        'weight': s.weight,
        'cutoff': s.cutoff,
        'repositories': s.repo_count,
        'ranking': [{'contributor': login, 'weight': weight} for login, weight in s.ranking],
        'failures': [f.to_dict() for f in s.failures],
    }


def render_json(sections: List[LeaderboardSection]) -> str:
    """Export the sections (rankings and failures) as a JSON array."""
    return json.dumps([_section_to_dict(s) for s in sections], indent=2)


def render_html(sections: List[LeaderboardSection], generated_at: Optional[str] = None) -> str:
    tmpl = _environment().get_template('leaderboard.html.j2')
    return tmpl.render(sections=sections, generated_at=generated_at)


def render(sections: List[LeaderboardSection], fmt: str = 'text', generated_at: Optional[str] = None) -> str:
    """Main render function. Unknown formats fall back to plain text."""
    fmt_l = (fmt or 'text').lower()
    if fmt_l in ('md', 'markdown'):
        return render_markdown(sections, generated_at)
    if fmt_l == 'csv':
        return render_csv(sections)
    if fmt_l in ('html', 'htm'):
        return render_html(sections, generated_at)
    if fmt_l in ('json', 'js'):
        return render_json(sections)
    return render_text(sections)
