from __future__ import annotations

import json
from datetime import date
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from jinja2 import Environment, FileSystemLoader

from scorecard.aggregate import Series
from scorecard.table import Row, Section, WeeklyTable, format_count
from scorecard.weeks import format_week_end


def _md_cell(value: Any) -> str:
    return str(value).strip().replace("|", "\\|")


def _get_template_env() -> Environment:
    """Create Jinja2 environment with templates directory."""
    templates_dir = Path(__file__).parent / "templates"
    env = Environment(
        loader=FileSystemLoader(str(templates_dir)),
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["md_cell"] = _md_cell
    return env


def dumps(doc: Any) -> str:
    return json.dumps(doc, indent=2, ensure_ascii=False)


def week_entry(week_key: date, count: int, count_key: str = "count") -> Dict[str, Any]:
    return {"week_ending": format_week_end(week_key), count_key: count}


def series_document(
    series: Iterable[Series],
    weeks: Sequence[date],
    current_week: date,
    group_key: str = "department",
    label_key: str = "job",
) -> List[Dict[str, Any]]:
    """
    JSON view of weekly series.

    Every configured week is listed, zero or not, oldest first. The current
    week is reported on its own and left out of `total`. Entries are sorted by
    (group, label).
    """
    doc = []
    for s in sorted(series, key=lambda s: (s.group, s.label)):
        doc.append(
            {
                group_key: s.group,
                label_key: s.label,
                "weeks": [week_entry(w, s.counts.get(w, 0)) for w in weeks],
                "current_week": week_entry(current_week, s.counts.get(current_week, 0)),
                "total": sum(s.counts.get(w, 0) for w in weeks if w != current_week),
            }
        )
    return doc


def _row_cells(row: Row) -> List[str]:
    cells = [row.label, *(format_count(c) for c in row.counts)]
    if row.current is not None:
        cells.append(format_count(row.current))
    cells.append(str(row.total))
    return cells


def render_markdown(
    title: str,
    table: WeeklyTable,
    label_title: str,
    sections: Sequence[Section] = (),
    rows: Sequence[Row] = (),
    totals: Optional[Row] = None,
    include_current: bool = False,
    footer: str = "",
) -> str:
    """
    Render a weekly table as a Markdown document.

    `sections` carry grouped rows with a heading and subtotal each; `rows`
    are ungrouped rows. `totals` closes the table.

    Failure modes:
        - Raises jinja2.TemplateError if template is malformed
        - Raises if templates/weekly_table.md.j2 is missing
    """
    blocks: List[Dict[str, Any]] = []
    for section in sections:
        blocks.append(
            {
                "heading": section.heading,
                "rows": [_row_cells(r) for r in (*section.rows, section.subtotal)],
            }
        )
    tail = [_row_cells(r) for r in rows]
    if totals is not None:
        tail.append(_row_cells(totals))
    if tail:
        blocks.append({"heading": None, "rows": tail})

    env = _get_template_env()
    template = env.get_template("weekly_table.md.j2")
    return template.render(
        title=title,
        columns=[label_title, *table.column_titles(include_current)],
        blocks=blocks,
        footer=footer,
    )
