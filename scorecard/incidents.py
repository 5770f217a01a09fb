"""GitHub incident issues per label and week."""

from __future__ import annotations

import argparse
import sys
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence, TextIO

from scorecard import render
from scorecard.aggregate import bucket_by_week, sum_counts
from scorecard.table import TOTAL_TITLE, WeeklyTable
from scorecard.weeks import (
    RECENT_WEEKS,
    current_week_start,
    format_week_end,
    last_n_completed_weeks,
    utc_now,
    window_start,
)
from sources.base import SourceConfig
from sources.github import GitHubClient

INCIDENT_ISSUE = ":incident/issue"
INCIDENT_REPORT = ":incident/report"
LABELS = (INCIDENT_ISSUE, INCIDENT_REPORT)

LABEL_WIDTH = 20
WEEK_WIDTH = 10

LabelCounts = Mapping[str, Mapping[date, int]]


def render_table(repo: str, counts: LabelCounts, now: datetime) -> List[str]:
    weeks = last_n_completed_weeks(RECENT_WEEKS, now)
    current = current_week_start(now)
    table = WeeklyTable(LABEL_WIDTH, WEEK_WIDTH, weeks)

    lines = [f"Incident Counts for {repo} (Last {len(weeks)} Weeks)", ""]
    lines.append(table.header("Label", include_current=True))
    lines.append(table.separator(include_current=True))
    for label in LABELS:
        lines.append(table.row(label, counts.get(label, {}), current)[0])
    lines.append(table.separator(include_current=True))
    lines.append(table.totals_row(TOTAL_TITLE, sum_counts(counts.values()), current))
    return lines


def _week_doc(week: date, counts: LabelCounts) -> Dict[str, Any]:
    issue = counts.get(INCIDENT_ISSUE, {}).get(week, 0)
    report = counts.get(INCIDENT_REPORT, {}).get(week, 0)
    return {
        "week_ending": format_week_end(week),
        "incident_issue": issue,
        "incident_report": report,
        "total": issue + report,
    }


def build_document(repo: str, counts: LabelCounts, weeks: Sequence[date], current: date) -> Dict[str, Any]:
    week_docs = [_week_doc(w, counts) for w in weeks]
    issue_total = sum(d["incident_issue"] for d in week_docs)
    report_total = sum(d["incident_report"] for d in week_docs)
    return {
        "repository": repo,
        "weeks": week_docs,
        "current_week": _week_doc(current, counts),
        "totals": {
            "incident_issue": issue_total,
            "incident_report": report_total,
            "total": issue_total + report_total,
        },
    }


def render_json(repo: str, counts: LabelCounts, now: datetime) -> str:
    weeks = last_n_completed_weeks(RECENT_WEEKS, now)
    return render.dumps(build_document(repo, counts, weeks, current_week_start(now)))


def render_markdown(repo: str, counts: LabelCounts, now: datetime) -> str:
    weeks = last_n_completed_weeks(RECENT_WEEKS, now)
    current = current_week_start(now)
    table = WeeklyTable(LABEL_WIDTH, WEEK_WIDTH, weeks)
    return render.render_markdown(
        title=f"Incident Counts for {repo} (Last {len(weeks)} Weeks)",
        table=table,
        label_title="Label",
        rows=[table.build_row(label, counts.get(label, {}), current) for label in LABELS],
        totals=table.build_row(TOTAL_TITLE, sum_counts(counts.values()), current),
        include_current=True,
    )


def run(
    args: argparse.Namespace,
    cfg: SourceConfig,
    now: Optional[datetime] = None,
    out: Optional[TextIO] = None,
) -> int:
    out = out or sys.stdout
    now = now or utc_now()
    since = window_start(last_n_completed_weeks(RECENT_WEEKS, now))

    print(f"[github] Fetching incidents for {args.repo}...", file=sys.stderr)
    counts: Dict[str, Dict[date, int]] = {}
    with GitHubClient(cfg) as client:
        for label in LABELS:
            issues = client.list_issues(args.repo, label, since)
            counts[label] = bucket_by_week(i.created_at for i in issues)

    if args.json:
        print(render_json(args.repo, counts, now), file=out)
    elif args.markdown:
        print(render_markdown(args.repo, counts, now), file=out)
    else:
        print("\n".join(render_table(args.repo, counts, now)), file=out)
    return 0
