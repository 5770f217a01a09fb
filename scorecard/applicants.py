"""Ashby applicants per job and week."""

from __future__ import annotations

import argparse
import sys
from datetime import datetime
from typing import Dict, Iterable, List, Optional, TextIO

from scorecard import render
from scorecard.aggregate import Series, count_by_week, group_series, sum_counts
from scorecard.histogram import render_histogram
from scorecard.table import TOTAL_TITLE, WeeklyTable
from scorecard.weeks import (
    RECENT_WEEKS,
    TREND_WEEKS,
    current_week_start,
    last_n_completed_weeks,
    utc_now,
)
from sources.ashby import Application, AshbyClient, JobInfo, resolve_job
from sources.base import SourceConfig

LABEL_WIDTH = 35
WEEK_WIDTH = 10


def applicant_series(applications: Iterable[Application], jobs: Dict[str, JobInfo]) -> List[Series]:
    """One series per job id, labelled with the job title and department."""
    apps = list(applications)
    per_job = count_by_week(apps, key=lambda a: a.job_id, timestamp=lambda a: a.created_at)
    info: Dict[str, JobInfo] = {}
    for app in apps:
        info.setdefault(app.job_id, resolve_job(app, jobs))
    return [
        Series(group=info[job_id].department, label=info[job_id].title, counts=counts)
        for job_id, counts in per_job.items()
    ]


def render_table(series: List[Series], now: datetime) -> List[str]:
    table = WeeklyTable(LABEL_WIDTH, WEEK_WIDTH, last_n_completed_weeks(RECENT_WEEKS, now))
    return table.render_grouped("Job", group_series(series), current_week_start(now))


def render_json(series: List[Series], now: datetime) -> str:
    weeks = last_n_completed_weeks(RECENT_WEEKS, now)
    return render.dumps(render.series_document(series, weeks, current_week_start(now)))


def render_histo(series: List[Series], now: datetime) -> List[str]:
    weeks = last_n_completed_weeks(TREND_WEEKS, now)
    return render_histogram(
        sum_counts(s.counts for s in series),
        weeks,
        title="Applicants per Week (Last 6 Months)",
        unit="applicants",
        no_data_message="No applications in the last 6 months",
    )


def render_markdown(series: List[Series], now: datetime) -> str:
    current = current_week_start(now)
    table = WeeklyTable(LABEL_WIDTH, WEEK_WIDTH, last_n_completed_weeks(RECENT_WEEKS, now))
    groups = group_series(series)
    grand = sum_counts(s.counts for s in series)
    return render.render_markdown(
        title="Applicants by Week",
        table=table,
        label_title="Job",
        sections=table.build_sections(groups, current),
        totals=table.build_row(TOTAL_TITLE, grand, current),
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

    with AshbyClient(cfg) as client:
        print("[ashby] Fetching departments...", file=sys.stderr)
        departments = client.fetch_departments()
        print(f"[ashby] Found {len(departments)} departments", file=sys.stderr)

        print("[ashby] Fetching jobs...", file=sys.stderr)
        jobs = client.fetch_jobs(departments)
        print(f"[ashby] Found {len(jobs)} jobs", file=sys.stderr)

        print("[ashby] Fetching applications...", file=sys.stderr)
        applications = client.fetch_applications()
        print(f"[ashby] Found {len(applications)} applications", file=sys.stderr)

    series = applicant_series(applications, jobs)

    if args.histo:
        print("\n".join(render_histo(series, now)), file=out)
    elif args.json:
        print(render_json(series, now), file=out)
    elif args.markdown:
        print(render_markdown(series, now), file=out)
    else:
        print("\n".join(render_table(series, now)), file=out)
    return 0
