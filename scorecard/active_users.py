"""Datum Cloud active users per week, from audit logs."""

from __future__ import annotations

import argparse
import sys
from datetime import date, datetime
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, TextIO

from scorecard import render
from scorecard.aggregate import unique_by_week
from scorecard.table import WeeklyTable
from scorecard.weeks import (
    RECENT_WEEKS,
    current_week_start,
    last_n_completed_weeks,
    lookback_days,
    utc_now,
)
from sources.base import SourceConfig
from sources.datum import AuditEvent, find_datumctl, query_audit_events

LABEL_WIDTH = 20
WEEK_WIDTH = 10
ROW_LABEL = "Active Users"

WeekUsers = Mapping[date, FrozenSet[str]]


def users_by_week(events: Iterable[AuditEvent], now: datetime) -> Dict[date, FrozenSet[str]]:
    """Distinct usernames for each displayed week plus the week in progress."""
    weeks = last_n_completed_weeks(RECENT_WEEKS, now) + [current_week_start(now)]
    return unique_by_week(events, who=lambda e: e.username, when=lambda e: e.timestamp, weeks=weeks)


def total_unique_users(week_users: WeekUsers) -> int:
    return len(frozenset().union(*week_users.values()))


def render_table(week_users: WeekUsers, now: datetime) -> List[str]:
    current = current_week_start(now)
    table = WeeklyTable(LABEL_WIDTH, WEEK_WIDTH, last_n_completed_weeks(RECENT_WEEKS, now))
    counts = {w: len(users) for w, users in week_users.items()}
    return [
        table.header("Metric", include_current=True),
        table.separator(include_current=True),
        table.row(ROW_LABEL, counts, current)[0],
        table.separator(include_current=True),
        "",
        f"Total Unique Users: {total_unique_users(week_users)}",
    ]


def build_document(week_users: WeekUsers, now: datetime) -> Dict[str, Any]:
    current = current_week_start(now)
    weeks = last_n_completed_weeks(RECENT_WEEKS, now)
    return {
        "weeks": [
            render.week_entry(w, len(week_users.get(w, ())), count_key="active_users") for w in weeks
        ],
        "current_week": render.week_entry(
            current, len(week_users.get(current, ())), count_key="active_users"
        ),
        "total_unique_users": total_unique_users(week_users),
    }


def render_markdown(week_users: WeekUsers, now: datetime) -> str:
    current = current_week_start(now)
    table = WeeklyTable(LABEL_WIDTH, WEEK_WIDTH, last_n_completed_weeks(RECENT_WEEKS, now))
    counts = {w: len(users) for w, users in week_users.items()}
    return render.render_markdown(
        title="Active Users by Week",
        table=table,
        label_title="Metric",
        rows=[table.build_row(ROW_LABEL, counts, current)],
        include_current=True,
        footer=f"Total Unique Users: {total_unique_users(week_users)}",
    )


def run(
    args: argparse.Namespace,
    cfg: SourceConfig,
    now: Optional[datetime] = None,
    out: Optional[TextIO] = None,
) -> int:
    out = out or sys.stdout
    now = now or utc_now()

    datumctl = find_datumctl(cfg)
    weeks = last_n_completed_weeks(RECENT_WEEKS, now)
    print(
        f"[datum] Querying Datum Cloud audit logs for the last {len(weeks)} weeks...",
        file=sys.stderr,
    )
    events = query_audit_events(datumctl, lookback_days(weeks, now), limit=args.limit)
    week_users = users_by_week(events, now)

    if args.json:
        print(render.dumps(build_document(week_users, now)), file=out)
    elif args.markdown:
        print(render_markdown(week_users, now), file=out)
    else:
        print("\n".join(render_table(week_users, now)), file=out)
    return 0
