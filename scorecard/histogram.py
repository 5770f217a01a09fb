from __future__ import annotations

from datetime import date
from typing import List, Mapping, Sequence

from scorecard.weeks import format_week_end_short, month_abbrev

BAR_HEIGHT = 15
LEFT_PAD = 12
BAR_CHAR = "█"
BREAKDOWN_CHAR = "▪"
BREAKDOWN_WIDTH = 30


def render_histogram(
    week_totals: Mapping[date, int],
    weeks: Sequence[date],
    title: str,
    unit: str,
    no_data_message: str,
) -> List[str]:
    """
    Vertical ASCII bar chart of one weekly series, plus a weekly breakdown.

    Bar heights are discretized to BAR_HEIGHT rows: a week's column is filled
    on every row whose threshold (row / BAR_HEIGHT * max) it reaches. When
    every week is zero only `no_data_message` is returned.
    """
    counts = [week_totals.get(w, 0) for w in weeks]
    max_count = max(counts, default=0)
    if max_count == 0:
        return [no_data_message]

    pad = " " * LEFT_PAD
    lines = [title, ""]

    for row in range(BAR_HEIGHT, 0, -1):
        threshold = row / BAR_HEIGHT * max_count
        lines.append(pad + "".join(BAR_CHAR if c >= threshold else " " for c in counts))

    lines.append(pad + "-" * len(weeks))
    lines.append(pad + _month_ticks(weeks))

    lines.append("")
    lines.append(f"Scale: Each row = {max_count / BAR_HEIGHT:.1f} {unit}")
    lines.append(f"Max: {max_count} {unit}/week")

    lines.append("")
    lines.append("Weekly Breakdown:")
    lines.append("")
    for week, count in zip(weeks, counts):
        line = f"  {format_week_end_short(week)}  {count:3d}"
        if count > 0:
            line += " " + BREAKDOWN_CHAR * (int(count / max_count * BREAKDOWN_WIDTH) + 1)
        lines.append(line)

    total = sum(counts)
    lines.append("")
    lines.append(f"  Total: {total} {unit} over {len(weeks)} weeks")
    lines.append(f"  Average: {total / len(weeks):.1f} {unit}/week")
    return lines


def _month_ticks(weeks: Sequence[date]) -> str:
    """First letter of the month under the first week of each month run."""
    ticks = []
    last_month = ""
    for week in weeks:
        month = month_abbrev(week)
        if month != last_month:
            ticks.append(month[0])
            last_month = month
        else:
            ticks.append(" ")
    return "".join(ticks)
