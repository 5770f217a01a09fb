"""
Fixed-width weekly tables.

A table has a left-aligned label column, one right-aligned column per
configured week (oldest first, headed by the week's Sunday), an optional
"Current" column for the week in progress and a "Total" column.

Totals only ever sum the configured weeks. The current week is partial, so
its value is displayed but never added to a total, even when the current week
key is also one of the configured weeks.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import List, Mapping, Optional, Sequence, Tuple

from scorecard.aggregate import Series, sum_counts
from scorecard.weeks import format_week_end_short

PLACEHOLDER = "-"
CURRENT_TITLE = "Current"
TOTAL_TITLE = "Total"
SUBTOTAL_LABEL = "  Subtotal"


def format_count(count: int, width: int = 0) -> str:
    """Right-align `count` in `width` characters; zero shows as the placeholder."""
    text = PLACEHOLDER if count == 0 else str(count)
    return text.rjust(width)


def indent_label(title: str, label_width: int) -> str:
    """Indent a child label under its group heading, truncating to fit the column."""
    label = "  " + title
    if len(label) > label_width - 2:
        label = label[: label_width - 5] + "..."
    return label


@dataclass(frozen=True)
class Row:
    label: str
    counts: Tuple[int, ...]
    current: Optional[int]
    total: int


@dataclass(frozen=True)
class Section:
    heading: str
    rows: Tuple[Row, ...]
    subtotal: Row


@dataclass(frozen=True)
class WeeklyTable:
    label_width: int
    week_width: int
    weeks: Tuple[date, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "weeks", tuple(self.weeks))

    def column_titles(self, include_current: bool = False) -> List[str]:
        titles = [format_week_end_short(w) for w in self.weeks]
        if include_current:
            titles.append(CURRENT_TITLE)
        titles.append(TOTAL_TITLE)
        return titles

    def header(self, label_title: str, include_current: bool = False) -> str:
        return label_title.ljust(self.label_width) + "".join(
            t.rjust(self.week_width) for t in self.column_titles(include_current)
        )

    def separator(self, include_current: bool = False) -> str:
        columns = len(self.weeks) + 1 + (1 if include_current else 0)
        return "-" * (self.label_width + self.week_width * columns)

    def build_row(
        self,
        label: str,
        week_counts: Mapping[date, int],
        current_week: Optional[date] = None,
    ) -> Row:
        counts = tuple(week_counts.get(w, 0) for w in self.weeks)
        total = sum(c for w, c in zip(self.weeks, counts) if w != current_week)
        current = None
        if current_week is not None:
            current = week_counts.get(current_week, 0)
        return Row(label=label, counts=counts, current=current, total=total)

    def format_row(self, row: Row) -> str:
        parts = [row.label.ljust(self.label_width)]
        parts.extend(format_count(c, self.week_width) for c in row.counts)
        if row.current is not None:
            parts.append(format_count(row.current, self.week_width))
        parts.append(str(row.total).rjust(self.week_width))
        return "".join(parts)

    def row(
        self,
        label: str,
        week_counts: Mapping[date, int],
        current_week: Optional[date] = None,
    ) -> Tuple[str, int]:
        """Rendered row line and its total over the configured weeks."""
        r = self.build_row(label, week_counts, current_week)
        return self.format_row(r), r.total

    def totals_row(
        self,
        label: str,
        week_totals: Mapping[date, int],
        current_week: Optional[date] = None,
    ) -> str:
        return self.row(label, week_totals, current_week)[0]

    def build_sections(
        self,
        groups: Sequence[Tuple[str, Sequence[Series]]],
        current_week: Optional[date] = None,
    ) -> List[Section]:
        sections = []
        for heading, children in groups:
            rows = tuple(
                self.build_row(indent_label(s.label, self.label_width), s.counts, current_week)
                for s in children
            )
            subtotal = self.build_row(
                SUBTOTAL_LABEL, sum_counts(s.counts for s in children), current_week
            )
            sections.append(Section(heading=heading, rows=rows, subtotal=subtotal))
        return sections

    def render_grouped(
        self,
        label_title: str,
        groups: Sequence[Tuple[str, Sequence[Series]]],
        current_week: Optional[date] = None,
    ) -> List[str]:
        """
        Header, one block per group (heading, child rows, subtotal) and a
        closing totals row summed over every child series.
        """
        include_current = current_week is not None
        lines = [self.header(label_title, include_current), self.separator(include_current)]
        for section in self.build_sections(groups, current_week):
            lines.append("")
            lines.append(section.heading)
            lines.extend(self.format_row(r) for r in section.rows)
            lines.append(self.format_row(section.subtotal))

        grand = sum_counts(s.counts for _, children in groups for s in children)
        lines.append(self.separator(include_current))
        lines.append(self.totals_row(TOTAL_TITLE, grand, current_week))
        return lines
