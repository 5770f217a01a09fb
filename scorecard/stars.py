"""Star counts for every repository of a GitHub organization or user."""

from __future__ import annotations

import argparse
import sys
from datetime import datetime
from typing import Iterable, List, Optional, TextIO

from scorecard.weeks import to_utc, utc_now
from sources.base import SourceConfig, SourceError
from sources.github import GitHubClient, Repo

NAME_WIDTH = 50
STARS_WIDTH = 10
RULE = "=" * (NAME_WIDTH + 1 + STARS_WIDTH + 1)


def sort_repos(repos: Iterable[Repo], alphabetical: bool = False) -> List[Repo]:
    """By star count ascending (most popular last), or by name ignoring case."""
    if alphabetical:
        return sorted(repos, key=lambda r: r.name.lower())
    return sorted(repos, key=lambda r: r.stars)


def render_table(repos: List[Repo], now: datetime) -> List[str]:
    lines = [f"{'Repository':<{NAME_WIDTH}} {'Stars':>{STARS_WIDTH}}", RULE]
    lines.extend(f"{r.name:<{NAME_WIDTH}} {r.stars:>{STARS_WIDTH}d}" for r in repos)
    lines.append(RULE)
    stamp = to_utc(now).strftime("%Y-%m-%d %H:%M UTC")
    total = sum(r.stars for r in repos)
    lines.append(f"{f'Total [ {stamp} ]':<{NAME_WIDTH}} {total:>{STARS_WIDTH}d}")
    return lines


def run(
    args: argparse.Namespace,
    cfg: SourceConfig,
    now: Optional[datetime] = None,
    out: Optional[TextIO] = None,
) -> int:
    out = out or sys.stdout
    now = now or utc_now()

    print(f"[github] Fetching repositories for {args.target}...", file=sys.stderr)
    with GitHubClient(cfg) as client:
        repos = client.list_repos(args.target)
    if not repos:
        raise SourceError(f"no repositories found for '{args.target}'")

    print("\n".join(render_table(sort_repos(repos, args.sort), now)), file=out)
    return 0
