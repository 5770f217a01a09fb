#!/usr/bin/env python3
"""
Scorecard CLI: weekly KPI reports from external systems.

Usage:
    scorecard ashby applicants-by-week [--json | --histo | --markdown]
    scorecard github stars <org-or-user> [-s]
    scorecard incidents <org>/<repo> [--json | --markdown]
    scorecard datum active-users [--json | --markdown] [--limit N]

Environment variables:
    ASHBY_API_KEY: Ashby HQ API key (ashby commands)
    GITHUB_TOKEN: GitHub token (github and incidents commands)
    SCORECARD_TIMEOUT_S: Per-request timeout in seconds (default: 30)
    SCORECARD_PAGE_DELAY_S: Pause between pages of one listing (default: 0.1)
    DATUMCTL_PATH: Explicit datumctl binary (default: ~/bin/datumctl, then PATH)
"""

from __future__ import annotations

import argparse
import sys
from typing import List, Optional

from scorecard import active_users, applicants, incidents, stars
from sources.base import SourceError, load_config_from_env


def _add_output_flags(parser: argparse.ArgumentParser, histo: bool = False) -> None:
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--json", action="store_true", help="Output in JSON format")
    group.add_argument("--markdown", action="store_true", help="Output a Markdown table")
    if histo:
        group.add_argument(
            "--histo", action="store_true", help="Display histogram of last 6 months"
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="scorecard",
        description="Pull metrics from various sources and generate weekly reports",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    commands = parser.add_subparsers(dest="command", metavar="command")
    commands.required = True

    ashby = commands.add_parser("ashby", help="Pull recruiting metrics from the Ashby HQ API")
    ashby_commands = ashby.add_subparsers(dest="subcommand", metavar="subcommand")
    ashby_commands.required = True
    by_week = ashby_commands.add_parser(
        "applicants-by-week",
        help="Show applicants by week for each job",
        description="Fetches all applications and groups them by job and week",
    )
    _add_output_flags(by_week, histo=True)
    by_week.set_defaults(handler=applicants.run)

    github = commands.add_parser("github", help="GitHub metrics and reporting")
    github_commands = github.add_subparsers(dest="subcommand", metavar="subcommand")
    github_commands.required = True
    stars_cmd = github_commands.add_parser(
        "stars",
        help="Display star counts for repositories in a GitHub organization or user",
        description=(
            "Fetch and display star counts for all repositories in a GitHub organization "
            "or user. Repositories are sorted by star count (ascending) unless -s is given."
        ),
    )
    stars_cmd.add_argument("target", metavar="org-or-user")
    stars_cmd.add_argument(
        "-s", "--sort", action="store_true", help="Sort alphabetically by repository name"
    )
    stars_cmd.set_defaults(handler=stars.run)

    incidents_cmd = commands.add_parser(
        "incidents",
        help="Display incident counts by week for a GitHub repository",
        description=(
            "Count issues labelled :incident/issue and :incident/report by week "
            "for the last 4 completed weeks and the week in progress."
        ),
    )
    incidents_cmd.add_argument("repo", metavar="org/repo")
    _add_output_flags(incidents_cmd)
    incidents_cmd.set_defaults(handler=incidents.run)

    datum = commands.add_parser("datum", help="Datum Cloud metrics and reporting")
    datum_commands = datum.add_subparsers(dest="subcommand", metavar="subcommand")
    datum_commands.required = True
    active = datum_commands.add_parser(
        "active-users",
        help="Count active users by week over the last 4 weeks",
        description=(
            "Count unique users who created or modified resources, per week, from "
            "Datum Cloud audit logs. Requires an authenticated datumctl."
        ),
    )
    _add_output_flags(active)
    active.add_argument(
        "--limit", type=int, default=0, help="Limit number of audit events to fetch (0 = all)"
    )
    active.set_defaults(handler=active_users.run)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success, 1 when a source or its configuration fails)
    """
    args = build_parser().parse_args(argv)
    try:
        cfg = load_config_from_env()
        return args.handler(args, cfg)
    except SourceError as e:
        print(f"[scorecard] ERROR: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
