"""Datum Cloud audit log queries through the `datumctl` CLI."""

from __future__ import annotations

import json
import shutil
import subprocess
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional

from sources.base import AuthError, SourceConfig, SourceError, parse_timestamp

# Write operations by real users; system accounts and activity-API reads are excluded.
ACTIVE_USER_FILTER = (
    "verb in ['create', 'update', 'patch'] "
    "&& user.username.contains('system:') == false "
    "&& user.uid != '' "
    "&& objectRef.apiGroup in ['activity.miloapis.com'] == false"
)

_AUTH_HINTS = ("oauth2", "token", "nil context", "credentials")


@dataclass(frozen=True)
class AuditEvent:
    username: str
    timestamp: Optional[datetime]


def find_datumctl(cfg: Optional[SourceConfig] = None) -> str:
    """
    Locate the datumctl binary.

    Order: DATUMCTL_PATH, ~/bin/datumctl, then PATH.
    """
    if cfg is not None and cfg.datumctl_path:
        return cfg.datumctl_path

    custom = Path.home() / "bin" / "datumctl"
    if custom.exists():
        return str(custom)

    found = shutil.which("datumctl")
    if not found:
        raise SourceError("datumctl not found in ~/bin or PATH")
    return found


def build_query_args(days: int, limit: int = 0) -> List[str]:
    args = [
        "activity", "query",
        "--platform-wide",
        "--start-time", f"now-{days}d",
        "--end-time", "now",
        "--filter", ACTIVE_USER_FILTER,
        "-o", "json",
    ]
    if limit > 0:
        args += ["--limit", str(limit)]
    else:
        args.append("--all-pages")
    return args


def _parse_event(item: Any) -> AuditEvent:
    if not isinstance(item, dict):
        raise SourceError(f"failed to parse audit log response: unexpected item {item!r}")
    user = item.get("user")
    if not isinstance(user, dict):
        user = {}
    raw_ts = item.get("requestReceivedTimestamp")
    ts: Optional[datetime] = None
    if isinstance(raw_ts, str):
        try:
            ts = parse_timestamp(raw_ts)
        except ValueError:
            ts = None
    return AuditEvent(username=str(user.get("username") or ""), timestamp=ts)


def query_audit_events(datumctl: str, days: int, limit: int = 0) -> List[AuditEvent]:
    """
    Run `datumctl activity query` and decode its JSON output.

    Events with an unparsable timestamp are returned with timestamp=None.

    Failure modes:
      - AuthError when datumctl fails with an authentication-looking stderr
      - SourceError for any other non-zero exit, launch failure or bad JSON
    """
    try:
        proc = subprocess.run(
            [datumctl, *build_query_args(days, limit)],
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as e:
        raise SourceError(f"failed to run datumctl: {e}") from e

    if proc.returncode != 0:
        stderr = proc.stderr or ""
        if any(hint in stderr for hint in _AUTH_HINTS):
            raise AuthError("authentication error: please run 'datumctl auth login' and try again")
        raise SourceError(f"datumctl query failed: {stderr.strip()}")

    try:
        result = json.loads(proc.stdout)
    except json.JSONDecodeError as e:
        raise SourceError(f"failed to parse audit log response: {e}") from e

    if not isinstance(result, dict):
        raise SourceError("failed to parse audit log response: expected a JSON object")
    items = result.get("items") or []
    if not isinstance(items, list):
        raise SourceError("failed to parse audit log response: items is not a list")
    return [_parse_event(it) for it in items]
