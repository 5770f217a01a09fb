from __future__ import annotations

import os
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx


class SourceError(RuntimeError):
    """Any failure fetching data from an external system."""


class ConfigError(SourceError):
    pass


class AuthError(SourceError):
    pass


class NotFoundError(SourceError):
    pass


@dataclass
class SourceConfig:
    timeout_s: float
    page_delay_s: float
    user_agent: str
    ashby_base_url: str
    github_base_url: str
    ashby_api_key: Optional[str]
    github_token: Optional[str]
    datumctl_path: Optional[str]

    def require(self, attr: str, env_var: str) -> str:
        value = getattr(self, attr)
        if not value:
            raise ConfigError(f"must set {env_var}")
        return value


def _env_float(name: str, default: str) -> float:
    raw = os.environ.get(name, default).strip()
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigError(f"Invalid {name}: {raw!r}") from e


def load_config_from_env() -> SourceConfig:
    return SourceConfig(
        timeout_s=_env_float("SCORECARD_TIMEOUT_S", "30"),
        page_delay_s=_env_float("SCORECARD_PAGE_DELAY_S", "0.1"),
        user_agent=os.environ.get("SCORECARD_USER_AGENT", "scorecard/0.1"),
        ashby_base_url=os.environ.get("ASHBY_BASE_URL", "https://api.ashbyhq.com"),
        github_base_url=os.environ.get("GITHUB_API_URL", "https://api.github.com"),
        ashby_api_key=os.environ.get("ASHBY_API_KEY", "").strip() or None,
        github_token=os.environ.get("GITHUB_TOKEN", "").strip() or None,
        datumctl_path=os.environ.get("DATUMCTL_PATH", "").strip() or None,
    )


def build_client(
    cfg: SourceConfig,
    base_url: str,
    headers: Optional[Dict[str, str]] = None,
    auth: Optional[httpx.Auth] = None,
    transport: Optional[httpx.BaseTransport] = None,
) -> httpx.Client:
    all_headers = {"User-Agent": cfg.user_agent}
    all_headers.update(headers or {})
    return httpx.Client(
        base_url=base_url,
        timeout=cfg.timeout_s,
        headers=all_headers,
        auth=auth,
        transport=transport,
    )


def request_json(client: httpx.Client, method: str, url: str, **kwargs: Any) -> Any:
    """
    Issue one request and decode its JSON body.

    Failure modes:
      - 401/403 raise AuthError
      - 404 raises NotFoundError
      - any other non-2xx status raises SourceError with the response body
      - transport failures and undecodable bodies raise SourceError
    """
    try:
        resp = client.request(method, url, **kwargs)
    except httpx.HTTPError as e:
        raise SourceError(f"request failed: {type(e).__name__}: {e}") from e

    if resp.status_code in (401, 403):
        raise AuthError(f"API error {resp.status_code}: {resp.text}")
    if resp.status_code == 404:
        raise NotFoundError(f"not found: {resp.request.url}")
    if not resp.is_success:
        raise SourceError(f"API error {resp.status_code}: {resp.text}")

    try:
        return resp.json()
    except ValueError as e:
        raise SourceError(f"failed to parse response: {e}") from e


_FRACTION = re.compile(r"\.(\d+)")


def parse_timestamp(ts_str: str) -> datetime:
    """
    Parse an RFC 3339 timestamp into an aware UTC datetime.

    Fractional seconds beyond microseconds are truncated; a missing offset is
    read as UTC.
    """
    s = ts_str.strip().replace("Z", "+00:00").replace("z", "+00:00")
    s = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), s, count=1)
    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
