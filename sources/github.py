"""GitHub REST API client (repositories and labelled issues)."""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional

import httpx

from sources.base import (
    NotFoundError,
    SourceConfig,
    SourceError,
    build_client,
    parse_timestamp,
    request_json,
)

API_VERSION = "2022-11-28"
PER_PAGE = 100


@dataclass(frozen=True)
class Repo:
    name: str
    stars: int


@dataclass(frozen=True)
class Issue:
    number: int
    created_at: datetime


class GitHubClient:
    def __init__(self, cfg: SourceConfig, transport: Optional[httpx.BaseTransport] = None) -> None:
        token = cfg.require("github_token", "GITHUB_TOKEN")
        self._cfg = cfg
        self._client = build_client(
            cfg,
            cfg.github_base_url,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": API_VERSION,
            },
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "GitHubClient":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def _paginate(self, path: str, params: Dict[str, Any]) -> Iterator[Dict[str, Any]]:
        """Walk ?page=1,2,... until GitHub answers with an empty page."""
        page = 1
        while True:
            items = request_json(
                self._client, "GET", path, params={**params, "per_page": PER_PAGE, "page": page}
            )
            if not isinstance(items, list):
                raise SourceError(f"failed to parse response from {path}: expected a JSON array")
            if not items:
                break
            yield from items
            page += 1
            time.sleep(self._cfg.page_delay_s)

    def list_repos(self, target: str) -> List[Repo]:
        """Repositories of an organization, or of a user when no such org exists."""
        try:
            items = list(self._paginate(f"/orgs/{target}/repos", {}))
        except NotFoundError:
            try:
                items = list(self._paginate(f"/users/{target}/repos", {}))
            except NotFoundError as e:
                raise SourceError(f"could not find organization or user '{target}': {e}") from e
        try:
            return [Repo(name=it["name"], stars=int(it.get("stargazers_count") or 0)) for it in items]
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise SourceError(f"failed to parse repositories for '{target}': {e!r}") from e

    def list_issues(self, repo: str, label: str, since: datetime) -> List[Issue]:
        """
        Issues (any state) carrying `label`, updated at or after `since`.

        GitHub filters `since` on update time, so older issues may still be
        returned; callers bucket by creation week and drop what falls outside.
        """
        params = {
            "labels": label,
            "state": "all",
            "since": since.strftime("%Y-%m-%dT%H:%M:%SZ"),
        }
        try:
            items = list(self._paginate(f"/repos/{repo}/issues", params))
        except NotFoundError as e:
            raise SourceError(f"repository not found: {repo}") from e

        issues: List[Issue] = []
        for it in items:
            try:
                issues.append(
                    Issue(number=int(it.get("number") or 0), created_at=parse_timestamp(it["created_at"]))
                )
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                raise SourceError(f"failed to parse issue in {repo}: {e!r}") from e
        return issues
