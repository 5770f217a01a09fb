"""
Ashby HQ recruiting API client.

Every list endpoint is a POST taking {"limit", "cursor"} and answering
{"success", "results", "moreDataAvailable", "nextCursor"}.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional

import httpx

from sources.base import SourceConfig, SourceError, build_client, parse_timestamp, request_json

NO_DEPARTMENT = "No Department"
UNKNOWN_JOB = "Unknown Job"
PAGE_LIMIT = 100


@dataclass(frozen=True)
class Application:
    id: str
    created_at: datetime
    job_id: str
    job_title: str


@dataclass(frozen=True)
class JobInfo:
    title: str
    department: str


class AshbyClient:
    def __init__(self, cfg: SourceConfig, transport: Optional[httpx.BaseTransport] = None) -> None:
        api_key = cfg.require("ashby_api_key", "ASHBY_API_KEY")
        self._cfg = cfg
        self._client = build_client(
            cfg,
            cfg.ashby_base_url,
            headers={"Content-Type": "application/json"},
            auth=httpx.BasicAuth(api_key, ""),
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "AshbyClient":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def _paginate(self, endpoint: str) -> Iterator[Dict[str, Any]]:
        cursor: Optional[str] = None
        while True:
            body: Dict[str, Any] = {"limit": PAGE_LIMIT}
            if cursor:
                body["cursor"] = cursor

            payload = request_json(self._client, "POST", f"/{endpoint}", json=body)
            if not isinstance(payload, dict):
                raise SourceError(f"{endpoint}: failed to parse response: expected a JSON object")
            if not payload.get("success"):
                raise SourceError(f"{endpoint}: API returned success=false")

            results = payload.get("results") or []
            if not isinstance(results, list):
                raise SourceError(f"{endpoint}: failed to parse response: results is not a list")
            yield from results

            if not payload.get("moreDataAvailable"):
                break
            cursor = payload.get("nextCursor")
            if not cursor:
                raise SourceError(f"{endpoint}: moreDataAvailable without nextCursor")
            time.sleep(self._cfg.page_delay_s)

    def fetch_departments(self) -> Dict[str, str]:
        """Map department id -> department name."""
        try:
            return {d["id"]: d.get("name", "") for d in self._paginate("department.list")}
        except (KeyError, TypeError, AttributeError) as e:
            raise SourceError(f"department.list: failed to parse department: {e!r}") from e

    def fetch_jobs(self, departments: Dict[str, str]) -> Dict[str, JobInfo]:
        """Map job id -> JobInfo, resolving each job's department name."""
        jobs: Dict[str, JobInfo] = {}
        for job in self._paginate("job.list"):
            try:
                dept_name = departments.get(job.get("departmentId") or "") or NO_DEPARTMENT
                jobs[job["id"]] = JobInfo(title=job.get("title", ""), department=dept_name)
            except (KeyError, TypeError, AttributeError) as e:
                raise SourceError(f"job.list: failed to parse job: {e!r}") from e
        return jobs

    def fetch_applications(self) -> List[Application]:
        apps: List[Application] = []
        for it in self._paginate("application.list"):
            if not isinstance(it, dict):
                raise SourceError(f"application.list: failed to parse application: {it!r}")
            job = it.get("job")
            if not isinstance(job, dict):
                job = {}
            try:
                created_at = parse_timestamp(it["createdAt"])
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                raise SourceError(f"application {it.get('id')!r}: bad createdAt: {e}") from e
            apps.append(
                Application(
                    id=str(it.get("id", "")),
                    created_at=created_at,
                    job_id=str(job.get("id", "")),
                    job_title=str(job.get("title", "")),
                )
            )
        return apps


def resolve_job(app: Application, jobs: Dict[str, JobInfo]) -> JobInfo:
    """
    Job info for an application.

    Applications for jobs missing from job.list fall back to their embedded
    title and the "No Department" bucket.
    """
    info = jobs.get(app.job_id)
    if info is not None:
        return info
    return JobInfo(title=app.job_title or UNKNOWN_JOB, department=NO_DEPARTMENT)
