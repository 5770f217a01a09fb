from __future__ import annotations

import base64
import json
from datetime import datetime, timezone
from types import SimpleNamespace

import httpx
import pytest

from sources import datum
from sources.ashby import AshbyClient, Application, JobInfo, resolve_job
from sources.base import (
    AuthError,
    ConfigError,
    NotFoundError,
    SourceError,
    load_config_from_env,
    parse_timestamp,
)
from sources.github import GitHubClient


# ---------------------------------------------------------------- config


def test_load_config_defaults(monkeypatch):
    for var in (
        "ASHBY_API_KEY",
        "GITHUB_TOKEN",
        "SCORECARD_TIMEOUT_S",
        "SCORECARD_PAGE_DELAY_S",
        "DATUMCTL_PATH",
        "ASHBY_BASE_URL",
        "GITHUB_API_URL",
    ):
        monkeypatch.delenv(var, raising=False)
    cfg = load_config_from_env()
    assert cfg.timeout_s == 30.0
    assert cfg.page_delay_s == 0.1
    assert cfg.ashby_base_url == "https://api.ashbyhq.com"
    assert cfg.github_base_url == "https://api.github.com"
    assert cfg.ashby_api_key is None
    assert cfg.github_token is None
    with pytest.raises(ConfigError, match="must set GITHUB_TOKEN"):
        cfg.require("github_token", "GITHUB_TOKEN")


def test_load_config_from_env_values(monkeypatch):
    monkeypatch.setenv("GITHUB_TOKEN", " tok ")
    monkeypatch.setenv("SCORECARD_PAGE_DELAY_S", "0")
    cfg = load_config_from_env()
    assert cfg.require("github_token", "GITHUB_TOKEN") == "tok"
    assert cfg.page_delay_s == 0.0


def test_load_config_rejects_bad_numbers(monkeypatch):
    monkeypatch.setenv("SCORECARD_TIMEOUT_S", "soon")
    with pytest.raises(ConfigError, match="SCORECARD_TIMEOUT_S"):
        load_config_from_env()


def test_parse_timestamp():
    assert parse_timestamp("2024-03-20T12:34:56Z") == datetime(
        2024, 3, 20, 12, 34, 56, tzinfo=timezone.utc
    )
    assert parse_timestamp("2024-03-20T12:34:56.123456789Z").microsecond == 123456
    assert parse_timestamp("2024-03-20T12:34:56.5Z").microsecond == 500000
    assert parse_timestamp("2024-03-20T12:00:00+02:00") == datetime(
        2024, 3, 20, 10, 0, tzinfo=timezone.utc
    )
    assert parse_timestamp("2024-03-20T12:00:00").tzinfo == timezone.utc
    with pytest.raises(ValueError):
        parse_timestamp("not a time")


# ---------------------------------------------------------------- ashby


def _ashby_transport(pages, seen):
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        seen.append((request.url.path, body, request.headers.get("authorization")))
        return httpx.Response(200, json=pages[request.url.path][body.get("cursor")])

    return httpx.MockTransport(handler)


def test_ashby_paginates_applications_with_cursor(cfg):
    pages = {
        "/application.list": {
            None: {
                "success": True,
                "results": [
                    {
                        "id": "a1",
                        "createdAt": "2024-03-05T10:00:00.000Z",
                        "status": "Active",
                        "candidate": {"id": "c1", "name": "Ada"},
                        "job": {"id": "j1", "title": "Backend"},
                    }
                ],
                "moreDataAvailable": True,
                "nextCursor": "page-2",
            },
            "page-2": {
                "success": True,
                "results": [
                    {
                        "id": "a2",
                        "createdAt": "2024-03-19T08:00:00Z",
                        "status": "Hired",
                        "candidate": {"id": "c2", "name": "Grace"},
                        "job": {"id": "j9", "title": ""},
                    }
                ],
                "moreDataAvailable": False,
            },
        }
    }
    seen = []
    with AshbyClient(cfg, transport=_ashby_transport(pages, seen)) as client:
        apps = client.fetch_applications()

    assert [a.id for a in apps] == ["a1", "a2"]
    assert apps[0].created_at == datetime(2024, 3, 5, 10, 0, tzinfo=timezone.utc)
    assert apps[1].job_id == "j9"

    assert [body for _, body, _ in seen] == [{"limit": 100}, {"limit": 100, "cursor": "page-2"}]
    expected_auth = "Basic " + base64.b64encode(b"ashby-key:").decode()
    assert all(auth == expected_auth for _, _, auth in seen)


def test_ashby_jobs_resolve_departments(cfg):
    pages = {
        "/department.list": {
            None: {
                "success": True,
                "results": [{"id": "d1", "name": "Engineering"}],
                "moreDataAvailable": False,
            }
        },
        "/job.list": {
            None: {
                "success": True,
                "results": [
                    {"id": "j1", "title": "Backend", "status": "Open", "departmentId": "d1"},
                    {"id": "j2", "title": "Office Manager", "status": "Open", "departmentId": "dX"},
                    {"id": "j3", "title": "Intern", "status": "Open"},
                ],
                "moreDataAvailable": False,
            }
        },
    }
    with AshbyClient(cfg, transport=_ashby_transport(pages, [])) as client:
        departments = client.fetch_departments()
        jobs = client.fetch_jobs(departments)

    assert departments == {"d1": "Engineering"}
    assert jobs == {
        "j1": JobInfo("Backend", "Engineering"),
        "j2": JobInfo("Office Manager", "No Department"),
        "j3": JobInfo("Intern", "No Department"),
    }


def test_ashby_unsuccessful_response_is_an_error(cfg):
    pages = {"/department.list": {None: {"success": False, "results": []}}}
    with AshbyClient(cfg, transport=_ashby_transport(pages, [])) as client:
        with pytest.raises(SourceError, match="success=false"):
            client.fetch_departments()


def test_ashby_http_error(cfg):
    transport = httpx.MockTransport(lambda request: httpx.Response(500, text="boom"))
    with AshbyClient(cfg, transport=transport) as client:
        with pytest.raises(SourceError, match="API error 500: boom"):
            client.fetch_departments()


def test_ashby_requires_api_key(cfg):
    cfg.ashby_api_key = None
    with pytest.raises(ConfigError, match="must set ASHBY_API_KEY"):
        AshbyClient(cfg)


def test_ashby_more_data_without_cursor_stops(cfg):
    pages = {
        "/department.list": {
            None: {"success": True, "results": [{"id": "d1", "name": "Eng"}], "moreDataAvailable": True}
        }
    }
    seen = []
    with AshbyClient(cfg, transport=_ashby_transport(pages, seen)) as client:
        with pytest.raises(SourceError, match="moreDataAvailable without nextCursor"):
            client.fetch_departments()
    assert len(seen) == 1


@pytest.mark.parametrize(
    "path,payload,fetch",
    [
        ("/department.list", [], lambda c: c.fetch_departments()),
        ("/department.list", {"success": True, "results": {"id": "d1"}}, lambda c: c.fetch_departments()),
        ("/department.list", {"success": True, "results": [{"name": "Eng"}]}, lambda c: c.fetch_departments()),
        ("/job.list", {"success": True, "results": [{"title": "Backend"}]}, lambda c: c.fetch_jobs({})),
        ("/job.list", {"success": True, "results": ["j1"]}, lambda c: c.fetch_jobs({})),
        ("/application.list", {"success": True, "results": [42]}, lambda c: c.fetch_applications()),
        (
            "/application.list",
            {"success": True, "results": [{"id": "a1", "createdAt": 1710000000}]},
            lambda c: c.fetch_applications(),
        ),
    ],
)
def test_ashby_malformed_payloads_are_source_errors(cfg, path, payload, fetch):
    pages = {path: {None: payload}}
    with AshbyClient(cfg, transport=_ashby_transport(pages, [])) as client:
        with pytest.raises(SourceError):
            fetch(client)


def test_resolve_job_falls_back_to_embedded_title():
    ts = datetime(2024, 3, 5, tzinfo=timezone.utc)
    jobs = {"j1": JobInfo("Backend", "Engineering")}
    known = Application("a1", ts, "j1", "ignored")
    orphan = Application("a2", ts, "j2", "Designer")
    untitled = Application("a3", ts, "j3", "")
    assert resolve_job(known, jobs) == JobInfo("Backend", "Engineering")
    assert resolve_job(orphan, jobs) == JobInfo("Designer", "No Department")
    assert resolve_job(untitled, jobs) == JobInfo("Unknown Job", "No Department")


# ---------------------------------------------------------------- github


def test_github_repos_fall_back_from_org_to_user(cfg):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.path.startswith("/orgs/"):
            return httpx.Response(404, json={"message": "Not Found"})
        page = int(request.url.params["page"])
        if page == 1:
            return httpx.Response(
                200,
                json=[{"name": "alpha", "stargazers_count": 3}, {"name": "beta", "stargazers_count": 0}],
            )
        return httpx.Response(200, json=[])

    with GitHubClient(cfg, transport=httpx.MockTransport(handler)) as client:
        repos = client.list_repos("octocat")

    assert [(r.name, r.stars) for r in repos] == [("alpha", 3), ("beta", 0)]
    assert [r.url.path for r in seen] == ["/orgs/octocat/repos", "/users/octocat/repos", "/users/octocat/repos"]
    assert seen[0].headers["authorization"] == "Bearer gh-token"
    assert seen[0].headers["x-github-api-version"] == "2022-11-28"
    assert seen[1].url.params["per_page"] == "100"


def test_github_unknown_target(cfg):
    transport = httpx.MockTransport(lambda request: httpx.Response(404))
    with GitHubClient(cfg, transport=transport) as client:
        with pytest.raises(SourceError, match="could not find organization or user 'nobody'"):
            client.list_repos("nobody")


def test_github_auth_failure_is_not_masked_by_fallback(cfg):
    transport = httpx.MockTransport(lambda request: httpx.Response(401, text="Bad credentials"))
    with GitHubClient(cfg, transport=transport) as client:
        with pytest.raises(AuthError):
            client.list_repos("octocat")


def test_github_issues_query_and_pagination(cfg):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.params)
        if request.url.params["page"] == "1":
            return httpx.Response(
                200,
                json=[
                    {
                        "number": 7,
                        "title": "Outage",
                        "created_at": "2024-03-12T09:30:00Z",
                        "labels": [{"name": ":incident/issue"}],
                    }
                ],
            )
        return httpx.Response(200, json=[])

    since = datetime(2024, 2, 19, tzinfo=timezone.utc)
    with GitHubClient(cfg, transport=httpx.MockTransport(handler)) as client:
        issues = client.list_issues("org/repo", ":incident/issue", since)

    assert len(issues) == 1
    assert issues[0].number == 7
    assert issues[0].created_at == datetime(2024, 3, 12, 9, 30, tzinfo=timezone.utc)
    assert seen[0]["labels"] == ":incident/issue"
    assert seen[0]["state"] == "all"
    assert seen[0]["since"] == "2024-02-19T00:00:00Z"
    assert [p["page"] for p in seen] == ["1", "2"]


def test_github_issues_missing_repo(cfg):
    transport = httpx.MockTransport(lambda request: httpx.Response(404))
    with GitHubClient(cfg, transport=transport) as client:
        with pytest.raises(SourceError, match="repository not found: org/gone"):
            client.list_issues("org/gone", ":incident/issue", datetime.now(timezone.utc))


@pytest.mark.parametrize(
    "page",
    [
        [{"stargazers_count": 3}],
        ["alpha"],
        {"message": "rate limited"},
    ],
)
def test_github_malformed_repo_pages_are_source_errors(cfg, page):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.params["page"] == "1":
            return httpx.Response(200, json=page)
        return httpx.Response(200, json=[])

    with GitHubClient(cfg, transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(SourceError):
            client.list_repos("octo-org")


@pytest.mark.parametrize("item", [{"number": 1}, {"number": 2, "created_at": None}, "issue"])
def test_github_malformed_issues_are_source_errors(cfg, item):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.params["page"] == "1":
            return httpx.Response(200, json=[item])
        return httpx.Response(200, json=[])

    since = datetime(2024, 2, 19, tzinfo=timezone.utc)
    with GitHubClient(cfg, transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(SourceError, match="failed to parse issue in org/repo"):
            client.list_issues("org/repo", ":incident/issue", since)


def test_not_found_is_a_source_error():
    assert issubclass(NotFoundError, SourceError)
    assert issubclass(AuthError, SourceError)


# ---------------------------------------------------------------- datum


def _fake_run(monkeypatch, returncode=0, stdout="", stderr=""):
    calls = []

    def run(cmd, **kwargs):
        calls.append(cmd)
        return SimpleNamespace(returncode=returncode, stdout=stdout, stderr=stderr)

    monkeypatch.setattr(datum.subprocess, "run", run)
    return calls


def test_datum_query_parses_events(monkeypatch):
    payload = {
        "items": [
            {
                "user": {"username": "alice@example.com", "uid": "u1"},
                "verb": "create",
                "requestReceivedTimestamp": "2024-03-12T10:00:00.123456789Z",
            },
            {
                "user": {"username": "bob@example.com", "uid": "u2"},
                "verb": "patch",
                "requestReceivedTimestamp": "garbage",
            },
        ]
    }
    calls = _fake_run(monkeypatch, stdout=json.dumps(payload))

    events = datum.query_audit_events("/bin/datumctl", days=31)

    assert calls[0][0] == "/bin/datumctl"
    assert calls[0][1:3] == ["activity", "query"]
    assert "now-31d" in calls[0]
    assert calls[0][-1] == "--all-pages"
    assert events[0].username == "alice@example.com"
    assert events[0].timestamp == datetime(2024, 3, 12, 10, 0, 0, 123456, tzinfo=timezone.utc)
    assert events[1].timestamp is None


def test_datum_query_args_with_limit():
    args = datum.build_query_args(31, limit=50)
    assert args[-2:] == ["--limit", "50"]
    assert "--all-pages" not in args
    assert args[args.index("--filter") + 1] == datum.ACTIVE_USER_FILTER


def test_datum_auth_failure(monkeypatch):
    _fake_run(monkeypatch, returncode=1, stderr="error: oauth2: token expired")
    with pytest.raises(AuthError, match="datumctl auth login"):
        datum.query_audit_events("datumctl", days=31)


def test_datum_other_failure(monkeypatch):
    _fake_run(monkeypatch, returncode=2, stderr="unknown flag --platform-wide\n")
    with pytest.raises(SourceError, match="datumctl query failed: unknown flag --platform-wide"):
        datum.query_audit_events("datumctl", days=31)


def test_datum_bad_json(monkeypatch):
    _fake_run(monkeypatch, stdout="{not json")
    with pytest.raises(SourceError, match="failed to parse audit log response"):
        datum.query_audit_events("datumctl", days=31)


def test_datum_non_string_fields_are_tolerated(monkeypatch):
    payload = {
        "items": [
            {"user": {"username": "a"}, "requestReceivedTimestamp": 12345},
            {"user": "b", "requestReceivedTimestamp": "2024-03-12T10:00:00Z"},
        ]
    }
    _fake_run(monkeypatch, stdout=json.dumps(payload))

    events = datum.query_audit_events("datumctl", days=31)

    assert events[0] == datum.AuditEvent(username="a", timestamp=None)
    assert events[1].username == ""
    assert events[1].timestamp == datetime(2024, 3, 12, 10, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize("stdout", ["[]", '"items"', '{"items": {"user": {}}}', '{"items": [1]}'])
def test_datum_unexpected_json_shape(monkeypatch, stdout):
    _fake_run(monkeypatch, stdout=stdout)
    with pytest.raises(SourceError, match="failed to parse audit log response"):
        datum.query_audit_events("datumctl", days=31)


def test_find_datumctl_lookup_order(monkeypatch, tmp_path, cfg):
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setattr(datum.shutil, "which", lambda name: "/usr/local/bin/datumctl")
    assert datum.find_datumctl() == "/usr/local/bin/datumctl"

    (tmp_path / "bin").mkdir()
    (tmp_path / "bin" / "datumctl").write_text("#!/bin/sh\n")
    assert datum.find_datumctl() == str(tmp_path / "bin" / "datumctl")

    cfg.datumctl_path = "/opt/datumctl"
    assert datum.find_datumctl(cfg) == "/opt/datumctl"


def test_find_datumctl_missing(monkeypatch, tmp_path):
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setattr(datum.shutil, "which", lambda name: None)
    with pytest.raises(SourceError, match="datumctl not found"):
        datum.find_datumctl()
