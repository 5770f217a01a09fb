from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from sources.base import SourceConfig

# Wednesday; last completed week starts Mon 2024-03-11, current week Mon 2024-03-18.
NOW = datetime(2024, 3, 20, 12, 0, tzinfo=timezone.utc)
WEEKS = [date(2024, 2, 19), date(2024, 2, 26), date(2024, 3, 4), date(2024, 3, 11)]
CURRENT = date(2024, 3, 18)


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def cfg() -> SourceConfig:
    return SourceConfig(
        timeout_s=5.0,
        page_delay_s=0.0,
        user_agent="scorecard-tests",
        ashby_base_url="https://api.ashbyhq.com",
        github_base_url="https://api.github.com",
        ashby_api_key="ashby-key",
        github_token="gh-token",
        datumctl_path=None,
    )
