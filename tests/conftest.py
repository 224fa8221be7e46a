import itertools
from datetime import datetime, timedelta, timezone

import pytest

from WorkTrail.config import Settings
from WorkTrail.models import (
    BrowsingPayload,
    CalendarPayload,
    RawActivityRecord,
    SourceKind,
    VersionControlPayload,
)


@pytest.fixture
def settings():
    return Settings(_env_file=None, local_tz="UTC")


@pytest.fixture
def at():
    """at(10, 5) -> 2024-05-15 10:05 UTC; day= picks another May day."""
    def _at(hour, minute=0, day=15):
        return datetime(2024, 5, day, hour, minute, tzinfo=timezone.utc)
    return _at


@pytest.fixture
def make_commit():
    counter = itertools.count(1)

    def _make(start, repository_id="42", repository_name="acme/widgets", activity_type="commit",
              repository_path="acme/widgets", duration=timedelta(0), record_id=None, project_id=None):
        return RawActivityRecord(
            id=record_id or f"vcs-{next(counter)}",
            source_kind=SourceKind.VERSION_CONTROL,
            title=f"{activity_type} in {repository_name}",
            start_at=start,
            end_at=start + duration,
            payload=VersionControlPayload(
                repository_id=repository_id,
                repository_name=repository_name,
                activity_type=activity_type,
                repository_path=repository_path,
            ),
            project_id=project_id,
        )
    return _make


@pytest.fixture
def make_visit():
    counter = itertools.count(1)

    def _make(start, url, title="", domain=None, repository_path=None,
              duration=timedelta(minutes=1), record_id=None, project_id=None):
        if domain is None:
            domain = url.split("://", 1)[1].split("/", 1)[0]
        return RawActivityRecord(
            id=record_id or f"web-{next(counter)}",
            source_kind=SourceKind.BROWSING,
            title=title,
            start_at=start,
            end_at=start + duration,
            payload=BrowsingPayload(url=url, domain=domain, page_title=title, visit_count=1,
                                    repository_path=repository_path),
            project_id=project_id,
        )
    return _make


@pytest.fixture
def make_meeting():
    counter = itertools.count(1)

    def _make(start, end, title="Standup", is_all_day=False, record_id=None):
        return RawActivityRecord(
            id=record_id or f"cal-{next(counter)}",
            source_kind=SourceKind.CALENDAR,
            title=title,
            start_at=start,
            end_at=end,
            payload=CalendarPayload(location="Room 1", is_all_day=is_all_day),
        )
    return _make
