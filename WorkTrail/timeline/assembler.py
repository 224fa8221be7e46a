"""
Timeline assembly: calendar records and surviving aggregates become one
sorted list of timeline events, which is then split per local calendar day.
"""

import logging
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Iterable, List, Tuple

from WorkTrail.models import (
    AggregateActivity,
    Bucket,
    CalendarEvent,
    CalendarPayload,
    DayPartition,
    DocumentEvent,
    RawActivityRecord,
    RepositoryEvent,
    ResearchEvent,
    SourceKind,
    UnifiedTimelineEvent,
)

log = logging.getLogger(__name__)

EVENT_TYPE_BY_BUCKET = {
    Bucket.REPOSITORY: RepositoryEvent,
    Bucket.COLLABORATIVE_DOC: DocumentEvent,
    Bucket.PROJECT_TOOL: DocumentEvent,
    Bucket.RESEARCH: ResearchEvent,
}


def calendar_records(records: Iterable[RawActivityRecord]) -> List[RawActivityRecord]:
    return [r for r in records if r.source_kind == SourceKind.CALENDAR]


def calendar_event(record: RawActivityRecord) -> CalendarEvent:
    location = record.payload.location if isinstance(record.payload, CalendarPayload) else None
    return CalendarEvent(
        id=record.id,
        title=record.title,
        start=record.start_at,
        end=record.end_at,
        project_id=record.project_id,
        is_all_day=record.is_all_day,
        members=[record],
        location=location,
    )


def to_timeline_event(aggregate: AggregateActivity) -> UnifiedTimelineEvent:
    try:
        event_type = EVENT_TYPE_BY_BUCKET[aggregate.bucket]
    except KeyError:
        raise TypeError(f"No timeline event type for bucket {aggregate.bucket!r}")

    fields = dict(
        id=aggregate.aggregate_id,
        title=aggregate.title,
        start=aggregate.start,
        end=aggregate.end,
        project_id=aggregate.project_id,
        members=list(aggregate.members),
        aggregate_id=aggregate.aggregate_id,
        grouping_key=aggregate.grouping_key,
        domain=aggregate.domain,
        origin_url=aggregate.origin_url,
    )
    if event_type is DocumentEvent:
        fields["bucket"] = aggregate.bucket
    return event_type(**fields)


def event_sort_key(event: UnifiedTimelineEvent):
    return (event.start, event.id)


def assemble(calendar: Iterable[RawActivityRecord], aggregates: Iterable[AggregateActivity]) -> List[UnifiedTimelineEvent]:
    events: List[UnifiedTimelineEvent] = [calendar_event(r) for r in calendar]
    events.extend(to_timeline_event(agg) for agg in aggregates)
    events.sort(key=event_sort_key)
    log.info(f"Assembled {len(events)} timeline events.")
    return events


# --- Days ---

def day_bounds(day: date, tz: tzinfo) -> Tuple[datetime, datetime]:
    """Local midnight to the next local midnight; not always 24h across DST changes."""
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return start, end


def occurs_on(event: UnifiedTimelineEvent, day: date, tz: tzinfo) -> bool:
    day_start, day_end = day_bounds(day, tz)
    return event.start < day_end and event.end > day_start


def partition(events: Iterable[UnifiedTimelineEvent], day: date, tz: tzinfo) -> DayPartition:
    all_day, timed = [], []
    for event in events:
        if not occurs_on(event, day, tz):
            continue
        (all_day if event.is_all_day else timed).append(event)
    return DayPartition(day=day, all_day=all_day, timed=timed)


def week_days(anchor: date, show_weekends: bool = True) -> List[date]:
    """Days of the Monday-start week containing anchor."""
    monday = anchor - timedelta(days=anchor.weekday())
    count = 7 if show_weekends else 5
    return [monday + timedelta(days=i) for i in range(count)]


def month_days(anchor: date, show_weekends: bool = True) -> List[date]:
    """Monday-start grid covering every day of anchor's month."""
    first = anchor.replace(day=1)
    next_month = (first + timedelta(days=32)).replace(day=1)
    last = next_month - timedelta(days=1)

    grid_start = first - timedelta(days=first.weekday())
    grid_end = last + timedelta(days=6 - last.weekday())

    days = []
    current = grid_start
    while current <= grid_end:
        if show_weekends or current.weekday() < 5:
            days.append(current)
        current += timedelta(days=1)
    return days
