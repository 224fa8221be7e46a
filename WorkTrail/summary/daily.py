from __future__ import annotations

import logging
from datetime import date, timezone, tzinfo
from typing import Dict, Iterable, Optional

import polars as pl
from pydantic import BaseModel, Field, field_validator

from WorkTrail.models import UnifiedTimelineEvent
from WorkTrail.timeline.assembler import day_bounds, partition

log = logging.getLogger(__name__)

FRAME_SCHEMA: Dict[str, pl.DataType] = {
    "event_id": pl.Utf8,
    "kind": pl.Utf8,
    "title": pl.Utf8,
    "project_id": pl.Int64,
    "start": pl.Datetime("us", time_zone="UTC"),
    "end": pl.Datetime("us", time_zone="UTC"),
    "duration_min": pl.Float64,
    "member_count": pl.Int64,
}
UNASSIGNED_PROJECT = "unassigned"


# --- Pydantic Schemas ---
class Stats(BaseModel):
    total_active_time_min: int
    number_blocks: int
    top_project: Optional[str] = None
    top_kind: Optional[str] = None


class DailySummary(BaseModel):
    date: date
    stats: Stats
    minutes_by_kind: Dict[str, int] = Field(default_factory=dict)
    minutes_by_project: Dict[str, int] = Field(default_factory=dict)

    @field_validator('date', mode='before')
    @classmethod
    def parse_date(cls, value):
        if isinstance(value, str):
            return date.fromisoformat(value)
        return value


# --- Frame ---
def events_frame(events: Iterable[UnifiedTimelineEvent], day: date, tz: tzinfo) -> pl.DataFrame:
    """Timed events of one local day, clipped to the day, one row per event."""
    day_start, day_end = day_bounds(day, tz)
    rows = []
    for event in partition(events, day, tz).timed:
        start = max(event.start, day_start).astimezone(timezone.utc)
        end = min(event.end, day_end).astimezone(timezone.utc)
        rows.append({
            "event_id": event.id,
            "kind": event.kind,
            "title": event.title,
            "project_id": event.project_id,
            "start": start,
            "end": end,
            "duration_min": (end - start).total_seconds() / 60,
            "member_count": len(event.members),
        })
    if not rows:
        return pl.DataFrame(schema=FRAME_SCHEMA)
    return pl.from_dicts(rows, schema=FRAME_SCHEMA).sort(["start", "event_id"])


def _minutes_by(df: pl.DataFrame, column: str) -> Dict[str, int]:
    grouped = (
        df.with_columns(pl.col(column).cast(pl.Utf8).fill_null(UNASSIGNED_PROJECT).alias("group"))
        .group_by("group")
        .agg(pl.col("duration_min").sum().alias("minutes"))
        .sort(["minutes", "group"], descending=[True, False])
    )
    return {row["group"]: int(round(row["minutes"])) for row in grouped.iter_rows(named=True)}


def _top(minutes: Dict[str, int], skip: Optional[str] = None) -> Optional[str]:
    # Insertion order is already minutes descending, then name
    for name, value in minutes.items():
        if name != skip and value > 0:
            return name
    return None


def summarize_day(events: Iterable[UnifiedTimelineEvent], day: date, tz: tzinfo) -> DailySummary:
    """
    Minutes per kind and per project for one day.

    Overlapping events each count in full, so the total can exceed the
    wall-clock time of the day.
    """
    df = events_frame(events, day, tz)
    if df.is_empty():
        log.info(f"No timed events on {day}; empty summary.")
        return DailySummary(date=day, stats=Stats(total_active_time_min=0, number_blocks=0))

    by_kind = _minutes_by(df, "kind")
    by_project = _minutes_by(df, "project_id")
    stats = Stats(
        total_active_time_min=int(round(df["duration_min"].sum())),
        number_blocks=df.height,
        top_project=_top(by_project, skip=UNASSIGNED_PROJECT),
        top_kind=_top(by_kind),
    )
    log.info(f"Summarised {df.height} events on {day}: {stats.total_active_time_min} min.")
    return DailySummary(date=day, stats=stats, minutes_by_kind=by_kind, minutes_by_project=by_project)
