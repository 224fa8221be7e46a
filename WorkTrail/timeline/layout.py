"""
Column layout for one day's timed events.

Greedy packing: events are placed in the first free column in start order.
It is not the minimum-column packing, and existing views depend on the
column assignments it produces, so it stays as is.
"""

import logging
from datetime import date, timezone, tzinfo
from typing import List, Sequence

from WorkTrail.models import LayoutBlock, UnifiedTimelineEvent
from WorkTrail.timeline.assembler import day_bounds

log = logging.getLogger(__name__)

HOUR_HEIGHT = 60 # Pixels per hour
MIN_BLOCK_HEIGHT = 30


def assign_columns(events: Sequence[UnifiedTimelineEvent]) -> List[int]:
    """Column index per event, in the order given. Touching events share a column."""
    order = sorted(range(len(events)), key=lambda i: (events[i].start, i))
    column_ends = []
    columns = [0] * len(events)
    for i in order:
        event = events[i]
        for col, last_end in enumerate(column_ends):
            if last_end <= event.start:
                column_ends[col] = event.end
                columns[i] = col
                break
        else:
            column_ends.append(event.end)
            columns[i] = len(column_ends) - 1
    return columns


def layout(
    timed_events: Sequence[UnifiedTimelineEvent],
    day: date,
    tz: tzinfo = timezone.utc,
    hour_height: float = HOUR_HEIGHT,
    min_block_height: float = MIN_BLOCK_HEIGHT,
) -> List[LayoutBlock]:
    """
    Lay out the timed events of one day.

    Blocks come back in start order. total_columns is the column count of the
    whole day, so an isolated event can still be narrow. Vertical geometry
    uses the event clipped to the day; packing uses the full event span.
    """
    events = list(timed_events)
    if not events:
        return []

    columns = assign_columns(events)
    total = max(columns) + 1
    day_start, day_end = (bound.astimezone(timezone.utc) for bound in day_bounds(day, tz))

    order = sorted(range(len(events)), key=lambda i: (events[i].start, i))
    blocks = []
    for i in order:
        event = events[i]
        start = max(event.start, day_start)
        end = min(event.end, day_end)
        top_hours = (start - day_start).total_seconds() / 3600
        duration_hours = max((end - start).total_seconds(), 0) / 3600
        blocks.append(LayoutBlock(
            event=event,
            column=columns[i],
            total_columns=total,
            top_offset=top_hours * hour_height,
            height=max(duration_hours * hour_height, min_block_height),
            left_percent=columns[i] / total * 100,
            width_percent=100 / total,
        ))
    log.debug(f"Laid out {len(blocks)} blocks in {total} columns for {day}.")
    return blocks
