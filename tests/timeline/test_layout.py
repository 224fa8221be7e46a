from datetime import date, datetime, timezone

import pytest

from WorkTrail.timeline.assembler import assemble
from WorkTrail.timeline.layout import HOUR_HEIGHT, MIN_BLOCK_HEIGHT, assign_columns, layout

DAY = date(2024, 5, 15)


@pytest.fixture
def events(make_meeting, at):
    def _events(*spans):
        records = [
            make_meeting(at(*start), at(*end), title=name, record_id=name)
            for name, start, end in spans
        ]
        return assemble(records, [])
    return _events


def _by_title(blocks):
    return {b.event.title: b for b in blocks}


def test_greedy_packing_reuses_freed_columns(events):
    timed = events(("A", (9, 0), (10, 0)), ("B", (9, 30), (10, 30)), ("C", (10, 0), (11, 0)))
    blocks = _by_title(layout(timed, DAY))

    assert blocks["A"].column == 0
    assert blocks["B"].column == 1
    assert blocks["C"].column == 0
    assert {b.total_columns for b in blocks.values()} == {2}


def test_total_columns_is_per_day_not_per_cluster(events):
    timed = events(("A", (9, 0), (10, 0)), ("B", (9, 30), (10, 30)), ("D", (15, 0), (16, 0)))
    lonely = _by_title(layout(timed, DAY))["D"]
    assert lonely.column == 0
    assert lonely.total_columns == 2
    assert lonely.width_percent == 50


def test_touching_events_share_a_column(events):
    timed = events(("A", (9, 0), (10, 0)), ("B", (10, 0), (11, 0)))
    assert {b.column for b in layout(timed, DAY)} == {0}


def test_geometry(events):
    timed = events(("A", (9, 0), (10, 0)), ("B", (9, 30), (11, 0)))
    blocks = _by_title(layout(timed, DAY))

    assert blocks["A"].top_offset == 9 * HOUR_HEIGHT
    assert blocks["A"].height == HOUR_HEIGHT
    assert blocks["A"].left_percent == 0
    assert blocks["B"].top_offset == 9.5 * HOUR_HEIGHT
    assert blocks["B"].height == 1.5 * HOUR_HEIGHT
    assert blocks["B"].left_percent == 50
    assert blocks["B"].width_percent == 50


def test_short_events_get_minimum_height(events):
    timed = events(("A", (9, 0), (9, 5)))
    assert layout(timed, DAY)[0].height == MIN_BLOCK_HEIGHT


def test_custom_scale(events):
    timed = events(("A", (2, 0), (3, 0)))
    block = layout(timed, DAY, hour_height=100, min_block_height=10)[0]
    assert block.top_offset == 200
    assert block.height == 100


def test_cross_midnight_event_is_clipped_to_the_day(make_meeting):
    late = assemble([make_meeting(
        datetime(2024, 5, 15, 23, 30, tzinfo=timezone.utc),
        datetime(2024, 5, 16, 0, 45, tzinfo=timezone.utc),
    )], [])

    first = layout(late, date(2024, 5, 15))[0]
    assert first.top_offset == 23.5 * HOUR_HEIGHT
    assert first.height == 30

    second = layout(late, date(2024, 5, 16))[0]
    assert second.top_offset == 0
    assert second.height == 45


def test_equal_starts_keep_input_order(events):
    timed = events(("A", (9, 0), (10, 0)), ("B", (9, 0), (10, 0)))
    assert assign_columns(timed) == [0, 1]
    assert assign_columns(list(reversed(timed))) == [0, 1]


def test_layout_is_repeatable(events):
    timed = events(("A", (9, 0), (10, 0)), ("B", (9, 30), (10, 30)), ("C", (10, 0), (11, 0)))
    assert layout(timed, DAY) == layout(timed, DAY)


def test_empty_day():
    assert layout([], DAY) == []
