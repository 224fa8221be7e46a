"""
End-to-end timeline pipeline.

classify -> aggregate -> adjust times -> resolve coverage -> assemble -> per-day
partition and layout. Every call is a pure function of its arguments: nothing
is cached between calls, and the trusted-org allowlist travels with each call.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from WorkTrail.config import Settings
from WorkTrail.enrichment.aggregation import ActivityAggregator
from WorkTrail.enrichment.coverage import resolve
from WorkTrail.enrichment.domain_classifier import DomainClassifier
from WorkTrail.enrichment.heuristics import adjust_span
from WorkTrail.ingestion.records import RecordLoader
from WorkTrail.models import (
    TIMELINE_EVENT_TYPES,
    AggregateActivity,
    LayoutBlock,
    RawActivityRecord,
    UnifiedTimelineEvent,
)
from WorkTrail.timeline.assembler import assemble, calendar_records, partition
from WorkTrail.timeline.layout import layout

log = logging.getLogger(__name__)


@dataclass
class DayView:
    """Everything a day column needs: all-day strip, timed events and their blocks."""
    day: date
    all_day: List[UnifiedTimelineEvent] = field(default_factory=list)
    timed: List[UnifiedTimelineEvent] = field(default_factory=list)
    blocks: List[LayoutBlock] = field(default_factory=list)


class TimelineProcessor:
    """Builds the unified timeline and per-day layouts from raw activity records."""

    def __init__(self, settings: Optional[Settings] = None, classifier: Optional[DomainClassifier] = None):
        self.settings = settings or Settings()
        self.tz = self.settings.get_local_timezone()
        self.policy = self.settings.time_policy()
        self.aggregator = ActivityAggregator(self.settings, classifier)

    def adjust(self, aggregates: Iterable[AggregateActivity]) -> List[AggregateActivity]:
        return [adjust_span(agg, self.policy) for agg in aggregates]

    def build_timeline(self, records: Iterable[RawActivityRecord], trusted_orgs: Iterable[str] = ()) -> List[UnifiedTimelineEvent]:
        records = list(records)
        trusted_orgs = tuple(trusted_orgs or ())
        log.info(f"Building timeline from {len(records)} records.")

        repository_aggregates = self.adjust(self.aggregator.aggregate_repositories(records))
        other_aggregates = self.adjust(self.aggregator.aggregate(records, trusted_orgs))
        surviving = resolve(repository_aggregates, other_aggregates)

        return assemble(calendar_records(records), repository_aggregates + surviving)

    def build_timeline_from_rows(
        self,
        rows: Iterable[Mapping[str, Any]],
        trusted_orgs: Iterable[str] = (),
        known_repository_paths: Iterable[str] = (),
    ) -> List[UnifiedTimelineEvent]:
        """Same as build_timeline, starting from stored rows instead of parsed records."""
        trusted_orgs = tuple(trusted_orgs or ())
        loader = RecordLoader(self.settings, trusted_orgs, known_repository_paths)
        return self.build_timeline(loader.load(rows), trusted_orgs)

    def _events(self, records_or_events: Iterable[Any], trusted_orgs: Iterable[str]) -> List[UnifiedTimelineEvent]:
        items = list(records_or_events)
        events = [item for item in items if isinstance(item, TIMELINE_EVENT_TYPES)]
        if not events:
            return self.build_timeline(items, trusted_orgs)
        if len(events) != len(items):
            raise TypeError("Pass either raw activity records or assembled timeline events, not a mix of both.")
        return events

    def layout_day(self, timed_events: Sequence[UnifiedTimelineEvent], day: date) -> List[LayoutBlock]:
        return layout(
            timed_events,
            day,
            self.tz,
            hour_height=self.settings.hour_height,
            min_block_height=self.settings.min_block_height,
        )

    def _view(self, events: List[UnifiedTimelineEvent], day: date) -> DayView:
        part = partition(events, day, self.tz)
        return DayView(day=day, all_day=part.all_day, timed=part.timed, blocks=self.layout_day(part.timed, day))

    def day_view(self, records_or_events: Iterable[Any], day: date, trusted_orgs: Iterable[str] = ()) -> DayView:
        """
        Partition and lay out one local day.

        Accepts either raw records (the full pipeline runs first) or an
        already assembled timeline.
        """
        return self._view(self._events(records_or_events, trusted_orgs), day)

    def day_views(self, records_or_events: Iterable[Any], days: Iterable[date], trusted_orgs: Iterable[str] = ()) -> Dict[date, DayView]:
        """Views for several visible days; the timeline is assembled once and each day is independent."""
        events = self._events(records_or_events, trusted_orgs)
        return {day: self._view(events, day) for day in days}
