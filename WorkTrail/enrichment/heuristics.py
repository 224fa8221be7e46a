"""
Time heuristics for aggregates built from point-in-time records.

Commits, pushes and page visits carry a single timestamp, so a raw aggregate
span under-reports the work it stands for. Each freshly built aggregate gets
its span stretched exactly once, before coverage resolution.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from WorkTrail.models import AggregateActivity, Bucket, RawActivityRecord, SourceKind

log = logging.getLogger(__name__)

COMMIT_LEAD_MINUTES = 30 # Work that preceded a commit without leaving a record
DOCUMENT_LEAD_MINUTES = 15 # Reading before editing a collaborative doc
TRAILING_MINUTES = 15 # Engagement after the last captured event
MIN_SPAN_MINUTES = 30

COMMIT_ACTIVITY = "commit"


@dataclass(frozen=True)
class TimePolicy:
    commit_lead: timedelta = timedelta(minutes=COMMIT_LEAD_MINUTES)
    document_lead: timedelta = timedelta(minutes=DOCUMENT_LEAD_MINUTES)
    trailing: timedelta = timedelta(minutes=TRAILING_MINUTES)
    min_span: timedelta = timedelta(minutes=MIN_SPAN_MINUTES)

    @classmethod
    def from_minutes(cls, commit_lead: int, document_lead: int, trailing: int, min_span: int) -> "TimePolicy":
        return cls(
            commit_lead=timedelta(minutes=commit_lead),
            document_lead=timedelta(minutes=document_lead),
            trailing=timedelta(minutes=trailing),
            min_span=timedelta(minutes=min_span),
        )


DEFAULT_POLICY = TimePolicy()


def first_version_control_member(aggregate: AggregateActivity) -> Optional[RawActivityRecord]:
    # members are kept in (start_at, id) order
    for member in aggregate.members:
        if member.source_kind == SourceKind.VERSION_CONTROL:
            return member
    return None


def adjust_span(aggregate: AggregateActivity, policy: TimePolicy = DEFAULT_POLICY) -> AggregateActivity:
    """
    Return a copy of the aggregate with its span stretched:

    - start moved back by commit_lead if the earliest version-control member is a commit
    - start moved back by document_lead for collaborative documents only
    - end moved forward by trailing, always
    - end pushed out so the span is at least min_span
    """
    if aggregate.adjusted:
        log.debug(f"Aggregate {aggregate.aggregate_id} already adjusted; leaving span as is.")
        return aggregate

    start, end = aggregate.start, aggregate.end

    first_vcs = first_version_control_member(aggregate)
    if first_vcs is not None and first_vcs.activity_type == COMMIT_ACTIVITY:
        start -= policy.commit_lead

    if aggregate.bucket == Bucket.COLLABORATIVE_DOC:
        start -= policy.document_lead

    end += policy.trailing

    if end - start < policy.min_span:
        end = start + policy.min_span

    return aggregate.model_copy(update={"start": start, "end": end, "adjusted": True})
