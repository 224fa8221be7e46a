"""
Aggregation of point-in-time records into AggregateActivity blocks.

Records are grouped by (origin, identity, local calendar day). Three groupings
are built from the same record set:

- repository: version-control and browsing records sharing a canonical path
- version_control: records sharing the source-reported repository id
- browsing: records sharing the classifier's grouping key on one domain

Calendar records are never aggregated.
"""

import logging
from collections import defaultdict
from datetime import date, timezone, tzinfo
from typing import Callable, Dict, Hashable, Iterable, List, Optional, Tuple

from WorkTrail.enrichment.domain_classifier import DomainClassifier
from WorkTrail.models import (
    AggregateActivity,
    AggregateOrigin,
    Bucket,
    ClassificationResult,
    RawActivityRecord,
    SourceKind,
    VersionControlPayload,
    member_sort_key,
)

log = logging.getLogger(__name__)

GroupKey = Tuple[Hashable, date]


def local_day(record: RawActivityRecord, tz: tzinfo) -> date:
    return record.start_at.astimezone(tz).date()


def make_aggregate_id(origin: AggregateOrigin, identity: str, day: date) -> str:
    return f"{origin.value}:{identity}:{day.isoformat()}"


def _last_segment(name: Optional[str]) -> Optional[str]:
    if not name:
        return None
    segments = [s for s in name.strip().split("/") if s]
    return segments[-1] if segments else None


def _first_vcs_payload(members: List[RawActivityRecord]) -> Optional[VersionControlPayload]:
    for member in members:
        if isinstance(member.payload, VersionControlPayload):
            return member.payload
    return None


def _build(
    origin: AggregateOrigin,
    identity: str,
    day: date,
    members: List[RawActivityRecord],
    bucket: Bucket,
    grouping_key: str,
    title: str,
    domain: Optional[str] = None,
    origin_url: Optional[str] = None,
) -> AggregateActivity:
    members = sorted(members, key=member_sort_key)
    return AggregateActivity(
        aggregate_id=make_aggregate_id(origin, identity, day),
        origin=origin,
        bucket=bucket,
        grouping_key=grouping_key,
        title=title,
        day=day,
        domain=domain,
        start=min(m.start_at for m in members),
        end=max(m.end_at for m in members),
        members=members,
        project_id=members[0].project_id,
        origin_url=origin_url,
    )


def _group(records: Iterable[RawActivityRecord], tz: tzinfo, key_fn: Callable[[RawActivityRecord], Optional[Hashable]]) -> Dict[GroupKey, List[RawActivityRecord]]:
    groups: Dict[GroupKey, List[RawActivityRecord]] = defaultdict(list)
    for record in records:
        identity = key_fn(record)
        if identity is None:
            continue
        groups[(identity, local_day(record, tz))].append(record)
    return groups


def _ordered(groups: Dict[GroupKey, List[RawActivityRecord]]) -> List[Tuple[GroupKey, List[RawActivityRecord]]]:
    # Output order must not depend on input order
    return sorted(groups.items(), key=lambda item: (item[0][1], str(item[0][0])))


def aggregate_version_control(records: Iterable[RawActivityRecord], tz: tzinfo = timezone.utc) -> List[AggregateActivity]:
    def repository_id(record: RawActivityRecord) -> Optional[str]:
        if record.source_kind != SourceKind.VERSION_CONTROL:
            return None
        if not isinstance(record.payload, VersionControlPayload) or not record.payload.repository_id:
            log.debug(f"Version-control record {record.id} has no repository id; skipped.")
            return None
        return record.payload.repository_id

    aggregates = []
    for (repo_id, day), members in _ordered(_group(records, tz, repository_id)):
        payload = _first_vcs_payload(sorted(members, key=member_sort_key))
        title = _last_segment(payload.repository_name) or repo_id
        aggregates.append(_build(
            AggregateOrigin.VERSION_CONTROL, repo_id, day, members,
            bucket=Bucket.REPOSITORY,
            grouping_key=repo_id,
            title=title,
            origin_url=payload.origin_url,
        ))
    return aggregates


def aggregate_repositories(records: Iterable[RawActivityRecord], tz: tzinfo = timezone.utc) -> List[AggregateActivity]:
    """Unify version-control and browsing records that carry the same canonical repository path."""
    def repository_path(record: RawActivityRecord) -> Optional[str]:
        if record.source_kind == SourceKind.CALENDAR:
            return None
        return record.repository_path

    aggregates = []
    for (path, day), members in _ordered(_group(records, tz, repository_path)):
        payload = _first_vcs_payload(sorted(members, key=member_sort_key))
        title = (payload.repository_name if payload else None) or _last_segment(path) or path
        origin_url = payload.origin_url if payload else None
        aggregates.append(_build(
            AggregateOrigin.REPOSITORY, path, day, members,
            bucket=Bucket.REPOSITORY,
            grouping_key=path,
            title=title,
            origin_url=origin_url,
        ))
    return aggregates


def aggregate_browsing(
    records: Iterable[RawActivityRecord],
    classifier: Optional[DomainClassifier] = None,
    trusted_orgs: Iterable[str] = (),
    tz: tzinfo = timezone.utc,
) -> List[AggregateActivity]:
    classifier = classifier or DomainClassifier()
    trusted_orgs = tuple(trusted_orgs or ())
    results: Dict[Tuple[str, str, str], ClassificationResult] = {}

    def identity(record: RawActivityRecord) -> Optional[Tuple[str, str, str]]:
        if record.source_kind != SourceKind.BROWSING:
            return None
        domain = (record.domain or "").lower()
        result = classifier.classify(domain, record.url, record.title, trusted_orgs)
        if result is None or not result.is_grouped:
            log.debug(f"Browsing record {record.id} on '{domain}' not grouped.")
            return None
        key = (result.bucket.value, result.grouping_key, domain)
        results.setdefault(key, result)
        return key

    aggregates = []
    for (key, day), members in _ordered(_group(records, tz, identity)):
        bucket_name, grouping_key, domain = key
        result = results[key]
        first = min(members, key=member_sort_key)
        aggregates.append(_build(
            AggregateOrigin.BROWSING, f"{bucket_name}:{grouping_key}@{domain}", day, members,
            bucket=Bucket(bucket_name),
            grouping_key=grouping_key,
            title=result.title or grouping_key,
            domain=domain,
            origin_url=first.url,
        ))
    return aggregates


def aggregate(
    records: Iterable[RawActivityRecord],
    classifier: Optional[DomainClassifier] = None,
    trusted_orgs: Iterable[str] = (),
    tz: tzinfo = timezone.utc,
) -> List[AggregateActivity]:
    """Single-source aggregates (version-control, then browsing) for a record set."""
    records = list(records)
    return aggregate_version_control(records, tz) + aggregate_browsing(records, classifier, trusted_orgs, tz)


class ActivityAggregator:
    """Groups raw records into aggregates on the configured local calendar days."""

    def __init__(self, settings, classifier: Optional[DomainClassifier] = None):
        self.settings = settings
        self.classifier = classifier or DomainClassifier()
        self.tz = settings.get_local_timezone()

    def aggregate(self, records: Iterable[RawActivityRecord], trusted_orgs: Iterable[str] = ()) -> List[AggregateActivity]:
        aggregates = aggregate(records, self.classifier, trusted_orgs, self.tz)
        log.info(f"Built {len(aggregates)} single-source aggregates.")
        return aggregates

    def aggregate_repositories(self, records: Iterable[RawActivityRecord]) -> List[AggregateActivity]:
        aggregates = aggregate_repositories(records, self.tz)
        log.info(f"Built {len(aggregates)} repository aggregates.")
        return aggregates
