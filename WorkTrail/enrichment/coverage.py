import logging
from typing import Iterable, List, Set

from WorkTrail.models import AggregateActivity

log = logging.getLogger(__name__)


def covered_paths(repository_aggregates: Iterable[AggregateActivity]) -> Set[str]:
    return {agg.grouping_key for agg in repository_aggregates}


def _carries_covered_path(aggregate: AggregateActivity, paths: Set[str]) -> bool:
    # Members whose payload did not parse have no repository_path
    return any(member.repository_path in paths for member in aggregate.members if member.repository_path)


def resolve(repository_aggregates: Iterable[AggregateActivity], other_aggregates: Iterable[AggregateActivity]) -> List[AggregateActivity]:
    """
    Drop every single-source aggregate that a repository aggregate already covers.

    Suppression is all or nothing: one member carrying a covered repository
    path removes the whole aggregate, including members that carry no path.
    """
    paths = covered_paths(repository_aggregates)
    kept, dropped = [], 0
    for agg in other_aggregates:
        if paths and _carries_covered_path(agg, paths):
            dropped += 1
            log.debug(f"Aggregate {agg.aggregate_id} covered by a repository aggregate; dropped.")
            continue
        kept.append(agg)
    log.info(f"Coverage resolution kept {len(kept)} aggregates, dropped {dropped}.")
    return kept
