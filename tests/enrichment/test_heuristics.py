import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

from WorkTrail.enrichment.aggregation import ActivityAggregator
from WorkTrail.enrichment.heuristics import DEFAULT_POLICY, TimePolicy, adjust_span
from WorkTrail.models import BrowsingPayload, RawActivityRecord, SourceKind, VersionControlPayload


def _utc(hour, minute=0):
    return datetime(2024, 5, 15, hour, minute, tzinfo=timezone.utc)


def _vcs(record_id, start, end=None, activity_type="commit"):
    return RawActivityRecord(
        id=record_id,
        source_kind=SourceKind.VERSION_CONTROL,
        title=activity_type,
        start_at=start,
        end_at=end or start,
        payload=VersionControlPayload(repository_id="42", repository_name="acme/widgets", activity_type=activity_type),
    )


def _visit(record_id, start, url, title):
    return RawActivityRecord(
        id=record_id,
        source_kind=SourceKind.BROWSING,
        title=title,
        start_at=start,
        end_at=start + timedelta(minutes=1),
        payload=BrowsingPayload(url=url, domain=url.split("/")[2], page_title=title),
    )


class TestHeuristicTimeAdjuster(unittest.TestCase):

    def setUp(self):
        self.settings = MagicMock()
        self.settings.get_local_timezone.return_value = timezone.utc
        self.aggregator = ActivityAggregator(self.settings)

    def _single(self, records):
        aggregates = self.aggregator.aggregate(records)
        self.assertEqual(len(aggregates), 1)
        return aggregates[0]

    def test_commit_pulls_start_back_and_end_forward(self):
        """A 10:00 commit with activity until 10:05 becomes 09:30-10:20."""
        agg = self._single([_vcs("c1", _utc(10, 0)), _vcs("c2", _utc(10, 0), _utc(10, 5))])
        adjusted = adjust_span(agg)
        self.assertEqual(adjusted.start, _utc(9, 30))
        self.assertEqual(adjusted.end, _utc(10, 20))
        self.assertTrue(adjusted.adjusted)

    def test_commit_lead_only_when_first_member_is_commit(self):
        """A checkout before the commit means no commit lead."""
        agg = self._single([
            _vcs("c1", _utc(10, 0), activity_type="checkout"),
            _vcs("c2", _utc(10, 40), activity_type="commit"),
        ])
        adjusted = adjust_span(agg)
        self.assertEqual(adjusted.start, _utc(10, 0))
        self.assertEqual(adjusted.end, _utc(10, 55))

    def test_collaborative_doc_reading_buffer(self):
        """A one-minute doc visit at 14:00 gets 15 minutes either side."""
        agg = self._single([_visit("d1", _utc(14, 0), "https://docs.google.com/document/d/1/edit", "Roadmap - Google Docs")])
        adjusted = adjust_span(agg)
        # 14:01 plus the 15-minute trailing buffer gives 14:16. The 31-minute span already
        # clears the 30-minute floor, so the end is not stretched to 14:30.
        self.assertEqual(adjusted.start, _utc(13, 45))
        self.assertEqual(adjusted.end, _utc(14, 16))

    def test_document_lead_not_applied_to_other_buckets(self):
        agg = self._single([_visit("s1", _utc(9, 0), "https://acme.slack.com/archives/C1", "general")])
        adjusted = adjust_span(agg)
        self.assertEqual(adjusted.start, _utc(9, 0))

    def test_minimum_span_floor(self):
        """09:00-09:01 plus trailing is 16 minutes; the floor makes it 30."""
        agg = self._single([_visit("r1", _utc(9, 0), "https://stackoverflow.com/questions/1/x", "Dates - Stack Overflow")])
        adjusted = adjust_span(agg)
        self.assertEqual(adjusted.start, _utc(9, 0))
        self.assertEqual(adjusted.end, _utc(9, 30))

    def test_adjustment_applies_once(self):
        agg = self._single([_vcs("c1", _utc(10, 0))])
        once = adjust_span(agg)
        twice = adjust_span(once)
        self.assertEqual(once, twice)
        self.assertFalse(agg.adjusted)
        self.assertEqual(agg.start, _utc(10, 0))

    def test_policy_override(self):
        policy = TimePolicy.from_minutes(commit_lead=60, document_lead=0, trailing=0, min_span=0)
        agg = self._single([_vcs("c1", _utc(10, 0))])
        adjusted = adjust_span(agg, policy)
        self.assertEqual(adjusted.start, _utc(9, 0))
        self.assertEqual(adjusted.end, _utc(10, 0))

    def test_default_policy_constants(self):
        self.assertEqual(DEFAULT_POLICY.commit_lead, timedelta(minutes=30))
        self.assertEqual(DEFAULT_POLICY.document_lead, timedelta(minutes=15))
        self.assertEqual(DEFAULT_POLICY.trailing, timedelta(minutes=15))
        self.assertEqual(DEFAULT_POLICY.min_span, timedelta(minutes=30))


if __name__ == '__main__':
    unittest.main()
