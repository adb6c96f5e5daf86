"""Tests for GeneralizationStatistics."""

from rulegen.core.stats import GeneralizationStatistics, PassEvent


class TestGeneralizationStatistics:
    """Tests for GeneralizationStatistics class."""

    def test_record_and_get(self):
        stats = GeneralizationStatistics()
        stats.record("reduce", PassEvent.ORACLE_QUERY)
        stats.record("reduce", PassEvent.ORACLE_QUERY, 4)

        assert stats.get("reduce", PassEvent.ORACLE_QUERY) == 5
        assert stats.get("reduce", PassEvent.CANDIDATE_ACCEPTED) == 0
        assert stats.get("fixit", PassEvent.ORACLE_QUERY) == 0

    def test_get_does_not_create_entries(self):
        stats = GeneralizationStatistics()
        stats.get("symbolize", PassEvent.ORACLE_QUERY)
        assert "symbolize" not in stats.counts

    def test_total_across_passes(self):
        stats = GeneralizationStatistics()
        stats.record("reduce", PassEvent.CANDIDATE_ACCEPTED, 2)
        stats.record("symbolize", PassEvent.CANDIDATE_ACCEPTED, 3)
        stats.record("symbolize", PassEvent.CANDIDATE_DISCARDED)

        assert stats.total(PassEvent.CANDIDATE_ACCEPTED) == 5
        assert stats.total(PassEvent.PASS_ABORTED) == 0

    def test_report_lists_non_zero_events(self):
        stats = GeneralizationStatistics()
        stats.record("symbolize", PassEvent.ORACLE_QUERY, 7)
        stats.record("fixit", PassEvent.CANDIDATE_ACCEPTED)

        report = stats.report()
        assert report.splitlines() == [
            "fixit: candidate_accepted=1",
            "symbolize: oracle_query=7",
        ]

    def test_reset(self):
        stats = GeneralizationStatistics()
        stats.record("reduce", PassEvent.PASS_ABORTED)
        stats.reset()
        assert stats.total(PassEvent.PASS_ABORTED) == 0
        assert stats.report() == ""
