"""Tests for core data models."""

from datetime import datetime, timezone

from judging.models import (
    JudgeProgress,
    JudgingGroup,
    Placement,
    Resource,
    SubmissionProgress,
    Visibility,
)


def _ranks(placements):
    return [(p.submission_id, p.rank, p.tied) for p in placements]


class TestBuildRanking:
    def test_no_ties(self):
        result = Placement.build_ranking(["A", "B", "C"])
        assert _ranks(result) == [
            ("A", 1, False),
            ("B", 2, False),
            ("C", 3, False),
        ]

    def test_tie_in_middle(self):
        result = Placement.build_ranking(["A", ["B", "C"], "D"])
        assert _ranks(result) == [
            ("A", 1, False),
            ("B", 2, True),
            ("C", 2, True),
            ("D", 4, False),
        ]

    def test_tie_at_start(self):
        result = Placement.build_ranking([["A", "B"], "C"])
        assert _ranks(result) == [
            ("A", 1, True),
            ("B", 1, True),
            ("C", 3, False),
        ]

    def test_multiple_ties(self):
        result = Placement.build_ranking([["A", "B"], "C", ["D", "E"]])
        assert _ranks(result) == [
            ("A", 1, True),
            ("B", 1, True),
            ("C", 3, False),
            ("D", 4, True),
            ("E", 4, True),
        ]

    def test_empty(self):
        assert Placement.build_ranking([]) == []


class TestJudgingGroup:
    def setup_method(self):
        self.group = JudgingGroup(
            id="g1",
            name="Spring Jam",
            slug="spring-jam",
            judge_password_hash="j-hash",
            results_password_hash="r-hash",
            start_date=datetime(2026, 3, 1, tzinfo=timezone.utc),
        )

    def test_defaults(self):
        assert self.group.judge_visibility is Visibility.PUBLIC
        assert self.group.results_visibility is Visibility.PASSWORD_PROTECTED
        assert self.group.is_active

    def test_dict_round_trip(self):
        assert JudgingGroup.from_dict(self.group.to_dict()) == self.group

    def test_submission_page_tier_follows_password(self):
        assert self.group.visibility_of(Resource.SUBMISSION_PAGE) is Visibility.PUBLIC
        self.group.submission_page_password_hash = "s-hash"
        assert self.group.visibility_of(Resource.SUBMISSION_PAGE) is Visibility.PASSWORD_PROTECTED

    def test_password_hash_per_resource(self):
        assert self.group.password_hash_of(Resource.JUDGE_INTERFACE) == "j-hash"
        assert self.group.password_hash_of(Resource.RESULTS) == "r-hash"
        assert self.group.password_hash_of(Resource.SUBMISSION_PAGE) is None


class TestJudgeProgress:
    def test_submission_without_criteria_is_not_complete(self):
        assert not SubmissionProgress("s1", "Entry", criteria_scored=0, total_criteria=0).is_complete

    def test_completion_clamped(self):
        progress = JudgeProgress("A", total_submissions=1, total_criteria=1, completed_ratings=3, submissions=[])
        assert progress.completion_percentage == 100.0
