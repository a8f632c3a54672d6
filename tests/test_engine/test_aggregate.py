"""Tests for the aggregation engine."""

from dataclasses import replace

from tests.conftest import (
    make_criteria,
    make_group,
    make_scores,
    make_submissions,
    ranking_ids,
)

from judging.aggregate import compute_judge_progress, compute_results, compute_submission_breakdown


class TestScenario:
    def test_ranking(self, scenario):
        result = compute_results(**scenario)
        assert ranking_ids(result) == ["s1", "s3", "s2"]

    def test_fully_judged_submission(self, scenario):
        s1 = compute_results(**scenario).get_result("s1")
        assert s1.total_score == 32
        assert s1.average_score == 8.0
        assert s1.rating_count == 4
        assert s1.judge_count == 2
        assert s1.max_possible_score == 40
        assert s1.completion_percentage == 100.0

    def test_unjudged_submission(self, scenario):
        s2 = compute_results(**scenario).get_result("s2")
        assert s2.total_score == 0
        assert s2.average_score == 0
        assert s2.rating_count == 0
        assert s2.max_possible_score == 0
        assert s2.completion_percentage == 0.0

    def test_half_judged_submission(self, scenario):
        """Only judge A rated s3: 2 of 4 possible ratings."""
        s3 = compute_results(**scenario).get_result("s3")
        assert s3.total_score == 10
        assert s3.average_score == 5.0
        assert s3.judge_count == 1
        assert s3.max_possible_score == 20
        assert s3.completion_percentage == 50.0

    def test_ranks(self, scenario):
        result = compute_results(**scenario)
        assert [(r.rank, r.tied) for r in result.rankings] == [(1, False), (2, False), (3, False)]

    def test_group_stats(self, scenario):
        stats = compute_results(**scenario).stats
        assert stats.total_ratings == 6
        assert stats.submissions_judged == 2
        assert stats.judge_count == 2
        assert stats.average_score == 42 / 6
        assert stats.completion_percentage == 50.0

    def test_criteria_breakdown(self, scenario):
        criteria = compute_results(**scenario).criteria
        assert [(c.question, c.rating_count) for c in criteria] == [
            ("Creativity", 3),
            ("Polish", 3),
        ]
        # Creativity: 8, 7, 5; Polish: 9, 8, 5
        assert criteria[0].average_score == 20 / 3
        assert criteria[1].average_score == 22 / 3

    def test_judge_summaries(self, scenario):
        judges = compute_results(**scenario, judge_names={"A": "Ada", "B": "Bo"}).judges
        assert [(j.name, j.total_ratings) for j in judges] == [("Ada", 4), ("Bo", 2)]
        ada = judges[0]
        assert ada.average_rating == 27 / 4
        assert ada.submissions_judged == 2
        assert [s.submission.submission_id for s in ada.submissions] == ["s1", "s3"]
        assert [r.rating for r in ada.submissions[0].ratings] == [8, 9]
        assert [r.question for r in ada.submissions[0].ratings] == ["Creativity", "Polish"]

    def test_unknown_judge_name_falls_back_to_id(self, scenario):
        judges = compute_results(**scenario).judges
        assert [j.name for j in judges] == ["A", "B"]


class TestDeterminism:
    def test_repeated_calls_identical(self, scenario):
        first = compute_results(**scenario)
        second = compute_results(**scenario)
        assert first == second
        assert first.to_dict() == second.to_dict()

    def test_input_order_does_not_matter(self, scenario):
        shuffled = dict(scenario)
        shuffled["scores"] = list(reversed(scenario["scores"]))
        shuffled["submissions"] = list(reversed(scenario["submissions"]))
        shuffled["criteria"] = list(reversed(scenario["criteria"]))
        assert compute_results(**shuffled).to_dict() == compute_results(**scenario).to_dict()


class TestTieBreak:
    def test_level_submissions_ordered_by_id(self, level_pair):
        result = compute_results(**level_pair)
        assert ranking_ids(result) == ["s3", "s1", "s2"]

    def test_level_submissions_share_rank(self, level_pair):
        result = compute_results(**level_pair)
        assert [(r.rank, r.tied) for r in result.rankings] == [(1, False), (2, True), (2, True)]

    def test_tie_order_stable_across_calls(self, level_pair):
        orders = {tuple(ranking_ids(compute_results(**level_pair))) for _ in range(5)}
        assert orders == {("s3", "s1", "s2")}

    def test_equal_totals_broken_by_average(self):
        """s1 and s2 both total 10, but s2 got them from fewer ratings.

                  c1  c2
        A on s1    5   5     avg 5.0
        B on s2   10   -     avg 10.0
        """
        result = compute_results(
            group=make_group(),
            criteria=make_criteria("g1", ["Creativity", "Polish"]),
            scores=make_scores("g1", {"A": {"s1": [5, 5]}, "B": {"s2": [10]}}),
            submissions=make_submissions("s1", "s2"),
        )
        assert ranking_ids(result) == ["s2", "s1"]
        assert not any(r.tied for r in result.rankings)


class TestZeroData:
    def test_no_scores(self):
        result = compute_results(
            group=make_group(),
            criteria=make_criteria("g1", ["Creativity"]),
            scores=[],
            submissions=make_submissions("s1", "s2"),
        )
        assert result.rankings == []
        assert result.judges == []
        assert result.stats.submissions_judged == 0
        assert result.stats.average_score == 0
        assert result.stats.judge_count == 0
        assert result.stats.completion_percentage == 0
        assert [c.rating_count for c in result.criteria] == [0]

    def test_nothing_at_all(self):
        result = compute_results(make_group(), [], [], [])
        assert result.rankings == []
        assert result.criteria == []
        assert result.submission_count == 0
        assert result.stats.completion_percentage == 0


class TestCountedScores:
    def test_scores_for_deleted_criterion_ignored(self, scenario):
        """Dropping c2 leaves only the c1 ratings: s1 = 8 + 7, s3 = 5."""
        trimmed = dict(scenario, criteria=scenario["criteria"][:1])
        result = compute_results(**trimmed)
        assert result.get_result("s1").total_score == 15
        assert result.get_result("s3").total_score == 5
        assert result.get_result("s1").max_possible_score == 20
        assert result.stats.total_ratings == 3

    def test_criterion_added_after_scoring(self, scenario):
        """A third criterion nobody has rated yet lowers completion, not totals."""
        extended = dict(
            scenario,
            criteria=make_criteria("g1", ["Creativity", "Polish", "Fun"]),
        )
        s1 = compute_results(**extended).get_result("s1")
        assert s1.total_score == 32
        assert s1.max_possible_score == 60
        assert s1.completion_percentage == 4 / 6 * 100

    def test_hidden_scores_ignored(self, scenario):
        scores = [
            replace(s, is_hidden=True) if s.judge_id == "B" else s
            for s in scenario["scores"]
        ]
        result = compute_results(**dict(scenario, scores=scores))
        assert result.get_result("s1").total_score == 17
        assert result.stats.judge_count == 1

    def test_scores_for_unknown_submission_ignored(self, scenario):
        scores = scenario["scores"] + make_scores("g1", {"A": {"gone": [10, 10]}})
        result = compute_results(**dict(scenario, scores=scores))
        assert result.get_result("gone") is None
        assert result.stats.total_ratings == 6


class TestWeighted:
    def test_weighted_totals(self, weighted):
        result = compute_results(**weighted)
        assert ranking_ids(result) == ["s1", "s2"]
        assert result.get_result("s1").total_score == 10.5
        assert result.get_result("s2").total_score == 8.5

    def test_weighted_max_possible(self, weighted):
        """5 (scale) * (2 + 0.5) (weights) * 1 judge."""
        assert compute_results(**weighted).get_result("s1").max_possible_score == 12.5

    def test_breakdown_uses_raw_ratings(self, weighted):
        criteria = compute_results(**weighted).criteria
        assert criteria[0].average_score == 4.0
        assert criteria[1].average_score == 3.0

    def test_weights_ignored_when_unweighted(self, weighted):
        group = replace(weighted["group"], weighted=False)
        result = compute_results(**dict(weighted, group=group))
        assert result.get_result("s1").total_score == 6
        assert result.get_result("s1").max_possible_score == 10


class TestPublicView:
    def test_public_dict_omits_judges(self, scenario):
        data = compute_results(**scenario).to_dict(public=True)
        assert "judges" not in data
        assert [r["submission_id"] for r in data["rankings"]] == ["s1", "s3", "s2"]

    def test_full_dict_has_judges(self, scenario):
        data = compute_results(**scenario).to_dict()
        assert [j["judge_id"] for j in data["judges"]] == ["A", "B"]


class TestJudgeProgress:
    def test_progress(self, scenario):
        progress = compute_judge_progress(
            "A", scenario["criteria"], scenario["scores"], scenario["submissions"]
        )
        assert progress.expected_ratings == 6
        assert progress.completed_ratings == 4
        assert progress.completion_percentage == 4 / 6 * 100
        assert [(p.submission_id, p.criteria_scored, p.is_complete) for p in progress.submissions] == [
            ("s1", 2, True),
            ("s2", 0, False),
            ("s3", 2, True),
        ]

    def test_progress_without_submissions(self, scenario):
        progress = compute_judge_progress("A", scenario["criteria"], [], [])
        assert progress.expected_ratings == 0
        assert progress.completion_percentage == 0.0


class TestSubmissionBreakdown:
    def test_headline_matches_ranking_row(self, scenario):
        breakdown = compute_submission_breakdown(**scenario, submission_id="s3")
        row = compute_results(**scenario).get_result("s3")
        assert breakdown.total_score == row.total_score == 10
        assert breakdown.average_score == row.average_score
        assert breakdown.max_possible_score == row.max_possible_score
        assert breakdown.completion_percentage == row.completion_percentage == 50.0

    def test_by_judge(self, scenario):
        breakdown = compute_submission_breakdown(
            **scenario, submission_id="s1", judge_names={"A": "Zed", "B": "Ada"}
        )
        assert [(j.name, j.total_score, j.average_score) for j in breakdown.judges] == [
            ("Ada", 15, 7.5),
            ("Zed", 17, 8.5),
        ]
        assert [r.question for r in breakdown.judges[0].ratings] == ["Creativity", "Polish"]

    def test_by_criterion(self, scenario):
        breakdown = compute_submission_breakdown(
            **scenario, submission_id="s1", judge_names={"A": "Zed", "B": "Ada"}
        )
        creativity, polish = breakdown.criteria
        assert creativity.average_score == 7.5
        assert polish.average_score == 8.5
        assert [(r.name, r.rating) for r in creativity.ratings] == [("Ada", 7), ("Zed", 8)]

    def test_unrated_submission(self, scenario):
        breakdown = compute_submission_breakdown(**scenario, submission_id="s2")
        assert breakdown.judges == []
        assert [c.ratings for c in breakdown.criteria] == [[], []]
        assert [c.average_score for c in breakdown.criteria] == [0.0, 0.0]
        assert breakdown.rating_count == 0

    def test_hidden_scores_left_out(self, scenario):
        scenario["scores"] = [
            replace(s, is_hidden=True) if s.judge_id == "B" else s for s in scenario["scores"]
        ]
        breakdown = compute_submission_breakdown(**scenario, submission_id="s1")
        assert [j.judge_id for j in breakdown.judges] == ["A"]
        assert breakdown.total_score == 17

    def test_weighted_judge_total(self, weighted):
        breakdown = compute_submission_breakdown(**weighted, submission_id="s1")
        (judge,) = breakdown.judges
        assert judge.total_score == 10.5
        assert judge.average_score == 5.25
        assert [c.average_score for c in breakdown.criteria] == [5.0, 1.0]

    def test_to_dict(self, scenario):
        data = compute_submission_breakdown(**scenario, submission_id="s3").to_dict()
        assert data["submission_id"] == "s3"
        assert data["judges"][0]["ratings"][0]["rating"] == 5
        assert data["criteria"][1]["ratings"] == [
            {"judge_id": "A", "name": "A", "rating": 5, "comment": None},
        ]
