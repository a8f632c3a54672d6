"""Aggregation engine: turns raw ratings into ranked results.

Everything here is a pure function of (group settings, current criteria,
score rows, submission set). Nothing is cached or persisted, and every
loop runs over sorted keys, so aggregating unchanged data twice gives
identical output.

Only *counted* scores take part: a score counts when its criterion is in
the current criteria set, its submission is in the submission set, and it
has not been hidden by an admin. Other rows (e.g. ratings against a
criterion that has since been deleted) are ignored, not removed.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Mapping

from judging.models import (
    Criterion,
    CriterionRating,
    CriterionResult,
    GroupStats,
    JudgeProgress,
    JudgeRating,
    JudgeSubmissionScores,
    JudgeSummary,
    JudgingGroup,
    Placement,
    ResultsSnapshot,
    Score,
    Submission,
    SubmissionBreakdown,
    SubmissionCriterionScores,
    SubmissionJudgeScores,
    SubmissionProgress,
    SubmissionResult,
)

logger = logging.getLogger(__name__)


@dataclass
class _Tally:
    """Per-submission running figures before ranking."""
    total: float
    average: float
    rating_count: int
    judge_count: int
    max_possible: float
    completion: float


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def counted_scores(
    scores: Iterable[Score],
    criteria: Mapping[str, Criterion],
    submission_ids: set[str],
) -> list[Score]:
    """Filter score rows down to the ones that count, in a canonical order.

    Order: submission id, judge id, criterion order, criterion id.
    """
    counted = [
        s for s in scores
        if not s.is_hidden
        and s.criterion_id in criteria
        and s.submission_id in submission_ids
    ]
    counted.sort(key=lambda s: (
        s.submission_id, s.judge_id, criteria[s.criterion_id].order, s.criterion_id,
    ))
    return counted


def tally_submission(
    group: JudgingGroup,
    scores: list[Score],
    criteria: Mapping[str, Criterion],
    judge_pool: int,
) -> _Tally:
    """Compute one submission's totals from its counted scores.

    ``max_possible`` uses the number of judges who rated *this* submission,
    not the whole judge pool, so a submission seen by fewer judges so far is
    not made to look weak. Completion is measured against ``judge_pool``,
    the judges active anywhere in the group.
    """
    criteria_count = len(criteria)
    if group.weighted:
        total = sum(s.rating * criteria[s.criterion_id].weight for s in scores)
        criteria_weight = sum(c.weight for c in sorted(criteria.values(), key=lambda c: c.order))
    else:
        total = sum(s.rating for s in scores)
        criteria_weight = criteria_count

    rating_count = len(scores)
    judge_count = len({s.judge_id for s in scores})
    expected = criteria_count * judge_pool

    completion = 0.0
    if expected > 0:
        completion = min(100.0, max(0.0, rating_count / expected * 100))

    return _Tally(
        total=total,
        average=total / rating_count if rating_count else 0.0,
        rating_count=rating_count,
        judge_count=judge_count,
        max_possible=group.scale_max * criteria_weight * judge_count,
        completion=completion,
    )


def rank_submissions(tallies: Mapping[str, _Tally]) -> list[Placement]:
    """Order submissions by total, then average (both descending), then id.

    Submissions level on both total and average share a rank and are
    flagged tied; among themselves they are listed by ascending id.
    """
    ordered_ids = sorted(
        tallies, key=lambda sid: (-tallies[sid].total, -tallies[sid].average, sid)
    )

    ordered: list[str | list[str]] = []
    previous_key = None
    for submission_id in ordered_ids:
        key = (tallies[submission_id].total, tallies[submission_id].average)
        if key == previous_key:
            last = ordered[-1]
            if isinstance(last, list):
                last.append(submission_id)
            else:
                ordered[-1] = [last, submission_id]
        else:
            ordered.append(submission_id)
        previous_key = key

    return Placement.build_ranking(ordered)


def _criteria_breakdown(
    criteria: list[Criterion], counted: list[Score]
) -> list[CriterionResult]:
    ratings: dict[str, list[int]] = {c.id: [] for c in criteria}
    for score in counted:
        ratings[score.criterion_id].append(score.rating)
    return [
        CriterionResult(
            criterion_id=c.id,
            question=c.question,
            order=c.order,
            average_score=_mean(ratings[c.id]),
            rating_count=len(ratings[c.id]),
        )
        for c in criteria
    ]


def _judge_summaries(
    counted: list[Score],
    criteria: Mapping[str, Criterion],
    submissions: Mapping[str, Submission],
    submission_order: list[str],
    judge_names: Mapping[str, str],
) -> list[JudgeSummary]:
    by_judge: dict[str, dict[str, list[Score]]] = {}
    for score in counted:
        by_judge.setdefault(score.judge_id, {}).setdefault(score.submission_id, []).append(score)

    position = {sid: i for i, sid in enumerate(submission_order)}
    summaries = []
    for judge_id, per_submission in by_judge.items():
        ratings = [s.rating for scores in per_submission.values() for s in scores]
        summaries.append(JudgeSummary(
            judge_id=judge_id,
            name=judge_names.get(judge_id, judge_id),
            total_ratings=len(ratings),
            average_rating=_mean(ratings),
            submissions=[
                JudgeSubmissionScores(
                    submission=submissions[submission_id],
                    ratings=[
                        CriterionRating(
                            criterion_id=s.criterion_id,
                            question=criteria[s.criterion_id].question,
                            rating=s.rating,
                            comment=s.comment,
                            scored_at=s.updated_at or s.created_at,
                        )
                        for s in per_submission[submission_id]
                    ],
                )
                for submission_id in sorted(per_submission, key=lambda sid: (position[sid], sid))
            ],
        ))

    summaries.sort(key=lambda j: (j.name.casefold(), j.judge_id))
    return summaries


def compute_results(
    group: JudgingGroup,
    criteria: Iterable[Criterion],
    scores: Iterable[Score],
    submissions: Iterable[Submission],
    judge_names: Mapping[str, str] | None = None,
) -> ResultsSnapshot:
    """Build a group's results snapshot.

    Args:
        group: The judging group (scale and weighting settings)
        criteria: The group's current criteria
        scores: All score rows stored for the group
        submissions: Submissions under judgment
        judge_names: Optional judge id -> display name mapping

    Returns:
        ResultsSnapshot with ranking, criteria breakdown, judge summaries
        and overall statistics. A group without any counted rating has an
        empty ranking and zeroed statistics.
    """
    ordered_criteria = sorted(criteria, key=lambda c: (c.order, c.id))
    criteria_by_id = {c.id: c for c in ordered_criteria}
    submissions_by_id = {s.submission_id: s for s in submissions}
    counted = counted_scores(scores, criteria_by_id, set(submissions_by_id))

    per_submission: dict[str, list[Score]] = {sid: [] for sid in sorted(submissions_by_id)}
    for score in counted:
        per_submission[score.submission_id].append(score)

    judge_pool = len({s.judge_id for s in counted})
    tallies = {
        sid: tally_submission(group, sub_scores, criteria_by_id, judge_pool)
        for sid, sub_scores in per_submission.items()
    }

    rankings: list[SubmissionResult] = []
    if counted:
        for placement in rank_submissions(tallies):
            tally = tallies[placement.submission_id]
            rankings.append(SubmissionResult(
                submission=submissions_by_id[placement.submission_id],
                rank=placement.rank,
                tied=placement.tied,
                total_score=tally.total,
                average_score=tally.average,
                rating_count=tally.rating_count,
                judge_count=tally.judge_count,
                max_possible_score=tally.max_possible,
                completion_percentage=tally.completion,
            ))

    judges = _judge_summaries(
        counted,
        criteria_by_id,
        submissions_by_id,
        [r.submission.submission_id for r in rankings],
        judge_names or {},
    )

    stats = GroupStats(
        total_ratings=len(counted),
        submissions_judged=sum(1 for t in tallies.values() if t.rating_count > 0),
        average_score=_mean([s.rating for s in counted]),
        judge_count=judge_pool,
        completion_percentage=_mean([t.completion for t in tallies.values()]),
    )
    logger.debug(
        "Aggregated group %s: %d counted ratings over %d submissions",
        group.id, stats.total_ratings, len(tallies),
    )

    return ResultsSnapshot(
        group_id=group.id,
        group_name=group.name,
        scale_max=group.scale_max,
        criteria_count=len(ordered_criteria),
        submission_count=len(submissions_by_id),
        rankings=rankings,
        criteria=_criteria_breakdown(ordered_criteria, counted),
        judges=judges,
        stats=stats,
    )


def compute_judge_progress(
    judge_id: str,
    criteria: Iterable[Criterion],
    scores: Iterable[Score],
    submissions: Iterable[Submission],
) -> JudgeProgress:
    """How many of the expected ratings one judge has recorded."""
    criteria_by_id = {c.id: c for c in criteria}
    submission_list = sorted(submissions, key=lambda s: s.submission_id)
    own = [
        s for s in counted_scores(scores, criteria_by_id, {s.submission_id for s in submission_list})
        if s.judge_id == judge_id
    ]

    scored: dict[str, int] = {}
    for score in own:
        scored[score.submission_id] = scored.get(score.submission_id, 0) + 1

    return JudgeProgress(
        judge_id=judge_id,
        total_submissions=len(submission_list),
        total_criteria=len(criteria_by_id),
        completed_ratings=len(own),
        submissions=[
            SubmissionProgress(
                submission_id=s.submission_id,
                title=s.title,
                criteria_scored=scored.get(s.submission_id, 0),
                total_criteria=len(criteria_by_id),
            )
            for s in submission_list
        ],
    )


def compute_submission_breakdown(
    group: JudgingGroup,
    criteria: Iterable[Criterion],
    scores: Iterable[Score],
    submissions: Iterable[Submission],
    submission_id: str,
    judge_names: Mapping[str, str] | None = None,
) -> SubmissionBreakdown:
    """Every counted rating of one submission, grouped by judge and by criterion.

    ``scores`` are all of the group's score rows: the judge pool behind the
    completion figure is taken from the whole group, as in ``compute_results``.
    Judges are listed by display name; criteria, and each judge's ratings,
    in criterion order. A judge's total follows the group's weighting.
    """
    judge_names = judge_names or {}
    ordered_criteria = sorted(criteria, key=lambda c: (c.order, c.id))
    criteria_by_id = {c.id: c for c in ordered_criteria}
    submissions_by_id = {s.submission_id: s for s in submissions}
    counted = counted_scores(scores, criteria_by_id, set(submissions_by_id))

    judge_pool = len({s.judge_id for s in counted})
    own = [s for s in counted if s.submission_id == submission_id]
    tally = tally_submission(group, own, criteria_by_id, judge_pool)

    by_judge: dict[str, list[Score]] = {}
    for score in own:
        by_judge.setdefault(score.judge_id, []).append(score)

    judges = []
    for judge_id, judge_scores in by_judge.items():
        if group.weighted:
            total = sum(s.rating * criteria_by_id[s.criterion_id].weight for s in judge_scores)
        else:
            total = sum(s.rating for s in judge_scores)
        judges.append(SubmissionJudgeScores(
            judge_id=judge_id,
            name=judge_names.get(judge_id, judge_id),
            ratings=[
                CriterionRating(
                    criterion_id=s.criterion_id,
                    question=criteria_by_id[s.criterion_id].question,
                    rating=s.rating,
                    comment=s.comment,
                    scored_at=s.updated_at or s.created_at,
                )
                for s in judge_scores
            ],
            total_score=total,
            average_score=total / len(judge_scores),
        ))
    judges.sort(key=lambda j: (j.name.casefold(), j.judge_id))
    position = {j.judge_id: i for i, j in enumerate(judges)}

    by_criterion: dict[str, list[Score]] = {c.id: [] for c in ordered_criteria}
    for score in own:
        by_criterion[score.criterion_id].append(score)

    criteria_scores = []
    for criterion in ordered_criteria:
        rows = sorted(by_criterion[criterion.id], key=lambda s: position[s.judge_id])
        criteria_scores.append(SubmissionCriterionScores(
            criterion_id=criterion.id,
            question=criterion.question,
            order=criterion.order,
            ratings=[
                JudgeRating(
                    judge_id=s.judge_id,
                    name=judge_names.get(s.judge_id, s.judge_id),
                    rating=s.rating,
                    comment=s.comment,
                )
                for s in rows
            ],
            average_score=_mean([s.rating for s in rows]),
        ))

    return SubmissionBreakdown(
        submission=submissions_by_id[submission_id],
        total_score=tally.total,
        average_score=tally.average,
        rating_count=tally.rating_count,
        judge_count=tally.judge_count,
        max_possible_score=tally.max_possible,
        completion_percentage=tally.completion,
        judges=judges,
        criteria=criteria_scores,
    )
