"""Shared test helpers."""

from datetime import datetime, timezone

from judging.directory import StaticAdminAuth, StaticSubmissionDirectory
from judging.models import (
    Criterion,
    JudgingGroup,
    Score,
    Submission,
    Visibility,
)
from judging.service import JudgingService
from judging.store import MemoryStore

ADMIN = "admin-1"
NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_group(group_id: str = "g1", **kwargs) -> JudgingGroup:
    values = {
        "id": group_id,
        "name": "Spring Jam",
        "slug": "spring-jam",
        "scale_max": 10,
        "results_visibility": Visibility.PUBLIC,
    }
    values.update(kwargs)
    return JudgingGroup(**values)


def make_criteria(group_id: str, questions: list[str], weights: list[float] | None = None) -> list[Criterion]:
    weights = weights or [1.0] * len(questions)
    return [
        Criterion(id=f"c{i + 1}", group_id=group_id, question=q, order=i, weight=w)
        for i, (q, w) in enumerate(zip(questions, weights))
    ]


def make_submissions(*ids: str) -> list[Submission]:
    return [Submission(submission_id=sid, title=f"Entry {sid}", slug=sid, url=f"https://x.test/{sid}") for sid in ids]


def make_scores(group_id: str, table: dict[str, dict[str, list[int]]]) -> list[Score]:
    """Build Score rows from a compact table.

    Args:
        group_id: Group the scores belong to
        table: {judge_id: {submission_id: [rating for c1, rating for c2, ...]}}

    Returns:
        Score rows with criterion ids c1, c2, ... in list order.
    """
    scores = []
    for judge_id, per_submission in table.items():
        for submission_id, ratings in per_submission.items():
            for i, rating in enumerate(ratings):
                scores.append(Score(
                    judge_id=judge_id,
                    submission_id=submission_id,
                    criterion_id=f"c{i + 1}",
                    group_id=group_id,
                    rating=rating,
                    created_at=NOW,
                    updated_at=NOW,
                ))
    return scores


def ranking_ids(snapshot) -> list[str]:
    """Extract submission ids from a snapshot's ranking."""
    return [r.submission.submission_id for r in snapshot.rankings]


def make_service(store=None, submissions: dict[str, list[Submission]] | None = None, clock=None):
    """Build a JudgingService over a MemoryStore with ADMIN as the only admin."""
    store = store or MemoryStore()
    directory = StaticSubmissionDirectory(submissions or {})
    return JudgingService(
        store,
        directory,
        StaticAdminAuth([ADMIN]),
        clock=clock or (lambda: NOW),
    )
