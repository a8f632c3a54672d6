"""Score store: one rating per (judge, submission, criterion)."""

import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable

from judging.errors import NotFoundError, RatingRangeError
from judging.models import Score
from judging.store.base import JudgingStore, ScoreKey

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def check_rating(rating, scale_max: int) -> int:
    """Return ``rating`` as an int if it is a whole number in [1, scale_max].

    Raises:
        RatingRangeError: If the rating is not a whole number or out of range
    """
    if isinstance(rating, bool) or not isinstance(rating, (int, float)):
        raise RatingRangeError(rating, scale_max)
    if isinstance(rating, float) and not rating.is_integer():
        raise RatingRangeError(rating, scale_max)
    if not 1 <= rating <= scale_max:
        raise RatingRangeError(rating, scale_max)
    return int(rating)


def clean_comment(comment: str | None) -> str | None:
    if comment is None:
        return None
    return comment.strip() or None


class ScoreStore:
    """The single write path for ratings.

    There is no create/update distinction: ``upsert`` overwrites whatever is
    stored for the key, so a judge (or a retrying client) may resubmit freely.
    """

    def __init__(self, store: JudgingStore, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.clock = clock

    def upsert(
        self,
        judge_id: str,
        submission_id: str,
        criterion_id: str,
        rating: int,
        comment: str | None = None,
    ) -> Score:
        """Record a rating, replacing any earlier rating for the same key.

        The rating is checked against the scale of the criterion's group.
        An overwrite keeps the original creation time and un-hides the score.

        Raises:
            NotFoundError: If the criterion or its group does not exist
            RatingRangeError: If the rating is outside the group's scale
        """
        criterion = self.store.get_criterion(criterion_id)
        if criterion is None:
            raise NotFoundError(f"Criterion {criterion_id} not found")
        group = self.store.get_group(criterion.group_id)
        if group is None:
            raise NotFoundError(f"Judging group {criterion.group_id} not found")

        value = check_rating(rating, group.scale_max)
        now = self.clock()
        stored = self.store.upsert_score(Score(
            judge_id=judge_id,
            submission_id=submission_id,
            criterion_id=criterion_id,
            group_id=group.id,
            rating=value,
            comment=clean_comment(comment),
            created_at=now,
            updated_at=now,
        ))
        logger.debug(
            "Judge %s rated submission %s on criterion %s: %d",
            judge_id, submission_id, criterion_id, value,
        )
        return stored

    def update(self, key: ScoreKey, rating: int, comment: str | None = None) -> Score:
        """Correct an existing rating in place.

        Unlike ``upsert`` this never creates a row, and a hidden score stays
        hidden. ``comment`` replaces the stored comment; ``None`` clears it.

        Raises:
            NotFoundError: If no score is stored under ``key``
            RatingRangeError: If the rating is outside the group's scale
        """
        existing = self.store.get_score(key)
        if existing is None:
            raise NotFoundError(f"Score {key} not found")
        group = self.store.get_group(existing.group_id)
        if group is None:
            raise NotFoundError(f"Judging group {existing.group_id} not found")

        value = check_rating(rating, group.scale_max)
        stored = self.store.upsert_score(replace(
            existing, rating=value, comment=clean_comment(comment), updated_at=self.clock(),
        ))
        logger.info("Score %s corrected to %d", key, value)
        return stored

    def list_for_group(self, group_id: str) -> list[Score]:
        """All score rows of a group, hidden ones included."""
        return self.store.list_scores(group_id)

    def list_for_judge(
        self, group_id: str, judge_id: str, submission_id: str | None = None
    ) -> list[Score]:
        scores = self.store.list_judge_scores(group_id, judge_id)
        if submission_id is not None:
            scores = [s for s in scores if s.submission_id == submission_id]
        return scores

    def set_hidden(self, key: ScoreKey, hidden: bool) -> None:
        if not self.store.set_score_hidden(key, hidden):
            raise NotFoundError(f"Score {key} not found")
        logger.info("Score %s %s", key, "hidden" if hidden else "restored")

    def delete(self, key: ScoreKey) -> None:
        if not self.store.delete_score(key):
            raise NotFoundError(f"Score {key} not found")
        logger.info("Deleted score %s", key)
