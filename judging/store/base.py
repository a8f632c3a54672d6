"""Abstract base class for judging persistence backends."""

from abc import ABC, abstractmethod

from judging.models import Criterion, Judge, JudgingGroup, Score

ScoreKey = tuple[str, str, str]  # (judge_id, submission_id, criterion_id)


class JudgingStore(ABC):
    """Abstract store for groups, criteria, judges and scores.

    Every write method is a single atomic operation: either all of its
    effects are visible afterwards or none are. Read methods return copies,
    so callers may mutate what they get back without touching stored state.
    Backends raise ``StoreUnavailableError`` when the underlying storage
    cannot be reached.
    """

    # Groups

    @abstractmethod
    def get_group(self, group_id: str) -> JudgingGroup | None:
        pass

    @abstractmethod
    def get_group_by_slug(self, slug: str) -> JudgingGroup | None:
        pass

    @abstractmethod
    def list_groups(self) -> list[JudgingGroup]:
        """Return all groups, oldest first."""
        pass

    @abstractmethod
    def save_group(self, group: JudgingGroup) -> None:
        """Insert or replace a group by id.

        Raises ``ValidationError`` when another group already uses the slug.
        """
        pass

    @abstractmethod
    def delete_group(self, group_id: str) -> None:
        """Delete a group after removing its scores, judges and criteria."""
        pass

    # Criteria

    @abstractmethod
    def list_criteria(self, group_id: str) -> list[Criterion]:
        """Return a group's criteria in ascending order."""
        pass

    @abstractmethod
    def replace_criteria(self, group_id: str, criteria: list[Criterion]) -> None:
        """Make ``criteria`` the group's complete criteria set.

        Criteria whose id already exists are updated in place, the rest are
        inserted, and existing criteria absent from the list are deleted.
        """
        pass

    @abstractmethod
    def get_criterion(self, criterion_id: str) -> Criterion | None:
        pass

    # Judges

    @abstractmethod
    def get_judge(self, judge_id: str) -> Judge | None:
        pass

    @abstractmethod
    def get_judge_by_session(self, session_token: str) -> Judge | None:
        pass

    @abstractmethod
    def list_judges(self, group_id: str) -> list[Judge]:
        pass

    @abstractmethod
    def save_judge(self, judge: Judge) -> None:
        """Insert or replace a judge by id."""
        pass

    @abstractmethod
    def delete_judge(self, judge_id: str) -> None:
        """Delete a judge together with all of their scores."""
        pass

    # Scores

    @abstractmethod
    def get_score(self, key: ScoreKey) -> Score | None:
        pass

    @abstractmethod
    def list_scores(self, group_id: str) -> list[Score]:
        pass

    @abstractmethod
    def upsert_score(self, score: Score) -> Score:
        """Write a score, overwriting any score with the same key.

        An overwrite keeps the original ``created_at``. Returns the stored row.
        """
        pass

    @abstractmethod
    def set_score_hidden(self, key: ScoreKey, hidden: bool) -> bool:
        """Flag a score hidden or visible. Returns False if it does not exist."""
        pass

    @abstractmethod
    def delete_score(self, key: ScoreKey) -> bool:
        """Delete a score. Returns False if it does not exist."""
        pass

    def list_judge_scores(self, group_id: str, judge_id: str) -> list[Score]:
        """Return one judge's scores in a group."""
        return [s for s in self.list_scores(group_id) if s.judge_id == judge_id]

    def close(self) -> None:
        """Release any resources held by the store."""
        pass
