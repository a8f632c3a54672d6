"""In-process store backed by dictionaries."""

import logging
import threading
from dataclasses import replace

from judging.errors import ValidationError
from judging.models import Criterion, Judge, JudgingGroup, Score
from judging.store.base import JudgingStore, ScoreKey

logger = logging.getLogger(__name__)


class MemoryStore(JudgingStore):
    """Dictionary-backed store.

    A single lock guards every read and write, so each write is
    all-or-nothing and no read ever iterates a dict another thread is
    resizing. Rows are copied on the way in and out.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._groups: dict[str, JudgingGroup] = {}
        self._criteria: dict[str, Criterion] = {}
        self._judges: dict[str, Judge] = {}
        self._scores: dict[ScoreKey, Score] = {}

    # Groups

    def get_group(self, group_id: str) -> JudgingGroup | None:
        with self._lock:
            group = self._groups.get(group_id)
            return replace(group) if group else None

    def get_group_by_slug(self, slug: str) -> JudgingGroup | None:
        with self._lock:
            for group in self._groups.values():
                if group.slug == slug:
                    return replace(group)
        return None

    def list_groups(self) -> list[JudgingGroup]:
        # dicts keep insertion order, which is creation order here
        with self._lock:
            return [replace(g) for g in self._groups.values()]

    def save_group(self, group: JudgingGroup) -> None:
        with self._lock:
            for other in self._groups.values():
                if other.slug == group.slug and other.id != group.id:
                    raise ValidationError(f"Slug {group.slug!r} is already in use")
            self._groups[group.id] = replace(group)

    def delete_group(self, group_id: str) -> None:
        with self._lock:
            self._scores = {k: s for k, s in self._scores.items() if s.group_id != group_id}
            self._judges = {k: j for k, j in self._judges.items() if j.group_id != group_id}
            self._criteria = {k: c for k, c in self._criteria.items() if c.group_id != group_id}
            self._groups.pop(group_id, None)
        logger.debug("Deleted group %s and its dependent rows", group_id)

    # Criteria

    def list_criteria(self, group_id: str) -> list[Criterion]:
        with self._lock:
            criteria = [replace(c) for c in self._criteria.values() if c.group_id == group_id]
        return sorted(criteria, key=lambda c: (c.order, c.id))

    def replace_criteria(self, group_id: str, criteria: list[Criterion]) -> None:
        keep = {c.id for c in criteria}
        with self._lock:
            for criterion_id, existing in list(self._criteria.items()):
                if existing.group_id == group_id and criterion_id not in keep:
                    del self._criteria[criterion_id]
            for criterion in criteria:
                self._criteria[criterion.id] = replace(criterion, group_id=group_id)

    def get_criterion(self, criterion_id: str) -> Criterion | None:
        with self._lock:
            criterion = self._criteria.get(criterion_id)
            return replace(criterion) if criterion else None

    # Judges

    def get_judge(self, judge_id: str) -> Judge | None:
        with self._lock:
            judge = self._judges.get(judge_id)
            return replace(judge) if judge else None

    def get_judge_by_session(self, session_token: str) -> Judge | None:
        with self._lock:
            for judge in self._judges.values():
                if judge.session_token == session_token:
                    return replace(judge)
        return None

    def list_judges(self, group_id: str) -> list[Judge]:
        with self._lock:
            return [replace(j) for j in self._judges.values() if j.group_id == group_id]

    def save_judge(self, judge: Judge) -> None:
        with self._lock:
            self._judges[judge.id] = replace(judge)

    def delete_judge(self, judge_id: str) -> None:
        with self._lock:
            self._scores = {k: s for k, s in self._scores.items() if s.judge_id != judge_id}
            self._judges.pop(judge_id, None)

    # Scores

    def get_score(self, key: ScoreKey) -> Score | None:
        with self._lock:
            score = self._scores.get(key)
            return replace(score) if score else None

    def list_scores(self, group_id: str) -> list[Score]:
        with self._lock:
            return [replace(s) for s in self._scores.values() if s.group_id == group_id]

    def upsert_score(self, score: Score) -> Score:
        with self._lock:
            existing = self._scores.get(score.key)
            stored = replace(score)
            if existing is not None:
                stored.created_at = existing.created_at
            self._scores[score.key] = stored
            return replace(stored)

    def set_score_hidden(self, key: ScoreKey, hidden: bool) -> bool:
        with self._lock:
            score = self._scores.get(key)
            if score is None:
                return False
            score.is_hidden = hidden
        return True

    def delete_score(self, key: ScoreKey) -> bool:
        with self._lock:
            return self._scores.pop(key, None) is not None
