"""Criteria store: ordered rating questions per judging group."""

import logging
from typing import Any, Iterable, Mapping

from judging.errors import NotFoundError, ValidationError
from judging.models import Criterion, CriterionDraft, new_id
from judging.store.base import JudgingStore

logger = logging.getLogger(__name__)

MIN_WEIGHT = 0.1
MAX_WEIGHT = 10.0


def as_draft(item: CriterionDraft | Mapping[str, Any]) -> CriterionDraft:
    """Accept either a CriterionDraft or a plain mapping with the same fields."""
    if isinstance(item, CriterionDraft):
        return item
    if not isinstance(item, Mapping):
        raise ValidationError(f"Criteria must be given as mappings, got {type(item).__name__}")
    return CriterionDraft(
        question=item.get("question", ""),
        description=item.get("description"),
        weight=item.get("weight"),
        id=item.get("id"),
    )


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_criteria(drafts: list[CriterionDraft], existing_ids: set[str]) -> list[str]:
    """Check a proposed criteria set as a whole.

    Returns a list of violated rules, empty when the set is valid.
    """
    violations = []
    seen_questions: dict[str, int] = {}
    seen_ids: set[str] = set()

    for position, draft in enumerate(drafts, start=1):
        if draft.question is not None and not isinstance(draft.question, str):
            violations.append(f"Criterion {position} question must be text")
        elif not (draft.question or "").strip():
            violations.append(f"Criterion {position} has an empty question")
        else:
            question = draft.question.strip()
            folded = question.casefold()
            if folded in seen_questions:
                violations.append(
                    f"Criterion {position} duplicates the question of criterion "
                    f"{seen_questions[folded]}: {question!r}"
                )
            else:
                seen_questions[folded] = position

        if draft.description is not None and not isinstance(draft.description, str):
            violations.append(f"Criterion {position} description must be text")

        if draft.weight is not None:
            if not _is_number(draft.weight):
                violations.append(f"Criterion {position} weight must be a number")
            elif not MIN_WEIGHT <= draft.weight <= MAX_WEIGHT:
                violations.append(
                    f"Criterion {position} weight must be between {MIN_WEIGHT:g} and {MAX_WEIGHT:g}"
                )

        if draft.id is not None:
            if not isinstance(draft.id, str) or draft.id not in existing_ids:
                violations.append(f"Criterion {position} refers to unknown criterion {draft.id}")
            elif draft.id in seen_ids:
                violations.append(f"Criterion {position} repeats criterion {draft.id}")
            else:
                seen_ids.add(draft.id)

    return violations


class CriteriaStore:
    """Reads and whole-set writes of a group's criteria.

    Criteria are never added, edited, reordered or removed one at a time:
    callers accumulate their edits and submit the full proposed list to
    ``replace_all``, which validates it as a whole and applies it in one
    atomic store write.
    """

    def __init__(self, store: JudgingStore):
        self.store = store

    def _require_group(self, group_id: str) -> None:
        if self.store.get_group(group_id) is None:
            raise NotFoundError(f"Judging group {group_id} not found")

    def list_by_group(self, group_id: str) -> list[Criterion]:
        self._require_group(group_id)
        return self.store.list_criteria(group_id)

    def replace_all(
        self, group_id: str, items: Iterable[CriterionDraft | dict[str, Any]]
    ) -> list[Criterion]:
        """Replace a group's criteria with ``items``.

        Order is each item's index in ``items``. Items carrying an id update
        that criterion in place, items without one are inserted, and current
        criteria missing from ``items`` are deleted. Scores recorded against
        deleted criteria stay in the store but no longer count.

        Raises:
            NotFoundError: If the group does not exist
            ValidationError: If any rule is broken; nothing is written
        """
        self._require_group(group_id)
        drafts = [as_draft(item) for item in items]
        existing = {c.id: c for c in self.store.list_criteria(group_id)}

        violations = validate_criteria(drafts, set(existing))
        if violations:
            raise ValidationError(violations)

        criteria = [
            Criterion(
                id=draft.id or new_id(),
                group_id=group_id,
                question=draft.question.strip(),
                description=(draft.description or "").strip() or None,
                weight=float(draft.weight) if draft.weight is not None else 1.0,
                order=position,
            )
            for position, draft in enumerate(drafts)
        ]
        self.store.replace_criteria(group_id, criteria)

        kept = {c.id for c in criteria}
        logger.info(
            "Saved %d criteria for group %s (%d inserted, %d removed)",
            len(criteria), group_id,
            sum(1 for d in drafts if d.id is None),
            sum(1 for criterion_id in existing if criterion_id not in kept),
        )
        return criteria
