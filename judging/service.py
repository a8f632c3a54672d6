"""Service layer: the operations exposed to admin, judge and public callers.

Every operation re-reads the store, so results are always derived from
the current criteria and scores.
"""

import logging
import re
import secrets
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Iterator, TextIO

from judging.access import AccessDecision, AccessGate, hash_password
from judging.aggregate import compute_judge_progress, compute_results, compute_submission_breakdown
from judging.config import Settings
from judging.criteria import CriteriaStore
from judging.directory import (
    AdminAuth,
    HttpSubmissionDirectory,
    IdentityLookup,
    StaticAdminAuth,
    StaticSubmissionDirectory,
    StoreIdentityLookup,
    SubmissionDirectory,
)
from judging.errors import AccessDeniedError, GroupClosedError, NotFoundError, ValidationError
from judging.export import ExportRow, to_rows, write_csv
from judging.models import (
    SUPPORTED_SCALES,
    Criterion,
    CriterionDraft,
    Judge,
    JudgeProgress,
    JudgeSummary,
    JudgingGroup,
    Resource,
    ResultsSnapshot,
    Score,
    Submission,
    SubmissionBreakdown,
    Visibility,
    new_id,
)
from judging.scores import ScoreStore, utcnow
from judging.store import JudgingStore, MemoryStore, ScoreKey, SqliteStore

logger = logging.getLogger(__name__)

LAYOUTS = ("two-column", "one-third")
MIN_JUDGE_NAME_LENGTH = 2

_PASSWORD_FIELDS = {
    "judge_password": "judge_password_hash",
    "submission_page_password": "submission_page_password_hash",
    "results_password": "results_password_hash",
}
_VISIBILITY_FIELDS = {
    "judges_public": "judge_visibility",
    "results_public": "results_visibility",
}
_PLAIN_FIELDS = {
    "name", "description", "scale_max", "weighted", "is_active", "start_date", "end_date",
    "has_custom_submission_page", "submission_page_image_id", "submission_page_layout",
    "submission_page_required_tag_id",
}


def generate_slug(name: str) -> str:
    """Lowercase, hyphen-separated slug made of ``[a-z0-9-]`` only."""
    slug = name.lower()
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"[^a-z0-9-]", "", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def _aware(value: datetime | None) -> datetime | None:
    """Treat naive datetimes as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _hash_or_clear(password: str | None) -> str | None:
    return hash_password(password) if password else None


def _visibility(public: bool) -> Visibility:
    return Visibility.PUBLIC if public else Visibility.PASSWORD_PROTECTED


def validate_group(group: JudgingGroup) -> None:
    violations = []
    if not group.name.strip():
        violations.append("Group name must not be empty")
    if group.scale_max not in SUPPORTED_SCALES:
        violations.append(
            f"Rating scale must be one of {', '.join(str(s) for s in SUPPORTED_SCALES)}"
        )
    if group.start_date and group.end_date and group.start_date > group.end_date:
        violations.append("Judging start date must not be after its end date")
    if group.submission_page_layout not in LAYOUTS:
        violations.append(f"Submission page layout must be one of {', '.join(LAYOUTS)}")
    if violations:
        raise ValidationError(violations)


class JudgingService:
    """Entry point for everything callers may do with judging groups.

    Args:
        store: Persistence backend
        directory: Source of the submissions under judgment
        auth: Admin role check, used by the access gate
        identity: Display names for judges; defaults to judge records in the store
        clock: Current time, used for judging windows and timestamps
    """

    def __init__(
        self,
        store: JudgingStore,
        directory: SubmissionDirectory,
        auth: AdminAuth,
        identity: IdentityLookup | None = None,
        clock: Callable[[], datetime] = utcnow,
        default_scale_max: int = 10,
        default_weighted: bool = False,
    ):
        self.store = store
        self.directory = directory
        self.gate = AccessGate(auth)
        self.identity = identity or StoreIdentityLookup(store)
        self.clock = clock
        self.criteria = CriteriaStore(store)
        self.scores = ScoreStore(store, clock=clock)
        self.default_scale_max = default_scale_max
        self.default_weighted = default_weighted

    # Helpers

    def _require_admin(self, caller_id: str | None) -> None:
        if not self.gate.is_admin(caller_id):
            logger.warning("Caller %s attempted an admin-only operation", caller_id)
            raise AccessDeniedError("Admin access required", reason="AdminRequired")

    def get_group(self, group_id: str) -> JudgingGroup:
        group = self.store.get_group(group_id)
        if group is None:
            raise NotFoundError(f"Judging group {group_id} not found")
        return group

    def get_group_by_slug(self, slug: str) -> JudgingGroup:
        group = self.store.get_group_by_slug(slug)
        if group is None:
            raise NotFoundError(f"Judging group {slug!r} not found")
        return group

    def _check_open(self, group: JudgingGroup) -> None:
        """Raise GroupClosedError unless the group is accepting scores now."""
        if not group.is_active:
            raise GroupClosedError("Judging group is not active", reason="inactive")
        now = self.clock()
        if group.start_date and now < group.start_date:
            raise GroupClosedError("Judging has not started yet", reason="not_started")
        if group.end_date and now > group.end_date:
            raise GroupClosedError("Judging period has ended", reason="ended")

    def _get_judge(self, group_id: str, judge_id: str) -> Judge:
        judge = self.store.get_judge(judge_id)
        if judge is None or judge.group_id != group_id:
            raise NotFoundError(f"Judge {judge_id} not found in group {group_id}")
        return judge

    def _get_score(self, group_id: str, key: ScoreKey) -> Score:
        self.get_group(group_id)
        score = self.store.get_score(key)
        if score is None or score.group_id != group_id:
            raise NotFoundError(f"Score {key} not found in group {group_id}")
        return score

    def _get_submission(self, group_id: str, submission_id: str) -> Submission:
        for submission in self.directory.list_submissions(group_id):
            if submission.submission_id == submission_id:
                return submission
        raise NotFoundError(f"Submission {submission_id} is not part of group {group_id}")

    def _unique_slug(self, name: str) -> str:
        base = generate_slug(name) or "group"
        slug, suffix = base, 2
        while self.store.get_group_by_slug(slug) is not None:
            slug = f"{base}-{suffix}"
            suffix += 1
        return slug

    def _snapshot(self, group: JudgingGroup) -> ResultsSnapshot:
        criteria = self.store.list_criteria(group.id)
        scores = self.store.list_scores(group.id)
        submissions = self.directory.list_submissions(group.id)
        judge_names = {
            judge_id: self.identity.get_display_name(judge_id)
            for judge_id in sorted({s.judge_id for s in scores})
        }
        return compute_results(group, criteria, scores, submissions, judge_names)

    # Access

    def authorize(
        self,
        group_id: str,
        resource: Resource,
        password: str | None = None,
        caller_id: str | None = None,
    ) -> AccessDecision:
        return self.gate.authorize(self.get_group(group_id), resource, password, caller_id)

    # Group lifecycle (admin)

    def create_group(
        self,
        name: str,
        *,
        caller_id: str,
        description: str | None = None,
        scale_max: int | None = None,
        weighted: bool | None = None,
        judges_public: bool = True,
        judge_password: str | None = None,
        submission_page_password: str | None = None,
        results_public: bool = False,
        results_password: str | None = None,
        is_active: bool = True,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        has_custom_submission_page: bool = False,
        submission_page_image_id: str | None = None,
        submission_page_layout: str = "two-column",
        submission_page_required_tag_id: str | None = None,
    ) -> JudgingGroup:
        self._require_admin(caller_id)
        group = JudgingGroup(
            id=new_id(),
            name=name.strip(),
            slug=self._unique_slug(name),
            description=description,
            scale_max=scale_max if scale_max is not None else self.default_scale_max,
            weighted=weighted if weighted is not None else self.default_weighted,
            judge_visibility=_visibility(judges_public),
            judge_password_hash=_hash_or_clear(judge_password),
            submission_page_password_hash=_hash_or_clear(submission_page_password),
            results_visibility=_visibility(results_public),
            results_password_hash=_hash_or_clear(results_password),
            is_active=is_active,
            start_date=_aware(start_date),
            end_date=_aware(end_date),
            has_custom_submission_page=has_custom_submission_page,
            submission_page_image_id=submission_page_image_id,
            submission_page_layout=submission_page_layout,
            submission_page_required_tag_id=submission_page_required_tag_id,
            created_at=self.clock(),
        )
        validate_group(group)
        self.store.save_group(group)
        logger.info("Created judging group %s (%s)", group.slug, group.id)
        return group

    def update_group(self, group_id: str, *, caller_id: str, **changes: Any) -> JudgingGroup:
        """Apply admin changes to a group.

        Passwords are given in plain text and stored hashed; an empty string
        clears a password. ``judges_public`` / ``results_public`` set the
        tiers. The slug cannot change, and neither can the rating scale
        once any score exists.
        """
        self._require_admin(caller_id)
        group = self.get_group(group_id)

        unknown = sorted(set(changes) - _PLAIN_FIELDS - set(_PASSWORD_FIELDS) - set(_VISIBILITY_FIELDS))
        if unknown:
            raise ValidationError([f"Field {key!r} cannot be updated" for key in unknown])

        if "scale_max" in changes and changes["scale_max"] != group.scale_max:
            if self.store.list_scores(group_id):
                raise ValidationError("Rating scale cannot change once scores exist")

        for key, value in changes.items():
            if key in _PASSWORD_FIELDS:
                setattr(group, _PASSWORD_FIELDS[key], _hash_or_clear(value))
            elif key in _VISIBILITY_FIELDS:
                setattr(group, _VISIBILITY_FIELDS[key], _visibility(bool(value)))
            elif key in ("start_date", "end_date"):
                setattr(group, key, _aware(value))
            else:
                setattr(group, key, value)

        validate_group(group)
        self.store.save_group(group)
        logger.info("Updated judging group %s: %s", group.slug, ", ".join(sorted(changes)))
        return group

    def delete_group(self, group_id: str, *, caller_id: str) -> None:
        """Delete a group with its criteria, judges and scores."""
        self._require_admin(caller_id)
        group = self.get_group(group_id)
        self.store.delete_group(group.id)
        logger.info("Deleted judging group %s (%s)", group.slug, group.id)

    def list_groups(self, *, caller_id: str) -> list[JudgingGroup]:
        self._require_admin(caller_id)
        return self.store.list_groups()

    # Criteria

    def save_criteria(
        self,
        group_id: str,
        items: Iterable[CriterionDraft | dict[str, Any]],
        *,
        caller_id: str,
    ) -> list[Criterion]:
        """Replace a group's whole criteria set (admin only)."""
        self._require_admin(caller_id)
        return self.criteria.replace_all(group_id, items)

    def list_criteria(
        self,
        group_id: str,
        password: str | None = None,
        caller_id: str | None = None,
    ) -> list[Criterion]:
        """Criteria as shown in the judge interface."""
        group = self.get_group(group_id)
        self.gate.require(group, Resource.JUDGE_INTERFACE, password, caller_id)
        return self.criteria.list_by_group(group_id)

    # Judges

    def register_judge(
        self,
        group_id: str,
        name: str,
        email: str | None = None,
        password: str | None = None,
    ) -> Judge:
        """Register a judge, or return the judge already registered under ``name``."""
        group = self.get_group(group_id)
        self.gate.require(group, Resource.JUDGE_INTERFACE, password)
        self._check_open(group)

        trimmed = name.strip()
        if len(trimmed) < MIN_JUDGE_NAME_LENGTH:
            raise ValidationError(
                f"Name must be at least {MIN_JUDGE_NAME_LENGTH} characters long"
            )

        for judge in self.store.list_judges(group_id):
            if judge.name == trimmed:
                return judge

        now = self.clock()
        judge = Judge(
            id=new_id(),
            group_id=group_id,
            name=trimmed,
            email=(email or "").strip() or None,
            session_token=secrets.token_urlsafe(16),
            created_at=now,
            last_active_at=now,
        )
        self.store.save_judge(judge)
        logger.info("Registered judge %s in group %s", judge.id, group.slug)
        return judge

    def get_judge_by_session(self, session_token: str) -> Judge:
        judge = self.store.get_judge_by_session(session_token)
        if judge is None:
            raise NotFoundError("Invalid judge session")
        return judge

    def remove_judge(self, group_id: str, judge_id: str, *, caller_id: str) -> None:
        """Delete a judge and every score they gave (admin only)."""
        self._require_admin(caller_id)
        self._get_judge(group_id, judge_id)
        self.store.delete_judge(judge_id)
        logger.info("Removed judge %s from group %s", judge_id, group_id)

    def get_judge_progress(self, group_id: str, judge_id: str) -> JudgeProgress:
        self._get_judge(group_id, judge_id)
        return compute_judge_progress(
            judge_id,
            self.store.list_criteria(group_id),
            self.store.list_judge_scores(group_id, judge_id),
            self.directory.list_submissions(group_id),
        )

    def get_judge_scores(self, group_id: str, judge_id: str, submission_id: str) -> list[Score]:
        """A judge's own ratings of one submission, in criterion order."""
        self._get_judge(group_id, judge_id)
        order = {c.id: c.order for c in self.store.list_criteria(group_id)}
        scores = [
            s for s in self.scores.list_for_judge(group_id, judge_id, submission_id)
            if s.criterion_id in order
        ]
        return sorted(scores, key=lambda s: order[s.criterion_id])

    # Scoring

    def submit_score(
        self,
        group_id: str,
        judge_id: str,
        submission_id: str,
        criterion_id: str,
        rating: int,
        comment: str | None = None,
    ) -> Score:
        """Record (or overwrite) a judge's rating.

        Raises:
            NotFoundError: Unknown group, judge, criterion or submission
            GroupClosedError: Group inactive or outside its judging window
            RatingRangeError: Rating outside the group's scale
        """
        group = self.get_group(group_id)
        judge = self._get_judge(group_id, judge_id)
        self._check_open(group)

        criterion = self.store.get_criterion(criterion_id)
        if criterion is None or criterion.group_id != group_id:
            raise NotFoundError(f"Criterion {criterion_id} is not part of group {group_id}")
        self._get_submission(group_id, submission_id)

        score = self.scores.upsert(judge_id, submission_id, criterion_id, rating, comment)
        judge.last_active_at = self.clock()
        self.store.save_judge(judge)
        return score

    def submit_score_by_session(
        self,
        session_token: str,
        submission_id: str,
        criterion_id: str,
        rating: int,
        comment: str | None = None,
    ) -> Score:
        judge = self.get_judge_by_session(session_token)
        return self.submit_score(
            judge.group_id, judge.id, submission_id, criterion_id, rating, comment
        )

    def set_score_hidden(
        self, group_id: str, key: ScoreKey, hidden: bool, *, caller_id: str
    ) -> None:
        self._require_admin(caller_id)
        self._get_score(group_id, key)
        self.scores.set_hidden(key, hidden)

    def delete_score(self, group_id: str, key: ScoreKey, *, caller_id: str) -> None:
        self._require_admin(caller_id)
        self._get_score(group_id, key)
        self.scores.delete(key)

    def update_score(
        self,
        group_id: str,
        key: ScoreKey,
        rating: int,
        comment: str | None = None,
        *,
        caller_id: str,
    ) -> Score:
        """Correct a judge's rating (admin only).

        Admins may correct ratings while the group is closed; the rating
        must still fit the group's scale.
        """
        self._require_admin(caller_id)
        self._get_score(group_id, key)
        return self.scores.update(key, rating, comment)


    # Results

    def get_group_results(
        self,
        group_id: str,
        password: str | None = None,
        caller_id: str | None = None,
    ) -> ResultsSnapshot:
        """Results snapshot, behind the results access gate."""
        group = self.get_group(group_id)
        self.gate.require(group, Resource.RESULTS, password, caller_id)
        return self._snapshot(group)

    def get_judge_breakdown(self, group_id: str, *, caller_id: str) -> list[JudgeSummary]:
        self._require_admin(caller_id)
        return self._snapshot(self.get_group(group_id)).judges

    def get_submission_breakdown(
        self, group_id: str, submission_id: str, *, caller_id: str
    ) -> SubmissionBreakdown:
        """One submission's ratings by judge and by criterion (admin only)."""
        self._require_admin(caller_id)
        group = self.get_group(group_id)
        self._get_submission(group_id, submission_id)
        scores = self.store.list_scores(group.id)
        judge_names = {
            judge_id: self.identity.get_display_name(judge_id)
            for judge_id in sorted({s.judge_id for s in scores if s.submission_id == submission_id})
        }
        return compute_submission_breakdown(
            group,
            self.store.list_criteria(group.id),
            scores,
            self.directory.list_submissions(group.id),
            submission_id,
            judge_names,
        )

    def export_csv(self, group_id: str, *, caller_id: str) -> Iterator[ExportRow]:
        """Rows for a CSV download (admin only).

        Access is checked and the snapshot built before this returns; the
        rows themselves are produced lazily.
        """
        self._require_admin(caller_id)
        snapshot = self._snapshot(self.get_group(group_id))
        return to_rows(snapshot)

    def write_export(self, group_id: str, stream: TextIO, *, caller_id: str) -> int:
        count = write_csv(self.export_csv(group_id, caller_id=caller_id), stream)
        logger.info("Exported %d rows for group %s", count, group_id)
        return count


def build_directory(settings: Settings) -> SubmissionDirectory:
    if settings.submissions_url:
        return HttpSubmissionDirectory(settings.submissions_url, timeout=settings.request_timeout)
    if settings.submissions_file:
        return StaticSubmissionDirectory.from_json(settings.submissions_file)
    return StaticSubmissionDirectory()


def build_service(settings: Settings) -> JudgingService:
    """Wire a JudgingService from settings."""
    store = SqliteStore(settings.database_path) if settings.database_path else MemoryStore()
    return JudgingService(
        store=store,
        directory=build_directory(settings),
        auth=StaticAdminAuth(settings.admin_ids),
        default_scale_max=settings.default_scale_max,
        default_weighted=settings.default_weighted,
    )
