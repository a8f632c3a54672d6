"""Core data models for judging groups, criteria, scores and results."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Self
from uuid import uuid4

SUPPORTED_SCALES = (5, 10)


def new_id() -> str:
    """Return a fresh opaque identifier."""
    return uuid4().hex


class Visibility(str, Enum):
    PUBLIC = "public"
    PASSWORD_PROTECTED = "password_protected"


class Resource(str, Enum):
    """Group resources guarded by the access gate."""
    JUDGE_INTERFACE = "judge_interface"
    SUBMISSION_PAGE = "submission_page"
    RESULTS = "results"


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_iso(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


@dataclass
class JudgingGroup:
    """A contest-like judging context.

    Attributes:
        id: Stable group identifier
        name: Display name
        slug: URL-unique name, immutable after creation
        scale_max: Highest rating allowed (1..scale_max), fixed at creation
        weighted: Whether criterion weights multiply ratings in totals
        judge_visibility: Tier of the judge interface
        judge_password_hash: sha256 hex digest, when the interface is protected
        submission_page_password_hash: Optional password for the custom submission page
        results_visibility: Tier of the results page (private by default)
        results_password_hash: sha256 hex digest for the results page
        is_active: Whether judging is currently enabled
        start_date / end_date: Optional window bounding when scores are accepted
    """
    id: str
    name: str
    slug: str
    description: str | None = None
    scale_max: int = 10
    weighted: bool = False
    judge_visibility: Visibility = Visibility.PUBLIC
    judge_password_hash: str | None = None
    submission_page_password_hash: str | None = None
    results_visibility: Visibility = Visibility.PASSWORD_PROTECTED
    results_password_hash: str | None = None
    is_active: bool = True
    start_date: datetime | None = None
    end_date: datetime | None = None
    has_custom_submission_page: bool = False
    submission_page_image_id: str | None = None
    submission_page_layout: str = "two-column"
    submission_page_required_tag_id: str | None = None
    created_at: datetime | None = None

    def visibility_of(self, resource: Resource) -> Visibility:
        if resource is Resource.JUDGE_INTERFACE:
            return self.judge_visibility
        if resource is Resource.RESULTS:
            return self.results_visibility
        # The submission page has no tier of its own: a password makes it protected
        if self.submission_page_password_hash:
            return Visibility.PASSWORD_PROTECTED
        return Visibility.PUBLIC

    def password_hash_of(self, resource: Resource) -> str | None:
        return {
            Resource.JUDGE_INTERFACE: self.judge_password_hash,
            Resource.SUBMISSION_PAGE: self.submission_page_password_hash,
            Resource.RESULTS: self.results_password_hash,
        }[resource]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "scale_max": self.scale_max,
            "weighted": self.weighted,
            "judge_visibility": self.judge_visibility.value,
            "judge_password_hash": self.judge_password_hash,
            "submission_page_password_hash": self.submission_page_password_hash,
            "results_visibility": self.results_visibility.value,
            "results_password_hash": self.results_password_hash,
            "is_active": self.is_active,
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "has_custom_submission_page": self.has_custom_submission_page,
            "submission_page_image_id": self.submission_page_image_id,
            "submission_page_layout": self.submission_page_layout,
            "submission_page_required_tag_id": self.submission_page_required_tag_id,
            "created_at": _iso(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        values = dict(data)
        values["judge_visibility"] = Visibility(values["judge_visibility"])
        values["results_visibility"] = Visibility(values["results_visibility"])
        for key in ("start_date", "end_date", "created_at"):
            values[key] = _parse_iso(values.get(key))
        return cls(**values)


@dataclass
class Criterion:
    """One rating question judges answer for every submission."""
    id: str
    group_id: str
    question: str
    order: int
    description: str | None = None
    weight: float = 1.0


@dataclass
class CriterionDraft:
    """A caller-side edit of a criterion, submitted as part of a whole set.

    Drafts without an ``id`` are new criteria; drafts carrying an ``id``
    update the existing criterion in place. Order is taken from the
    draft's position in the submitted list.
    """
    question: str
    description: str | None = None
    weight: float | None = None
    id: str | None = None


@dataclass
class Score:
    """One judge's rating of one submission on one criterion."""
    judge_id: str
    submission_id: str
    criterion_id: str
    group_id: str
    rating: int
    comment: str | None = None
    is_hidden: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.judge_id, self.submission_id, self.criterion_id)


@dataclass
class Judge:
    """A named judge registered in one group."""
    id: str
    group_id: str
    name: str
    session_token: str
    email: str | None = None
    created_at: datetime | None = None
    last_active_at: datetime | None = None


@dataclass
class Submission:
    """A submission under judgment, as listed by the submission directory."""
    submission_id: str
    title: str
    slug: str = ""
    url: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "submission_id": self.submission_id,
            "title": self.title,
            "slug": self.slug,
            "url": self.url,
        }


@dataclass
class Placement:
    """A submission's position in the ranking.

    Attributes:
        submission_id: Submission identifier
        rank: 1-indexed placement (tied submissions share the same rank)
        tied: Whether this submission is tied with others at this rank
    """
    submission_id: str
    rank: int
    tied: bool

    @classmethod
    def build_ranking(
        cls, ordered: list[str | list[str]]
    ) -> list[Self]:
        """Build a list of Placements from an ordered list.

        Args:
            ordered: Submissions in order from 1st to last place.
                Each element is either a single id (str) or a list of
                ids (list[str]) for tied submissions.

        Returns:
            List of Placement objects with correct ranks and tied flags.
        """
        placements = []
        rank = 1
        for entry in ordered:
            if isinstance(entry, list):
                for submission_id in entry:
                    placements.append(cls(submission_id=submission_id, rank=rank, tied=True))
                rank += len(entry)
            else:
                placements.append(cls(submission_id=entry, rank=rank, tied=False))
                rank += 1

        return placements


@dataclass
class SubmissionResult:
    """Aggregated scores for one submission."""
    submission: Submission
    rank: int
    tied: bool
    total_score: float
    average_score: float
    rating_count: int
    judge_count: int
    max_possible_score: float
    completion_percentage: float

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.submission.to_dict(),
            "rank": self.rank,
            "tied": self.tied,
            "total_score": self.total_score,
            "average_score": self.average_score,
            "rating_count": self.rating_count,
            "judge_count": self.judge_count,
            "max_possible_score": self.max_possible_score,
            "completion_percentage": self.completion_percentage,
        }


@dataclass
class CriterionResult:
    """Mean raw rating and rating count for one criterion."""
    criterion_id: str
    question: str
    order: int
    average_score: float
    rating_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "criterion_id": self.criterion_id,
            "question": self.question,
            "order": self.order,
            "average_score": self.average_score,
            "rating_count": self.rating_count,
        }


@dataclass
class CriterionRating:
    """A single rating inside a judge's record for a submission."""
    criterion_id: str
    question: str
    rating: int
    comment: str | None
    scored_at: datetime | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "criterion_id": self.criterion_id,
            "question": self.question,
            "rating": self.rating,
            "comment": self.comment,
            "scored_at": _iso(self.scored_at),
        }


@dataclass
class JudgeSubmissionScores:
    submission: Submission
    ratings: list[CriterionRating]

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.submission.to_dict(),
            "ratings": [r.to_dict() for r in self.ratings],
        }


@dataclass
class JudgeSummary:
    """One judge's full scoring record within a group."""
    judge_id: str
    name: str
    total_ratings: int
    average_rating: float
    submissions: list[JudgeSubmissionScores] = field(default_factory=list)

    @property
    def submissions_judged(self) -> int:
        return len(self.submissions)

    def to_dict(self) -> dict[str, Any]:
        return {
            "judge_id": self.judge_id,
            "name": self.name,
            "total_ratings": self.total_ratings,
            "average_rating": self.average_rating,
            "submissions_judged": self.submissions_judged,
            "submissions": [s.to_dict() for s in self.submissions],
        }


@dataclass
class JudgeRating:
    """One judge's rating inside a criterion's record for a submission."""
    judge_id: str
    name: str
    rating: int
    comment: str | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "judge_id": self.judge_id,
            "name": self.name,
            "rating": self.rating,
            "comment": self.comment,
        }


@dataclass
class SubmissionJudgeScores:
    judge_id: str
    name: str
    ratings: list[CriterionRating]
    total_score: float
    average_score: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "judge_id": self.judge_id,
            "name": self.name,
            "ratings": [r.to_dict() for r in self.ratings],
            "total_score": self.total_score,
            "average_score": self.average_score,
        }


@dataclass
class SubmissionCriterionScores:
    criterion_id: str
    question: str
    order: int
    ratings: list[JudgeRating]
    average_score: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "criterion_id": self.criterion_id,
            "question": self.question,
            "order": self.order,
            "ratings": [r.to_dict() for r in self.ratings],
            "average_score": self.average_score,
        }


@dataclass
class SubmissionBreakdown:
    """Every counted rating of one submission, by judge and by criterion.

    The headline figures match the submission's row in the results ranking.
    """
    submission: Submission
    total_score: float
    average_score: float
    rating_count: int
    judge_count: int
    max_possible_score: float
    completion_percentage: float
    judges: list[SubmissionJudgeScores]
    criteria: list[SubmissionCriterionScores]

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.submission.to_dict(),
            "total_score": self.total_score,
            "average_score": self.average_score,
            "rating_count": self.rating_count,
            "judge_count": self.judge_count,
            "max_possible_score": self.max_possible_score,
            "completion_percentage": self.completion_percentage,
            "judges": [j.to_dict() for j in self.judges],
            "criteria": [c.to_dict() for c in self.criteria],
        }


@dataclass
class GroupStats:
    total_ratings: int
    submissions_judged: int
    average_score: float
    judge_count: int
    completion_percentage: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_ratings": self.total_ratings,
            "submissions_judged": self.submissions_judged,
            "average_score": self.average_score,
            "judge_count": self.judge_count,
            "completion_percentage": self.completion_percentage,
        }


@dataclass
class ResultsSnapshot:
    """Derived, disposable view of a group's results.

    Recomputed from criteria, scores and the submission set on every read;
    never persisted.
    """
    group_id: str
    group_name: str
    scale_max: int
    criteria_count: int
    submission_count: int
    rankings: list[SubmissionResult]
    criteria: list[CriterionResult]
    judges: list[JudgeSummary]
    stats: GroupStats

    def get_result(self, submission_id: str) -> SubmissionResult | None:
        """Get the ranked result for a submission, or None if not ranked."""
        for result in self.rankings:
            if result.submission.submission_id == submission_id:
                return result
        return None

    def to_dict(self, public: bool = False) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary.

        The public view leaves out per-judge summaries.
        """
        data = {
            "group_id": self.group_id,
            "group_name": self.group_name,
            "scale_max": self.scale_max,
            "criteria_count": self.criteria_count,
            "submission_count": self.submission_count,
            "stats": self.stats.to_dict(),
            "rankings": [r.to_dict() for r in self.rankings],
            "criteria": [c.to_dict() for c in self.criteria],
        }
        if not public:
            data["judges"] = [j.to_dict() for j in self.judges]
        return data


@dataclass
class SubmissionProgress:
    submission_id: str
    title: str
    criteria_scored: int
    total_criteria: int

    @property
    def is_complete(self) -> bool:
        return self.total_criteria > 0 and self.criteria_scored >= self.total_criteria


@dataclass
class JudgeProgress:
    """How far one judge has got through a group's submissions."""
    judge_id: str
    total_submissions: int
    total_criteria: int
    completed_ratings: int
    submissions: list[SubmissionProgress]

    @property
    def expected_ratings(self) -> int:
        return self.total_submissions * self.total_criteria

    @property
    def completion_percentage(self) -> float:
        if self.expected_ratings == 0:
            return 0.0
        return min(100.0, self.completed_ratings / self.expected_ratings * 100)
