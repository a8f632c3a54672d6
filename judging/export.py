"""Export formatter: flattens a results snapshot into rows and CSV."""

import csv
import io
from dataclasses import asdict, dataclass, fields
from datetime import datetime
from typing import Iterable, Iterator, TextIO

from judging.models import ResultsSnapshot


@dataclass
class ExportRow:
    """One rating with display names resolved."""
    rank: int
    submission_id: str
    submission_title: str
    submission_slug: str
    submission_url: str
    judge_id: str
    judge_name: str
    criterion_id: str
    criterion_question: str
    rating: int
    comment: str
    scored_at: str


COLUMNS = [f.name for f in fields(ExportRow)]


def _timestamp(value: datetime | None) -> str:
    return value.isoformat() if value is not None else ""


def to_rows(snapshot: ResultsSnapshot) -> Iterator[ExportRow]:
    """Yield one row per (submission, judge, criterion) rating.

    Rows follow the ranking, then judge order, then criterion order. Rows
    are produced lazily; nothing beyond a per-submission index is held.
    """
    by_submission: dict[str, list[tuple]] = {}
    for judge in snapshot.judges:
        for entry in judge.submissions:
            by_submission.setdefault(entry.submission.submission_id, []).append((judge, entry))

    for result in snapshot.rankings:
        submission = result.submission
        for judge, entry in by_submission.get(submission.submission_id, []):
            for rating in entry.ratings:
                yield ExportRow(
                    rank=result.rank,
                    submission_id=submission.submission_id,
                    submission_title=submission.title,
                    submission_slug=submission.slug,
                    submission_url=submission.url,
                    judge_id=judge.judge_id,
                    judge_name=judge.name,
                    criterion_id=rating.criterion_id,
                    criterion_question=rating.question,
                    rating=rating.rating,
                    comment=rating.comment or "",
                    scored_at=_timestamp(rating.scored_at),
                )


def write_csv(rows: Iterable[ExportRow], stream: TextIO) -> int:
    """Write rows to ``stream`` as CSV with a header. Returns the row count."""
    writer = csv.DictWriter(stream, fieldnames=COLUMNS)
    writer.writeheader()
    count = 0
    for row in rows:
        writer.writerow(asdict(row))
        count += 1
    return count


def iter_csv(rows: Iterable[ExportRow]) -> Iterator[str]:
    """Yield CSV text one line at a time, header first.

    Suitable for streaming an HTTP response body.
    """
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=COLUMNS)

    def flush() -> str:
        text = buffer.getvalue()
        buffer.seek(0)
        buffer.truncate(0)
        return text

    writer.writeheader()
    yield flush()
    for row in rows:
        writer.writerow(asdict(row))
        yield flush()
