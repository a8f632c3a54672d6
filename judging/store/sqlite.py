"""SQLite-backed store."""

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

from judging.errors import StoreUnavailableError, ValidationError
from judging.models import Criterion, Judge, JudgingGroup, Score
from judging.store.base import JudgingStore, ScoreKey

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS groups (
    id TEXT PRIMARY KEY,
    slug TEXT NOT NULL UNIQUE,
    data TEXT NOT NULL,
    created_seq INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS criteria (
    id TEXT PRIMARY KEY,
    group_id TEXT NOT NULL,
    question TEXT NOT NULL,
    description TEXT,
    weight REAL NOT NULL DEFAULT 1,
    position INTEGER NOT NULL
);
CREATE INDEX IF NOT EXISTS criteria_by_group ON criteria (group_id, position);

CREATE TABLE IF NOT EXISTS judges (
    id TEXT PRIMARY KEY,
    group_id TEXT NOT NULL,
    name TEXT NOT NULL,
    email TEXT,
    session_token TEXT NOT NULL UNIQUE,
    created_at TEXT,
    last_active_at TEXT
);
CREATE INDEX IF NOT EXISTS judges_by_group ON judges (group_id);

-- one row per (judge, submission, criterion); resubmission overwrites
CREATE TABLE IF NOT EXISTS scores (
    judge_id TEXT NOT NULL,
    submission_id TEXT NOT NULL,
    criterion_id TEXT NOT NULL,
    group_id TEXT NOT NULL,
    rating INTEGER NOT NULL,
    comment TEXT,
    is_hidden INTEGER NOT NULL DEFAULT 0,
    created_at TEXT,
    updated_at TEXT,
    PRIMARY KEY (judge_id, submission_id, criterion_id)
);
CREATE INDEX IF NOT EXISTS scores_by_group ON scores (group_id, submission_id);
"""


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _criterion(row: sqlite3.Row) -> Criterion:
    return Criterion(
        id=row["id"],
        group_id=row["group_id"],
        question=row["question"],
        description=row["description"],
        weight=row["weight"],
        order=row["position"],
    )


def _judge(row: sqlite3.Row) -> Judge:
    return Judge(
        id=row["id"],
        group_id=row["group_id"],
        name=row["name"],
        email=row["email"],
        session_token=row["session_token"],
        created_at=_dt(row["created_at"]),
        last_active_at=_dt(row["last_active_at"]),
    )


def _score(row: sqlite3.Row) -> Score:
    return Score(
        judge_id=row["judge_id"],
        submission_id=row["submission_id"],
        criterion_id=row["criterion_id"],
        group_id=row["group_id"],
        rating=row["rating"],
        comment=row["comment"],
        is_hidden=bool(row["is_hidden"]),
        created_at=_dt(row["created_at"]),
        updated_at=_dt(row["updated_at"]),
    )


class SqliteStore(JudgingStore):
    """Store persisted in a SQLite database file.

    Each write method runs inside one transaction. Pass ``":memory:"`` for a
    throwaway database (useful in tests).
    """

    def __init__(self, path: str | Path = ":memory:"):
        self.path = str(path)
        try:
            self._conn = sqlite3.connect(self.path, check_same_thread=False)
        except sqlite3.Error as e:
            raise StoreUnavailableError(f"Cannot open database {self.path}: {e}") from e
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        with self._transaction() as conn:
            conn.executescript(SCHEMA)

    @contextmanager
    def _transaction(self):
        with self._lock:
            try:
                with self._conn:
                    yield self._conn
            except sqlite3.OperationalError as e:
                logger.warning("SQLite operation failed on %s: %s", self.path, e)
                raise StoreUnavailableError(f"Database unavailable: {e}") from e

    def _query(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        with self._transaction() as conn:
            return conn.execute(sql, params).fetchall()

    def close(self) -> None:
        self._conn.close()

    # Groups

    def get_group(self, group_id: str) -> JudgingGroup | None:
        rows = self._query("SELECT data FROM groups WHERE id=?", (group_id,))
        return JudgingGroup.from_dict(json.loads(rows[0]["data"])) if rows else None

    def get_group_by_slug(self, slug: str) -> JudgingGroup | None:
        rows = self._query("SELECT data FROM groups WHERE slug=?", (slug,))
        return JudgingGroup.from_dict(json.loads(rows[0]["data"])) if rows else None

    def list_groups(self) -> list[JudgingGroup]:
        rows = self._query("SELECT data FROM groups ORDER BY created_seq")
        return [JudgingGroup.from_dict(json.loads(r["data"])) for r in rows]

    def save_group(self, group: JudgingGroup) -> None:
        data = json.dumps(group.to_dict())
        try:
            with self._transaction() as conn:
                updated = conn.execute(
                    "UPDATE groups SET slug=?, data=? WHERE id=?", (group.slug, data, group.id)
                ).rowcount
                if not updated:
                    seq = conn.execute(
                        "SELECT COALESCE(MAX(created_seq), 0) + 1 FROM groups"
                    ).fetchone()[0]
                    conn.execute(
                        "INSERT INTO groups (id, slug, data, created_seq) VALUES (?, ?, ?, ?)",
                        (group.id, group.slug, data, seq),
                    )
        except sqlite3.IntegrityError as e:
            raise ValidationError(f"Slug {group.slug!r} is already in use") from e

    def delete_group(self, group_id: str) -> None:
        with self._transaction() as conn:
            conn.execute("DELETE FROM scores WHERE group_id=?", (group_id,))
            conn.execute("DELETE FROM judges WHERE group_id=?", (group_id,))
            conn.execute("DELETE FROM criteria WHERE group_id=?", (group_id,))
            conn.execute("DELETE FROM groups WHERE id=?", (group_id,))

    # Criteria

    def list_criteria(self, group_id: str) -> list[Criterion]:
        rows = self._query(
            "SELECT * FROM criteria WHERE group_id=? ORDER BY position, id", (group_id,)
        )
        return [_criterion(r) for r in rows]

    def replace_criteria(self, group_id: str, criteria: list[Criterion]) -> None:
        keep = [c.id for c in criteria]
        with self._transaction() as conn:
            placeholders = ",".join("?" for _ in keep)
            if keep:
                conn.execute(
                    f"DELETE FROM criteria WHERE group_id=? AND id NOT IN ({placeholders})",
                    (group_id, *keep),
                )
            else:
                conn.execute("DELETE FROM criteria WHERE group_id=?", (group_id,))
            conn.executemany(
                """
                INSERT INTO criteria (id, group_id, question, description, weight, position)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    question=excluded.question,
                    description=excluded.description,
                    weight=excluded.weight,
                    position=excluded.position
                """,
                [
                    (c.id, group_id, c.question, c.description, c.weight, c.order)
                    for c in criteria
                ],
            )

    def get_criterion(self, criterion_id: str) -> Criterion | None:
        rows = self._query("SELECT * FROM criteria WHERE id=?", (criterion_id,))
        return _criterion(rows[0]) if rows else None

    # Judges

    def get_judge(self, judge_id: str) -> Judge | None:
        rows = self._query("SELECT * FROM judges WHERE id=?", (judge_id,))
        return _judge(rows[0]) if rows else None

    def get_judge_by_session(self, session_token: str) -> Judge | None:
        rows = self._query("SELECT * FROM judges WHERE session_token=?", (session_token,))
        return _judge(rows[0]) if rows else None

    def list_judges(self, group_id: str) -> list[Judge]:
        rows = self._query("SELECT * FROM judges WHERE group_id=? ORDER BY rowid", (group_id,))
        return [_judge(r) for r in rows]

    def save_judge(self, judge: Judge) -> None:
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO judges (id, group_id, name, email, session_token, created_at, last_active_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name=excluded.name,
                    email=excluded.email,
                    session_token=excluded.session_token,
                    last_active_at=excluded.last_active_at
                """,
                (
                    judge.id, judge.group_id, judge.name, judge.email, judge.session_token,
                    _iso(judge.created_at), _iso(judge.last_active_at),
                ),
            )

    def delete_judge(self, judge_id: str) -> None:
        with self._transaction() as conn:
            conn.execute("DELETE FROM scores WHERE judge_id=?", (judge_id,))
            conn.execute("DELETE FROM judges WHERE id=?", (judge_id,))

    # Scores

    def get_score(self, key: ScoreKey) -> Score | None:
        rows = self._query(
            "SELECT * FROM scores WHERE judge_id=? AND submission_id=? AND criterion_id=?", key
        )
        return _score(rows[0]) if rows else None

    def list_scores(self, group_id: str) -> list[Score]:
        rows = self._query("SELECT * FROM scores WHERE group_id=?", (group_id,))
        return [_score(r) for r in rows]

    def list_judge_scores(self, group_id: str, judge_id: str) -> list[Score]:
        rows = self._query(
            "SELECT * FROM scores WHERE group_id=? AND judge_id=?", (group_id, judge_id)
        )
        return [_score(r) for r in rows]

    def upsert_score(self, score: Score) -> Score:
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO scores (judge_id, submission_id, criterion_id, group_id,
                                    rating, comment, is_hidden, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(judge_id, submission_id, criterion_id) DO UPDATE SET
                    rating=excluded.rating,
                    comment=excluded.comment,
                    is_hidden=excluded.is_hidden,
                    updated_at=excluded.updated_at
                """,
                (
                    score.judge_id, score.submission_id, score.criterion_id, score.group_id,
                    score.rating, score.comment, int(score.is_hidden),
                    _iso(score.created_at), _iso(score.updated_at),
                ),
            )
            row = conn.execute(
                "SELECT * FROM scores WHERE judge_id=? AND submission_id=? AND criterion_id=?",
                score.key,
            ).fetchone()
        return _score(row)

    def set_score_hidden(self, key: ScoreKey, hidden: bool) -> bool:
        with self._transaction() as conn:
            updated = conn.execute(
                "UPDATE scores SET is_hidden=? WHERE judge_id=? AND submission_id=? AND criterion_id=?",
                (int(hidden), *key),
            ).rowcount
        return updated > 0

    def delete_score(self, key: ScoreKey) -> bool:
        with self._transaction() as conn:
            deleted = conn.execute(
                "DELETE FROM scores WHERE judge_id=? AND submission_id=? AND criterion_id=?", key
            ).rowcount
        return deleted > 0
