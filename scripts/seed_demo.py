"""Seed a SQLite database with a demo judging group.

Creates a group with a few criteria, fake submissions and judges generated
by faker with a fixed seed, and a partially complete set of ratings, so the
results page and CSV export have something realistic to show. Submissions
are written to a JSON file usable as JUDGING_SUBMISSIONS_FILE.

Usage:
    python scripts/seed_demo.py demo.sqlite
    python scripts/seed_demo.py demo.sqlite --submissions demo_submissions.json --judges 5
"""

import argparse
import json
import logging
import random
from pathlib import Path

from faker import Faker

from judging.directory import StaticAdminAuth, StaticSubmissionDirectory
from judging.models import Submission
from judging.service import JudgingService
from judging.store import SqliteStore

SEED = 20260201
ADMIN_ID = "seed-admin"

CRITERIA = [
    {"question": "Originality", "description": "How fresh is the idea?"},
    {"question": "Execution", "description": "How well is it built?"},
    {"question": "Presentation", "description": "How clearly is it explained?"},
]


def fake_submissions(fake: Faker, count: int) -> list[Submission]:
    submissions = []
    for index in range(1, count + 1):
        title = fake.unique.catch_phrase()
        slug = title.lower().replace(" ", "-")
        submissions.append(Submission(
            submission_id=f"sub-{index:03d}",
            title=title,
            slug=slug,
            url=f"https://example.com/{slug}",
        ))
    return submissions


def main():
    parser = argparse.ArgumentParser(description="Seed a demo judging database")
    parser.add_argument("database", help="Path to the SQLite database to create or extend")
    parser.add_argument("--submissions", default="demo_submissions.json",
                        help="Where to write the submissions JSON (default: demo_submissions.json)")
    parser.add_argument("--judges", type=int, default=4, help="Number of judges (default: 4)")
    parser.add_argument("--entries", type=int, default=8, help="Number of submissions (default: 8)")
    parser.add_argument("--coverage", type=float, default=0.8,
                        help="Chance each judge rates a given submission (default: 0.8)")
    parser.add_argument("--scale", type=int, default=10, choices=(5, 10),
                        help="Rating scale maximum (default: 10)")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)

    fake = Faker()
    fake.seed_instance(SEED)
    rng = random.Random(SEED)

    store = SqliteStore(args.database)
    directory = StaticSubmissionDirectory()
    service = JudgingService(store, directory, StaticAdminAuth([ADMIN_ID]))

    group = service.create_group(
        f"{fake.company()} Showcase",
        caller_id=ADMIN_ID,
        description=fake.sentence(),
        scale_max=args.scale,
        results_password="demo",
    )
    criteria = service.save_criteria(group.id, CRITERIA, caller_id=ADMIN_ID)

    submissions = fake_submissions(fake, args.entries)
    directory.set_submissions(group.id, submissions)

    submissions_path = Path(args.submissions)
    existing = {}
    if submissions_path.exists():
        existing = json.loads(submissions_path.read_text(encoding="utf-8"))
    existing[group.id] = [s.to_dict() for s in submissions]
    submissions_path.write_text(json.dumps(existing, indent=2), encoding="utf-8")

    ratings = 0
    for _ in range(args.judges):
        judge = service.register_judge(group.id, fake.unique.name(), fake.email())
        for submission in submissions:
            if rng.random() > args.coverage:
                continue
            for criterion in criteria:
                comment = fake.sentence() if rng.random() < 0.3 else None
                service.submit_score(
                    group.id, judge.id, submission.submission_id, criterion.id,
                    rng.randint(1, args.scale), comment,
                )
                ratings += 1

    print(f"Created group {group.name!r} (slug: {group.slug}, id: {group.id})")
    print(f"  {len(criteria)} criteria, {len(submissions)} submissions, "
          f"{args.judges} judges, {ratings} ratings")
    print("  Results password: demo")
    print(f"Submissions written to {submissions_path}")
    store.close()


if __name__ == "__main__":
    main()
