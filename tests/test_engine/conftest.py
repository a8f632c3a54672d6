"""Shared fixtures for aggregation engine tests."""

import pytest
from tests.conftest import make_criteria, make_group, make_scores, make_submissions


@pytest.fixture
def scenario():
    """2 criteria (weight 1, scale 1-10), 2 judges, 3 submissions.

              c1  c2
    A on s1    8   9
    B on s1    7   8
    A on s3    5   5
    s2 has no ratings.

    Expected: s1 total 32 (avg 8.0, 100%), s3 total 10 (avg 5.0, 50%),
    s2 all zero. Ranking: s1, s3, s2.
    """
    return {
        "group": make_group(),
        "criteria": make_criteria("g1", ["Creativity", "Polish"]),
        "scores": make_scores("g1", {
            "A": {"s1": [8, 9], "s3": [5, 5]},
            "B": {"s1": [7, 8]},
        }),
        "submissions": make_submissions("s1", "s2", "s3"),
    }


@pytest.fixture
def level_pair():
    """Two submissions level on both total and average.

              c1  c2
    A on s2    6   4
    A on s1    5   5
    A on s3    9   9

    s1 and s2 tie at total 10 / average 5.0; s3 leads.
    """
    return {
        "group": make_group(),
        "criteria": make_criteria("g1", ["Creativity", "Polish"]),
        "scores": make_scores("g1", {"A": {"s2": [6, 4], "s1": [5, 5], "s3": [9, 9]}}),
        "submissions": make_submissions("s2", "s3", "s1"),
    }


@pytest.fixture
def weighted():
    """Weighted group, scale 1-5, criteria weighted 2 and 0.5.

              c1  c2
    A on s1    5   1      total 5*2 + 1*0.5 = 10.5
    A on s2    3   5      total 3*2 + 5*0.5 = 8.5
    """
    return {
        "group": make_group(scale_max=5, weighted=True),
        "criteria": make_criteria("g1", ["Impact", "Style"], weights=[2.0, 0.5]),
        "scores": make_scores("g1", {"A": {"s1": [5, 1], "s2": [3, 5]}}),
        "submissions": make_submissions("s1", "s2"),
    }
