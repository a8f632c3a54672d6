"""Judging criteria and score aggregation engine."""
