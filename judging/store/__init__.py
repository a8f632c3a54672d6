"""Persistence backends for groups, criteria, judges and scores."""

from .base import JudgingStore, ScoreKey
from .memory import MemoryStore
from .sqlite import SqliteStore

__all__ = ["JudgingStore", "MemoryStore", "ScoreKey", "SqliteStore"]
