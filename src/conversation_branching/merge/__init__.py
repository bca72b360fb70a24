"""Merge conflict detection.

Classes
-------
MergeEngine
    Decides whether one branch may be merged into another.
MergeResult
    Success flag, new branch id, or conflict details.
MergeRecord
    A logged merge attempt.
MergePolicy
    What the caller does after a successful merge.
"""
from __future__ import annotations

from conversation_branching.merge.engine import (
    MergeEngine,
    MergePolicy,
    MergeRecord,
    MergeResult,
    find_role_conflicts,
    merge_branches,
)

__all__ = [
    "MergeEngine",
    "MergePolicy",
    "MergeRecord",
    "MergeResult",
    "find_role_conflicts",
    "merge_branches",
]
