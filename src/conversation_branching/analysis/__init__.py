"""Common-ancestor, divergence and diff analysis over message sequences."""
from __future__ import annotations

from conversation_branching.analysis.ancestry import (
    AncestryStrategy,
    CommonAncestor,
    calculate_divergence,
    find_common_ancestor,
)
from conversation_branching.analysis.diff import BranchDiff, build_diff

__all__ = [
    "AncestryStrategy",
    "BranchDiff",
    "CommonAncestor",
    "build_diff",
    "calculate_divergence",
    "find_common_ancestor",
]
