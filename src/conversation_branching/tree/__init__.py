"""Branch hierarchy views and lineage-based history."""
from __future__ import annotations

from conversation_branching.tree.builder import (
    BranchTree,
    branch_ancestors,
    branch_depth,
    branch_descendants,
    build_branch_tree,
)
from conversation_branching.tree.lineage import (
    find_lineage_ancestor,
    lineage_shared_prefix,
    resolve_history,
)

__all__ = [
    "BranchTree",
    "branch_ancestors",
    "branch_depth",
    "branch_descendants",
    "build_branch_tree",
    "find_lineage_ancestor",
    "lineage_shared_prefix",
    "resolve_history",
]
