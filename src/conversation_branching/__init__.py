"""conversation-branching — fork, compare and merge chat conversation branches.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
>>> import conversation_branching
>>> conversation_branching.__version__
'0.1.0'
"""
from __future__ import annotations

# Records
from conversation_branching.branching.records import (
    Branch,
    BranchMessage,
    MessageMetadata,
    MessageRole,
    ValidationError,
    new_branch,
    new_branch_message,
    validate_branch_name,
)

# Analysis
from conversation_branching.analysis.ancestry import (
    AncestryStrategy,
    CommonAncestor,
    calculate_divergence,
    find_common_ancestor,
)
from conversation_branching.analysis.diff import BranchDiff, build_diff

# Merge
from conversation_branching.merge.engine import (
    MergeEngine,
    MergePolicy,
    MergeRecord,
    MergeResult,
    merge_branches,
)

# Tree
from conversation_branching.tree.builder import (
    BranchTree,
    branch_depth,
    branch_descendants,
    build_branch_tree,
)
from conversation_branching.tree.lineage import find_lineage_ancestor, resolve_history

# Storage
from conversation_branching.storage.base import BranchRepository
from conversation_branching.storage.filesystem import FilesystemBranchRepository
from conversation_branching.storage.memory import InMemoryBranchRepository
from conversation_branching.storage.sqlite import SQLiteBranchRepository

# Service, serialization, configuration
from conversation_branching.branching.manager import BranchManager, BranchNotFoundError
from conversation_branching.branching.serializer import (
    BranchExport,
    BranchSerializer,
    SchemaVersionError,
)
from conversation_branching.config import BranchingConfig, load_config
from conversation_branching.convenience import Conversation

__version__: str = "0.1.0"

__all__ = [
    "__version__",
    # Records
    "Branch",
    "BranchMessage",
    "MessageMetadata",
    "MessageRole",
    "ValidationError",
    "new_branch",
    "new_branch_message",
    "validate_branch_name",
    # Analysis
    "AncestryStrategy",
    "BranchDiff",
    "CommonAncestor",
    "build_diff",
    "calculate_divergence",
    "find_common_ancestor",
    # Merge
    "MergeEngine",
    "MergePolicy",
    "MergeRecord",
    "MergeResult",
    "merge_branches",
    # Tree
    "BranchTree",
    "branch_depth",
    "branch_descendants",
    "build_branch_tree",
    "find_lineage_ancestor",
    "resolve_history",
    # Storage
    "BranchRepository",
    "FilesystemBranchRepository",
    "InMemoryBranchRepository",
    "SQLiteBranchRepository",
    # Service
    "BranchExport",
    "BranchManager",
    "BranchNotFoundError",
    "BranchSerializer",
    "BranchingConfig",
    "Conversation",
    "SchemaVersionError",
    "load_config",
]
