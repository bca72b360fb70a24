"""Branch records, the branching service, and branch export.

Classes
-------
Branch
    An independently appendable fork of a conversation.
BranchMessage
    One immutable message inside a branch.
BranchManager
    Creates, appends to, diffs and merges the branches of a conversation.
BranchSerializer
    Exports a branch with its messages to JSON or YAML.
"""
from __future__ import annotations

from conversation_branching.branching.manager import BranchManager, BranchNotFoundError
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
from conversation_branching.branching.serializer import (
    BranchExport,
    BranchSerializer,
    SchemaVersionError,
)

__all__ = [
    "Branch",
    "BranchExport",
    "BranchManager",
    "BranchMessage",
    "BranchNotFoundError",
    "BranchSerializer",
    "MessageMetadata",
    "MessageRole",
    "SchemaVersionError",
    "ValidationError",
    "new_branch",
    "new_branch_message",
    "validate_branch_name",
]
