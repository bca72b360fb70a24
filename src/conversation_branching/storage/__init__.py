"""Branch repository subpackage.

All repositories implement the ``BranchRepository`` ABC.

Public surface
--------------
- BranchRepository           — abstract base class
- InMemoryBranchRepository   — in-process dicts (useful for testing)
- FilesystemBranchRepository — one JSON document per branch
- SQLiteBranchRepository     — local SQLite database
- DocumentLock               — per-document write lock of the filesystem repository
- LockTimeoutError           — raised when a document stays locked
"""
from __future__ import annotations

from conversation_branching.storage.base import BranchRepository
from conversation_branching.storage.filesystem import FilesystemBranchRepository
from conversation_branching.storage.locking import DocumentLock, LockTimeoutError
from conversation_branching.storage.memory import InMemoryBranchRepository
from conversation_branching.storage.sqlite import SQLiteBranchRepository

__all__ = [
    "BranchRepository",
    "DocumentLock",
    "FilesystemBranchRepository",
    "InMemoryBranchRepository",
    "LockTimeoutError",
    "SQLiteBranchRepository",
]
