"""Abstract base class for branch repositories.

The branching core never performs I/O.  A repository supplies already
loaded records and accepts writes of new branches, appended messages and
merge outcomes.  All records are exchanged as the Pydantic models from
:mod:`conversation_branching.branching.records` and
:mod:`conversation_branching.merge.engine`.

Classes
-------
- BranchRepository  — abstract base for all repositories
"""
from __future__ import annotations

from abc import ABC, abstractmethod

from conversation_branching.branching.records import Branch, BranchMessage
from conversation_branching.merge.engine import MergeRecord


class BranchRepository(ABC):
    """Protocol for durable storage of branches, messages and merges.

    Implementations must be safe for sequential (single-threaded) use.
    Thread-safety is the responsibility of the caller when used from
    concurrent code.
    """

    # ------------------------------------------------------------------
    # Branches
    # ------------------------------------------------------------------

    @abstractmethod
    def save_branch(self, branch: Branch) -> None:
        """Insert or overwrite *branch*."""

    @abstractmethod
    def get_branch(self, branch_id: str) -> Branch:
        """Return the branch stored under *branch_id*.

        Raises
        ------
        KeyError
            If no branch exists for *branch_id*.
        """

    @abstractmethod
    def list_branches(self, conversation_id: str) -> list[Branch]:
        """Return the branches of *conversation_id* in creation order."""

    @abstractmethod
    def delete_branch(self, branch_id: str) -> None:
        """Remove a branch together with its messages.

        Raises
        ------
        KeyError
            If no branch exists for *branch_id*.
        """

    @abstractmethod
    def branch_exists(self, branch_id: str) -> bool:
        """Return True if a branch is stored under *branch_id*."""

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    @abstractmethod
    def save_message(self, message: BranchMessage) -> None:
        """Persist *message*.

        Raises
        ------
        KeyError
            If the owning branch does not exist.
        ValueError
            If the branch already holds a message at the same index.
        """

    @abstractmethod
    def list_messages(self, branch_id: str) -> list[BranchMessage]:
        """Return the messages of *branch_id* by ascending ``message_index``.

        An unknown branch yields an empty list.
        """

    # ------------------------------------------------------------------
    # Merges
    # ------------------------------------------------------------------

    @abstractmethod
    def record_merge(self, record: MergeRecord) -> None:
        """Append a merge attempt to the conversation's merge log."""

    @abstractmethod
    def list_merges(self, conversation_id: str) -> list[MergeRecord]:
        """Return logged merge attempts for *conversation_id*, oldest first."""
