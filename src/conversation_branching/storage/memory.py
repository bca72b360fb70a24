"""In-memory branch repository.

Stores records in plain Python dicts.  All data is lost when the process
exits.  This repository is primarily useful for tests and local
prototyping.

Classes
-------
- InMemoryBranchRepository  — dict-backed ephemeral storage
"""
from __future__ import annotations

import logging

from conversation_branching.branching.records import Branch, BranchMessage
from conversation_branching.merge.engine import MergeRecord
from conversation_branching.storage.base import BranchRepository

logger = logging.getLogger(__name__)


class InMemoryBranchRepository(BranchRepository):
    """Ephemeral, in-process repository backed by dicts.

    Stored models are copied on the way in and out so callers cannot
    mutate the repository's state by accident.
    """

    def __init__(self) -> None:
        self._branches: dict[str, Branch] = {}
        self._messages: dict[str, list[BranchMessage]] = {}
        self._merges: list[MergeRecord] = []

    # ------------------------------------------------------------------
    # BranchRepository interface
    # ------------------------------------------------------------------

    def save_branch(self, branch: Branch) -> None:
        self._branches[branch.branch_id] = branch.model_copy(deep=True)
        self._messages.setdefault(branch.branch_id, [])
        logger.debug("InMemoryBranchRepository: saved branch %r", branch.branch_id)

    def get_branch(self, branch_id: str) -> Branch:
        try:
            return self._branches[branch_id].model_copy(deep=True)
        except KeyError:
            raise KeyError(f"Branch {branch_id!r} not found in InMemoryBranchRepository.") from None

    def list_branches(self, conversation_id: str) -> list[Branch]:
        return [
            branch.model_copy(deep=True)
            for branch in self._branches.values()
            if branch.conversation_id == conversation_id
        ]

    def delete_branch(self, branch_id: str) -> None:
        try:
            del self._branches[branch_id]
        except KeyError:
            raise KeyError(f"Branch {branch_id!r} not found in InMemoryBranchRepository.") from None
        self._messages.pop(branch_id, None)

    def branch_exists(self, branch_id: str) -> bool:
        return branch_id in self._branches

    def save_message(self, message: BranchMessage) -> None:
        if message.branch_id not in self._branches:
            raise KeyError(f"Branch {message.branch_id!r} not found in InMemoryBranchRepository.")
        stored = self._messages[message.branch_id]
        if any(m.message_index == message.message_index for m in stored):
            raise ValueError(
                f"Branch {message.branch_id!r} already has a message at index "
                f"{message.message_index}."
            )
        stored.append(message)
        stored.sort(key=lambda m: m.message_index)

    def list_messages(self, branch_id: str) -> list[BranchMessage]:
        return list(self._messages.get(branch_id, []))

    def record_merge(self, record: MergeRecord) -> None:
        self._merges.append(record.model_copy(deep=True))

    def list_merges(self, conversation_id: str) -> list[MergeRecord]:
        return [r.model_copy(deep=True) for r in self._merges if r.conversation_id == conversation_id]

    # ------------------------------------------------------------------
    # Extras
    # ------------------------------------------------------------------

    def clear(self) -> None:
        """Remove all stored records."""
        self._branches.clear()
        self._messages.clear()
        self._merges.clear()

    def __len__(self) -> int:
        return len(self._branches)

    def __repr__(self) -> str:
        return f"InMemoryBranchRepository(branches={len(self._branches)})"
