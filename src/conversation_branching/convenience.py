"""Convenience API for conversation-branching — zero-config quickstart.

Example
-------
::

    from conversation_branching import Conversation
    chat = Conversation()
    chat.say("user", "Hi")
    alt = chat.fork("Alt Approach-2", at=1)
    result = chat.merge(alt.branch_id)

"""
from __future__ import annotations

from typing import Any


class Conversation:
    """Zero-config branching for the 80% use case.

    Uses in-memory storage and starts with one active root branch named
    ``main``.

    Parameters
    ----------
    conversation_id:
        Identifier for the conversation.  Generated when omitted.
    """

    def __init__(self, conversation_id: str | None = None) -> None:
        from uuid import uuid4

        from conversation_branching.branching.manager import BranchManager
        from conversation_branching.storage.memory import InMemoryBranchRepository

        self._repository = InMemoryBranchRepository()
        self._manager = BranchManager(
            conversation_id=conversation_id or str(uuid4()),
            repository=self._repository,
        )
        self._main = self._manager.create_branch("main")
        self._manager.switch_branch(self._main.branch_id)

    @property
    def conversation_id(self) -> str:
        return self._manager.conversation_id

    @property
    def manager(self) -> Any:
        """The underlying BranchManager."""
        return self._manager

    @property
    def main_branch_id(self) -> str:
        return self._main.branch_id

    @property
    def active_branch_id(self) -> str:
        return self._manager.active_branch_id or self._main.branch_id

    def say(self, role: str, content: str) -> Any:
        """Append a message to the active branch and return it."""
        return self._manager.append_message(self.active_branch_id, role, content)

    def fork(self, name: str, at: int | None = None, *, switch: bool = True) -> Any:
        """Fork the active branch at message index *at* and optionally switch to it."""
        branch = self._manager.create_branch(name, from_message_index=at)
        if switch:
            self._manager.switch_branch(branch.branch_id)
        return branch

    def switch(self, branch_id: str) -> None:
        self._manager.switch_branch(branch_id)

    def messages(self, branch_id: str | None = None) -> list[Any]:
        return self._manager.get_messages(branch_id or self.active_branch_id)

    def merge(self, source_branch_id: str, target_branch_id: str | None = None) -> Any:
        """Merge *source_branch_id* into *target_branch_id* (default ``main``)."""
        return self._manager.merge(source_branch_id, target_branch_id or self._main.branch_id)

    def __repr__(self) -> str:
        return (
            f"Conversation(id={self.conversation_id!r}, "
            f"active={self.active_branch_id[:8]!r})"
        )
