"""Conversation branching service — create, append, diff and merge branches.

Design
------
A :class:`BranchManager` is bound to one conversation and one
:class:`~conversation_branching.storage.base.BranchRepository`.  It is the
caller-side layer around the pure analysis, diff, merge and tree
functions: it loads fresh records from the repository, runs the pure
functions, and writes outcomes back.

The manager remembers an *active* branch.  New branches fork from the
active branch unless a parent is given explicitly.

Merges into the same target are serialised with a per-target lock and
always re-read both message sequences inside that lock.  Appends to a
branch take the same lock, so a merge is never approved against a target
that grows while it is being checked.  A rejected merge changes nothing
except the merge log.

Usage
-----
::

    from conversation_branching import BranchManager, InMemoryBranchRepository

    manager = BranchManager("conv-1", InMemoryBranchRepository())
    main = manager.create_branch("main")
    manager.switch_branch(main.branch_id)
    manager.append_message(main.branch_id, "user", "Hello")
    alt = manager.create_branch("Alt Approach-2", from_message_index=1)
    result = manager.merge(alt.branch_id, main.branch_id)
"""
from __future__ import annotations

import logging
import threading

from conversation_branching.analysis.ancestry import (
    AncestryStrategy,
    calculate_divergence,
)
from conversation_branching.analysis.diff import BranchDiff, build_diff
from conversation_branching.branching.records import (
    Branch,
    BranchMessage,
    MessageMetadata,
    MessageRole,
    ValidationError,
    new_branch,
    new_branch_message,
    require_id,
    validate_branch_name,
)
from conversation_branching.branching.serializer import BranchSerializer, ExportFormat
from conversation_branching.config import BranchingConfig
from conversation_branching.merge.engine import MergeEngine, MergeRecord, MergeResult
from conversation_branching.storage.base import BranchRepository
from conversation_branching.tree.builder import (
    BranchTree,
    branch_depth,
    branch_descendants,
    build_branch_tree,
)
from conversation_branching.tree.lineage import find_lineage_ancestor, resolve_history

logger = logging.getLogger(__name__)


class BranchNotFoundError(KeyError):
    """Raised when a requested branch does not exist in the repository."""

    def __init__(self, branch_id: str) -> None:
        self.branch_id = branch_id
        super().__init__(f"Branch {branch_id!r} not found.")


class BranchManager:
    """Create and manage the branches of one conversation.

    All public methods are thread-safe.

    Parameters
    ----------
    conversation_id:
        The conversation all managed branches belong to.
    repository:
        Durable storage for branches, messages and merge records.
    config:
        Optional :class:`BranchingConfig`.  Defaults to content-based
        ancestry and no source deactivation.
    engine:
        Optional :class:`MergeEngine`.
    """

    def __init__(
        self,
        conversation_id: str,
        repository: BranchRepository,
        config: BranchingConfig | None = None,
        engine: MergeEngine | None = None,
    ) -> None:
        require_id(conversation_id, "conversation_id")
        self._conversation_id = conversation_id
        self._repository = repository
        self._config = config or BranchingConfig()
        self._engine = engine or MergeEngine()
        self._serializer = BranchSerializer()
        self._active_branch_id: str | None = None
        self._lock = threading.RLock()
        self._merge_locks: dict[str, threading.Lock] = {}

    @property
    def conversation_id(self) -> str:
        return self._conversation_id

    @property
    def config(self) -> BranchingConfig:
        return self._config

    @property
    def active_branch_id(self) -> str | None:
        with self._lock:
            return self._active_branch_id

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_branch(self, branch_id: str) -> Branch:
        """Return the branch with *branch_id*.

        Raises
        ------
        BranchNotFoundError
            If the branch does not exist in the repository.
        ValidationError
            If the branch belongs to another conversation.
        """
        if not self._repository.branch_exists(branch_id):
            raise BranchNotFoundError(branch_id)
        branch = self._repository.get_branch(branch_id)
        if branch.conversation_id != self._conversation_id:
            raise ValidationError(
                f"Branch {branch_id!r} belongs to conversation "
                f"{branch.conversation_id!r}, not {self._conversation_id!r}."
            )
        return branch

    def list_branches(self, *, active_only: bool = False) -> list[Branch]:
        """Return the conversation's branches in creation order."""
        branches = self._repository.list_branches(self._conversation_id)
        if active_only:
            branches = [b for b in branches if b.is_active]
        return branches

    def get_messages(self, branch_id: str) -> list[BranchMessage]:
        """Return the stored messages of *branch_id*, ordered by index."""
        self.get_branch(branch_id)
        return self._repository.list_messages(branch_id)

    def history(self, branch_id: str) -> list[BranchMessage]:
        """Return the logical history of *branch_id*, inherited prefix included."""
        branch = self.get_branch(branch_id)
        branches = self.list_branches()
        messages = {b.branch_id: self._repository.list_messages(b.branch_id) for b in branches}
        return resolve_history(branch, branches, messages)

    # ------------------------------------------------------------------
    # Branch lifecycle
    # ------------------------------------------------------------------

    def create_branch(
        self,
        name: str,
        description: str = "",
        *,
        from_message_index: int | None = None,
        parent_branch_id: str | None = None,
        tags: list[str] | None = None,
    ) -> Branch:
        """Create and persist a new branch.

        Parameters
        ----------
        name:
            Branch name (2 to 100 letters, digits, spaces, hyphens or
            underscores).
        description:
            Free text.
        from_message_index:
            Fork point in the parent's message sequence (its logical
            history under the lineage strategy).
        parent_branch_id:
            Explicit parent.  Defaults to the active branch, if any.
        tags:
            Initial labels.

        Returns
        -------
        Branch

        Raises
        ------
        ValidationError
            If *name* is invalid or the fork index lies beyond the parent's
            messages.
        BranchNotFoundError
            If *parent_branch_id* does not exist.
        """
        validate_branch_name(name)
        with self._lock:
            parent_id = parent_branch_id or self._active_branch_id
            fork_message_id: str | None = None
            if parent_id is not None:
                parent_messages = self._comparable_messages(parent_id)
                if from_message_index is not None:
                    if from_message_index > len(parent_messages):
                        raise ValidationError(
                            f"from_message_index {from_message_index} exceeds the "
                            f"{len(parent_messages)} messages of branch {parent_id!r}."
                        )
                    if from_message_index > 0:
                        fork_message_id = parent_messages[from_message_index - 1].message_id

            branch = new_branch(
                self._conversation_id,
                name,
                description,
                from_message_index,
                parent_id,
                created_from_message_id=fork_message_id,
                tags=tags,
            )
            self._repository.save_branch(branch)

        logger.debug(
            "BranchManager: created branch %r (%s) parent=%r fork=%r",
            branch.branch_id,
            branch.name,
            parent_id,
            from_message_index,
        )
        return branch

    def append_message(
        self,
        branch_id: str,
        role: MessageRole | str,
        content: str,
        metadata: MessageMetadata | dict[str, object] | None = None,
    ) -> BranchMessage:
        """Append a message at the next index of *branch_id*.

        The new index equals the number of messages already stored, which
        keeps indices contiguous.  ``message_count`` and ``updated_at`` are
        refreshed on the branch.  Appends wait for any merge that targets
        *branch_id*, so a merge never judges a sequence that changes under it.
        """
        with self._merge_lock(branch_id), self._lock:
            branch = self.get_branch(branch_id)
            next_index = len(self._repository.list_messages(branch_id))
            message = new_branch_message(
                branch_id,
                self._conversation_id,
                role,
                content,
                next_index,
                metadata,
            )
            self._repository.save_message(message)
            branch.message_count = next_index
            branch.record_append()
            self._repository.save_branch(branch)
        return message

    def rename_branch(self, branch_id: str, name: str) -> Branch:
        with self._lock:
            branch = self.get_branch(branch_id)
            branch.rename(name)
            self._repository.save_branch(branch)
        return branch

    def tag_branch(self, branch_id: str, tag: str) -> Branch:
        with self._lock:
            branch = self.get_branch(branch_id)
            branch.add_tag(tag)
            self._repository.save_branch(branch)
        return branch

    def untag_branch(self, branch_id: str, tag: str) -> Branch:
        with self._lock:
            branch = self.get_branch(branch_id)
            if branch.remove_tag(tag):
                self._repository.save_branch(branch)
        return branch

    # ------------------------------------------------------------------
    # Active branch
    # ------------------------------------------------------------------

    def switch_branch(self, branch_id: str) -> Branch:
        """Make *branch_id* the active branch and return it."""
        with self._lock:
            branch = self.get_branch(branch_id)
            self._active_branch_id = branch.branch_id
        return branch

    def active_branch(self) -> Branch | None:
        with self._lock:
            if self._active_branch_id is None:
                return None
            return self.get_branch(self._active_branch_id)

    def active_branch_messages(self) -> list[BranchMessage]:
        with self._lock:
            if self._active_branch_id is None:
                return []
            return self.get_messages(self._active_branch_id)

    # ------------------------------------------------------------------
    # Comparison
    # ------------------------------------------------------------------

    def diff(self, from_branch_id: str, to_branch_id: str) -> BranchDiff:
        """Diff two branches; *added* is relative to *from_branch_id*."""
        seq_from = self._comparable_messages(from_branch_id)
        seq_to = self._comparable_messages(to_branch_id)
        return build_diff(
            seq_from,
            seq_to,
            from_branch_id,
            to_branch_id,
            common_ancestor_index=self._ancestor_override(
                from_branch_id, to_branch_id, seq_from, seq_to
            ),
        )

    def divergence(self, branch_a_id: str, branch_b_id: str) -> int:
        """Count the messages unique to either branch."""
        seq_a = self._comparable_messages(branch_a_id)
        seq_b = self._comparable_messages(branch_b_id)
        return calculate_divergence(
            seq_a,
            seq_b,
            common_ancestor_index=self._ancestor_override(branch_a_id, branch_b_id, seq_a, seq_b),
        )

    # ------------------------------------------------------------------
    # Merge
    # ------------------------------------------------------------------

    def merge(self, source_branch_id: str, target_branch_id: str) -> MergeResult:
        """Check and record a merge of *source_branch_id* into *target_branch_id*.

        Every attempt is written to the repository's merge log.  On success
        the source branch is deactivated when the configured policy says
        so.  On conflict nothing else is written.

        Raises
        ------
        ValidationError
            If an id is blank or both ids name the same branch.
        BranchNotFoundError
            If either branch does not exist.
        """
        require_id(source_branch_id, "source_branch_id")
        require_id(target_branch_id, "target_branch_id")
        if source_branch_id == target_branch_id:
            raise ValidationError("A branch cannot be merged into itself.")

        with self._merge_lock(target_branch_id):
            source_messages = self._comparable_messages(source_branch_id)
            target_messages = self._comparable_messages(target_branch_id)
            result = self._engine.merge(
                source_messages,
                target_messages,
                source_branch_id,
                target_branch_id,
                common_ancestor_index=self._ancestor_override(
                    target_branch_id, source_branch_id, target_messages, source_messages
                ),
            )
            self._repository.record_merge(
                MergeRecord.from_result(result, self._conversation_id)
            )

            if not result.success:
                logger.info(
                    "BranchManager: merge of %r into %r rejected: %s (indices=%r)",
                    source_branch_id,
                    target_branch_id,
                    result.error,
                    result.conflict_indices,
                )
                return result

            if self._config.merge_policy.deactivate_source:
                with self._lock:
                    source = self.get_branch(source_branch_id)
                    source.deactivate()
                    self._repository.save_branch(source)

        logger.debug(
            "BranchManager: merged %r into %r as %r",
            source_branch_id,
            target_branch_id,
            result.merged_branch_id,
        )
        return result

    def list_merges(self) -> list[MergeRecord]:
        return self._repository.list_merges(self._conversation_id)

    # ------------------------------------------------------------------
    # Hierarchy
    # ------------------------------------------------------------------

    def tree(self) -> BranchTree:
        return build_branch_tree(self.list_branches())

    def depth(self, branch_id: str) -> int:
        return branch_depth(self.get_branch(branch_id), self.list_branches())

    def descendants(self, branch_id: str) -> list[Branch]:
        return branch_descendants(self.get_branch(branch_id), self.list_branches())

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def export_branch(self, branch_id: str, format: ExportFormat | None = None) -> str:
        """Serialise a branch and its messages (JSON or YAML)."""
        branch = self.get_branch(branch_id)
        messages = self._repository.list_messages(branch_id)
        return self._serializer.serialize(
            branch,
            messages,
            format=format or self._config.export_format,  # type: ignore[arg-type]
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _merge_lock(self, target_branch_id: str) -> threading.Lock:
        with self._lock:
            return self._merge_locks.setdefault(target_branch_id, threading.Lock())

    def _comparable_messages(self, branch_id: str) -> list[BranchMessage]:
        # Lineage positions refer to logical histories, not per-branch storage.
        if self._config.ancestry_strategy is AncestryStrategy.LINEAGE:
            return self.history(branch_id)
        return self.get_messages(branch_id)

    def _ancestor_override(
        self,
        branch_a_id: str,
        branch_b_id: str,
        seq_a: list[BranchMessage],
        seq_b: list[BranchMessage],
    ) -> int | None:
        """Lineage ancestor index when configured; None selects the content scan."""
        if self._config.ancestry_strategy is not AncestryStrategy.LINEAGE:
            return None
        branches = self.list_branches()
        by_id = {b.branch_id: b for b in branches}
        return find_lineage_ancestor(
            by_id[branch_a_id],
            by_id[branch_b_id],
            branches,
            limit=min(len(seq_a), len(seq_b)),
        )
