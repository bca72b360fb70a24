"""Merge engine — conflict detection and authorisation for branch merges.

Design
------
A merge of a *source* branch into a *target* branch is a check, not a text
merge.  The engine diffs target against source, then walks every position
past the divergence point that exists on both sides.  A position is a
conflict only when the two messages have different roles; same-role
messages with different text are accepted as compatible rewrites.

When conflicts exist the result carries their count and indices and
nothing else happens.  Otherwise a fresh id is allocated for the merged
branch.  The engine never builds the merged message sequence and never
touches storage.

Usage
-----
::

    from conversation_branching.merge import MergeEngine

    result = MergeEngine().merge(source_msgs, target_msgs, "b-src", "b-tgt")
    if not result.success:
        print(result.error, result.conflict_indices)
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Sequence
from uuid import uuid4

from pydantic import BaseModel, Field

from conversation_branching.analysis.ancestry import calculate_divergence
from conversation_branching.analysis.diff import BranchDiff, build_diff
from conversation_branching.branching.records import BranchMessage, require_id

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Policy
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MergePolicy:
    """What the caller does with a successful merge.

    Parameters
    ----------
    deactivate_source:
        Mark the source branch inactive after a successful merge.
        Never applied when the merge is rejected.
    """

    deactivate_source: bool = False


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class MergeResult(BaseModel):
    """Outcome of :meth:`MergeEngine.merge`.

    Parameters
    ----------
    success:
        False when at least one conflict was found.
    source_branch_id, target_branch_id:
        The branches that were compared.
    merged_branch_id:
        Freshly allocated id, present only on success.
    error:
        Human-readable reason, present only on failure.
    conflict_count:
        Number of conflicting positions.
    conflict_indices:
        The conflicting positions in ascending order.
    divergence_point:
        First index past the shared prefix.
    divergence:
        Messages unique to either side, for display.
    """

    success: bool
    source_branch_id: str
    target_branch_id: str
    merged_branch_id: str | None = None
    error: str | None = None
    conflict_count: int = 0
    conflict_indices: list[int] = Field(default_factory=list)
    divergence_point: int = 0
    divergence: int = 0

    model_config = {"frozen": True}


class MergeRecord(BaseModel):
    """A logged merge attempt, successful or not."""

    merge_id: str = Field(default_factory=lambda: str(uuid4()))
    conversation_id: str
    source_branch_id: str
    target_branch_id: str
    merged_branch_id: str | None = None
    conflict_count: int = 0
    conflict_indices: list[int] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def succeeded(self) -> bool:
        return self.merged_branch_id is not None

    @classmethod
    def from_result(cls, result: MergeResult, conversation_id: str) -> "MergeRecord":
        return cls(
            conversation_id=conversation_id,
            source_branch_id=result.source_branch_id,
            target_branch_id=result.target_branch_id,
            merged_branch_id=result.merged_branch_id,
            conflict_count=result.conflict_count,
            conflict_indices=list(result.conflict_indices),
        )


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def find_role_conflicts(
    source: Sequence[BranchMessage],
    target: Sequence[BranchMessage],
    start: int,
) -> list[int]:
    """Return positions >= *start* where both sides exist with different roles."""
    return [
        position
        for position in range(max(start, 0), min(len(source), len(target)))
        if source[position].role != target[position].role
    ]


class MergeEngine:
    """Stateless merge checker.

    Holds no mutable state, so one instance may be shared between threads.
    Serialising concurrent merges into the same target is the caller's job.
    """

    def merge(
        self,
        source_messages: Sequence[BranchMessage],
        target_messages: Sequence[BranchMessage],
        source_branch_id: str,
        target_branch_id: str,
        *,
        common_ancestor_index: int | None = None,
    ) -> MergeResult:
        """Check whether *source* can be merged into *target*.

        Parameters
        ----------
        source_messages, target_messages:
            Fresh sequences ordered by ``message_index``.
        source_branch_id, target_branch_id:
            Identifiers of the two branches.  Must not be blank.
        common_ancestor_index:
            Optional shared-prefix override (lineage analysis).

        Returns
        -------
        MergeResult
            ``success=False`` with conflict details, or ``success=True`` with
            a new ``merged_branch_id``.  Empty inputs merge successfully.

        Raises
        ------
        ValidationError
            If either branch id is blank.
        """
        require_id(source_branch_id, "source_branch_id")
        require_id(target_branch_id, "target_branch_id")

        diff = self.preview(
            source_messages,
            target_messages,
            source_branch_id,
            target_branch_id,
            common_ancestor_index=common_ancestor_index,
        )
        conflicts = find_role_conflicts(
            source_messages, target_messages, diff.divergence_point
        )
        divergence = calculate_divergence(
            target_messages,
            source_messages,
            common_ancestor_index=diff.common_ancestor_index,
        )

        if conflicts:
            logger.debug(
                "MergeEngine: %d conflict(s) merging %r into %r at %r",
                len(conflicts),
                source_branch_id,
                target_branch_id,
                conflicts,
            )
            return MergeResult(
                success=False,
                source_branch_id=source_branch_id,
                target_branch_id=target_branch_id,
                error=f"Merge conflict: {len(conflicts)} conflicting messages found",
                conflict_count=len(conflicts),
                conflict_indices=conflicts,
                divergence_point=diff.divergence_point,
                divergence=divergence,
            )

        return MergeResult(
            success=True,
            source_branch_id=source_branch_id,
            target_branch_id=target_branch_id,
            merged_branch_id=str(uuid4()),
            conflict_count=0,
            divergence_point=diff.divergence_point,
            divergence=divergence,
        )

    @staticmethod
    def preview(
        source_messages: Sequence[BranchMessage],
        target_messages: Sequence[BranchMessage],
        source_branch_id: str,
        target_branch_id: str,
        *,
        common_ancestor_index: int | None = None,
    ) -> BranchDiff:
        """Return the target-to-source diff a merge would be judged on."""
        return build_diff(
            target_messages,
            source_messages,
            target_branch_id,
            source_branch_id,
            common_ancestor_index=common_ancestor_index,
        )


_DEFAULT_ENGINE = MergeEngine()


def merge_branches(
    source_messages: Sequence[BranchMessage],
    target_messages: Sequence[BranchMessage],
    source_branch_id: str,
    target_branch_id: str,
    *,
    common_ancestor_index: int | None = None,
) -> MergeResult:
    """Module-level shortcut for :meth:`MergeEngine.merge`."""
    return _DEFAULT_ENGINE.merge(
        source_messages,
        target_messages,
        source_branch_id,
        target_branch_id,
        common_ancestor_index=common_ancestor_index,
    )
