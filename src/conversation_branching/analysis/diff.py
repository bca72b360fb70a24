"""Directional diff between two branch message sequences.

Classes
-------
- BranchDiff  — added/removed messages relative to a common ancestor

Functions
---------
- build_diff  — compute a :class:`BranchDiff`
"""
from __future__ import annotations

from typing import Sequence

from pydantic import BaseModel, Field

from conversation_branching.analysis.ancestry import (
    clamp_divergence_point,
    find_common_ancestor,
)
from conversation_branching.branching.records import BranchMessage


class BranchDiff(BaseModel):
    """What changes when turning the *from* branch into the *to* branch.

    ``added_messages`` exist only on the *to* side; ``removed_messages``
    exist only on the *from* side.  Swapping the two branches swaps the
    meaning of both lists.
    """

    from_branch_id: str
    to_branch_id: str
    common_ancestor_index: int
    divergence_point: int
    added_messages: list[BranchMessage] = Field(default_factory=list)
    removed_messages: list[BranchMessage] = Field(default_factory=list)

    model_config = {"frozen": True}

    @property
    def is_identical(self) -> bool:
        """True when neither side has messages beyond the shared prefix."""
        return not self.added_messages and not self.removed_messages

    @property
    def change_count(self) -> int:
        return len(self.added_messages) + len(self.removed_messages)


def build_diff(
    seq_from: Sequence[BranchMessage],
    seq_to: Sequence[BranchMessage],
    from_branch_id: str,
    to_branch_id: str,
    *,
    common_ancestor_index: int | None = None,
) -> BranchDiff:
    """Diff *seq_from* against *seq_to*.

    Parameters
    ----------
    seq_from, seq_to:
        Message sequences ordered by ``message_index``.
    from_branch_id, to_branch_id:
        Identifiers copied onto the result.
    common_ancestor_index:
        Override for the shared-prefix position, e.g. from lineage
        analysis.  Clamped to the sequence lengths.  When omitted the
        positional content scan decides.

    Returns
    -------
    BranchDiff
        ``added_messages == seq_to[divergence_point:]`` and
        ``removed_messages == seq_from[divergence_point:]``.
    """
    if common_ancestor_index is None:
        common_ancestor_index = find_common_ancestor(seq_from, seq_to).index
    else:
        common_ancestor_index = (
            clamp_divergence_point(common_ancestor_index + 1, seq_from, seq_to) - 1
        )
    divergence_point = common_ancestor_index + 1

    return BranchDiff(
        from_branch_id=from_branch_id,
        to_branch_id=to_branch_id,
        common_ancestor_index=common_ancestor_index,
        divergence_point=divergence_point,
        added_messages=list(seq_to[divergence_point:]),
        removed_messages=list(seq_from[divergence_point:]),
    )
