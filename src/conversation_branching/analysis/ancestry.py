"""Common-ancestor and divergence analysis over two message sequences.

Both functions are positional scans: sequences must already be ordered by
ascending ``message_index``.  Nothing is cached; callers that compare the
same pair repeatedly should memoise upstream.

Classes
-------
- AncestryStrategy  — how a shared history is detected
- CommonAncestor    — result of :func:`find_common_ancestor`

Functions
---------
- find_common_ancestor  — last index where both sequences agree
- calculate_divergence  — count of messages unique to either side (text only)
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Sequence

from conversation_branching.branching.records import BranchMessage


class AncestryStrategy(str, Enum):
    """How the shared prefix of two branches is determined.

    ``CONTENT`` compares messages position by position (role and text).
    Two unrelated branches that open with identical messages are reported
    as sharing history.

    ``LINEAGE`` follows ``parent_branch_id`` links and fork indices instead
    (see :mod:`conversation_branching.tree.lineage`).
    """

    CONTENT = "content"
    LINEAGE = "lineage"


@dataclass(frozen=True)
class CommonAncestor:
    """The last position at which two sequences agree.

    Parameters
    ----------
    index:
        Last matching index, or ``-1`` when the first messages differ
        (or either sequence is empty).
    message:
        The message at *index* taken from the first sequence, or ``None``.
    """

    index: int
    message: BranchMessage | None = None

    @property
    def divergence_point(self) -> int:
        """First index at which the sequences differ."""
        return self.index + 1

    @property
    def found(self) -> bool:
        return self.index >= 0


def _same_message(left: BranchMessage, right: BranchMessage) -> bool:
    return left.role == right.role and left.content == right.content


def _shared_content_length(
    seq_a: Sequence[BranchMessage],
    seq_b: Sequence[BranchMessage],
) -> int:
    length = 0
    for left, right in zip(seq_a, seq_b):
        if left.content != right.content:
            break
        length += 1
    return length


def find_common_ancestor(
    seq_a: Sequence[BranchMessage],
    seq_b: Sequence[BranchMessage],
) -> CommonAncestor:
    """Scan both sequences from position 0 while role and content match.

    Parameters
    ----------
    seq_a, seq_b:
        Message sequences ordered by ``message_index``.

    Returns
    -------
    CommonAncestor
        The last matching index and the message from *seq_a* at that
        index.  Symmetric in its arguments as far as ``index`` goes.
    """
    common_index = -1
    for position in range(min(len(seq_a), len(seq_b))):
        if not _same_message(seq_a[position], seq_b[position]):
            break
        common_index = position

    if common_index < 0:
        return CommonAncestor(index=-1)
    return CommonAncestor(index=common_index, message=seq_a[common_index])


def calculate_divergence(
    seq_a: Sequence[BranchMessage],
    seq_b: Sequence[BranchMessage],
    *,
    common_ancestor_index: int | None = None,
) -> int:
    """Return the number of messages unique to either side.

    ``(len(seq_a) - p) + (len(seq_b) - p)`` where ``p`` is the divergence
    point.  Display only; merge decisions never use this value.

    Without an override, ``p`` is the length of the prefix whose *content*
    matches; roles are ignored here, unlike :func:`find_common_ancestor`.

    Parameters
    ----------
    seq_a, seq_b:
        Message sequences ordered by ``message_index``.
    common_ancestor_index:
        Pre-computed ancestor index (e.g. from lineage analysis or a diff).
        When omitted the content-only scan is used.
    """
    if common_ancestor_index is None:
        point = _shared_content_length(seq_a, seq_b)
    else:
        point = clamp_divergence_point(common_ancestor_index + 1, seq_a, seq_b)
    return (len(seq_a) - point) + (len(seq_b) - point)


def clamp_divergence_point(
    point: int,
    seq_a: Sequence[BranchMessage],
    seq_b: Sequence[BranchMessage],
) -> int:
    """Keep *point* within ``[0, min(len(seq_a), len(seq_b))]``."""
    return max(0, min(point, len(seq_a), len(seq_b)))
