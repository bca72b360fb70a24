"""Lineage-based shared history: parent pointers plus fork indices.

A branch forked from its parent at ``created_from_message_index = k``
inherits the first ``k`` messages of the parent's logical history and then
continues with its own.  A branch without a fork index inherits nothing.
Two branches therefore share the shorter of their inherited prefixes from
their lowest common ancestor branch, whatever the message text says.

Functions
---------
- lineage_shared_prefix  — number of shared leading messages (None = unbounded)
- find_lineage_ancestor  — last shared index, ``-1`` when unrelated
- resolve_history        — materialise a branch's logical message history
"""
from __future__ import annotations

from typing import Mapping, Sequence

from conversation_branching.branching.records import Branch, BranchMessage
from conversation_branching.tree.builder import branch_ancestors


def _fork_length(branch: Branch) -> int:
    return branch.created_from_message_index or 0


def _inherited_from(path: list[Branch], stop: int) -> int | None:
    """Smallest fork length among ``path[:stop]``; None when *stop* is 0."""
    if stop == 0:
        return None
    return min(_fork_length(branch) for branch in path[:stop])


def lineage_shared_prefix(
    branch_a: Branch,
    branch_b: Branch,
    all_branches: Sequence[Branch],
) -> int | None:
    """Return how many leading messages the two branches share by lineage.

    ``None`` means unbounded (the same branch).  ``0`` is returned for
    branches of different conversations or different trees.
    """
    if branch_a.conversation_id != branch_b.conversation_id:
        return 0
    if branch_a.branch_id == branch_b.branch_id:
        return None

    path_a = [branch_a, *branch_ancestors(branch_a, all_branches)]
    path_b = [branch_b, *branch_ancestors(branch_b, all_branches)]
    position_in_a = {branch.branch_id: pos for pos, branch in enumerate(path_a)}

    for pos_b, candidate in enumerate(path_b):
        pos_a = position_in_a.get(candidate.branch_id)
        if pos_a is None:
            continue
        bounds = [
            bound
            for bound in (_inherited_from(path_a, pos_a), _inherited_from(path_b, pos_b))
            if bound is not None
        ]
        return min(bounds)
    return 0


def find_lineage_ancestor(
    branch_a: Branch,
    branch_b: Branch,
    all_branches: Sequence[Branch],
    *,
    limit: int | None = None,
) -> int:
    """Return the last message index both branches share by lineage.

    Parameters
    ----------
    branch_a, branch_b:
        The branches to compare.
    all_branches:
        The conversation's branches, used to follow parent links.
    limit:
        Upper bound on the shared length, typically the shorter sequence
        length.  For a branch compared with itself the bound defaults to
        its ``message_count``.

    Returns
    -------
    int
        Last shared index, or ``-1`` when nothing is shared.
    """
    shared = lineage_shared_prefix(branch_a, branch_b, all_branches)
    if shared is None:
        shared = branch_a.message_count if limit is None else limit
    if limit is not None:
        shared = min(shared, limit)
    return max(shared, 0) - 1


def resolve_history(
    branch: Branch,
    all_branches: Sequence[Branch],
    messages_by_branch: Mapping[str, Sequence[BranchMessage]],
) -> list[BranchMessage]:
    """Build the logical history of *branch*: inherited prefix + own messages.

    Returned messages are copies re-indexed ``0..n-1`` in history order;
    each keeps the ``branch_id`` of the branch that stored it.
    """
    chain = [branch, *branch_ancestors(branch, all_branches)]
    chain.reverse()

    history: list[BranchMessage] = []
    for position, node in enumerate(chain):
        own = list(messages_by_branch.get(node.branch_id, []))
        if position == 0:
            history = own
        else:
            history = history[: _fork_length(node)] + own

    return [
        message
        if message.message_index == index
        else message.model_copy(update={"message_index": index})
        for index, message in enumerate(history)
    ]
