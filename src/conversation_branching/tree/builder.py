"""Hierarchy views over a flat collection of branches.

Classes
-------
- BranchTree  — roots plus a parent-id to children map

Functions
---------
- build_branch_tree    — single pass partition into roots and children
- branch_depth         — levels from a branch up to its root (root = 1)
- branch_ancestors     — parent chain from a branch to its root
- branch_descendants   — breadth-first transitive children
"""
from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Iterator, Sequence

from conversation_branching.branching.records import Branch


@dataclass
class BranchTree:
    """The forest formed by one conversation's branches.

    Parameters
    ----------
    roots:
        Branches without a ``parent_branch_id``, in input order.
    children_by_parent_id:
        Direct children keyed by parent id, each list in input order.
        A parent id whose branch is absent from the input still appears
        here.
    """

    roots: list[Branch] = field(default_factory=list)
    children_by_parent_id: dict[str, list[Branch]] = field(default_factory=dict)

    def children_of(self, branch_id: str) -> list[Branch]:
        return list(self.children_by_parent_id.get(branch_id, []))

    def walk(self) -> Iterator[tuple[int, Branch]]:
        """Yield ``(level, branch)`` depth-first from each root; roots are level 0."""
        seen: set[str] = set()
        stack: list[tuple[int, Branch]] = [(0, root) for root in reversed(self.roots)]
        while stack:
            level, branch = stack.pop()
            if branch.branch_id in seen:
                continue
            seen.add(branch.branch_id)
            yield level, branch
            for child in reversed(self.children_by_parent_id.get(branch.branch_id, [])):
                stack.append((level + 1, child))

    def __len__(self) -> int:
        return len(self.roots) + sum(len(c) for c in self.children_by_parent_id.values())


def build_branch_tree(branches: Sequence[Branch]) -> BranchTree:
    """Partition *branches* into roots and a parent-id to children map."""
    tree = BranchTree()
    for branch in branches:
        if not branch.parent_branch_id:
            tree.roots.append(branch)
        else:
            tree.children_by_parent_id.setdefault(branch.parent_branch_id, []).append(branch)
    return tree


def _index_by_id(branches: Sequence[Branch]) -> dict[str, Branch]:
    return {branch.branch_id: branch for branch in branches}


def branch_ancestors(branch: Branch, all_branches: Sequence[Branch]) -> list[Branch]:
    """Return the parent chain of *branch*, nearest parent first.

    Stops at a dangling parent reference or at a repeated id, so the walk
    always terminates.
    """
    by_id = _index_by_id(all_branches)
    chain: list[Branch] = []
    seen = {branch.branch_id}
    current = branch
    while current.parent_branch_id:
        parent = by_id.get(current.parent_branch_id)
        if parent is None or parent.branch_id in seen:
            break
        chain.append(parent)
        seen.add(parent.branch_id)
        current = parent
    return chain


def branch_depth(branch: Branch, all_branches: Sequence[Branch]) -> int:
    """Count levels from *branch* up to its root; a root has depth 1.

    A dangling parent reference ends the walk with the depth reached so far.
    """
    return 1 + len(branch_ancestors(branch, all_branches))


def branch_descendants(branch: Branch, all_branches: Sequence[Branch]) -> list[Branch]:
    """Return every transitive child of *branch* in breadth-first order.

    *branch* itself is never included.
    """
    tree = build_branch_tree(all_branches)
    found: list[Branch] = []
    visited = {branch.branch_id}
    queue: deque[str] = deque([branch.branch_id])
    while queue:
        current_id = queue.popleft()
        for child in tree.children_by_parent_id.get(current_id, []):
            if child.branch_id in visited:
                continue
            visited.add(child.branch_id)
            found.append(child)
            queue.append(child.branch_id)
    return found
