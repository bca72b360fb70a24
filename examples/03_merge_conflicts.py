#!/usr/bin/env python3
"""Example: Merge Conflicts and Ancestry Strategies

Shows a rejected merge, how to read its conflict report, and how the
lineage strategy stops unrelated branches with identical text from being
treated as sharing history.

Usage:
    python examples/03_merge_conflicts.py

Requirements:
    pip install conversation-branching
"""
from __future__ import annotations

from conversation_branching import (
    AncestryStrategy,
    BranchingConfig,
    BranchManager,
    InMemoryBranchRepository,
)


def conflict_report() -> None:
    manager = BranchManager("conv-conflicts", InMemoryBranchRepository())
    target = manager.create_branch("target")
    source = manager.create_branch("source")
    manager.append_message(target.branch_id, "user", "Summarise the report.")
    manager.append_message(source.branch_id, "assistant", "Summarise the report.")

    result = manager.merge(source.branch_id, target.branch_id)
    print(f"success={result.success} error={result.error!r}")
    print(f"conflicting indices: {result.conflict_indices}")


def compare_strategies() -> None:
    for strategy in AncestryStrategy:
        manager = BranchManager(
            "conv-strategies",
            InMemoryBranchRepository(),
            BranchingConfig(ancestry_strategy=strategy),
        )
        a = manager.create_branch("first")
        b = manager.create_branch("second")
        for branch in (a, b):
            manager.append_message(branch.branch_id, "user", "Hello")
            manager.append_message(branch.branch_id, "assistant", "Hi there")
        diff = manager.diff(a.branch_id, b.branch_id)
        print(
            f"{strategy.value:>8}: common ancestor index={diff.common_ancestor_index} "
            f"divergence={manager.divergence(a.branch_id, b.branch_id)}"
        )


def main() -> None:
    conflict_report()
    compare_strategies()


if __name__ == "__main__":
    main()
