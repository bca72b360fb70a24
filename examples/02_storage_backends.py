#!/usr/bin/env python3
"""Example: Storage Backends

Runs the same branching workflow against the in-memory, filesystem and
SQLite repositories.

Usage:
    python examples/02_storage_backends.py

Requirements:
    pip install conversation-branching
"""
from __future__ import annotations

import tempfile
from pathlib import Path

from conversation_branching import (
    BranchManager,
    BranchRepository,
    FilesystemBranchRepository,
    InMemoryBranchRepository,
    SQLiteBranchRepository,
)


def run_workflow(label: str, repository: BranchRepository) -> None:
    manager = BranchManager("conv-storage-demo", repository)
    main = manager.create_branch("main")
    manager.switch_branch(main.branch_id)
    manager.append_message(main.branch_id, "user", "What is a branch?")
    manager.append_message(main.branch_id, "assistant", "An independent timeline.")

    fork = manager.create_branch("shorter answer", from_message_index=1)
    manager.append_message(fork.branch_id, "assistant", "A fork.")

    result = manager.merge(fork.branch_id, main.branch_id)
    print(
        f"[{label}] branches={len(manager.list_branches())} "
        f"merge_success={result.success} merges_logged={len(manager.list_merges())}"
    )


def main() -> None:
    run_workflow("memory", InMemoryBranchRepository())
    with tempfile.TemporaryDirectory() as tmp:
        run_workflow("filesystem", FilesystemBranchRepository(storage_dir=Path(tmp) / "fs"))
        run_workflow("sqlite", SQLiteBranchRepository(db_path=Path(tmp) / "branches.db"))


if __name__ == "__main__":
    main()
