"""Contract tests run against every BranchRepository implementation."""
from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest

from conversation_branching.branching.records import new_branch, new_branch_message
from conversation_branching.merge.engine import MergeRecord
from conversation_branching.storage.base import BranchRepository
from conversation_branching.storage.filesystem import FilesystemBranchRepository
from conversation_branching.storage.memory import InMemoryBranchRepository
from conversation_branching.storage.sqlite import SQLiteBranchRepository


@pytest.fixture(params=["memory", "filesystem", "sqlite"])
def repository(request: pytest.FixtureRequest, tmp_path: Path) -> BranchRepository:
    if request.param == "memory":
        return InMemoryBranchRepository()
    if request.param == "filesystem":
        return FilesystemBranchRepository(storage_dir=tmp_path / "branches")
    return SQLiteBranchRepository(db_path=tmp_path / "branches.db")


class TestBranches:
    def test_save_and_get(self, repository: BranchRepository) -> None:
        branch = new_branch("conv-1", "main", "root", tags=["a"])
        repository.save_branch(branch)
        assert repository.branch_exists(branch.branch_id)
        assert repository.get_branch(branch.branch_id) == branch

    def test_get_missing_raises(self, repository: BranchRepository) -> None:
        with pytest.raises(KeyError):
            repository.get_branch("nope")

    def test_overwrite(self, repository: BranchRepository) -> None:
        branch = new_branch("conv-1", "main")
        repository.save_branch(branch)
        branch.rename("renamed")
        repository.save_branch(branch)
        assert repository.get_branch(branch.branch_id).name == "renamed"

    def test_list_filters_by_conversation_in_creation_order(
        self, repository: BranchRepository
    ) -> None:
        first = new_branch("conv-1", "first")
        other = new_branch("conv-2", "other")
        second = new_branch("conv-1", "second", parent_branch_id=first.branch_id)
        second.created_at = first.created_at + timedelta(seconds=1)
        for branch in (first, other, second):
            repository.save_branch(branch)
        listed = repository.list_branches("conv-1")
        assert [b.branch_id for b in listed] == [first.branch_id, second.branch_id]
        assert repository.list_branches("conv-3") == []

    def test_delete_removes_messages(self, repository: BranchRepository) -> None:
        branch = new_branch("conv-1", "main")
        repository.save_branch(branch)
        repository.save_message(new_branch_message(branch.branch_id, "conv-1", "user", "hi", 0))
        repository.delete_branch(branch.branch_id)
        assert not repository.branch_exists(branch.branch_id)
        assert repository.list_messages(branch.branch_id) == []

    def test_delete_missing_raises(self, repository: BranchRepository) -> None:
        with pytest.raises(KeyError):
            repository.delete_branch("nope")

    def test_stored_copy_is_independent(self, repository: BranchRepository) -> None:
        branch = new_branch("conv-1", "main")
        repository.save_branch(branch)
        branch.add_tag("local-only")
        assert repository.get_branch(branch.branch_id).tags == []


class TestMessages:
    def test_listed_in_index_order(self, repository: BranchRepository) -> None:
        branch = new_branch("conv-1", "main")
        repository.save_branch(branch)
        second = new_branch_message(branch.branch_id, "conv-1", "assistant", "b", 1)
        first = new_branch_message(
            branch.branch_id, "conv-1", "user", "a", 0, {"model": "m", "tokens_used": 3}
        )
        repository.save_message(second)
        repository.save_message(first)
        assert repository.list_messages(branch.branch_id) == [first, second]

    def test_save_branch_keeps_messages(self, repository: BranchRepository) -> None:
        branch = new_branch("conv-1", "main")
        repository.save_branch(branch)
        message = new_branch_message(branch.branch_id, "conv-1", "user", "a", 0)
        repository.save_message(message)
        branch.record_append()
        repository.save_branch(branch)
        assert repository.list_messages(branch.branch_id) == [message]

    def test_duplicate_index_rejected(self, repository: BranchRepository) -> None:
        branch = new_branch("conv-1", "main")
        repository.save_branch(branch)
        repository.save_message(new_branch_message(branch.branch_id, "conv-1", "user", "a", 0))
        with pytest.raises(ValueError, match="index 0"):
            repository.save_message(
                new_branch_message(branch.branch_id, "conv-1", "user", "again", 0)
            )

    def test_unknown_branch_rejected(self, repository: BranchRepository) -> None:
        with pytest.raises(KeyError):
            repository.save_message(new_branch_message("ghost", "conv-1", "user", "a", 0))

    def test_unknown_branch_lists_empty(self, repository: BranchRepository) -> None:
        assert repository.list_messages("ghost") == []


class TestMerges:
    def test_record_and_list(self, repository: BranchRepository) -> None:
        ok = MergeRecord(
            conversation_id="conv-1",
            source_branch_id="s",
            target_branch_id="t",
            merged_branch_id="m",
        )
        rejected = MergeRecord(
            conversation_id="conv-1",
            source_branch_id="s",
            target_branch_id="t",
            conflict_count=2,
            conflict_indices=[1, 3],
        )
        elsewhere = MergeRecord(
            conversation_id="conv-2", source_branch_id="x", target_branch_id="y"
        )
        for record in (ok, rejected, elsewhere):
            repository.record_merge(record)

        listed = repository.list_merges("conv-1")
        assert [r.merge_id for r in listed] == [ok.merge_id, rejected.merge_id]
        assert listed[1].conflict_indices == [1, 3]
        assert not listed[1].succeeded

    def test_empty_log(self, repository: BranchRepository) -> None:
        assert repository.list_merges("conv-1") == []
