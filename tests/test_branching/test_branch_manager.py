"""Tests for conversation_branching.branching.manager."""
from __future__ import annotations

import threading

import pytest

from conversation_branching.analysis.ancestry import AncestryStrategy
from conversation_branching.branching.manager import BranchManager, BranchNotFoundError
from conversation_branching.branching.records import Branch, ValidationError
from conversation_branching.branching.serializer import BranchSerializer
from conversation_branching.config import BranchingConfig
from conversation_branching.storage.memory import InMemoryBranchRepository


# ---------------------------------------------------------------------------
# Fixtures / helpers
# ---------------------------------------------------------------------------


@pytest.fixture()
def repository() -> InMemoryBranchRepository:
    return InMemoryBranchRepository()


@pytest.fixture()
def manager(repository: InMemoryBranchRepository) -> BranchManager:
    return BranchManager("conv-1", repository)


def _fill(manager: BranchManager, branch: Branch, *contents: str) -> None:
    roles = ("user", "assistant")
    for i, content in enumerate(contents):
        manager.append_message(branch.branch_id, roles[i % 2], content)


# ===========================================================================
# Construction
# ===========================================================================


class TestConstruction:
    def test_empty_conversation_id_raises(self, repository: InMemoryBranchRepository) -> None:
        with pytest.raises(ValidationError, match="conversation_id"):
            BranchManager("", repository)

    def test_defaults(self, manager: BranchManager) -> None:
        assert manager.conversation_id == "conv-1"
        assert manager.active_branch_id is None
        assert manager.active_branch() is None
        assert manager.active_branch_messages() == []
        assert manager.config.ancestry_strategy is AncestryStrategy.CONTENT


# ===========================================================================
# Branch creation
# ===========================================================================


class TestCreateBranch:
    def test_root_branch(self, manager: BranchManager) -> None:
        main = manager.create_branch("main", "root line", tags=["draft"])
        assert main.is_root
        assert main.is_active
        assert main.message_count == 0
        assert main.tags == ["draft"]
        assert manager.get_branch(main.branch_id) == main

    def test_invalid_name(self, manager: BranchManager) -> None:
        with pytest.raises(ValidationError):
            manager.create_branch("bad!name")

    def test_parent_defaults_to_active_branch(self, manager: BranchManager) -> None:
        main = manager.create_branch("main")
        manager.switch_branch(main.branch_id)
        child = manager.create_branch("child")
        assert child.parent_branch_id == main.branch_id

    def test_no_auto_switch(self, manager: BranchManager) -> None:
        main = manager.create_branch("main")
        assert manager.active_branch_id is None
        manager.switch_branch(main.branch_id)
        manager.create_branch("child")
        assert manager.active_branch_id == main.branch_id

    def test_fork_records_message_id(self, manager: BranchManager) -> None:
        main = manager.create_branch("main")
        _fill(manager, main, "m0", "m1", "m2")
        fork = manager.create_branch(
            "fork", from_message_index=2, parent_branch_id=main.branch_id
        )
        messages = manager.get_messages(main.branch_id)
        assert fork.created_from_message_index == 2
        assert fork.created_from_message_id == messages[1].message_id

    def test_fork_at_zero_has_no_message_id(self, manager: BranchManager) -> None:
        main = manager.create_branch("main")
        _fill(manager, main, "m0")
        fork = manager.create_branch(
            "fork", from_message_index=0, parent_branch_id=main.branch_id
        )
        assert fork.created_from_message_id is None

    def test_fork_beyond_parent_rejected(self, manager: BranchManager) -> None:
        main = manager.create_branch("main")
        _fill(manager, main, "m0")
        with pytest.raises(ValidationError, match="exceeds"):
            manager.create_branch("fork", from_message_index=2, parent_branch_id=main.branch_id)

    def test_unknown_parent(self, manager: BranchManager) -> None:
        with pytest.raises(BranchNotFoundError):
            manager.create_branch("fork", parent_branch_id="ghost")


# ===========================================================================
# Messages
# ===========================================================================


class TestAppendMessage:
    def test_indices_are_contiguous(self, manager: BranchManager) -> None:
        main = manager.create_branch("main")
        _fill(manager, main, "a", "b", "c")
        messages = manager.get_messages(main.branch_id)
        assert [m.message_index for m in messages] == [0, 1, 2]
        assert [m.content for m in messages] == ["a", "b", "c"]
        assert all(m.conversation_id == "conv-1" for m in messages)

    def test_message_count_tracks_live_count(self, manager: BranchManager) -> None:
        main = manager.create_branch("main")
        before = manager.get_branch(main.branch_id).updated_at
        _fill(manager, main, "a", "b")
        stored = manager.get_branch(main.branch_id)
        assert stored.message_count == 2
        assert stored.updated_at >= before

    def test_metadata(self, manager: BranchManager) -> None:
        main = manager.create_branch("main")
        message = manager.append_message(
            main.branch_id, "assistant", "hi", {"model": "m-1", "tokens_used": 12}
        )
        assert message.metadata is not None
        assert message.metadata.model == "m-1"
        assert message.metadata.tokens_used == 12

    def test_unknown_role(self, manager: BranchManager) -> None:
        main = manager.create_branch("main")
        with pytest.raises(ValidationError):
            manager.append_message(main.branch_id, "system", "nope")
        assert manager.get_branch(main.branch_id).message_count == 0

    def test_unknown_branch(self, manager: BranchManager) -> None:
        with pytest.raises(BranchNotFoundError):
            manager.append_message("ghost", "user", "hi")

    def test_concurrent_appends_stay_contiguous(self, manager: BranchManager) -> None:
        main = manager.create_branch("main")

        def worker() -> None:
            for _ in range(10):
                manager.append_message(main.branch_id, "user", "x")

        threads = [threading.Thread(target=worker) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        messages = manager.get_messages(main.branch_id)
        assert [m.message_index for m in messages] == list(range(50))
        assert manager.get_branch(main.branch_id).message_count == 50

    def test_append_waits_for_merge_into_same_branch(self, manager: BranchManager) -> None:
        target = manager.create_branch("target")
        appended = threading.Event()

        def worker() -> None:
            manager.append_message(target.branch_id, "user", "late")
            appended.set()

        merge_lock = manager._merge_lock(target.branch_id)
        with merge_lock:
            thread = threading.Thread(target=worker)
            thread.start()
            assert not appended.wait(timeout=0.2)
            assert manager.get_branch(target.branch_id).message_count == 0
        thread.join(timeout=5)
        assert appended.is_set()
        assert manager.get_branch(target.branch_id).message_count == 1

    def test_active_branch_messages(self, manager: BranchManager) -> None:
        main = manager.create_branch("main")
        manager.switch_branch(main.branch_id)
        _fill(manager, main, "a")
        assert [m.content for m in manager.active_branch_messages()] == ["a"]
        assert manager.active_branch() == manager.get_branch(main.branch_id)


# ===========================================================================
# Lookups and labels
# ===========================================================================


class TestLookups:
    def test_other_conversation_rejected(self, repository: InMemoryBranchRepository) -> None:
        other = BranchManager("conv-2", repository).create_branch("theirs")
        with pytest.raises(ValidationError, match="conv-2"):
            BranchManager("conv-1", repository).get_branch(other.branch_id)

    def test_list_branches(self, manager: BranchManager) -> None:
        main = manager.create_branch("main")
        side = manager.create_branch("side")
        assert [b.branch_id for b in manager.list_branches()] == [main.branch_id, side.branch_id]

    def test_rename_and_tags(self, manager: BranchManager) -> None:
        main = manager.create_branch("main")
        manager.rename_branch(main.branch_id, "trunk")
        manager.tag_branch(main.branch_id, "keep")
        assert manager.get_branch(main.branch_id).name == "trunk"
        assert manager.get_branch(main.branch_id).tags == ["keep"]
        manager.untag_branch(main.branch_id, "keep")
        assert manager.get_branch(main.branch_id).tags == []

    def test_rename_validates(self, manager: BranchManager) -> None:
        main = manager.create_branch("main")
        with pytest.raises(ValidationError):
            manager.rename_branch(main.branch_id, "x")


# ===========================================================================
# Diff / divergence
# ===========================================================================


class TestComparison:
    def test_diff(self, manager: BranchManager) -> None:
        a = manager.create_branch("aa")
        b = manager.create_branch("bb")
        _fill(manager, a, "hi", "from a")
        _fill(manager, b, "hi", "from b", "more b")
        diff = manager.diff(a.branch_id, b.branch_id)
        assert diff.common_ancestor_index == 0
        assert [m.content for m in diff.added_messages] == ["from b", "more b"]
        assert [m.content for m in diff.removed_messages] == ["from a"]
        assert manager.divergence(a.branch_id, b.branch_id) == 3

    def test_identical_branches(self, manager: BranchManager) -> None:
        a = manager.create_branch("aa")
        b = manager.create_branch("bb")
        _fill(manager, a, "hi", "there")
        _fill(manager, b, "hi", "there")
        assert manager.diff(a.branch_id, b.branch_id).is_identical
        assert manager.divergence(a.branch_id, b.branch_id) == 0


# ===========================================================================
# Merge
# ===========================================================================


class TestMerge:
    def test_fork_scenario_merges(self, manager: BranchManager) -> None:
        root = manager.create_branch("root")
        manager.switch_branch(root.branch_id)
        _fill(manager, root, "m0", "m1", "m2", "m3")
        b1 = manager.create_branch("b1", from_message_index=2)
        _fill(manager, b1, "m2", "m3 prime", "m4 prime")

        result = manager.merge(b1.branch_id, root.branch_id)
        assert result.success is True
        assert result.conflict_count == 0
        assert result.merged_branch_id

        records = manager.list_merges()
        assert len(records) == 1
        assert records[0].merged_branch_id == result.merged_branch_id

    def test_conflict_changes_nothing_but_log(self, manager: BranchManager) -> None:
        target = manager.create_branch("target")
        source = manager.create_branch("source")
        manager.append_message(target.branch_id, "user", "hi")
        manager.append_message(source.branch_id, "assistant", "hi")
        before = (manager.get_branch(source.branch_id), manager.get_branch(target.branch_id))

        result = manager.merge(source.branch_id, target.branch_id)
        assert result.success is False
        assert result.conflict_indices == [0]
        assert (
            manager.get_branch(source.branch_id),
            manager.get_branch(target.branch_id),
        ) == before
        [record] = manager.list_merges()
        assert not record.succeeded
        assert record.conflict_indices == [0]

    def test_deactivate_source_policy(self, repository: InMemoryBranchRepository) -> None:
        manager = BranchManager(
            "conv-1", repository, BranchingConfig(deactivate_source_on_merge=True)
        )
        target = manager.create_branch("target")
        source = manager.create_branch("source")
        assert manager.merge(source.branch_id, target.branch_id).success
        assert manager.get_branch(source.branch_id).is_active is False
        assert manager.list_branches(active_only=True) == [manager.get_branch(target.branch_id)]

    def test_source_stays_active_by_default(self, manager: BranchManager) -> None:
        target = manager.create_branch("target")
        source = manager.create_branch("source")
        manager.merge(source.branch_id, target.branch_id)
        assert manager.get_branch(source.branch_id).is_active

    def test_self_merge_rejected(self, manager: BranchManager) -> None:
        main = manager.create_branch("main")
        with pytest.raises(ValidationError):
            manager.merge(main.branch_id, main.branch_id)

    def test_blank_id_rejected(self, manager: BranchManager) -> None:
        main = manager.create_branch("main")
        with pytest.raises(ValidationError):
            manager.merge("", main.branch_id)

    def test_unknown_branch(self, manager: BranchManager) -> None:
        main = manager.create_branch("main")
        with pytest.raises(BranchNotFoundError):
            manager.merge("ghost", main.branch_id)
        assert manager.list_merges() == []


# ===========================================================================
# Lineage strategy
# ===========================================================================


class TestLineageStrategy:
    @pytest.fixture()
    def lineage(self, repository: InMemoryBranchRepository) -> BranchManager:
        return BranchManager(
            "conv-1", repository, BranchingConfig(ancestry_strategy="lineage")
        )

    def test_history_includes_inherited_prefix(self, lineage: BranchManager) -> None:
        root = lineage.create_branch("root")
        _fill(lineage, root, "m0", "m1", "m2", "m3")
        b1 = lineage.create_branch(
            "b1", from_message_index=2, parent_branch_id=root.branch_id
        )
        _fill(lineage, b1, "x0", "x1")
        history = lineage.history(b1.branch_id)
        assert [m.content for m in history] == ["m0", "m1", "x0", "x1"]

    def test_diff_follows_fork_point(self, lineage: BranchManager) -> None:
        root = lineage.create_branch("root")
        _fill(lineage, root, "m0", "m1", "m2", "m3")
        b1 = lineage.create_branch(
            "b1", from_message_index=2, parent_branch_id=root.branch_id
        )
        _fill(lineage, b1, "x0", "x1", "x2")

        diff = lineage.diff(root.branch_id, b1.branch_id)
        assert diff.common_ancestor_index == 1
        assert [m.content for m in diff.added_messages] == ["x0", "x1", "x2"]
        assert [m.content for m in diff.removed_messages] == ["m2", "m3"]
        assert lineage.merge(b1.branch_id, root.branch_id).success

    def test_identical_text_is_not_shared(self, lineage: BranchManager) -> None:
        a = lineage.create_branch("aa")
        b = lineage.create_branch("bb")
        _fill(lineage, a, "hi", "there")
        _fill(lineage, b, "hi", "there")
        diff = lineage.diff(a.branch_id, b.branch_id)
        assert diff.common_ancestor_index == -1
        assert lineage.divergence(a.branch_id, b.branch_id) == 4

    def test_fork_index_checked_against_history(self, lineage: BranchManager) -> None:
        root = lineage.create_branch("root")
        _fill(lineage, root, "m0", "m1", "m2")
        b1 = lineage.create_branch(
            "b1", from_message_index=2, parent_branch_id=root.branch_id
        )
        _fill(lineage, b1, "x0")
        grandchild = lineage.create_branch(
            "b2", from_message_index=3, parent_branch_id=b1.branch_id
        )
        assert grandchild.created_from_message_index == 3
        with pytest.raises(ValidationError):
            lineage.create_branch("b3", from_message_index=4, parent_branch_id=b1.branch_id)


# ===========================================================================
# Hierarchy and export
# ===========================================================================


class TestHierarchy:
    def test_tree_depth_descendants(self, manager: BranchManager) -> None:
        root = manager.create_branch("root")
        b1 = manager.create_branch("b1", parent_branch_id=root.branch_id)
        b2 = manager.create_branch("b2", parent_branch_id=b1.branch_id)
        tree = manager.tree()
        assert [b.branch_id for b in tree.roots] == [root.branch_id]
        assert manager.depth(b2.branch_id) == 3
        assert {b.branch_id for b in manager.descendants(root.branch_id)} == {
            b1.branch_id,
            b2.branch_id,
        }

    def test_export_round_trip(self, manager: BranchManager) -> None:
        main = manager.create_branch("main")
        _fill(manager, main, "a", "b")
        serializer = BranchSerializer()
        exported = serializer.from_json(manager.export_branch(main.branch_id))
        assert exported.branch.branch_id == main.branch_id
        assert [m.content for m in exported.messages] == ["a", "b"]
        yaml_doc = manager.export_branch(main.branch_id, "yaml")
        assert serializer.from_yaml(yaml_doc).branch.message_count == 2

    def test_export_uses_configured_format(self, repository: InMemoryBranchRepository) -> None:
        manager = BranchManager("conv-1", repository, BranchingConfig(export_format="yaml"))
        main = manager.create_branch("main")
        assert manager.export_branch(main.branch_id).startswith("branch:")
