"""Unit tests for conversation_branching.config."""
from __future__ import annotations

from pathlib import Path

import pytest

from conversation_branching.analysis.ancestry import AncestryStrategy
from conversation_branching.config import BranchingConfig, load_config


class TestBranchingConfig:
    def test_defaults(self) -> None:
        cfg = BranchingConfig()
        assert cfg.ancestry_strategy is AncestryStrategy.CONTENT
        assert cfg.deactivate_source_on_merge is False
        assert cfg.export_format == "json"
        assert cfg.merge_policy.deactivate_source is False

    def test_frozen(self) -> None:
        cfg = BranchingConfig()
        with pytest.raises(Exception):
            cfg.export_format = "yaml"  # type: ignore[misc]

    def test_strategy_coerced_from_string(self) -> None:
        assert BranchingConfig(ancestry_strategy="lineage").ancestry_strategy is (  # type: ignore[arg-type]
            AncestryStrategy.LINEAGE
        )

    def test_unknown_strategy(self) -> None:
        with pytest.raises(ValueError, match="ancestry_strategy"):
            BranchingConfig(ancestry_strategy="guess")  # type: ignore[arg-type]

    def test_unknown_export_format(self) -> None:
        with pytest.raises(ValueError, match="export_format"):
            BranchingConfig(export_format="xml")

    def test_deactivate_must_be_bool(self) -> None:
        with pytest.raises(ValueError, match="deactivate_source_on_merge"):
            BranchingConfig(deactivate_source_on_merge="yes")  # type: ignore[arg-type]

    def test_merge_policy(self) -> None:
        assert BranchingConfig(deactivate_source_on_merge=True).merge_policy.deactivate_source

    def test_from_mapping_rejects_unknown_keys(self) -> None:
        with pytest.raises(ValueError, match="Unknown configuration keys: colour"):
            BranchingConfig.from_mapping({"colour": "red"})


class TestLoadConfig:
    def test_none_returns_defaults(self) -> None:
        assert load_config() == BranchingConfig()

    def test_reads_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "branching.yaml"
        path.write_text(
            "ancestry_strategy: lineage\n"
            "deactivate_source_on_merge: true\n"
            "export_format: yaml\n",
            encoding="utf-8",
        )
        cfg = load_config(path)
        assert cfg.ancestry_strategy is AncestryStrategy.LINEAGE
        assert cfg.deactivate_source_on_merge is True
        assert cfg.export_format == "yaml"

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config(path) == BranchingConfig()

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "absent.yaml")

    def test_not_a_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ValueError, match="mapping"):
            load_config(path)
