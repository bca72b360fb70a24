"""Configuration for the branching service.

Classes
-------
BranchingConfig
    Immutable settings consumed by :class:`~conversation_branching.branching.manager.BranchManager`
    and the CLI.

Functions
---------
load_config
    Read a :class:`BranchingConfig` from a YAML file.
"""
from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path

import yaml

from conversation_branching.analysis.ancestry import AncestryStrategy
from conversation_branching.merge.engine import MergePolicy

_EXPORT_FORMATS = ("json", "yaml")


@dataclass(frozen=True)
class BranchingConfig:
    """Settings controlling ancestry detection, merges and exports.

    Parameters
    ----------
    ancestry_strategy:
        ``CONTENT`` compares messages position by position (default);
        ``LINEAGE`` follows parent links and fork indices.
    deactivate_source_on_merge:
        Mark the source branch inactive after a successful merge.
    export_format:
        Default export format, ``"json"`` or ``"yaml"``.
    """

    ancestry_strategy: AncestryStrategy = AncestryStrategy.CONTENT
    deactivate_source_on_merge: bool = False
    export_format: str = "json"

    def __post_init__(self) -> None:
        try:
            strategy = AncestryStrategy(self.ancestry_strategy)
        except ValueError:
            raise ValueError(
                f"ancestry_strategy must be one of "
                f"{[s.value for s in AncestryStrategy]}, got {self.ancestry_strategy!r}."
            ) from None
        object.__setattr__(self, "ancestry_strategy", strategy)
        if self.export_format not in _EXPORT_FORMATS:
            raise ValueError(
                f"export_format must be one of {_EXPORT_FORMATS}, got {self.export_format!r}."
            )
        if not isinstance(self.deactivate_source_on_merge, bool):
            raise ValueError(
                f"deactivate_source_on_merge must be a bool, "
                f"got {self.deactivate_source_on_merge!r}."
            )

    @property
    def merge_policy(self) -> MergePolicy:
        return MergePolicy(deactivate_source=self.deactivate_source_on_merge)

    @classmethod
    def from_mapping(cls, data: dict[str, object]) -> BranchingConfig:
        """Build a config from a plain mapping, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(unknown)}")
        return cls(**data)  # type: ignore[arg-type]


def load_config(path: str | Path | None = None) -> BranchingConfig:
    """Load settings from a YAML mapping at *path*.

    Parameters
    ----------
    path:
        YAML file to read.  ``None`` returns the defaults.  An empty file
        also yields the defaults.

    Raises
    ------
    FileNotFoundError
        If *path* does not exist.
    ValueError
        If the document is not a mapping or holds unknown or invalid values.
    """
    if path is None:
        return BranchingConfig()
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")
    data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    if data is None:
        return BranchingConfig()
    if not isinstance(data, dict):
        raise ValueError(f"Configuration in {config_path} must be a mapping.")
    return BranchingConfig.from_mapping(data)
