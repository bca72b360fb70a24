"""Shared bootstrap for conversation-branching benchmarks."""
from __future__ import annotations

import sys
from pathlib import Path

_REPO_ROOT = Path(__file__).parent.parent
_SRC = _REPO_ROOT / "src"
_BENCHMARKS = _REPO_ROOT / "benchmarks"

for _path in [str(_SRC), str(_BENCHMARKS)]:
    if _path not in sys.path:
        sys.path.insert(0, _path)

from conversation_branching.branching.manager import BranchManager
from conversation_branching.merge.engine import MergeEngine
from conversation_branching.storage.memory import InMemoryBranchRepository

__all__ = ["BranchManager", "MergeEngine", "InMemoryBranchRepository"]
