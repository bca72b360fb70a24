"""Benchmark: Message append throughput through BranchManager.

Appends to a single branch backed by the in-memory repository, so the
figure reflects manager and record-model overhead rather than disk I/O.
"""
from __future__ import annotations

import json
import sys
import time
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from conversation_branching.branching.manager import BranchManager
from conversation_branching.storage.memory import InMemoryBranchRepository

_ITERATIONS: int = 500


def bench_append_throughput() -> dict[str, object]:
    """Benchmark BranchManager.append_message() throughput.

    Returns
    -------
    dict with keys: operation, iterations, total_seconds, ops_per_second.
    """
    manager = BranchManager("bench-conv", InMemoryBranchRepository())
    branch = manager.create_branch("bench")
    roles = ("user", "assistant")

    t0 = time.perf_counter()
    for i in range(_ITERATIONS):
        manager.append_message(branch.branch_id, roles[i % 2], f"message {i}")
    total = time.perf_counter() - t0

    result: dict[str, object] = {
        "operation": "append_throughput",
        "iterations": _ITERATIONS,
        "total_seconds": round(total, 4),
        "ops_per_second": round(_ITERATIONS / total, 1),
    }
    print(
        f"[bench_append_throughput] {result['operation']}: "
        f"{result['ops_per_second']} ops/s"
    )
    return result


def run_benchmark() -> dict[str, object]:
    """Entry point returning the benchmark result dict."""
    return bench_append_throughput()


if __name__ == "__main__":
    result = run_benchmark()
    results_dir = Path(__file__).parent / "results"
    results_dir.mkdir(exist_ok=True)
    output_path = results_dir / "append_throughput_baseline.json"
    with open(output_path, "w", encoding="utf-8") as fh:
        json.dump(result, fh, indent=2)
    print(f"Results saved to {output_path}")
