"""Benchmark: Merge check latency — per-merge p50/p99.

Measures MergeEngine.merge() on two branches that share a long prefix and
then diverge, the shape a fork produces after a few turns on each side.
"""
from __future__ import annotations

import json
import sys
import time
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from conversation_branching.branching.records import BranchMessage, new_branch_message
from conversation_branching.merge.engine import MergeEngine

_WARMUP: int = 100
_ITERATIONS: int = 2_000
_SHARED: int = 500
_TAIL: int = 50


def _sequence(branch_id: str, tail_label: str) -> list[BranchMessage]:
    roles = ("user", "assistant")
    messages = [
        new_branch_message(branch_id, "bench-conv", roles[i % 2], f"shared {i}", i)
        for i in range(_SHARED)
    ]
    messages.extend(
        new_branch_message(branch_id, "bench-conv", roles[i % 2], f"{tail_label} {i}", i)
        for i in range(_SHARED, _SHARED + _TAIL)
    )
    return messages


def bench_merge_latency() -> dict[str, object]:
    """Benchmark MergeEngine.merge() per-call latency.

    Returns
    -------
    dict with keys: operation, iterations, total_seconds, ops_per_second,
    avg_latency_ms, p50_latency_ms, p99_latency_ms.
    """
    engine = MergeEngine()
    source = _sequence("source", "source")
    target = _sequence("target", "target")

    for _ in range(_WARMUP):
        engine.merge(source, target, "source", "target")

    latencies_ms: list[float] = []
    for _ in range(_ITERATIONS):
        t0 = time.perf_counter()
        engine.merge(source, target, "source", "target")
        latencies_ms.append((time.perf_counter() - t0) * 1000)

    sorted_lats = sorted(latencies_ms)
    n = len(sorted_lats)
    total = sum(latencies_ms) / 1000

    result: dict[str, object] = {
        "operation": "merge_latency",
        "iterations": _ITERATIONS,
        "total_seconds": round(total, 4),
        "ops_per_second": round(_ITERATIONS / total, 1),
        "avg_latency_ms": round(sum(latencies_ms) / n, 4),
        "p50_latency_ms": round(sorted_lats[n // 2], 4),
        "p99_latency_ms": round(sorted_lats[min(int(n * 0.99), n - 1)], 4),
    }
    print(
        f"[bench_merge_latency] {result['operation']}: "
        f"p99={result['p99_latency_ms']:.4f}ms  "
        f"mean={result['avg_latency_ms']:.4f}ms"
    )
    return result


def run_benchmark() -> dict[str, object]:
    """Entry point returning the benchmark result dict."""
    return bench_merge_latency()


if __name__ == "__main__":
    result = run_benchmark()
    results_dir = Path(__file__).parent / "results"
    results_dir.mkdir(exist_ok=True)
    output_path = results_dir / "merge_latency_baseline.json"
    with open(output_path, "w", encoding="utf-8") as fh:
        json.dump(result, fh, indent=2)
    print(f"Results saved to {output_path}")
