"""
Profiling Example: Scores and Advanced Profiles

This example walks through a complete quick-mode run:
- Registering measured operations per category
- Running categories and scoring them against the reference baselines
- Memory block-size sweep with cache-boundary detection
- Disk queue-depth matrix and CPU thread scaling

Scores are relative to the reference machine, where every category scores 1000.
"""

import hashlib
import logging
import time

import numpy as np

from hw_benchmark import AdvancedProfiler, BenchmarkRunner, RunConfig
from hw_benchmark.core.log import set_global_log_level
from hw_benchmark.core.results import Category
from hw_benchmark.core.summary import print_advanced_profiles, print_results, print_scores

MB = 1024 * 1024
_PAYLOAD = np.random.default_rng(0).integers(0, 255, size=1 * MB, dtype=np.uint8).tobytes()


def integer_mops() -> float:
    """Integer additions, in millions of operations per second."""
    n = 200_000
    start = time.perf_counter()
    total = 0
    for i in range(n):
        total += i
    elapsed = time.perf_counter() - start
    return n / elapsed / 1e6


def sha256_mbps() -> float:
    start = time.perf_counter()
    hashlib.sha256(_PAYLOAD).digest()
    return 1.0 / (time.perf_counter() - start)


def memory_read_gbps() -> float:
    data = np.ones(16 * MB // 8, dtype=np.float64)
    start = time.perf_counter()
    data.sum()
    return data.nbytes / (time.perf_counter() - start) / 1e9


def hash_workload() -> int:
    """One batch of CPU work for the thread-scaling sweep."""
    hashlib.sha256(_PAYLOAD[: 64 * 1024]).digest()
    return 1


def main():
    set_global_log_level(logging.INFO)
    config = RunConfig(duration=3.0, quick_mode=True)

    print("=" * 60)
    print("Category scores")
    print("=" * 60)
    runner = BenchmarkRunner(config)
    runner.register_benchmark(Category.CPU_SINGLE, "Integer", integer_mops, "Mops/s")
    runner.register_benchmark(Category.CPU_SINGLE, "Crypto", sha256_mbps, "MB/s")
    runner.register_benchmark(Category.MEMORY, "Read", memory_read_gbps, "GB/s")

    results = runner.run_all(continue_on_error=True)
    print_results(results)
    print_scores(runner.score(results), quick_mode=config.quick_mode)

    print("\n" + "=" * 60)
    print("Advanced profiles")
    print("=" * 60)
    profiler = AdvancedProfiler(config, cpu_workload=hash_workload)
    print_advanced_profiles(profiler.run())


if __name__ == "__main__":
    main()
