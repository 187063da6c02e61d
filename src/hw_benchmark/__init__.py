"""
Hardware Benchmark Suite

Adaptive CPU, memory and storage micro-measurements with unit-agnostic,
baseline-relative scoring.
"""

__version__ = "0.1.0"

from .core.benchmark_runner import BenchmarkRunner
from .core.config import ProfilePreset, RunConfig
from .core.scoring import BaselineTable, BenchmarkScorer
from .profiles.advanced import AdvancedProfiler

__all__ = [
    "AdvancedProfiler",
    "BaselineTable",
    "BenchmarkRunner",
    "BenchmarkScorer",
    "ProfilePreset",
    "RunConfig",
]
