"""
Core measurement, result and scoring infrastructure.
"""

from .benchmark_runner import BenchmarkRunner
from .errors import BenchmarkError, ResourceError
from .metrics import MeasurementSummary, SampledMeasurement
from .results import (
    BenchmarkResult,
    BenchmarkResults,
    Category,
    CategoryScore,
    QueueDepthPoint,
    ScalingPoint,
    ScoreState,
    SweepPoint,
    TestResult,
    ThermalLevel,
)
from .scoring import (
    BaselineTable,
    BenchmarkScorer,
    BenchmarkScores,
    CategoryAggregator,
    ScoreNormalizer,
    TotalScoreAggregator,
)

__all__ = [
    "BaselineTable",
    "BenchmarkError",
    "BenchmarkResult",
    "BenchmarkResults",
    "BenchmarkRunner",
    "BenchmarkScorer",
    "BenchmarkScores",
    "Category",
    "CategoryAggregator",
    "CategoryScore",
    "MeasurementSummary",
    "QueueDepthPoint",
    "ResourceError",
    "SampledMeasurement",
    "ScalingPoint",
    "ScoreNormalizer",
    "ScoreState",
    "SweepPoint",
    "TestResult",
    "ThermalLevel",
    "TotalScoreAggregator",
]
