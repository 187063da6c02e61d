"""
Result records produced by benchmarks and profilers.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class Category(str, Enum):
    """Benchmark categories that are scored independently."""

    CPU_SINGLE = "cpu-single"
    CPU_MULTI = "cpu-multi"
    MEMORY = "memory"
    DISK = "disk"
    GPU = "gpu"
    AI = "ai"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]


_DISPLAY_NAMES = {
    Category.CPU_SINGLE: "CPU Single-Core",
    Category.CPU_MULTI: "CPU Multi-Core",
    Category.MEMORY: "Memory",
    Category.DISK: "Disk",
    Category.GPU: "GPU",
    Category.AI: "AI/ML",
}


class ThermalLevel(str, Enum):
    """Opaque thermal-state tag supplied by an external thermal source."""

    NOMINAL = "nominal"
    FAIR = "fair"
    SERIOUS = "serious"
    CRITICAL = "critical"

    @property
    def is_throttling(self) -> bool:
        return self in (ThermalLevel.SERIOUS, ThermalLevel.CRITICAL)


@dataclass(frozen=True)
class TestResult:
    """A single named measurement within a category."""

    __test__ = False  # not a pytest test class

    name: str
    value: float
    unit: str
    higher_is_better: bool = True

    @property
    def is_valid(self) -> bool:
        """Non-finite and non-positive values are kept but never scored."""
        return math.isfinite(self.value) and self.value > 0

    @property
    def formatted_value(self) -> str:
        if self.value >= 1_000_000:
            return f"{self.value / 1_000_000:.2f} M"
        elif self.value >= 1_000:
            return f"{self.value / 1_000:.2f} K"
        elif self.value < 1:
            return f"{self.value:.4f}"
        return f"{self.value:.2f}"


@dataclass(frozen=True)
class BenchmarkResult:
    """Container for one category run."""

    category: Category
    tests: Tuple[TestResult, ...]
    elapsed: float  # seconds
    thermal_start: ThermalLevel = ThermalLevel.NOMINAL
    thermal_end: ThermalLevel = ThermalLevel.NOMINAL

    def __post_init__(self):
        object.__setattr__(self, "tests", tuple(self.tests))

    @property
    def had_throttling(self) -> bool:
        return self.thermal_start.is_throttling or self.thermal_end.is_throttling

    @property
    def has_invalid_tests(self) -> bool:
        return any(not test.is_valid for test in self.tests)

    @property
    def summary(self) -> str:
        return ", ".join(
            f"{test.name}: {test.formatted_value} {test.unit}" for test in self.tests
        )


@dataclass(frozen=True)
class ThermalSnapshot:
    """Thermal tag sampled at ``elapsed`` seconds into a run."""

    elapsed: float
    level: ThermalLevel


@dataclass(frozen=True)
class BenchmarkResults:
    """All category results of one run."""

    benchmarks: Tuple[BenchmarkResult, ...]
    thermal_snapshots: Tuple[ThermalSnapshot, ...] = ()
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        object.__setattr__(self, "benchmarks", tuple(self.benchmarks))
        object.__setattr__(self, "thermal_snapshots", tuple(self.thermal_snapshots))

    def result_for(self, category: Category) -> Optional[BenchmarkResult]:
        for result in self.benchmarks:
            if result.category == category:
                return result
        return None

    @property
    def had_any_throttling(self) -> bool:
        return any(result.had_throttling for result in self.benchmarks) or any(
            snapshot.level.is_throttling for snapshot in self.thermal_snapshots
        )


# =============================================================================
# Profile series points
# =============================================================================


@dataclass(frozen=True)
class ScalingPoint:
    """Throughput measured with ``workers`` concurrent workers."""

    workers: int
    throughput: float  # operations per second
    efficiency_pct: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "threads": self.workers,
            "throughput": self.throughput,
            "efficiency": self.efficiency_pct,
        }


@dataclass(frozen=True)
class QueueDepthPoint:
    """Random I/O rate at one queue depth."""

    depth: int
    iops: float
    mbps: float  # MiB/s

    def to_dict(self) -> Dict[str, Any]:
        return {"qd": self.depth, "iops": self.iops, "mbps": self.mbps}


@dataclass(frozen=True)
class SweepPoint:
    """Metric measured at one configuration value of a sweep."""

    config_value: int
    metric: float

    def to_dict(self) -> Dict[str, Any]:
        return {"x": self.config_value, "y": self.metric}


# =============================================================================
# Scores
# =============================================================================


class ScoreState(str, Enum):
    NOT_RUN = "not_run"
    INVALID = "invalid"
    VALUE = "value"


@dataclass(frozen=True)
class CategoryScore:
    """Score of one category.

    ``value`` is only set when ``state`` is ``ScoreState.VALUE``; a category
    that was not run and one that ran with invalid measurements are kept
    distinct from a genuine zero score.
    """

    category: Category
    state: ScoreState
    value: Optional[float] = None

    def __post_init__(self):
        if self.state is ScoreState.VALUE and self.value is None:
            raise ValueError("a VALUE score requires a value")
        if self.state is not ScoreState.VALUE and self.value is not None:
            raise ValueError(f"a {self.state.value} score cannot carry a value")

    @classmethod
    def not_run(cls, category: Category) -> "CategoryScore":
        return cls(category, ScoreState.NOT_RUN)

    @classmethod
    def invalid(cls, category: Category) -> "CategoryScore":
        return cls(category, ScoreState.INVALID)

    @classmethod
    def of(cls, category: Category, value: float) -> "CategoryScore":
        return cls(category, ScoreState.VALUE, float(value))

    @property
    def ran(self) -> bool:
        return self.state is not ScoreState.NOT_RUN

    @property
    def is_scoreable(self) -> bool:
        """True for a finite, positive value that may enter a weighted total."""
        return (
            self.state is ScoreState.VALUE
            and math.isfinite(self.value)
            and self.value > 0
        )
