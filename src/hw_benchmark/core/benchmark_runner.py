"""
Main benchmark runner orchestrating category measurements and scoring.
"""

import time
from typing import Any, Callable, Dict, Iterable, List, Optional

from .config import RunConfig
from .log import get_logger
from .metrics import SampledMeasurement, timed
from .results import (
    BenchmarkResult,
    BenchmarkResults,
    Category,
    TestResult,
    ThermalLevel,
    ThermalSnapshot,
)
from .scoring import BenchmarkScorer, BenchmarkScores

logger = get_logger(__name__)

ThermalSource = Callable[[], ThermalLevel]


def nominal_thermal_source() -> ThermalLevel:
    """Thermal source for platforms without a thermal-state API."""
    return ThermalLevel.NOMINAL


class BenchmarkRunner:
    """Main benchmark runner class."""

    def __init__(
        self,
        config: Optional[RunConfig] = None,
        thermal_source: ThermalSource = nominal_thermal_source,
        scorer: Optional[BenchmarkScorer] = None,
        clock: Callable[[], float] = time.perf_counter,
    ):
        """Initialize benchmark runner.

        Args:
            config: Duration budget per category and quick/full mode
            thermal_source: Callable returning the current thermal tag
            scorer: Scorer used by ``score``; default baselines if None
            clock: Monotonic clock returning seconds
        """
        self.config = config if config is not None else RunConfig()
        self.thermal_source = thermal_source
        self.scorer = scorer if scorer is not None else BenchmarkScorer()
        self._clock = clock
        self._registered_benchmarks: Dict[Category, Dict[str, Dict[str, Any]]] = {
            category: {} for category in Category
        }

    def register_benchmark(
        self,
        category: Category,
        name: str,
        operation: Callable[[], float],
        unit: str,
        higher_is_better: bool = True,
    ) -> None:
        """Register a measured operation under a category.

        Args:
            category: Benchmark category
            name: Test name, also used to look up its baseline
            operation: Callable doing one unit of work and returning its metric
            unit: Unit of the returned metric
            higher_is_better: Direction of the metric
        """
        category = Category(category)
        self._registered_benchmarks[category][name] = {
            "operation": operation,
            "unit": unit,
            "higher_is_better": higher_is_better,
        }

    def list_benchmarks(self, category: Optional[Category] = None) -> Dict[Category, List[str]]:
        """List registered benchmarks.

        Args:
            category: Specific category to list, or None for all

        Returns:
            Dictionary mapping categories to benchmark names
        """
        if category:
            category = Category(category)
            benchmarks = self._registered_benchmarks[category]
            return {category: list(benchmarks)} if benchmarks else {}

        return {
            cat: list(benchmarks)
            for cat, benchmarks in self._registered_benchmarks.items()
            if benchmarks
        }

    def run_category(self, category: Category) -> BenchmarkResult:
        """Measure every test registered in a category.

        The configured duration is split evenly across the category's tests.
        An exception from any operation aborts the category.
        """
        category = Category(category)
        benchmarks = self._registered_benchmarks[category]
        if not benchmarks:
            raise ValueError(f"No benchmarks registered for category: {category.value}")

        per_test = self.config.duration / len(benchmarks)
        thermal_start = self.thermal_source()
        logger.info("Running %s (%d tests)", category.display_name, len(benchmarks))

        tests = []
        with timed(self._clock) as timer:
            for name, definition in benchmarks.items():
                value = SampledMeasurement(per_test, self._clock).measure(definition["operation"])
                tests.append(
                    TestResult(
                        name=name,
                        value=value,
                        unit=definition["unit"],
                        higher_is_better=definition["higher_is_better"],
                    )
                )

        result = BenchmarkResult(
            category=category,
            tests=tuple(tests),
            elapsed=timer.elapsed,
            thermal_start=thermal_start,
            thermal_end=self.thermal_source(),
        )
        if result.had_throttling:
            logger.warning("%s ran under thermal pressure", category.display_name)
        return result

    def _failed_result(self, category: Category) -> BenchmarkResult:
        # zero values make the category score INVALID instead of dropping it
        tests = tuple(
            TestResult(name, 0.0, definition["unit"], definition["higher_is_better"])
            for name, definition in self._registered_benchmarks[category].items()
        )
        level = self.thermal_source()
        return BenchmarkResult(category, tests, 0.0, level, level)

    def run_all(
        self,
        categories: Optional[Iterable[Category]] = None,
        continue_on_error: bool = False,
    ) -> BenchmarkResults:
        """Run categories one after another.

        Args:
            categories: Categories to run (all registered ones if None)
            continue_on_error: Record a failed category and carry on instead
                of re-raising the error

        Returns:
            BenchmarkResults holding one result per category run
        """
        if categories is None:
            selected = [c for c, benchmarks in self._registered_benchmarks.items() if benchmarks]
        else:
            selected = [Category(c) for c in categories]

        results = []
        snapshots = []
        with timed(self._clock) as run_timer:
            for category in selected:
                snapshots.append(ThermalSnapshot(run_timer.elapsed, self.thermal_source()))
                try:
                    results.append(self.run_category(category))
                except Exception as e:
                    if not continue_on_error:
                        raise
                    logger.error("Error running %s: %s", category.display_name, e)
                    results.append(self._failed_result(category))
            snapshots.append(ThermalSnapshot(run_timer.elapsed, self.thermal_source()))

        return BenchmarkResults(benchmarks=tuple(results), thermal_snapshots=tuple(snapshots))

    def score(self, results: BenchmarkResults) -> BenchmarkScores:
        """Score a set of results with the configured scorer."""
        return self.scorer.calculate_scores(results)
