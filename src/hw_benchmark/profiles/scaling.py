"""
CPU thread-scaling profile.

Measures workload throughput at increasing worker counts, derives scaling
efficiency against the single-worker rate, and looks for a scaling cliff.
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from ..core.log import get_logger
from ..core.results import ScalingPoint

logger = get_logger(__name__)

# A workload performs one batch of work and returns how many operations it did.
Workload = Callable[[], int]

SCALING_CLIFF_THRESHOLD = 20.0  # efficiency percentage points
CLIFF_BASELINE_CANDIDATES = (4, 2, 1)
MAX_SWEEP_WORKERS = 16


def sweep_worker_counts(max_workers: int, sparse: bool = False) -> List[int]:
    """Worker counts to test.

    Args:
        max_workers: Highest worker count available (usually the core count)
        sparse: Test only 1, max/2 and max instead of every count

    Returns:
        Sorted, de-duplicated worker counts
    """
    if max_workers < 1:
        raise ValueError(f"max_workers must be at least 1, got {max_workers}")
    if sparse:
        counts = {1, max_workers // 2, max_workers}
    else:
        counts = set(range(1, min(max_workers, MAX_SWEEP_WORKERS) + 1))
    return sorted(c for c in counts if c >= 1)


def build_scaling_points(measurements: Iterable[Tuple[int, float]]) -> List[ScalingPoint]:
    """Attach efficiencies to (workers, throughput) measurements.

    ``efficiency(n) = throughput(n) / (throughput(1) * n) * 100``; every
    efficiency is 0 when there is no positive single-worker throughput.
    """
    ordered = sorted(measurements)
    single = dict(ordered).get(1, 0.0)

    points = []
    for workers, throughput in ordered:
        ideal = single * workers
        efficiency = (throughput / ideal) * 100 if ideal > 0 else 0.0
        points.append(ScalingPoint(workers, throughput, efficiency))
    return points


@dataclass(frozen=True)
class ScalingCliff:
    """Outcome of the scaling-cliff check.

    ``cliff_workers`` and ``efficiency_after`` are None when no cliff was
    found; ``baseline_workers``/``comparison_workers`` record which points
    were compared (None if the series lacked them).
    """

    cliff_workers: Optional[int]
    efficiency_after: Optional[float]
    threshold: float
    baseline_workers: Optional[int] = None
    comparison_workers: Optional[int] = None

    @property
    def detected(self) -> bool:
        return self.cliff_workers is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cliffThreads": self.cliff_workers,
            "efficiencyAfter": self.efficiency_after,
            "threshold": self.threshold,
        }


def detect_scaling_cliff(
    points: Sequence[ScalingPoint], threshold: float = SCALING_CLIFF_THRESHOLD
) -> ScalingCliff:
    """Compare efficiency at a baseline worker count with the next count up.

    The baseline is the first of 4, 2, 1 present in ``points``; the
    comparison is the smallest tested count above it. A drop of at least
    ``threshold`` percentage points is reported as a cliff at the baseline.
    """
    efficiency_by_workers = {p.workers: p.efficiency_pct for p in points}

    baseline = next(
        (c for c in CLIFF_BASELINE_CANDIDATES if c in efficiency_by_workers), None
    )
    if baseline is None:
        return ScalingCliff(None, None, threshold)

    comparison = min((w for w in efficiency_by_workers if w > baseline), default=None)
    if comparison is None:
        return ScalingCliff(None, None, threshold, baseline_workers=baseline)

    drop = efficiency_by_workers[baseline] - efficiency_by_workers[comparison]
    if drop >= threshold:
        return ScalingCliff(
            baseline,
            efficiency_by_workers[comparison],
            threshold,
            baseline_workers=baseline,
            comparison_workers=comparison,
        )
    return ScalingCliff(
        None, None, threshold, baseline_workers=baseline, comparison_workers=comparison
    )


@dataclass(frozen=True)
class CPUScalingResult:
    points: Tuple[ScalingPoint, ...]

    @property
    def scaling_efficiency(self) -> float:
        """Average efficiency across all tested worker counts."""
        if not self.points:
            return 0.0
        return sum(p.efficiency_pct for p in self.points) / len(self.points)

    @property
    def cliff(self) -> ScalingCliff:
        return detect_scaling_cliff(self.points)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "threadScaling": [p.to_dict() for p in self.points],
            "scalingEfficiency": self.scaling_efficiency,
            "cliff": self.cliff.to_dict(),
        }


class ThreadScalingProfiler:
    """Run a workload with 1..N concurrent workers and measure throughput."""

    def __init__(
        self,
        max_workers: int,
        duration: float,
        sparse: bool = False,
        clock: Callable[[], float] = time.perf_counter,
    ):
        """Initialize the profiler.

        Args:
            max_workers: Highest worker count to test
            duration: Total budget in seconds, split evenly across sweep points
            sparse: Test 1, max/2 and max workers only (quick mode)
            clock: Monotonic clock returning seconds
        """
        if duration < 0:
            raise ValueError(f"duration must be non-negative, got {duration}")
        self.max_workers = max_workers
        self.duration = duration
        self.worker_counts = sweep_worker_counts(max_workers, sparse)
        self._clock = clock

    @property
    def point_budget(self) -> float:
        """Wall-clock budget of each sweep point (not divided by worker count)."""
        return self.duration / len(self.worker_counts)

    def measure_throughput(self, workers: int, workload: Workload) -> float:
        """Run ``workers`` concurrent copies of the workload for one point budget.

        All workers start together behind a barrier and each keeps calling
        the workload until the shared deadline has passed (a batch in
        progress always finishes). Per-worker counts are only summed once
        every worker has been joined.

        Returns:
            Completed operations per second over the measured window
        """
        if workers < 1:
            raise ValueError(f"workers must be at least 1, got {workers}")

        budget = self.point_budget
        window: Dict[str, float] = {}

        def _open_window() -> None:
            window["start"] = self._clock()
            window["deadline"] = window["start"] + budget

        start_barrier = threading.Barrier(workers, action=_open_window)

        def _worker() -> int:
            start_barrier.wait()
            deadline = window["deadline"]
            completed = 0
            while True:
                completed += workload()
                if self._clock() >= deadline:
                    break
            return completed

        with ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="scaling-worker"
        ) as pool:
            futures = [pool.submit(_worker) for _ in range(workers)]
        elapsed = self._clock() - window.get("start", self._clock())

        # result() re-raises the first worker failure
        total_ops = sum(future.result() for future in futures)
        return total_ops / elapsed if elapsed > 0 else 0.0

    def run(self, workload: Workload) -> CPUScalingResult:
        """Run the full worker-count sweep."""
        logger.info(
            "Running thread sweep over %s workers (%.2fs per point)",
            self.worker_counts,
            self.point_budget,
        )
        measurements = []
        for workers in self.worker_counts:
            throughput = self.measure_throughput(workers, workload)
            logger.debug("%d workers: %.1f ops/s", workers, throughput)
            measurements.append((workers, throughput))
        return CPUScalingResult(tuple(build_scaling_points(measurements)))
