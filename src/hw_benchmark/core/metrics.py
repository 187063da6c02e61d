"""
Duration-bounded sampling and timing utilities.
"""

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Iterator, List, Optional

import numpy as np

Clock = Callable[[], float]


class Timer:
    """Elapsed wall time of a ``timed()`` block, in seconds."""

    def __init__(self, clock: Clock = time.perf_counter):
        self._clock = clock
        self.start: Optional[float] = None
        self.end: Optional[float] = None

    @property
    def elapsed(self) -> float:
        if self.start is None:
            return 0.0
        end = self.end if self.end is not None else self._clock()
        return end - self.start


@contextmanager
def timed(clock: Clock = time.perf_counter) -> Iterator[Timer]:
    """Context manager for timing a region.

    The timer is stopped even if the block raises, so callers can still
    inspect how long a failed region ran.
    """
    timer = Timer(clock)
    timer.start = clock()
    try:
        yield timer
    finally:
        timer.end = clock()


@dataclass(frozen=True)
class MeasurementSummary:
    """Statistics over the measured (non warm-up) calls of an operation."""

    mean: float
    std_dev: float
    min_value: float
    max_value: float
    elapsed: float  # seconds spent in measured calls
    samples: List[float] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.samples)

    @classmethod
    def from_samples(cls, samples: List[float], elapsed: float) -> "MeasurementSummary":
        if not samples:
            return cls(0.0, 0.0, 0.0, 0.0, elapsed, [])
        values = np.asarray(samples, dtype=np.float64)
        return cls(
            mean=float(np.mean(values)),
            std_dev=float(np.std(values)),
            min_value=float(np.min(values)),
            max_value=float(np.max(values)),
            elapsed=elapsed,
            samples=list(samples),
        )


class SampledMeasurement:
    """Repeat an operation until a duration budget is spent and average it.

    The operation performs one unit of work and returns its own metric for
    that call (MB/s, Mops/s, IPS, ...). One warm-up call is made and
    discarded; measured calls then repeat until at least ``duration`` seconds
    have elapsed. A call is never interrupted, so the total can overrun the
    budget by up to one call, and at least one measured call always happens.

    Exceptions raised by the operation propagate unchanged; no partial
    average is produced.
    """

    def __init__(self, duration: float, clock: Clock = time.perf_counter):
        """Initialize the measurement.

        Args:
            duration: Target duration of the measured phase in seconds
            clock: Monotonic clock returning seconds
        """
        if duration < 0:
            raise ValueError(f"duration must be non-negative, got {duration}")
        self.duration = duration
        self._clock = clock

    def run(self, operation: Callable[[], float]) -> MeasurementSummary:
        """Run the warm-up and measured calls.

        Args:
            operation: Callable performing one unit of work

        Returns:
            MeasurementSummary over the measured calls
        """
        operation()  # warm-up, result discarded

        samples: List[float] = []
        start = self._clock()
        while True:
            samples.append(float(operation()))
            elapsed = self._clock() - start
            if elapsed >= self.duration:
                break

        return MeasurementSummary.from_samples(samples, elapsed)

    def measure(self, operation: Callable[[], float]) -> float:
        """Mean metric of the measured calls (0 when nothing was measured)."""
        return self.run(operation).mean


def measure_for_duration(
    operation: Callable[[], float],
    seconds: float,
    clock: Clock = time.perf_counter,
) -> float:
    """Shorthand for ``SampledMeasurement(seconds, clock).measure(operation)``."""
    return SampledMeasurement(seconds, clock).measure(operation)
