"""
Parameter sweeps and cache-boundary detection.

``SweepProfiler`` drives any per-value measurement across an ordered list of
configuration values. ``MemoryProfile`` uses it for the memory stride sweep
(spatial locality) and block-size sweep (L1/L2/L3/DRAM transitions).
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np

from ..core.config import ProfilePreset
from ..core.log import get_logger
from ..core.results import SweepPoint

logger = get_logger(__name__)

BOUNDARY_DROP_THRESHOLD = 20.0  # percent
GIB = 1024 ** 3
_WORD_BYTES = np.dtype(np.uint64).itemsize


class SweepProfiler:
    """Measure one metric per configuration value, preserving order."""

    def __init__(self, values: Sequence[int]):
        if not values:
            raise ValueError("sweep values must not be empty")
        self.values = list(values)

    def run(self, measure: Callable[[int], float]) -> List[SweepPoint]:
        return [SweepPoint(value, float(measure(value))) for value in self.values]


def measure_adaptive_transfer(
    transfer: Callable[[], None],
    chunk_bytes: int,
    min_seconds: float,
    min_bytes: int,
    clock: Callable[[], float] = time.perf_counter,
) -> Tuple[int, float]:
    """Repeat a fixed-size transfer until both minimums are reached.

    A time-only budget under-samples small chunks, where timer overhead per
    call is comparable to the transfer itself, so the loop also requires
    ``min_bytes`` to have moved.

    Args:
        transfer: Callable moving ``chunk_bytes`` bytes per call
        chunk_bytes: Bytes moved per call
        min_seconds: Minimum wall time in seconds
        min_bytes: Minimum total bytes moved

    Returns:
        Tuple of (bytes_moved, elapsed_seconds)
    """
    if chunk_bytes <= 0:
        raise ValueError(f"chunk_bytes must be positive, got {chunk_bytes}")

    moved = 0
    start = clock()
    while True:
        transfer()
        moved += chunk_bytes
        elapsed = clock() - start
        if elapsed >= min_seconds and moved >= min_bytes:
            return moved, elapsed


def format_bytes(size: int) -> str:
    if size >= 1024 * 1024:
        return f"{size // (1024 * 1024)}MB"
    elif size >= 1024:
        return f"{size // 1024}KB"
    return f"{size}B"


@dataclass(frozen=True)
class SweepBoundary:
    """A drop of more than the threshold between two adjacent sweep points."""

    from_value: int
    to_value: int
    drop_pct: float

    def describe(self) -> str:
        return (
            f"{format_bytes(self.from_value)} → {format_bytes(self.to_value)}: "
            f"-{self.drop_pct:.0f}%"
        )


def detect_boundaries(
    points: Sequence[SweepPoint], threshold: float = BOUNDARY_DROP_THRESHOLD
) -> List[SweepBoundary]:
    """Report every adjacent pair whose metric drops by more than ``threshold`` %.

    The check is purely local; one noisy sample can produce a false boundary.
    """
    boundaries = []
    for prev, curr in zip(points, points[1:]):
        if prev.metric <= 0:
            continue
        drop_pct = (prev.metric - curr.metric) / prev.metric * 100
        if drop_pct > threshold:
            boundaries.append(SweepBoundary(prev.config_value, curr.config_value, drop_pct))
    return boundaries


@dataclass(frozen=True)
class MemoryProfileResult:
    stride_sweep: Tuple[SweepPoint, ...]
    block_size_sweep: Tuple[SweepPoint, ...]

    @property
    def cache_boundaries(self) -> List[SweepBoundary]:
        return detect_boundaries(self.block_size_sweep)

    @property
    def detected_cache_boundaries(self) -> List[str]:
        return [boundary.describe() for boundary in self.cache_boundaries]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "strideSweep": [p.to_dict() for p in self.stride_sweep],
            "blockSizeSweep": [p.to_dict() for p in self.block_size_sweep],
        }


class MemoryProfile:
    """Stride and block-size sweeps over numpy buffers, reported in GB/s."""

    def __init__(
        self,
        preset: Optional[ProfilePreset] = None,
        clock: Callable[[], float] = time.perf_counter,
    ):
        self.preset = preset if preset is not None else ProfilePreset.full()
        self._clock = clock

    def run(self) -> MemoryProfileResult:
        logger.info("Running stride sweep...")
        stride_sweep = self.run_stride_sweep()
        logger.info("Running block-size sweep...")
        block_sweep = self.run_block_size_sweep()
        return MemoryProfileResult(tuple(stride_sweep), tuple(block_sweep))

    # -------------------------------------------------------------------------
    # Stride sweep
    # -------------------------------------------------------------------------

    def run_stride_sweep(self) -> List[SweepPoint]:
        """Read every ``stride``-th byte offset; large strides defeat prefetching."""
        count = self.preset.stride_buffer_bytes // _WORD_BYTES
        buffer = np.full(count, 0x5A5A5A5A5A5A5A5A, dtype=np.uint64)
        return SweepProfiler(self.preset.strides).run(
            lambda stride: self._measure_stride(buffer, stride)
        )

    def _measure_stride(self, buffer: np.ndarray, stride: int) -> float:
        step = max(1, stride // _WORD_BYTES)
        view = buffer[::step]
        bytes_accessed = view.size * _WORD_BYTES

        total_gbps = 0.0
        for _ in range(self.preset.stride_iterations):
            start = self._clock()
            np.add.reduce(view)
            elapsed = self._clock() - start
            if elapsed > 0:
                total_gbps += bytes_accessed / elapsed / GIB
        return total_gbps / self.preset.stride_iterations

    # -------------------------------------------------------------------------
    # Block-size sweep
    # -------------------------------------------------------------------------

    def run_block_size_sweep(self) -> List[SweepPoint]:
        """Copy blocks of increasing size; throughput falls at each cache level."""
        return SweepProfiler(self.preset.block_sizes).run(self._measure_block_copy)

    def _measure_block_copy(self, block_size: int) -> float:
        src = np.full(block_size, 0x5A, dtype=np.uint8)
        dst = np.empty_like(src)

        # warm-up, not measured
        np.copyto(dst, src)

        passes = self.preset.block_passes
        total_gbps = 0.0
        for _ in range(passes):
            moved, elapsed = measure_adaptive_transfer(
                lambda: np.copyto(dst, src),
                block_size,
                self.preset.block_min_seconds,
                self.preset.block_min_bytes,
                clock=self._clock,
            )
            if elapsed > 0:
                total_gbps += moved / elapsed / GIB
        return total_gbps / passes
