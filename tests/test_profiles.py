"""
Tests for the sweep, queue-depth and thread-scaling profiles.
"""

import itertools
import os
import threading
import time
from unittest.mock import Mock, patch

import pytest

from hw_benchmark.core.config import ProfilePreset, RunConfig
from hw_benchmark.core.errors import ResourceError
from hw_benchmark.core.results import QueueDepthPoint, ScalingPoint, SweepPoint
from hw_benchmark.profiles.advanced import AdvancedProfiler
from hw_benchmark.profiles.disk import (
    ConcurrentIOQueueSimulator,
    DiskProfileResult,
    optimal_depth,
)
from hw_benchmark.profiles.scaling import (
    CPUScalingResult,
    ThreadScalingProfiler,
    build_scaling_points,
    detect_scaling_cliff,
    sweep_worker_counts,
)
from hw_benchmark.profiles.sweep import (
    MemoryProfile,
    MemoryProfileResult,
    SweepProfiler,
    detect_boundaries,
    format_bytes,
    measure_adaptive_transfer,
)

KB = 1024
MB = 1024 * 1024


def int_clock():
    counter = itertools.count(0)
    return lambda: next(counter)


@pytest.fixture
def tiny_preset():
    return ProfilePreset(
        name="tiny",
        strides=(8, 64),
        stride_buffer_bytes=64 * KB,
        stride_iterations=2,
        block_sizes=(4 * KB, 64 * KB),
        block_min_seconds=0.0,
        block_min_bytes=256 * KB,
        block_passes=2,
        queue_depths=(1, 2),
        disk_block_size=4 * KB,
        disk_file_size=64 * KB,
        disk_ops_per_worker=4,
        sparse_scaling=True,
    )


# =============================================================================
# Sweeps
# =============================================================================


class TestSweepProfiler:
    """Tests for SweepProfiler and boundary detection."""

    def test_preserves_order(self):
        measure = Mock(side_effect=lambda value: value * 2.0)
        points = SweepProfiler([64, 8, 4096]).run(measure)
        assert points == [SweepPoint(64, 128.0), SweepPoint(8, 16.0), SweepPoint(4096, 8192.0)]

    def test_empty_values(self):
        with pytest.raises(ValueError):
            SweepProfiler([])

    def test_measurement_failure_propagates(self):
        with pytest.raises(MemoryError):
            SweepProfiler([1, 2]).run(Mock(side_effect=MemoryError()))

    def test_cache_boundary_detection(self):
        points = [
            SweepPoint(16 * KB, 50.0),
            SweepPoint(64 * KB, 48.0),
            SweepPoint(1 * MB, 10.0),
        ]

        boundaries = detect_boundaries(points)

        assert len(boundaries) == 1
        boundary = boundaries[0]
        assert (boundary.from_value, boundary.to_value) == (64 * KB, 1 * MB)
        assert boundary.drop_pct == pytest.approx(79.1666, rel=1e-3)
        assert boundary.describe() == "64KB → 1MB: -79%"

    def test_threshold_is_strict(self):
        points = [SweepPoint(1, 100.0), SweepPoint(2, 80.0)]
        assert detect_boundaries(points) == []
        assert len(detect_boundaries(points, threshold=19.9)) == 1

    def test_zero_previous_point_skipped(self):
        points = [SweepPoint(1, 0.0), SweepPoint(2, 10.0), SweepPoint(3, 1.0)]
        assert [b.from_value for b in detect_boundaries(points)] == [2]

    def test_format_bytes(self):
        assert format_bytes(512) == "512B"
        assert format_bytes(4 * KB) == "4KB"
        assert format_bytes(128 * MB) == "128MB"


class TestAdaptiveTransfer:
    """Tests for the dual-condition transfer loop."""

    def test_bytes_condition_extends_short_runs(self):
        transfer = Mock()
        moved, elapsed = measure_adaptive_transfer(
            transfer, chunk_bytes=100, min_seconds=3, min_bytes=1000, clock=int_clock()
        )
        assert transfer.call_count == 10
        assert moved == 1000
        assert elapsed == 10

    def test_time_condition_extends_large_chunks(self):
        transfer = Mock()
        moved, elapsed = measure_adaptive_transfer(
            transfer, chunk_bytes=1000, min_seconds=3, min_bytes=100, clock=int_clock()
        )
        assert transfer.call_count == 3
        assert moved == 3000
        assert elapsed == 3

    def test_bad_chunk(self):
        with pytest.raises(ValueError):
            measure_adaptive_transfer(Mock(), 0, 1.0, 1)


class TestMemoryProfile:
    def test_runs_both_sweeps(self, tiny_preset):
        result = MemoryProfile(tiny_preset).run()

        assert [p.config_value for p in result.stride_sweep] == [8, 64]
        assert [p.config_value for p in result.block_size_sweep] == [4 * KB, 64 * KB]
        assert all(p.metric >= 0 for p in result.stride_sweep + result.block_size_sweep)
        assert set(result.to_dict()) == {"strideSweep", "blockSizeSweep"}

    def test_detected_cache_boundaries(self):
        result = MemoryProfileResult(
            stride_sweep=(),
            block_size_sweep=(SweepPoint(32 * KB, 100.0), SweepPoint(256 * KB, 40.0)),
        )
        assert result.detected_cache_boundaries == ["32KB → 256KB: -60%"]


# =============================================================================
# Thread scaling
# =============================================================================


class TestScalingAnalysis:
    """Tests for efficiency math and cliff detection."""

    def test_worker_counts(self):
        assert sweep_worker_counts(8) == list(range(1, 9))
        assert sweep_worker_counts(32) == list(range(1, 17))
        assert sweep_worker_counts(8, sparse=True) == [1, 4, 8]
        assert sweep_worker_counts(1, sparse=True) == [1]
        assert sweep_worker_counts(3, sparse=True) == [1, 3]
        with pytest.raises(ValueError):
            sweep_worker_counts(0)

    def test_single_worker_efficiency_is_100(self):
        points = build_scaling_points([(4, 3000.0), (1, 1000.0), (2, 1900.0)])

        assert [p.workers for p in points] == [1, 2, 4]
        assert points[0].efficiency_pct == 100.0
        assert points[1].efficiency_pct == pytest.approx(95.0)
        assert points[2].efficiency_pct == pytest.approx(75.0)

    def test_zero_single_throughput(self):
        points = build_scaling_points([(1, 0.0), (2, 10.0)])
        assert [p.efficiency_pct for p in points] == [0.0, 0.0]

    def test_cliff_detected(self):
        points = [
            ScalingPoint(1, 100.0, 100.0),
            ScalingPoint(4, 380.0, 95.0),
            ScalingPoint(16, 960.0, 60.0),
        ]

        cliff = detect_scaling_cliff(points)

        assert cliff.detected
        assert cliff.cliff_workers == 4
        assert cliff.efficiency_after == 60.0
        assert cliff.baseline_workers == 4
        assert cliff.comparison_workers == 16

    def test_no_cliff_below_threshold(self):
        points = [ScalingPoint(1, 1.0, 100.0), ScalingPoint(4, 1.0, 90.0), ScalingPoint(5, 1.0, 75.0)]
        cliff = detect_scaling_cliff(points)
        assert not cliff.detected
        assert cliff.efficiency_after is None
        assert cliff.comparison_workers == 5

    def test_drop_equal_to_threshold_is_a_cliff(self):
        points = [ScalingPoint(1, 1.0, 100.0), ScalingPoint(3, 1.0, 80.0)]
        cliff = detect_scaling_cliff(points)
        assert cliff.cliff_workers == 1
        assert cliff.efficiency_after == 80.0

    def test_baseline_priority(self):
        points = [ScalingPoint(n, 1.0, 100.0 - n) for n in (1, 2, 3)]
        assert detect_scaling_cliff(points).baseline_workers == 2

    def test_no_comparison_point(self):
        cliff = detect_scaling_cliff([ScalingPoint(1, 1.0, 100.0)])
        assert cliff.baseline_workers == 1
        assert cliff.comparison_workers is None
        assert not cliff.detected

    def test_no_baseline_candidate(self):
        cliff = detect_scaling_cliff([ScalingPoint(8, 1.0, 50.0)])
        assert cliff.baseline_workers is None

    def test_result_summary(self):
        result = CPUScalingResult(
            (ScalingPoint(1, 10.0, 100.0), ScalingPoint(3, 24.0, 80.0))
        )
        assert result.scaling_efficiency == pytest.approx(90.0)
        assert result.to_dict()["cliff"]["cliffThreads"] == 1


@pytest.mark.slow
class TestThreadScalingProfiler:
    """Tests that spin real worker threads."""

    def test_point_budget_not_divided_by_workers(self):
        profiler = ThreadScalingProfiler(max_workers=8, duration=3.0, sparse=True)
        assert profiler.worker_counts == [1, 4, 8]
        assert profiler.point_budget == pytest.approx(1.0)

    def test_workers_run_concurrently(self):
        active = set()
        peak = []
        lock = threading.Lock()

        def workload():
            name = threading.current_thread().name
            with lock:
                active.add(name)
                peak.append(len(active))
            time.sleep(0.002)
            with lock:
                active.discard(name)
            return 1

        profiler = ThreadScalingProfiler(max_workers=4, duration=0.05)
        throughput = profiler.measure_throughput(4, workload)

        assert throughput > 0
        assert max(peak) > 1

    def test_run(self):
        def workload():
            time.sleep(0.001)
            return 10

        result = ThreadScalingProfiler(max_workers=2, duration=0.04).run(workload)

        assert [p.workers for p in result.points] == [1, 2]
        assert result.points[0].efficiency_pct == 100.0
        assert all(p.throughput > 0 for p in result.points)

    def test_workload_failure_propagates(self):
        profiler = ThreadScalingProfiler(max_workers=2, duration=0.01)
        with pytest.raises(ZeroDivisionError):
            profiler.measure_throughput(2, Mock(side_effect=ZeroDivisionError()))


# =============================================================================
# Disk queue depth
# =============================================================================


class TestQueueDepthResults:
    def test_optimal_depth_handles_non_monotonic_series(self):
        points = (
            QueueDepthPoint(1, 1000.0, 3.9),
            QueueDepthPoint(4, 5000.0, 19.5),
            QueueDepthPoint(16, 4800.0, 18.75),
        )
        result = DiskProfileResult(points, points, 4096, MB, 10)

        assert result.optimal_read_depth == 4
        assert result.optimal_write_depth == 4
        assert result.peak_read_iops == 5000.0
        assert result.to_dict()["metadata"]["qdList"] == [1, 4, 16]

    def test_empty_series(self):
        assert optimal_depth(()) is None


@pytest.mark.slow
class TestConcurrentIOQueueSimulator:
    """Tests against a small real backing file."""

    @pytest.fixture
    def simulator(self, tmp_path):
        return ConcurrentIOQueueSimulator(
            queue_depths=[1, 2, 4],
            block_size=4 * KB,
            file_size=64 * KB,
            ops_per_worker=8,
            base_dir=str(tmp_path),
        )

    def test_run(self, simulator, tmp_path):
        result = simulator.run()

        assert [p.depth for p in result.read_points] == [1, 2, 4]
        assert [p.depth for p in result.write_points] == [1, 2, 4]
        for point in result.read_points + result.write_points:
            assert point.iops > 0
            assert point.mbps == pytest.approx(point.iops * 4 * KB / MB)
        assert result.optimal_read_depth in (1, 2, 4)
        # scratch directory removed
        assert list(tmp_path.iterdir()) == []

    def test_workspace_removed_on_failure(self, simulator, tmp_path):
        with patch.object(
            ConcurrentIOQueueSimulator, "run_depth", side_effect=RuntimeError("stalled")
        ):
            with pytest.raises(RuntimeError, match="stalled"):
                simulator.run()
        assert list(tmp_path.iterdir()) == []

    def test_write_flush_once_per_depth(self, simulator, tmp_path):
        with patch("hw_benchmark.profiles.disk.os.fsync", wraps=os.fsync) as fsync:
            simulator.run_matrix(str(tmp_path), is_read=False)
        assert fsync.call_count == 3

    def test_read_prefill_flushed_once(self, simulator, tmp_path):
        with patch("hw_benchmark.profiles.disk.os.fsync", wraps=os.fsync) as fsync:
            simulator.run_matrix(str(tmp_path), is_read=True)
        assert fsync.call_count == 1

    def test_each_worker_gets_own_handle(self, simulator, tmp_path):
        seen = set()
        original = ConcurrentIOQueueSimulator._worker

        def spy(self, fd, is_read):
            seen.add(fd)
            return original(self, fd, is_read)

        with patch.object(ConcurrentIOQueueSimulator, "_worker", spy):
            simulator.run_matrix(str(tmp_path), is_read=True)

        # depth 4 alone needs four distinct descriptors
        assert len(seen) >= 4

    def test_missing_base_dir_is_resource_error(self, tmp_path):
        simulator = ConcurrentIOQueueSimulator(
            queue_depths=[1], file_size=8 * KB, ops_per_worker=1,
            base_dir=str(tmp_path / "missing"),
        )
        with pytest.raises(ResourceError):
            simulator.run()

    def test_unopenable_file_is_resource_error(self, simulator, tmp_path):
        with pytest.raises(ResourceError):
            simulator.run_matrix(str(tmp_path / "missing"), is_read=True)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"queue_depths": []},
            {"queue_depths": [0, 1]},
            {"block_size": 0},
            {"file_size": 1024, "block_size": 4096},
            {"ops_per_worker": 0},
        ],
    )
    def test_invalid_arguments(self, kwargs):
        with pytest.raises(ValueError):
            ConcurrentIOQueueSimulator(**kwargs)


# =============================================================================
# Advanced profiler
# =============================================================================


@pytest.mark.slow
class TestAdvancedProfiler:
    def test_runs_selected_phases(self, tiny_preset, tmp_path):
        config = RunConfig(duration=0.02, quick_mode=True, preset=tiny_preset)
        profiler = AdvancedProfiler(
            config, max_workers=2, cpu_workload=lambda: 1, base_dir=str(tmp_path)
        )

        results = profiler.run(memory=False)

        assert results.memory is None
        assert [p.depth for p in results.disk.read_points] == [1, 2]
        assert [p.workers for p in results.cpu_scaling.points] == [1, 2]

        data = results.to_dict()
        assert data["metadata"]["preset"] == "quick"
        assert data["memory"] is None
        assert data["cpuScaling"]["threadScaling"][0]["efficiency"] == 100.0

    def test_cpu_scaling_skipped_without_workload(self, tiny_preset):
        config = RunConfig(duration=0.0, preset=tiny_preset)
        results = AdvancedProfiler(config).run(memory=False, disk=False)
        assert results.cpu_scaling is None


if __name__ == "__main__":
    pytest.main([__file__])
