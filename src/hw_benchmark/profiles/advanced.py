"""
Advanced profiling: memory sweeps, disk queue-depth matrix and CPU scaling.

The phases run one after another, never overlapping, so each profile has the
machine to itself.
"""

import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ..core.config import RunConfig
from ..core.log import get_logger
from .disk import ConcurrentIOQueueSimulator, DiskProfileResult
from .scaling import CPUScalingResult, ThreadScalingProfiler, Workload
from .sweep import MemoryProfile, MemoryProfileResult

logger = get_logger(__name__)


@dataclass(frozen=True)
class AdvancedProfileResults:
    memory: Optional[MemoryProfileResult]
    disk: Optional[DiskProfileResult]
    cpu_scaling: Optional[CPUScalingResult]
    quick_mode: bool
    duration: float
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        from .. import __version__

        return {
            "metadata": {
                "version": __version__,
                "timestamp": self.timestamp.isoformat(),
                "preset": "quick" if self.quick_mode else "normal",
                "durationSeconds": self.duration,
            },
            "memory": self.memory.to_dict() if self.memory else None,
            "disk": self.disk.to_dict() if self.disk else None,
            "cpuScaling": self.cpu_scaling.to_dict() if self.cpu_scaling else None,
        }


class AdvancedProfiler:
    """Run the selected profiles sequentially using one preset."""

    def __init__(
        self,
        config: Optional[RunConfig] = None,
        max_workers: Optional[int] = None,
        cpu_workload: Optional[Workload] = None,
        base_dir: Optional[str] = None,
    ):
        """Initialize the profiler.

        Args:
            config: Duration and quick/full preset
            max_workers: Highest worker count for CPU scaling (CPU count if None)
            cpu_workload: Workload for the CPU scaling sweep; without one the
                sweep is skipped
            base_dir: Parent directory for disk profile scratch files
        """
        self.config = config if config is not None else RunConfig()
        self.max_workers = max_workers or os.cpu_count() or 1
        self.cpu_workload = cpu_workload
        self.base_dir = base_dir

    def profile_memory(self) -> MemoryProfileResult:
        return MemoryProfile(self.config.preset).run()

    def profile_disk(self) -> DiskProfileResult:
        preset = self.config.preset
        simulator = ConcurrentIOQueueSimulator(
            queue_depths=preset.queue_depths,
            block_size=preset.disk_block_size,
            file_size=preset.disk_file_size,
            ops_per_worker=preset.disk_ops_per_worker,
            base_dir=self.base_dir,
        )
        return simulator.run()

    def profile_cpu_scaling(self, workload: Workload) -> CPUScalingResult:
        profiler = ThreadScalingProfiler(
            max_workers=self.max_workers,
            duration=self.config.duration,
            sparse=self.config.preset.sparse_scaling,
        )
        return profiler.run(workload)

    def run(
        self, memory: bool = True, disk: bool = True, cpu_scaling: bool = True
    ) -> AdvancedProfileResults:
        """Run the selected profiles. Errors propagate and abort the run."""
        memory_result = None
        disk_result = None
        cpu_result = None

        if memory:
            logger.info("Memory profile")
            memory_result = self.profile_memory()

        if disk:
            logger.info("Disk profile")
            disk_result = self.profile_disk()

        if cpu_scaling:
            if self.cpu_workload is None:
                logger.warning("No CPU workload supplied, skipping CPU scaling profile")
            else:
                logger.info("CPU scaling profile")
                cpu_result = self.profile_cpu_scaling(self.cpu_workload)

        return AdvancedProfileResults(
            memory=memory_result,
            disk=disk_result,
            cpu_scaling=cpu_result,
            quick_mode=self.config.quick_mode,
            duration=self.config.duration,
        )
