"""
Advanced profiles: sweeps, queue-depth matrix and thread scaling.
"""

from .advanced import AdvancedProfileResults, AdvancedProfiler
from .disk import ConcurrentIOQueueSimulator, DiskProfileResult
from .scaling import CPUScalingResult, ThreadScalingProfiler, detect_scaling_cliff
from .sweep import MemoryProfile, SweepProfiler, detect_boundaries

__all__ = [
    "AdvancedProfileResults",
    "AdvancedProfiler",
    "CPUScalingResult",
    "ConcurrentIOQueueSimulator",
    "DiskProfileResult",
    "MemoryProfile",
    "SweepProfiler",
    "ThreadScalingProfiler",
    "detect_boundaries",
    "detect_scaling_cliff",
]
