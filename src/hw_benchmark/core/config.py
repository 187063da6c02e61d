"""Run configuration and profiling presets."""

from dataclasses import dataclass, field
from typing import Tuple

KB = 1024
MB = 1024 * 1024


@dataclass(frozen=True)
class ProfilePreset:
    """Sizes, sweeps and minimum sampling thresholds for one profiling mode."""

    name: str

    # memory stride sweep (bytes)
    strides: Tuple[int, ...]
    stride_buffer_bytes: int
    stride_iterations: int

    # memory block-size sweep
    block_sizes: Tuple[int, ...]
    block_min_seconds: float
    block_min_bytes: int
    block_passes: int

    # disk queue-depth matrix
    queue_depths: Tuple[int, ...]
    disk_block_size: int
    disk_file_size: int
    disk_ops_per_worker: int

    # cpu thread scaling
    sparse_scaling: bool
    max_scaling_workers: int = 16

    @classmethod
    def quick(cls) -> "ProfilePreset":
        return cls(
            name="quick",
            strides=(8, 64, 256, 1024, 4096),
            stride_buffer_bytes=64 * MB,
            stride_iterations=5,
            block_sizes=(4 * KB, 32 * KB, 256 * KB, 4 * MB, 64 * MB),
            block_min_seconds=0.2,
            block_min_bytes=512 * MB,
            block_passes=3,
            queue_depths=(1, 4, 16),
            disk_block_size=4 * KB,
            disk_file_size=256 * MB,
            disk_ops_per_worker=100,
            sparse_scaling=True,
        )

    @classmethod
    def full(cls) -> "ProfilePreset":
        return cls(
            name="normal",
            strides=(8, 16, 32, 64, 128, 256, 512, 1024, 2048, 4096),
            stride_buffer_bytes=256 * MB,
            stride_iterations=10,
            block_sizes=(
                4 * KB, 8 * KB, 16 * KB, 32 * KB, 64 * KB,
                128 * KB, 256 * KB, 512 * KB, 1 * MB,
                4 * MB, 16 * MB, 64 * MB, 128 * MB,
            ),
            block_min_seconds=0.3,
            block_min_bytes=1024 * MB,
            block_passes=5,
            queue_depths=(1, 2, 4, 8, 16, 32),
            disk_block_size=4 * KB,
            disk_file_size=512 * MB,
            disk_ops_per_worker=500,
            sparse_scaling=False,
        )


@dataclass(frozen=True)
class RunConfig:
    """Top-level knobs for a benchmark or profiling run.

    Args:
        duration: Wall-clock budget in seconds, split across the sub-tests of
            a category (or the sweep points of a profile).
        quick_mode: Use the smaller ``quick`` preset.
    """

    duration: float = 10.0
    quick_mode: bool = False
    preset: ProfilePreset = field(default=None)

    def __post_init__(self):
        if self.duration < 0:
            raise ValueError(f"duration must be non-negative, got {self.duration}")
        if self.preset is None:
            preset = ProfilePreset.quick() if self.quick_mode else ProfilePreset.full()
            object.__setattr__(self, "preset", preset)
