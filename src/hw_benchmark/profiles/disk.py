"""
Disk queue-depth profile.

Queue depth is simulated with concurrent workers: at depth ``d`` exactly ``d``
threads each issue synchronous random ``pread``/``pwrite`` calls against their
own handle on a shared backing file.
"""

import os
import random
import tempfile
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from ..core.errors import ResourceError
from ..core.log import get_logger
from ..core.metrics import timed
from ..core.results import QueueDepthPoint

logger = get_logger(__name__)

MB = 1024 * 1024
PREFILL_CHUNK_BYTES = 4 * MB
PREFILL_BYTE = 0x5A
WORKSPACE_PREFIX = "hw-bench-disk-profile-"


def optimal_depth(points: Sequence[QueueDepthPoint]) -> Optional[int]:
    """Depth with the highest IOPS; the series need not be monotonic."""
    if not points:
        return None
    return max(points, key=lambda p: p.iops).depth


def peak_iops(points: Sequence[QueueDepthPoint]) -> float:
    return max((p.iops for p in points), default=0.0)


@dataclass(frozen=True)
class DiskProfileResult:
    read_points: Tuple[QueueDepthPoint, ...]
    write_points: Tuple[QueueDepthPoint, ...]
    block_size: int
    file_size: int
    ops_per_worker: int

    @property
    def optimal_read_depth(self) -> Optional[int]:
        return optimal_depth(self.read_points)

    @property
    def optimal_write_depth(self) -> Optional[int]:
        return optimal_depth(self.write_points)

    @property
    def peak_read_iops(self) -> float:
        return peak_iops(self.read_points)

    @property
    def peak_write_iops(self) -> float:
        return peak_iops(self.write_points)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "qdReadMatrix": [p.to_dict() for p in self.read_points],
            "qdWriteMatrix": [p.to_dict() for p in self.write_points],
            "metadata": {
                "blockSizeBytes": self.block_size,
                "fileSizeBytes": self.file_size,
                "opsPerQD": self.ops_per_worker,
                "qdList": [p.depth for p in self.read_points],
                "sync": "Reads prefill + fsync; writes fsync at end of each depth",
                "qdMapping": (
                    "Concurrent threads simulate queue depth; "
                    "each thread runs synchronous pread/pwrite ops"
                ),
            },
        }


class ConcurrentIOQueueSimulator:
    """Measure random 4 KiB-style IOPS at a list of queue depths."""

    def __init__(
        self,
        queue_depths: Sequence[int] = (1, 2, 4, 8, 16, 32),
        block_size: int = 4096,
        file_size: int = 512 * MB,
        ops_per_worker: int = 500,
        base_dir: Optional[str] = None,
        clock: Callable[[], float] = time.perf_counter,
    ):
        """Initialize the simulator.

        Args:
            queue_depths: Depths to test, in order
            block_size: Bytes per I/O; offsets are multiples of it
            file_size: Size of the backing file in bytes
            ops_per_worker: Operations each worker performs per depth
            base_dir: Parent of the scratch directory (system temp dir if None)
            clock: Monotonic clock returning seconds
        """
        if not queue_depths:
            raise ValueError("queue_depths must not be empty")
        if any(depth < 1 for depth in queue_depths):
            raise ValueError(f"queue depths must be at least 1, got {list(queue_depths)}")
        if block_size <= 0:
            raise ValueError(f"block_size must be positive, got {block_size}")
        if file_size < block_size:
            raise ValueError(
                f"file_size ({file_size}) must hold at least one block ({block_size})"
            )
        if ops_per_worker < 1:
            raise ValueError(f"ops_per_worker must be at least 1, got {ops_per_worker}")

        self.queue_depths = list(queue_depths)
        self.block_size = block_size
        self.file_size = file_size
        self.ops_per_worker = ops_per_worker
        self.base_dir = base_dir
        self._clock = clock

    @property
    def block_count(self) -> int:
        return self.file_size // self.block_size

    def run(self) -> DiskProfileResult:
        """Run the read and write matrices in a fresh scratch directory.

        The directory gets an unpredictable name and is removed whether the
        profile succeeds or fails.
        """
        try:
            workspace = tempfile.TemporaryDirectory(
                prefix=WORKSPACE_PREFIX, dir=self.base_dir
            )
        except OSError as exc:
            raise ResourceError(
                f"Failed to create disk profile directory: {exc}", self.base_dir
            ) from exc

        with workspace as directory:
            logger.info("Running QD matrix (read)...")
            read_points = self.run_matrix(directory, is_read=True)
            logger.info("Running QD matrix (write)...")
            write_points = self.run_matrix(directory, is_read=False)

        return DiskProfileResult(
            read_points=tuple(read_points),
            write_points=tuple(write_points),
            block_size=self.block_size,
            file_size=self.file_size,
            ops_per_worker=self.ops_per_worker,
        )

    def run_matrix(self, directory: str, is_read: bool) -> List[QueueDepthPoint]:
        """Test every queue depth in order against one backing file."""
        mode = "read" if is_read else "write"
        path = os.path.join(directory, f"qd_{mode}_{uuid.uuid4().hex}")

        fd = self._create_backing_file(path)
        try:
            if is_read:
                self._prefill(fd)
        finally:
            os.close(fd)

        try:
            points = []
            for depth in self.queue_depths:
                iops = self.run_depth(path, depth, is_read)
                mbps = iops * self.block_size / MB
                logger.debug("QD%d %s: %.0f IOPS, %.1f MB/s", depth, mode, iops, mbps)
                points.append(QueueDepthPoint(depth, iops, mbps))
            return points
        finally:
            os.remove(path)

    def run_depth(self, path: str, depth: int, is_read: bool) -> float:
        """Run ``depth`` concurrent workers and return the achieved IOPS.

        Handles are opened before the timed window. For writes, a single
        fsync after all workers finish is part of the window.
        """
        handles = self._open_handles(path, depth)
        try:
            with timed(self._clock) as timer:
                with ThreadPoolExecutor(
                    max_workers=depth, thread_name_prefix=f"qd{depth}-worker"
                ) as pool:
                    futures = [pool.submit(self._worker, fd, is_read) for fd in handles]
                completed = sum(future.result() for future in futures)
                if not is_read:
                    os.fsync(handles[0])
        finally:
            for fd in handles:
                os.close(fd)

        elapsed = timer.elapsed
        return completed / elapsed if elapsed > 0 else 0.0

    def _worker(self, fd: int, is_read: bool) -> int:
        rng = random.Random()
        block = bytes(self.block_size)
        block_count = self.block_count
        completed = 0
        for _ in range(self.ops_per_worker):
            offset = rng.randrange(block_count) * self.block_size
            if is_read:
                os.pread(fd, self.block_size, offset)
            else:
                os.pwrite(fd, block, offset)
            completed += 1
        return completed

    def _create_backing_file(self, path: str) -> int:
        flags = os.O_RDWR | os.O_CREAT | os.O_EXCL | getattr(os, "O_NOFOLLOW", 0)
        try:
            fd = os.open(path, flags, 0o600)
        except OSError as exc:
            raise ResourceError(f"Failed to open test file for disk profiling: {exc}", path) from exc
        try:
            os.ftruncate(fd, self.file_size)
        except OSError as exc:
            os.close(fd)
            raise ResourceError(f"Failed to size test file: {exc}", path) from exc
        return fd

    def _open_handles(self, path: str, count: int) -> List[int]:
        handles: List[int] = []
        try:
            for _ in range(count):
                handles.append(os.open(path, os.O_RDWR | getattr(os, "O_NOFOLLOW", 0)))
        except OSError as exc:
            for fd in handles:
                os.close(fd)
            raise ResourceError(f"Failed to open test file for disk profiling: {exc}", path) from exc
        return handles

    def _prefill(self, fd: int) -> None:
        """Write the whole file sequentially and flush it to stable storage."""
        chunk = bytes([PREFILL_BYTE]) * min(PREFILL_CHUNK_BYTES, self.file_size)
        os.lseek(fd, 0, os.SEEK_SET)
        written = 0
        while written < self.file_size:
            to_write = min(len(chunk), self.file_size - written)
            written += os.write(fd, chunk[:to_write])
        os.fsync(fd)
        # best effort: drop the freshly written pages so reads hit the device
        if hasattr(os, "posix_fadvise"):
            os.posix_fadvise(fd, 0, self.file_size, os.POSIX_FADV_DONTNEED)
        os.lseek(fd, 0, os.SEEK_SET)
