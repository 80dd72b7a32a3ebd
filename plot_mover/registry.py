import logging
import os
from dataclasses import dataclass, field
from threading import BoundedSemaphore, Lock, RLock


class VolumeRegistry:
    """Busy/free status of every destination volume.

    Volumes are registered once and kept in path order so that selection is
    deterministic. The lock may be shared with other registries to form one
    critical section.
    """

    def __init__(self, volumes, lock=None):
        self._lock = lock if lock is not None else RLock()
        self._busy = {volume: False for volume in sorted(volumes)}

    def __len__(self):
        return len(self._busy)

    def __contains__(self, volume):
        return volume in self._busy

    def mark_busy(self, volume):
        with self._lock:
            if self._busy[volume]:
                return False
            self._busy[volume] = True
            return True

    def mark_free(self, volume):
        with self._lock:
            if volume in self._busy:
                self._busy[volume] = False

    def snapshot(self):
        with self._lock:
            return list(self._busy.items())

    def busy_volumes(self):
        with self._lock:
            return [volume for volume, busy in self._busy.items() if busy]

    def busy_count(self):
        return len(self.busy_volumes())


class SourceTracker:
    """Names of the source files a worker currently owns."""

    def __init__(self, lock=None):
        self._lock = lock if lock is not None else RLock()
        self._names = set()

    def __contains__(self, name):
        with self._lock:
            return name in self._names

    def __len__(self):
        with self._lock:
            return len(self._names)

    def reserve(self, name):
        with self._lock:
            if name in self._names:
                return False
            self._names.add(name)
            return True

    def release(self, name):
        with self._lock:
            self._names.discard(name)


@dataclass
class Reservation:
    """A volume, a source name and a concurrency slot held by one worker.

    Used as a context manager; leaving the block releases all three.
    """
    registry: 'TransferRegistry'
    source_path: str
    source_name: str
    size: int
    volume: str
    dest_path: str
    _released: bool = field(default=False, repr=False)
    _release_lock: Lock = field(default_factory=Lock, repr=False)

    def release(self):
        with self._release_lock:
            if self._released:
                return
            self._released = True
        self.registry.release(self)

    @property
    def released(self):
        return self._released

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False


class TransferRegistry:
    """Owns the volume registry, the source tracker and the worker slots.

    Every decision that leads to a reservation is taken under one lock, so a
    volume or a source file can never be handed to two workers.
    """

    def __init__(self, volumes):
        volumes = list(volumes)
        if not volumes:
            raise ValueError("At least one destination volume is required")
        self._lock = RLock()
        self.volumes = VolumeRegistry(volumes, self._lock)
        self.sources = SourceTracker(self._lock)
        self.slot_count = len(volumes)
        self._slots = BoundedSemaphore(self.slot_count)

    def is_in_flight(self, name):
        return name in self.sources

    def reserve(self, source_path, source_name, size, free_space):
        """Pick the first free volume with room for size bytes and claim it.

        Args:
            source_path (str): Full path of the plot in its staging location
            source_name (str): Base name used as the in-flight identifier
            size (int): Plot size in bytes
            free_space (callable): Returns live free bytes for a volume path

        Returns:
            Reservation or None if the file is in flight, no volume fits, or
            every worker slot is taken.
        """
        with self._lock:
            if source_name in self.sources:
                return None

            for volume, busy in self.volumes.snapshot():
                if busy:
                    continue
                try:
                    available = free_space(volume)
                except OSError as e:
                    logging.warning(f"Cannot query free space of {volume}: {e}")
                    continue
                if available < size:
                    logging.debug(f"Skipping {volume} for {source_name}: {available} bytes free, {size} needed")
                    continue

                if not self._slots.acquire(blocking=False):
                    logging.debug(f"No worker slot free for {source_name}, retrying next round")
                    return None

                self.volumes.mark_busy(volume)
                self.sources.reserve(source_name)
                return Reservation(
                    registry=self,
                    source_path=source_path,
                    source_name=source_name,
                    size=size,
                    volume=volume,
                    dest_path=os.path.join(volume, source_name),
                )

            return None

    def release(self, reservation):
        self.volumes.mark_free(reservation.volume)
        self.sources.release(reservation.source_name)
        self._slots.release()
