import os
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from threading import Event, Lock
from time import time

from .errors import WalkError
from .filesystem import get_fs_free_space, is_plot_file, is_regular_file, _format_bytes
from .logging_setup import WORKER_THREAD_PREFIX
from .mover import DEFAULT_CHUNK_SIZE, TransferOutcome, transfer_plot


@dataclass
class TransferStats:
    moved: int = 0
    copy_failed: int = 0
    mismatched: int = 0
    cancelled: int = 0
    errors: int = 0
    bytes_moved: int = 0
    started_at: float = 0.0

    @property
    def failed(self):
        return self.copy_failed + self.mismatched + self.errors

    @property
    def elapsed(self):
        return time() - self.started_at if self.started_at else 0.0

    @property
    def avg_speed(self):
        elapsed = self.elapsed
        return self.bytes_moved / elapsed if elapsed > 0 else 0


class Dispatcher:
    """Scans staging locations each round and hands plots to transfer workers."""

    def __init__(self, config, registry, stop_event=None, free_space=get_fs_free_space,
                 transfer=transfer_plot):
        self.config = config
        self.registry = registry
        self.stop_event = stop_event if stop_event is not None else Event()
        self.free_space = free_space
        self.transfer = transfer

        settings = config['Settings']
        self.staging_paths = config['Paths']['STAGING_PATHS']
        self.suffix = settings['PLOT_SUFFIX']
        self.round_interval = settings['ROUND_INTERVAL']
        self.stop_poll_interval = settings['STOP_POLL_INTERVAL']
        self.chunk_size = int(settings.get('CHUNK_SIZE_MB', 1) * DEFAULT_CHUNK_SIZE)

        self.executor = ThreadPoolExecutor(
            max_workers=registry.slot_count,
            thread_name_prefix=WORKER_THREAD_PREFIX
        )
        self.stats = TransferStats(started_at=time())
        self._stats_lock = Lock()
        self.futures = set()

    def iter_plot_files(self, staging_path):
        """
        Walk a staging location and yield its plot files in sorted order.

        Stops early once the stop event is set.

        Yields:
            tuple: (path, name, size) for each regular plot file

        Raises:
            WalkError: If any directory in the tree cannot be listed
        """
        def on_error(err):
            raise WalkError(getattr(err, 'filename', None) or staging_path, err)

        for root, dirs, files in os.walk(staging_path, onerror=on_error):
            dirs.sort()
            for name in sorted(files):
                if self.stop_event.is_set():
                    return
                if not is_plot_file(name, self.suffix):
                    continue
                path = os.path.join(root, name)
                try:
                    regular, size = is_regular_file(path)
                except FileNotFoundError:
                    logging.debug(f"{path} disappeared before it could be checked")
                    continue
                except OSError as e:
                    raise WalkError(path, e) from e
                if regular:
                    yield path, name, size

    def dispatch(self, path, name, size):
        """Reserve a destination for one plot and start its worker.

        Returns:
            Future or None if the plot is left for a later round.
        """
        if self.stop_event.is_set():
            logging.debug(f"Stop requested, not starting a transfer for {path}")
            return None

        if self.registry.is_in_flight(name):
            logging.debug(f"{name} is already being transferred, skipping")
            return None

        reservation = self.registry.reserve(path, name, size, self.free_space)
        if reservation is None:
            logging.debug(f"No free destination for {path} ({_format_bytes(size)}) this round")
            return None

        try:
            future = self.executor.submit(
                self.transfer,
                reservation,
                self.stop_event,
                self.chunk_size
            )
        except RuntimeError:
            reservation.release()
            raise
        future.reservation = reservation
        with self._stats_lock:
            self.futures.add(future)
        future.add_done_callback(self._record_result)
        return future

    def _record_result(self, future):
        reservation = future.reservation
        with self._stats_lock:
            self.futures.discard(future)
            try:
                outcome, bytes_moved, _ = future.result()
            except Exception as e:
                # Worker outcomes are handled inside transfer_plot; this is a bug path.
                logging.error(f"Unexpected error transferring {reservation.source_path}: {e}")
                self.stats.errors += 1
                return

            if outcome is TransferOutcome.MOVED:
                self.stats.moved += 1
                self.stats.bytes_moved += bytes_moved
            elif outcome is TransferOutcome.COPY_FAILED:
                self.stats.copy_failed += 1
            elif outcome is TransferOutcome.MISMATCH:
                self.stats.mismatched += 1
            elif outcome is TransferOutcome.CANCELLED:
                self.stats.cancelled += 1

    def run_round(self, round_no=1):
        """Scan every staging location once. Returns the number of workers started."""
        logging.debug(f"Round NO.{round_no}")
        dispatched = 0
        for staging_path in self.staging_paths:
            if self.stop_event.is_set():
                break
            for path, name, size in self.iter_plot_files(staging_path):
                if self.dispatch(path, name, size) is not None:
                    dispatched += 1

        if dispatched:
            busy = self.registry.volumes.busy_count()
            logging.info(f"Round NO.{round_no}: started {dispatched} transfers, {busy}/{len(self.registry.volumes)} volumes busy")
        return dispatched

    def wait_for_next_round(self):
        """Sleep until the next round, waking early if a stop is requested."""
        logging.info(f"Waiting {self.round_interval}s before next round")
        deadline = time() + self.round_interval
        while not self.stop_event.is_set():
            remaining = deadline - time()
            if remaining <= 0:
                break
            self.stop_event.wait(min(self.stop_poll_interval, remaining))

    def run(self, max_rounds=None):
        """
        Run rounds until stopped.

        Args:
            max_rounds (int): Stop after this many rounds (None runs forever)

        Raises:
            WalkError: A staging location could not be walked
        """
        round_no = 0
        while not self.stop_event.is_set():
            round_no += 1
            self.run_round(round_no)
            if max_rounds is not None and round_no >= max_rounds:
                break
            self.wait_for_next_round()
        logging.info(f"Round loop finished after {round_no} rounds")

    def close(self):
        self.executor.shutdown(wait=True)

    def summary(self):
        with self._stats_lock:
            stats = self.stats
            mb_per_second = stats.avg_speed / (1024 * 1024)
            return (
                f"Moved {stats.moved} plots ({_format_bytes(stats.bytes_moved)}) "
                f"in {stats.elapsed:.1f}s ({mb_per_second:.2f} MB/s), "
                f"{stats.failed} failed, {stats.cancelled} cancelled"
            )
