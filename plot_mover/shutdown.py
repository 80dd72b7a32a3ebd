import logging
import signal
import time
from enum import Enum
from threading import Event, Lock


class ShutdownState(Enum):
    RUNNING = 'running'
    DRAINING = 'draining'
    TERMINATED = 'terminated'


class ShutdownCoordinator:
    """Turns SIGINT/SIGTERM into a stop token and waits for workers to drain.

    The stop event is the cancellation token shared with the round loop, the
    staging walk and every chunked copy.
    """

    def __init__(self, registry, poll_interval=5, stop_event=None):
        self.registry = registry
        self.poll_interval = poll_interval
        self.stop_event = stop_event if stop_event is not None else Event()
        self._state = ShutdownState.RUNNING
        self._state_lock = Lock()

    @property
    def state(self):
        with self._state_lock:
            return self._state

    @property
    def stopping(self):
        return self.stop_event.is_set()

    def install_signal_handlers(self):
        signal.signal(signal.SIGINT, self._handle_signal)
        signal.signal(signal.SIGTERM, self._handle_signal)

    def _handle_signal(self, signum, frame):
        logging.warning(f"Received {signal.Signals(signum).name}, finishing current operations and exiting soon")
        self.request_stop()

    def request_stop(self):
        with self._state_lock:
            if self._state is ShutdownState.RUNNING:
                self._state = ShutdownState.DRAINING
        self.stop_event.set()

    def wait_for_drain(self):
        """Block until no volume is busy. Requests a stop first if needed."""
        self.request_stop()
        logging.warning("Stopped, waiting for all working transfers to stop")

        while True:
            busy = self.registry.volumes.busy_volumes()
            if not busy:
                break
            for volume in busy:
                logging.info(f"{volume} is still working")
            time.sleep(self.poll_interval)

        with self._state_lock:
            self._state = ShutdownState.TERMINATED
        logging.warning("All working transfers stopped")
