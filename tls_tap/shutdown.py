"""Graceful shutdown on termination signals."""

import logging
import signal
import threading
from typing import Iterable, Protocol

logger = logging.getLogger(__name__)

DEFAULT_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class Closeable(Protocol):
    def close(self) -> None: ...


class ShutdownCoordinator:
    """Wait for a termination signal, then tear down in dependency order.

    The token is the cancellation flag shared with the event reader; signal
    handlers only set it, so tests can drive shutdown by setting it directly.
    """

    # Upper bound on how long shutdown waits for the reader to notice the
    # closed channel
    READER_JOIN_TIMEOUT = 5.0

    def __init__(self, token: threading.Event, signals: Iterable[int] = DEFAULT_SIGNALS):
        self.token = token
        self.signals = tuple(signals)

    def install(self) -> None:
        """Register the signal handlers (main thread only)."""
        for signum in self.signals:
            signal.signal(signum, self._handle_signal)

    def _handle_signal(self, signum: int, frame) -> None:
        logger.info("Received %s, shutting down", signal.Signals(signum).name)
        self.token.set()

    def wait(self, poll_interval: float = 0.5) -> None:
        """Block until shutdown is requested."""
        # Short waits keep the main thread responsive to signal handlers
        while not self.token.wait(poll_interval):
            pass

    def shutdown(self, channel: Closeable, reader, resources: Iterable[Closeable] = ()) -> None:
        """Close the channel, wait for the reader, then release resources in order."""
        self.token.set()
        channel.close()
        if reader is not None:
            reader.join(self.READER_JOIN_TIMEOUT)
            if reader.is_alive():
                logger.warning("Event reader did not stop within %.1fs", self.READER_JOIN_TIMEOUT)
        for resource in resources:
            try:
                resource.close()
            except Exception:
                logger.exception("Error releasing %r", resource)
        logger.info("Closed gracefully")

    def run(self, channel: Closeable, reader, resources: Iterable[Closeable] = ()) -> None:
        """wait() then shutdown()."""
        self.wait()
        self.shutdown(channel, reader, resources)
