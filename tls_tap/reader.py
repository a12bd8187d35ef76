"""Event channel read loop."""

import logging
import threading
from typing import Callable, Protocol

from .errors import ChannelClosed, DecodeError
from .metrics import record_dropped

logger = logging.getLogger(__name__)


class EventChannel(Protocol):
    def read(self) -> bytes: ...

    def close(self) -> None: ...


class EventChannelReader:
    """Drain an event channel on a background thread.

    Records are handed to on_record one at a time, in channel order. The
    loop ends when the channel reports ChannelClosed.
    """

    def __init__(
        self,
        channel: EventChannel,
        on_record: Callable[[bytes], None],
        token: threading.Event,
    ):
        self.channel = channel
        self.on_record = on_record
        self.token = token
        self.records = 0
        self.read_errors = 0
        self.decode_errors = 0
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        self._thread = threading.Thread(
            target=self.run, name="tls-tap-reader", daemon=True
        )
        self._thread.start()

    def join(self, timeout: float | None = None) -> None:
        if self._thread:
            self._thread.join(timeout)

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run(self) -> None:
        logger.info("Event reader started")
        while True:
            try:
                raw = self.channel.read()
            except ChannelClosed:
                logger.info("Event channel closed, reader exiting")
                return
            except Exception as e:
                if self.token.is_set():
                    logger.info("Shutdown requested, reader exiting")
                    return
                self.read_errors += 1
                record_dropped("read_error")
                logger.error("Error reading from event channel: %s", e)
                continue

            self.records += 1
            try:
                self.on_record(raw)
            except DecodeError as e:
                self.decode_errors += 1
                record_dropped("decode_error")
                logger.warning("Dropping undecodable record: %s", e)
            except Exception:
                record_dropped("publish_error")
                logger.exception("Error handling TLS handshake record")
