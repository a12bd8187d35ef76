"""Kernel-to-userspace event channel backed by a BPF perf buffer."""

import ctypes
import logging
import threading
from collections import deque

from .constants import PERF_BUFFER_PAGE_CNT
from .errors import ChannelClosed
from .metrics import record_dropped

logger = logging.getLogger(__name__)


class PerfEventChannel:
    """Blocking, one-record-at-a-time view of a BPF perf buffer.

    read() polls the perf buffer in short slices so that close(), called
    from another thread, is observed within one poll interval.
    """

    def __init__(
        self,
        bpf,
        map_name: str,
        page_cnt: int = PERF_BUFFER_PAGE_CNT,
        poll_timeout_ms: int = 100,
    ):
        self._bpf = bpf
        self._poll_timeout_ms = poll_timeout_ms
        self._pending: deque[bytes] = deque()
        self._closed = threading.Event()
        self.lost = 0

        bpf[map_name].open_perf_buffer(
            self._on_sample, page_cnt=page_cnt, lost_cb=self._on_lost
        )

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def _on_sample(self, cpu, data, size) -> None:
        # data is only valid for the duration of the callback
        self._pending.append(ctypes.string_at(data, size))

    def _on_lost(self, lost) -> None:
        self.lost += lost
        record_dropped("lost", lost)
        logger.warning("Kernel dropped %d records (perf buffer full)", lost)

    def read(self) -> bytes:
        """Block until a record is available and return it.

        Raises ChannelClosed once close() has been called.
        """
        while True:
            if self._closed.is_set():
                raise ChannelClosed("event channel closed")
            if self._pending:
                return self._pending.popleft()
            self._bpf.perf_buffer_poll(timeout=self._poll_timeout_ms)

    def close(self) -> None:
        """Close the channel. Pending records are discarded."""
        if self._closed.is_set():
            return
        self._closed.set()
        self._pending.clear()
