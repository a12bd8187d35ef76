"""Builders and fakes shared by the test suite."""

import ctypes
import queue
import socket
import struct
import time

from pyroute2.netlink.exceptions import NetlinkError

from tls_tap.decoder import BYTE_ORDER, DEFAULT_LAYOUT, RecordLayout
from tls_tap.errors import ChannelClosed


def ip_to_int(ip: str) -> int:
    return struct.unpack("!I", socket.inet_aton(ip))[0]


def build_record(
    saddr: str = "10.0.0.1",
    daddr: str = "93.184.216.34",
    sport: int = 51000,
    dport: int = 443,
    tls_version: int = 0x0303,
    tls_versions: tuple = (),
    tls_versions_length: int | None = None,
    ciphers: tuple = (),
    ciphers_length: int | None = None,
    server_name: bytes = b"",
    server_name_length: int | None = None,
    used_tls_version: int = 0,
    used_cipher: int = 0,
    layout: RecordLayout = DEFAULT_LAYOUT,
) -> bytes:
    """Pack a kernel tls_handshake_event the way the BPF program emits it."""
    if tls_versions_length is None:
        tls_versions_length = 2 * len(tls_versions)
    if ciphers_length is None:
        ciphers_length = 2 * len(ciphers)
    if server_name_length is None:
        server_name_length = len(server_name)

    versions = list(tls_versions[: layout.tls_versions])
    versions += [0] * (layout.tls_versions - len(versions))
    suites = list(ciphers[: layout.ciphers])
    suites += [0] * (layout.ciphers - len(suites))

    return struct.pack(
        f"{BYTE_ORDER}IIHHHH{layout.tls_versions}HH{layout.ciphers}HH"
        f"{layout.server_name}sHH",
        ip_to_int(saddr),
        ip_to_int(daddr),
        sport,
        dport,
        tls_version,
        tls_versions_length,
        *versions,
        ciphers_length,
        *suites,
        server_name_length,
        server_name[: layout.server_name],
        used_tls_version,
        used_cipher,
    )


class FakeIPRoute:
    """Records tc() calls; fails the ones listed in `failures`.

    failures maps (command, parent) to an errno; parent is None for qdisc
    commands.
    """

    def __init__(self, links=None, failures=None):
        self.links = links if links is not None else {"eth0": 2}
        self.failures = failures or {}
        self.calls = []
        self.closed = False

    def link_lookup(self, ifname):
        return [self.links[ifname]] if ifname in self.links else []

    def tc(self, command, kind=None, index=0, handle=0, **kwarg):
        self.calls.append((command, kind, index, handle, kwarg))
        code = self.failures.get((command, kwarg.get("parent")))
        if code is not None:
            raise NetlinkError(code)

    def close(self):
        self.closed = True


class FakeProgram:
    def __init__(self, fd=7, name="tc_filter"):
        self.fd = fd
        self.name = name
        self.closed = False

    def close(self):
        self.closed = True


class _FakeTable:
    def __init__(self, bpf):
        self._bpf = bpf

    def open_perf_buffer(self, callback, page_cnt=8, lost_cb=None):
        self._bpf.callback = callback
        self._bpf.lost_cb = lost_cb
        self._bpf.page_cnt = page_cnt


class FakeBPF:
    """Stands in for bcc.BPF: perf_buffer_poll() delivers scripted items.

    Items are raw bytes (a sample), an int (lost count) or an exception
    (raised from the poll).
    """

    def __init__(self):
        self.items = queue.Queue()
        self.callback = None
        self.lost_cb = None
        self.page_cnt = None
        self.polls = 0

    def __getitem__(self, name):
        return _FakeTable(self)

    def push(self, item):
        self.items.put(item)

    def perf_buffer_poll(self, timeout=-1):
        self.polls += 1
        try:
            item = self.items.get(timeout=timeout / 1000)
        except queue.Empty:
            return
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, int):
            self.lost_cb(item)
            return
        buf = ctypes.create_string_buffer(item, len(item))
        self.callback(0, ctypes.addressof(buf), len(item))


class ListChannel:
    """In-memory channel: read() yields scripted items, then reports closed."""

    def __init__(self, items):
        self.items = list(items)
        self.closed = False

    def read(self):
        if self.closed or not self.items:
            self.closed = True
            raise ChannelClosed("closed")
        item = self.items.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    def close(self):
        self.closed = True


def wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()
