"""Decoding of raw tls_handshake_event records from the kernel.

The BPF program emits a fixed-size struct; the userspace side reads it field
by field in big-endian order:

    u32 saddr
    u32 daddr
    u16 sport
    u16 dport
    u16 tls_version
    u16 tls_versions_length
    u16 tls_versions[MAX_TLS_VERSIONS]
    u16 ciphers_length
    u16 ciphers[MAX_CIPHERS]
    u16 server_name_length
    u8  server_name[MAX_SERVER_NAME_LEN]
    u16 used_tls_version
    u16 used_cipher

The *_length fields are byte counts set by the producer and may exceed the
array capacity; they are clamped, not rejected.
"""

import struct
from dataclasses import dataclass

from .constants import (
    CIPHERS_UNIT,
    MAX_CIPHERS,
    MAX_SERVER_NAME_LEN,
    MAX_TLS_VERSIONS,
    SERVER_NAME_UNIT,
    TLS_VERSIONS_UNIT,
)
from .errors import DecodeError
from .event import Address, TLSHandshakeEvent
from .network import ipv4_to_str

BYTE_ORDER = ">"


@dataclass(frozen=True)
class RecordLayout:
    """Array capacities of the kernel record."""

    tls_versions: int = MAX_TLS_VERSIONS
    ciphers: int = MAX_CIPHERS
    server_name: int = MAX_SERVER_NAME_LEN

    @property
    def size(self) -> int:
        """Total size of the fixed record in bytes."""
        return struct.calcsize(
            f"{BYTE_ORDER}IIHHHH{self.tls_versions}HH{self.ciphers}HH"
            f"{self.server_name}sHH"
        )


DEFAULT_LAYOUT = RecordLayout()


class _Cursor:
    """Sequential, bounds-checked reader over a byte buffer."""

    def __init__(self, data: bytes):
        self._data = memoryview(data)
        self._offset = 0

    def read(self, fmt: str) -> tuple:
        fmt = BYTE_ORDER + fmt
        size = struct.calcsize(fmt)
        end = self._offset + size
        if end > len(self._data):
            raise DecodeError(
                f"record truncated at offset {self._offset}: "
                f"need {size} bytes, {len(self._data) - self._offset} left"
            )
        values = struct.unpack_from(fmt, self._data, self._offset)
        self._offset = end
        return values

    def u16(self) -> int:
        return self.read("H")[0]

    def u32(self) -> int:
        return self.read("I")[0]

    def u16_array(self, count: int) -> tuple[int, ...]:
        return self.read(f"{count}H")

    def raw(self, count: int) -> bytes:
        return self.read(f"{count}s")[0]


def clamp_length(declared: int, unit: int, capacity: int) -> int:
    """Return the number of usable array entries for a declared byte length."""
    return max(0, min(declared // unit, capacity))


def decode(raw: bytes, layout: RecordLayout = DEFAULT_LAYOUT) -> TLSHandshakeEvent:
    """Decode one raw record into a TLSHandshakeEvent.

    Raises DecodeError if the buffer is shorter than the fixed record.
    Trailing bytes past the record (perf buffer padding) are ignored.
    """
    if len(raw) < layout.size:
        raise DecodeError(
            f"record too short: {len(raw)} bytes, expected {layout.size}"
        )

    cur = _Cursor(raw)
    saddr = cur.u32()
    daddr = cur.u32()
    sport = cur.u16()
    dport = cur.u16()
    tls_version = cur.u16()

    tls_versions_length = cur.u16()
    tls_versions = cur.u16_array(layout.tls_versions)

    ciphers_length = cur.u16()
    ciphers = cur.u16_array(layout.ciphers)

    server_name_length = cur.u16()
    server_name = cur.raw(layout.server_name)

    used_tls_version = cur.u16()
    used_cipher = cur.u16()

    n_versions = clamp_length(tls_versions_length, TLS_VERSIONS_UNIT, layout.tls_versions)
    n_ciphers = clamp_length(ciphers_length, CIPHERS_UNIT, layout.ciphers)
    n_name = clamp_length(server_name_length, SERVER_NAME_UNIT, layout.server_name)

    versions = tls_versions[:n_versions]
    if not versions:
        # ClientHello without supported_versions: the legacy field is all we have
        versions = (tls_version,)

    return TLSHandshakeEvent(
        client=Address(ip=ipv4_to_str(saddr), port=sport),
        server=Address(ip=ipv4_to_str(daddr), port=dport),
        tls_versions=versions,
        ciphers=ciphers[:n_ciphers],
        server_name=server_name[:n_name].decode("utf-8", errors="ignore"),
        used_tls_version=used_tls_version,
        used_cipher=used_cipher,
    )
