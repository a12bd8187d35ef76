"""Normalized TLS handshake events."""

from dataclasses import dataclass, field

from .names import get_cipher_suite_name, get_tls_version_str
from .network import format_address


@dataclass
class Address:
    """One end of an observed connection.

    Enrichment fills the optional fields in place before the event is
    published.
    """

    ip: str
    port: int
    process: str | None = None

    def __str__(self) -> str:
        return format_address(self.ip, self.port)

    def to_dict(self) -> dict:
        return {"ip": self.ip, "port": self.port, "process": self.process}


@dataclass(frozen=True)
class TLSHandshakeEvent:
    """One observed TLS negotiation."""

    client: Address
    server: Address
    tls_versions: tuple[int, ...]
    ciphers: tuple[int, ...] = field(default_factory=tuple)
    server_name: str = ""
    used_tls_version: int = 0
    used_cipher: int = 0

    @property
    def used_tls_version_str(self) -> str:
        return get_tls_version_str(self.used_tls_version)

    @property
    def used_cipher_str(self) -> str:
        return get_cipher_suite_name(self.used_cipher)

    def to_dict(self) -> dict:
        """Render the event as a JSON-ready dict."""
        return {
            "client": self.client.to_dict(),
            "server": self.server.to_dict(),
            "server_name": self.server_name,
            "tls_versions": [get_tls_version_str(v) for v in self.tls_versions],
            "cipher_suites_offered": [get_cipher_suite_name(c) for c in self.ciphers],
            "tls_version": self.used_tls_version_str,
            "cipher_suite": self.used_cipher_str,
        }
