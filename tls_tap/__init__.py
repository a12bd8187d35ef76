"""Passive TLS handshake visibility via a TC eBPF classifier."""

__version__ = "0.1.0"
