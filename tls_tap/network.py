"""Network address conversion utilities."""

import socket
import struct


def ipv4_to_str(ip_int: int) -> str:
    """Convert a network-order (big-endian) 32-bit IPv4 integer to a dotted string."""
    return socket.inet_ntoa(struct.pack("!I", ip_int))


def ipv4_to_hex(ip_str: str) -> str:
    """Convert a dotted IPv4 string to the hex format used in /proc/net/tcp.

    /proc/net/tcp prints the address as a host-order integer of the
    network-order bytes.
    """
    return f"{struct.unpack('=I', socket.inet_aton(ip_str))[0]:08X}"


def format_address(ip_str: str, port: int) -> str:
    """Format IP:port string."""
    return f"{ip_str}:{port}"
