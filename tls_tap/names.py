"""Human-readable names for TLS versions and cipher suites."""

from scapy.layers.tls.handshake import TLSServerHello

from .constants import TLS_VERSIONS

# Extract cipher suite mapping from Scapy's TLSServerHello field definition
_cipher_field = next(f for f in TLSServerHello.fields_desc if f.name == "cipher")
_scapy_cipher_suites = _cipher_field.i2s

# Suites seen in the wild that Scapy's database lacks
_extra_cipher_suites = {
    0xC0AC: "TLS_ECDHE_ECDSA_WITH_AES_128_CCM",
    0xC0AD: "TLS_ECDHE_ECDSA_WITH_AES_256_CCM",
    0xC0AE: "TLS_ECDHE_ECDSA_WITH_AES_128_CCM_8",
    0xC0AF: "TLS_ECDHE_ECDSA_WITH_AES_256_CCM_8",
    0x1304: "TLS_AES_128_CCM_SHA256",
    0x1305: "TLS_AES_128_CCM_8_SHA256",
    0x00FF: "TLS_EMPTY_RENEGOTIATION_INFO_SCSV",
    0x5600: "TLS_FALLBACK_SCSV",
}

CIPHER_SUITES = {**_scapy_cipher_suites, **_extra_cipher_suites}


def is_grease_value(value: int) -> bool:
    """Check if a value is a GREASE value (RFC 8701).

    GREASE values follow the pattern 0x?A?A where both bytes are the same.
    """
    high_byte = (value >> 8) & 0xFF
    low_byte = value & 0xFF
    return high_byte == low_byte and (high_byte & 0x0F) == 0x0A


def get_tls_version_str(version: int) -> str:
    """Convert TLS version number to human-readable string."""
    if is_grease_value(version):
        return "GREASE"
    return TLS_VERSIONS.get(version, f"Unknown (0x{version:04x})")


def get_cipher_suite_name(cipher: int) -> str:
    """Convert cipher suite code to human-readable name using Scapy's database."""
    if is_grease_value(cipher):
        return "GREASE"
    return CIPHER_SUITES.get(cipher, f"0x{cipher:04X}")
