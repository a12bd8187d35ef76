"""Prometheus metrics for TLS Tap."""

from prometheus_client import Counter, start_http_server

# Counter for observed TLS handshakes, by negotiated version and cipher
tls_handshakes_total = Counter(
    "tls_handshakes_total",
    "Total number of TLS handshakes observed",
    ["tls_version", "cipher_suite"],
)

# Counter for TLS versions offered by clients
tls_versions_offered_total = Counter(
    "tls_versions_offered_total",
    "Total number of times each TLS version was offered by clients",
    ["tls_version"],
)

# Counter for cipher suites offered by clients
tls_cipher_suites_offered_total = Counter(
    "tls_cipher_suites_offered_total",
    "Total number of times each cipher suite was offered by clients",
    ["cipher_suite"],
)

# Counter for records that never made it to a broker
tls_tap_records_dropped_total = Counter(
    "tls_tap_records_dropped_total",
    "Total number of kernel records dropped",
    ["reason"],
)


def start_metrics_server(host: str, port: int) -> None:
    """Start the Prometheus metrics HTTP server."""
    start_http_server(port, addr=host)


def record_handshake(
    tls_version: str,
    cipher_suite: str,
    tls_versions_offered: list[str],
    cipher_suites_offered: list[str],
) -> None:
    """Record metrics for an observed TLS handshake."""
    tls_handshakes_total.labels(
        tls_version=tls_version,
        cipher_suite=cipher_suite,
    ).inc()

    for version in tls_versions_offered:
        tls_versions_offered_total.labels(tls_version=version).inc()

    for suite in cipher_suites_offered:
        tls_cipher_suites_offered_total.labels(cipher_suite=suite).inc()


def record_dropped(reason: str, count: int = 1) -> None:
    """Record kernel records dropped for the given reason."""
    tls_tap_records_dropped_total.labels(reason=reason).inc(count)
