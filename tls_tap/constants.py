"""Constants for TLS Tap."""

# Capacities of the variable-length arrays in the kernel tls_handshake_event
# struct (must match the BPF program)
MAX_TLS_VERSIONS = 32
MAX_CIPHERS = 100
MAX_SERVER_NAME_LEN = 128

# Units of the *_length fields, in bytes per array entry
TLS_VERSIONS_UNIT = 2
CIPHERS_UNIT = 2
SERVER_NAME_UNIT = 1

# BPF program and map names
TC_FUNCTION_NAME = "tc_filter"
EVENTS_MAP_NAME = "tls_handshake_events"

# clsact filter placement (pyroute2 places the qdisc itself at ffff:fff1, handle ffff:)
INGRESS_PARENT = "ffff:fff2"
EGRESS_PARENT = "ffff:fff3"
FILTER_HANDLE = ":1"
FILTER_PRIORITY = 1
ETH_P_ALL = 0x0003

# Perf buffer size in pages per CPU
PERF_BUFFER_PAGE_CNT = 64

# TLS version mapping
TLS_VERSIONS = {
    0x0300: "SSL 3.0",
    0x0301: "TLS 1.0",
    0x0302: "TLS 1.1",
    0x0303: "TLS 1.2",
    0x0304: "TLS 1.3",
}
