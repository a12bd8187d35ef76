"""Address enrichment via /proc."""

import logging
import os
from functools import lru_cache
from pathlib import Path

from .event import Address
from .network import ipv4_to_hex

logger = logging.getLogger(__name__)

PROC_ROOT = Path("/proc")
PROC_NET_TCP = PROC_ROOT / "net" / "tcp"


@lru_cache(maxsize=256)
def find_process_by_inode(inode: str) -> tuple[int, str] | None:
    """Find process by socket inode (cached)."""
    socket_link = f"socket:[{inode}]"

    try:
        pid_dirs = list(PROC_ROOT.iterdir())
    except OSError as e:
        logger.debug("Cannot list %s: %s", PROC_ROOT, e)
        return None

    for pid_dir in pid_dirs:
        if not pid_dir.name.isdigit():
            continue

        try:
            for fd in (pid_dir / "fd").iterdir():
                try:
                    if os.readlink(fd) == socket_link:
                        comm_file = pid_dir / "comm"
                        proc_name = (
                            comm_file.read_text().strip()
                            if comm_file.exists()
                            else "unknown"
                        )
                        return (int(pid_dir.name), proc_name)
                except OSError:
                    continue
        except OSError:
            continue

    return None


def find_local_socket_inode(local_addr: str, proc_file: Path | None = None) -> str | None:
    """Return the inode of the socket bound to local_addr ("HEXIP:HEXPORT")."""
    proc_file = proc_file or PROC_NET_TCP
    try:
        with open(proc_file, "r") as f:
            lines = f.readlines()[1:]  # Skip header
    except OSError as e:
        logger.debug("Cannot read %s: %s", proc_file, e)
        return None

    for line in lines:
        parts = line.split()
        if len(parts) < 10:
            continue
        inode = parts[9]
        # Sockets in TIME_WAIT report inode 0
        if parts[1].upper() == local_addr and inode != "0":
            return inode

    return None


def get_process_by_address(ip: str, port: int) -> tuple[int, str] | None:
    """Look up PID and process name owning a local TCP socket."""
    try:
        local_addr = f"{ipv4_to_hex(ip)}:{port:04X}"
    except OSError:
        return None

    inode = find_local_socket_inode(local_addr)
    if inode is None:
        return None
    return find_process_by_inode(inode)


def enrich_address(address: Address) -> None:
    """Attach the owning local process to address, if it is a local socket."""
    proc_info = get_process_by_address(address.ip, address.port)
    if proc_info:
        pid, proc_name = proc_info
        address.process = f"{proc_name} (PID {pid})"
