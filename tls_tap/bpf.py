"""BPF program loading."""

import logging
from dataclasses import dataclass
from pathlib import Path

from bcc import BPF

from .channel import PerfEventChannel
from .constants import EVENTS_MAP_NAME, PERF_BUFFER_PAGE_CNT, TC_FUNCTION_NAME
from .errors import ProgramLoadError

logger = logging.getLogger(__name__)

PROGRAM_FILE_NAME = "tls_tap.bpf.c"


def find_program_source(path: Path | None = None) -> Path:
    """Locate the BPF program source.

    An explicit path wins; otherwise search the package directory, the repo
    root and the system-wide share directory.
    """
    if path is not None:
        if not path.exists():
            raise ProgramLoadError(f"BPF program not found: {path}")
        return path

    module_dir = Path(__file__).parent
    search_paths = [
        module_dir / PROGRAM_FILE_NAME,  # Installed package
        module_dir.parent / PROGRAM_FILE_NAME,  # Development: repo root
        Path("/usr/share/tls-tap") / PROGRAM_FILE_NAME,  # System-wide installation
    ]

    for candidate in search_paths:
        if candidate.exists():
            return candidate

    searched = ", ".join(str(p) for p in search_paths)
    raise ProgramLoadError(f"BPF program not found. Searched: {searched}")


@dataclass
class LoadedProgram:
    """A compiled TC classifier and the map it emits events into."""

    bpf: BPF
    fn: object
    events_map: str = EVENTS_MAP_NAME

    @property
    def fd(self) -> int:
        return self.fn.fd

    @property
    def name(self) -> str:
        return self.fn.name.decode() if isinstance(self.fn.name, bytes) else self.fn.name

    def open_channel(self, page_cnt: int = PERF_BUFFER_PAGE_CNT) -> PerfEventChannel:
        """Open the perf buffer the program writes handshake events to."""
        return PerfEventChannel(self.bpf, self.events_map, page_cnt=page_cnt)

    def close(self) -> None:
        """Release the program and its maps."""
        self.bpf.cleanup()


def load_program(
    source: Path,
    fn_name: str = TC_FUNCTION_NAME,
    events_map: str = EVENTS_MAP_NAME,
) -> LoadedProgram:
    """Compile the BPF source and load its TC classifier function."""
    logger.info("Loading BPF program from %s", source)
    try:
        bpf = BPF(src_file=str(source))
    except Exception as e:
        raise ProgramLoadError(f"Error compiling BPF program {source}: {e}") from e

    try:
        fn = bpf.load_func(fn_name, BPF.SCHED_CLS)
    except Exception as e:
        bpf.cleanup()
        raise ProgramLoadError(f"Error loading function {fn_name}: {e}") from e

    return LoadedProgram(bpf=bpf, fn=fn, events_map=events_map)
