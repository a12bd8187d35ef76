"""Main entry point for TLS Tap."""

import logging
import os
import signal
import threading
from pathlib import Path

import click

from .attach import TCAttachment
from .bpf import find_program_source, load_program
from .broker import ConsoleBroker, FanoutBroker, JsonLinesBroker, MetricsBroker
from .constants import PERF_BUFFER_PAGE_CNT
from .distribute import EventDistributor
from .errors import AttachmentError
from .metrics import start_metrics_server
from .reader import EventChannelReader
from .shutdown import ShutdownCoordinator

logger = logging.getLogger("tls_tap")

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Global state for signal handler access
_broker: FanoutBroker | None = None


def _handle_sigusr1(signum: int, frame) -> None:
    """Handle SIGUSR1 to reopen the JSON output file."""
    if _broker:
        _broker.reopen()


@click.command()
@click.argument("interface")
@click.option(
    "--program",
    type=click.Path(path_type=Path, dir_okay=False),
    help="BPF program source. Default: search the package and /usr/share/tls-tap.",
)
@click.option(
    "--page-cnt",
    default=PERF_BUFFER_PAGE_CNT,
    show_default=True,
    help="Perf buffer size in pages per CPU.",
)
@click.option(
    "--json",
    "-j",
    "json_file",
    type=click.Path(path_type=Path),
    help="Write JSON handshake events to FILE (one JSON doc per line).",
)
@click.option(
    "--pidfile",
    "-p",
    type=click.Path(path_type=Path),
    help="Write PID to FILE (for daemon management).",
)
@click.option(
    "--quiet",
    "-q",
    is_flag=True,
    help="Suppress per-event stdout output (for daemon mode).",
)
@click.option(
    "--metrics",
    "-m",
    is_flag=True,
    help="Enable Prometheus metrics endpoint.",
)
@click.option(
    "--metrics-host",
    default="localhost",
    show_default=True,
    help="Host to bind metrics server to.",
)
@click.option(
    "--metrics-port",
    default=12284,
    show_default=True,
    help="Port for metrics server.",
)
@click.option(
    "--keep-attached",
    is_flag=True,
    help="Leave the clsact qdisc and filters in place on exit.",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="INFO",
    show_default=True,
)
def main(
    interface: str,
    program: Path | None,
    page_cnt: int,
    json_file: Path | None,
    pidfile: Path | None,
    quiet: bool,
    metrics: bool,
    metrics_host: str,
    metrics_port: int,
    keep_attached: bool,
    log_level: str,
) -> None:
    """Report TLS handshakes seen on INTERFACE using a TC eBPF classifier."""
    global _broker

    logging.basicConfig(level=log_level.upper(), format=LOG_FORMAT)

    if not quiet:
        click.echo("TLS Tap - Capturing TLS handshakes")
        click.echo(f"  Interface: {interface}")
        if json_file:
            click.echo(f"  JSON output: {json_file}")
        if metrics:
            click.echo(f"  Metrics: http://{metrics_host}:{metrics_port}/metrics")
        if pidfile:
            click.echo(f"  PID file: {pidfile}")
        click.echo("Press Ctrl+C to stop")

    brokers = []
    if not quiet:
        brokers.append(ConsoleBroker())
    if json_file:
        brokers.append(JsonLinesBroker(json_file))
        click.echo("Send SIGUSR1 to reopen JSON file for log rotation", err=True)
    if metrics:
        start_metrics_server(metrics_host, metrics_port)
        brokers.append(MetricsBroker())
    broker = FanoutBroker(brokers)
    _broker = broker

    if pidfile:
        pidfile.write_text(str(os.getpid()))

    signal.signal(signal.SIGUSR1, _handle_sigusr1)

    tc = TCAttachment(
        interface,
        loader=lambda: load_program(find_program_source(program)),
        keep_attached=keep_attached,
    )

    def abort(message: str) -> None:
        tc.close()
        broker.close()
        if pidfile:
            pidfile.unlink(missing_ok=True)
        raise click.ClickException(message)

    try:
        loaded = tc.attach()
    except AttachmentError as e:
        abort(f"Error attaching to {interface}: {e}")

    if not (tc.report.ingress or tc.report.egress):
        abort(f"Could not attach a filter to {interface} in either direction")
    if tc.report.degraded:
        failed = ", ".join(s.step for s in tc.report.steps if not s.ok)
        logger.warning("Running with reduced coverage on %s (failed: %s)", interface, failed)

    try:
        channel = loaded.open_channel(page_cnt=page_cnt)
    except Exception as e:
        abort(f"Error opening event channel: {e}")

    token = threading.Event()
    coordinator = ShutdownCoordinator(token)
    coordinator.install()

    reader = EventChannelReader(channel, EventDistributor(broker), token)
    reader.start()

    if not quiet:
        click.echo(f"Listening for TLS handshakes on {interface}...\n")

    try:
        coordinator.run(channel, reader, resources=[tc, broker])
    finally:
        if pidfile:
            pidfile.unlink(missing_ok=True)

    click.echo("\nStopped.", err=True)


if __name__ == "__main__":
    main()
