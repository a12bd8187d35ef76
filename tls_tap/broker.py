"""Downstream consumers of TLS handshake events."""

import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Protocol, TextIO

import click

from .event import TLSHandshakeEvent
from .metrics import record_handshake
from .names import get_cipher_suite_name, get_tls_version_str

logger = logging.getLogger(__name__)


class Broker(Protocol):
    """Anything that accepts handshake events."""

    def publish(self, event: TLSHandshakeEvent) -> None: ...


class ConsoleBroker:
    """Print each event as a human-readable block."""

    def publish(self, event: TLSHandshakeEvent) -> None:
        client = str(event.client)
        if event.client.process:
            client += f" [{event.client.process}]"
        server = str(event.server)
        if event.server.process:
            server += f" [{event.server.process}]"

        versions = ", ".join(get_tls_version_str(v) for v in event.tls_versions)

        click.echo()
        click.echo(">>> TLS Handshake >>>")
        click.echo(f"  {client} --> {server}")
        if event.server_name:
            click.echo(f"  SNI:            {event.server_name}")
        click.echo(f"  Offered:        {versions}")
        click.echo(f"  Cipher Suites:  {len(event.ciphers)} offered")
        click.echo(f"  TLS Version:    {event.used_tls_version_str}")
        click.echo(f"  Cipher Suite:   {event.used_cipher_str}")


class JsonLinesBroker:
    """Write one JSON document per event, one per line."""

    def __init__(self, output_file: Path):
        self._output_path = output_file
        self._output_file: TextIO | None = open(output_file, "a")
        # publish() runs on the reader thread, reopen() in the SIGUSR1 handler
        self._lock = threading.RLock()

    def reopen(self) -> None:
        """Reopen output file (for log rotation)."""
        new_file = open(self._output_path, "a")
        with self._lock:
            old_file, self._output_file = self._output_file, new_file
        if old_file:
            old_file.close()
        logger.info("Reopened JSON output file %s", self._output_path)

    def close(self) -> None:
        """Close output file."""
        with self._lock:
            old_file, self._output_file = self._output_file, None
        if old_file:
            old_file.close()

    def publish(self, event: TLSHandshakeEvent) -> None:
        doc = {"datetime": datetime.now(timezone.utc).isoformat(), **event.to_dict()}
        with self._lock:
            if not self._output_file:
                return
            self._output_file.write(json.dumps(doc) + "\n")
            self._output_file.flush()


class MetricsBroker:
    """Count events in Prometheus metrics."""

    def publish(self, event: TLSHandshakeEvent) -> None:
        record_handshake(
            tls_version=event.used_tls_version_str,
            cipher_suite=event.used_cipher_str,
            tls_versions_offered=[get_tls_version_str(v) for v in event.tls_versions],
            cipher_suites_offered=[get_cipher_suite_name(c) for c in event.ciphers],
        )


class FanoutBroker:
    """Publish every event to several brokers, in order."""

    def __init__(self, brokers: Iterable[Broker]):
        self.brokers = list(brokers)

    def publish(self, event: TLSHandshakeEvent) -> None:
        for broker in self.brokers:
            broker.publish(event)

    def reopen(self) -> None:
        for broker in self.brokers:
            if hasattr(broker, "reopen"):
                broker.reopen()

    def close(self) -> None:
        for broker in self.brokers:
            if hasattr(broker, "close"):
                broker.close()
