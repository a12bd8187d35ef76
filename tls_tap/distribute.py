"""Per-record pipeline: decode, enrich, publish."""

from typing import Callable

from .broker import Broker
from .decoder import DEFAULT_LAYOUT, RecordLayout, decode
from .event import Address
from .process import enrich_address


class EventDistributor:
    """Turn raw kernel records into published TLSHandshakeEvents.

    Instances are used as the reader's on_record callback. DecodeError
    propagates to the caller, which drops the record.
    """

    def __init__(
        self,
        broker: Broker,
        enrich: Callable[[Address], None] = enrich_address,
        layout: RecordLayout = DEFAULT_LAYOUT,
    ):
        self.broker = broker
        self.enrich = enrich
        self.layout = layout

    def __call__(self, raw: bytes) -> None:
        event = decode(raw, self.layout)
        self.enrich(event.client)
        self.enrich(event.server)
        self.broker.publish(event)
