"""Exception types for TLS Tap."""


class TLSTapError(Exception):
    """Base class for TLS Tap errors."""


class ProgramLoadError(TLSTapError):
    """The kernel program could not be found, compiled or loaded."""


class AttachmentError(TLSTapError):
    """A fatal step of the TC attachment failed."""

    def __init__(self, step: str, message: str):
        super().__init__(f"{step}: {message}")
        self.step = step


class DecodeError(TLSTapError):
    """A raw event record could not be decoded."""


class ChannelClosed(TLSTapError):
    """The event channel was closed; no more records will be delivered."""
