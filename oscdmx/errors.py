# oscdmx/errors.py
# -----------------------------------------------------------------------------
# Error kinds for the OSC → DMX sender.
#
# Only ValidationError and SocketCreationError ever cross the LevelSetter
# boundary as exceptions. Send and persistence problems are logged where they
# happen and travel upward as result values.
# -----------------------------------------------------------------------------

from __future__ import annotations


class OscDmxError(Exception):
    """Base class for everything this package raises or reports."""


class ValidationError(OscDmxError, ValueError):
    """Out-of-range universe/channel/level/duration. Raised before any I/O."""


class SocketCreationError(OscDmxError):
    """The UDP socket could not be opened; nothing was sent."""


class SendError(OscDmxError):
    """A single datagram failed to transmit."""

    def __init__(self, message: str, errno: int | None = None):
        super().__init__(message)
        self.errno = errno


class PersistenceError(OscDmxError):
    pass


class PersistenceReadError(PersistenceError):
    """Store file unreadable or corrupt (self-healed by the store)."""


class PersistenceWriteError(PersistenceError):
    """Store file could not be written."""
