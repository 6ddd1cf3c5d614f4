# oscdmx/transport.py
# -----------------------------------------------------------------------------
# oscdmx → OLA (OSC OUT over UDP)
# One socket per LevelSetter call: opened by start(), reused for every datagram
# of a single set or a whole fade, released by stop() on every exit path.
#
# Failures come back as SendResult values instead of exceptions so the fade
# loop can keep going. The only raise is SocketCreationError from start().
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
import socket
from dataclasses import dataclass
from typing import Optional

from .config_loader import OscTargetConfig
from .errors import SendError, SocketCreationError

log = logging.getLogger("oscdmx.transport")


@dataclass(frozen=True)
class SendResult:
    ok: bool
    bytes_sent: int = 0
    error: Optional[SendError] = None

    def __bool__(self) -> bool:
        return self.ok


class OscDmxOut:
    def __init__(self, cfg: OscTargetConfig):
        self.host = cfg.host
        self.port = cfg.port
        self._sock: Optional[socket.socket] = None

    @property
    def is_open(self) -> bool:
        return self._sock is not None

    def start(self) -> None:
        if self._sock is not None:
            return
        try:
            self._sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
        except OSError as e:
            raise SocketCreationError(f"Error creating socket: [{e.errno}] {e.strerror}") from e
        log.debug("socket_open host=%s port=%s", self.host, self.port)

    def stop(self) -> None:
        if self._sock is None:
            return
        try:
            self._sock.close()
        finally:
            self._sock = None
            log.debug("socket_closed host=%s port=%s", self.host, self.port)

    def __enter__(self) -> "OscDmxOut":
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.stop()

    # ----------------------- public API -----------------------

    def send_to(self, datagram: bytes, host: str, port: int) -> SendResult:
        """Fire-and-forget one datagram. No retry, no acknowledgement."""
        if self._sock is None:
            return SendResult(False, error=SendError("socket is not open"))
        try:
            n = self._sock.sendto(datagram, (host, port))
        except OSError as e:
            return SendResult(False, error=SendError(f"[{e.errno}] {e.strerror or e}", errno=e.errno))
        return SendResult(True, bytes_sent=n)

    def send(self, datagram: bytes) -> SendResult:
        return self.send_to(datagram, self.host, self.port)
