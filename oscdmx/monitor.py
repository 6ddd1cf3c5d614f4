# ============================================================================
# oscdmx - OSC DMX Monitor
# ============================================================================
# Purpose:
#   Listens for the same OSC datagrams OLA would receive and turns them back
#   into (universe, channel, level) events. Used by tools/osc_listen.py to
#   check what a fade actually put on the wire, and by the loopback tests.
#
# Architecture:
#   - Uses BlockingOSCUDPServer so messages are handled in arrival order
#   - serve_forever() runs in a daemon thread
#   - Every decoded event goes to an optional callback and an internal queue
#
# OSC Message Format:
#   /dmx/universe/<universe> ,ii <channel> <level>
#
# Dependencies:
#   - pythonosc: OSC protocol implementation
# ============================================================================

from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from pythonosc.dispatcher import Dispatcher
from pythonosc.osc_server import BlockingOSCUDPServer

from .osc_codec import DMX_ADDRESS_PREFIX

log = logging.getLogger("oscdmx.monitor")


@dataclass(frozen=True)
class DmxLevelEvent:
    universe: int
    channel: int
    level: int


class DmxMonitor:
    """
    OSC receiver for /dmx/universe/* messages.

    Callbacks:
        on_level(event: DmxLevelEvent): called from the receiver thread for
            every well-formed DMX message. Keep it lightweight.

    Messages with any other address, or without two int arguments, are
    ignored.
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 7770,
        on_level: Optional[Callable[[DmxLevelEvent], None]] = None,
    ):
        self.host = host
        self.port = port
        self._on_level = on_level
        self._events: "queue.Queue[DmxLevelEvent]" = queue.Queue()

        # Server lifecycle management
        self._server: Optional[BlockingOSCUDPServer] = None
        self._thread: Optional[threading.Thread] = None

    # -------------------------------------------------------------------------
    # Lifecycle Management
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Bind and serve in a daemon thread. Idempotent."""
        if self._server:
            return

        disp = Dispatcher()
        disp.set_default_handler(self._handle_default)

        self._server = BlockingOSCUDPServer((self.host, self.port), disp)
        self._thread = threading.Thread(
            target=self._server.serve_forever,
            name="osc_dmx_monitor",
            daemon=True,
        )
        self._thread.start()
        log.info("monitor_listen host=%s port=%s", self.host, self.server_address[1])

    def stop(self) -> None:
        """Shut down and release the UDP port. Safe to call when not running."""
        if not self._server:
            return
        try:
            self._server.shutdown()
            self._server.server_close()
        finally:
            self._server = None
            self._thread = None

    def __enter__(self) -> "DmxMonitor":
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.stop()

    @property
    def server_address(self) -> Tuple[str, int]:
        """Actual bound (host, port); useful when started on port 0."""
        if not self._server:
            return self.host, self.port
        return self._server.server_address[:2]

    # -------------------------------------------------------------------------
    # Consumption
    # -------------------------------------------------------------------------

    def wait_for(self, count: int, timeout: float = 2.0) -> List[DmxLevelEvent]:
        """Collect up to `count` events, giving up once `timeout` has elapsed."""
        events: List[DmxLevelEvent] = []
        deadline = time.monotonic() + timeout
        while len(events) < count:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            try:
                events.append(self._events.get(timeout=remaining))
            except queue.Empty:
                break
        return events

    # -------------------------------------------------------------------------
    # Message Handlers
    # -------------------------------------------------------------------------

    def _handle_default(self, addr: str, *args):
        if not addr.startswith(DMX_ADDRESS_PREFIX):
            return
        try:
            universe = int(addr[len(DMX_ADDRESS_PREFIX):])
        except ValueError:
            return
        if len(args) != 2 or not all(isinstance(a, int) for a in args):
            log.debug("monitor_ignored address=%s args=%r", addr, list(args))
            return

        event = DmxLevelEvent(universe=universe, channel=args[0], level=args[1])
        self._events.put(event)
        if self._on_level:
            try:
                self._on_level(event)
            except Exception:
                # one bad callback must not kill the receiver thread
                log.exception("monitor_callback_failed")
