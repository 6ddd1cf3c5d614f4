"""Fakes shared by the oscdmx tests: a recording transport and a no-wait clock."""

from typing import List, Optional, Set

from pythonosc.osc_message import OscMessage

from oscdmx.errors import SendError, SocketCreationError
from oscdmx.transport import SendResult


class FakeTransport:
    """Records datagrams instead of touching the network."""

    def __init__(self, fail_at: Optional[Set[int]] = None, fail_start: bool = False):
        self.fail_at = fail_at or set()
        self.fail_start = fail_start
        self.datagrams: List[bytes] = []
        self.started = 0
        self.stopped = 0

    def start(self):
        if self.fail_start:
            raise SocketCreationError("Error creating socket: [24] Too many open files")
        self.started += 1

    def stop(self):
        self.stopped += 1

    def send(self, datagram: bytes) -> SendResult:
        index = len(self.datagrams)
        self.datagrams.append(datagram)
        if index in self.fail_at:
            return SendResult(False, error=SendError("[101] Network is unreachable", errno=101))
        return SendResult(True, bytes_sent=len(datagram))

    @property
    def messages(self) -> List[OscMessage]:
        return [OscMessage(d) for d in self.datagrams]

    @property
    def levels(self) -> List[int]:
        return [m.params[1] for m in self.messages]


class FakeClock:
    def __init__(self):
        self.sleeps: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.sleeps.append(seconds)
