# oscdmx/fade_engine.py
# -----------------------------------------------------------------------------
# Linear DMX fades as a sequence of OSC datagrams.
#
# Two modes:
#   Immediate  duration == 0  -> one datagram at end_level, no delay
#   Stepped    duration  > 0  -> N interpolated steps, duration/N apart, then one
#                                corrective datagram at exactly end_level
#
# Interpolation is anchored so step 0 == start and step N-1 == end before
# rounding. The trailing corrective send makes the receiver land on the exact
# target whatever the rounding did.
#
# A failed step is logged and counted but never stops the loop: a fade that
# partly reached the receiver beats one that silently stopped halfway.
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Iterator, List, Protocol

from .level_store import clamp_level
from .osc_codec import DMX_TYPE_TAG, encode_dmx_message
from .transport import SendResult

DEFAULT_STEPS = 100

log = logging.getLogger("oscdmx.fade")


class DatagramSink(Protocol):
    def send(self, datagram: bytes) -> SendResult: ...


@dataclass(frozen=True)
class FadeStep:
    level: int
    index: int
    offset: float  # seconds from fade start


@dataclass
class FadeResult:
    ok: bool
    sent: int
    failed: int
    steps: List[FadeStep]

    def __bool__(self) -> bool:
        return self.ok


def round_half_away(value: float) -> int:
    """Round like most calculators: 0.5 -> 1, -0.5 -> -1 (not banker's rounding)."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def plan_fade(start_level: int, end_level: int, duration: float,
              steps: int = DEFAULT_STEPS) -> Iterator[FadeStep]:
    """
    Yield every FadeStep for a fade, corrective final step included.

    >>> [s.level for s in plan_fade(0, 255, 0)]
    [255]
    """
    if duration == 0:
        yield FadeStep(level=clamp_level(end_level), index=0, offset=0.0)
        return

    per_step = (end_level - start_level) / (steps - 1 if steps > 1 else 1)
    time_per_step = duration / steps
    for i in range(steps):
        level = clamp_level(round_half_away(start_level + per_step * i))
        yield FadeStep(level=level, index=i, offset=i * time_per_step)

    yield FadeStep(level=clamp_level(end_level), index=steps, offset=float(duration))


class FadeEngine:
    """
    Drives one fade synchronously over an already-open transport.

    `sleep` is injectable so tests can run a 2 s fade instantly.
    """

    def __init__(self, transport: DatagramSink, steps: int = DEFAULT_STEPS,
                 type_tag: str = DMX_TYPE_TAG,
                 sleep: Callable[[float], None] = time.sleep):
        if steps < 1:
            raise ValueError(f"steps must be >= 1, got {steps}")
        self.transport = transport
        self.steps = steps
        self.type_tag = type_tag
        self._sleep = sleep

    def run_fade(self, address: str, channel: int, start_level: int, end_level: int,
                 duration: float) -> FadeResult:
        result = FadeResult(ok=True, sent=0, failed=0, steps=[])
        immediate = duration == 0
        time_per_step = 0.0 if immediate else duration / self.steps

        if immediate:
            log.info("set_immediate address=%s channel=%s level=%s", address, channel, end_level)
        else:
            log.info(
                "fade_start address=%s channel=%s from=%s to=%s duration_s=%s steps=%s",
                address, channel, start_level, end_level, duration, self.steps,
            )

        for step in plan_fade(start_level, end_level, duration, self.steps):
            self._emit(address, channel, step, result)
            # pace the interpolated steps only; nothing after step N-1
            if not immediate and step.index < self.steps - 1:
                self._sleep(time_per_step)

        if not immediate:
            log.info(
                "fade_complete address=%s channel=%s level=%s sent=%s failed=%s",
                address, channel, end_level, result.sent, result.failed,
            )
        return result

    def _emit(self, address: str, channel: int, step: FadeStep, result: FadeResult) -> None:
        datagram = encode_dmx_message(address, self.type_tag, channel, step.level)
        sent = self.transport.send(datagram)
        result.steps.append(step)
        if sent.ok:
            result.sent += 1
            log.debug("step_sent address=%s channel=%s level=%s step=%s",
                      address, channel, step.level, step.index)
            return
        result.ok = False
        result.failed += 1
        log.warning(
            "send_failed address=%s channel=%s level=%s step=%s err=%s",
            address, channel, step.level, step.index, sent.error,
        )
