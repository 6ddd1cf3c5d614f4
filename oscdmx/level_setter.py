# oscdmx/level_setter.py
# -----------------------------------------------------------------------------
# LevelSetter: the one call the outside world makes.
#
#   validate -> open socket -> resolve start level -> fade -> persist -> close
#
# The store always records what we most recently *tried* to set, not what the
# receiver confirmed (UDP gives us no confirmation anyway). Turn that off with
# store.persist_on_failure: false.
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from .config_loader import FadeConfig, OscTargetConfig, StoreConfig
from .errors import ValidationError
from .fade_engine import FadeEngine
from .level_store import DMX_LEVEL_MAX, DMX_LEVEL_MIN, DmxAddress, LevelStore
from .osc_codec import dmx_address
from .transport import OscDmxOut

log = logging.getLogger("oscdmx.setter")


@dataclass(frozen=True)
class SetResult:
    delivered: bool
    persisted: bool
    start_level: int
    end_level: int
    sent: int = 0
    failed: int = 0

    @property
    def ok(self) -> bool:
        return self.delivered and self.persisted

    def __bool__(self) -> bool:
        return self.ok


def _check_level(name: str, level: Any) -> None:
    if isinstance(level, bool) or not isinstance(level, int):
        raise ValidationError(f"'{name}' DMX Level must be an integer. Provided: {level!r}")
    if not DMX_LEVEL_MIN <= level <= DMX_LEVEL_MAX:
        raise ValidationError(
            f"'{name}' DMX Level must be between {DMX_LEVEL_MIN} and {DMX_LEVEL_MAX}. Provided: {level}"
        )


def validate(universe: int, channel: int, from_level: Optional[int], to_level: int,
             duration: float) -> DmxAddress:
    for name, value in (("universe", universe), ("channel", channel)):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(f"DMX {name} must be an integer. Provided: {value!r}")
    addr = DmxAddress(universe, channel)
    if from_level is not None:
        _check_level("From", from_level)
    _check_level("To", to_level)
    if isinstance(duration, bool) or not isinstance(duration, (int, float)):
        raise ValidationError(f"Fade duration must be a number. Provided: {duration!r}")
    duration = float(duration)
    if math.isnan(duration) or math.isinf(duration) or duration < 0:
        raise ValidationError(f"Fade duration cannot be negative. Provided: {duration}")
    return addr


class LevelSetter:
    """
    Sets (or fades) one DMX channel via OSC and remembers the result.

    transport_factory / sleep are seams for tests; by default a fresh
    OscDmxOut is built for every call and time.sleep paces the fade.
    """

    def __init__(
        self,
        target: OscTargetConfig,
        store: StoreConfig,
        fade: FadeConfig = FadeConfig(),
        transport_factory: Optional[Callable[[OscTargetConfig], OscDmxOut]] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        self.target = target
        self.store_cfg = store
        self.fade_cfg = fade
        self._transport_factory = transport_factory or OscDmxOut
        self._sleep = sleep

    @classmethod
    def from_app(cls, cfg: Dict[str, Any], **kwargs) -> "LevelSetter":
        return cls(
            OscTargetConfig.from_app(cfg),
            StoreConfig.from_app(cfg),
            FadeConfig.from_app(cfg),
            **kwargs,
        )

    def set_level(self, universe: int, channel: int, to_level: int,
                  duration: float = 0.0, from_level: Optional[int] = None) -> SetResult:
        """
        Raises ValidationError (before any I/O) or SocketCreationError (nothing
        sent, store untouched). Everything else is reported through SetResult.
        """
        addr = validate(universe, channel, from_level, to_level, duration)
        duration = float(duration)
        osc_address = dmx_address(addr.universe, self.target.address_template)

        transport = self._transport_factory(self.target)
        transport.start()
        try:
            with LevelStore.open(self.store_cfg.path) as store:
                record = store.load()
                if from_level is None:
                    start = store.get_level(record, addr.universe, addr.channel)
                    log.info("start_level_remembered universe=%s channel=%s level=%s",
                             addr.universe, addr.channel, start)
                else:
                    start = from_level

                engine_kwargs = {"sleep": self._sleep} if self._sleep else {}
                engine = FadeEngine(transport, steps=self.fade_cfg.steps,
                                    type_tag=self.target.type_tag, **engine_kwargs)
                fade = engine.run_fade(osc_address, addr.channel, start, to_level, duration)

                persisted = True
                if fade.ok or self.store_cfg.persist_on_failure:
                    store.set_level(record, addr.universe, addr.channel, to_level)
                    persisted = store.save(record)
                    if not persisted:
                        log.error("levels_not_saved universe=%s channel=%s err=%s",
                                  addr.universe, addr.channel, store.last_error)
                else:
                    log.warning("levels_not_updated_after_failed_send universe=%s channel=%s",
                                addr.universe, addr.channel)
        finally:
            transport.stop()

        return SetResult(
            delivered=fade.ok,
            persisted=persisted,
            start_level=start,
            end_level=to_level,
            sent=fade.sent,
            failed=fade.failed,
        )
