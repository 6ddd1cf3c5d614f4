# oscdmx/level_store.py
# -----------------------------------------------------------------------------
# Last-known DMX levels, persisted as a small pretty-printed JSON document:
#
#   { "<universe>": { "<channel>": <level>, ... }, ... }
#
# Purpose:
#   Lets a fade start from "wherever we last left this channel" when the caller
#   does not say where to start from.
#
# Behaviour:
#   - Missing file -> empty record (not an error).
#   - File that does not decode -> renamed to <file>.bak.<unix-ts>, empty record.
#   - Writes hold an exclusive flock on <file>.lock and land via os.replace, so
#     two invocations never interleave partial writes.
#   - There is no read-modify-write transaction across processes: two writers
#     racing can lose one update. Last writer wins.
# -----------------------------------------------------------------------------

from __future__ import annotations

import contextlib
import fcntl
import json
import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, Optional

from .errors import PersistenceError, PersistenceReadError, PersistenceWriteError, ValidationError

DMX_CHANNEL_MIN = 1
DMX_CHANNEL_MAX = 512
DMX_LEVEL_MIN = 0
DMX_LEVEL_MAX = 255

# universe -> (channel -> level)
LevelRecord = Dict[int, Dict[int, int]]

log = logging.getLogger("oscdmx.store")


def clamp_level(level: int) -> int:
    return max(DMX_LEVEL_MIN, min(DMX_LEVEL_MAX, int(level)))


@dataclass(frozen=True)
class DmxAddress:
    """One controllable attribute: (universe >= 0, channel in 1..512)."""
    universe: int
    channel: int

    def __post_init__(self):
        if self.universe < 0:
            raise ValidationError(f"DMX Universe cannot be negative. Provided: {self.universe}")
        if not DMX_CHANNEL_MIN <= self.channel <= DMX_CHANNEL_MAX:
            raise ValidationError(
                f"DMX Channel must be between {DMX_CHANNEL_MIN} and {DMX_CHANNEL_MAX}. "
                f"Provided: {self.channel}"
            )


# ---------- record helpers (pure) ----------

def get_level(record: LevelRecord, universe: int, channel: int) -> int:
    """Remembered level for (universe, channel); 0 if never written."""
    return record.get(universe, {}).get(channel, 0)


def set_level(record: LevelRecord, universe: int, channel: int, level: int) -> LevelRecord:
    record.setdefault(universe, {})[channel] = clamp_level(level)
    return record


def _record_from_json(data: object, path: Path) -> LevelRecord:
    record: LevelRecord = {}
    if not isinstance(data, dict):
        log.warning("store_root_not_object path=%s type=%s", path, type(data).__name__)
        return record
    for u_key, channels in data.items():
        try:
            universe = int(u_key)
        except (TypeError, ValueError):
            log.warning("store_bad_universe_key path=%s key=%r", path, u_key)
            continue
        if not isinstance(channels, dict):
            log.warning("store_bad_universe_entry path=%s universe=%s", path, universe)
            continue
        for c_key, level in channels.items():
            try:
                channel, value = int(c_key), clamp_level(level)
            except (TypeError, ValueError, OverflowError):
                # non-numeric, or Infinity / 1e400 that json.loads turns into inf
                log.warning(
                    "store_bad_channel_entry path=%s universe=%s key=%r level=%r",
                    path, universe, c_key, level,
                )
                continue
            record.setdefault(universe, {})[channel] = value
    return record


def _record_to_json(record: LevelRecord) -> str:
    doc = {
        str(u): {str(c): clamp_level(lvl) for c, lvl in sorted(chans.items())}
        for u, chans in sorted(record.items())
    }
    return json.dumps(doc, indent=4)


# ---------- store ----------

class LevelStore:
    """
    File-backed LevelRecord with an explicit open/close lifecycle.

    Usage:
        with LevelStore.open("dmx_levels.json") as store:
            rec = store.load()
            set_level(rec, 1, 1, 255)
            store.save(rec)
    """

    def __init__(self, path: str | os.PathLike[str]):
        self.path = Path(path)
        self.lock_path = self.path.with_name(self.path.name + ".lock")
        self.last_error: Optional[PersistenceError] = None
        self._open = False

    @classmethod
    def open(cls, path: str | os.PathLike[str]) -> "LevelStore":
        store = cls(path)
        store._open = True
        return store

    def close(self) -> None:
        self._open = False

    @property
    def closed(self) -> bool:
        return not self._open

    def __enter__(self) -> "LevelStore":
        self._open = True
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _check_open(self) -> None:
        if not self._open:
            raise RuntimeError(f"LevelStore for {self.path} is closed")

    # ----------------------------------------------------------------------

    def load(self) -> LevelRecord:
        """Read the persisted record. Never raises for missing/corrupt files."""
        self._check_open()
        if not self.path.exists():
            return {}
        try:
            raw = self.path.read_bytes()
        except OSError as e:
            self.last_error = PersistenceReadError(f"Error reading DMX levels file {self.path}: {e}")
            log.error("store_read_failed path=%s err=%s", self.path, e)
            return {}
        try:
            data = json.loads(raw.decode("utf-8"))
        except ValueError as e:  # JSONDecodeError and UnicodeDecodeError alike
            self.last_error = PersistenceReadError(f"Error decoding JSON from {self.path}: {e}")
            log.error("store_decode_failed path=%s err=%s", self.path, e)
            self._quarantine()
            return {}
        return _record_from_json(data, self.path)

    def _quarantine(self) -> Optional[Path]:
        stem = f"{self.path.name}.bak.{int(time.time())}"
        backup = self.path.with_name(stem)
        n = 1
        while backup.exists():  # second corruption within the same second
            backup = self.path.with_name(f"{stem}.{n}")
            n += 1
        try:
            os.replace(self.path, backup)
        except OSError as e:
            log.error("store_quarantine_failed path=%s err=%s", self.path, e)
            return None
        log.warning("store_quarantined path=%s backup=%s", self.path, backup)
        return backup

    @contextlib.contextmanager
    def _locked(self) -> Iterator[None]:
        fd = os.open(str(self.lock_path), os.O_CREAT | os.O_RDWR)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX)
            yield
        finally:
            fcntl.flock(fd, fcntl.LOCK_UN)
            os.close(fd)

    def save(self, record: LevelRecord) -> bool:
        """Serialise and replace the store file. Failure is returned, not raised."""
        self._check_open()
        try:
            payload = _record_to_json(record)
        except (TypeError, ValueError, OverflowError) as e:
            self.last_error = PersistenceWriteError(f"Error encoding DMX levels to JSON: {e}")
            log.error("store_encode_failed path=%s err=%s", self.path, e)
            return False

        tmp = self.path.with_name(f".{self.path.name}.{os.getpid()}.tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self._locked():
                with open(tmp, "w", encoding="utf-8") as fh:
                    fh.write(payload)
                    fh.flush()
                    os.fsync(fh.fileno())
                os.replace(tmp, self.path)
        except OSError as e:
            self.last_error = PersistenceWriteError(f"Error writing DMX levels to {self.path}: {e}")
            log.error("store_write_failed path=%s err=%s", self.path, e)
            with contextlib.suppress(OSError):
                tmp.unlink()
            return False
        return True

    # convenience wrappers over the record helpers

    def get_level(self, record: LevelRecord, universe: int, channel: int) -> int:
        return get_level(record, universe, channel)

    def set_level(self, record: LevelRecord, universe: int, channel: int, level: int) -> LevelRecord:
        return set_level(record, universe, channel, level)
