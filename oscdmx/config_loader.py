# oscdmx/config_loader.py
from __future__ import annotations
"""
Configuration loader for oscdmx.

Single source of truth:
    config/config.yaml   (optional; built-in defaults apply when absent)

Design notes
------------
- An explicitly requested file that is missing or broken raises a friendly
  RuntimeError that prints absolute paths for quick fixes.
- The default file may be absent; defaults then match the historical
  compiled-in constants (OLA at 192.168.251.128:7770, 100 steps,
  dmx_levels.json in the working directory).
- Unknown keys are fine; we pass the full dict through untouched.
- Typed views (OscTargetConfig, FadeConfig, StoreConfig) validate on build.

Public API
----------
- load_config(path: str|Path|None = None) -> dict
- OscTargetConfig.from_app(cfg) / FadeConfig.from_app(cfg) / StoreConfig.from_app(cfg)
- get_log_level(cfg, default: str = "INFO") -> str
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

import yaml

# ---------- Files & roots ----------
PROJECT_ROOT = Path(__file__).resolve().parents[1]
CONFIG_DIR   = PROJECT_ROOT / "config"
DEFAULT_CFG  = CONFIG_DIR / "config.yaml"

DEFAULT_HOST = "192.168.251.128"
DEFAULT_PORT = 7770
DEFAULT_STEPS = 100
DEFAULT_STORE = "dmx_levels.json"


# ---------- I/O helpers ----------
def _load_yaml(path: Path) -> Dict[str, Any]:
    """Load a YAML mapping from `path`. Human-friendly errors, strict root type."""
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise RuntimeError(
            f"Missing configuration file: {path}\n"
            f"Copy config/config.yaml from the project root as a starting point.\n"
            f"Project root: {PROJECT_ROOT}"
        )
    except OSError as ex:
        raise RuntimeError(f"Failed to read {path}: {type(ex).__name__}: {ex}")

    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as ex:
        raise RuntimeError(f"Failed to parse YAML {path}: {type(ex).__name__}: {ex}")

    if not isinstance(data, dict):
        raise RuntimeError(f"Root of {path} must be a mapping/object, not {type(data).__name__}")
    return data


def _resolve_path(p: str | os.PathLike[str]) -> Path:
    """Return absolute path; relative paths resolve against the working directory."""
    pth = Path(p).expanduser()
    return pth if pth.is_absolute() else (Path.cwd() / pth).resolve()


def _section(cfg: Dict[str, Any], name: str) -> Dict[str, Any]:
    sec = (cfg or {}).get(name) or {}
    if not isinstance(sec, dict):
        raise RuntimeError(f"CONFIG section '{name}' must be a mapping, not {type(sec).__name__}")
    return sec


# ---------- Loader ----------
def load_config(path: str | os.PathLike[str] | None = None) -> Dict[str, Any]:
    """
    Load a single YAML file and return the raw dict (unmodified).
    With no path, config/config.yaml is used if present, else {}.
    The typed views are built once here so bad values fail at load time.
    """
    if path:
        cfg = _load_yaml(_resolve_path(path))
    elif DEFAULT_CFG.exists():
        cfg = _load_yaml(DEFAULT_CFG)
    else:
        cfg = {}

    OscTargetConfig.from_app(cfg)
    FadeConfig.from_app(cfg)
    StoreConfig.from_app(cfg)
    return cfg


# ---------- Typed views ----------
@dataclass(frozen=True)
class OscTargetConfig:
    """Where datagrams go, and how they are addressed."""
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    address_template: str = "/dmx/universe/{universe}"
    type_tag: str = ",ii"

    def __post_init__(self):
        if not isinstance(self.host, str) or not self.host.strip():
            raise RuntimeError("CONFIG osc.host must be a non-empty string")
        if not isinstance(self.port, int) or not 0 <= self.port <= 65535:
            raise RuntimeError(f"CONFIG osc.port must be an integer in 0..65535, got {self.port!r}")
        if "{universe}" not in self.address_template:
            raise RuntimeError("CONFIG osc.address_template must contain '{universe}'")

    @classmethod
    def from_app(cls, cfg: Dict[str, Any]) -> "OscTargetConfig":
        osc = _section(cfg, "osc")
        port = osc.get("port", DEFAULT_PORT)
        try:
            port = int(port)
        except (TypeError, ValueError):
            raise RuntimeError(f"CONFIG osc.port must be an integer, got {port!r}")
        return cls(
            host=str(osc.get("host", DEFAULT_HOST)),
            port=port,
            address_template=str(osc.get("address_template", "/dmx/universe/{universe}")),
            type_tag=str(osc.get("type_tag", ",ii")),
        )


@dataclass(frozen=True)
class FadeConfig:
    steps: int = DEFAULT_STEPS

    def __post_init__(self):
        if not isinstance(self.steps, int) or self.steps < 1:
            raise RuntimeError(f"CONFIG fade.steps must be an integer >= 1, got {self.steps!r}")

    @classmethod
    def from_app(cls, cfg: Dict[str, Any]) -> "FadeConfig":
        steps = _section(cfg, "fade").get("steps", DEFAULT_STEPS)
        if isinstance(steps, bool) or not isinstance(steps, int):
            raise RuntimeError(f"CONFIG fade.steps must be an integer >= 1, got {steps!r}")
        return cls(steps=steps)


@dataclass(frozen=True)
class StoreConfig:
    path: Path = Path(DEFAULT_STORE)
    # Persist the target level even if some datagrams failed (historical behaviour).
    persist_on_failure: bool = True

    @classmethod
    def from_app(cls, cfg: Dict[str, Any]) -> "StoreConfig":
        store = _section(cfg, "store")
        raw = store.get("path", DEFAULT_STORE)
        if not isinstance(raw, (str, os.PathLike)) or not str(raw).strip():
            raise RuntimeError("CONFIG store.path must be a non-empty string")
        return cls(
            path=_resolve_path(raw),
            persist_on_failure=bool(store.get("persist_on_failure", True)),
        )


# ---------- Accessors ----------
def get_log_level(cfg: Dict[str, Any], default: str = "INFO") -> str:
    """Return log level as 'INFO'/'DEBUG', etc."""
    lvl = ((cfg or {}).get("log", {}) or {}).get("level", default)
    return str(lvl).upper()
# ---------- End of config_loader.py ----------
