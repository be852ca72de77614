#!/usr/bin/env python3
# mapmote/config.py
"""
Config loader/saver and defaults for mapmote.

- Single JSON file per user.
- Safe atomic writes.
- Deep-merge of user config over defaults.
- Basic validation with sane fallbacks.

Usage:
    from mapmote.config import Config
    cfg = Config.load()                 # ~/.config/mapmote/mapmote.json or OS-specific
    size = cfg["projection"]["tile_size"]
    cfg["remote"]["base_url"] = "http://127.0.0.1:8111"
    cfg.save()
"""

from __future__ import annotations

import copy
import json
import logging
import math
import os
import platform
import shutil
import tempfile
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

log = logging.getLogger(__name__)

# ----------------------------
# Defaults
# ----------------------------

DEFAULT_CONFIG: Dict[str, Any] = {
    "projection": {
        "tile_size": 256,                 # pixel width of a zoom 0 tile
        "tms_style": False,               # row 0 at the south edge
        "srs": "WGS84",                   # WGS84 | 900913
    },
    "remote": {
        # JOSM style remote control listener
        "base_url": "http://127.0.0.1:8111",
        "user_agent": "mapmote/1.0",
        "connect_timeout_s": 2.0,
        "read_timeout_s": 10.0,
        "retries": 1,
        "precision": 12,                  # decimals sent for each bbox edge
        "max_span_deg": 0.01,             # larger boxes are shrunk about their centre
    },
    "logging": {
        "level": "WARNING",
        "http_debug": False,
        "file": None,                     # path or None
        "rotate_bytes": 1024 * 1024,
        "rotate_keep": 3,
    },
}

SRS_CHOICES = ("WGS84", "900913")

# ----------------------------
# Helpers
# ----------------------------

def _os_config_home() -> str:
    """Return per-OS config base directory."""
    if platform.system() == "Windows":
        base = os.environ.get("APPDATA") or os.path.expanduser("~\\AppData\\Roaming")
        return os.path.join(base, "Mapmote")
    if platform.system() == "Darwin":
        return os.path.join(os.path.expanduser("~/Library/Application Support"), "Mapmote")
    return os.path.join(os.path.expanduser("~/.config"), "mapmote")

def _default_config_path() -> str:
    """Resolve default config path, honoring MAPMOTE_CONFIG env override."""
    env = os.environ.get("MAPMOTE_CONFIG")
    if env:
        return os.path.expanduser(env)
    return os.path.join(_os_config_home(), "mapmote.json")

def _deep_merge(a: Dict[str, Any], b: Dict[str, Any]) -> Dict[str, Any]:
    """Return deep-merged copy of dicts: values in b override a."""
    out = dict(a)
    for k, v in b.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out

def _atomic_write_json(path: str, data: Dict[str, Any]) -> None:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=".tmp_cfg_", dir=os.path.dirname(path) or ".")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, sort_keys=True)
            f.write("\n")
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.remove(tmp)
        raise

def _coerce_num(v: Any, default: float, minmax: Optional[Tuple[float, float]] = None) -> float:
    try:
        x = float(v)
    except (TypeError, ValueError, OverflowError):
        return float(default)
    if not math.isfinite(x):
        return float(default)
    if minmax:
        lo, hi = minmax
        if x < lo: x = lo
        if x > hi: x = hi
    return x

def _coerce_int(v: Any, default: int, minmax: Optional[Tuple[int, int]] = None) -> int:
    try:
        x = int(v)
    except (TypeError, ValueError, OverflowError):
        return int(default)
    if minmax:
        lo, hi = minmax
        if x < lo: x = lo
        if x > hi: x = hi
    return x

def _coerce_bool(v: Any, default: bool) -> bool:
    if isinstance(v, bool):
        return v
    if isinstance(v, str):
        s = v.strip().lower()
        if s in ("1", "true", "yes", "on"): return True
        if s in ("0", "false", "no", "off"): return False
    return default

# ----------------------------
# Validation
# ----------------------------

def _validate(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Return validated copy with fallbacks applied."""
    c = _deep_merge(copy.deepcopy(DEFAULT_CONFIG), copy.deepcopy(cfg or {}))
    for section, defaults in DEFAULT_CONFIG.items():
        if not isinstance(c.get(section), dict):
            c[section] = copy.deepcopy(defaults)

    # projection
    p = c["projection"]
    p["tile_size"] = _coerce_int(p.get("tile_size"), DEFAULT_CONFIG["projection"]["tile_size"], (1, 1 << 16))
    p["tms_style"] = _coerce_bool(p.get("tms_style"), DEFAULT_CONFIG["projection"]["tms_style"])
    if p.get("srs") not in SRS_CHOICES:
        p["srs"] = DEFAULT_CONFIG["projection"]["srs"]

    # remote
    r = c["remote"]
    r["base_url"] = str(r.get("base_url") or DEFAULT_CONFIG["remote"]["base_url"]).rstrip("/")
    r["user_agent"] = str(r.get("user_agent") or DEFAULT_CONFIG["remote"]["user_agent"])
    r["connect_timeout_s"] = _coerce_num(r.get("connect_timeout_s"), 2.0, (0.1, 60.0))
    r["read_timeout_s"]    = _coerce_num(r.get("read_timeout_s"), 10.0, (0.1, 120.0))
    r["retries"]           = _coerce_int(r.get("retries"), 1, (0, 10))
    r["precision"]         = _coerce_int(r.get("precision"), 12, (0, 17))
    r["max_span_deg"]      = _coerce_num(r.get("max_span_deg"), 0.01, (1e-6, 360.0))

    # logging
    lg = c["logging"]
    if lg.get("level") not in ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "NOTSET"):
        lg["level"] = DEFAULT_CONFIG["logging"]["level"]
    lg["http_debug"] = _coerce_bool(lg.get("http_debug"), DEFAULT_CONFIG["logging"]["http_debug"])
    lf = lg.get("file")
    lg["file"] = str(lf) if lf else None
    lg["rotate_bytes"] = _coerce_int(lg.get("rotate_bytes"), DEFAULT_CONFIG["logging"]["rotate_bytes"], (64 * 1024, 50 * 1024 * 1024))
    lg["rotate_keep"]  = _coerce_int(lg.get("rotate_keep"), DEFAULT_CONFIG["logging"]["rotate_keep"], (0, 50))

    return c

# ----------------------------
# Public API
# ----------------------------

@dataclass
class Config:
    """Thin wrapper around a nested dict with load/save/merge."""
    data: Dict[str, Any] = field(default_factory=lambda: _validate({}))
    path: str = field(default_factory=_default_config_path)

    # --- Mapping-style access
    def __getitem__(self, k: str) -> Any:
        return self.data[k]

    def __setitem__(self, k: str, v: Any) -> None:
        self.data[k] = v

    def get(self, k: str, default: Any = None) -> Any:
        return self.data.get(k, default)

    # --- Ops
    @classmethod
    def load(cls, path: Optional[str] = None, create_if_missing: bool = False) -> "Config":
        cfg_path = os.path.expanduser(path) if path else _default_config_path()
        if not os.path.exists(cfg_path):
            cfg = _validate(DEFAULT_CONFIG)
            if create_if_missing:
                _atomic_write_json(cfg_path, cfg)
            return cls(cfg, cfg_path)

        try:
            with open(cfg_path, "r", encoding="utf-8") as f:
                user_cfg = json.load(f)
            if not isinstance(user_cfg, dict):
                raise ValueError("top level is not an object")
        except (OSError, ValueError) as exc:
            # Corrupt file. Backup and fall back to defaults.
            backup = cfg_path + ".corrupt.bak"
            log.warning("config %s unreadable (%s); saved copy to %s", cfg_path, exc, backup)
            try:
                shutil.copyfile(cfg_path, backup)
            except OSError:
                log.warning("could not back up %s", cfg_path)
            user_cfg = {}

        return cls(_validate(user_cfg), cfg_path)

    def save(self) -> None:
        """Persist to JSON atomically."""
        full = _validate(self.data)
        _atomic_write_json(self.path, full)
        self.data = full  # sync in-memory with normalized values

    def update(self, partial: Dict[str, Any]) -> None:
        """Deep-merge a partial config then validate."""
        merged = _deep_merge(self.data, partial)
        self.data = _validate(merged)

    # Convenience getters
    @property
    def tile_size(self) -> int:
        return self.data["projection"]["tile_size"]

    @property
    def remote_url(self) -> str:
        return self.data["remote"]["base_url"]


__all__ = [
    "Config",
    "DEFAULT_CONFIG",
    "SRS_CHOICES",
]
