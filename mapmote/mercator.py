#!/usr/bin/env python3
# mapmote/mercator.py
"""
Spherical (Web) Mercator projector.

Converts between WGS84 lon/lat, 900913 metres and the pixel / tile
addressing of XYZ and TMS tile pyramids. Per-zoom scale constants are
computed once per tile size and shared by every projector of that size.
"""

from __future__ import annotations

import math
import threading
from dataclasses import dataclass
from typing import Dict, List, NamedTuple, Optional, Sequence, Tuple

import numpy as np

from mapmote.errors import ZoomRangeError

__all__ = [
    "SphericalMercator",
    "TileBounds",
    "cached_sizes",
    "A",
    "MAXEXTENT",
    "MAX_LAT",
    "LEVELS",
    "DEFAULT_SIZE",
]

D2R = math.pi / 180
R2D = 180 / math.pi

# 900913 properties
A = 6378137.0
MAXEXTENT = 20037508.34

# Latitude of the top edge of tile 0/0/0
MAX_LAT = 85.05112878

LEVELS = 30
DEFAULT_SIZE = 256

# sin(lat) clamp keeping the Mercator Y finite near the poles
SIN_LIMIT = 0.9999

LonLat = Tuple[float, float]
Pixel = Tuple[float, float]
BBox = Tuple[float, float, float, float]


class _Constants(NamedTuple):
    Bc: Tuple[float, ...]   # pixels per degree of longitude
    Cc: Tuple[float, ...]   # pixels per radian
    zc: Tuple[float, ...]   # pixel offset of the projection origin
    Ac: Tuple[int, ...]     # pixel extent of the whole world


_cache: Dict[int, _Constants] = {}
_cache_lock = threading.Lock()


def _build_constants(size: int) -> _Constants:
    bc: List[float] = []
    cc: List[float] = []
    zc: List[float] = []
    ac: List[int] = []
    c = size
    for _ in range(LEVELS):
        bc.append(c / 360.0)
        cc.append(c / (2 * math.pi))
        zc.append(c / 2)
        ac.append(c)
        c *= 2
    return _Constants(tuple(bc), tuple(cc), tuple(zc), tuple(ac))


def _constants_for(size: int) -> _Constants:
    """Return the shared constant tables for ``size``, building them once."""
    consts = _cache.get(size)
    if consts is None:
        with _cache_lock:
            consts = _cache.get(size)
            if consts is None:
                consts = _build_constants(size)
                _cache[size] = consts
    return consts


def cached_sizes() -> List[int]:
    """Tile sizes whose constants have been computed so far."""
    with _cache_lock:
        return sorted(_cache)


# ----------------------------
# Numeric helpers
# ----------------------------

def _round(v: float) -> float:
    # Half-up rounding; non-finite values pass through.
    if not math.isfinite(v):
        return v
    return math.floor(v + 0.5)


def _floor(v: float) -> float:
    if not math.isfinite(v):
        return v
    return math.floor(v)


def _exp(v: float) -> float:
    try:
        return math.exp(v)
    except OverflowError:
        return math.inf


def _sin(v: float) -> float:
    return math.sin(v) if math.isfinite(v) else math.nan


def _tan(v: float) -> float:
    return math.tan(v) if math.isfinite(v) else math.nan


def _log(v: float) -> float:
    if v > 0:
        return math.log(v)
    if v == 0:
        return -math.inf
    return math.nan


def _clamp(v: float, lo: float, hi: float) -> float:
    # NaN stays NaN
    if v < lo:
        return lo
    if v > hi:
        return hi
    return v


# ----------------------------
# Results
# ----------------------------

@dataclass(frozen=True)
class TileBounds:
    """Inclusive tile index range covering a bounding box."""
    min_x: int
    min_y: int
    max_x: int
    max_y: int

    def as_dict(self) -> Dict[str, int]:
        return {
            "minX": self.min_x,
            "minY": self.min_y,
            "maxX": self.max_x,
            "maxY": self.max_y,
        }


# ----------------------------
# Projector
# ----------------------------

class SphericalMercator:
    """
    Projector bound to one tile size.

    ``size`` is the pixel width of a tile at zoom 0; the world doubles in
    pixel extent with every zoom level. Zoom levels 0..29 are supported.
    Instances carry no mutable state.
    """

    def __init__(self, size: Optional[int] = None):
        if size is None:
            size = DEFAULT_SIZE
        if isinstance(size, bool) or not isinstance(size, int) or size <= 0:
            raise ValueError(f"tile size must be a positive integer, got {size!r}")
        self.size = size
        consts = _constants_for(size)
        self.Bc = consts.Bc
        self.Cc = consts.Cc
        self.zc = consts.zc
        self.Ac = consts.Ac

    def __repr__(self) -> str:
        return f"SphericalMercator(size={self.size})"

    def _zoom(self, zoom: int) -> int:
        try:
            z = int(zoom)
        except (TypeError, ValueError, OverflowError):
            raise ZoomRangeError(f"zoom must be an integer, got {zoom!r}") from None
        if z != zoom or not 0 <= z < len(self.Ac):
            raise ZoomRangeError(f"zoom {zoom!r} outside 0..{len(self.Ac) - 1}")
        return z

    # --- pixels

    def px(self, ll: Sequence[float], zoom: int) -> Pixel:
        """Convert ``(lon, lat)`` to pixel ``(x, y)`` at ``zoom``."""
        z = self._zoom(zoom)
        d = self.zc[z]
        f = _clamp(_sin(D2R * ll[1]), -SIN_LIMIT, SIN_LIMIT)
        x = _round(d + ll[0] * self.Bc[z])
        y = _round(d + 0.5 * math.log((1 + f) / (1 - f)) * -self.Cc[z])
        # Upper bound only; over-range input may go negative.
        if x > self.Ac[z]:
            x = self.Ac[z]
        if y > self.Ac[z]:
            y = self.Ac[z]
        return x, y

    def ll(self, px: Sequence[float], zoom: int) -> LonLat:
        """Convert pixel ``(x, y)`` at ``zoom`` to ``(lon, lat)``."""
        z = self._zoom(zoom)
        g = (px[1] - self.zc[z]) / -self.Cc[z]
        lon = (px[0] - self.zc[z]) / self.Bc[z]
        lat = R2D * (2 * math.atan(_exp(g)) - 0.5 * math.pi)
        return lon, lat

    def px_array(self, lonlats, zoom: int) -> np.ndarray:
        """Vectorised :meth:`px` over an ``(n, 2)`` array of lon/lat rows."""
        z = self._zoom(zoom)
        arr = np.asarray(lonlats, dtype=float).reshape(-1, 2)
        d = self.zc[z]
        with np.errstate(invalid="ignore", over="ignore"):
            f = np.clip(np.sin(D2R * arr[:, 1]), -SIN_LIMIT, SIN_LIMIT)
            x = np.floor(d + arr[:, 0] * self.Bc[z] + 0.5)
            y = np.floor(d + 0.5 * np.log((1 + f) / (1 - f)) * -self.Cc[z] + 0.5)
            x = np.where(x > self.Ac[z], self.Ac[z], x)
            y = np.where(y > self.Ac[z], self.Ac[z], y)
        return np.column_stack((x, y))

    def ll_array(self, pixels, zoom: int) -> np.ndarray:
        """Vectorised :meth:`ll` over an ``(n, 2)`` array of pixel rows."""
        z = self._zoom(zoom)
        arr = np.asarray(pixels, dtype=float).reshape(-1, 2)
        with np.errstate(over="ignore"):
            g = (arr[:, 1] - self.zc[z]) / -self.Cc[z]
            lon = (arr[:, 0] - self.zc[z]) / self.Bc[z]
            lat = R2D * (2 * np.arctan(np.exp(g)) - 0.5 * math.pi)
        return np.column_stack((lon, lat))

    # --- tiles

    def bbox(self, x: int, y: int, zoom: int, tms_style: bool = False, srs: str = "WGS84") -> BBox:
        """
        Bounding box ``(w, s, e, n)`` of tile ``x/y`` at ``zoom``.

        With ``tms_style`` the row index counts from the south edge. With
        ``srs="900913"`` the box is returned in projected metres.
        """
        z = self._zoom(zoom)
        if tms_style:
            y = (2 ** z - 1) - y
        lower_left = (x * self.size, (y + 1) * self.size)
        upper_right = ((x + 1) * self.size, y * self.size)
        box = self.ll(lower_left, z) + self.ll(upper_right, z)
        if srs == "900913":
            return self.convert(box, "900913")
        return box

    def xyz(self, bbox: Sequence[float], zoom: int, tms_style: bool = False, srs: str = "WGS84") -> TileBounds:
        """
        Range of tiles at ``zoom`` covering ``bbox`` (``w, s, e, n``).

        Pixels on a tile edge belong to the tile below / to the right.
        """
        z = self._zoom(zoom)
        if srs == "900913":
            bbox = self.convert(bbox, "WGS84")
        px_ll = self.px((bbox[0], bbox[1]), z)
        px_ur = self.px((bbox[2], bbox[3]), z)
        # XYZ row 0 is the top, so min_y comes from the upper right corner.
        min_x = _floor(px_ll[0] / self.size)
        min_y = _floor(px_ur[1] / self.size)
        max_x = _floor((px_ur[0] - 1) / self.size)
        max_y = _floor((px_ll[1] - 1) / self.size)
        if tms_style:
            top = 2 ** z - 1
            min_y, max_y = top - max_y, top - min_y
        return TileBounds(min_x, min_y, max_x, max_y)

    # --- 900913

    def convert(self, bbox: Sequence[float], to: str) -> BBox:
        """Reproject ``bbox`` to ``to``; the input is taken to be in the other srs."""
        if to == "900913":
            return self.forward(bbox[0:2]) + self.forward(bbox[2:4])
        return self.inverse(bbox[0:2]) + self.inverse(bbox[2:4])

    def forward(self, ll: Sequence[float]) -> Tuple[float, float]:
        """WGS84 ``(lon, lat)`` to 900913 ``(x, y)``, clamped to MAXEXTENT."""
        x = A * ll[0] * D2R
        y = A * _log(_tan(math.pi * 0.25 + 0.5 * ll[1] * D2R))
        return _clamp(x, -MAXEXTENT, MAXEXTENT), _clamp(y, -MAXEXTENT, MAXEXTENT)

    def inverse(self, xy: Sequence[float]) -> Tuple[float, float]:
        """900913 ``(x, y)`` to WGS84 ``(lon, lat)``."""
        return (
            xy[0] * R2D / A,
            (math.pi * 0.5 - 2.0 * math.atan(_exp(-xy[1] / A))) * R2D,
        )
