#!/usr/bin/env python3
# mapmote/scanner.py
"""
Tile sniffing for mapmote.

Pulls ``(z, x, y)`` tile addresses out of image URLs or a whole HTML page
and folds the tiles of one zoom level into a single WGS84 bounding box.

URL forms understood:
- path style ``.../{z}/{x}/{y}.png`` (first run of three numeric segments)
- Google style query strings carrying ``x=``, ``y=`` and ``z=``
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, List, NamedTuple, Optional, Sequence, Tuple

import lxml.html
from lxml import etree
from lxml.cssselect import CSSSelector

from mapmote.errors import ScanError
from mapmote.mercator import SphericalMercator

__all__ = [
    "TileCoord",
    "TILE_CLASSES",
    "parse_tile_url",
    "find_image_sources",
    "scan_tiles",
    "union",
    "tiles_to_bbox",
]

log = logging.getLogger(__name__)

# Tile image classes of common web map libraries, most specific first
TILE_CLASSES = ("map-tile-loaded", "leaflet-tile", "olTileImage")

_PATH_RE = re.compile(r"(\d+)/(\d+)/(\d+)")
_QUERY_RE = {k: re.compile(k + r"=(\d+)") for k in ("x", "y", "z")}


class TileCoord(NamedTuple):
    z: int
    x: int
    y: int


def parse_tile_url(url: str) -> Optional[TileCoord]:
    """Return the tile address encoded in ``url``, or None."""
    m = _PATH_RE.search(url)
    if m:
        z, x, y = (int(g) for g in m.groups())
        return TileCoord(z, x, y)
    found = {k: rx.search(url) for k, rx in _QUERY_RE.items()}
    if all(found.values()):
        return TileCoord(int(found["z"].group(1)), int(found["x"].group(1)), int(found["y"].group(1)))
    return None


_TILE_SELECTORS = [(cls, CSSSelector("." + cls)) for cls in TILE_CLASSES]
_IMG_SELECTOR = CSSSelector("img")


def _srcs(selector: CSSSelector, doc) -> List[str]:
    return [el.get("src") for el in selector(doc) if el.get("src")]


def find_image_sources(html: str) -> List[str]:
    """
    Image URLs on a page, in document order.

    Elements tagged with one of TILE_CLASSES win, checked in that order;
    when none is present every ``<img>`` is returned. Raises ScanError
    when the page holds no images at all.
    """
    try:
        doc = lxml.html.fromstring(html) if html.strip() else None
    except etree.ParserError:
        doc = None
    if doc is None:
        raise ScanError("No images found on this page")
    for cls, selector in _TILE_SELECTORS:
        srcs = _srcs(selector, doc)
        if srcs:
            log.debug("using %d elements with class %s", len(srcs), cls)
            return srcs
    srcs = _srcs(_IMG_SELECTOR, doc)
    if not srcs:
        raise ScanError("No images found on this page")
    return srcs


def scan_tiles(sources: Iterable[str]) -> List[TileCoord]:
    """Tile addresses for every source URL that encodes one."""
    coords = []
    for src in sources:
        log.debug("image %s", src)
        coord = parse_tile_url(src)
        if coord is not None:
            coords.append(coord)
    return coords


def union(bboxes: Iterable[Sequence[float]]) -> Tuple[float, float, float, float]:
    """Smallest box ``(w, s, e, n)`` containing every box."""
    minx = miny = float("inf")
    maxx = maxy = float("-inf")
    seen = False
    for b in bboxes:
        seen = True
        minx = min(minx, b[0])
        miny = min(miny, b[1])
        maxx = max(maxx, b[2])
        maxy = max(maxy, b[3])
    if not seen:
        raise ScanError("No bounding boxes to combine")
    return minx, miny, maxx, maxy


def tiles_to_bbox(
    coords: Sequence[TileCoord],
    projector: Optional[SphericalMercator] = None,
    tms_style: bool = False,
) -> Tuple[float, float, float, float]:
    """
    WGS84 box covering ``coords``.

    Only tiles at the zoom of the first coordinate take part.
    """
    if not coords:
        raise ScanError("No tiles found")
    merc = projector or SphericalMercator()
    zoom = coords[0].z
    bboxes = []
    for c in coords:
        if c.z != zoom:
            log.debug("skipping %s, not at zoom %d", c, zoom)
            continue
        bboxes.append(merc.bbox(c.x, c.y, c.z, tms_style))
    return union(bboxes)
