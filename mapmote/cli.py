#!/usr/bin/env python3
# mapmote/cli.py
"""
Entry point for the mapmote command line.

    mapmote bbox 12 2200 1343 --srs 900913
    mapmote tiles -0.2 51.4 0.1 51.6 12
    mapmote scan page.html --send
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional, Sequence

from prompt_toolkit import print_formatted_text
from prompt_toolkit.formatted_text import HTML

from mapmote.config import Config, SRS_CHOICES
from mapmote.errors import MapmoteError
from mapmote.logging_conf import setup_logging
from mapmote.mercator import SphericalMercator
from mapmote.remote import RemoteControl
from mapmote.scanner import find_image_sources, scan_tiles, tiles_to_bbox
from mapmote.version import version_info

log = logging.getLogger(__name__)


def _fmt(values: Sequence[float]) -> str:
    return " ".join(f"{v:.12g}" for v in values)


def _out(label: str, values: Sequence[float]) -> None:
    print_formatted_text(HTML("<b>{}</b> {}").format(label, _fmt(values)))


def _projector(args, cfg: Config) -> SphericalMercator:
    return SphericalMercator(args.size or cfg.tile_size)


def _tms(args, cfg: Config) -> bool:
    return cfg["projection"]["tms_style"] if args.tms is None else args.tms


def _srs(args, cfg: Config) -> str:
    return args.srs or cfg["projection"]["srs"]


# ----------------------------
# Commands
# ----------------------------

def cmd_bbox(args, cfg: Config) -> int:
    merc = _projector(args, cfg)
    box = merc.bbox(args.x, args.y, args.zoom, _tms(args, cfg), _srs(args, cfg))
    _out("bbox", box)
    return 0


def cmd_tiles(args, cfg: Config) -> int:
    merc = _projector(args, cfg)
    bounds = merc.xyz((args.west, args.south, args.east, args.north), args.zoom, _tms(args, cfg), _srs(args, cfg))
    for k, v in bounds.as_dict().items():
        print_formatted_text(HTML("<b>{}</b> {}").format(k, str(v)))
    return 0


def cmd_px(args, cfg: Config) -> int:
    _out("px", _projector(args, cfg).px((args.lon, args.lat), args.zoom))
    return 0


def cmd_ll(args, cfg: Config) -> int:
    _out("ll", _projector(args, cfg).ll((args.px, args.py), args.zoom))
    return 0


def cmd_forward(args, cfg: Config) -> int:
    _out("xy", _projector(args, cfg).forward((args.lon, args.lat)))
    return 0


def cmd_inverse(args, cfg: Config) -> int:
    _out("ll", _projector(args, cfg).inverse((args.x, args.y)))
    return 0


def _read_sources(items: Sequence[str]) -> List[str]:
    sources: List[str] = []
    for item in items:
        if item == "-":
            sources.extend(find_image_sources(sys.stdin.read()))
        elif item.lower().endswith((".html", ".htm")):
            with open(item, "r", encoding="utf-8", errors="replace") as f:
                sources.extend(find_image_sources(f.read()))
        else:
            sources.append(item)
    return sources


def cmd_scan(args, cfg: Config) -> int:
    sources = _read_sources(args.sources)
    coords = scan_tiles(sources)
    log.info("%d of %d sources are tiles", len(coords), len(sources))
    box = tiles_to_bbox(coords, _projector(args, cfg), _tms(args, cfg))
    _out("bbox", box)
    if args.send:
        with RemoteControl.from_config(cfg) as remote:
            url = remote.zoom_to(box)
        print_formatted_text(HTML("<b>sent</b> {}").format(url))
    return 0


# ----------------------------
# Parser
# ----------------------------

def _add_row_order(parser: argparse.ArgumentParser) -> None:
    rows = parser.add_mutually_exclusive_group()
    rows.add_argument("--tms", dest="tms", action="store_true", default=None, help="tile rows count from the south edge")
    rows.add_argument("--xyz", dest="tms", action="store_false", help="tile rows count from the north edge")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mapmote", description="Spherical Mercator tile and coordinate conversions.")
    parser.add_argument("--version", action="version", version=version_info())
    parser.add_argument("--config", help="path to the JSON config file")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--size", type=int, help="tile size in pixels (default from config)")

    tiled = argparse.ArgumentParser(add_help=False, parents=[common])
    _add_row_order(tiled)
    tiled.add_argument("--srs", choices=SRS_CHOICES, help="coordinate system of the bbox")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("bbox", parents=[tiled], help="bounding box of a tile")
    p.add_argument("zoom", type=int)
    p.add_argument("x", type=int)
    p.add_argument("y", type=int)
    p.set_defaults(func=cmd_bbox)

    p = sub.add_parser("tiles", parents=[tiled], help="tile range covering a bounding box")
    for name in ("west", "south", "east", "north"):
        p.add_argument(name, type=float)
    p.add_argument("zoom", type=int)
    p.set_defaults(func=cmd_tiles)

    p = sub.add_parser("px", parents=[common], help="lon/lat to pixel")
    p.add_argument("lon", type=float)
    p.add_argument("lat", type=float)
    p.add_argument("zoom", type=int)
    p.set_defaults(func=cmd_px)

    p = sub.add_parser("ll", parents=[common], help="pixel to lon/lat")
    p.add_argument("px", type=float)
    p.add_argument("py", type=float)
    p.add_argument("zoom", type=int)
    p.set_defaults(func=cmd_ll)

    p = sub.add_parser("forward", parents=[common], help="WGS84 lon/lat to 900913 metres")
    p.add_argument("lon", type=float)
    p.add_argument("lat", type=float)
    p.set_defaults(func=cmd_forward)

    p = sub.add_parser("inverse", parents=[common], help="900913 metres to WGS84 lon/lat")
    p.add_argument("x", type=float)
    p.add_argument("y", type=float)
    p.set_defaults(func=cmd_inverse)

    p = sub.add_parser("scan", parents=[common], help="bbox of the tiles found in pages or URLs")
    p.add_argument("sources", nargs="+", help="HTML files, '-' for stdin, or tile URLs")
    _add_row_order(p)
    p.add_argument("--send", action="store_true", help="send the bbox to the editor remote control")
    p.set_defaults(func=cmd_scan)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    cfg = Config.load(args.config)
    setup_logging(cfg, verbose=args.verbose)
    try:
        return args.func(args, cfg)
    except (MapmoteError, ValueError, OSError) as exc:
        log.debug("command failed", exc_info=True)
        print_formatted_text(HTML("<ansired>error:</ansired> {}").format(str(exc)), file=sys.stderr)
        return 1

if __name__ == "__main__":
    sys.exit(main())
