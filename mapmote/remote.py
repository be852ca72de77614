#!/usr/bin/env python3
# mapmote/remote.py
"""
Editor remote control client.

Sends a bounding box to a JOSM style remote control listener through its
``load_and_zoom`` command. Boxes wider or taller than ``max_span`` degrees
are shrunk to that span about their centre first, so the editor does not
try to download a whole city.
"""

from __future__ import annotations

import logging
from typing import Sequence, Tuple
from urllib.parse import urlencode

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from mapmote.config import Config
from mapmote.errors import RemoteControlError

__all__ = [
    "DEFAULT_BASE_URL",
    "RemoteControl",
    "shrink_bbox",
    "load_and_zoom_url",
]

log = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://127.0.0.1:8111"

BBox = Tuple[float, float, float, float]


def shrink_bbox(bbox: Sequence[float], max_span: float = 0.01) -> BBox:
    """Clip each axis of ``(w, s, e, n)`` to at most ``max_span`` about its centre."""
    w, s, e, n = bbox
    half = max_span / 2
    if e - w > max_span:
        c = (w + e) / 2
        w, e = c - half, c + half
    if n - s > max_span:
        c = (s + n) / 2
        s, n = c - half, c + half
    return w, s, e, n


def load_and_zoom_url(bbox: Sequence[float], base_url: str = DEFAULT_BASE_URL, precision: int = 12) -> str:
    """URL asking the editor to load and zoom to ``(w, s, e, n)``."""
    w, s, e, n = bbox
    fmt = "{:.%df}" % precision
    query = urlencode([
        ("left", fmt.format(w)),
        ("top", fmt.format(n)),
        ("right", fmt.format(e)),
        ("bottom", fmt.format(s)),
    ])
    return f"{base_url.rstrip('/')}/load_and_zoom?{query}"


class RemoteControl:
    """
    HTTP session bound to one remote control listener.
    Transport failures are retried by urllib3 before surfacing.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        user_agent: str = "mapmote/1.0",
        connect_timeout: float = 2.0,
        read_timeout: float = 10.0,
        retries: int = 1,
        precision: int = 12,
        max_span: float = 0.01,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = (connect_timeout, read_timeout)
        self.precision = precision
        self.max_span = max_span

        self.session = requests.Session()
        self.session.headers["User-Agent"] = user_agent
        retry = Retry(
            total=retries,
            connect=retries,
            read=retries,
            backoff_factor=0.3,
            status_forcelist=(502, 503, 504),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    @classmethod
    def from_config(cls, cfg: Config) -> "RemoteControl":
        r = cfg["remote"]
        return cls(
            r["base_url"],
            r["user_agent"],
            connect_timeout=r["connect_timeout_s"],
            read_timeout=r["read_timeout_s"],
            retries=r["retries"],
            precision=r["precision"],
            max_span=r["max_span_deg"],
        )

    def zoom_to(self, bbox: Sequence[float], shrink: bool = True) -> str:
        """
        Ask the editor to load ``(w, s, e, n)``.
        Returns the URL that was requested.
        """
        if shrink:
            bbox = shrink_bbox(bbox, self.max_span)
        url = load_and_zoom_url(bbox, self.base_url, self.precision)
        log.info("remote control request %s", url)
        try:
            r = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as exc:
            raise RemoteControlError(f"remote control at {self.base_url} unreachable: {exc}") from exc
        if not r.ok:
            raise RemoteControlError(f"remote control answered HTTP {r.status_code}: {r.text.strip()[:200]}")
        return url

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "RemoteControl":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
