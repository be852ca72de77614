#!/usr/bin/env python3
# mapmote/logging_conf.py
"""
Central logging setup for mapmote.
Supports console and optional rotating file logs.
"""

import logging
import os
from logging.handlers import RotatingFileHandler

from mapmote.config import Config

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def _has_file_handler(path: str) -> bool:
    target = os.path.abspath(path)
    return any(
        isinstance(h, RotatingFileHandler) and h.baseFilename == target
        for h in logging.getLogger().handlers
    )


def setup_logging(cfg: Config, verbose: bool = False) -> None:
    lg = cfg["logging"]
    level_name = "DEBUG" if verbose else lg.get("level", "WARNING").upper()
    level = getattr(logging, level_name, logging.WARNING)
    logging.basicConfig(level=level, format=LOG_FORMAT)

    log_file = lg.get("file")
    if log_file and not _has_file_handler(log_file):
        handler = RotatingFileHandler(
            log_file,
            maxBytes=int(lg.get("rotate_bytes", 1024 * 1024)),
            backupCount=int(lg.get("rotate_keep", 3)),
            encoding="utf-8",
        )
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logging.getLogger().addHandler(handler)

    if lg.get("http_debug"):
        logging.getLogger("urllib3").setLevel(logging.DEBUG)
        logging.getLogger("requests").setLevel(logging.DEBUG)
