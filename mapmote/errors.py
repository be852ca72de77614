#!/usr/bin/env python3
# mapmote/errors.py
"""Exception types raised by mapmote."""


class MapmoteError(Exception):
    """Base class for mapmote errors."""


class ZoomRangeError(MapmoteError, IndexError):
    """Zoom level is not an integer inside the precomputed range."""


class ScanError(MapmoteError):
    """No usable tile images were found."""


class RemoteControlError(MapmoteError):
    """The editor remote control could not be reached or refused the request."""
