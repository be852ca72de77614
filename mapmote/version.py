#!/usr/bin/env python3
# mapmote/version.py
"""
Version metadata for mapmote.
"""

__version__ = "1.0.0"
__license__ = "MIT"

def version_info() -> str:
    """Return human-readable version string."""
    return f"mapmote v{__version__}"
