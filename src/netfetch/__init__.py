"""
Netfetch - host snapshot collection engine.

Gathers hardware, operating system, desktop session and network facts
into a single snapshot that local and remote renderers can display.
"""

__version__ = "0.3.0"
__author__ = "Netfetch Developers"

__all__ = ["__version__"]
