"""bpm - a package manager for versioned artifacts.

Discovers package artifacts published by providers, resolves a requested
name/version/channel, caches verified artifacts, and installs them into
configured mount points.
"""

__version__ = "0.3.2"
