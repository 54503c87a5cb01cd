"""Client-side sync layer for the peer review platform."""

__version__ = "0.1.0"
