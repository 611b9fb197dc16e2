"""Draw and settlement engine for lottery draws, binary trades and prize rounds."""

__version__ = "0.1.0"
