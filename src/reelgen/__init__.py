"""Reel generator: scripts in, illustrated and narrated reels out."""

__version__ = "0.1.0"
