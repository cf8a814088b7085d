"""Spotify to YouTube playlist converter."""

__version__ = "1.0.0"
