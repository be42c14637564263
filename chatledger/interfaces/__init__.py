"""Interfaces layer - protocols and contracts."""

from .streams import LiveStream, LiveStreamStore

__all__ = ["LiveStream", "LiveStreamStore"]
