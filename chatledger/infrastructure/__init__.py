"""Infrastructure layer - external adapters and wiring."""

from .app_factory import AppFactory, get_app_factory
from .streams.in_memory_stream_store import InMemoryStreamStore, ResumableStream

__all__ = ["AppFactory", "get_app_factory", "InMemoryStreamStore", "ResumableStream"]
