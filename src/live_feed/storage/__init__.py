"""Live feed / archive storage."""

from .live_store import InMemoryLiveStore, JsonFileLiveStore

__all__ = ["InMemoryLiveStore", "JsonFileLiveStore"]
