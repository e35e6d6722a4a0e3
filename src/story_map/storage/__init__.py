"""Storage backends and the schema adapter that hides their differences."""

from story_map.storage.base import StoreWriter, StoryMapStore
from story_map.storage.selection import open_store

__all__ = [
    "StoreWriter",
    "StoryMapStore",
    "open_store",
]
