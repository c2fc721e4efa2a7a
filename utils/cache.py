from collections import OrderedDict
from typing import Optional

from core.contracts.models import FileContext
from utils.logger import logger


class FileCache:
    """
    A bounded in-memory store of file snippets keyed by path.

    Eviction is by insertion order: once the cache holds more than
    `capacity` entries the oldest inserted entry is dropped. Overwriting
    an existing path keeps its original position.
    """

    def __init__(self, capacity: int = 50):
        """
        Initializes the cache.

        Args:
            capacity: The maximum number of files kept. Must be positive.
        """
        if capacity <= 0:
            raise ValueError("File cache capacity must be a positive integer.")
        self.capacity = capacity
        self._entries: "OrderedDict[str, FileContext]" = OrderedDict()

    def get(self, path: str) -> Optional[FileContext]:
        """Returns the cached file for `path`, or None."""
        return self._entries.get(path)

    def set(self, path: str, content: str, language: str) -> FileContext:
        """
        Inserts or overwrites a file entry, evicting the oldest one on overflow.

        Returns:
            The stored entry.
        """
        entry = FileContext(path=path, content=content, language=language)
        self._entries[path] = entry

        if len(self._entries) > self.capacity:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug(f"File cache full, evicted: {evicted}")
        return entry

    def clear(self):
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, path: str) -> bool:
        return path in self._entries
