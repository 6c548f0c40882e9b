"""Lookup strategies over a decoded catalog.

Two strategies resolve a raw key to its raw translation:

- :class:`CachedLookup` reads every entry once into a ``dict`` on first use;
  later lookups are O(1).
- :class:`BinarySearchLookup` keeps nothing in memory and binary-searches
  the sorted original-string table, reading O(log N) strings per lookup.

Both return ``None`` for a miss. Binary search relies on the producer
having sorted the original table; on an unsorted table it still
terminates and stays in bounds, but the result is unspecified. An
unreadable original hides only its own entry in either strategy.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from typing import Iterator

from mocatalog.exceptions import CatalogIOError
from mocatalog.format import OffsetTable
from mocatalog.source import ByteSource

logger = logging.getLogger(__name__)


class LookupStrategy(ABC):
    """Resolves raw keys against a pair of offset tables."""

    def __init__(
        self,
        source: ByteSource,
        originals: OffsetTable,
        translations: OffsetTable,
    ) -> None:
        self.source = source
        self.originals = originals
        self.translations = translations

    @property
    def total(self) -> int:
        return len(self.originals)

    @abstractmethod
    def find(self, key: bytes) -> bytes | None:
        """Return the translation stored for ``key``, or ``None``.

        Raises:
            CatalogIOError: If a string needed for the lookup is unreadable.
        """

    def original(self, index: int) -> bytes:
        return self.originals.read_string(self.source, index)

    def translation(self, index: int) -> bytes:
        return self.translations.read_string(self.source, index)

    def entries(self) -> Iterator[tuple[bytes, bytes]]:
        """Yield ``(key, value)`` pairs in table order, skipping bad entries."""
        for index in range(self.total):
            try:
                yield self.original(index), self.translation(index)
            except CatalogIOError as e:
                logger.warning("Skipping unreadable catalog entry %d: %s", index, e)


class CachedLookup(LookupStrategy):
    """Materializes the whole catalog into a dictionary on first use."""

    def __init__(
        self,
        source: ByteSource,
        originals: OffsetTable,
        translations: OffsetTable,
    ) -> None:
        super().__init__(source, originals, translations)
        self._cache: dict[bytes, bytes] | None = None
        self._lock = threading.RLock()

    @property
    def is_populated(self) -> bool:
        return self._cache is not None

    def populate(self) -> dict[bytes, bytes]:
        """Read every entry into the cache once and return it."""
        cache = self._cache
        if cache is not None:
            return cache
        with self._lock:
            if self._cache is None:
                self._cache = dict(self.entries())
                logger.debug("Cached %d catalog entries", len(self._cache))
            return self._cache

    def find(self, key: bytes) -> bytes | None:
        return self.populate().get(key)

    def entries(self) -> Iterator[tuple[bytes, bytes]]:
        if self._cache is None:
            yield from super().entries()
        else:
            yield from self._cache.items()


class BinarySearchLookup(LookupStrategy):
    """Binary search over the producer-sorted original-string table."""

    def _nearest_readable(self, lo: int, hi: int, mid: int) -> tuple[int, bytes] | None:
        """Return the readable original closest to ``mid`` within ``[lo, hi)``."""
        for distance in range(hi - lo):
            for index in (mid - distance, mid + distance):
                if not lo <= index < hi:
                    continue
                try:
                    return index, self.original(index)
                except CatalogIOError as e:
                    logger.debug("Skipping unreadable original %d: %s", index, e)
                if distance == 0:
                    break
        return None

    def find_index(self, key: bytes) -> int | None:
        """Return the table index holding ``key``, or ``None``.

        Unreadable originals are stepped over, so they only hide themselves.
        """
        lo, hi = 0, self.total
        while lo < hi:
            found = self._nearest_readable(lo, hi, (lo + hi) // 2)
            if found is None:
                return None
            index, candidate = found
            if key == candidate:
                return index
            if key < candidate:
                hi = index
            else:
                lo = index + 1
        return None

    def find(self, key: bytes) -> bytes | None:
        index = self.find_index(key)
        if index is None:
            return None
        return self.translation(index)
