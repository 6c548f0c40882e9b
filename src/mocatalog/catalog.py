"""Translation catalog facade.

:class:`Catalog` ties a byte source, the decoded tables, a lookup strategy
and the plural evaluator together behind four lookup operations:
``translate``, ``ngettext``, ``pgettext`` and ``npgettext``.

Lookups never raise because of catalog content. A catalog whose source is
missing, unreadable or not an MO file enters short-circuit mode, where
every lookup returns the caller's own input (and plural lookups use the
English two-form default). Unreadable individual entries count as misses.

Example:
    from mocatalog import Catalog

    with Catalog.from_file("locale/fr/LC_MESSAGES/messages.mo") as catalog:
        catalog.translate("Hello World")               # "Bonjour le Monde"
        catalog.ngettext("One item", "Many items", 5)   # "Plusieurs articles"
        catalog.pgettext("menu", "View")                # "Affichage"
"""

from __future__ import annotations

import codecs
import dataclasses
import logging
import os
import threading
from typing import Iterator

from mocatalog.config import CatalogConfig
from mocatalog.exceptions import CatalogError, CatalogIOError
from mocatalog.format import (
    CONTEXT_SEPARATOR,
    PLURAL_SEPARATOR,
    CatalogHeader,
    charset_from_metadata,
    parse_metadata,
    read_header,
    read_offset_table,
)
from mocatalog.lookup import BinarySearchLookup, CachedLookup, LookupStrategy
from mocatalog.plural import PluralEvaluator
from mocatalog.source import ByteSource, MemoryByteSource, open_source

logger = logging.getLogger(__name__)


class Catalog:
    """A read-only, decoded MO catalog.

    The catalog takes ownership of its byte source and closes it in
    :meth:`close`.

    Thread safety: cache population and plural-rule compilation are guarded
    by a lock, and file sources serialize their seek-then-read pairs, so a
    catalog may be shared between threads. Populating the cache before
    sharing (any lookup in cached mode does it) avoids contention.

    Args:
        source: Byte source to decode, or ``None`` for a pass-through catalog.
        cache: Materialize all entries on first use instead of
            binary-searching the source on every lookup.
        fallback_charset: Charset used when the catalog declares none.
    """

    def __init__(
        self,
        source: ByteSource | None,
        cache: bool = True,
        fallback_charset: str = "utf-8",
    ) -> None:
        self.source = source
        self.cache = cache
        self.fallback_charset = fallback_charset
        self.header: CatalogHeader | None = None
        self.error: CatalogError | None = None

        self._lookup: LookupStrategy | None = None
        self._metadata: dict[str, str] | None = None
        self._charset: str | None = None
        self._plurals: PluralEvaluator | None = None
        self._lock = threading.RLock()

        if source is None:
            return
        try:
            header = read_header(source)
            originals = read_offset_table(
                source, header.originals_offset, header.total, header.byteorder
            )
            translations = read_offset_table(
                source, header.translations_offset, header.total, header.byteorder
            )
        except CatalogError as e:
            self.error = e
            logger.warning("Catalog unusable, lookups will pass through: %s", e)
            return

        self.header = header
        strategy = CachedLookup if cache else BinarySearchLookup
        self._lookup = strategy(source, originals, translations)

    # -------------------------------------------------------------------------
    # Construction helpers
    # -------------------------------------------------------------------------

    @classmethod
    def from_file(
        cls,
        path: str | os.PathLike[str],
        config: CatalogConfig | None = None,
    ) -> "Catalog":
        """Open a catalog file.

        A missing or unreadable file gives a short-circuit catalog.
        """
        config = config or CatalogConfig()
        try:
            source = open_source(path, preload=config.preload)
        except CatalogIOError as e:
            logger.warning("Catalog unusable, lookups will pass through: %s", e)
            catalog = cls(None, cache=config.cache, fallback_charset=config.fallback_charset)
            catalog.error = e
            return catalog

        catalog = cls(source, cache=config.cache, fallback_charset=config.fallback_charset)
        if catalog.short_circuit:
            source.close()
        return catalog

    @classmethod
    def from_bytes(
        cls,
        data: bytes | bytearray | memoryview,
        config: CatalogConfig | None = None,
    ) -> "Catalog":
        """Decode a catalog held in memory."""
        config = config or CatalogConfig()
        return cls(
            MemoryByteSource(data),
            cache=config.cache,
            fallback_charset=config.fallback_charset,
        )

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def short_circuit(self) -> bool:
        """True when the catalog failed to load and lookups pass through."""
        return self._lookup is None

    @property
    def metadata(self) -> dict[str, str]:
        """Parsed ``Key: value`` lines of the empty-key metadata entry."""
        if self._metadata is None:
            with self._lock:
                if self._metadata is None:
                    self._metadata = self._load_metadata()
        return self._metadata

    @property
    def charset(self) -> str:
        """Charset used to encode keys and decode values."""
        if self._charset is None:
            with self._lock:
                if self._charset is None:
                    self._charset = self._resolve_charset()
        return self._charset

    @property
    def plurals(self) -> PluralEvaluator:
        """Plural evaluator compiled from the catalog's ``Plural-Forms``."""
        if self._plurals is None:
            with self._lock:
                if self._plurals is None:
                    self._plurals = PluralEvaluator.from_declaration(
                        self.metadata.get("plural-forms")
                    )
        return self._plurals

    def _load_metadata(self) -> dict[str, str]:
        raw = self._find(b"")
        if not raw:
            return {}
        metadata = parse_metadata(raw.decode("utf-8", errors="replace"))
        declared = charset_from_metadata(metadata)
        if declared and _known_charset(declared) and codecs.lookup(declared).name != "utf-8":
            metadata = parse_metadata(raw.decode(declared, errors="replace"))
        return metadata

    def _resolve_charset(self) -> str:
        declared = charset_from_metadata(self.metadata)
        if declared and _known_charset(declared):
            return declared
        if declared:
            logger.warning(
                "Unknown catalog charset %r, using %r", declared, self.fallback_charset
            )
        if _known_charset(self.fallback_charset):
            return self.fallback_charset
        return "utf-8"

    # -------------------------------------------------------------------------
    # Raw access
    # -------------------------------------------------------------------------

    def _find(self, key: bytes) -> bytes | None:
        if self._lookup is None:
            return None
        try:
            return self._lookup.find(key)
        except CatalogIOError as e:
            logger.debug("Lookup of %r failed, treating as missing: %s", key, e)
            return None

    def _encode(self, text: str) -> bytes | None:
        try:
            return text.encode(self.charset)
        except UnicodeError:
            return None

    def _decode(self, data: bytes) -> str:
        try:
            return data.decode(self.charset, errors="replace")
        except UnicodeError:
            return data.decode("utf-8", errors="replace")

    def _find_text(self, key: str) -> bytes | None:
        if self._lookup is None or not key:
            return None
        raw_key = self._encode(key)
        if raw_key is None:
            return None
        return self._find(raw_key)

    # -------------------------------------------------------------------------
    # Lookup operations
    # -------------------------------------------------------------------------

    def translate(self, message: str) -> str:
        """Translate ``message``, or return it unchanged if absent.

        The empty string is reserved for metadata and translates to itself.
        """
        value = self._find_text(message)
        if value is None:
            return message
        return self._decode(value)

    def ngettext(self, singular: str, plural: str, count: int) -> str:
        """Translate a message with plural forms.

        On a miss, returns ``singular`` when ``count == 1`` and ``plural``
        otherwise, whatever rule the catalog declares.
        """
        value = self._find_text(singular + PLURAL_SEPARATOR + plural)
        if value is None:
            return singular if count == 1 else plural
        forms = self._decode(value).split(PLURAL_SEPARATOR)
        index = min(self.plurals.select(count), len(forms) - 1)
        return forms[index]

    def pgettext(self, context: str, message: str) -> str:
        """Translate ``message`` within ``context``."""
        result = self.translate(context + CONTEXT_SEPARATOR + message)
        if CONTEXT_SEPARATOR in result:
            return message
        return result

    def npgettext(self, context: str, singular: str, plural: str, count: int) -> str:
        """Translate a message with plural forms within ``context``."""
        result = self.ngettext(context + CONTEXT_SEPARATOR + singular, plural, count)
        if CONTEXT_SEPARATOR in result:
            return singular
        return result

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    def items(self) -> Iterator[tuple[str, str]]:
        """Yield decoded ``(key, value)`` pairs, without the metadata entry."""
        if self._lookup is None:
            return
        for key, value in self._lookup.entries():
            if key:
                yield self._decode(key), self._decode(value)

    def __len__(self) -> int:
        """Number of entries, including the metadata entry."""
        if self._lookup is None:
            return 0
        return self._lookup.total

    def __contains__(self, message: object) -> bool:
        return isinstance(message, str) and self._find_text(message) is not None

    def close(self) -> None:
        """Close the underlying byte source."""
        if self.source is not None:
            self.source.close()

    def __enter__(self) -> "Catalog":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        if self.short_circuit:
            return "Catalog(short_circuit=True)"
        mode = "cached" if self.cache else "binary-search"
        return f"Catalog(entries={len(self)}, mode={mode!r})"


def _known_charset(name: str) -> bool:
    """True for text codecs that accept ``errors="replace"``."""
    try:
        "".encode(name)
        b"".decode(name, errors="replace")
    except (LookupError, UnicodeError):
        return False
    return True


def load_catalog(
    origin: str | os.PathLike[str] | bytes | bytearray | memoryview,
    *,
    cache: bool | None = None,
    preload: bool | None = None,
    config: CatalogConfig | None = None,
) -> Catalog:
    """Load a catalog from a path or raw bytes.

    Options not given explicitly come from ``config``, or from the
    environment (see :meth:`CatalogConfig.from_env`) when no config is
    passed.
    """
    config = config or CatalogConfig.from_env()
    overrides = {
        name: value
        for name, value in (("cache", cache), ("preload", preload))
        if value is not None
    }
    if overrides:
        config = dataclasses.replace(config, **overrides)

    if isinstance(origin, (bytes, bytearray, memoryview)):
        return Catalog.from_bytes(origin, config)
    return Catalog.from_file(origin, config)
