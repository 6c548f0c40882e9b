"""MO binary format decoding.

Layout of a compiled catalog (all words are unsigned 32-bit integers in the
byte order selected by the magic number):

    offset  contents
    0       magic (DE 12 04 95 little-endian, 95 04 12 DE big-endian)
    4       format revision
    8       N, number of entries
    12      offset of the original-string table
    16      offset of the translated-string table
    20      hash table size (ignored)
    24      hash table offset (ignored)

Each table holds N ``(length, offset)`` pairs addressing raw string bytes
elsewhere in the file. The original table is sorted by the producer.

Decoding never trusts a length or offset: every string read is bounds
checked by the byte source, so a corrupt pair fails only that read.
"""

from __future__ import annotations

import logging
import re
import struct
from dataclasses import dataclass
from enum import Enum

from mocatalog.exceptions import CatalogIOError, NotACatalogError
from mocatalog.source import ByteSource

logger = logging.getLogger(__name__)


MAGIC_LITTLE_ENDIAN = b"\xde\x12\x04\x95"
MAGIC_BIG_ENDIAN = b"\x95\x04\x12\xde"

WORD_SIZE = 4
HEADER_SIZE = 7 * WORD_SIZE

CONTEXT_SEPARATOR = "\x04"
PLURAL_SEPARATOR = "\x00"


class ByteOrder(str, Enum):
    """Byte order of the 32-bit words in a catalog."""

    LITTLE = "little"
    BIG = "big"

    @property
    def struct_prefix(self) -> str:
        return "<" if self is ByteOrder.LITTLE else ">"

    @classmethod
    def from_magic(cls, magic: bytes) -> "ByteOrder":
        """Select the byte order announced by a magic number.

        Raises:
            NotACatalogError: If ``magic`` is not a recognized constant.
        """
        if magic == MAGIC_LITTLE_ENDIAN:
            return cls.LITTLE
        if magic == MAGIC_BIG_ENDIAN:
            return cls.BIG
        raise NotACatalogError(magic)


# =============================================================================
# Header
# =============================================================================


@dataclass(frozen=True)
class CatalogHeader:
    """Fixed-size header at the start of a catalog.

    Attributes:
        byteorder: Byte order of all subsequent words.
        revision: Format revision, kept but not interpreted.
        total: Number of entries N.
        originals_offset: Offset of the original-string table.
        translations_offset: Offset of the translated-string table.
        hash_size: Legacy hash table size (0 when absent).
        hash_offset: Legacy hash table offset (0 when absent).
    """

    byteorder: ByteOrder
    revision: int
    total: int
    originals_offset: int
    translations_offset: int
    hash_size: int = 0
    hash_offset: int = 0

    @property
    def major_revision(self) -> int:
        return self.revision >> 16

    @property
    def minor_revision(self) -> int:
        return self.revision & 0xFFFF


def _unpack_words(data: bytes, byteorder: ByteOrder) -> tuple[int, ...]:
    count = len(data) // WORD_SIZE
    return struct.unpack(f"{byteorder.struct_prefix}{count}I", data)


def read_header(source: ByteSource) -> CatalogHeader:
    """Decode the catalog header from the start of ``source``.

    Raises:
        NotACatalogError: If the magic number is not recognized.
        CatalogIOError: If the source is too short for the header.
    """
    if source.length() < WORD_SIZE:
        raise NotACatalogError(source.read_at(0, source.length()))
    byteorder = ByteOrder.from_magic(source.read_at(0, WORD_SIZE))
    revision, total, originals, translations = _unpack_words(
        source.read(4 * WORD_SIZE), byteorder
    )

    hash_size = hash_offset = 0
    if source.length() >= HEADER_SIZE:
        hash_size, hash_offset = _unpack_words(source.read(2 * WORD_SIZE), byteorder)

    header = CatalogHeader(
        byteorder=byteorder,
        revision=revision,
        total=total,
        originals_offset=originals,
        translations_offset=translations,
        hash_size=hash_size,
        hash_offset=hash_offset,
    )
    logger.debug(
        "Decoded catalog header: %s-endian, revision %d, %d entries",
        byteorder.value,
        revision,
        total,
    )
    return header


# =============================================================================
# Offset tables
# =============================================================================


@dataclass(frozen=True)
class OffsetTable:
    """One of the two parallel ``(length, offset)`` tables.

    Attributes:
        lengths: Byte length of each string.
        offsets: Absolute offset of each string in the source.
    """

    lengths: tuple[int, ...]
    offsets: tuple[int, ...]

    def __len__(self) -> int:
        return len(self.lengths)

    def __getitem__(self, index: int) -> tuple[int, int]:
        return self.lengths[index], self.offsets[index]

    def read_string(self, source: ByteSource, index: int) -> bytes:
        """Read the raw bytes of entry ``index``.

        Raises:
            CatalogIOError: If the entry points outside the source.
        """
        length = self.lengths[index]
        if not length:
            return b""
        return source.read_at(self.offsets[index], length)


def read_offset_table(
    source: ByteSource,
    offset: int,
    count: int,
    byteorder: ByteOrder,
) -> OffsetTable:
    """Read ``count`` ``(length, offset)`` pairs starting at ``offset``.

    Raises:
        CatalogIOError: If the table extends past the end of the source.
    """
    size = 2 * WORD_SIZE * count
    if offset + size > source.length():
        raise CatalogIOError(
            f"Offset table for {count} entries does not fit in source",
            offset=offset,
            length=size,
        )
    words = _unpack_words(source.read_at(offset, size), byteorder) if count else ()
    return OffsetTable(lengths=tuple(words[0::2]), offsets=tuple(words[1::2]))


# =============================================================================
# Metadata entry
# =============================================================================


_CHARSET_RE = re.compile(r"charset\s*=\s*([^\s;]+)", re.IGNORECASE)


def parse_metadata(text: str) -> dict[str, str]:
    """Parse the ``Key: value`` lines of the empty-key metadata entry.

    Keys are lower-cased. A line without a colon continues the previous
    value.

    Example:
        >>> parse_metadata("Language: fr\\nPlural-Forms: nplurals=2; plural=(n > 1);\\n")
        {'language': 'fr', 'plural-forms': 'nplurals=2; plural=(n > 1);'}
    """
    metadata: dict[str, str] = {}
    last_key: str | None = None
    for line in text.split("\n"):
        line = line.strip()
        if not line:
            continue
        if ":" in line:
            key, value = line.split(":", 1)
            last_key = key.strip().lower()
            metadata[last_key] = value.strip()
        elif last_key is not None:
            metadata[last_key] += "\n" + line
    return metadata


def charset_from_metadata(metadata: dict[str, str]) -> str | None:
    """Return the charset declared in ``Content-Type``, if any."""
    match = _CHARSET_RE.search(metadata.get("content-type", ""))
    return match.group(1) if match else None
