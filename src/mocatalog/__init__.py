"""mocatalog - Offline translation lookups from compiled MO catalogs.

Reads GNU gettext binary catalogs without any OS-level translation
facility and answers plain, plural and context-qualified lookups.

Example:
    from mocatalog import load_catalog

    catalog = load_catalog("locale/fr/LC_MESSAGES/messages.mo")
    catalog.translate("Hello World")
    catalog.ngettext("One item", "Many items", 3)
    catalog.pgettext("menu", "View")
    catalog.npgettext("cart", "One item", "Many items", 3)
"""

from mocatalog.catalog import Catalog, load_catalog
from mocatalog.config import CatalogConfig
from mocatalog.exceptions import (
    CatalogError,
    CatalogIOError,
    InvalidPluralExpressionError,
    NotACatalogError,
)
from mocatalog.format import ByteOrder, CatalogHeader, OffsetTable
from mocatalog.plural import PluralEvaluator, PluralRule, compile_plural_forms
from mocatalog.source import (
    ByteSource,
    FileByteSource,
    MemoryByteSource,
    PreloadedFileByteSource,
    open_source,
)

__version__ = "0.1.0"

__all__ = [
    # Catalog
    "Catalog",
    "load_catalog",
    "CatalogConfig",
    # Byte sources
    "ByteSource",
    "MemoryByteSource",
    "FileByteSource",
    "PreloadedFileByteSource",
    "open_source",
    # Format
    "ByteOrder",
    "CatalogHeader",
    "OffsetTable",
    # Plural forms
    "PluralEvaluator",
    "PluralRule",
    "compile_plural_forms",
    # Exceptions
    "CatalogError",
    "CatalogIOError",
    "NotACatalogError",
    "InvalidPluralExpressionError",
]
