"""Catalog loading configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class CatalogConfig:
    """Options controlling how a catalog is loaded.

    Attributes:
        cache: Materialize every entry into memory on first use (O(1)
            lookups). When False, each lookup binary-searches the file.
        preload: Read file-backed catalogs fully into memory and close the
            file immediately.
        fallback_charset: Charset used when the catalog declares none, or
            declares one Python does not know.
    """

    cache: bool = True
    preload: bool = False
    fallback_charset: str = "utf-8"

    @classmethod
    def from_env(cls, prefix: str = "MOCATALOG_") -> "CatalogConfig":
        """Build a config from environment variables.

        Environment variables:
            MOCATALOG_CACHE: Enable the in-memory cache (default: true)
            MOCATALOG_PRELOAD: Preload file catalogs (default: false)
            MOCATALOG_FALLBACK_CHARSET: Fallback charset (default: utf-8)
        """

        def get_bool(key: str, default: bool) -> bool:
            value = os.environ.get(prefix + key, "").lower()
            if value in ("true", "1", "yes", "on"):
                return True
            if value in ("false", "0", "no", "off"):
                return False
            return default

        return cls(
            cache=get_bool("CACHE", cls.cache),
            preload=get_bool("PRELOAD", cls.preload),
            fallback_charset=(
                os.environ.get(prefix + "FALLBACK_CHARSET") or cls.fallback_charset
            ),
        )
