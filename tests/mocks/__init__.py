"""Test doubles for catalog tests.

``build_mo`` plays the external catalog producer so tests can create
catalogs of any shape, including corrupt ones.
"""

from tests.mocks.catalog_builder import (
    CountingByteSource,
    build_mo,
    patch_word,
)

__all__ = [
    "CountingByteSource",
    "build_mo",
    "patch_word",
]
